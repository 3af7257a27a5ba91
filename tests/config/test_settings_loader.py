"""Tests for inventory_config: YAML defaults, override files, env overlay."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

import inventory_kernel.db.engine as engine_module
from inventory_config import build_operations, get_active_settings
from inventory_config.loader import ConfigurationError, build_settings, load_settings, merge
from inventory_services.audit import DatabaseAuditSink
from inventory_services.operations import InventoryOperations


def _write(tmp_path, text, name="override.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestDefaults:

    def test_shipped_defaults(self):
        settings = load_settings(environ={})
        assert settings.pricing.sales_tax_rate == Decimal("0.10")
        assert settings.concurrency.lock_timeout_ms == 5000
        assert settings.numbering.purchase_order_prefix == "PO"
        assert settings.numbering.width == 6
        assert settings.receiving_location.zone == "DOCK"
        assert settings.audit_sink == "logging"
        assert settings.log_level == "INFO"

    def test_empty_mapping_uses_dataclass_defaults(self):
        settings = build_settings({})
        assert settings.database.pool_size == 5
        assert settings.concurrency.max_retries == 3


class TestOverrides:

    def test_override_file(self, tmp_path):
        path = _write(tmp_path, """
pricing:
  sales_tax_rate: "0.0825"
numbering:
  sales_order_prefix: "ORD"
audit:
  sink: database
""")
        settings = load_settings(path, environ={})

        assert settings.pricing.sales_tax_rate == Decimal("0.0825")
        assert settings.numbering.sales_order_prefix == "ORD"
        # Untouched keys keep their defaults
        assert settings.numbering.purchase_order_prefix == "PO"
        assert settings.audit_sink == "database"

    def test_config_path_from_environment(self, tmp_path):
        path = _write(tmp_path, "concurrency:\n  max_retries: 7\n")
        settings = load_settings(environ={"INVENTORY_CONFIG": str(path)})
        assert settings.concurrency.max_retries == 7

    def test_environment_wins_over_file(self, tmp_path):
        path = _write(tmp_path, 'database:\n  url: "sqlite:///from-file.db"\nlogging:\n  level: info\n')
        settings = load_settings(path, environ={
            "DATABASE_URL": "sqlite:///from-env.db",
            "INVENTORY_LOG_LEVEL": "debug",
        })
        assert settings.database.url == "sqlite:///from-env.db"
        assert settings.log_level == "DEBUG"

    def test_merge_is_recursive(self):
        merged = merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}


class TestValidation:

    @pytest.mark.parametrize("data, fragment", [
        ({"warehouse": {}}, "Unknown config sections"),
        ({"pricing": {"vat": "0.2"}}, "Unknown keys in 'pricing'"),
        ({"pricing": "high"}, "must be a mapping"),
        ({"pricing": {"sales_tax_rate": "abc"}}, "decimal"),
        ({"pricing": {"sales_tax_rate": "-0.01"}}, "must not be negative"),
        ({"concurrency": {"max_retries": -1}}, "must not be negative"),
        ({"concurrency": {"max_retries": "3"}}, "must be an integer"),
        ({"concurrency": {"lock_timeout_ms": 0}}, "lock_timeout_ms must be positive"),
        ({"database": {"echo": "yes"}}, "true or false"),
        ({"numbering": {"width": 0}}, "numbering.width"),
        ({"numbering": {"sales_order_prefix": ""}}, "must not be empty"),
        ({"logging": {"level": "chatty"}}, "logging.level"),
        ({"audit": {"sink": "kafka"}}, "audit.sink"),
    ])
    def test_rejected(self, data, fragment):
        with pytest.raises(ConfigurationError) as exc_info:
            build_settings(data)
        assert fragment in str(exc_info.value)

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "pricing: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Malformed YAML"):
            load_settings(path, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_non_mapping_file(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_settings(path, environ={})


class TestActiveSettings:

    def test_load_is_logged(self, tmp_path, monkeypatch, captured_logs):
        monkeypatch.delenv("INVENTORY_CONFIG", raising=False)
        monkeypatch.setenv("DATABASE_URL", "sqlite:///active.db")

        settings = get_active_settings()

        assert settings.database.url == "sqlite:///active.db"
        loaded = [r for r in captured_logs() if r["message"] == "inventory_config_loaded"]
        assert loaded[0]["dialect"] == "sqlite"
        assert loaded[0]["sales_tax_rate"] == "0.10"


class TestBuildOperations:

    def test_wires_settings_into_facade(self, tmp_path, monkeypatch):
        calls = {}
        factory = sessionmaker()

        def fake_init(url, **kwargs):
            calls["url"] = url
            calls.update(kwargs)

        # Keep the suite's module-level engine untouched
        monkeypatch.setattr(engine_module, "init_engine_from_url", fake_init)
        monkeypatch.setattr(engine_module, "get_session_factory", lambda: factory)

        path = _write(tmp_path, """
database:
  url: "sqlite:///wired.db"
concurrency:
  lock_timeout_ms: 750
  max_retries: 1
audit:
  sink: database
receiving_location:
  zone: "RCV"
""")
        ops = build_operations(load_settings(path, environ={}))

        assert isinstance(ops, InventoryOperations)
        assert calls["url"] == "sqlite:///wired.db"
        assert calls["lock_timeout_ms"] == 750
        assert ops.guard.session_factory is factory
        assert isinstance(ops.guard._audit_sink, DatabaseAuditSink)
        assert ops._receiving_address.code == "RCV-00-00-00-00"
