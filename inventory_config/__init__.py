"""
inventory_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains
    configuration.  No other component reads configuration files or
    environment variables.  ``build_operations()`` wires the settings into a
    ready InventoryOperations facade (engine, session factory, consistency
    guard, audit sink).

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and beside
    ``inventory_services``.  The kernel never imports from this package.

Failure modes:
    - ConfigurationError for unreadable files, malformed YAML, unknown keys
      or out-of-range values.

Audit relevance:
    Every successful ``get_active_settings()`` call logs an
    ``inventory_config_loaded`` entry with the database dialect, tax rate,
    lock timeout and audit sink in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import ConfigurationError, load_settings
from inventory_config.schema import InventorySettings

_logger = logging.getLogger("inventory_kernel.config")

__all__ = [
    "ConfigurationError",
    "InventorySettings",
    "build_operations",
    "get_active_settings",
]


def get_active_settings(config_path: Path | str | None = None) -> InventorySettings:
    """The ONLY public configuration entrypoint."""
    settings = load_settings(config_path)
    _logger.info(
        "inventory_config_loaded",
        extra={
            "dialect": settings.database.url.split(":", 1)[0],
            "sales_tax_rate": str(settings.pricing.sales_tax_rate),
            "lock_timeout_ms": settings.concurrency.lock_timeout_ms,
            "audit_sink": settings.audit_sink,
        },
    )
    return settings


def build_operations(settings: InventorySettings | None = None, clock=None):
    """
    Build an InventoryOperations facade from settings.

    Initializes the module-level engine (see inventory_kernel.db.engine),
    registers the immutability listeners, and configures logging at the
    configured level.
    """
    from inventory_kernel.db.engine import get_session_factory, init_engine_from_url
    from inventory_kernel.db.immutability import register_immutability_listeners
    from inventory_kernel.logging_config import configure_logging
    from inventory_kernel.services.warehouse_service import LocationAddress
    from inventory_services.audit import DatabaseAuditSink, LoggingAuditSink
    from inventory_services.consistency_guard import ConsistencyGuard
    from inventory_services.operations import InventoryOperations

    settings = settings or get_active_settings()
    configure_logging(level=settings.log_level)

    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        lock_timeout_ms=settings.concurrency.lock_timeout_ms,
    )
    register_immutability_listeners()
    session_factory = get_session_factory()

    if settings.audit_sink == "database":
        sink = DatabaseAuditSink(session_factory)
    elif settings.audit_sink == "logging":
        sink = LoggingAuditSink()
    else:
        sink = None

    concurrency = settings.concurrency
    guard = ConsistencyGuard(
        session_factory,
        clock=clock,
        audit_sink=sink,
        lock_timeout_ms=concurrency.lock_timeout_ms,
        max_retries=concurrency.max_retries,
        retry_backoff_ms=concurrency.retry_backoff_ms,
    )
    rl = settings.receiving_location
    return InventoryOperations(
        guard,
        tax_rate=settings.pricing.sales_tax_rate,
        purchase_order_prefix=settings.numbering.purchase_order_prefix,
        sales_order_prefix=settings.numbering.sales_order_prefix,
        number_width=settings.numbering.width,
        receiving_address=LocationAddress(rl.zone, rl.aisle, rl.rack, rl.shelf, rl.bin),
    )
