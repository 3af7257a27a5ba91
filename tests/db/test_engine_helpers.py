"""Module-level engine helpers: session_scope, get_session, dialect checks."""

import pytest
from sqlalchemy import func, select

from inventory_kernel.db.engine import get_engine, get_session, is_postgres, session_scope
from inventory_kernel.models.warehouse import Warehouse
from inventory_kernel.services.warehouse_service import WarehouseService


def _warehouse_count() -> int:
    session = get_session()
    try:
        return session.scalar(select(func.count(Warehouse.id)))
    finally:
        session.close()


class TestSessionScope:

    def test_commits_on_normal_exit(
        self, committed_session_factory, deterministic_clock, audit_trail, test_actor_id,
    ):
        with session_scope() as session:
            WarehouseService(session, deterministic_clock, audit_trail).create_warehouse(
                "WH-SCOPE", "Scoped", test_actor_id,
            )

        assert _warehouse_count() == 1

    def test_rolls_back_and_reraises(
        self, committed_session_factory, deterministic_clock, audit_trail, test_actor_id, captured_logs,
    ):
        with pytest.raises(ValueError, match="boom"):
            with session_scope() as session:
                WarehouseService(session, deterministic_clock, audit_trail).create_warehouse(
                    "WH-GONE", "Never kept", test_actor_id,
                )
                session.flush()
                raise ValueError("boom")

        assert _warehouse_count() == 0
        assert "transaction_rolled_back" in [r["message"] for r in captured_logs()]


class TestDialect:

    def test_is_postgres_follows_engine(self, db_engine):
        assert get_engine() is db_engine
        assert is_postgres() == (db_engine.dialect.name == "postgresql")
