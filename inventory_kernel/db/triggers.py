"""
Module: inventory_kernel.db.triggers
Responsibility: Installing and verifying PostgreSQL triggers that make the
    inventory ledger and the audit log append-only at the database level.
    This is the database-level complement to the ORM listeners in
    db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced:
    - inventory_transactions rows: no UPDATE, no DELETE.
    - audit_log_entries rows: no UPDATE, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any violation (surfaced by SQLAlchemy as
      InternalError / DBAPIError).
    - Calling on a non-PostgreSQL engine is a no-op for install/uninstall and
      returns False from triggers_installed().
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

# table name -> trigger base name
APPEND_ONLY_TABLES = {
    "inventory_transactions": "trg_inventory_transaction",
    "audit_log_entries": "trg_audit_log_entry",
}

_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION inventory_reject_mutation() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: % rows are append-only (% rejected)',
        TG_TABLE_NAME, TG_OP;
END;
$$ LANGUAGE plpgsql;
"""

_TRIGGER_SQL = """
DROP TRIGGER IF EXISTS {name}_immutability ON {table};
CREATE TRIGGER {name}_immutability
    BEFORE UPDATE OR DELETE ON {table}
    FOR EACH ROW EXECUTE FUNCTION inventory_reject_mutation();
"""

_DROP_SQL = "DROP TRIGGER IF EXISTS {name}_immutability ON {table};"

ALL_TRIGGER_NAMES = [f"{name}_immutability" for name in APPEND_ONLY_TABLES.values()]


def _is_postgres(engine: Engine) -> bool:
    return engine.dialect.name == "postgresql"


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the append-only triggers (idempotent).

    Preconditions: Tables exist (call after create_all).
    """
    if not _is_postgres(engine):
        return
    statements = [_FUNCTION_SQL] + [
        _TRIGGER_SQL.format(name=name, table=table)
        for table, name in APPEND_ONLY_TABLES.items()
    ]
    with engine.begin() as conn:
        for sql in statements:
            conn.execute(text(sql))


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Remove the append-only triggers. Migrations and test teardown only."""
    if not _is_postgres(engine):
        return
    with engine.begin() as conn:
        for table, name in APPEND_ONLY_TABLES.items():
            conn.execute(text(_DROP_SQL.format(name=name, table=table)))
        conn.execute(text("DROP FUNCTION IF EXISTS inventory_reject_mutation()"))


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES exists."""
    if not _is_postgres(engine):
        return False
    with engine.connect() as conn:
        count = conn.execute(
            text("SELECT COUNT(*) FROM pg_trigger WHERE tgname = ANY(:names)"),
            {"names": ALL_TRIGGER_NAMES},
        ).scalar()
    return count == len(ALL_TRIGGER_NAMES)
