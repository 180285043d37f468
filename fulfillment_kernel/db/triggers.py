"""
Module: fulfillment_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL immutability
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    LEDGER_APPEND_ONLY -- inventory_movements rows: no UPDATE, no DELETE.
    LEDGER_APPEND_ONLY -- order_items rows: no UPDATE, no direct DELETE
        (cascade from a deleted order is allowed).

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaces as
      InternalError / DBAPIError through SQLAlchemy).
    - FileNotFoundError if SQL files are missing from the sql/ directory.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

# Installed in this order
TRIGGER_FILES = [
    "01_inventory_movement.sql",
    "02_order_item.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_inventory_movement_immutability_update",
    "trg_inventory_movement_immutability_delete",
    "trg_order_item_immutability_update",
    "trg_order_item_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate all trigger SQL files in installation order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def _load_drop_sql() -> str:
    return _load_sql_file(DROP_FILE)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables must exist (call after create_all).
        Engine must be connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed.
        Functions use CREATE OR REPLACE, so this is idempotent.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    Only for test teardown and migrations that must rewrite history.
    Re-install immediately afterwards.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_drop_sql()))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names of the immutability triggers currently present."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """

    with engine.connect() as conn:
        return [row[0] for row in conn.execute(text(check_sql))]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
