"""
Module: certification_kernel.db.triggers
Responsibility: Loading, installing, and verifying the PostgreSQL triggers
    that back the ORM-level append-only listeners (layer 2 of 2; layer 1 is
    db/immutability.py).
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, or outer layers.

Invariants enforced (PostgreSQL only):
    - status_history rows: no UPDATE, no DELETE.
    - reconciliation_runs rows: no UPDATE, no DELETE.
    - monthly counters: certified_count never negative.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaced by
      SQLAlchemy as InternalError / IntegrityError).
    - FileNotFoundError if SQL files are missing from the sql/ directory.

SQLite has no PL/pgSQL; on SQLite the ORM listeners and CHECK constraints
are the only layer.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_status_history.sql",
    "02_reconciliation_run.sql",
    "03_aggregate_non_negative.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_status_history_immutability_update",
    "trg_status_history_immutability_delete",
    "trg_reconciliation_run_immutability_update",
    "trg_reconciliation_run_immutability_delete",
    "trg_monthly_count_non_negative",
    "trg_monthly_count_by_category_non_negative",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate all trigger SQL files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables must exist.  Engine must be connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed
        (CREATE OR REPLACE / DROP IF EXISTS, so re-running is safe).
    """
    sql_content = _load_all_trigger_sql()

    with engine.connect() as conn:
        conn.execute(text(sql_content))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for test teardown and one-off maintenance.  Re-install
    immediately afterwards.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Installed trigger names, sorted."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """

    with engine.connect() as conn:
        result = conn.execute(text(check_sql))
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
