from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from luckydraw.db.engine import make_engine


def upgrade_db(target_revision: str = "head") -> None:
    """Bring the ``stored_records`` schema up to ``target_revision``."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def print_records() -> None:
    """List the tables and the stored record keys of the configured database."""
    engine = make_engine()
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))
    with engine.connect() as conn:
        keys = conn.exec_driver_sql("SELECT key FROM stored_records ORDER BY key")
        print("Stored records:", ", ".join(row[0] for row in keys) or "(none)")


def main() -> None:
    upgrade_db()
    print_records()


if __name__ == "__main__":
    main()
