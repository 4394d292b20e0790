#!/usr/bin/env python3
"""
Create the certification schema (and, on PostgreSQL, the append-only triggers).

Usage:
  python3 scripts/init_db.py [--config PATH] [--drop]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from certification_kernel.config import load_config
from certification_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    is_postgres,
)
from certification_kernel.db.triggers import get_installed_triggers, triggers_installed
from certification_kernel.logging_config import configure_logging


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Initialize the certification database")
    p.add_argument("--config", help="Path to certification.yaml")
    p.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = p.parse_args(argv)

    config = load_config(args.config)
    configure_logging(level=config.log_level)
    engine = init_engine_from_url(config.database_url)

    if args.drop:
        print("Dropping tables...")
        drop_tables()

    create_tables()
    print(f"Schema ready on {engine.url.render_as_string(hide_password=True)}")
    if is_postgres():
        triggers = get_installed_triggers(engine)
        print(f"  {len(triggers)} immutability trigger(s) installed")
        if not triggers_installed(engine):
            print("  WARNING: some immutability triggers are missing")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
