"""Create (or reset) the tables of the configured database.

Alembic is the normal path; this is a shortcut for local SQLite setups.
"""
from __future__ import annotations

import argparse

from nosedive.db.session import create_tables, drop_tables


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the Nosedive tables")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every table before creating them again.",
    )
    args = parser.parse_args()

    if args.drop_tables:
        drop_tables()
        print("[init_db] dropped all tables")
    create_tables()
    print("[init_db] database initialized")


if __name__ == "__main__":
    main()
