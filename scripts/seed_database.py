#!/usr/bin/env python
"""
Create the database and load sample users, projects and time entries.

Usage:
    python scripts/seed_database.py
    python scripts/seed_database.py --db /path/to/timetracker.db
"""
import argparse
import sys
from pathlib import Path

# Add package root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.config import config, configure_logging
from timetracker.data.seed import seed_sample_data
from timetracker.data.storage import Storage, StorageError


def main():
    parser = argparse.ArgumentParser(description="Create and seed the time tracking database")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Override database path"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else None)

    db_path = Path(args.db) if args.db else config.db_path
    print(f"Seeding database...")
    print(f"  Database: {db_path}")
    print()

    try:
        summary = seed_sample_data(Storage(db_path))
    except StorageError as e:
        print(f"ERROR seeding database: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    if not summary:
        print("Database already has users; nothing to do.")
        return

    print("✓ Sample data created!")
    print()
    print("Summary:")
    for table, count in summary.items():
        print(f"  {table}: {count:,} rows")


if __name__ == "__main__":
    main()
