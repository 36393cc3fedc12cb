#!/usr/bin/env python
"""
Run the JSON REST API.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --port 8000 --db /path/to/timetracker.db
"""
import argparse
import sys
from pathlib import Path

# Add package root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from timetracker.api.app import create_app
from timetracker.config import config, configure_logging


def main():
    parser = argparse.ArgumentParser(description="Run the time tracking REST API")
    parser.add_argument("--db", type=str, default=None, help="Override database path")
    parser.add_argument("--host", type=str, default=config.api_host, help="Bind address")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port")
    parser.add_argument("--debug", action="store_true", help="Flask debug mode")

    args = parser.parse_args()
    configure_logging("DEBUG" if args.debug else None)

    app = create_app(args.db)
    app.run(host=args.host, port=args.port, debug=args.debug and not config.is_prod)


if __name__ == "__main__":
    main()
