#!/usr/bin/env python3
"""
Tally CLI - Command-line interface for the expense ledger.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    expenses       Add, import, export and list expenses
    subcategories  List and approve subcategories
    reclassify     AI reclassification of past expenses
    migrate        Database migrations
    serve          HTTP extraction API

Examples:
    python -m cli expenses add 250 "Lunch with team" --category Food
    python -m cli expenses import expenses.csv
    python -m cli reclassify run --scope 30 --mode deep
    python -m cli reclassify history
    python -m cli migrate apply
"""

import sys
import argparse
from cli import expenses, subcategories, reclassify, migrate, serve
from config import load_config
from services.base import Services
from db.manager import DatabaseManager
from logger import setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="Tally - Personal expense ledger with AI reclassification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    expenses.setup_parser(subparsers)
    subcategories.setup_parser(subparsers)
    reclassify.setup_parser(subparsers)
    migrate.setup_parser(subparsers)
    serve.setup_parser(subparsers)

    args = parser.parse_args()

    if hasattr(args, "func"):
        try:
            config = load_config()
            setup_logging(config)

            db_manager = DatabaseManager(config)

            if args.command == "migrate":
                args.func(args, db_manager)
            else:
                # Ledger commands always run against an up-to-date schema
                db_manager.ensure_schema()
                args.func(args, Services(config, db_manager=db_manager))
        except Exception as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
