#!/usr/bin/env python3

import sys

from models.category import CATEGORIES, MAX_SUBCATEGORIES
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List subcategories per category."""
    subcategories = services.subcategories.find_all()

    logger.info("\nSubcategories:")
    logger.info("=" * 80)
    for category in CATEGORIES:
        names = subcategories.get(category, [])
        listed = ", ".join(names) if names else "(none)"
        logger.info(f"{category} ({len(names)}/{MAX_SUBCATEGORIES}): {listed}")


def cmd_approve(args, services):
    """Approve a new subcategory under a category."""
    try:
        added = services.subcategories.approve(args.category, args.name)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    if added:
        logger.info(f"✓ Added '{args.name}' under {args.category}")
    else:
        logger.info(f"'{args.name}' was not added (duplicate or category full)")


def setup_parser(subparsers):
    """Setup subcategories subcommand parser."""
    parser = subparsers.add_parser(
        "subcategories",
        help="Manage subcategories",
        description="List and approve subcategories",
    )

    sub_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available subcategory commands",
        dest="subcommand",
        required=True,
    )

    list_parser = sub_subparsers.add_parser("list", help="List subcategories")
    list_parser.set_defaults(func=cmd_list)

    approve_parser = sub_subparsers.add_parser("approve", help="Approve a subcategory")
    approve_parser.add_argument("category", choices=CATEGORIES, help="Parent category")
    approve_parser.add_argument("name", help="Subcategory name")
    approve_parser.set_defaults(func=cmd_approve)
