#!/usr/bin/env python3
"""
Prize Portal provisioning CLI

Usage:
    python -m prize_portal.cli <command> [options]

Commands:
    db          Database operations (init)
    users       Account provisioning (create-treasury, bulk-students, bulk-entities)

Environment:
    DATABASE_URL            SQLAlchemy async URL
    BANK_ENCRYPTION_KEY     64 hex characters
    ALLOWED_EMAIL_DOMAIN    e.g. school.edu
"""
import sys
import argparse
import logging
from typing import Optional

from prize_portal import __version__
from prize_portal.cli.db_commands import DbCommand
from prize_portal.cli.user_commands import UserCommand


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="prize-portal",
        description="Prize Disbursement Portal provisioning CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s users create-treasury --email treasury@school.edu
  %(prog)s users bulk-students students.csv
  %(prog)s users bulk-entities entities.csv --no-email
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without executing"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")
    db_subparsers.add_parser("init", help="Create all tables")

    # User commands
    users_parser = subparsers.add_parser("users", help="Account provisioning")
    users_subparsers = users_parser.add_subparsers(dest="users_action")

    treasury_parser = users_subparsers.add_parser("create-treasury", help="Create a treasury account")
    treasury_parser.add_argument("--email", required=True, help="Treasury email")
    treasury_parser.add_argument("--password", help="Password (generated when omitted)")

    for action, label in (("bulk-students", "student"), ("bulk-entities", "entity")):
        bulk_parser = users_subparsers.add_parser(action, help=f"Create {label} accounts from a CSV file")
        bulk_parser.add_argument("file", help="CSV with an 'email' column (and a name column)")
        bulk_parser.add_argument(
            "--credentials-out", "-o",
            help="Where to write generated credentials (default: <role>_credentials_<timestamp>.csv)"
        )
        bulk_parser.add_argument("--no-email", action="store_true", help="Do not email credentials")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(parsed.log_level)

    # Route to appropriate command handler
    command_map = {
        "db": DbCommand,
        "users": UserCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command](dry_run=parsed.dry_run)
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
