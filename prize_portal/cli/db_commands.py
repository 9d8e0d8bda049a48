"""
Database CLI Commands
"""
import asyncio

from sqlalchemy.exc import SQLAlchemyError


class DbCommand:
    """Database CLI command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute database command."""
        if args.db_action == "init":
            return self._init(args)
        else:
            print("Error: Unknown database action")
            return 1

    def _init(self, args) -> int:
        """Create all tables."""
        from prize_portal.database import DATABASE_URL, close_db, init_db
        from prize_portal.orm.base import Base

        print("=== Database Init ===")

        if self.dry_run:
            print("[DRY RUN] Would create tables:")
            for name in sorted(Base.metadata.tables):
                print(f"  - {name}")
            return 0

        async def run():
            try:
                await init_db()
            finally:
                await close_db()

        try:
            asyncio.run(run())
        except SQLAlchemyError as e:
            print(f"Error: {type(e).__name__}: {e}")
            return 1

        print(f"✓ Tables created at {DATABASE_URL.split('@')[-1]}")
        return 0
