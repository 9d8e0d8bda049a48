"""
User Provisioning CLI Commands

Creates accounts, writes the generated passwords to a credentials CSV
and emails each user their initial credentials.
"""
import asyncio
import csv
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from prize_portal.exceptions import PortalError
from prize_portal.orm.user import UserRole

NAME_COLUMNS = {
    UserRole.student: "student_name",
    UserRole.entity: "entity_name",
}


def read_accounts_csv(path: str, role: UserRole) -> List[Dict[str, Optional[str]]]:
    """
    Read accounts from CSV.

    A header row with an 'email' column is used when present; otherwise
    the first column is the email and the optional second column the name.
    """
    name_key = NAME_COLUMNS[role]
    with open(path, newline="", encoding="utf-8") as f:
        rows = [row for row in csv.reader(f) if row and any(cell.strip() for cell in row)]

    if not rows:
        return []

    header = [cell.strip().lower() for cell in rows[0]]
    if "email" in header:
        email_idx = header.index("email")
        name_idx = next(
            (header.index(col) for col in (name_key, "name", "entityname", "studentname") if col in header),
            None
        )
        rows = rows[1:]
    else:
        email_idx, name_idx = 0, 1

    accounts = []
    for row in rows:
        email = row[email_idx].strip() if len(row) > email_idx else ""
        if "@" not in email:
            continue
        name = row[name_idx].strip() if name_idx is not None and len(row) > name_idx else None
        accounts.append({"email": email, name_key: name or None})
    return accounts


def write_credentials_csv(path: Path, created) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["Email", "Name", "Password"])
        for account in created:
            writer.writerow([account.email, account.name or "", account.password])


class UserCommand:
    """User provisioning command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        if args.users_action == "create-treasury":
            return self._create_treasury(args)
        elif args.users_action == "bulk-students":
            return self._bulk(args, UserRole.student)
        elif args.users_action == "bulk-entities":
            return self._bulk(args, UserRole.entity)
        else:
            print("Error: Unknown users action")
            return 1

    def _create_treasury(self, args) -> int:
        print("=== Create Treasury Account ===")

        if self.dry_run:
            print(f"[DRY RUN] Would create treasury account {args.email}")
            return 0

        try:
            account = asyncio.run(self._async_create_treasury(args.email, args.password))
        except (PortalError, SQLAlchemyError) as e:
            print(f"Error: {e}")
            return 1

        print("✓ Treasury account created")
        print(f"Email: {account.email}")
        if not args.password:
            print(f"Password: {account.password}")
        print("Save these credentials securely!")
        return 0

    async def _async_create_treasury(self, email: str, password: Optional[str]):
        from prize_portal.database import AsyncSessionLocal, close_db, init_db
        from prize_portal.services.auth_service import create_user

        try:
            await init_db()
            async with AsyncSessionLocal() as session:
                return await create_user(session, email=email, role=UserRole.treasury, password=password)
        finally:
            await close_db()

    def _bulk(self, args, role: UserRole) -> int:
        print(f"=== Bulk Create {role.value.title()} Accounts ===")

        try:
            accounts = read_accounts_csv(args.file, role)
        except OSError as e:
            print(f"Error reading file: {e}")
            return 1

        print(f"Found {len(accounts)} account(s) in {args.file}")
        if not accounts:
            return 1

        if self.dry_run:
            print("[DRY RUN] Would create:")
            for account in accounts:
                print(f"  - {account['email']}")
            return 0

        try:
            result = asyncio.run(self._async_bulk(accounts, role, send_email=not args.no_email))
        except (PortalError, SQLAlchemyError) as e:
            print(f"Error: {e}")
            return 1

        created, failed = result["created"], result["failed"]
        print(f"Total: {len(accounts)}")
        print(f"Successful: {len(created)}")
        print(f"Failed: {len(failed)}")
        for failure in failed:
            print(f"  - {failure['email']}: {failure['error']}")

        if created:
            out = Path(args.credentials_out or f"{role.value}_credentials_{datetime.now():%Y%m%d%H%M%S}.csv")
            write_credentials_csv(out, created)
            print(f"Credentials saved to: {out}")

        if not args.no_email:
            print(f"Credential emails sent: {result['emailed']}/{len(created)}")

        return 0 if not failed else 2

    async def _async_bulk(self, accounts, role: UserRole, send_email: bool):
        from prize_portal.database import AsyncSessionLocal, close_db, init_db
        from prize_portal.services.auth_service import bulk_create_users
        from prize_portal.services.email_service import EmailService

        try:
            await init_db()
            async with AsyncSessionLocal() as session:
                result = await bulk_create_users(session, accounts, role)

            emailed = 0
            if send_email:
                notifier = EmailService(AsyncSessionLocal)
                for account in result["created"]:
                    if await notifier.send_initial_credentials(
                        email=account.email,
                        password=account.password,
                        user_type=role.value,
                        name=account.name,
                    ):
                        emailed += 1
            result["emailed"] = emailed
            return result
        finally:
            await close_db()
