"""
Shared fixtures.

Required settings are put in the environment before any prize_portal
module is imported, because settings are read once at import time.
"""
import os

os.environ["BANK_ENCRYPTION_KEY"] = "0123456789abcdef" * 4
os.environ["ALLOWED_EMAIL_DOMAIN"] = "school.edu"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from decimal import Decimal
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from prize_portal.database import build_engine, build_session_factory, init_db
from prize_portal.orm.user import User, UserRole
from prize_portal.services import event_service

TEST_PASSWORD = "correct-horse-battery"


class RecordingNotifier:
    """Notifier double: records every call and answers with a fixed result."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[tuple] = []

    async def send_team_leader_notification(self, **kwargs) -> bool:
        self.calls.append(("team_leader_notification", kwargs))
        return self.result

    async def send_team_member_notification(self, **kwargs) -> bool:
        self.calls.append(("team_member_notification", kwargs))
        return self.result

    async def send_reminder(self, **kwargs) -> bool:
        self.calls.append(("reminder", kwargs))
        return self.result

    async def send_initial_credentials(self, **kwargs) -> bool:
        self.calls.append(("initial_credentials", kwargs))
        return self.result

    def of_type(self, email_type: str) -> List[dict]:
        return [kwargs for kind, kwargs in self.calls if kind == email_type]


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate sessions really are separate connections."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def add_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    name: Optional[str] = None,
    password_hash: str = "hashed",
    is_active: bool = True
) -> User:
    user = User(
        email=email,
        password_hash=password_hash,
        role=role,
        student_name=name if role == UserRole.student else None,
        entity_name=name if role == UserRole.entity else None,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def entity_user(db_session) -> User:
    return await add_user(db_session, "club@school.edu", UserRole.entity, "Robotics Club")


@pytest_asyncio.fixture
async def treasury_user(db_session) -> User:
    return await add_user(db_session, "treasury@finance.org", UserRole.treasury)


@pytest_asyncio.fixture
async def leader(db_session) -> User:
    return await add_user(db_session, "a@school.edu", UserRole.student, "Asha")


@pytest_asyncio.fixture
async def member(db_session) -> User:
    return await add_user(db_session, "b@school.edu", UserRole.student, "Bilal")


@pytest_asyncio.fixture
async def outsider(db_session) -> User:
    return await add_user(db_session, "c@school.edu", UserRole.student, "Chen")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


def team_payload(prize=5000, leader_email="a@school.edu", member_emails=("b@school.edu",)):
    return {
        "prize_amount": Decimal(str(prize)),
        "members": [{"email": leader_email, "is_team_leader": True}]
        + [{"email": e, "is_team_leader": False} for e in member_emails],
    }


@pytest_asyncio.fixture
async def event(db_session, entity_user, leader, member, notifier):
    """Hackathon with one winning team: leader a@, member b@, prize 5000."""
    return await event_service.create_event(
        db_session,
        entity_user,
        "Hackathon 2024",
        Decimal("5000"),
        [team_payload()],
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def team_id(event) -> int:
    return event.teams[0].id


VALID_BANK_DETAILS = {
    "account_holder_name": "Asha Rao",
    "account_number": "123456789012",
    "ifsc_code": " sbin0001234 ",
    "bank_name": "State Bank of India",
    "branch_name": "Main Campus",
}
