"""
Tests for treasury statistics, reminders and the SMTP notifier.
"""
import copy
import smtplib
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from prize_portal.config import get_settings
from prize_portal.orm.email_log import EmailLog, EmailStatus, EmailType
from prize_portal.services import event_service, reconciliation_service
from prize_portal.services.bank_details_service import BankDetailsService
from prize_portal.services.email_service import EmailService, format_amount
from prize_portal.tests.conftest import VALID_BANK_DETAILS, RecordingNotifier, team_payload


@pytest_asyncio.fixture
async def two_team_event(db_session, entity_user, leader, member, outsider):
    """Team 1: a@ leads b@ for 5000. Team 2: c@ alone for 3000."""
    return await event_service.create_event(
        db_session,
        entity_user,
        "Robo Race",
        Decimal("8000"),
        [
            team_payload(prize=5000),
            team_payload(prize=3000, leader_email="c@school.edu", member_emails=()),
        ],
    )


# ==========================================
# Statistics
# ==========================================

@pytest.mark.asyncio
async def test_statistics_follow_the_lifecycle(db_session, two_team_event, leader, treasury_user):
    stats = await reconciliation_service.load_statistics(db_session)

    assert stats["total_events"] == 1
    assert stats["total_prize_pool"] == Decimal("8000")
    assert stats["pending_bank_submissions"] == 2
    assert stats["pending_payments"] == 0
    assert stats["total_amount_pending"] == Decimal("0")

    first_team = two_team_event.teams[0]
    submitted = await BankDetailsService.submit_bank_details(
        db_session, leader, first_team.id, dict(VALID_BANK_DETAILS)
    )

    stats = await reconciliation_service.load_statistics(db_session)
    assert stats["pending_bank_submissions"] == 1
    assert stats["pending_payments"] == 1
    assert stats["total_amount_pending"] == Decimal("5000")

    await BankDetailsService.mark_paid(db_session, treasury_user, submitted["id"], date(2024, 4, 1), "UTR123")

    stats = await reconciliation_service.load_statistics(db_session)
    assert stats["pending_payments"] == 0
    assert stats["completed_payments"] == 1
    assert stats["total_amount_pending"] == Decimal("0")
    assert stats["total_amount_paid"] == Decimal("5000")


def test_statistics_of_nothing():
    stats = reconciliation_service.compute_statistics([])

    assert stats["total_events"] == 0
    assert stats["total_amount_paid"] == Decimal("0")


# ==========================================
# Reminders
# ==========================================

@pytest.mark.asyncio
async def test_reminders_go_only_to_pending_leaders(db_session, two_team_event, leader):
    await BankDetailsService.submit_bank_details(
        db_session, leader, two_team_event.teams[0].id, dict(VALID_BANK_DETAILS)
    )
    notifier = RecordingNotifier()

    result = await reconciliation_service.send_reminders(db_session, notifier)

    assert result == {"sent": 1, "failed": 0, "total": 1}
    reminder = notifier.of_type("reminder")[0]
    assert reminder["email"] == "c@school.edu"
    assert reminder["team_members"] == []
    assert reminder["prize_amount"] == Decimal("3000")


@pytest.mark.asyncio
async def test_failed_reminders_are_counted(db_session, two_team_event):
    result = await reconciliation_service.send_reminders(db_session, RecordingNotifier(result=False))

    assert result == {"sent": 0, "failed": 2, "total": 2}


@pytest.mark.asyncio
async def test_pending_leaders_include_member_emails(db_session, two_team_event):
    teams = await event_service.load_pending_teams(db_session)

    reminders = reconciliation_service.find_pending_leaders(teams)

    assert [r.leader_email for r in reminders] == ["a@school.edu", "c@school.edu"]
    assert reminders[0].member_emails == ["b@school.edu"]
    assert reminders[0].event_name == "Robo Race"


# ==========================================
# SMTP notifier
# ==========================================

def _settings(**overrides):
    settings = copy.copy(get_settings())
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


async def _logs(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(EmailLog).order_by(EmailLog.id))).scalars().all()


@pytest.mark.parametrize("amount, text", [
    (Decimal("150000"), "1,50,000"),
    (Decimal("5000"), "5,000"),
    (Decimal("999"), "999"),
    (Decimal("12345678.50"), "1,23,45,678.50"),
])
def test_format_amount(amount, text):
    assert format_amount(amount) == text


@pytest.mark.asyncio
async def test_disabled_delivery_is_logged_as_failed(session_factory):
    service = EmailService(session_factory, _settings(email_enabled=False))

    ok = await service.send_reminder("a@school.edu", "Asha", "Robo Race", Decimal("3000"), [])

    assert ok is False
    logs = await _logs(session_factory)
    assert len(logs) == 1
    assert logs[0].status == EmailStatus.FAILED
    assert logs[0].email_type == EmailType.REMINDER


@pytest.mark.asyncio
async def test_delivered_email_is_logged(session_factory, monkeypatch):
    sent = []
    monkeypatch.setattr(EmailService, "_deliver", lambda self, to, subject, html: sent.append((to, subject, html)))
    service = EmailService(session_factory, _settings(email_enabled=True))

    ok = await service.send_team_leader_notification(
        "a@school.edu", "Asha", "Robo Race", "Robotics Club", Decimal("150000"), ["b@school.edu"], None
    )

    assert ok is True
    to, subject, html = sent[0]
    assert to == "a@school.edu"
    assert "Robo Race" in subject
    assert "1,50,000" in html
    assert "b@school.edu" in html
    assert (await _logs(session_factory))[0].status == EmailStatus.SENT


@pytest.mark.asyncio
async def test_smtp_failure_returns_false(session_factory, monkeypatch):
    def refuse(self, to, subject, html):
        raise smtplib.SMTPRecipientsRefused({to: (550, b"no such user")})

    monkeypatch.setattr(EmailService, "_deliver", refuse)
    service = EmailService(session_factory, _settings(email_enabled=True))

    ok = await service.send_initial_credentials("new@school.edu", "s3cret-pass", "student")

    assert ok is False
    log = (await _logs(session_factory))[0]
    assert log.status == EmailStatus.FAILED
    assert log.email_type == EmailType.INITIAL_CREDENTIALS


class _UnwritableSession:
    """Session stand-in whose commit fails as if the database file were gone."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def add(self, instance):
        pass

    async def commit(self):
        raise OperationalError("INSERT INTO email_logs", {}, Exception("unable to open database file"))


@pytest.mark.asyncio
async def test_log_write_failure_keeps_delivery_outcome(monkeypatch, caplog):
    monkeypatch.setattr(EmailService, "_deliver", lambda self, to, subject, html: None)
    service = EmailService(_UnwritableSession, _settings(email_enabled=True))

    ok = await service.send_reminder("a@school.edu", "Asha", "Robo Race", Decimal("3000"), [])

    assert ok is True
    assert "Could not record sent reminder email to a@school.edu" in caplog.text


@pytest.mark.asyncio
async def test_log_write_failure_on_disabled_delivery_returns_false():
    service = EmailService(_UnwritableSession, _settings(email_enabled=False))

    ok = await service.send_reminder("a@school.edu", "Asha", "Robo Race", Decimal("3000"), [])

    assert ok is False


@pytest.mark.asyncio
async def test_reminder_run_completes_when_logging_fails(db_session, two_team_event, monkeypatch):
    monkeypatch.setattr(EmailService, "_deliver", lambda self, to, subject, html: None)
    notifier = EmailService(_UnwritableSession, _settings(email_enabled=True))

    result = await reconciliation_service.send_reminders(db_session, notifier)

    assert result == {"sent": 2, "failed": 0, "total": 2}
