"""
prize_portal/services/email_service.py
Outbound notifications over SMTP.

Every attempt, delivered or not, is appended to email_logs in its own
session so a notification failure can never roll back the caller's work.
SMTP is blocking, so delivery runs in a thread pool.
"""
import html as html_lib
import logging
import smtplib
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from prize_portal.config import Settings, get_settings
from prize_portal.orm.email_log import EmailLog, EmailStatus, EmailType
from prize_portal.utils.executor import run_blocking

logger = logging.getLogger(__name__)

PORTAL_NAME = "SAC Treasury Portal"
SIGNATURE = "Best regards,<br><strong>SAC Treasury Team</strong>"


class Notifier(Protocol):
    """What the core needs from a notification channel."""

    async def send_team_leader_notification(
        self, email: str, name: Optional[str], event_name: str, entity_name: str,
        prize_amount: Decimal, team_members: List[str], event_id: Optional[int] = None
    ) -> bool: ...

    async def send_team_member_notification(
        self, email: str, name: Optional[str], event_name: str, entity_name: str,
        prize_amount: Decimal, team_leader_email: str, event_id: Optional[int] = None
    ) -> bool: ...

    async def send_reminder(
        self, email: str, name: Optional[str], event_name: str,
        prize_amount: Decimal, team_members: List[str], event_id: Optional[int] = None
    ) -> bool: ...

    async def send_initial_credentials(
        self, email: str, password: str, user_type: str, name: Optional[str] = None
    ) -> bool: ...


def format_amount(amount) -> str:
    """Indian-grouped rupee amount: 150000 -> 1,50,000"""
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    whole, _, fraction = f"{value:f}".partition(".")
    negative = whole.startswith("-")
    whole = whole.lstrip("-")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    text = whole if fraction == "00" else f"{whole}.{fraction}"
    return f"-{text}" if negative else text


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><style>"
        "body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }"
        ".container { max-width: 600px; margin: 0 auto; padding: 20px; }"
        ".content { background: #f9f9f9; padding: 30px; border-radius: 10px; }"
        ".prize { font-size: 24px; font-weight: bold; color: #667eea; margin: 20px 0; }"
        ".notice { background: #fff3cd; border-left: 4px solid #ffc107; padding: 15px; margin: 20px 0; }"
        "</style></head><body><div class=\"container\">"
        f"<h1>{title}</h1><div class=\"content\">{body}<p>{SIGNATURE}</p></div>"
        "</div></body></html>"
    )


def _member_list(emails: List[str]) -> str:
    items = "".join(f"<li>{html_lib.escape(e)}</li>" for e in emails)
    return f"<ul>{items}</ul>" if items else "<p>(no other members)</p>"


class EmailService:
    """
    SMTP notifier with append-only logging.

    Args:
        session_factory: async_sessionmaker used for email_logs writes
        settings: SMTP settings; defaults to process settings
    """

    def __init__(self, session_factory, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    @property
    def login_url(self) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/login"

    def _deliver(self, recipient: str, subject: str, html: str) -> None:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.settings.email_from
        message["To"] = recipient
        message.attach(MIMEText(html, "html", "utf-8"))

        if self.settings.email_secure:
            server = smtplib.SMTP_SSL(self.settings.email_host, self.settings.email_port, timeout=30)
        else:
            server = smtplib.SMTP(self.settings.email_host, self.settings.email_port, timeout=30)

        with server:
            if not self.settings.email_secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if self.settings.email_user:
                server.login(self.settings.email_user, self.settings.email_password)
            server.sendmail(self.settings.email_from, [recipient], message.as_string())

    async def _log(
        self,
        recipient: str,
        email_type: EmailType,
        event_id: Optional[int],
        status: EmailStatus,
        error_message: Optional[str] = None
    ) -> None:
        """Append to email_logs. A failed write is logged; the send outcome still stands."""
        try:
            async with self.session_factory() as session:
                session.add(EmailLog(
                    recipient_email=recipient,
                    email_type=email_type,
                    event_id=event_id,
                    status=status,
                    error_message=error_message,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                f"Could not record {status.value} {email_type.value} email to {recipient}: {type(e).__name__}"
            )

    async def send(
        self,
        recipient: str,
        email_type: EmailType,
        subject: str,
        html: str,
        event_id: Optional[int] = None
    ) -> bool:
        """Deliver one email and log the outcome. Returns False on any delivery failure."""
        if not self.settings.email_enabled:
            logger.info(f"Email delivery disabled; not sending {email_type.value} to {recipient}")
            await self._log(recipient, email_type, event_id, EmailStatus.FAILED, "Email delivery disabled")
            return False

        try:
            await run_blocking(self._deliver, recipient, subject, html)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email send error ({email_type.value} to {recipient}): {type(e).__name__}")
            await self._log(recipient, email_type, event_id, EmailStatus.FAILED, str(e))
            return False

        await self._log(recipient, email_type, event_id, EmailStatus.SENT)
        logger.info(f"Sent {email_type.value} to {recipient}")
        return True

    async def send_team_leader_notification(
        self, email, name, event_name, entity_name, prize_amount, team_members, event_id=None
    ) -> bool:
        body = (
            f"<p>Dear {html_lib.escape(name or 'Student')},</p>"
            f"<p>Congratulations! Your team has won at <strong>{html_lib.escape(event_name)}</strong> "
            f"organized by <strong>{html_lib.escape(entity_name)}</strong>!</p>"
            f"<div class=\"prize\">Prize Amount: &#8377;{format_amount(prize_amount)}</div>"
            "<div class=\"notice\"><strong>YOU HAVE BEEN DESIGNATED AS THE TEAM LEADER</strong>"
            "<p>As the team leader, you are responsible for submitting the bank account details "
            f"for your team's prize money. Please login to the {PORTAL_NAME} and complete the "
            "bank details form at your earliest convenience.</p></div>"
            f"<p><strong>Your Team Members:</strong></p>{_member_list(team_members)}"
            f"<p><a href=\"{self.login_url}\">Login to Portal</a></p>"
        )
        return await self.send(
            email,
            EmailType.TEAM_LEADER_NOTIFICATION,
            f"Congratulations Team Leader! Action Required - {event_name}",
            _page("Congratulations Team Leader!", body),
            event_id,
        )

    async def send_team_member_notification(
        self, email, name, event_name, entity_name, prize_amount, team_leader_email, event_id=None
    ) -> bool:
        body = (
            f"<p>Dear {html_lib.escape(name or 'Student')},</p>"
            f"<p>Congratulations! Your team has won at <strong>{html_lib.escape(event_name)}</strong> "
            f"organized by <strong>{html_lib.escape(entity_name)}</strong>!</p>"
            f"<div class=\"prize\">Prize Amount: &#8377;{format_amount(prize_amount)}</div>"
            f"<p>Your Team Leader: <strong>{html_lib.escape(team_leader_email)}</strong></p>"
            "<p>The team leader will submit the bank account details for the prize money. "
            f"You can track the status by logging into the {PORTAL_NAME}.</p>"
            f"<p><a href=\"{self.login_url}\">Login to Portal</a></p>"
        )
        return await self.send(
            email,
            EmailType.TEAM_MEMBER_NOTIFICATION,
            f"Congratulations! You've won at {event_name}",
            _page("Congratulations!", body),
            event_id,
        )

    async def send_reminder(
        self, email, name, event_name, prize_amount, team_members, event_id=None
    ) -> bool:
        body = (
            f"<p>Dear Team Leader {html_lib.escape(name or '')},</p>"
            "<div class=\"notice\"><strong>ACTION REQUIRED</strong>"
            "<p>This is a reminder to submit your team's bank details for the following event:</p></div>"
            f"<p><strong>Event:</strong> {html_lib.escape(event_name)}<br>"
            f"<strong>Prize Amount:</strong> &#8377;{format_amount(prize_amount)}</p>"
            f"<p><strong>Your Team Members:</strong></p>{_member_list(team_members)}"
            f"<p><a href=\"{self.login_url}\">Login &amp; Submit Details</a></p>"
        )
        return await self.send(
            email,
            EmailType.REMINDER,
            f"REMINDER: Submit Bank Details - {event_name}",
            _page("REMINDER: Submit Bank Details", body),
            event_id,
        )

    async def send_initial_credentials(self, email, password, user_type, name=None) -> bool:
        labels = {"entity": "Entity/Club", "treasury": "Treasury"}
        label = labels.get(user_type, "Student")
        body = (
            f"<p>Dear {html_lib.escape(name or label)},</p>"
            f"<p>Your account has been created for the {PORTAL_NAME}. "
            "Use the following credentials to login:</p>"
            f"<p><strong>Email:</strong> {html_lib.escape(email)}<br>"
            f"<strong>Password:</strong> {html_lib.escape(password)}<br>"
            f"<strong>Account Type:</strong> {label}</p>"
            "<div class=\"notice\">Please change your password after your first login. "
            "Do not share your credentials with anyone.</div>"
            f"<p><a href=\"{self.login_url}\">Login Now</a></p>"
        )
        return await self.send(
            email,
            EmailType.INITIAL_CREDENTIALS,
            f"{PORTAL_NAME} - Your Account Credentials",
            _page(f"Welcome to {PORTAL_NAME}", body),
            None,
        )


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """FastAPI dependency: process-wide notifier bound to the app's session factory."""
    global _email_service
    if _email_service is None:
        from prize_portal.database import AsyncSessionLocal
        _email_service = EmailService(AsyncSessionLocal)
    return _email_service
