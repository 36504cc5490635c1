"""
Notification service: transactional email for the identity lifecycle.

Three messages are sent:
  - verification: link to /auth/verify-email?token=... (valid 24 hours)
  - welcome: sent once the address is verified, with role-specific next steps
  - password reset: link to /auth/reset-password?token=... (valid 1 hour)

Contract:
  The send_* methods never raise. They return a NotificationResult, and the
  caller decides what a failure means. Registration, verification and reset
  treat it as informational only (the account change is already committed);
  resending a verification email treats it as the operation failing.

Backends (settings.MAIL_BACKEND):
  - "console": the message is written to the log instead of being delivered.
    Used in development so verification links can be copied from the log.
  - "smtp": delivered with smtplib (implicit TLS or STARTTLS). smtplib is
    blocking, so delivery runs in a worker thread and never holds the event
    loop (or any database transaction, which is committed before sending).
"""

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from loguru import logger

from egp_api.config import Settings, settings as default_settings
from egp_api.models.user import UserRole


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text_body: str
    html_body: str


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

VERIFICATION_SUBJECT = "Verify Your PNG e-GP Account"

VERIFICATION_TEXT = """Hello {full_name},

Welcome to PNG e-GP! Please open the link below to verify your email address
and activate your account:

{link}

This verification link will expire in {hours} hours. If you didn't create an
account with PNG e-GP, please ignore this email.

-- National Procurement Commission (PNG)
"""

WELCOME_SUBJECT = "Welcome to PNG e-Government Procurement"

WELCOME_TEXT = """Hello {full_name},

Your PNG e-GP account has been successfully verified! You can now access all
features of the platform.

Next steps:
{steps}

Access your dashboard: {link}

-- National Procurement Commission (PNG)
"""

PASSWORD_RESET_SUBJECT = "Reset Your PNG e-GP Password"

PASSWORD_RESET_TEXT = """Hello {full_name},

We received a request to reset your password. Open the link below to set a
new password:

{link}

This reset link will expire in {hours} hour(s). If you didn't request a
password reset, please ignore this email.

-- National Procurement Commission (PNG)
"""

_HTML_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; background-color: #f9fafb; margin: 0; padding: 20px;">
    <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff;">
        <div style="background: #dc2626; color: #ffffff; padding: 20px; text-align: center;">
            <h1 style="margin: 0;">{heading}</h1>
            <p style="margin: 5px 0 0 0;">National Procurement Commission</p>
        </div>
        <div style="padding: 30px;">
            <p style="color: #4b5563; line-height: 1.6;">Hello {full_name},</p>
            <p style="color: #4b5563; line-height: 1.6;">{intro}</p>
            {extra}
            <p style="margin: 30px 0; text-align: center;">
                <a href="{link}" style="background: #dc2626; color: #ffffff; padding: 12px 30px; text-decoration: none; border-radius: 6px; font-weight: bold;">{button}</a>
            </p>
            <p style="color: #6b7280; font-size: 14px;">{footer}</p>
        </div>
    </div>
</body>
</html>
"""

SUPPLIER_STEPS = [
    "Complete your supplier profile",
    "Upload required compliance documents",
    "Browse available tenders",
    "Submit your first bid",
]

BUYER_STEPS = [
    "Set up your procurement plan",
    "Create your first tender",
    "Manage bid evaluations",
    "Track contract performance",
]


def next_steps_for(role: UserRole) -> list[str]:
    if role == UserRole.SUPPLIER_USER:
        return SUPPLIER_STEPS
    return BUYER_STEPS


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class NotificationDispatcher:
    """Composes lifecycle emails and hands them to the configured backend."""

    def __init__(self, settings: Settings = default_settings):
        self._settings = settings
        self._base_url = settings.APP_URL.rstrip("/")

    # -- Public API ---------------------------------------------------------

    async def send_verification_email(
        self, email: str, full_name: str, token: str
    ) -> NotificationResult:
        link = f"{self._base_url}/auth/verify-email?token={token}"
        hours = self._settings.VERIFICATION_TOKEN_EXPIRE_HOURS
        message = EmailMessage(
            to=email,
            subject=VERIFICATION_SUBJECT,
            text_body=VERIFICATION_TEXT.format(full_name=full_name, link=link, hours=hours),
            html_body=_HTML_LAYOUT.format(
                heading="Verify Your Account",
                full_name=full_name,
                intro="Welcome to PNG e-GP! Please click the button below to verify "
                      "your email address and activate your account.",
                extra="",
                link=link,
                button="Verify Email Address",
                footer=f"This verification link will expire in {hours} hours. If you didn't "
                       "create an account with PNG e-GP, please ignore this email.",
            ),
        )
        return await self._send(message, kind="verification")

    async def send_welcome_email(
        self, email: str, full_name: str, role: UserRole
    ) -> NotificationResult:
        link = f"{self._base_url}/dashboard"
        steps = next_steps_for(role)
        message = EmailMessage(
            to=email,
            subject=WELCOME_SUBJECT,
            text_body=WELCOME_TEXT.format(
                full_name=full_name,
                steps="\n".join(f"  - {step}" for step in steps),
                link=link,
            ),
            html_body=_HTML_LAYOUT.format(
                heading="Welcome to PNG e-GP!",
                full_name=full_name,
                intro="Your PNG e-GP account has been successfully verified! "
                      "You can now access all features of the platform.",
                extra="<ul>" + "".join(f"<li>{step}</li>" for step in steps) + "</ul>",
                link=link,
                button="Access Dashboard",
                footer="",
            ),
        )
        return await self._send(message, kind="welcome")

    async def send_password_reset_email(
        self, email: str, full_name: str, token: str
    ) -> NotificationResult:
        link = f"{self._base_url}/auth/reset-password?token={token}"
        hours = self._settings.RESET_TOKEN_EXPIRE_HOURS
        message = EmailMessage(
            to=email,
            subject=PASSWORD_RESET_SUBJECT,
            text_body=PASSWORD_RESET_TEXT.format(full_name=full_name, link=link, hours=hours),
            html_body=_HTML_LAYOUT.format(
                heading="Password Reset Request",
                full_name=full_name,
                intro="We received a request to reset your password. "
                      "Click the button below to set a new password.",
                extra="",
                link=link,
                button="Reset Password",
                footer=f"This reset link will expire in {hours} hour(s). If you didn't "
                       "request a password reset, please ignore this email.",
            ),
        )
        return await self._send(message, kind="password reset")

    # -- Delivery -----------------------------------------------------------

    async def _send(self, message: EmailMessage, kind: str) -> NotificationResult:
        try:
            await asyncio.to_thread(self._deliver, message)
        except Exception as exc:
            logger.error(f"Failed to send {kind} email to {message.to}: {exc}")
            return NotificationResult(success=False, error=str(exc) or type(exc).__name__)
        logger.info(f"{kind.capitalize()} email sent to {message.to}")
        return NotificationResult(success=True)

    def _deliver(self, message: EmailMessage) -> None:
        """Hand one message to the backend. Blocking; raises on failure."""
        backend = self._settings.MAIL_BACKEND.lower()
        if backend == "console":
            logger.info(
                f"[console mail] To: {message.to} | Subject: {message.subject}\n{message.text_body}"
            )
            return
        if backend == "smtp":
            self._deliver_smtp(message)
            return
        raise ValueError(f"Unknown MAIL_BACKEND: {self._settings.MAIL_BACKEND}")

    def _deliver_smtp(self, message: EmailMessage) -> None:
        s = self._settings
        if not s.SMTP_HOST:
            raise RuntimeError("SMTP host not configured")

        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = f"{s.MAIL_FROM_NAME} <{s.MAIL_FROM}>"
        mime["To"] = message.to
        mime.attach(MIMEText(message.text_body, "plain"))
        mime.attach(MIMEText(message.html_body, "html"))

        if s.SMTP_USE_TLS:
            # Implicit TLS (port 465)
            with smtplib.SMTP_SSL(
                s.SMTP_HOST,
                s.SMTP_PORT,
                context=ssl.create_default_context(),
                timeout=s.SMTP_TIMEOUT_SECONDS,
            ) as server:
                if s.SMTP_USER:
                    server.login(s.SMTP_USER, s.SMTP_PASSWORD or "")
                server.send_message(mime)
        else:
            # STARTTLS (port 587) or plain
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SECONDS) as server:
                if s.SMTP_STARTTLS:
                    server.starttls(context=ssl.create_default_context())
                if s.SMTP_USER:
                    server.login(s.SMTP_USER, s.SMTP_PASSWORD or "")
                server.send_message(mime)


# Process-wide dispatcher; routes receive it through dependencies.get_notifier
dispatcher = NotificationDispatcher()
