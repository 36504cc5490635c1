"""Shared payload builders and helpers for the test suite."""

import re
from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import update

from egp_api.models.verification_token import VerificationToken
from egp_api.services.notification_service import (
    EmailMessage,
    NotificationDispatcher,
    PASSWORD_RESET_SUBJECT,
    VERIFICATION_SUBJECT,
)
from egp_api.services.token_service import utc_now

TOKEN_IN_LINK = re.compile(r"token=([a-f0-9]{64})")

SUPPLIER_PASSWORD = "SupplierPass1!"
BUYER_PASSWORD = "BuyerPass123!"


def supplier_payload(**overrides) -> dict:
    payload = {
        "role": "SUPPLIER_USER",
        "fullName": "Kila Morea",
        "email": "kila@morea-holdings.com.pg",
        "phone": "+675 7000 1234",
        "password": SUPPLIER_PASSWORD,
        "confirmPassword": SUPPLIER_PASSWORD,
        "legalName": "Morea Holdings Ltd",
        "tradingName": "Morea Construction",
        "tin": "501234567",
        "address": "Section 12, Lot 4, Lae",
        "categories": ["construction", "civil works"],
    }
    payload.update(overrides)
    return payload


def buyer_payload(**overrides) -> dict:
    payload = {
        "role": "AGENCY_BUYER",
        "fullName": "Grace Kaupa",
        "email": "grace.kaupa@health.gov.pg",
        "password": BUYER_PASSWORD,
        "confirmPassword": BUYER_PASSWORD,
        "agencyCode": "DOH",
        "agencyName": "Department of Health",
        "agencyType": "MINISTRY",
        "position": "Senior Procurement Officer",
    }
    payload.update(overrides)
    return payload


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def sign_in(client: AsyncClient, email: str, password: str) -> str:
    """Log in and return the session JWT."""
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, f"Login failed: {response.text}"
    return response.json()["token"]


async def expire_tokens(session_factory, email: str) -> None:
    """Move every stored token for `email` one minute into the past."""
    async with session_factory() as session:
        await session.execute(
            update(VerificationToken)
            .where(VerificationToken.identifier == email)
            .values(expires_at=utc_now() - timedelta(minutes=1))
        )
        await session.commit()


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that keeps messages in memory. Set `fail` to simulate an outage."""

    def __init__(self):
        super().__init__()
        self.messages: list[EmailMessage] = []
        self.fail = False

    def _deliver(self, message: EmailMessage) -> None:
        if self.fail:
            raise ConnectionRefusedError("SMTP server unavailable")
        self.messages.append(message)

    def sent_to(self, email: str, subject: str | None = None) -> list[EmailMessage]:
        return [
            m for m in self.messages
            if m.to == email and (subject is None or m.subject == subject)
        ]

    def latest_token(self, email: str, subject: str) -> str:
        """The token in the most recent matching email's link."""
        messages = self.sent_to(email, subject)
        assert messages, f"No '{subject}' email sent to {email}"
        match = TOKEN_IN_LINK.search(messages[-1].text_body)
        assert match, "Email does not contain a token link"
        return match.group(1)

    def verification_token(self, email: str) -> str:
        return self.latest_token(email, VERIFICATION_SUBJECT)

    def reset_token(self, email: str) -> str:
        return self.latest_token(email, PASSWORD_RESET_SUBJECT)
