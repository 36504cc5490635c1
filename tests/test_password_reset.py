"""
Tests for the password reset flow.

  POST /auth/forgot-password   request a reset link
  GET  /auth/reset-password    check a reset token
  POST /auth/reset-password    set the new password

These tests verify:
  - The request endpoint answers identically for known and unknown emails
  - Only ACTIVE users get a reset email; a new request replaces the old token
  - The check endpoint reports {valid: false, error} for bad tokens and
    deletes expired ones
  - Completing the reset changes the hash, consumes the token, signs the
    user out everywhere and writes PASSWORD_RESET_COMPLETED
  - The new password must differ from the current one
"""

from sqlalchemy import select, update

from egp_api.models.audit_log import AuditAction, AuditLogEntry
from egp_api.models.user import User, UserStatus
from egp_api.models.user_session import UserSession
from egp_api.models.verification_token import VerificationToken
from egp_api.services.notification_service import PASSWORD_RESET_SUBJECT
from helpers import auth_header, expire_tokens, sign_in

NEW_PASSWORD = "BrandNewPass9!"
GENERIC_MESSAGE = "If an account with that email exists, we have sent a password reset link."


async def request_reset(client, outbox, email: str) -> str:
    response = await client.post("/auth/forgot-password", json={"email": email})
    assert response.status_code == 200
    return outbox.reset_token(email)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class TestForgotPassword:
    """POST /auth/forgot-password."""

    async def test_known_email_gets_reset_link(self, client, outbox, verified_supplier):
        response = await client.post(
            "/auth/forgot-password", json={"email": verified_supplier["email"]}
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": GENERIC_MESSAGE}

        token = outbox.reset_token(verified_supplier["email"])
        message = outbox.sent_to(verified_supplier["email"], PASSWORD_RESET_SUBJECT)[0]
        assert f"/auth/reset-password?token={token}" in message.text_body

    async def test_unknown_email_gets_same_response(self, client, outbox):
        """The response does not reveal whether the account exists."""
        response = await client.post(
            "/auth/forgot-password", json={"email": "nobody@example.com"}
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": GENERIC_MESSAGE}
        assert outbox.messages == []

    async def test_inactive_user_gets_no_email(
        self, client, outbox, verified_supplier, session_factory
    ):
        async with session_factory() as session:
            await session.execute(update(User).values(status=UserStatus.INACTIVE))
            await session.commit()

        response = await client.post(
            "/auth/forgot-password", json={"email": verified_supplier["email"]}
        )
        assert response.json()["message"] == GENERIC_MESSAGE
        assert outbox.sent_to(verified_supplier["email"], PASSWORD_RESET_SUBJECT) == []

    async def test_token_stored_with_reset_prefix(
        self, client, outbox, verified_supplier, session_factory
    ):
        """Reset tokens are stored as "reset_<token>" and expire in about an hour."""
        token = await request_reset(client, outbox, verified_supplier["email"])

        async with session_factory() as session:
            stored = (await session.execute(select(VerificationToken))).scalar_one()
        assert stored.token == f"reset_{token}"
        assert stored.identifier == verified_supplier["email"]

    async def test_new_request_replaces_old_token(
        self, client, outbox, verified_supplier, session_factory
    ):
        first = await request_reset(client, outbox, verified_supplier["email"])
        second = await request_reset(client, outbox, verified_supplier["email"])
        assert first != second

        async with session_factory() as session:
            stored = (await session.execute(select(VerificationToken))).scalars().all()
        assert [t.token for t in stored] == [f"reset_{second}"]

        check = await client.get("/auth/reset-password", params={"token": first})
        assert check.status_code == 400

    async def test_request_writes_audit_entry(
        self, client, outbox, verified_supplier, session_factory
    ):
        await request_reset(client, outbox, verified_supplier["email"])

        async with session_factory() as session:
            entries = (
                await session.execute(
                    select(AuditLogEntry).where(
                        AuditLogEntry.action == AuditAction.PASSWORD_RESET_REQUESTED
                    )
                )
            ).scalars().all()
        assert len(entries) == 1

    async def test_email_outage_is_hidden(self, client, outbox, verified_supplier):
        """A delivery failure still produces the generic success response."""
        outbox.fail = True
        response = await client.post(
            "/auth/forgot-password", json={"email": verified_supplier["email"]}
        )
        assert response.status_code == 200
        assert response.json()["message"] == GENERIC_MESSAGE

    async def test_invalid_email_format(self, client):
        response = await client.post("/auth/forgot-password", json={"email": "not-an-email"})
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------

class TestCheckResetToken:
    """GET /auth/reset-password?token=..."""

    async def test_valid_token(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])

        response = await client.get("/auth/reset-password", params={"token": token})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["user"] == {"email": verified_supplier["email"], "fullName": "Kila Morea"}
        assert "expiresAt" in data

    async def test_check_does_not_consume(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])

        await client.get("/auth/reset-password", params={"token": token})
        again = await client.get("/auth/reset-password", params={"token": token})
        assert again.status_code == 200

    async def test_missing_token(self, client):
        response = await client.get("/auth/reset-password")
        assert response.status_code == 400
        assert response.json()["valid"] is False

    async def test_unknown_token(self, client):
        response = await client.get("/auth/reset-password", params={"token": "b" * 64})
        assert response.status_code == 400
        assert response.json() == {"valid": False, "error": "Invalid reset token"}

    async def test_verification_token_is_not_a_reset_token(self, client, registered_supplier):
        response = await client.get(
            "/auth/reset-password", params={"token": registered_supplier["token"]}
        )
        assert response.status_code == 400
        assert response.json()["valid"] is False

    async def test_expired_token_deleted(
        self, client, outbox, verified_supplier, session_factory
    ):
        token = await request_reset(client, outbox, verified_supplier["email"])
        await expire_tokens(session_factory, verified_supplier["email"])

        response = await client.get("/auth/reset-password", params={"token": token})
        assert response.status_code == 400
        assert response.json() == {"valid": False, "error": "Reset token has expired"}

        async with session_factory() as session:
            assert (await session.execute(select(VerificationToken))).scalars().all() == []

    async def test_inactive_user(self, client, outbox, verified_supplier, session_factory):
        token = await request_reset(client, outbox, verified_supplier["email"])
        async with session_factory() as session:
            await session.execute(update(User).values(status=UserStatus.INACTIVE))
            await session.commit()

        response = await client.get("/auth/reset-password", params={"token": token})
        assert response.status_code == 400
        assert response.json()["error"] == "User account not found or inactive"


# ---------------------------------------------------------------------------
# Complete
# ---------------------------------------------------------------------------

class TestCompletePasswordReset:
    """POST /auth/reset-password."""

    async def test_reset_success(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])

        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"].startswith("Password reset successfully")
        assert data["user"]["email"] == verified_supplier["email"]

    async def test_new_password_works_old_does_not(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])
        await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )

        old = await client.post(
            "/auth/login",
            json={"email": verified_supplier["email"], "password": verified_supplier["password"]},
        )
        assert old.status_code == 401
        await sign_in(client, verified_supplier["email"], NEW_PASSWORD)

    async def test_token_is_single_use(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])
        body = {"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD}

        assert (await client.post("/auth/reset-password", json=body)).status_code == 200
        again = await client.post(
            "/auth/reset-password",
            json={**body, "password": "AnotherPass77!", "confirmPassword": "AnotherPass77!"},
        )
        assert again.status_code == 400
        assert again.json()["error_type"] == "invalid_token"

    async def test_reset_revokes_all_sessions(self, client, outbox, verified_supplier):
        """Every session opened before the reset is signed out."""
        first = await sign_in(client, verified_supplier["email"], verified_supplier["password"])
        second = await sign_in(client, verified_supplier["email"], verified_supplier["password"])

        token = await request_reset(client, outbox, verified_supplier["email"])
        await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )

        for jwt in (first, second):
            response = await client.get("/auth/session", headers=auth_header(jwt))
            assert response.status_code == 401

    async def test_reset_writes_audit_entry(
        self, client, outbox, verified_supplier, session_factory
    ):
        await sign_in(client, verified_supplier["email"], verified_supplier["password"])
        token = await request_reset(client, outbox, verified_supplier["email"])
        await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )

        async with session_factory() as session:
            entry = (
                await session.execute(
                    select(AuditLogEntry).where(
                        AuditLogEntry.action == AuditAction.PASSWORD_RESET_COMPLETED
                    )
                )
            ).scalar_one()
            sessions = (await session.execute(select(UserSession))).scalars().all()
        assert entry.payload["resetMethod"] == "email_token"
        assert entry.payload["sessionsRevoked"] == 1
        assert sessions == []

    async def test_same_password_rejected(self, client, outbox, verified_supplier):
        """Reusing the current password is rejected and the token stays usable."""
        token = await request_reset(client, outbox, verified_supplier["email"])
        current = verified_supplier["password"]

        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "password": current, "confirmPassword": current},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == (
            "New password must be different from your current password"
        )

        check = await client.get("/auth/reset-password", params={"token": token})
        assert check.status_code == 200

    async def test_expired_token(self, client, outbox, verified_supplier, session_factory):
        token = await request_reset(client, outbox, verified_supplier["email"])
        await expire_tokens(session_factory, verified_supplier["email"])

        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "expired_token"

        # The original password still works
        await sign_in(client, verified_supplier["email"], verified_supplier["password"])

    async def test_password_mismatch(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])
        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "password": NEW_PASSWORD, "confirmPassword": "Mismatch123!"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"

    async def test_short_password(self, client, outbox, verified_supplier):
        token = await request_reset(client, outbox, verified_supplier["email"])
        response = await client.post(
            "/auth/reset-password",
            json={"token": token, "password": "short", "confirmPassword": "short"},
        )
        assert response.status_code == 400

    async def test_malformed_token(self, client):
        response = await client.post(
            "/auth/reset-password",
            json={"token": "not-a-token", "password": NEW_PASSWORD, "confirmPassword": NEW_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid token format"
