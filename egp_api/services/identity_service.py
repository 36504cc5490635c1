"""
Identity lifecycle service: registration, email verification, sign-in and
password reset.

This module contains the lifecycle logic, separated from HTTP concerns.
The auth router calls these functions and translates the results into
HTTP responses, so every flow can be tested without a web server.

Registration flow:
  1. Hash the password with Argon2id
  2. Create User + Supplier (or join/create the Agency) in one transaction
  3. Issue a 24-hour verification token, write USER_REGISTERED
  4. Commit, then send the verification email (failure is only reported)

Verification flow:
  format -> lookup -> expiry (token deleted and committed, then error) ->
  user -> already-verified short-circuit -> mark verified + delete token +
  audit in one transaction -> welcome email after commit

Password reset flow:
  request: generic answer for every email; only an ACTIVE user gets a
           1-hour token and an email
  check:   same validation as verification, without consuming the token
  complete: new hash + token deletion + session revocation + audit in one
           transaction

Transactions:
  Functions here commit explicitly wherever an email must follow a durable
  write. Anything they raise propagates to get_db(), which rolls back the
  uncommitted remainder. Database failures are logged and surfaced as
  InternalError so no driver detail reaches the client.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.config import settings
from egp_api.exceptions import (
    EmailDeliveryError,
    ExpiredTokenError,
    InternalError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserNotFoundError,
    ValidationError,
)
from egp_api.models.agency import Agency
from egp_api.models.audit_log import AuditAction
from egp_api.models.supplier import KycStatus, Supplier
from egp_api.models.user import User, UserRole
from egp_api.models.verification_token import VerificationToken
from egp_api.request_info import ClientInfo, RequestContext
from egp_api.schemas.auth import AgencyRegistrationRequest, SupplierRegistrationRequest
from egp_api.security import create_access_token, dummy_verify, hash_password, verify_password
from egp_api.services import audit_service, credential_store
from egp_api.services.notification_service import NotificationDispatcher
from egp_api.services.token_service import TokenPurpose, is_expired, is_valid_format, utc_now

REGISTRATION_MESSAGE = "Registration successful. Please check your email to verify your account."
VERIFIED_MESSAGE = "Email verified successfully! Welcome to PNG e-GP."
ALREADY_VERIFIED_MESSAGE = "Email already verified"
RESEND_MESSAGE = "Verification email sent successfully"
RESET_REQUEST_MESSAGE = "If an account with that email exists, we have sent a password reset link."
RESET_COMPLETE_MESSAGE = "Password reset successfully. Please sign in with your new password."


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class RegistrationResult:
    user: User
    email_sent: bool
    agency: Agency | None = None
    supplier: Supplier | None = None


@dataclass
class VerificationResult:
    user: User
    already_verified: bool
    welcome_email_sent: bool = False
    agency: Agency | None = None
    supplier: Supplier | None = None


@dataclass
class SessionIdentity:
    """What a signed-in session knows about its user."""
    user_id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    session_id: uuid.UUID
    agency_id: uuid.UUID | None = None
    supplier_id: uuid.UUID | None = None


@dataclass
class SignInResult:
    token: str
    identity: SessionIdentity


@dataclass
class ResetTokenStatus:
    email: str
    full_name: str
    expires_at: datetime


@dataclass
class ResetUser:
    email: str
    full_name: str


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

async def register(
    db: AsyncSession,
    notifier: NotificationDispatcher,
    client: ClientInfo,
    request: SupplierRegistrationRequest | AgencyRegistrationRequest,
) -> RegistrationResult:
    """
    Register a supplier or agency buyer.

    The user, their linked organisation, the verification token and the
    USER_REGISTERED audit entry are committed together. If any step fails,
    none of them persist.

    Raises:
        DuplicateEmailError: If the email is already registered.
        DuplicateSupplierError: If (legal name, TIN) is already registered.
        InternalError: On any unexpected database failure.
    """
    role = UserRole(request.role)
    password_hash = hash_password(request.password)
    agency = None
    supplier = None

    try:
        user = await credential_store.create_user(
            db,
            email=request.email,
            password_hash=password_hash,
            full_name=request.full_name,
            role=role,
            phone=request.phone,
        )

        if isinstance(request, SupplierRegistrationRequest):
            supplier = await credential_store.create_supplier(
                db,
                owner_user_id=user.id,
                legal_name=request.legal_name,
                trading_name=request.trading_name,
                tin=request.tin,
                address=request.address,
                contact_email=user.email,
                contact_phone=request.phone,
                categories=request.categories,
            )
        else:
            agency = await credential_store.create_agency_if_absent(
                db,
                request.agency_code,
                name=request.agency_name,
                agency_type=request.agency_type,
                contact_email=user.email,
                contact_phone=request.phone,
            )
            user.position = request.position
            await credential_store.attach_user_to_agency(db, user, agency)

        issued = await credential_store.issue_token(db, TokenPurpose.VERIFICATION, user.email)

        await audit_service.record(
            db,
            action=AuditAction.USER_REGISTERED,
            actor_user_id=user.id,
            entity_id=user.id,
            client=client,
            role=role,
            email=user.email,
            registrationMethod="email",
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.exception(f"Registration failed for role {role.value}")
        raise InternalError("Registration failed. Please try again.") from exc

    logger.info(f"User registered: {user.id} ({role.value})")

    sent = await notifier.send_verification_email(user.email, user.full_name, issued.token)
    if not sent.success:
        logger.warning(f"Verification email not delivered for user {user.id}: {sent.error}")

    return RegistrationResult(user=user, email_sent=sent.success, agency=agency, supplier=supplier)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

async def verify_email(
    db: AsyncSession,
    notifier: NotificationDispatcher,
    client: ClientInfo,
    token: str,
) -> VerificationResult:
    """
    Consume a verification token and mark the user's email verified.

    Of two concurrent requests with the same token, only the one that both
    flips email_verified_at and deletes the token sends the welcome email.
    The other observes an already verified user.

    Raises:
        InvalidTokenError: Malformed or unknown token.
        ExpiredTokenError: Token past expiry (it is deleted first).
        UserNotFoundError: The token's user no longer exists.
    """
    record = await _load_live_token(
        db,
        TokenPurpose.VERIFICATION,
        token,
        unknown_message="Invalid or expired verification token",
        expired_message="Verification token has expired. Please request a new one.",
    )

    user = await credential_store.find_by_email(db, record.identifier)
    if user is None:
        raise UserNotFoundError()
    if not user.is_active:
        raise InvalidTokenError("Invalid or expired verification token")

    supplier = user.owned_supplier
    agency = user.agency

    if user.is_email_verified:
        return VerificationResult(user=user, already_verified=True, agency=agency, supplier=supplier)

    now = utc_now()
    try:
        if not await credential_store.mark_email_verified(db, user.id, now):
            # A concurrent request verified the user first; nothing was written
            return VerificationResult(
                user=user, already_verified=True, agency=agency, supplier=supplier
            )
        if not await credential_store.consume_token(db, TokenPurpose.VERIFICATION, token):
            raise InvalidTokenError("Invalid or expired verification token")

        if supplier is not None:
            await credential_store.set_supplier_kyc_status(db, supplier, KycStatus.PENDING)

        await audit_service.record(
            db,
            action=AuditAction.EMAIL_VERIFIED,
            actor_user_id=user.id,
            entity_id=user.id,
            client=client,
            email=user.email,
            verificationMethod="email_token",
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.exception(f"Email verification failed for user {user.id}")
        raise InternalError("Email verification failed. Please try again.") from exc

    logger.info(f"Email verified: {user.id}")

    sent = await notifier.send_welcome_email(user.email, user.full_name, user.role)
    if not sent.success:
        logger.warning(f"Welcome email not delivered for user {user.id}: {sent.error}")

    return VerificationResult(
        user=user,
        already_verified=False,
        welcome_email_sent=sent.success,
        agency=agency,
        supplier=supplier,
    )


async def resend_verification(
    db: AsyncSession,
    notifier: NotificationDispatcher,
    client: ClientInfo,
    email: str,
) -> None:
    """
    Replace the user's verification token and email the new one.

    Unlike registration, delivery is the whole point here: a failed send is
    reported as an error.

    Raises:
        UserNotFoundError: No user has this email.
        ValidationError: The email is already verified, or the account is
            inactive.
        EmailDeliveryError: The email could not be sent.
    """
    user = await credential_store.find_by_email(db, email)
    if user is None:
        raise UserNotFoundError()
    if user.is_email_verified:
        raise ValidationError("Email is already verified")
    if not user.is_active:
        # verify_email would refuse the token anyway
        raise ValidationError("Account is not active")

    issued = await credential_store.issue_token(db, TokenPurpose.VERIFICATION, user.email)
    await db.commit()

    sent = await notifier.send_verification_email(user.email, user.full_name, issued.token)
    if not sent.success:
        raise EmailDeliveryError("Failed to send verification email")

    await audit_service.record(
        db,
        action=AuditAction.VERIFICATION_EMAIL_RESENT,
        actor_user_id=user.id,
        entity_id=user.id,
        client=client,
        email=user.email,
    )
    logger.info(f"Verification email resent: {user.id}")


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

async def authenticate(
    db: AsyncSession,
    client: ClientInfo,
    email: str,
    password: str,
) -> SignInResult:
    """
    Check credentials and open a server-side session.

    Unknown email, missing hash, wrong password and inactive account all
    raise the same InvalidCredentialsError after the same amount of hashing
    work, so the response reveals nothing about which one it was.

    Email verification is not required to sign in.
    """
    user = await credential_store.find_by_email(db, email)

    if user is None:
        dummy_verify()
        raise InvalidCredentialsError()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()
    if not user.is_active:
        raise InvalidCredentialsError()

    supplier = user.owned_supplier
    now = utc_now()
    await credential_store.update_last_login(db, user.id, now)
    session = await credential_store.open_session(
        db,
        user.id,
        lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        ip=client.ip,
        user_agent=client.user_agent,
    )
    await audit_service.record(
        db,
        action=AuditAction.USER_SIGNED_IN,
        actor_user_id=user.id,
        entity_id=user.id,
        client=client,
        email=user.email,
        role=user.role,
        sessionId=session.id,
    )

    # "sub" identifies the user, "sid" the session row that must stay alive
    token = create_access_token(
        data={"sub": str(user.id), "sid": str(session.id), "role": user.role.value}
    )
    logger.info(f"User signed in: {user.id}")

    return SignInResult(
        token=token,
        identity=SessionIdentity(
            user_id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            session_id=session.id,
            agency_id=user.agency_id,
            supplier_id=supplier.id if supplier is not None else None,
        ),
    )


async def sign_out(db: AsyncSession, context: RequestContext) -> None:
    """Close the caller's current session. Other sessions stay signed in."""
    await credential_store.close_session(db, context.session_id)
    await audit_service.record(
        db,
        action=AuditAction.USER_SIGNED_OUT,
        actor_user_id=context.user_id,
        entity_id=context.user_id,
        client=context.client,
        sessionId=context.session_id,
    )
    logger.info(f"User signed out: {context.user_id}")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

async def request_password_reset(
    db: AsyncSession,
    notifier: NotificationDispatcher,
    client: ClientInfo,
    email: str,
) -> str:
    """
    Start a password reset.

    Returns the same message whether or not the account exists, so the
    endpoint cannot be used to discover registered emails. Email delivery
    failures are logged and otherwise ignored for the same reason.
    """
    user = await credential_store.find_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for an unknown or inactive account")
        return RESET_REQUEST_MESSAGE

    issued = await credential_store.issue_token(db, TokenPurpose.PASSWORD_RESET, user.email)
    await audit_service.record(
        db,
        action=AuditAction.PASSWORD_RESET_REQUESTED,
        actor_user_id=user.id,
        entity_id=user.id,
        client=client,
        email=user.email,
    )
    await db.commit()
    logger.info(f"Password reset requested: {user.id}")

    sent = await notifier.send_password_reset_email(user.email, user.full_name, issued.token)
    if not sent.success:
        logger.warning(f"Password reset email not delivered for user {user.id}: {sent.error}")

    return RESET_REQUEST_MESSAGE


async def check_reset_token(db: AsyncSession, token: str) -> ResetTokenStatus:
    """
    Tell the reset form whether a token is usable, without consuming it.

    Raises:
        InvalidTokenError: Malformed or unknown token, or its user is gone
            or inactive.
        ExpiredTokenError: Token past expiry (it is deleted first).
    """
    record = await _load_live_token(
        db,
        TokenPurpose.PASSWORD_RESET,
        token,
        unknown_message="Invalid reset token",
        expired_message="Reset token has expired",
    )
    user = await credential_store.find_by_email(db, record.identifier)
    if user is None or not user.is_active:
        raise InvalidTokenError("User account not found or inactive")

    return ResetTokenStatus(email=user.email, full_name=user.full_name, expires_at=record.expires_at)


async def complete_password_reset(
    db: AsyncSession,
    client: ClientInfo,
    token: str,
    password: str,
) -> ResetUser:
    """
    Set a new password with a reset token.

    The new hash, the token deletion, the revocation of every existing
    session and the PASSWORD_RESET_COMPLETED entry commit together.

    Raises:
        InvalidTokenError: Malformed, unknown or already used token.
        ExpiredTokenError: Token past expiry (it is deleted first).
        ValidationError: The user is missing or inactive, or the new
            password equals the current one.
    """
    record = await _load_live_token(
        db,
        TokenPurpose.PASSWORD_RESET,
        token,
        unknown_message="Invalid or expired reset token",
        expired_message="Reset token has expired. Please request a new one.",
    )
    user = await credential_store.find_by_email(db, record.identifier)
    if user is None or not user.is_active:
        raise ValidationError("User account not found or inactive")

    if verify_password(password, user.password_hash):
        raise ValidationError("New password must be different from your current password")

    new_hash = hash_password(password)
    try:
        if not await credential_store.consume_token(db, TokenPurpose.PASSWORD_RESET, token):
            # Another request used this token after we looked it up
            raise InvalidTokenError("Invalid or expired reset token")

        await credential_store.update_password(db, user.id, new_hash)
        revoked = await credential_store.revoke_sessions(db, user.id)

        await audit_service.record(
            db,
            action=AuditAction.PASSWORD_RESET_COMPLETED,
            actor_user_id=user.id,
            entity_id=user.id,
            client=client,
            email=user.email,
            resetMethod="email_token",
            sessionsRevoked=revoked,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.exception(f"Password reset failed for user {user.id}")
        raise InternalError("Password reset failed. Please try again.") from exc

    logger.info(f"Password reset completed: {user.id} ({revoked} sessions revoked)")
    return ResetUser(email=user.email, full_name=user.full_name)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _load_live_token(
    db: AsyncSession,
    purpose: TokenPurpose,
    token: str,
    *,
    unknown_message: str,
    expired_message: str,
) -> VerificationToken:
    """
    Return the stored token if it is well-formed, known and unexpired.

    An expired token is deleted and the deletion committed before
    ExpiredTokenError is raised, so it cannot be retried.
    """
    if not is_valid_format(token):
        raise InvalidTokenError("Invalid token format")

    record = await credential_store.find_token(db, purpose, token)
    if record is None:
        raise InvalidTokenError(unknown_message)

    if is_expired(record.expires_at):
        await credential_store.discard_token(db, purpose, token)
        await db.commit()
        raise ExpiredTokenError(expired_message)

    return record
