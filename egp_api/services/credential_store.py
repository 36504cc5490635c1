"""
Credential store: persistence of users, their linked organisations, one-time
tokens and server-side sessions.

Every function works inside the caller's session and never commits; the
lifecycle orchestrator (identity_service) owns the transaction boundaries.
This is what makes "create user + linked entity + token + audit entry" a
single atomic unit: if any step raises, the request's session is rolled back
and none of the rows survive.

Uniqueness:
  Email and (supplier legal name, TIN) are checked up front so the common
  case produces a clean ConflictError before any write. The database unique
  constraints remain the final arbiter for concurrent requests; an
  IntegrityError raised on flush is reinterpreted as the same ConflictError.
"""

import uuid
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.exceptions import DuplicateEmailError, DuplicateSupplierError
from egp_api.models.agency import Agency, AgencyType
from egp_api.models.supplier import KycStatus, Supplier
from egp_api.models.user import User, UserRole, UserStatus
from egp_api.models.user_session import UserSession
from egp_api.models.verification_token import VerificationToken
from egp_api.services import token_service
from egp_api.services.token_service import IssuedToken, TokenPurpose


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password_hash: str,
    full_name: str,
    role: UserRole,
    phone: str | None = None,
    position: str | None = None,
) -> User:
    """
    Create an ACTIVE, unverified user.

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    email = email.lower()
    if await find_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        phone=phone,
        position=position,
        role=role,
        status=UserStatus.ACTIVE,
    )
    db.add(user)
    try:
        # Flush to get user.id assigned (needed for the FKs that follow)
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email
        raise DuplicateEmailError(email) from exc
    return user


async def update_password(db: AsyncSession, user_id: uuid.UUID, new_hash: str) -> None:
    await db.execute(
        update(User).where(User.id == user_id).values(password_hash=new_hash)
    )


async def mark_email_verified(db: AsyncSession, user_id: uuid.UUID, at: datetime) -> bool:
    """
    Set email_verified_at (and last_login_at, the first sign-in) once.

    The update is conditional on the column still being NULL, so of two
    concurrent verifications only one sees True.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.email_verified_at.is_(None))
        .values(email_verified_at=at, last_login_at=at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def update_last_login(db: AsyncSession, user_id: uuid.UUID, at: datetime) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(last_login_at=at)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Linked organisations
# ---------------------------------------------------------------------------

async def get_agency_by_code(db: AsyncSession, code: str) -> Agency | None:
    result = await db.execute(select(Agency).where(Agency.code == code))
    return result.scalar_one_or_none()


async def create_agency_if_absent(
    db: AsyncSession,
    code: str,
    *,
    name: str,
    agency_type: AgencyType = AgencyType.MINISTRY,
    address: str | None = None,
    contact_email: str | None = None,
    contact_phone: str | None = None,
) -> Agency:
    """
    Return the Agency with this code, creating it if none exists.

    The insert runs in a SAVEPOINT. If a concurrent registration creates the
    same code first, only the savepoint is rolled back and the row that won
    is returned, so the caller's transaction carries on.
    """
    agency = await get_agency_by_code(db, code)
    if agency is not None:
        return agency

    agency = Agency(
        code=code,
        name=name,
        type=agency_type,
        address=address,
        contact_email=contact_email,
        contact_phone=contact_phone,
    )
    try:
        async with db.begin_nested():
            db.add(agency)
            await db.flush()
    except IntegrityError:
        logger.info(f"Agency {code} was created concurrently; joining it")
        result = await db.execute(select(Agency).where(Agency.code == code))
        return result.scalar_one()
    return agency


async def attach_user_to_agency(db: AsyncSession, user: User, agency: Agency) -> None:
    user.agency_id = agency.id
    await db.flush()


async def find_supplier(db: AsyncSession, legal_name: str, tin: str) -> Supplier | None:
    result = await db.execute(
        select(Supplier).where(Supplier.legal_name == legal_name, Supplier.tin == tin)
    )
    return result.scalar_one_or_none()


async def create_supplier(
    db: AsyncSession,
    *,
    owner_user_id: uuid.UUID,
    legal_name: str,
    tin: str,
    contact_email: str,
    trading_name: str | None = None,
    address: str | None = None,
    contact_phone: str | None = None,
    categories: list[str] | None = None,
) -> Supplier:
    """
    Create the supplier profile owned by a user.

    Raises:
        DuplicateSupplierError: If (legal_name, tin) is already registered.
    """
    if await find_supplier(db, legal_name, tin) is not None:
        raise DuplicateSupplierError(legal_name, tin)

    supplier = Supplier(
        owner_user_id=owner_user_id,
        legal_name=legal_name,
        trading_name=trading_name,
        tin=tin,
        address=address,
        contact_email=contact_email,
        contact_phone=contact_phone,
        categories=list(categories or []),
        kyc_status=KycStatus.PENDING,
    )
    db.add(supplier)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateSupplierError(legal_name, tin) from exc
    return supplier


async def get_owned_supplier(db: AsyncSession, user_id: uuid.UUID) -> Supplier | None:
    result = await db.execute(select(Supplier).where(Supplier.owner_user_id == user_id))
    return result.scalar_one_or_none()


async def set_supplier_kyc_status(db: AsyncSession, supplier: Supplier, status: KycStatus) -> None:
    supplier.kyc_status = status
    await db.flush()


# ---------------------------------------------------------------------------
# One-time tokens
# ---------------------------------------------------------------------------

async def issue_token(db: AsyncSession, purpose: TokenPurpose, identifier: str) -> IssuedToken:
    """
    Replace any live token of this purpose for `identifier` with a new one.

    The delete and the insert run in the caller's transaction, so there is
    never a committed state with two live tokens for one identifier.
    Verification and reset tokens for the same email do not displace each
    other.
    """
    is_reset = VerificationToken.token.startswith(
        TokenPurpose.PASSWORD_RESET.storage_prefix, autoescape=True
    )
    await db.execute(
        delete(VerificationToken)
        .where(
            VerificationToken.identifier == identifier,
            is_reset if purpose is TokenPurpose.PASSWORD_RESET else ~is_reset,
        )
        .execution_options(synchronize_session=False)
    )

    issued = token_service.issue_token(purpose)
    db.add(
        VerificationToken(
            token=token_service.storage_value(issued.token, purpose),
            identifier=identifier,
            expires_at=issued.expires_at,
        )
    )
    await db.flush()
    return issued


async def find_token(db: AsyncSession, purpose: TokenPurpose, token: str) -> VerificationToken | None:
    result = await db.execute(
        select(VerificationToken).where(
            VerificationToken.token == token_service.storage_value(token, purpose)
        )
    )
    return result.scalar_one_or_none()


async def consume_token(db: AsyncSession, purpose: TokenPurpose, token: str) -> bool:
    """
    Delete a token. Returns True only if this call removed the row.

    Two concurrent consumers of the same token cannot both see True.
    """
    result = await db.execute(
        delete(VerificationToken)
        .where(VerificationToken.token == token_service.storage_value(token, purpose))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def discard_token(db: AsyncSession, purpose: TokenPurpose, token: str) -> None:
    """Delete a token that can no longer be used (expired, or its user is gone)."""
    await consume_token(db, purpose, token)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

async def open_session(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    lifetime: timedelta,
    ip: str | None = None,
    user_agent: str | None = None,
) -> UserSession:
    session = UserSession(
        user_id=user_id,
        expires_at=token_service.utc_now() + lifetime,
        ip=ip,
        user_agent=user_agent,
    )
    db.add(session)
    await db.flush()
    return session


async def get_live_session(
    db: AsyncSession, session_id: uuid.UUID, user_id: uuid.UUID
) -> UserSession | None:
    """The session row if it belongs to the user and has not expired."""
    result = await db.execute(
        select(UserSession).where(UserSession.id == session_id, UserSession.user_id == user_id)
    )
    session = result.scalar_one_or_none()
    if session is None or token_service.is_expired(session.expires_at):
        return None
    return session


async def close_session(db: AsyncSession, session_id: uuid.UUID) -> None:
    await db.execute(
        delete(UserSession)
        .where(UserSession.id == session_id)
        .execution_options(synchronize_session=False)
    )


async def revoke_sessions(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Delete every session of a user, forcing re-authentication everywhere."""
    result = await db.execute(
        delete(UserSession)
        .where(UserSession.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
