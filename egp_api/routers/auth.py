"""
Authentication router: the identity lifecycle endpoints.

Everything here is public except sign-out and the current-session lookup,
which require a valid bearer token.

Endpoints:
  POST /auth/register         Register a supplier or agency buyer
  POST /auth/verify-email     Consume a verification token
  PUT  /auth/verify-email     Resend the verification email
  POST /auth/forgot-password  Request a password reset email
  GET  /auth/reset-password   Check whether a reset token is usable
  POST /auth/reset-password   Set a new password with a reset token
  POST /auth/login            Authenticate and open a session
  POST /auth/logout           Close the current session
  GET  /auth/session          The current session's identity

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - One-time tokens are delivered by email only. No response body ever
    contains one.
  - Session JWTs appear only in the login response body, which uvicorn
    does not log (it logs method, path, and status code only).
  - No request body logging middleware is installed, so POST bodies
    containing passwords are not written to any log file.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.database import get_db
from egp_api.dependencies import get_notifier, get_request_context
from egp_api.exceptions import ExpiredTokenError, InvalidTokenError
from egp_api.request_info import ClientInfo, RequestContext, get_client_info
from egp_api.schemas.auth import (
    AgencySummary,
    LoginRequest,
    LoginResponse,
    PasswordResetComplete,
    PasswordResetRequest,
    PasswordResetResponse,
    RegistrationRequest,
    RegistrationResponse,
    ResendVerificationRequest,
    ResetTokenStatusResponse,
    ResetUser,
    SessionPayload,
    SupplierSummary,
    UserSummary,
    VerifiedUser,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from egp_api.schemas.common import MessageResponse
from egp_api.services import identity_service
from egp_api.services.notification_service import NotificationDispatcher

router = APIRouter()


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a supplier or agency buyer",
)
async def register(
    request: RegistrationRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Register a new portal user.

    The body is selected by **role**:

    - **SUPPLIER_USER**: also requires **legalName** and **tin**; creates the
      supplier profile (KYC status PENDING)
    - **AGENCY_BUYER**: also requires **agencyCode**, **agencyName** and
      **position**; joins the agency with that code, creating it if needed

    The account starts unverified. A verification link valid for 24 hours is
    emailed; **emailSent** reports whether that worked.
    """
    result = await identity_service.register(db, notifier, client, request.root)

    return RegistrationResponse(
        message=identity_service.REGISTRATION_MESSAGE,
        user=UserSummary.model_validate(result.user),
        email_sent=result.email_sent,
    )


@router.post(
    "/verify-email",
    response_model=VerifyEmailResponse,
    summary="Verify an email address",
)
async def verify_email(
    request: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Consume the token from a verification email.

    Verifying an already verified account succeeds without changing
    anything. An expired token is deleted; request a new one with
    PUT /auth/verify-email.
    """
    result = await identity_service.verify_email(db, notifier, client, request.token)

    user = result.user
    return VerifyEmailResponse(
        message=(
            identity_service.ALREADY_VERIFIED_MESSAGE
            if result.already_verified
            else identity_service.VERIFIED_MESSAGE
        ),
        user=VerifiedUser(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            agency=AgencySummary.model_validate(result.agency) if result.agency else None,
            supplier=SupplierSummary.model_validate(result.supplier) if result.supplier else None,
        ),
        welcome_email_sent=result.welcome_email_sent,
    )


@router.put(
    "/verify-email",
    response_model=MessageResponse,
    summary="Resend the verification email",
)
async def resend_verification(
    request: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
    client: ClientInfo = Depends(get_client_info),
):
    """Replace any pending verification token and email a new one."""
    await identity_service.resend_verification(db, notifier, client, request.email)
    return MessageResponse(message=identity_service.RESEND_MESSAGE)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset email",
)
async def forgot_password(
    request: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Email a reset link valid for 1 hour.

    The response is identical whether or not the email belongs to an
    account.
    """
    message = await identity_service.request_password_reset(db, notifier, client, request.email)
    return MessageResponse(message=message)


@router.get(
    "/reset-password",
    response_model=ResetTokenStatusResponse,
    responses={400: {"description": '{"valid": false, "error": "..."}'}},
    summary="Check a password reset token",
)
async def check_reset_token(
    token: str = Query(""),
    db: AsyncSession = Depends(get_db),
):
    """Used by the reset form before it asks for the new password."""
    try:
        result = await identity_service.check_reset_token(db, token)
    except (InvalidTokenError, ExpiredTokenError) as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"valid": False, "error": exc.detail},
        )

    return ResetTokenStatusResponse(
        user=ResetUser(email=result.email, full_name=result.full_name),
        expires_at=result.expires_at,
    )


@router.post(
    "/reset-password",
    response_model=PasswordResetResponse,
    summary="Set a new password",
)
async def reset_password(
    request: PasswordResetComplete,
    db: AsyncSession = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Set a new password with a reset token.

    The token is single-use and every existing session of the account is
    signed out.
    """
    result = await identity_service.complete_password_reset(
        db, client, request.token, request.password
    )
    return PasswordResetResponse(
        message=identity_service.RESET_COMPLETE_MESSAGE,
        user=ResetUser(email=result.email, full_name=result.full_name),
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Authenticate with email and password.

    Returns a JWT bearer token that must be included in the Authorization
    header for protected requests:

        Authorization: Bearer <token>

    The token and its session expire after ACCESS_TOKEN_EXPIRE_MINUTES
    (default: 8 hours).
    """
    result = await identity_service.authenticate(db, client, request.email, request.password)

    identity = result.identity
    return LoginResponse(
        token=result.token,
        session=SessionPayload(
            id=identity.user_id,
            email=identity.email,
            full_name=identity.full_name,
            role=identity.role,
            agency_id=identity.agency_id,
            supplier_id=identity.supplier_id,
            session_id=identity.session_id,
        ),
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out of the current session",
)
async def logout(
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    await identity_service.sign_out(db, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/session",
    response_model=SessionPayload,
    summary="Get the current session",
)
async def current_session(context: RequestContext = Depends(get_request_context)):
    return SessionPayload(
        id=context.user_id,
        email=context.email,
        full_name=context.full_name,
        role=context.role,
        agency_id=context.agency_id,
        supplier_id=context.supplier_id,
        session_id=context.session_id,
    )
