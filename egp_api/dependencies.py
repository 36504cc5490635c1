"""
FastAPI dependencies for authentication, authorization and collaborators.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a chain that enforces both authentication and role-based access
control:

  get_request_context (JWT + live session row -> RequestContext)
      └── require_roles(*roles) (RequestContext -> RequestContext)

A JWT is honoured only while the session named by its "sid" claim still
exists and has not expired. Signing out deletes that row; a password reset
deletes all of the user's rows.

Role-based access control:
  - NPC_ADMIN: registration statistics and the audit log
  - AUDITOR: the audit log only (read-only oversight)
  - AGENCY_BUYER / SUPPLIER_USER: their own session only

Every protected endpoint declares one of these as a parameter. If it fails,
the request is rejected before the route handler runs.
"""

import uuid

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.database import get_db
from egp_api.exceptions import PermissionDeniedError, SessionExpiredError
from egp_api.models.user import UserRole
from egp_api.request_info import ClientInfo, RequestContext, get_client_info
from egp_api.security import decode_access_token
from egp_api.services import credential_store
from egp_api.services.notification_service import NotificationDispatcher, dispatcher


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header. auto_error=False lets a
# missing header produce our own 401 body instead of FastAPI's.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_notifier() -> NotificationDispatcher:
    """The process-wide email dispatcher. Tests override this."""
    return dispatcher


async def get_request_context(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
) -> RequestContext:
    """
    Resolve the bearer JWT into the caller's RequestContext.

    Raises:
        SessionExpiredError (401): Missing, malformed or expired token,
            revoked or expired session, or a user that no longer exists or
            is inactive.
    """
    if not token:
        raise SessionExpiredError()

    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(payload["sub"])
        session_id = uuid.UUID(payload["sid"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise SessionExpiredError()

    session = await credential_store.get_live_session(db, session_id, user_id)
    if session is None:
        raise SessionExpiredError()

    user = await credential_store.get_user(db, user_id)
    if user is None or not user.is_active:
        raise SessionExpiredError()

    supplier = user.owned_supplier
    return RequestContext(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        session_id=session.id,
        agency_id=user.agency_id,
        supplier_id=supplier.id if supplier is not None else None,
        client=client,
    )


def require_roles(*roles: UserRole):
    """
    Dependency factory: allow only callers holding one of `roles`.

    Usage:
        @router.get("/registrations")
        async def stats(context: RequestContext = Depends(require_roles(UserRole.NPC_ADMIN))):
            ...
    """
    allowed = frozenset(roles)

    async def dependency(
        context: RequestContext = Depends(get_request_context),
    ) -> RequestContext:
        if context.role not in allowed:
            raise PermissionDeniedError()
        return context

    return dependency
