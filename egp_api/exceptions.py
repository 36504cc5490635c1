"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain-specific errors (like DuplicateEmailError
  or ExpiredTokenError) without importing HTTP concepts. The handler layer
  translates them into consistent HTTP responses.

  This separation means:
    - Service code is testable without HTTP
    - Error responses are consistent across all endpoints
    - No stack trace or internal identifier ever reaches the client

Exception hierarchy:
    EgpAPIError (base)
    ├── ValidationError          malformed or missing input (400)
    ├── ConflictError            duplicate unique key (409)
    │   ├── DuplicateEmailError
    │   └── DuplicateSupplierError
    ├── NotFoundError            unknown user where disclosure is safe (404)
    │   └── UserNotFoundError
    ├── InvalidTokenError        unknown or malformed one-time token (400)
    ├── ExpiredTokenError        token past its expiry, deleted (400)
    ├── AuthenticationError      uniform credential failures (401)
    │   ├── InvalidCredentialsError
    │   └── SessionExpiredError
    ├── PermissionDeniedError    authenticated but wrong role (403)
    └── InternalError            unexpected failure, no detail leaked (500)
        └── EmailDeliveryError
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from egp_api.request_info import get_client_ip


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class EgpAPIError(Exception):
    """Base exception for all e-GP domain errors."""

    status_code: int = 400
    error_type: str = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class ValidationError(EgpAPIError):
    """
    Raised when input is well-formed JSON but fails a business rule.

    Attributes:
        errors: Optional field-level details, each {"field", "message"}.
    """

    status_code = 400
    error_type = "validation_error"

    def __init__(self, detail: str = "Validation failed", errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(detail)


class ConflictError(EgpAPIError):
    """Raised when a create would violate a unique key."""

    status_code = 409
    error_type = "conflict"


class DuplicateEmailError(ConflictError):
    """Raised when attempting to register with an email that's already in use."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists")


class DuplicateSupplierError(ConflictError):
    """Raised when a supplier with the same legal name and TIN already exists."""

    error_type = "duplicate_supplier"

    def __init__(self, legal_name: str, tin: str):
        self.legal_name = legal_name
        self.tin = tin
        super().__init__("Supplier with this legal name and TIN already exists")


class NotFoundError(EgpAPIError):
    """Raised when a requested record does not exist."""

    status_code = 404
    error_type = "not_found"


class UserNotFoundError(NotFoundError):
    """Raised when no user matches, on flows where saying so is acceptable."""

    error_type = "user_not_found"

    def __init__(self):
        super().__init__("User not found")


class InvalidTokenError(EgpAPIError):
    """Raised when a one-time token is malformed or not on record."""

    status_code = 400
    error_type = "invalid_token"

    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(detail)


class ExpiredTokenError(EgpAPIError):
    """Raised when a one-time token is past its expiry. The token is deleted first."""

    status_code = 400
    error_type = "expired_token"

    def __init__(self, detail: str = "Token has expired. Please request a new one."):
        super().__init__(detail)


class AuthenticationError(EgpAPIError):
    """Raised when the caller cannot be authenticated."""

    status_code = 401
    error_type = "authentication_failed"


class InvalidCredentialsError(AuthenticationError):
    """
    Raised when login credentials are incorrect.

    The message is identical for unknown email, wrong password and
    inactive account.
    """

    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


class SessionExpiredError(AuthenticationError):
    """Raised when a session token is missing, invalid, revoked or expired."""

    error_type = "invalid_session"

    def __init__(self):
        super().__init__("Could not validate credentials")


class PermissionDeniedError(EgpAPIError):
    """Raised when the authenticated user's role does not allow the action."""

    status_code = 403
    error_type = "permission_denied"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class InternalError(EgpAPIError):
    """Raised for failures the caller cannot correct."""

    status_code = 500
    error_type = "internal_error"

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(detail)


class EmailDeliveryError(InternalError):
    """Raised when sending an email is the operation itself and it fails."""

    error_type = "email_delivery_failed"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _request_meta(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "ip": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Every error response has the shape {"detail": ..., "error_type": ...};
    validation failures additionally carry "errors". All of them are logged
    with the request metadata.

    This is called once during app creation in main.py.
    """

    @app.exception_handler(EgpAPIError)
    async def domain_error_handler(request: Request, exc: EgpAPIError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.error_type}: {exc.detail} {_request_meta(request)}")
        else:
            logger.info(f"{exc.error_type} ({exc.status_code}) {_request_meta(request)}")

        content = {"detail": exc.detail, "error_type": exc.error_type}
        if isinstance(exc, ValidationError) and exc.errors:
            content["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Field-level detail: "body.confirmPassword" -> "confirmPassword"
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part != "body"),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.info(f"validation_error (400) {_request_meta(request)}")
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Validation failed",
                "error_type": "validation_error",
                "errors": errors,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error(f"Unhandled error {_request_meta(request)}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal_error"},
        )
