"""
Pydantic schemas for the identity lifecycle endpoints.

Request validation happens here, before any service code runs: password
length and confirmation, email format, role-specific required fields.
A failure becomes a 400 response with field-level errors (see
exceptions.register_exception_handlers).

Registration is a discriminated union on "role": only SUPPLIER_USER and
AGENCY_BUYER can self-register, and each carries its own required fields.
NPC_ADMIN and AUDITOR accounts are provisioned by an operator.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import EmailStr, Field, RootModel, field_validator, ValidationInfo

from egp_api.models.agency import AgencyType
from egp_api.models.supplier import KycStatus
from egp_api.models.user import UserRole
from egp_api.schemas.common import CamelModel

PASSWORD_MIN_LENGTH = 8


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class _RegistrationBase(CamelModel):
    full_name: str = Field(min_length=2, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=30)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)
    confirm_password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords don't match")
        return value


class SupplierRegistrationRequest(_RegistrationBase):
    """Supplier self-registration: creates the user and their Supplier profile."""
    role: Literal["SUPPLIER_USER"]
    legal_name: str = Field(min_length=2, max_length=255)
    trading_name: str | None = Field(default=None, max_length=255)
    tin: str = Field(min_length=1, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    categories: list[str] = Field(default_factory=list)


class AgencyRegistrationRequest(_RegistrationBase):
    """Agency buyer self-registration: joins (or creates) the agency by code."""
    role: Literal["AGENCY_BUYER"]
    agency_code: str = Field(min_length=2, max_length=50)
    agency_name: str = Field(min_length=2, max_length=255)
    agency_type: AgencyType = AgencyType.MINISTRY
    position: str = Field(min_length=2, max_length=150)


class RegistrationRequest(
    RootModel[
        Annotated[
            Union[SupplierRegistrationRequest, AgencyRegistrationRequest],
            Field(discriminator="role"),
        ]
    ]
):
    """Request body for POST /auth/register."""


class UserSummary(CamelModel):
    """Public representation of a user (never includes hash or tokens)."""
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole


class RegistrationResponse(CamelModel):
    success: bool = True
    message: str
    user: UserSummary
    email_sent: bool


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

class VerifyEmailRequest(CamelModel):
    """Request body for POST /auth/verify-email."""
    token: str = Field(min_length=1)


class ResendVerificationRequest(CamelModel):
    """Request body for PUT /auth/verify-email."""
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class AgencySummary(CamelModel):
    id: uuid.UUID
    name: str
    code: str


class SupplierSummary(CamelModel):
    id: uuid.UUID
    legal_name: str
    kyc_status: KycStatus


class VerifiedUser(UserSummary):
    email_verified: bool = True
    agency: AgencySummary | None = None
    supplier: SupplierSummary | None = None


class VerifyEmailResponse(CamelModel):
    success: bool = True
    message: str
    user: VerifiedUser
    welcome_email_sent: bool


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

class PasswordResetRequest(CamelModel):
    """Request body for POST /auth/forgot-password."""
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class PasswordResetComplete(CamelModel):
    """Request body for POST /auth/reset-password."""
    token: str = Field(min_length=1)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords don't match")
        return value


class ResetUser(CamelModel):
    email: str
    full_name: str


class ResetTokenStatusResponse(CamelModel):
    """Response body for GET /auth/reset-password?token=..."""
    valid: bool = True
    user: ResetUser
    expires_at: datetime


class PasswordResetResponse(CamelModel):
    success: bool = True
    message: str
    user: ResetUser


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

class LoginRequest(CamelModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class SessionPayload(CamelModel):
    """The identity carried by a signed-in session."""
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    agency_id: uuid.UUID | None = None
    supplier_id: uuid.UUID | None = None
    session_id: uuid.UUID


class LoginResponse(CamelModel):
    """Response body for a successful sign-in: the session JWT and its identity."""
    token: str
    token_type: str = "bearer"
    session: SessionPayload
