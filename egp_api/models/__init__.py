"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all runs
  2. String relationship targets ("Agency", "Supplier") resolve
  3. Other modules can import from egp_api.models directly
"""

from egp_api.models.agency import Agency, AgencyType  # noqa: F401
from egp_api.models.audit_log import AuditAction, AuditLogEntry  # noqa: F401
from egp_api.models.supplier import KycStatus, Supplier  # noqa: F401
from egp_api.models.user import User, UserRole, UserStatus  # noqa: F401
from egp_api.models.user_session import UserSession  # noqa: F401
from egp_api.models.verification_token import VerificationToken  # noqa: F401
