"""
Client metadata extracted from the incoming request.

Every security-relevant write (audit entries, sessions) records where the
request came from. Behind a reverse proxy the socket peer is the proxy
itself, so the real client IP is read from the trusted proxy headers first.
"""

import uuid
from dataclasses import dataclass, field

from fastapi import Request

from egp_api.config import settings
from egp_api.models.user import UserRole


@dataclass(frozen=True)
class ClientInfo:
    """IP address and user agent of the caller."""
    ip: str = "unknown"
    user_agent: str | None = None


@dataclass(frozen=True)
class RequestContext:
    """
    The authenticated identity of one request.

    Built by dependencies.get_request_context from the bearer JWT and its
    live session row, then passed explicitly to whatever needs it. Nothing
    reads the current user from global state.
    """
    user_id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    session_id: uuid.UUID
    agency_id: uuid.UUID | None = None
    supplier_id: uuid.UUID | None = None
    client: ClientInfo = field(default_factory=ClientInfo)


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """
    Extract the real client IP from proxy headers or the direct connection.

    Headers are checked in priority order. For X-Forwarded-For the leftmost
    (client-supplied) address is used. Falls back to request.client.host,
    then to "unknown".
    """
    headers = trusted_headers if trusted_headers is not None else settings.TRUSTED_PROXY_HEADERS

    for header in headers:
        value = request.headers.get(header, "").strip()
        if not value:
            continue
        # X-Forwarded-For can contain multiple IPs: "client, proxy1, proxy2"
        if header.lower() == "x-forwarded-for":
            return value.split(",")[0].strip()
        return value

    if request.client:
        return request.client.host
    return "unknown"


def get_client_info(request: Request) -> ClientInfo:
    """FastAPI dependency: the caller's IP and user agent."""
    return ClientInfo(
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
