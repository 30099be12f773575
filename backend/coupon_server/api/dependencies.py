"""Route Dependencies — container access, audit context and access gates.

Invariants:
    - Credentials compared with hmac.compare_digest (constant time)
    - Missing server-side API key → ConfigurationError (500), never an open gate
    - Gates raise CouponError subclasses; the global handler renders them
    - Admin rate limiting runs before the key check; rejected keys still count
"""

import hmac

from fastapi import Depends, Request, Response

from coupon_server.container import ServiceContainer
from coupon_server.core.client_registry import ClientConfig
from coupon_server.core.coupon_records import RequestContext
from coupon_server.core.errors import (
    AuthenticationError, ConfigurationError, RateLimitError,
)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return ip or None


def request_context(request: Request) -> RequestContext:
    """Audit fields for issuance/redemption records."""
    return RequestContext(
        ip=client_ip(request), user_agent=request.headers.get("user-agent"),
    )


def enforce_admin_rate_limit(
    request: Request,
    response: Response,
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Per-IP budget for admin routes, checked before the API key."""
    decision = container.admin_limiter.hit(client_ip(request) or "unknown")
    if not decision.allowed:
        raise RateLimitError(decision.reset_after)
    response.headers["RateLimit-Limit"] = str(decision.limit)
    response.headers["RateLimit-Remaining"] = str(decision.remaining)
    response.headers["RateLimit-Reset"] = str(decision.reset_after)


def _bearer_token(header: str | None) -> str:
    if header and header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


def require_api_key(
    request: Request, container: ServiceContainer = Depends(get_container),
) -> None:
    """Gate for redemption and admin routes."""
    expected = container.settings.api_key
    if not expected:
        raise ConfigurationError("Server API key")
    provided = (
        request.headers.get("x-api-key")
        or _bearer_token(request.headers.get("authorization"))
        or request.query_params.get("key")
        or ""
    )
    if not provided or not hmac.compare_digest(
        provided.encode("utf-8"), expected.encode("utf-8"),
    ):
        raise AuthenticationError("Invalid API key")


def require_client(
    slug: str,
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> ClientConfig:
    """Gate for client dashboards: token via x-client-token header or ?token=."""
    token = request.headers.get("x-client-token") or request.query_params.get("token")
    return container.clients.authenticate(slug, token)
