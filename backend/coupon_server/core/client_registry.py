"""Client Registry — explicit mapping of dashboard clients, built once at startup.

Invariants:
    - Registry is immutable after construction (no runtime environment lookups)
    - resolve_slug() precedence: explicit client > restaurant name > offer prefix > "general"
    - authenticate() compares tokens in constant time

Design Decisions:
    - Loaded from settings (CLIENTS JSON), not discovered by scanning env var names
"""

import hmac
from dataclasses import dataclass, field

from coupon_server.core.domain_types import ClientSlug, GENERAL_CLIENT_SLUG
from coupon_server.core.errors import (
    AuthenticationError, ConfigurationError, NotFoundError,
)


@dataclass(frozen=True)
class ClientConfig:
    """One dashboard client and the names/prefixes that attribute coupons to it."""
    slug: str
    name: str
    token: str = ""
    restaurants: tuple[str, ...] = field(default_factory=tuple)
    offer_prefixes: tuple[str, ...] = field(default_factory=tuple)


class ClientRegistry:
    """Read-only lookup over configured clients."""

    def __init__(self, clients: list[ClientConfig] | None = None):
        self._clients: dict[str, ClientConfig] = {
            c.slug.lower(): c for c in (clients or [])
        }

    def get(self, slug: str) -> ClientConfig | None:
        return self._clients.get(slug.lower())

    def display_name(self, slug: str) -> str:
        client = self.get(slug)
        return client.name if client else "General Client"

    def resolve_slug(
        self,
        client: str | None = None,
        restaurant: str | None = None,
        offer: str | None = None,
    ) -> ClientSlug:
        """Attribute a coupon to a client from whatever the issuing link carried."""
        wanted = (client or "").strip().lower()
        if wanted and wanted in self._clients:
            return ClientSlug(wanted)

        place = (restaurant or "").lower()
        if place:
            for slug, cfg in self._clients.items():
                if any(name.lower() in place for name in cfg.restaurants):
                    return ClientSlug(slug)

        offer_id = (offer or "").lower()
        if offer_id:
            for slug, cfg in self._clients.items():
                if any(offer_id.startswith(p.lower()) for p in cfg.offer_prefixes):
                    return ClientSlug(slug)

        return GENERAL_CLIENT_SLUG

    def authenticate(self, slug: str, token: str | None) -> ClientConfig:
        """Return the client for a valid (slug, token) pair or raise."""
        client = self.get(slug)
        if client is None:
            raise NotFoundError("Client", slug)
        if not client.token:
            raise ConfigurationError(f"Client access for '{client.slug}'")
        if not token or not hmac.compare_digest(
            token.encode("utf-8"), client.token.encode("utf-8"),
        ):
            raise AuthenticationError()
        return client
