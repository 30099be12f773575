"""Service Container — explicit owned state, wired once per application instance.

Invariants:
    - No module-level singletons: every store, cache and service lives on a container
    - Two containers never share a lock, cache entry or in-flight load
    - Building a container does no IO (the store file is touched on first load)
    - Background jobs are built here but only started by the app lifespan
"""

from dataclasses import dataclass

from coupon_server.config import Settings
from coupon_server.core.client_registry import ClientConfig, ClientRegistry
from coupon_server.infrastructure.offer_catalog import OfferCatalog
from coupon_server.infrastructure.rate_limiter import RequestRateLimiter
from coupon_server.infrastructure.read_through_cache import ReadThroughCache
from coupon_server.infrastructure.token_store import TokenStore
from coupon_server.services.demo_reset_job import DemoResetJob
from coupon_server.services.offers_service import OffersService
from coupon_server.services.redemption_engine import RedemptionEngine
from coupon_server.services.reporting_service import ReportingService


@dataclass
class ServiceContainer:
    settings: Settings
    store: TokenStore
    engine: RedemptionEngine
    clients: ClientRegistry
    offers: OffersService
    reports: ReportingService
    offers_cache: ReadThroughCache
    reports_cache: ReadThroughCache
    admin_limiter: RequestRateLimiter
    demo_reset: DemoResetJob | None = None


def build_client_registry(settings: Settings) -> ClientRegistry:
    return ClientRegistry([
        ClientConfig(
            slug=c.slug,
            name=c.name,
            token=c.token,
            restaurants=tuple(c.restaurants),
            offer_prefixes=tuple(c.offer_prefixes),
        )
        for c in settings.clients
    ])


def build_container(settings: Settings) -> ServiceContainer:
    store = TokenStore(settings.data_file)
    engine = RedemptionEngine(store)
    offers_cache = ReadThroughCache(
        "offers",
        ttl_ms=settings.offers_cache_ttl_ms,
        allow_stale=settings.cache_allow_stale,
        max_entries=settings.cache_max_entries,
    )
    reports_cache = ReadThroughCache(
        "reports",
        ttl_ms=settings.reports_cache_ttl_ms,
        allow_stale=settings.cache_allow_stale,
        max_entries=settings.cache_max_entries,
    )
    offers = OffersService(OfferCatalog(), offers_cache)
    demo_reset = None
    if settings.enable_demo_reset_job and settings.demo_reset_every_ms > 0:
        demo_reset = DemoResetJob(offers, settings.demo_reset_every_ms)
    return ServiceContainer(
        settings=settings,
        store=store,
        engine=engine,
        clients=build_client_registry(settings),
        offers=offers,
        reports=ReportingService(engine, reports_cache),
        offers_cache=offers_cache,
        reports_cache=reports_cache,
        admin_limiter=RequestRateLimiter(
            "admin", settings.admin_rl_max, settings.admin_rl_window_ms,
        ),
        demo_reset=demo_reset,
    )
