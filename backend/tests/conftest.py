"""Root conftest — shared fixtures for the store, engine, caches and API client.

Invariants:
    - Every test gets its own data file under tmp_path (no shared state between tests)
    - Clocks are fixed or manually advanced; no test sleeps on wall time for TTLs
    - The API app is built with create_app(settings), never the module-level app
"""

import os
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure the module-level app never picks up a real key or data file
os.environ.setdefault("API_KEY", "")
os.environ.setdefault("DATA_FILE", "data/test-passes.json")

from coupon_server.config import ClientSettings, Settings  # noqa: E402
from coupon_server.infrastructure.token_store import TokenStore  # noqa: E402
from coupon_server.main import create_app  # noqa: E402
from coupon_server.services.redemption_engine import RedemptionEngine  # noqa: E402

API_KEY = "test-api-key"
POPEYES_TOKEN = "popeyes-secret"
FIXED_NOW = datetime(2025, 3, 14, 15, 9, 26, 535000, tzinfo=timezone.utc)


class ManualClock:
    """Monotonic-style clock in seconds, advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000

    def set_ms(self, ms: float) -> None:
        self.now = ms / 1000


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "data" / "passes.json"


@pytest.fixture
def store(data_file):
    return TokenStore(data_file)


@pytest.fixture
def engine(store):
    return RedemptionEngine(store, clock=lambda: FIXED_NOW)


@pytest.fixture
def settings(data_file):
    return Settings(
        _env_file=None,
        data_file=str(data_file),
        api_key=API_KEY,
        base_url="https://coupons.example.com/",
        log_format="text",
        clients=[
            ClientSettings(
                slug="popeyes-mckinney",
                name="Popeyes McKinney",
                token=POPEYES_TOKEN,
                restaurants=["Popeyes McKinney"],
                offer_prefixes=["pop-"],
            ),
            ClientSettings(
                slug="sonic-frisco",
                name="Sonic Frisco",
                token="",
                restaurants=["Sonic Frisco"],
                offer_prefixes=["sonic-"],
            ),
        ],
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
async def client(app):
    """Async test client bound to an isolated app instance."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"x-api-key": API_KEY}


@pytest.fixture
def popeyes_token():
    return POPEYES_TOKEN
