"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets (API key, client tokens) come from environment variables
    - get_settings() is cached (lru_cache) — single instance per process
    - The client registry is declared once here (CLIENTS as JSON), never looked up per request

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box locally
"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class ClientSettings(BaseModel):
    """One dashboard client entry of the CLIENTS setting."""
    slug: str
    name: str
    token: str = ""
    restaurants: list[str] = []
    offer_prefixes: list[str] = []

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("client slug cannot be empty")
        return v


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Storage
    data_file: str = "data/passes.json"

    # Access
    api_key: str = ""
    base_url: str = ""

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Caching
    offers_cache_ttl_ms: int = 30_000
    reports_cache_ttl_ms: int = 30_000
    cache_allow_stale: bool = True
    cache_max_entries: int = Field(1000, ge=1)

    # Admin protection
    admin_rl_window_ms: int = Field(60_000, ge=1)
    admin_rl_max: int = Field(30, ge=1)

    # Jobs
    enable_demo_reset_job: bool = False
    demo_reset_every_ms: int = Field(0, ge=0)  # 0 disables

    # Clients
    clients: list[ClientSettings] = []

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
