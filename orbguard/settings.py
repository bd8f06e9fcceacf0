import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    # Backend
    base_url: str = Field(default="https://guard.orbai.world", alias="ORBGUARD_BASE_URL")
    client_version: str = Field(default="1.0.0", alias="ORBGUARD_CLIENT_VERSION")
    platform: str = Field(default="android", alias="ORBGUARD_PLATFORM")

    # Timeouts (seconds)
    connect_timeout: float = Field(default=30.0, alias="ORBGUARD_CONNECT_TIMEOUT")
    receive_timeout: float = Field(default=30.0, alias="ORBGUARD_RECEIVE_TIMEOUT")
    send_timeout: float = Field(default=30.0, alias="ORBGUARD_SEND_TIMEOUT")

    # Retry
    max_retries: int = Field(default=3, alias="ORBGUARD_MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, alias="ORBGUARD_RETRY_BASE_DELAY")

    # Cache
    cache_max_size: int = Field(default=100, alias="ORBGUARD_CACHE_MAX_SIZE")
    cache_ttl_short: int = Field(default=300, alias="ORBGUARD_CACHE_TTL_SHORT")
    cache_ttl_medium: int = Field(default=3600, alias="ORBGUARD_CACHE_TTL_MEDIUM")
    cache_ttl_long: int = Field(default=86400, alias="ORBGUARD_CACHE_TTL_LONG")

    # Credential storage
    credentials_db_url: str = Field(
        default="sqlite+aiosqlite:///./orbguard.db", alias="ORBGUARD_CREDENTIALS_DB"
    )

    # Logging
    log_http: bool = Field(default=False, alias="ORBGUARD_LOG_HTTP")
    log_bodies: bool = Field(default=False, alias="ORBGUARD_LOG_BODIES")
    debug: bool = Field(default=False, alias="ORBGUARD_DEBUG")

    model_config = {"populate_by_name": True}


def load_settings() -> Settings:
    """Build settings from the environment (and a .env file, if present)."""
    load_dotenv()
    return Settings.model_validate(dict(os.environ))
