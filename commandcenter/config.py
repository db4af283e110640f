"""Application configuration with environment separation."""
from functools import lru_cache
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=True)

    # App
    app_name: str = "Command Center"
    api_v1_prefix: str = "/api/v1"

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # console | json

    # Security - stored as comma-separated string in .env
    allowed_origins: str = Field(default="http://localhost:3000,http://localhost:5173")
    rate_limit_per_minute: int = Field(default=120)

    # Outbound HTTP
    user_agent: str = Field(default="commandcenter/0.1 (+https://github.com/)")

    # Upstream base URLs (proxy table in core/proxy.py mirrors the public ones)
    yahoo_base_url: str = Field(default="https://query2.finance.yahoo.com")
    coingecko_base_url: str = Field(default="https://api.coingecko.com")
    coingecko_pro_base_url: str = Field(default="https://pro-api.coingecko.com")
    polymarket_base_url: str = Field(default="https://gamma-api.polymarket.com")
    fng_base_url: str = Field(default="https://api.alternative.me")
    rss_base_url: str = Field(default="https://api.rss2json.com")
    gdelt_relay_url: str = Field(default="https://scrp-api.onrender.com")
    acled_base_url: str = Field(default="https://acleddata.com/api/acled/read")
    firms_base_url: str = Field(default="https://firms.modaps.eosdis.nasa.gov/api/area/csv")
    opensky_base_url: str = Field(default="https://opensky-network.org/api")
    opensky_token_url: str = Field(
        default="https://auth.opensky-network.org/auth/realms/opensky-network/protocol/openid-connect/token"
    )
    digitraffic_base_url: str = Field(default="https://meri.digitraffic.fi/api/ais/v1")
    circl_base_url: str = Field(default="https://cve.circl.lu/api")
    fred_base_url: str = Field(default="https://api.stlouisfed.org/fred")

    # External APIs - all optional, free tiers are used when empty.
    # Values prefixed with "enc:" are decrypted with credential_user_id.
    credential_user_id: str = Field(default="")
    opensky_client_id: str = Field(default="")
    opensky_client_secret: str = Field(default="")
    firms_map_key: str = Field(default="")
    coingecko_api_key: str = Field(default="")
    acled_email: str = Field(default="")
    acled_api_key: str = Field(default="")
    fred_api_key: str = Field(default="")

    @field_validator("debug", mode="before")
    @classmethod
    def set_debug(cls, v, info):
        """Disable debug in production."""
        if info.data.get("environment") == Environment.PRODUCTION:
            return False
        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get allowed origins as list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
