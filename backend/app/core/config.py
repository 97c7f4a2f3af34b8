from functools import lru_cache
from typing import Any

from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MARKET_COLLECTIONS: tuple[str, ...] = (
    "0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D",  # Bored Ape Yacht Club
    "0xb47e3cd837dDF8e4c57F05d70Ab865de6e193BBB",  # CryptoPunks
    "0xED5AF388653567Af2F388E6224dC7C4b3241C544",  # Azuki
    "0x23581767a106ae21c074b2276D25e5C3e136a68b",  # Moonbirds
    "0x60E4d786628Fea6478F785A6d7e704777c86a7c6",  # Mutant Ape Yacht Club
    "0x8a90CAb2b38dba80c64b7734e58Ee1dB38B8992e",  # Doodles
    "0x49cF6f5d44E70224e2E23fDcdd2C053F30aDA28B",  # CloneX
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    alchemy_api_key: str | None = Field(
        default=None,
        description="Alchemy NFT API key; sentiment falls back to neutral when unset",
    )
    alchemy_base_url: AnyUrl = Field(
        default="https://eth-mainnet.g.alchemy.com/nft/v3",
        description="Base URL for the Alchemy NFT API",
    )
    source_timeout_seconds: float = Field(
        default=4.0,
        description="Hard timeout applied to each per-collection fetch",
        gt=0,
    )
    aggregation_deadline_seconds: float = Field(
        default=12.0,
        description="Overall deadline for one fan-out acquisition round",
        gt=0,
    )
    sales_page_size: int = Field(
        default=100, description="Number of sales requested per page", ge=1, le=1000
    )
    sales_max_pages: int = Field(
        default=10, description="Maximum sales pages fetched per collection", ge=1
    )
    cache_ttl_hours: float = Field(
        default=12.0,
        description="Age below which a cached sentiment result is served without recomputation",
        gt=0,
    )
    stale_after_hours: float = Field(
        default=36.0,
        description="Age beyond which cache-only reads flag a result as stale",
        gt=0,
    )
    short_window_hours: int = Field(
        default=24, description="Length of the recent sales window", ge=1
    )
    reference_window_days: int = Field(
        default=30, description="Length of the reference sales window", ge=1
    )
    default_collection: str = Field(
        default=DEFAULT_MARKET_COLLECTIONS[0],
        description="Collection analyzed when a caller does not name one",
    )
    market_collections: list[str] | str = Field(
        default_factory=lambda: list(DEFAULT_MARKET_COLLECTIONS),
        description="Collections aggregated for the market-wide sentiment (list or comma-separated)",
    )
    refresh_secret: str | None = Field(
        default=None,
        description="Shared secret required by the forced refresh endpoint",
    )

    @field_validator("market_collections", mode="after")
    @classmethod
    def _parse_market_collections(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            collections = [part.strip() for part in value.split(",") if part.strip()]
        elif isinstance(value, (list, tuple, set)):
            collections = [str(item).strip() for item in value if str(item).strip()]
        else:
            raise ValueError(
                "MARKET_COLLECTIONS must be provided as a list or comma-separated string"
            )
        if not collections:
            raise ValueError("MARKET_COLLECTIONS must contain at least one collection")
        return collections

    @field_validator("alchemy_api_key", "refresh_secret", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_windows(self) -> "Settings":
        if self.stale_after_hours < self.cache_ttl_hours:
            raise ValueError("STALE_AFTER_HOURS must be greater than or equal to CACHE_TTL_HOURS")
        if self.reference_window_days * 24 < self.short_window_hours:
            raise ValueError("REFERENCE_WINDOW_DAYS must cover SHORT_WINDOW_HOURS")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
