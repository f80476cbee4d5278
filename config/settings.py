"""Configuration management using pydantic-settings."""
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from sommstats.errors import ConfigError


class FeeTokenMetadata(BaseModel):
    """Display metadata for an auctioned fee token, keyed by its chain denom."""
    symbol: str
    decimals: int


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream node REST endpoints, tried in order
    endpoints: List[str] = []
    request_timeout_seconds: float = 10.0

    # Retry behaviour
    failed_query_retries: int = 3
    retry_base_delay_seconds: float = 0.5

    # Poll periods (seconds), also used as the TTL of each feed
    foundation_wallet_update_period: int = 300
    community_pool_update_period: int = 300
    staking_update_period: int = 300
    vesting_update_period: int = 3600
    active_auctions_update_period: int = 30
    ended_auctions_update_period: int = 3600
    bids_update_period: int = 30
    price_update_period: int = 30

    # Supply accounting
    denom: str = "usomm"
    total_supply: int = 500_000_000_000_000
    base_unit_exponent: int = 6
    foundation_addresses: List[str] = []
    vesting_accounts: List[str] = []

    # Auction fee token metadata by denom
    fee_tokens: Dict[str, FeeTokenMetadata] = {}
    default_token_decimals: int = 18

    # Balance snapshot
    snapshot_enabled: bool = True
    snapshot_path: Path = Path("./snapshot.json")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_prefix = "SOMMSTATS_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def feed_periods(self) -> Dict[str, int]:
        return {
            "foundation_wallet_update_period": self.foundation_wallet_update_period,
            "community_pool_update_period": self.community_pool_update_period,
            "staking_update_period": self.staking_update_period,
            "vesting_update_period": self.vesting_update_period,
            "active_auctions_update_period": self.active_auctions_update_period,
            "ended_auctions_update_period": self.ended_auctions_update_period,
            "bids_update_period": self.bids_update_period,
            "price_update_period": self.price_update_period,
        }

    def validate_runtime(self) -> None:
        """
        Check the settings the scheduler cannot run without.

        Raises:
            ConfigError: On the first invalid value found
        """
        if not self.endpoints:
            raise ConfigError("at least one node endpoint must be configured")
        for name, period in self.feed_periods.items():
            if period <= 0:
                raise ConfigError(f"{name} must be positive, got {period}")
        if self.failed_query_retries < 0:
            raise ConfigError(
                f"failed_query_retries must not be negative, got {self.failed_query_retries}"
            )
        if self.retry_base_delay_seconds <= 0:
            raise ConfigError(
                f"retry_base_delay_seconds must be positive, got {self.retry_base_delay_seconds}"
            )
        if self.base_unit_exponent < 0:
            raise ConfigError(
                f"base_unit_exponent must not be negative, got {self.base_unit_exponent}"
            )


settings = Settings()
