"""
Wallet Analytics Configuration.

============================================================
PURPOSE
============================================================
Typed settings for chain clients, HTTP retries and aggregators.

Values come from constructor arguments or, via `from_env()`,
from environment variables (a local `.env` file is honoured).

ENVIRONMENT:
- ETHERSCAN_API_KEY
- CRYPTOCOMPARE_API_KEY (defaults to "demo")
- MORALIS_API_KEY
- MANTLE_RPC_URL / LISK_RPC_URL (optional RPC overrides)

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from wallet_analytics.exceptions import ConfigurationError


# ============================================================
# HTTP RETRY CONFIGURATION
# ============================================================

@dataclass
class RetryConfig:
    """Retry policy for upstream HTTP calls."""

    max_retries: int = 3
    """Additional attempts after the first request."""

    base_delay_seconds: float = 1.0
    """Delay for 5xx retries; 429 retries use base × 2^attempt."""

    timeout_seconds: float = 30.0
    """Total timeout per request."""

    retryable_statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    """HTTP statuses that trigger a retry."""


# ============================================================
# ANALYTICS CONFIGURATION
# ============================================================

@dataclass
class AnalyticsConfig:
    """
    Configuration shared by chain clients and aggregators.
    """

    # Credentials
    etherscan_api_key: str = ""
    cryptocompare_api_key: str = "demo"
    moralis_api_key: str = ""

    # RPC overrides (None = chain default)
    mantle_rpc_url: Optional[str] = None
    lisk_rpc_url: Optional[str] = None

    # Fetching
    max_transactions_per_address: int = 50_000
    """Hard cap on merged transactions returned by a client."""

    etherscan_max_records: int = 10_000
    """Page size for block-range pagination."""

    blockscout_max_records: int = 10_000
    """Page size for page/offset pagination."""

    # Aggregation
    max_tokens_to_price: int = 20
    """Portfolio only prices the N most active tokens."""

    price_fetch_timeout_seconds: float = 3.0
    """Per-lookup guard in the portfolio aggregator."""

    max_concurrent_price_lookups: int = 4
    """Semaphore size for price fan-out."""

    default_whale_threshold_usd: float = 100_000.0

    retry: RetryConfig = field(default_factory=RetryConfig)

    def validate(self) -> None:
        """Validate configuration values."""
        if self.max_transactions_per_address <= 0:
            raise ConfigurationError(
                "max_transactions_per_address must be positive",
                config_key="max_transactions_per_address",
            )
        if self.max_concurrent_price_lookups <= 0:
            raise ConfigurationError(
                "max_concurrent_price_lookups must be positive",
                config_key="max_concurrent_price_lookups",
            )
        if self.retry.max_retries < 0:
            raise ConfigurationError(
                "retry.max_retries cannot be negative",
                config_key="retry.max_retries",
            )
        if self.default_whale_threshold_usd < 0:
            raise ConfigurationError(
                "default_whale_threshold_usd cannot be negative",
                config_key="default_whale_threshold_usd",
            )

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "AnalyticsConfig":
        """
        Create config from environment variables.

        Args:
            dotenv: Load a `.env` file first

        Returns:
            AnalyticsConfig
        """
        if dotenv:
            load_dotenv()

        config = cls(
            etherscan_api_key=os.environ.get("ETHERSCAN_API_KEY", ""),
            cryptocompare_api_key=os.environ.get("CRYPTOCOMPARE_API_KEY", "demo"),
            moralis_api_key=os.environ.get("MORALIS_API_KEY", ""),
            mantle_rpc_url=os.environ.get("MANTLE_RPC_URL") or None,
            lisk_rpc_url=os.environ.get("LISK_RPC_URL") or None,
        )
        config.validate()
        return config
