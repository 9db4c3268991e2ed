"""
Wallet Analytics - Multi-chain wallet analysis over explorer data.

Fetches a wallet's native and token transfers from a block explorer,
prices them through layered, cached price sources, and runs five
analyses over the result.

Features:
- One client per chain, created by chain id (Ethereum, Mantle, Lisk + testnets)
- Layered price resolution with month-granular and negative caching
- Decimal-mismatch detection for misreporting token contracts
- Bounded-concurrency price lookups
- Uniform result envelope with API-call and cache metadata

Quick Start:
    from wallet_analytics import QueryType, SearchOrchestrator, SearchRequest

    async def analyze_wallet():
        async with SearchOrchestrator.for_chain(1) as orchestrator:
            result = await orchestrator.search(
                SearchRequest(
                    address="0x...",
                    query_type=QueryType.COMPREHENSIVE,
                    timeframe_days=90,
                )
            )
            print(result.to_dict()["data"]["portfolio"]["total_portfolio_value_usd"])

Analyses:
- token_activity: purchases/sales per token with P&L
- portfolio: current holdings, cost basis, P&L
- counterparty: who the wallet transacts with
- whale: transfers above a USD threshold, exchange flows
- transaction_stats: counts, gas, account age, activity level
"""

from wallet_analytics.aggregators import (
    CounterpartyAggregator,
    PortfolioAggregator,
    TokenActivityAggregator,
    TransactionStatsAggregator,
    WhaleAggregator,
)
from wallet_analytics.cache import CacheRegistry, CacheTTL, TTLCache, get_default_caches
from wallet_analytics.clients import (
    BaseChainClient,
    EthereumClient,
    LiskClient,
    MantleClient,
    create_client,
    get_default_registry,
    list_supported_chain_ids,
)
from wallet_analytics.config import AnalyticsConfig, RetryConfig
from wallet_analytics.exceptions import (
    APIError,
    APIRateLimitError,
    BlockchainClientError,
    ChainNotSupportedError,
    ConfigurationError,
    InvalidAddressError,
    WalletAnalyticsError,
)
from wallet_analytics.http import HTTPClient
from wallet_analytics.logging_config import setup_logging
from wallet_analytics.models import (
    ChainSpec,
    FetchOptions,
    TimeWindow,
    TokenInfo,
    TokenPrice,
    Transaction,
    TransactionKind,
)
from wallet_analytics.orchestrator import (
    ComprehensiveAnalysis,
    QueryType,
    SearchMetadata,
    SearchOrchestrator,
    SearchRequest,
    SearchResult,
)


__version__ = "1.0.0"

__all__ = [
    # Orchestrator
    "SearchOrchestrator",
    "SearchRequest",
    "SearchResult",
    "SearchMetadata",
    "ComprehensiveAnalysis",
    "QueryType",

    # Clients
    "BaseChainClient",
    "EthereumClient",
    "MantleClient",
    "LiskClient",
    "create_client",
    "get_default_registry",
    "list_supported_chain_ids",
    "HTTPClient",

    # Aggregators
    "PortfolioAggregator",
    "TokenActivityAggregator",
    "CounterpartyAggregator",
    "WhaleAggregator",
    "TransactionStatsAggregator",

    # Models
    "Transaction",
    "TransactionKind",
    "TokenInfo",
    "TokenPrice",
    "TimeWindow",
    "FetchOptions",
    "ChainSpec",

    # Cache / config
    "TTLCache",
    "CacheTTL",
    "CacheRegistry",
    "get_default_caches",
    "AnalyticsConfig",
    "RetryConfig",
    "setup_logging",

    # Exceptions
    "WalletAnalyticsError",
    "BlockchainClientError",
    "InvalidAddressError",
    "APIRateLimitError",
    "APIError",
    "ChainNotSupportedError",
    "ConfigurationError",
]
