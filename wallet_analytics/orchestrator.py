"""
Search Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Single entry point for wallet analysis.

- Computes the time window from the request
- Fetches transactions once per search
- Dispatches to one aggregator, or all five for `comprehensive`
- Wraps the result in a uniform envelope with metadata

============================================================
USAGE
============================================================
    async with SearchOrchestrator.for_chain(1) as orchestrator:
        result = await orchestrator.search(
            SearchRequest(address="0x...", query_type=QueryType.PORTFOLIO)
        )
        print(result.to_dict())

============================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from wallet_analytics.aggregators import (
    CounterpartyAggregator,
    CounterpartyAnalysis,
    PortfolioAggregator,
    PortfolioAnalysis,
    TokenActivityAggregator,
    TokenActivityAnalysis,
    TransactionStats,
    TransactionStatsAggregator,
    WhaleAggregator,
    WhaleAnalysis,
)
from wallet_analytics.cache import CacheRegistry
from wallet_analytics.clients import BaseChainClient, create_client
from wallet_analytics.config import AnalyticsConfig
from wallet_analytics.models import FetchOptions, TimeWindow, Transaction


logger = logging.getLogger(__name__)


NO_TRANSACTIONS_WARNING = "No transactions found for this address in the specified timeframe"


class QueryType(Enum):
    TOKEN_ACTIVITY = "token_activity"
    PORTFOLIO = "portfolio"
    COUNTERPARTY = "counterparty"
    WHALE = "whale"
    TRANSACTION_STATS = "transaction_stats"
    COMPREHENSIVE = "comprehensive"


# ============================================================
# REQUEST / RESULT
# ============================================================

@dataclass(frozen=True)
class SearchRequest:
    """One analysis query."""
    address: str
    query_type: QueryType
    timeframe_days: Optional[int] = None  # None = all history
    whale_threshold_usd: Optional[Union[Decimal, float, int]] = None
    max_transactions: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.query_type, str):
            object.__setattr__(self, "query_type", QueryType(self.query_type))

    def validate(self) -> None:
        """Raise ValueError on out-of-range options."""
        if self.timeframe_days is not None and self.timeframe_days <= 0:
            raise ValueError(f"timeframe_days must be positive, got {self.timeframe_days}")
        if self.whale_threshold_usd is not None and self.whale_threshold_usd < 0:
            raise ValueError(
                f"whale_threshold_usd must be non-negative, got {self.whale_threshold_usd}"
            )
        if self.max_transactions is not None and self.max_transactions <= 0:
            raise ValueError(f"max_transactions must be positive, got {self.max_transactions}")


@dataclass
class SearchMetadata:
    data_source: str
    block_time: float
    native_token: str
    api_calls_made: int = 0
    cache_hit_rate: float = 0.0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_source": self.data_source,
            "api_calls_made": self.api_calls_made,
            "cache_hit_rate": self.cache_hit_rate,
            "warnings": list(self.warnings),
            "block_time": self.block_time,
            "native_token": self.native_token,
        }


@dataclass(frozen=True)
class ComprehensiveAnalysis:
    """All five analyses over one transaction set."""
    token_activity: TokenActivityAnalysis
    portfolio: PortfolioAnalysis
    counterparties: CounterpartyAnalysis
    whale_movements: WhaleAnalysis
    statistics: TransactionStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_activity": self.token_activity.to_dict(),
            "portfolio": self.portfolio.to_dict(),
            "counterparties": self.counterparties.to_dict(),
            "whale_movements": self.whale_movements.to_dict(),
            "statistics": self.statistics.to_dict(),
        }


AnalysisData = Union[
    TokenActivityAnalysis,
    PortfolioAnalysis,
    CounterpartyAnalysis,
    WhaleAnalysis,
    TransactionStats,
    ComprehensiveAnalysis,
]


@dataclass
class SearchResult:
    """Uniform envelope returned by `SearchOrchestrator.search`."""
    query_type: QueryType
    address: str
    chain: str
    chain_id: int
    timestamp: datetime
    processing_time_ms: int
    transactions_analyzed: int
    data: AnalysisData
    metadata: SearchMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_type": self.query_type.value,
            "address": self.address,
            "chain": self.chain,
            "chain_id": self.chain_id,
            "timestamp": self.timestamp.isoformat(),
            "processing_time_ms": self.processing_time_ms,
            "transactions_analyzed": self.transactions_analyzed,
            "data": self.data.to_dict(),
            "metadata": self.metadata.to_dict(),
        }


# ============================================================
# ORCHESTRATOR
# ============================================================

class SearchOrchestrator:
    """
    Composes one chain client with the five aggregators.

    Aggregators are created per search, so their price tables and decimal
    resolvers never outlive one analysis. The client's caches do.
    """

    def __init__(
        self,
        client: BaseChainClient,
        config: Optional[AnalyticsConfig] = None,
    ) -> None:
        self.client = client
        self.config = config or client.config

    @classmethod
    def for_chain(
        cls,
        chain_id: int,
        config: Optional[AnalyticsConfig] = None,
        caches: Optional[CacheRegistry] = None,
    ) -> "SearchOrchestrator":
        """
        Build an orchestrator around a registry-created client.

        Raises:
            ChainNotSupportedError: Unknown chain id
        """
        return cls(create_client(chain_id, config=config, caches=caches), config=config)

    # ─────────────────────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────────────────────

    async def search(self, request: SearchRequest) -> SearchResult:
        """
        Run one analysis.

        Raises:
            InvalidAddressError: Malformed address (before any network call)
            APIRateLimitError / APIError: Transaction fetch failed after retries
            ValueError: Invalid request options
        """
        started = time.monotonic()
        request.validate()
        address = self.client.validate_address(request.address)
        calls_before = self.client.request_count
        cache_before = self.client.caches.counters()

        metadata = SearchMetadata(
            data_source=self.client.data_source,
            block_time=self.client.block_time_seconds,
            native_token=self.client.native_token_symbol,
        )

        window = TimeWindow.last_days(request.timeframe_days)
        logger.info(
            f"[orchestrator] {request.query_type.value} search for {address} "
            f"on {self.client.chain_name} (days={request.timeframe_days})"
        )

        transactions = await self.client.get_transactions(
            address,
            FetchOptions(window=window, max_transactions=request.max_transactions),
        )
        if not transactions:
            metadata.warnings.append(NO_TRANSACTIONS_WARNING)

        data = await self._dispatch(request, address, transactions, window, metadata)

        metadata.api_calls_made = self.client.request_count - calls_before
        metadata.cache_hit_rate = self.client.caches.hit_rate_percent(since=cache_before)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            f"[orchestrator] {request.query_type.value} for {address} done in {elapsed_ms}ms "
            f"({len(transactions)} txs, {metadata.api_calls_made} API calls)"
        )

        return SearchResult(
            query_type=request.query_type,
            address=address,
            chain=self.client.chain_name,
            chain_id=self.client.chain_id,
            timestamp=datetime.now(timezone.utc),
            processing_time_ms=elapsed_ms,
            transactions_analyzed=len(transactions),
            data=data,
            metadata=metadata,
        )

    async def _dispatch(
        self,
        request: SearchRequest,
        address: str,
        transactions: list[Transaction],
        window: TimeWindow,
        metadata: SearchMetadata,
    ) -> AnalysisData:
        query = request.query_type

        if query == QueryType.TOKEN_ACTIVITY:
            return await TokenActivityAggregator(self.client, self.config).analyze(
                address, transactions, window
            )
        if query == QueryType.PORTFOLIO:
            return await self._portfolio(address, transactions, metadata)
        if query == QueryType.COUNTERPARTY:
            return await CounterpartyAggregator(self.client, self.config).analyze(
                address, transactions, window
            )
        if query == QueryType.WHALE:
            return await self._whale(request).analyze(address, transactions, window)
        if query == QueryType.TRANSACTION_STATS:
            return await TransactionStatsAggregator(self.client, self.config).analyze(
                address, transactions, window
            )

        token_activity, portfolio, counterparties, whales, stats = await asyncio.gather(
            TokenActivityAggregator(self.client, self.config).analyze(
                address, transactions, window
            ),
            self._portfolio(address, transactions, metadata),
            CounterpartyAggregator(self.client, self.config).analyze(
                address, transactions, window
            ),
            self._whale(request).analyze(address, transactions, window),
            TransactionStatsAggregator(self.client, self.config).analyze(
                address, transactions, window
            ),
        )
        return ComprehensiveAnalysis(
            token_activity=token_activity,
            portfolio=portfolio,
            counterparties=counterparties,
            whale_movements=whales,
            statistics=stats,
        )

    def _whale(self, request: SearchRequest) -> WhaleAggregator:
        return WhaleAggregator(
            self.client, self.config, threshold_usd=request.whale_threshold_usd
        )

    async def _portfolio(
        self,
        address: str,
        transactions: list[Transaction],
        metadata: SearchMetadata,
    ) -> PortfolioAnalysis:
        onchain_wei: Optional[int] = None
        try:
            onchain_wei = await self.client.get_native_balance(address)
        except Exception as e:
            logger.warning(f"[orchestrator] Could not read on-chain balance for {address}: {e}")
            metadata.warnings.append(
                f"On-chain {self.client.native_token_symbol} balance unavailable; "
                f"balance derived from transaction history only"
            )

        return await PortfolioAggregator(self.client, self.config).analyze(
            address, transactions, onchain_native_balance_wei=onchain_wei
        )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "SearchOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
