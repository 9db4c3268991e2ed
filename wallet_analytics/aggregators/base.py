"""
Base Aggregator - Shared valuation helpers for the analysis engines.

Each aggregator instance serves one analysis: it owns a per-analysis
decimal resolver and a local (token, month) -> USD price table that is
filled by one bounded-concurrency prefetch pass. Per-item failures are
logged and valued at zero.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from wallet_analytics.aggregators.types import ZERO
from wallet_analytics.clients.base import BaseChainClient, month_start
from wallet_analytics.config import AnalyticsConfig
from wallet_analytics.decimals import STANDARD_DECIMALS, DecimalResolver, raw_to_decimal
from wallet_analytics.models import TimeWindow, Transaction


logger = logging.getLogger(__name__)


T = TypeVar("T")

# Corrupted-input guards
MAX_SANE_BALANCE = Decimal(10) ** 12
MAX_SANE_VALUE_USD = Decimal(10) ** 12


class BaseAggregator:
    """Common plumbing for the five aggregators."""

    name = "aggregator"

    def __init__(
        self,
        client: BaseChainClient,
        config: Optional[AnalyticsConfig] = None,
    ) -> None:
        self.client = client
        self.config = config or client.config
        self.decimals = DecimalResolver(client.get_token_metadata)
        self._token_prices: dict[tuple[str, int], Decimal] = {}
        self._native_prices: dict[int, Decimal] = {}

    # ─────────────────────────────────────────────────────────────
    # Windows
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def in_window(
        transactions: Iterable[Transaction],
        window: Optional[TimeWindow],
    ) -> list[Transaction]:
        if window is None or not window.is_bounded:
            return list(transactions)
        return [tx for tx in transactions if window.contains(tx.timestamp)]

    @staticmethod
    def timeframe(
        transactions: list[Transaction],
        window: Optional[TimeWindow],
        now: Optional[int] = None,
    ) -> tuple[int, int]:
        """Reported (start, end): window bounds, else first tx / now."""
        now = int(time.time()) if now is None else now
        start = window.start if window and window.start is not None else None
        end = window.end if window and window.end is not None else now
        if start is None:
            start = transactions[0].timestamp if transactions else now
        return start, end

    # ─────────────────────────────────────────────────────────────
    # Bounded fan-out
    # ─────────────────────────────────────────────────────────────

    async def bounded_gather(
        self,
        factories: list[Callable[[], Awaitable[T]]],
    ) -> list[Any]:
        """
        Run coroutine factories with at most
        `config.max_concurrent_price_lookups` in flight.

        Exceptions are returned in place of results.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrent_price_lookups)

        async def run(factory: Callable[[], Awaitable[T]]) -> T:
            async with semaphore:
                return await factory()

        return await asyncio.gather(*(run(f) for f in factories), return_exceptions=True)

    # ─────────────────────────────────────────────────────────────
    # Prices
    # ─────────────────────────────────────────────────────────────

    async def prefetch_prices(self, transactions: list[Transaction]) -> int:
        """
        Fetch one price per unique (token, month) and native month.

        Returns:
            Number of non-zero token prices fetched
        """
        token_months: set[tuple[str, int]] = set()
        native_months: set[int] = set()
        for tx in transactions:
            bucket = month_start(tx.timestamp)
            if tx.is_token:
                token_months.add((tx.contract_address, bucket))
            else:
                native_months.add(bucket)

        token_keys = sorted(k for k in token_months if k not in self._token_prices)
        native_keys = sorted(m for m in native_months if m not in self._native_prices)
        if not token_keys and not native_keys:
            return 0

        logger.info(
            f"[{self.name}] Prefetching {len(token_keys)} token prices "
            f"and {len(native_keys)} native prices"
        )

        token_results = await self.bounded_gather([
            (lambda key=key: self.client.get_historical_price(key[0], key[1]))
            for key in token_keys
        ])
        native_results = await self.bounded_gather([
            (lambda month=month: self.client.get_native_token_price(month))
            for month in native_keys
        ])

        fetched = 0
        for key, result in zip(token_keys, token_results):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] Price prefetch failed for {key[0]}: {result}")
                self._token_prices[key] = ZERO
                continue
            self._token_prices[key] = result.price_usd
            if result.price_usd > 0:
                fetched += 1

        for month, result in zip(native_keys, native_results):
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] Native price prefetch failed: {result}")
                continue
            self._native_prices[month] = result

        return fetched

    async def token_price_at(self, token_address: str, timestamp: int) -> Decimal:
        """USD price for the token's month, from the prefetch table when possible."""
        key = (token_address, month_start(timestamp))
        if key not in self._token_prices:
            try:
                price = await self.client.get_historical_price(token_address, timestamp)
                self._token_prices[key] = price.price_usd
            except Exception as e:
                logger.warning(f"[{self.name}] Price lookup failed for {token_address}: {e}")
                self._token_prices[key] = ZERO
        return self._token_prices[key]

    def latest_known_price(self, token_address: str) -> Decimal:
        """Most recent non-zero prefetched monthly price for a token."""
        candidates = [
            (month, price) for (addr, month), price in self._token_prices.items()
            if addr == token_address and price > 0
        ]
        if not candidates:
            return ZERO
        return max(candidates)[1]

    async def native_price_at(self, timestamp: int) -> Decimal:
        bucket = month_start(timestamp)
        if bucket not in self._native_prices:
            try:
                self._native_prices[bucket] = await self.client.get_native_token_price(timestamp)
            except Exception as e:
                logger.warning(f"[{self.name}] Native price lookup failed: {e}")
                return ZERO
        return self._native_prices[bucket]

    async def current_token_price(self, token_address: str) -> Decimal:
        """Live price, falling back to the latest non-zero monthly price."""
        try:
            price = (await self.client.get_current_price(token_address)).price_usd
        except Exception as e:
            logger.warning(f"[{self.name}] Current price failed for {token_address}: {e}")
            price = ZERO
        if price > 0:
            return price
        return self.latest_known_price(token_address)

    # ─────────────────────────────────────────────────────────────
    # Amounts
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def native_amount(tx: Transaction) -> Decimal:
        return raw_to_decimal(tx.value, STANDARD_DECIMALS)

    async def token_amount(self, tx: Transaction) -> Decimal:
        decimals = await self.decimals.resolve(tx.contract_address, tx.value)
        return raw_to_decimal(tx.value, decimals)

    async def transaction_value_usd(self, tx: Transaction) -> Decimal:
        """USD value of a transfer at its time; 0 on any failure or corrupt value."""
        try:
            if tx.is_native:
                value = self.native_amount(tx) * await self.native_price_at(tx.timestamp)
            elif tx.is_token:
                amount = await self.token_amount(tx)
                value = amount * await self.token_price_at(tx.contract_address, tx.timestamp)
            else:
                return ZERO
        except Exception as e:
            logger.warning(f"[{self.name}] Could not value {tx.hash}: {e}")
            return ZERO

        if value > MAX_SANE_VALUE_USD:
            logger.warning(f"[{self.name}] Discarding implausible value ${value:.2f} for {tx.hash}")
            return ZERO
        return value
