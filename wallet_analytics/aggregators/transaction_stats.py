"""
Transaction Stats Aggregator - Counts, gas spend, account age, activity.

Gas is only counted for transactions the address sent, once per hash,
and priced with one native price per calendar month.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from wallet_analytics.aggregators.base import BaseAggregator
from wallet_analytics.aggregators.types import ZERO, ActivityFrequency, TransactionStats
from wallet_analytics.clients.base import month_start
from wallet_analytics.decimals import STANDARD_DECIMALS, raw_to_decimal
from wallet_analytics.models import TimeWindow, Transaction


logger = logging.getLogger(__name__)


SECONDS_PER_DAY = 86_400


def activity_frequency(tx_per_day: Decimal) -> ActivityFrequency:
    if tx_per_day > 10:
        return ActivityFrequency.VERY_ACTIVE
    if tx_per_day > 3:
        return ActivityFrequency.ACTIVE
    if tx_per_day > Decimal("0.5"):
        return ActivityFrequency.MODERATE
    return ActivityFrequency.LOW


class TransactionStatsAggregator(BaseAggregator):
    """Usage statistics for an address."""

    name = "transaction_stats"

    async def analyze(
        self,
        address: str,
        transactions: list[Transaction],
        window: Optional[TimeWindow] = None,
    ) -> TransactionStats:
        address = address.lower()
        in_window = self.in_window(transactions, window)
        start, end = self.timeframe(transactions, window)

        if not in_window:
            return TransactionStats(address=address, timeframe_start=start, timeframe_end=end)

        native_count = sum(1 for tx in in_window if tx.is_native)
        sent = [tx for tx in in_window if tx.from_address == address]
        received_count = sum(1 for tx in in_window if tx.to_address == address)

        gas_native, gas_usd = await self._gas_spent(sent)

        first_ts = min(tx.timestamp for tx in in_window)
        last_ts = max(tx.timestamp for tx in in_window)
        span_seconds = last_ts - first_ts
        age_days = span_seconds // SECONDS_PER_DAY
        age_blocks = int(span_seconds / self.client.block_time_seconds)

        # Rate over the fractional span; a zero-length span has no rate
        total = len(in_window)
        tx_per_day = (
            Decimal(total) * SECONDS_PER_DAY / Decimal(span_seconds)
            if span_seconds > 0 else ZERO
        )

        return TransactionStats(
            address=address,
            timeframe_start=start,
            timeframe_end=end,
            total_transactions=total,
            native_transactions=native_count,
            token_transactions=total - native_count,
            transactions_sent=len(sent),
            transactions_received=received_count,
            total_gas_spent_native=gas_native,
            total_gas_spent_usd=gas_usd,
            average_gas_per_tx_usd=gas_usd / len(sent) if sent else ZERO,
            first_transaction_timestamp=first_ts,
            last_transaction_timestamp=last_ts,
            account_age_days=age_days,
            account_age_blocks=age_blocks,
            transactions_per_day=tx_per_day,
            activity_frequency=activity_frequency(tx_per_day),
        )

    async def _gas_spent(self, sent: list[Transaction]) -> tuple[Decimal, Decimal]:
        """Total gas in native units and USD. Months without a price add 0 USD."""
        gas_by_month: dict[int, int] = defaultdict(int)
        seen_hashes: set[str] = set()
        for tx in sent:
            if tx.hash in seen_hashes:
                continue
            seen_hashes.add(tx.hash)
            gas_by_month[month_start(tx.timestamp)] += tx.gas_fee_wei

        months = sorted(gas_by_month)
        prices = await self.bounded_gather([
            (lambda month=month: self.native_price_at(month)) for month in months
        ])

        total_native = ZERO
        total_usd = ZERO
        for month, price in zip(months, prices):
            gas_native = raw_to_decimal(gas_by_month[month], STANDARD_DECIMALS)
            total_native += gas_native
            if isinstance(price, Exception) or price <= 0:
                logger.warning(f"[{self.name}] No native price for month {month}, skipping gas USD")
                continue
            total_usd += gas_native * price

        return total_native, total_usd
