"""
Token Activity Aggregator - Purchases (received) and sales (sent) per token.

A single prefetch pass resolves one price per (token, month) present in
the window, so per-transfer valuation is a table read.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from wallet_analytics.aggregators.base import MAX_SANE_VALUE_USD, BaseAggregator
from wallet_analytics.aggregators.types import (
    ZERO,
    TokenActivityAnalysis,
    TokenActivitySummary,
    TokenPurchaseSummary,
    TokenSaleSummary,
)
from wallet_analytics.models import TimeWindow, Transaction


logger = logging.getLogger(__name__)


def _sane(value: Decimal) -> Decimal:
    return value if value <= MAX_SANE_VALUE_USD else ZERO


class TokenActivityAggregator(BaseAggregator):
    """Buy/sell rollups with P&L on purchases."""

    name = "token_activity"

    async def analyze(
        self,
        address: str,
        transactions: list[Transaction],
        window: Optional[TimeWindow] = None,
    ) -> TokenActivityAnalysis:
        address = address.lower()
        in_window = [tx for tx in self.in_window(transactions, window) if tx.is_token]
        start, end = self.timeframe(transactions, window)

        if not in_window:
            return TokenActivityAnalysis(address=address, timeframe_start=start, timeframe_end=end)

        fetched = await self.prefetch_prices(in_window)
        logger.info(f"[{self.name}] Pre-fetched {fetched} price points")

        bought: dict[str, list[Transaction]] = defaultdict(list)
        sold: dict[str, list[Transaction]] = defaultdict(list)
        for tx in in_window:
            if tx.to_address == address:
                bought[tx.contract_address].append(tx)
            if tx.from_address == address:
                sold[tx.contract_address].append(tx)

        purchase_results = await self.bounded_gather([
            (lambda token=token, txs=txs: self._purchase_summary(token, txs))
            for token, txs in bought.items()
        ])
        purchases: list[TokenPurchaseSummary] = []
        for result in purchase_results:
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] Purchase summary failed: {result}")
                continue
            purchases.append(result)

        sales: list[TokenSaleSummary] = []
        for token, txs in sold.items():
            try:
                sales.append(await self._sale_summary(token, txs))
            except Exception as e:
                logger.warning(f"[{self.name}] Sale summary failed for {token}: {e}")

        purchases.sort(key=lambda p: p.current_value_usd, reverse=True)
        sales.sort(key=lambda s: s.total_received_usd, reverse=True)

        return TokenActivityAnalysis(
            address=address,
            timeframe_start=start,
            timeframe_end=end,
            tokens_bought=purchases,
            tokens_sold=sales,
            summary=self._summary(purchases, sales),
        )

    async def _amounts_and_values(
        self,
        token_address: str,
        transactions: list[Transaction],
    ) -> tuple[Decimal, Decimal]:
        total_amount = ZERO
        total_value = ZERO
        for tx in transactions:
            amount = await self.token_amount(tx)
            price = await self.token_price_at(token_address, tx.timestamp)
            total_amount += amount
            total_value += amount * price
        return total_amount, _sane(total_value)

    async def _purchase_summary(
        self,
        token_address: str,
        transactions: list[Transaction],
    ) -> TokenPurchaseSummary:
        info = await self.client.get_token_metadata(token_address)
        total_amount, total_spent = await self._amounts_and_values(token_address, transactions)

        current_price = await self.current_token_price(token_address)
        current_value = _sane(total_amount * current_price)
        pnl = current_value - total_spent
        pnl_pct = pnl / total_spent * 100 if total_spent > 0 else ZERO

        timestamps = [tx.timestamp for tx in transactions]
        return TokenPurchaseSummary(
            token_address=token_address,
            token_symbol=info.symbol,
            token_name=info.name,
            total_amount=total_amount,
            total_spent_usd=total_spent,
            current_value_usd=current_value,
            pnl=pnl,
            pnl_percentage=pnl_pct,
            average_price_usd=total_spent / total_amount if total_amount > 0 else ZERO,
            current_price_usd=current_price,
            first_purchase_timestamp=min(timestamps),
            last_purchase_timestamp=max(timestamps),
            num_purchases=len(transactions),
        )

    async def _sale_summary(
        self,
        token_address: str,
        transactions: list[Transaction],
    ) -> TokenSaleSummary:
        info = await self.client.get_token_metadata(token_address)
        total_amount, total_received = await self._amounts_and_values(token_address, transactions)

        timestamps = [tx.timestamp for tx in transactions]
        return TokenSaleSummary(
            token_address=token_address,
            token_symbol=info.symbol,
            token_name=info.name,
            total_amount=total_amount,
            total_received_usd=total_received,
            average_price_usd=total_received / total_amount if total_amount > 0 else ZERO,
            first_sale_timestamp=min(timestamps),
            last_sale_timestamp=max(timestamps),
            num_sales=len(transactions),
        )

    @staticmethod
    def _summary(
        purchases: list[TokenPurchaseSummary],
        sales: list[TokenSaleSummary],
    ) -> TokenActivitySummary:
        invested = sum((p.total_spent_usd for p in purchases), ZERO)
        current = sum((p.current_value_usd for p in purchases), ZERO)
        pnl = current - invested

        best = max(purchases, key=lambda p: p.pnl, default=None)
        worst = min(purchases, key=lambda p: p.pnl, default=None)
        unique = {p.token_address for p in purchases} | {s.token_address for s in sales}

        return TokenActivitySummary(
            total_invested_usd=invested,
            current_portfolio_value_usd=current,
            total_pnl=pnl,
            total_pnl_percentage=pnl / invested * 100 if invested > 0 else ZERO,
            num_tokens_bought=len(purchases),
            num_tokens_sold=len(sales),
            num_unique_tokens=len(unique),
            most_profitable_token=best if best and best.pnl > 0 else None,
            biggest_loser_token=worst if worst and worst.pnl < 0 else None,
        )
