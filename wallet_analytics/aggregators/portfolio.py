"""
Portfolio Aggregator - Holdings, cost basis and P&L.

Only the `max_tokens_to_price` most active tokens (by transfer count)
get metadata and price lookups; the rest use the symbol/decimals
embedded in their transfers and are priced at zero.
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import replace
from decimal import Decimal
from typing import Any, Optional

from wallet_analytics.aggregators.base import (
    MAX_SANE_BALANCE,
    MAX_SANE_VALUE_USD,
    BaseAggregator,
)
from wallet_analytics.aggregators.types import ZERO, PortfolioAnalysis, PortfolioHolding
from wallet_analytics.decimals import STANDARD_DECIMALS, raw_to_decimal
from wallet_analytics.models import TokenInfo, Transaction


logger = logging.getLogger(__name__)


MIN_BALANCE = Decimal("0.000001")
MIN_VALUE_USD = Decimal("0.01")
# Gaps below 1e14 wei (0.0001 native) are ignored
RECONCILIATION_THRESHOLD_WEI = 10 ** 14


def native_balance_wei(transactions: list[Transaction], address: str) -> int:
    """Σ received − Σ(sent + gas) over native transfers, in wei, floored at 0."""
    balance = 0
    for tx in transactions:
        if not tx.is_native:
            continue
        if tx.to_address == address:
            balance += tx.value
        if tx.from_address == address:
            balance -= tx.value + tx.gas_fee_wei
    return max(0, balance)


class PortfolioAggregator(BaseAggregator):
    """Current holdings valued at current prices."""

    name = "portfolio"

    async def analyze(
        self,
        address: str,
        transactions: list[Transaction],
        onchain_native_balance_wei: Optional[int] = None,
    ) -> PortfolioAnalysis:
        """
        Analyze current portfolio holdings.

        Args:
            address: Wallet address
            transactions: Merged transaction list
            onchain_native_balance_wei: Live balance to reconcile against

        Returns:
            PortfolioAnalysis (zeroed when there are no transactions)
        """
        address = address.lower()
        now = int(time.time())
        logger.info(f"[{self.name}] Calculating holdings for {address} ({len(transactions)} txs)")

        derived_wei = native_balance_wei(transactions, address)
        native_balance = raw_to_decimal(derived_wei, STANDARD_DECIMALS)
        if native_balance > MAX_SANE_BALANCE:
            logger.warning(f"[{self.name}] Implausible native balance {native_balance}, zeroing")
            native_balance = ZERO

        native_price = ZERO
        if transactions or onchain_native_balance_wei:
            native_price = await self.native_price_at(now)
        native_value = native_balance * native_price
        if native_value > MAX_SANE_VALUE_USD:
            native_value = ZERO

        holdings, priced, skipped = await self._token_holdings(transactions, address, now)

        total_token_value = sum((h.current_value_usd for h in holdings), ZERO)
        total_portfolio_value = native_value + total_token_value
        total_invested = sum((h.total_invested_usd for h in holdings), ZERO)
        total_pnl = total_token_value - total_invested
        total_pnl_pct = (total_pnl / total_invested * 100) if total_invested > 0 else ZERO

        holdings = [
            replace(
                h,
                percent_of_portfolio=(
                    h.current_value_usd / total_portfolio_value * 100
                    if total_portfolio_value > 0 else ZERO
                ),
            )
            for h in holdings
        ]

        top = max(holdings, key=lambda h: h.current_value_usd, default=None)
        best = max(holdings, key=lambda h: h.pnl, default=None)

        onchain_balance = None
        unreconciled = None
        if onchain_native_balance_wei is not None:
            onchain_balance = raw_to_decimal(onchain_native_balance_wei, STANDARD_DECIMALS)
            gap_wei = onchain_native_balance_wei - derived_wei
            if abs(gap_wei) >= RECONCILIATION_THRESHOLD_WEI:
                unreconciled = raw_to_decimal(abs(gap_wei), STANDARD_DECIMALS)
                if gap_wei < 0:
                    unreconciled = -unreconciled
                logger.warning(
                    f"[{self.name}] On-chain balance differs from history by "
                    f"{unreconciled} {self.client.native_token_symbol}"
                )
            else:
                unreconciled = ZERO

        return PortfolioAnalysis(
            address=address,
            native_symbol=self.client.native_token_symbol,
            native_balance=native_balance,
            native_price_usd=native_price,
            native_value_usd=native_value,
            token_holdings=holdings,
            total_portfolio_value_usd=total_portfolio_value,
            total_invested_usd=total_invested,
            total_pnl=total_pnl,
            total_pnl_percentage=total_pnl_pct,
            num_tokens=len(holdings),
            tokens_priced=priced,
            tokens_skipped=skipped,
            top_holding_by_value=top if top and top.current_value_usd > 0 else None,
            most_profitable_holding=best if best and best.pnl > 0 else None,
            onchain_native_balance=onchain_balance,
            unreconciled_native_balance=unreconciled,
        )

    # ─────────────────────────────────────────────────────────────
    # Token holdings
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def rank_tokens(transactions: list[Transaction]) -> list[tuple[str, list[Transaction]]]:
        """Token transfers grouped by contract, most active first."""
        grouped: dict[str, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            if tx.is_token:
                grouped[tx.contract_address].append(tx)
        return sorted(grouped.items(), key=lambda item: len(item[1]), reverse=True)

    async def _token_holdings(
        self,
        transactions: list[Transaction],
        address: str,
        now: int,
    ) -> tuple[list[PortfolioHolding], int, int]:
        ranked = self.rank_tokens(transactions)
        if not ranked:
            return [], 0, 0

        limit = self.config.max_tokens_to_price
        priced_tokens = ranked[:limit]
        unpriced_tokens = ranked[limit:]
        logger.info(
            f"[{self.name}] {len(ranked)} tokens, pricing top {len(priced_tokens)}"
        )

        priced_results = await self.bounded_gather([
            (lambda token=token, txs=txs: self._holding(token, txs, address, now, True))
            for token, txs in priced_tokens
        ])
        candidates: list[tuple[bool, Any]] = [(True, r) for r in priced_results]
        for token, txs in unpriced_tokens:
            try:
                candidates.append((False, await self._holding(token, txs, address, now, False)))
            except Exception as e:
                candidates.append((False, e))

        holdings: list[PortfolioHolding] = []
        for was_priced, result in candidates:
            if isinstance(result, Exception):
                logger.warning(f"[{self.name}] Failed to calculate holding: {result}")
                continue
            if result.balance <= MIN_BALANCE:
                continue
            if not was_priced and result.current_value_usd == 0:
                continue
            if ZERO < result.current_value_usd < MIN_VALUE_USD:
                continue
            holdings.append(result)

        holdings.sort(key=lambda h: h.current_value_usd, reverse=True)
        return holdings, len(priced_tokens), len(unpriced_tokens)

    async def _timed(self, coro, what: str) -> Decimal:
        """Await a price lookup with the per-lookup timeout; timeout -> 0."""
        try:
            price = await asyncio.wait_for(coro, timeout=self.config.price_fetch_timeout_seconds)
            return price.price_usd
        except asyncio.TimeoutError:
            logger.debug(f"[{self.name}] Price lookup timed out: {what}")
            return ZERO
        except Exception as e:
            logger.warning(f"[{self.name}] Price lookup failed for {what}: {e}")
            return ZERO

    async def _holding(
        self,
        token_address: str,
        transactions: list[Transaction],
        address: str,
        now: int,
        priced: bool,
    ) -> PortfolioHolding:
        first = transactions[0]
        if priced:
            info = await self.client.get_token_metadata(token_address)
            decimals = await self.decimals.resolve(token_address, first.value)
        else:
            decimals = first.token_decimal if first.token_decimal is not None else STANDARD_DECIMALS
            info = TokenInfo(
                address=token_address,
                symbol=first.token_symbol or "UNKNOWN",
                decimals=decimals,
            )

        balance = ZERO
        invested = ZERO
        purchased = ZERO
        for tx in transactions:
            amount = raw_to_decimal(tx.value, decimals)
            if tx.to_address == address:
                balance += amount
                purchased += amount
                if priced:
                    price = await self._timed(
                        self.client.get_historical_price(token_address, tx.timestamp),
                        f"{info.symbol}@{tx.timestamp}",
                    )
                    if price > 0:
                        invested += amount * price
            elif tx.from_address == address:
                balance -= amount

        if balance > MAX_SANE_BALANCE:
            logger.warning(f"[{self.name}] Suspicious balance for {info.symbol}: {balance}, zeroing")
            balance = ZERO

        current_price = ZERO
        if priced:
            current_price = await self._timed(
                self.client.get_current_price(token_address), f"{info.symbol}@now"
            )

        current_value = balance * current_price
        if current_value > MAX_SANE_VALUE_USD:
            logger.warning(f"[{self.name}] Suspicious value for {info.symbol}: ${current_value}, zeroing")
            return PortfolioHolding(
                token_address=token_address,
                token_symbol=info.symbol,
                token_name=info.name,
                balance=ZERO,
                current_value_usd=ZERO,
                average_buy_price_usd=ZERO,
                current_price_usd=ZERO,
                pnl=ZERO,
                pnl_percentage=ZERO,
                total_invested_usd=ZERO,
            )

        average_buy = invested / purchased if purchased > 0 else ZERO
        cost_basis = balance * average_buy
        pnl = current_value - cost_basis
        pnl_pct = pnl / cost_basis * 100 if cost_basis > 0 else ZERO

        return PortfolioHolding(
            token_address=token_address,
            token_symbol=info.symbol,
            token_name=info.name,
            balance=balance,
            current_value_usd=current_value,
            average_buy_price_usd=average_buy,
            current_price_usd=current_price,
            pnl=pnl,
            pnl_percentage=pnl_pct,
            total_invested_usd=cost_basis,
        )
