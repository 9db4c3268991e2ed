"""
Counterparty Aggregator - Who the wallet transacts with.

Classification by USD ratio sent/received (received of 0 counts as 1):
- ratio > 2   -> mostly_sent
- ratio < 0.5 -> mostly_received
- otherwise   -> balanced
"""

import logging
from decimal import Decimal
from typing import Optional

from wallet_analytics.aggregators.base import BaseAggregator
from wallet_analytics.aggregators.types import (
    ZERO,
    CounterpartyAnalysis,
    CounterpartyInteraction,
    InteractionType,
)
from wallet_analytics.labels import LabelCategory, get_category, get_label
from wallet_analytics.models import TimeWindow, Transaction


logger = logging.getLogger(__name__)


TOP_COUNTERPARTIES = 20
TOP_UNKNOWN = 10

MOSTLY_SENT_RATIO = Decimal(2)
MOSTLY_RECEIVED_RATIO = Decimal("0.5")


def classify_interaction(sent_usd: Decimal, received_usd: Decimal) -> InteractionType:
    if sent_usd == 0 and received_usd == 0:
        return InteractionType.BALANCED
    ratio = sent_usd / (received_usd or Decimal(1))
    if ratio > MOSTLY_SENT_RATIO:
        return InteractionType.MOSTLY_SENT
    if ratio < MOSTLY_RECEIVED_RATIO:
        return InteractionType.MOSTLY_RECEIVED
    return InteractionType.BALANCED


class CounterpartyAggregator(BaseAggregator):
    """Per-counterparty value flows with exchange/DeFi labelling."""

    name = "counterparty"

    async def analyze(
        self,
        address: str,
        transactions: list[Transaction],
        window: Optional[TimeWindow] = None,
    ) -> CounterpartyAnalysis:
        address = address.lower()
        in_window = self.in_window(transactions, window)
        start, end = self.timeframe(transactions, window)

        buckets: dict[str, tuple[list[Transaction], list[Transaction]]] = {}
        for tx in in_window:
            if tx.from_address == address and tx.to_address:
                counterparty, sent = tx.to_address, True
            elif tx.to_address == address and tx.from_address:
                counterparty, sent = tx.from_address, False
            else:
                continue
            if counterparty == address:
                continue

            sent_list, received_list = buckets.setdefault(counterparty, ([], []))
            (sent_list if sent else received_list).append(tx)

        if not buckets:
            return CounterpartyAnalysis(address=address, timeframe_start=start, timeframe_end=end)

        await self.prefetch_prices(in_window)

        interactions: list[CounterpartyInteraction] = []
        for counterparty, (sent_txs, received_txs) in buckets.items():
            interactions.append(
                await self._interaction(counterparty, sent_txs, received_txs)
            )

        interactions.sort(key=lambda i: i.num_transactions, reverse=True)
        logger.info(f"[{self.name}] {len(interactions)} unique counterparties for {address}")

        return CounterpartyAnalysis(
            address=address,
            timeframe_start=start,
            timeframe_end=end,
            top_counterparties=interactions[:TOP_COUNTERPARTIES],
            total_unique_counterparties=len(interactions),
            known_exchanges=[
                i for i in interactions if get_category(i.address) == LabelCategory.EXCHANGE
            ],
            known_defi_protocols=[
                i for i in interactions if get_category(i.address) == LabelCategory.DEFI
            ],
            unknown_addresses=[i for i in interactions if i.label is None][:TOP_UNKNOWN],
        )

    async def _interaction(
        self,
        counterparty: str,
        sent_txs: list[Transaction],
        received_txs: list[Transaction],
    ) -> CounterpartyInteraction:
        sent_usd = ZERO
        for tx in sent_txs:
            sent_usd += await self.transaction_value_usd(tx)

        received_usd = ZERO
        for tx in received_txs:
            received_usd += await self.transaction_value_usd(tx)

        timestamps = [tx.timestamp for tx in sent_txs + received_txs]
        return CounterpartyInteraction(
            address=counterparty,
            label=get_label(counterparty),
            num_transactions=len(sent_txs) + len(received_txs),
            total_value_sent_usd=sent_usd,
            total_value_received_usd=received_usd,
            first_interaction_timestamp=min(timestamps),
            last_interaction_timestamp=max(timestamps),
            interaction_type=classify_interaction(sent_usd, received_usd),
        )
