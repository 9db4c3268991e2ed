"""
Whale Aggregator - Transfers at or above a USD threshold.

Exchange flow net = value sent to known exchanges minus value received
from them (positive suggests distribution, negative accumulation).
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from wallet_analytics.aggregators.base import BaseAggregator
from wallet_analytics.aggregators.types import (
    ZERO,
    Direction,
    ExchangeFlows,
    WhaleAnalysis,
    WhaleTransaction,
)
from wallet_analytics.labels import get_label, is_exchange
from wallet_analytics.models import TimeWindow, Transaction


logger = logging.getLogger(__name__)


DEFAULT_WHALE_THRESHOLD_USD = Decimal(100_000)


class WhaleAggregator(BaseAggregator):
    """Large-transfer detection."""

    name = "whale"

    def __init__(
        self,
        client,
        config=None,
        threshold_usd: Optional[Union[Decimal, float, int]] = None,
    ) -> None:
        super().__init__(client, config)
        if threshold_usd is None:
            threshold_usd = self.config.default_whale_threshold_usd
        self.threshold_usd = Decimal(str(threshold_usd))

    async def analyze(
        self,
        address: str,
        transactions: list[Transaction],
        window: Optional[TimeWindow] = None,
    ) -> WhaleAnalysis:
        address = address.lower()
        in_window = self.in_window(transactions, window)
        start, end = self.timeframe(transactions, window)
        logger.info(f"[{self.name}] Detecting transfers >= ${self.threshold_usd} for {address}")

        if in_window:
            await self.prefetch_prices(in_window)

        whales: list[WhaleTransaction] = []
        for tx in in_window:
            value_usd = await self.transaction_value_usd(tx)
            if value_usd < self.threshold_usd:
                continue
            try:
                whales.append(await self._whale(tx, address, value_usd))
            except Exception as e:
                logger.warning(f"[{self.name}] Could not describe {tx.hash}: {e}")

        whales.sort(key=lambda w: w.value_usd, reverse=True)
        total = sum((w.value_usd for w in whales), ZERO)

        return WhaleAnalysis(
            address=address,
            timeframe_start=start,
            timeframe_end=end,
            threshold_usd=self.threshold_usd,
            whale_transactions=whales,
            total_whale_value_usd=total,
            average_whale_transaction_usd=total / len(whales) if whales else ZERO,
            largest_transaction=whales[0] if whales else None,
            exchange_flows=self._exchange_flows(whales),
        )

    async def _whale(
        self,
        tx: Transaction,
        address: str,
        value_usd: Decimal,
    ) -> WhaleTransaction:
        direction = Direction.SENT if tx.from_address == address else Direction.RECEIVED
        counterparty = tx.to_address if direction == Direction.SENT else tx.from_address

        token_symbol = None
        token_address = None
        if tx.is_token:
            info = await self.client.get_token_metadata(tx.contract_address)
            amount = await self.token_amount(tx)
            token_symbol = info.symbol
            token_address = tx.contract_address
        else:
            amount = self.native_amount(tx)

        return WhaleTransaction(
            hash=tx.hash,
            timestamp=tx.timestamp,
            from_address=tx.from_address,
            to_address=tx.to_address,
            value_usd=value_usd,
            value_native=amount,
            kind=tx.kind.value,
            direction=direction,
            token_symbol=token_symbol,
            token_address=token_address,
            destination_label=get_label(counterparty),
        )

    @staticmethod
    def _exchange_flows(whales: list[WhaleTransaction]) -> ExchangeFlows:
        sent = ZERO
        received = ZERO
        for whale in whales:
            if whale.direction == Direction.SENT and is_exchange(whale.to_address):
                sent += whale.value_usd
            elif whale.direction == Direction.RECEIVED and is_exchange(whale.from_address):
                received += whale.value_usd
        return ExchangeFlows(sent_to_exchanges=sent, received_from_exchanges=received)
