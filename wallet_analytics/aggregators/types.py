"""
Analysis Result Types - Typed outputs of the five aggregators.

All money values are Decimal (USD unless the name says otherwise).
`to_dict()` renders them as floats for the JSON envelope.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


ZERO = Decimal(0)


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class InteractionType(Enum):
    MOSTLY_SENT = "mostly_sent"
    MOSTLY_RECEIVED = "mostly_received"
    BALANCED = "balanced"


class Direction(Enum):
    SENT = "sent"
    RECEIVED = "received"


class ActivityFrequency(Enum):
    VERY_ACTIVE = "very_active"
    ACTIVE = "active"
    MODERATE = "moderate"
    LOW = "low"


# ============================================================
# PORTFOLIO
# ============================================================

@dataclass(frozen=True)
class PortfolioHolding:
    """
    One token position.

    Invariant: pnl = current_value_usd - total_invested_usd, where
    total_invested_usd is the cost basis of the *current* balance at the
    weighted-average buy price.
    """
    token_address: str
    token_symbol: str
    balance: Decimal
    current_value_usd: Decimal
    average_buy_price_usd: Decimal
    current_price_usd: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    total_invested_usd: Decimal
    percent_of_portfolio: Decimal = ZERO
    token_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_address": self.token_address,
            "token_symbol": self.token_symbol,
            "token_name": self.token_name,
            "balance": _num(self.balance),
            "current_value_usd": _num(self.current_value_usd),
            "average_buy_price_usd": _num(self.average_buy_price_usd),
            "current_price_usd": _num(self.current_price_usd),
            "pnl": _num(self.pnl),
            "pnl_percentage": _num(self.pnl_percentage),
            "percent_of_portfolio": _num(self.percent_of_portfolio),
            "total_invested_usd": _num(self.total_invested_usd),
        }


@dataclass(frozen=True)
class PortfolioAnalysis:
    """Native balance plus token holdings with cost basis and P&L."""
    address: str
    native_symbol: str
    native_balance: Decimal
    native_price_usd: Decimal
    native_value_usd: Decimal
    token_holdings: list[PortfolioHolding]
    total_portfolio_value_usd: Decimal
    total_invested_usd: Decimal
    total_pnl: Decimal
    total_pnl_percentage: Decimal
    num_tokens: int
    tokens_priced: int = 0
    tokens_skipped: int = 0
    top_holding_by_value: Optional[PortfolioHolding] = None
    most_profitable_holding: Optional[PortfolioHolding] = None
    # On-chain balance vs history-derived balance (None = not checked)
    onchain_native_balance: Optional[Decimal] = None
    unreconciled_native_balance: Optional[Decimal] = None

    @classmethod
    def empty(cls, address: str, native_symbol: str) -> "PortfolioAnalysis":
        return cls(
            address=address,
            native_symbol=native_symbol,
            native_balance=ZERO,
            native_price_usd=ZERO,
            native_value_usd=ZERO,
            token_holdings=[],
            total_portfolio_value_usd=ZERO,
            total_invested_usd=ZERO,
            total_pnl=ZERO,
            total_pnl_percentage=ZERO,
            num_tokens=0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "native_symbol": self.native_symbol,
            "native_balance": _num(self.native_balance),
            "native_price_usd": _num(self.native_price_usd),
            "native_value_usd": _num(self.native_value_usd),
            "token_holdings": [h.to_dict() for h in self.token_holdings],
            "total_portfolio_value_usd": _num(self.total_portfolio_value_usd),
            "total_invested_usd": _num(self.total_invested_usd),
            "total_pnl": _num(self.total_pnl),
            "total_pnl_percentage": _num(self.total_pnl_percentage),
            "num_tokens": self.num_tokens,
            "tokens_priced": self.tokens_priced,
            "tokens_skipped": self.tokens_skipped,
            "top_holding_by_value": (
                self.top_holding_by_value.to_dict() if self.top_holding_by_value else None
            ),
            "most_profitable_holding": (
                self.most_profitable_holding.to_dict() if self.most_profitable_holding else None
            ),
            "onchain_native_balance": _num(self.onchain_native_balance),
            "unreconciled_native_balance": _num(self.unreconciled_native_balance),
        }


# ============================================================
# TOKEN ACTIVITY
# ============================================================

@dataclass(frozen=True)
class TokenPurchaseSummary:
    """Received transfers of one token."""
    token_address: str
    token_symbol: str
    total_amount: Decimal
    total_spent_usd: Decimal
    current_value_usd: Decimal
    pnl: Decimal
    pnl_percentage: Decimal
    average_price_usd: Decimal
    current_price_usd: Decimal
    first_purchase_timestamp: int
    last_purchase_timestamp: int
    num_purchases: int
    token_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_address": self.token_address,
            "token_symbol": self.token_symbol,
            "token_name": self.token_name,
            "total_amount": _num(self.total_amount),
            "total_spent_usd": _num(self.total_spent_usd),
            "current_value_usd": _num(self.current_value_usd),
            "pnl": _num(self.pnl),
            "pnl_percentage": _num(self.pnl_percentage),
            "average_price_usd": _num(self.average_price_usd),
            "current_price_usd": _num(self.current_price_usd),
            "first_purchase_timestamp": self.first_purchase_timestamp,
            "last_purchase_timestamp": self.last_purchase_timestamp,
            "num_purchases": self.num_purchases,
        }


@dataclass(frozen=True)
class TokenSaleSummary:
    """Sent transfers of one token."""
    token_address: str
    token_symbol: str
    total_amount: Decimal
    total_received_usd: Decimal
    average_price_usd: Decimal
    first_sale_timestamp: int
    last_sale_timestamp: int
    num_sales: int
    token_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_address": self.token_address,
            "token_symbol": self.token_symbol,
            "token_name": self.token_name,
            "total_amount": _num(self.total_amount),
            "total_received_usd": _num(self.total_received_usd),
            "average_price_usd": _num(self.average_price_usd),
            "first_sale_timestamp": self.first_sale_timestamp,
            "last_sale_timestamp": self.last_sale_timestamp,
            "num_sales": self.num_sales,
        }


@dataclass(frozen=True)
class TokenActivitySummary:
    total_invested_usd: Decimal = ZERO
    current_portfolio_value_usd: Decimal = ZERO
    total_pnl: Decimal = ZERO
    total_pnl_percentage: Decimal = ZERO
    num_tokens_bought: int = 0
    num_tokens_sold: int = 0
    num_unique_tokens: int = 0
    most_profitable_token: Optional[TokenPurchaseSummary] = None
    biggest_loser_token: Optional[TokenPurchaseSummary] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_invested_usd": _num(self.total_invested_usd),
            "current_portfolio_value_usd": _num(self.current_portfolio_value_usd),
            "total_pnl": _num(self.total_pnl),
            "total_pnl_percentage": _num(self.total_pnl_percentage),
            "num_tokens_bought": self.num_tokens_bought,
            "num_tokens_sold": self.num_tokens_sold,
            "num_unique_tokens": self.num_unique_tokens,
            "most_profitable_token": (
                self.most_profitable_token.to_dict() if self.most_profitable_token else None
            ),
            "biggest_loser_token": (
                self.biggest_loser_token.to_dict() if self.biggest_loser_token else None
            ),
        }


@dataclass(frozen=True)
class TokenActivityAnalysis:
    address: str
    timeframe_start: int
    timeframe_end: int
    tokens_bought: list[TokenPurchaseSummary] = field(default_factory=list)
    tokens_sold: list[TokenSaleSummary] = field(default_factory=list)
    summary: TokenActivitySummary = field(default_factory=TokenActivitySummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "timeframe_start": self.timeframe_start,
            "timeframe_end": self.timeframe_end,
            "tokens_bought": [p.to_dict() for p in self.tokens_bought],
            "tokens_sold": [s.to_dict() for s in self.tokens_sold],
            "summary": self.summary.to_dict(),
        }


# ============================================================
# COUNTERPARTIES
# ============================================================

@dataclass(frozen=True)
class CounterpartyInteraction:
    address: str
    num_transactions: int
    total_value_sent_usd: Decimal
    total_value_received_usd: Decimal
    first_interaction_timestamp: int
    last_interaction_timestamp: int
    interaction_type: InteractionType
    label: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "label": self.label,
            "num_transactions": self.num_transactions,
            "total_value_sent_usd": _num(self.total_value_sent_usd),
            "total_value_received_usd": _num(self.total_value_received_usd),
            "first_interaction_timestamp": self.first_interaction_timestamp,
            "last_interaction_timestamp": self.last_interaction_timestamp,
            "interaction_type": self.interaction_type.value,
        }


@dataclass(frozen=True)
class CounterpartyAnalysis:
    address: str
    timeframe_start: int
    timeframe_end: int
    top_counterparties: list[CounterpartyInteraction] = field(default_factory=list)
    total_unique_counterparties: int = 0
    known_exchanges: list[CounterpartyInteraction] = field(default_factory=list)
    known_defi_protocols: list[CounterpartyInteraction] = field(default_factory=list)
    unknown_addresses: list[CounterpartyInteraction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "timeframe_start": self.timeframe_start,
            "timeframe_end": self.timeframe_end,
            "top_counterparties": [c.to_dict() for c in self.top_counterparties],
            "total_unique_counterparties": self.total_unique_counterparties,
            "known_exchanges": [c.to_dict() for c in self.known_exchanges],
            "known_defi_protocols": [c.to_dict() for c in self.known_defi_protocols],
            "unknown_addresses": [c.to_dict() for c in self.unknown_addresses],
        }


# ============================================================
# WHALES
# ============================================================

@dataclass(frozen=True)
class WhaleTransaction:
    hash: str
    timestamp: int
    from_address: str
    to_address: str
    value_usd: Decimal
    value_native: Decimal  # amount in the transferred asset's own units
    kind: str
    direction: Direction
    token_symbol: Optional[str] = None
    token_address: Optional[str] = None
    destination_label: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "timestamp": self.timestamp,
            "from": self.from_address,
            "to": self.to_address,
            "value_usd": _num(self.value_usd),
            "value_native": _num(self.value_native),
            "token_symbol": self.token_symbol,
            "token_address": self.token_address,
            "kind": self.kind,
            "direction": self.direction.value,
            "destination_label": self.destination_label,
        }


@dataclass(frozen=True)
class ExchangeFlows:
    sent_to_exchanges: Decimal = ZERO
    received_from_exchanges: Decimal = ZERO

    @property
    def net_exchange_flow(self) -> Decimal:
        """Positive = distribution to exchanges."""
        return self.sent_to_exchanges - self.received_from_exchanges

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent_to_exchanges": _num(self.sent_to_exchanges),
            "received_from_exchanges": _num(self.received_from_exchanges),
            "net_exchange_flow": _num(self.net_exchange_flow),
        }


@dataclass(frozen=True)
class WhaleAnalysis:
    address: str
    timeframe_start: int
    timeframe_end: int
    threshold_usd: Decimal
    whale_transactions: list[WhaleTransaction] = field(default_factory=list)
    total_whale_value_usd: Decimal = ZERO
    average_whale_transaction_usd: Decimal = ZERO
    largest_transaction: Optional[WhaleTransaction] = None
    exchange_flows: ExchangeFlows = field(default_factory=ExchangeFlows)

    @property
    def num_whale_transactions(self) -> int:
        return len(self.whale_transactions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "timeframe_start": self.timeframe_start,
            "timeframe_end": self.timeframe_end,
            "threshold_usd": _num(self.threshold_usd),
            "whale_transactions": [w.to_dict() for w in self.whale_transactions],
            "num_whale_transactions": self.num_whale_transactions,
            "total_whale_value_usd": _num(self.total_whale_value_usd),
            "average_whale_transaction_usd": _num(self.average_whale_transaction_usd),
            "largest_transaction": (
                self.largest_transaction.to_dict() if self.largest_transaction else None
            ),
            "exchange_flows": self.exchange_flows.to_dict(),
        }


# ============================================================
# TRANSACTION STATS
# ============================================================

@dataclass(frozen=True)
class TransactionStats:
    address: str
    timeframe_start: int
    timeframe_end: int
    total_transactions: int = 0
    native_transactions: int = 0
    token_transactions: int = 0
    transactions_sent: int = 0
    transactions_received: int = 0
    total_gas_spent_native: Decimal = ZERO
    total_gas_spent_usd: Decimal = ZERO
    average_gas_per_tx_usd: Decimal = ZERO
    first_transaction_timestamp: Optional[int] = None
    last_transaction_timestamp: Optional[int] = None
    account_age_days: int = 0
    account_age_blocks: int = 0
    transactions_per_day: Decimal = ZERO
    activity_frequency: ActivityFrequency = ActivityFrequency.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "timeframe_start": self.timeframe_start,
            "timeframe_end": self.timeframe_end,
            "total_transactions": self.total_transactions,
            "native_transactions": self.native_transactions,
            "token_transactions": self.token_transactions,
            "transactions_sent": self.transactions_sent,
            "transactions_received": self.transactions_received,
            "total_gas_spent_native": _num(self.total_gas_spent_native),
            "total_gas_spent_usd": _num(self.total_gas_spent_usd),
            "average_gas_per_tx_usd": _num(self.average_gas_per_tx_usd),
            "first_transaction_timestamp": self.first_transaction_timestamp,
            "last_transaction_timestamp": self.last_transaction_timestamp,
            "account_age_days": self.account_age_days,
            "account_age_blocks": self.account_age_blocks,
            "transactions_per_day": _num(self.transactions_per_day),
            "activity_frequency": self.activity_frequency.value,
        }
