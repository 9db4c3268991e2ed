"""
Aggregators: pure computation over a transaction list plus a chain client.
"""

from wallet_analytics.aggregators.base import BaseAggregator
from wallet_analytics.aggregators.counterparty import CounterpartyAggregator, classify_interaction
from wallet_analytics.aggregators.portfolio import PortfolioAggregator, native_balance_wei
from wallet_analytics.aggregators.token_activity import TokenActivityAggregator
from wallet_analytics.aggregators.transaction_stats import (
    TransactionStatsAggregator,
    activity_frequency,
)
from wallet_analytics.aggregators.types import (
    ActivityFrequency,
    CounterpartyAnalysis,
    CounterpartyInteraction,
    Direction,
    ExchangeFlows,
    InteractionType,
    PortfolioAnalysis,
    PortfolioHolding,
    TokenActivityAnalysis,
    TokenActivitySummary,
    TokenPurchaseSummary,
    TokenSaleSummary,
    TransactionStats,
    WhaleAnalysis,
    WhaleTransaction,
)
from wallet_analytics.aggregators.whale import WhaleAggregator


__all__ = [
    "BaseAggregator",
    "PortfolioAggregator",
    "TokenActivityAggregator",
    "CounterpartyAggregator",
    "WhaleAggregator",
    "TransactionStatsAggregator",
    "classify_interaction",
    "activity_frequency",
    "native_balance_wei",
    "ActivityFrequency",
    "CounterpartyAnalysis",
    "CounterpartyInteraction",
    "Direction",
    "ExchangeFlows",
    "InteractionType",
    "PortfolioAnalysis",
    "PortfolioHolding",
    "TokenActivityAnalysis",
    "TokenActivitySummary",
    "TokenPurchaseSummary",
    "TokenSaleSummary",
    "TransactionStats",
    "WhaleAnalysis",
    "WhaleTransaction",
]
