"""
Wallet Analytics Data Models - Normalized transactions, tokens and prices.

Transactions are immutable once fetched and live only for the duration
of one analysis call. Nothing here is persisted.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class TransactionKind(Enum):
    """Kind of transfer a transaction record describes."""
    NATIVE = "native"
    TOKEN = "token"


def _to_int(value: Any) -> int:
    """Parse an explorer integer field ("123", "0x7b", "", None)."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


@dataclass(frozen=True)
class Transaction:
    """
    Single native or token transfer, normalized from an explorer row.

    Addresses are stored lower-cased. Amount fields stay raw integers
    (wei / token base units); conversion happens in the aggregators.
    """
    block_number: int
    timestamp: int  # unix seconds
    hash: str
    from_address: str
    to_address: str
    value: int  # raw integer amount
    kind: TransactionKind
    gas_used: int = 0
    gas_price: int = 0
    contract_address: Optional[str] = None
    token_symbol: Optional[str] = None
    token_decimal: Optional[int] = None

    @property
    def is_native(self) -> bool:
        return self.kind == TransactionKind.NATIVE

    @property
    def is_token(self) -> bool:
        return self.kind == TransactionKind.TOKEN and bool(self.contract_address)

    @property
    def gas_fee_wei(self) -> int:
        """Gas cost in wei, exact integer arithmetic."""
        return self.gas_used * self.gas_price

    def with_gas(self, gas_used: int, gas_price: int) -> "Transaction":
        """Copy of this record carrying another transaction's gas fields."""
        return Transaction(
            block_number=self.block_number,
            timestamp=self.timestamp,
            hash=self.hash,
            from_address=self.from_address,
            to_address=self.to_address,
            value=self.value,
            kind=self.kind,
            gas_used=gas_used,
            gas_price=gas_price,
            contract_address=self.contract_address,
            token_symbol=self.token_symbol,
            token_decimal=self.token_decimal,
        )

    @classmethod
    def from_explorer(
        cls,
        row: dict[str, Any],
        kind: TransactionKind,
    ) -> "Transaction":
        """Build from an Etherscan/Blockscout `txlist` or `tokentx` row."""
        contract = row.get("contractAddress") or None
        token_decimal = row.get("tokenDecimal")
        return cls(
            block_number=_to_int(row.get("blockNumber")),
            timestamp=_to_int(row.get("timeStamp")),
            hash=str(row.get("hash", "")).lower(),
            from_address=str(row.get("from") or "").lower(),
            to_address=str(row.get("to") or "").lower(),
            value=_to_int(row.get("value")),
            kind=kind,
            gas_used=_to_int(row.get("gasUsed")),
            gas_price=_to_int(row.get("gasPrice")),
            contract_address=contract.lower() if contract else None,
            token_symbol=row.get("tokenSymbol") or None,
            token_decimal=_to_int(token_decimal) if token_decimal not in (None, "") else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "value": str(self.value),
            "kind": self.kind.value,
            "gas_used": self.gas_used,
            "gas_price": self.gas_price,
            "contract_address": self.contract_address,
            "token_symbol": self.token_symbol,
            "token_decimal": self.token_decimal,
        }


@dataclass(frozen=True)
class TokenInfo:
    """Token metadata (cached for 24 hours)."""
    address: str
    symbol: str
    decimals: int
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "name": self.name,
        }


@dataclass(frozen=True)
class TokenPrice:
    """Price of a token in USD and in the chain's native token."""
    price_usd: Decimal
    price_native: Decimal
    timestamp: int
    source: str = ""

    @classmethod
    def zero(cls, timestamp: int, source: str = "none") -> "TokenPrice":
        return cls(Decimal(0), Decimal(0), timestamp, source)

    def to_dict(self) -> dict[str, Any]:
        return {
            "price_usd": float(self.price_usd),
            "price_native": float(self.price_native),
            "timestamp": self.timestamp,
            "source": self.source,
        }


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive unix-seconds window. `None` bounds are open."""
    start: Optional[int] = None
    end: Optional[int] = None

    @classmethod
    def last_days(cls, days: Optional[int], now: Optional[int] = None) -> "TimeWindow":
        """Window covering the trailing `days` days (unbounded when None)."""
        if days is None:
            return cls()
        now = int(time.time()) if now is None else now
        return cls(start=now - days * 86400, end=now)

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, timestamp: int) -> bool:
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True


@dataclass(frozen=True)
class FetchOptions:
    """Typed request options for `get_transactions`."""
    window: TimeWindow = field(default_factory=TimeWindow)
    max_transactions: Optional[int] = None  # None = client config default


@dataclass(frozen=True)
class ChainSpec:
    """Static description of one chain variant (mainnet or testnet)."""
    chain_id: int
    name: str
    native_symbol: str
    explorer_url: str
    block_time_seconds: float
    data_source: str
    rpc_url: Optional[str] = None
    is_testnet: bool = False
