"""
Test doubles for wallet analytics.

- FakeResponse / FakeSession: aiohttp-shaped session driven by a handler
- FakeChainClient: chain client with scripted metadata, prices and balance
- make_native / make_token: Transaction builders
"""

from decimal import Decimal
from typing import Any, Callable, Optional, Union

from wallet_analytics.cache import CacheRegistry
from wallet_analytics.clients.base import BaseChainClient
from wallet_analytics.config import AnalyticsConfig, RetryConfig
from wallet_analytics.http import HTTPClient
from wallet_analytics.models import (
    ChainSpec,
    FetchOptions,
    TokenInfo,
    TokenPrice,
    Transaction,
    TransactionKind,
)


WALLET = "0x" + "a" * 40
OTHER = "0x" + "b" * 40
THIRD = "0x" + "c" * 40
TOKEN_A = "0x" + "1" * 40
TOKEN_B = "0x" + "2" * 40

# 2024-03-15 00:00:00 UTC
MARCH_2024 = 1_710_460_800
DAY = 86_400

WEI = 10 ** 18


# ============================================================
# HTTP
# ============================================================

class FakeResponse:
    """Async context manager standing in for aiohttp.ClientResponse."""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        headers: Optional[dict[str, str]] = None,
        text: str = "",
    ) -> None:
        self.status = status
        self.payload = payload
        self.headers = headers or {}
        self._text = text

    async def json(self, content_type: Optional[str] = None) -> Any:
        return self.payload

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False


Handler = Callable[[str, str, dict[str, Any], Any], Union[FakeResponse, Exception, Any]]


class FakeSession:
    """
    Records every request and answers through `handler`.

    The handler may return a FakeResponse, an exception (raised), or a
    plain payload (wrapped in a 200 response).
    """

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    @classmethod
    def sequence(cls, responses: list[Union[FakeResponse, Exception]]) -> "FakeSession":
        """Answer in order; the last response repeats."""
        remaining = list(responses)

        def handler(method, url, params, body):
            return remaining.pop(0) if len(remaining) > 1 else remaining[0]

        return cls(handler)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({
            "method": method,
            "url": url,
            "params": dict(params or {}),
            "json": json,
            "headers": headers,
            "timeout": timeout,
        })
        result = self.handler(method, url, dict(params or {}), json)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, FakeResponse):
            return result
        return FakeResponse(200, result)

    async def close(self) -> None:
        self.closed = True


def fake_http(handler: Handler, chain_name: str = "test") -> tuple[HTTPClient, FakeSession]:
    """HTTPClient over a FakeSession with zero retry delay."""
    session = FakeSession(handler)
    http = HTTPClient(
        chain_name=chain_name,
        config=RetryConfig(base_delay_seconds=0),
        session=session,
    )
    return http, session


# ============================================================
# TRANSACTIONS
# ============================================================

_counter = {"n": 0}


def _next_hash() -> str:
    _counter["n"] += 1
    return "0x" + format(_counter["n"], "064x")


def make_native(
    from_address: str,
    to_address: str,
    value: int,
    timestamp: int = MARCH_2024,
    gas_used: int = 21_000,
    gas_price: int = 10 ** 9,
    tx_hash: Optional[str] = None,
) -> Transaction:
    return Transaction(
        block_number=1,
        timestamp=timestamp,
        hash=tx_hash or _next_hash(),
        from_address=from_address,
        to_address=to_address,
        value=value,
        kind=TransactionKind.NATIVE,
        gas_used=gas_used,
        gas_price=gas_price,
    )


def make_token(
    from_address: str,
    to_address: str,
    value: int,
    token: str = TOKEN_A,
    timestamp: int = MARCH_2024,
    symbol: Optional[str] = "TKA",
    decimals: Optional[int] = 18,
    tx_hash: Optional[str] = None,
    gas_used: int = 0,
    gas_price: int = 0,
) -> Transaction:
    return Transaction(
        block_number=1,
        timestamp=timestamp,
        hash=tx_hash or _next_hash(),
        from_address=from_address,
        to_address=to_address,
        value=value,
        kind=TransactionKind.TOKEN,
        gas_used=gas_used,
        gas_price=gas_price,
        contract_address=token,
        token_symbol=symbol,
        token_decimal=decimals,
    )


# ============================================================
# CHAIN CLIENT
# ============================================================

FAKE_SPEC = ChainSpec(
    chain_id=999,
    name="Testnet",
    native_symbol="ETH",
    explorer_url="https://explorer.invalid/api",
    block_time_seconds=12,
    data_source="Fake Explorer",
)


class FakeChainClient(BaseChainClient):
    """
    Chain client with scripted answers.

    - tokens: address -> TokenInfo (missing = UNKNOWN/18)
    - prices: address -> historical USD price (missing = 0)
    - current_prices: address -> current USD price (missing = historical)
    - native_price: native/USD for every month
    - native_balance: live balance in wei, or an exception to raise
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        tokens: Optional[dict[str, TokenInfo]] = None,
        prices: Optional[dict[str, Any]] = None,
        current_prices: Optional[dict[str, Any]] = None,
        native_price: Any = 2000,
        native_balance: Union[int, Exception, None] = 0,
        config: Optional[AnalyticsConfig] = None,
    ) -> None:
        super().__init__(FAKE_SPEC, config=config or AnalyticsConfig(), caches=CacheRegistry())
        self.transactions = list(transactions or [])
        self.tokens = tokens or {}
        self.prices = {k: Decimal(str(v)) for k, v in (prices or {}).items()}
        self.current_prices = {k: Decimal(str(v)) for k, v in (current_prices or {}).items()}
        self.native_price = Decimal(str(native_price))
        self.native_balance = native_balance

        self.fetch_calls: list[tuple[str, FetchOptions]] = []
        self.metadata_calls: list[str] = []
        self.historical_calls: list[tuple[str, int]] = []
        self.current_calls: list[str] = []

    async def _fetch_rows(self, action, address, options, max_records):
        return []

    async def get_transactions(self, address, options=None):
        address = self.validate_address(address)
        self.fetch_calls.append((address, options or FetchOptions()))
        return list(self.transactions)

    async def get_native_balance(self, address: str) -> int:
        if isinstance(self.native_balance, Exception):
            raise self.native_balance
        return self.native_balance

    def native_price_fallback(self, timestamp: int) -> Decimal:
        return Decimal(2000)

    async def get_token_metadata(self, token_address: str) -> TokenInfo:
        self.metadata_calls.append(token_address)
        return self.tokens.get(
            token_address, TokenInfo(address=token_address, symbol="UNKNOWN", decimals=18)
        )

    async def get_native_token_price(self, timestamp: int) -> Decimal:
        return self.native_price

    async def get_historical_price(self, token_address: str, timestamp: int) -> TokenPrice:
        self.historical_calls.append((token_address, timestamp))
        price = self.prices.get(token_address, Decimal(0))
        return TokenPrice(price, Decimal(0), timestamp, "fake")

    async def get_current_price(self, token_address: str) -> TokenPrice:
        self.current_calls.append(token_address)
        price = self.current_prices.get(token_address, self.prices.get(token_address, Decimal(0)))
        return TokenPrice(price, Decimal(0), 0, "fake")
