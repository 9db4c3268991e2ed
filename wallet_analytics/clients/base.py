"""
Base Chain Client - Shared interface and behaviour of every chain client.

All clients MUST:
- Validate addresses before any network call
- Merge native and token transfers by hash
- Resolve token metadata through cache -> known table -> provider -> fallback
- Resolve prices through the layered fallback chain, caching monthly
- Degrade price lookups to zero instead of failing the analysis
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from wallet_analytics.cache import CacheRegistry, CacheTTL, get_default_caches
from wallet_analytics.clients.pricing import (
    CryptoCompareSource,
    DefiLlamaSource,
    MoralisSource,
)
from wallet_analytics.config import AnalyticsConfig
from wallet_analytics.exceptions import (
    APIError,
    APIRateLimitError,
    InvalidAddressError,
)
from wallet_analytics.http import HTTPClient
from wallet_analytics.models import (
    ChainSpec,
    FetchOptions,
    TokenInfo,
    TokenPrice,
    Transaction,
    TransactionKind,
)


logger = logging.getLogger(__name__)


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

UNKNOWN_SYMBOL = "UNKNOWN"
DEFAULT_DECIMALS = 18

EMPTY_RESULT_MESSAGES = ("no transactions found", "no token transfers found")


def is_valid_address(address: Optional[str]) -> bool:
    return bool(address) and bool(ADDRESS_PATTERN.match(address))


def month_start(timestamp: int) -> int:
    """Unix timestamp of the first second of the UTC calendar month."""
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    first = date.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return int(first.timestamp())


def month_key(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-01")


def merge_transactions(
    native: list[Transaction],
    token: list[Transaction],
) -> list[Transaction]:
    """
    Merge native and token transfers.

    Token transfers inherit gas fields from the native transaction with
    the same hash. A zero-value native transaction whose hash also
    appears as a token transfer is the contract call behind that
    transfer and is dropped. Result is sorted by timestamp ascending.
    """
    native_by_hash = {tx.hash: tx for tx in native}
    token_hashes = {tx.hash for tx in token}

    merged: list[Transaction] = []
    for tx in native:
        if tx.hash in token_hashes and tx.value == 0:
            continue
        merged.append(tx)

    for tx in token:
        parent = native_by_hash.get(tx.hash)
        if parent is not None:
            tx = tx.with_gas(parent.gas_used, parent.gas_price)
        merged.append(tx)

    merged.sort(key=lambda t: t.timestamp)
    return merged


class BaseChainClient(ABC):
    """
    Abstract base class for all chain clients.

    Subclasses provide:
    1. _fetch_rows() - Paginated explorer rows for `txlist` / `tokentx`
    2. get_native_balance() - Live on-chain native balance in wei
    3. native_price_fallback() - Date-bucketed constant native price

    and may override the class-level tables (known tokens, stablecoins,
    provider chain slugs) or the pricing hooks.
    """

    # Provider identifiers
    DEFILLAMA_CHAIN: str = "ethereum"
    MORALIS_CHAIN: str = "eth"

    # Static tables
    KNOWN_TOKENS: dict[str, TokenInfo] = {}
    STABLECOINS = frozenset({"USDT", "USDC", "DAI"})
    WRAPPED_NATIVE_SYMBOLS: frozenset[str] = frozenset()
    SYMBOL_FALLBACK_USD: dict[str, Decimal] = {}

    def __init__(
        self,
        spec: ChainSpec,
        config: Optional[AnalyticsConfig] = None,
        caches: Optional[CacheRegistry] = None,
        http: Optional[HTTPClient] = None,
    ) -> None:
        self.spec = spec
        self.config = config or AnalyticsConfig()
        self.caches = caches or get_default_caches()
        self._owns_http = http is None
        self.http = http or HTTPClient(chain_name=spec.name, config=self.config.retry)

        self.cryptocompare = CryptoCompareSource(self.http, self.config.cryptocompare_api_key)
        self.defillama = DefiLlamaSource(self.http)
        self.moralis = MoralisSource(self.http, self.config.moralis_api_key)

    # ─────────────────────────────────────────────────────────────
    # Static properties
    # ─────────────────────────────────────────────────────────────

    @property
    def chain_id(self) -> int:
        return self.spec.chain_id

    @property
    def chain_name(self) -> str:
        return self.spec.name

    @property
    def native_token_symbol(self) -> str:
        return self.spec.native_symbol

    @property
    def block_time_seconds(self) -> float:
        return self.spec.block_time_seconds

    @property
    def data_source(self) -> str:
        return self.spec.data_source

    @property
    def request_count(self) -> int:
        return self.http.request_count

    @property
    def _tag(self) -> str:
        return self.spec.name.lower().replace(" ", "-")

    # ─────────────────────────────────────────────────────────────
    # Abstract hooks
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def _fetch_rows(
        self,
        action: str,
        address: str,
        options: FetchOptions,
        max_records: int,
    ) -> list[dict[str, Any]]:
        """
        Fetch explorer rows for one action, filtered to the time window.

        Args:
            action: "txlist" (native) or "tokentx" (token transfers)
            address: Validated, lower-case wallet address
            options: Fetch options
            max_records: Row cap for this action
        """
        pass

    @abstractmethod
    async def get_native_balance(self, address: str) -> int:
        """Live native balance in wei."""
        pass

    @abstractmethod
    def native_price_fallback(self, timestamp: int) -> Decimal:
        """Constant native/USD price used when every source fails."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────

    def validate_address(self, address: str) -> str:
        """Return the lower-cased address or raise InvalidAddressError."""
        if not is_valid_address(address):
            raise InvalidAddressError(address, chain=self.chain_name)
        return address.lower()

    async def get_transactions(
        self,
        address: str,
        options: Optional[FetchOptions] = None,
    ) -> list[Transaction]:
        """
        Fetch native and token transfers for an address.

        Raises:
            InvalidAddressError: Malformed address (before any request)
            APIRateLimitError / APIError: Upstream failure after retries
        """
        address = self.validate_address(address)
        options = options or FetchOptions()
        cap = options.max_transactions or self.config.max_transactions_per_address

        native_rows = await self._fetch_rows("txlist", address, options, cap)
        token_rows = await self._fetch_rows("tokentx", address, options, cap)

        native = [Transaction.from_explorer(r, TransactionKind.NATIVE) for r in native_rows]
        token = [Transaction.from_explorer(r, TransactionKind.TOKEN) for r in token_rows]

        merged = merge_transactions(native, token)
        logger.info(
            f"[{self._tag}] {address}: {len(native)} native + {len(token)} token "
            f"-> {len(merged)} transactions"
        )

        if len(merged) > cap:
            logger.warning(
                f"[{self._tag}] {address}: {len(merged)} transactions exceeds cap {cap}, truncating"
            )
            merged = merged[:cap]

        return merged

    def _unwrap_explorer_response(self, response: Any, url: str) -> list[dict[str, Any]]:
        """
        Unwrap an Etherscan-compatible {status, message, result} envelope.

        Empty-result messages mean an empty page; any other non-"1"
        status is an APIError.
        """
        if not isinstance(response, dict):
            raise APIError(
                "Unexpected explorer response",
                chain=self.chain_name,
                request_url=url,
                response_body=str(response),
            )

        status = str(response.get("status", "0"))
        message = str(response.get("message", ""))
        result = response.get("result")

        if status == "1" and isinstance(result, list):
            return result

        lowered = message.lower()
        if any(empty in lowered for empty in EMPTY_RESULT_MESSAGES):
            return []
        if isinstance(result, list) and not result and lowered in ("ok", ""):
            return []

        detail = result if isinstance(result, str) else message
        if "rate limit" in str(detail).lower():
            raise APIRateLimitError(chain=self.chain_name, request_url=url)

        raise APIError(
            f"Explorer error: {detail or 'unknown'}",
            chain=self.chain_name,
            request_url=url,
            response_body=str(response),
        )

    # ─────────────────────────────────────────────────────────────
    # Token Metadata
    # ─────────────────────────────────────────────────────────────

    def _token_info_key(self, token_address: str) -> str:
        return f"token_info_{self.chain_id}_{token_address}"

    async def get_token_metadata(self, token_address: str) -> TokenInfo:
        """Resolve token metadata; never raises for upstream failures."""
        token_address = token_address.lower()
        cache_key = self._token_info_key(token_address)

        cached = self.caches.token_info.get(cache_key)
        if cached is not None:
            return cached

        info = self.KNOWN_TOKENS.get(token_address)

        if info is None:
            try:
                meta = await self.moralis.token_metadata(self.MORALIS_CHAIN, token_address)
            except Exception as e:
                logger.warning(f"[{self._tag}] Metadata lookup failed for {token_address}: {e}")
                meta = None
            if meta:
                info = TokenInfo(
                    address=token_address,
                    symbol=meta["symbol"],
                    decimals=meta["decimals"],
                    name=meta.get("name"),
                )

        if info is None:
            info = TokenInfo(
                address=token_address,
                symbol=UNKNOWN_SYMBOL,
                decimals=DEFAULT_DECIMALS,
            )

        self.caches.token_info.set(cache_key, info, CacheTTL.TOKEN_INFO)
        return info

    # ─────────────────────────────────────────────────────────────
    # Prices
    # ─────────────────────────────────────────────────────────────

    def _failed_key(self, token_address: str) -> str:
        return f"failed_{self.chain_id}_{token_address}"

    async def get_native_token_price(self, timestamp: int) -> Decimal:
        """Native/USD price for the calendar month of `timestamp`."""
        cache_key = f"native_{self.native_token_symbol}_USD_{month_key(timestamp)}"
        cached = self.caches.prices.get(cache_key)
        if cached is not None:
            return cached

        price = await self._fetch_native_price(month_start(timestamp))
        if price is not None:
            self.caches.prices.set(cache_key, price, CacheTTL.PRICE_MONTHLY)
            return price

        fallback = self.native_price_fallback(timestamp)
        logger.warning(
            f"[{self._tag}] Native price unavailable, using fallback "
            f"{self.native_token_symbol}=${fallback}"
        )
        # Short TTL so the real price is retried soon
        self.caches.prices.set(cache_key, fallback, CacheTTL.PRICE_CURRENT)
        return fallback

    async def _fetch_native_price(self, timestamp: int) -> Optional[Decimal]:
        try:
            return await self.cryptocompare.historical(
                self.native_token_symbol, "USD", timestamp
            )
        except Exception as e:
            logger.warning(f"[{self._tag}] CryptoCompare native price failed: {e}")
            return None

    async def get_historical_price(self, token_address: str, timestamp: int) -> TokenPrice:
        """
        Price of a token for the calendar month of `timestamp`.

        Cached per (chain, symbol, month, address). Tokens for which all
        layers fail are parked in the failed-token cache and priced at 0.
        """
        token_address = token_address.lower()
        if self.caches.failed_tokens.has(self._failed_key(token_address)):
            return TokenPrice.zero(timestamp, source="failed-cache")

        info = await self.get_token_metadata(token_address)
        bucket = month_start(timestamp)
        cache_key = f"{self.chain_id}_{info.symbol}_{month_key(timestamp)}_{token_address}"

        cached = self.caches.prices.get(cache_key)
        if cached is not None:
            return cached

        price = await self._resolve_price(info, timestamp, month=bucket)
        if price is None:
            return self._mark_failed(info, timestamp)

        self.caches.prices.set(cache_key, price, CacheTTL.PRICE_MONTHLY)
        return price

    async def get_current_price(self, token_address: str) -> TokenPrice:
        """Latest price, cached per hour for five minutes."""
        token_address = token_address.lower()
        now = int(time.time())
        if self.caches.failed_tokens.has(self._failed_key(token_address)):
            return TokenPrice.zero(now, source="failed-cache")

        cache_key = f"current_{self.chain_id}_{token_address}_{now // 3600}"
        cached = self.caches.prices.get(cache_key)
        if cached is not None:
            return cached

        info = await self.get_token_metadata(token_address)
        price = await self._resolve_price(info, now)
        if price is None:
            return self._mark_failed(info, now)

        self.caches.prices.set(cache_key, price, CacheTTL.PRICE_CURRENT)
        return price

    def _mark_failed(self, info: TokenInfo, timestamp: int) -> TokenPrice:
        logger.warning(f"[{self._tag}] No price for {info.symbol} ({info.address}), marking failed")
        self.caches.failed_tokens.set(
            self._failed_key(info.address), True, CacheTTL.FAILED_TOKEN
        )
        return TokenPrice.zero(timestamp, source="failed")

    def _from_native(self, price_native: Decimal, native_usd: Decimal, ts: int, source: str) -> TokenPrice:
        return TokenPrice(price_native * native_usd, price_native, ts, source)

    def _from_usd(self, price_usd: Decimal, native_usd: Decimal, ts: int, source: str) -> TokenPrice:
        price_native = price_usd / native_usd if native_usd > 0 else Decimal(0)
        return TokenPrice(price_usd, price_native, ts, source)

    async def _special_price(
        self,
        info: TokenInfo,
        timestamp: int,
        native_usd: Decimal,
    ) -> Optional[TokenPrice]:
        """Hard-coded layer: stablecoins and wrapped native."""
        if info.symbol in self.STABLECOINS:
            return self._from_usd(Decimal(1), native_usd, timestamp, "stablecoin")
        if info.symbol in self.WRAPPED_NATIVE_SYMBOLS:
            return TokenPrice(native_usd, Decimal(1), timestamp, "wrapped-native")
        return None

    async def _resolve_price(
        self,
        info: TokenInfo,
        timestamp: int,
        month: Optional[int] = None,
    ) -> Optional[TokenPrice]:
        """
        Run the layered price chain. First positive price wins.

        CryptoCompare and the native rate are read at `month` (defaults to
        `timestamp`); DefiLlama and Moralis at the exact `timestamp`.
        """
        month = timestamp if month is None else month
        native_usd = await self.get_native_token_price(month)

        special = await self._special_price(info, month, native_usd)
        if special is not None:
            return special

        if info.symbol != UNKNOWN_SYMBOL:
            try:
                price_native = await self.cryptocompare.historical(
                    info.symbol, self.native_token_symbol, month
                )
                if price_native:
                    return self._from_native(price_native, native_usd, month, "cryptocompare")
            except Exception as e:
                logger.debug(f"[{self._tag}] CryptoCompare failed for {info.symbol}: {e}")

        try:
            price_usd = await self.defillama.historical(self.DEFILLAMA_CHAIN, info.address, timestamp)
            if price_usd:
                return self._from_usd(price_usd, native_usd, timestamp, "defillama")
        except Exception as e:
            logger.debug(f"[{self._tag}] DeFiLlama failed for {info.address}: {e}")

        try:
            price_usd = await self.moralis.token_price_usd(self.MORALIS_CHAIN, info.address, timestamp)
            if price_usd:
                return self._from_usd(price_usd, native_usd, timestamp, "moralis")
        except Exception as e:
            logger.debug(f"[{self._tag}] Moralis failed for {info.address}: {e}")

        fallback = self.SYMBOL_FALLBACK_USD.get(info.symbol)
        if fallback is not None:
            return self._from_usd(fallback, native_usd, month, "fallback")

        return None

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_http:
            await self.http.close()

    async def __aenter__(self) -> "BaseChainClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain_id={self.chain_id}, name={self.chain_name!r})"
