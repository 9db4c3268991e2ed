"""
Price and metadata providers used by the chain clients.

Wire contracts:
- CryptoCompare pricehistorical: {SYMBOL: {CURRENCY: price}}
- DeFiLlama coins: {"coins": {"<chain>:<address>": {"price": ...}}}
- Moralis ERC20 price: {"usdPrice": ..., "nativePrice"?: {...}}
- Moralis ERC20 metadata: [{"symbol", "decimals", "name"}]

Providers return None when the upstream has no usable answer. HTTP
errors propagate; the chain client decides whether a layer failure is
fatal (it never is for prices).
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from wallet_analytics.http import HTTPClient


logger = logging.getLogger(__name__)


def to_positive_decimal(value: Any) -> Optional[Decimal]:
    """Decimal from an API number, or None if missing/non-positive."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


class CryptoCompareSource:
    """Symbol-keyed historical prices."""

    URL = "https://min-api.cryptocompare.com/data/pricehistorical"

    def __init__(self, http: HTTPClient, api_key: str = "demo") -> None:
        self._http = http
        self._api_key = api_key

    async def historical(
        self,
        symbol: str,
        currency: str,
        timestamp: int,
    ) -> Optional[Decimal]:
        params = {
            "fsym": symbol,
            "tsyms": currency,
            "ts": str(timestamp),
            "api_key": self._api_key,
        }
        response = await self._http.get(self.URL, params=params)
        if not isinstance(response, dict):
            return None
        if response.get("Response") == "Error":
            logger.debug(f"[cryptocompare] {symbol}/{currency}: {response.get('Message')}")
            return None
        return to_positive_decimal((response.get(symbol) or {}).get(currency))


class DefiLlamaSource:
    """Address-keyed prices (historical and current)."""

    HISTORICAL_URL = "https://coins.llama.fi/prices/historical"
    CURRENT_URL = "https://coins.llama.fi/prices/current"

    def __init__(self, http: HTTPClient) -> None:
        self._http = http

    @staticmethod
    def _extract(response: Any, coin_key: str) -> Optional[Decimal]:
        if not isinstance(response, dict):
            return None
        coin = (response.get("coins") or {}).get(coin_key) or {}
        return to_positive_decimal(coin.get("price"))

    async def historical(
        self,
        chain_slug: str,
        token_address: str,
        timestamp: int,
    ) -> Optional[Decimal]:
        """USD price of `chain_slug:token_address` at `timestamp`."""
        coin_key = f"{chain_slug}:{token_address}"
        response = await self._http.get(f"{self.HISTORICAL_URL}/{timestamp}/{coin_key}")
        return self._extract(response, coin_key)

    async def current(self, coin_key: str) -> Optional[Decimal]:
        """Current USD price for a coin key such as `coingecko:mantle`."""
        response = await self._http.get(f"{self.CURRENT_URL}/{coin_key}")
        return self._extract(response, coin_key)


class MoralisSource:
    """Token metadata and price by contract address. Needs an API key."""

    BASE_URL = "https://deep-index.moralis.io/api/v2.2/erc20"

    def __init__(self, http: HTTPClient, api_key: str = "") -> None:
        self._http = http
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"accept": "application/json", "X-API-Key": self._api_key}

    async def token_metadata(
        self,
        chain: str,
        token_address: str,
    ) -> Optional[dict[str, Any]]:
        """
        Fetch ERC20 metadata.

        Returns:
            {"symbol", "decimals", "name"} or None
        """
        if not self.enabled:
            return None
        response = await self._http.get(
            f"{self.BASE_URL}/metadata",
            params={"chain": chain, "addresses": token_address},
            headers=self._headers(),
        )
        if not isinstance(response, list) or not response:
            return None

        entry = response[0] or {}
        symbol = entry.get("symbol")
        if not symbol:
            return None
        try:
            decimals = int(entry.get("decimals") or 18)
        except (TypeError, ValueError):
            decimals = 18
        return {
            "symbol": str(symbol).upper(),
            "decimals": decimals,
            "name": entry.get("name"),
        }

    async def token_price_usd(
        self,
        chain: str,
        token_address: str,
        timestamp: int,
    ) -> Optional[Decimal]:
        if not self.enabled:
            return None
        to_date = datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
        response = await self._http.get(
            f"{self.BASE_URL}/{token_address}/price",
            params={"chain": chain, "to_date": to_date},
            headers=self._headers(),
        )
        if not isinstance(response, dict):
            return None
        return to_positive_decimal(response.get("usdPrice"))
