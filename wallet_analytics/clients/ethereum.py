"""
Ethereum Chain Client - Etherscan V2 with block-range pagination.

Etherscan V2 is a single multichain endpoint selected by `chainid`;
the same client serves mainnet and Sepolia.
"""

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from wallet_analytics.clients.base import BaseChainClient
from wallet_analytics.clients.pagination import BlockRangePaginator, estimate_start_block
from wallet_analytics.models import ChainSpec, FetchOptions, TokenInfo


logger = logging.getLogger(__name__)


V2_API_URL = "https://api.etherscan.io/v2/api"

ETHEREUM_MAINNET = ChainSpec(
    chain_id=1,
    name="Ethereum",
    native_symbol="ETH",
    explorer_url=V2_API_URL,
    block_time_seconds=12,
    data_source="Etherscan",
)

ETHEREUM_SEPOLIA = ChainSpec(
    chain_id=11155111,
    name="Ethereum Sepolia",
    native_symbol="ETH",
    explorer_url=V2_API_URL,
    block_time_seconds=12,
    data_source="Etherscan",
    is_testnet=True,
)


def _token(address: str, symbol: str, decimals: int, name: str) -> tuple[str, TokenInfo]:
    return address, TokenInfo(address=address, symbol=symbol, decimals=decimals, name=name)


def eth_price_fallback(timestamp: int) -> Decimal:
    """Date-bucketed ETH/USD constants."""
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    if date.year < 2024:
        return Decimal("1800")
    if date.year == 2024:
        return Decimal("2200") if date.month <= 6 else Decimal("2500")
    return Decimal("2000")


class EthereumClient(BaseChainClient):
    """
    Etherscan-backed client.

    Transactions are paged by block range: the start block is estimated
    from the current height and the average block time.
    """

    DEFILLAMA_CHAIN = "ethereum"
    MORALIS_CHAIN = "eth"

    KNOWN_TOKENS = dict([
        _token("0xdac17f958d2ee523a2206206994597c13d831ec7", "USDT", 6, "Tether USD"),
        _token("0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", "USDC", 6, "USD Coin"),
        _token("0x6b175474e89094c44da98b954eedeac495271d0f", "DAI", 18, "Dai Stablecoin"),
        _token("0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", "WETH", 18, "Wrapped Ether"),
        _token("0x2260fac5e5542a773aa44fbcfedf7c193bc2c599", "WBTC", 8, "Wrapped BTC"),
    ])
    WRAPPED_NATIVE_SYMBOLS = frozenset({"WETH"})

    # Fallback height extrapolation (mainnet)
    REFERENCE_BLOCK = 21_000_000
    REFERENCE_TIMESTAMP = 1_730_000_000
    AVERAGE_BLOCK_TIME = 12.05
    BLOCK_HEIGHT_BOUNDS = (15_000_000, 30_000_000)

    def __init__(self, spec: ChainSpec = ETHEREUM_MAINNET, **kwargs: Any) -> None:
        super().__init__(spec, **kwargs)
        self._paginator = BlockRangePaginator(
            self._fetch_page,
            page_size=self.config.etherscan_max_records,
            label=self._tag,
        )

    def _params(self, **params: str) -> dict[str, str]:
        params["chainid"] = str(self.chain_id)
        if self.config.etherscan_api_key:
            params["apikey"] = self.config.etherscan_api_key
        return params

    async def _fetch_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        query = self._params(module="account", **params)
        response = await self.http.get(self.spec.explorer_url, params=query)
        return self._unwrap_explorer_response(response, self.spec.explorer_url)

    async def _fetch_rows(
        self,
        action: str,
        address: str,
        options: FetchOptions,
        max_records: int,
    ) -> list[dict[str, Any]]:
        start_block = 0
        if options.window.start is not None:
            now = int(time.time())
            current = await self.get_current_block()
            start_block = estimate_start_block(
                current, options.window, self.AVERAGE_BLOCK_TIME, now
            )
            logger.debug(f"[{self._tag}] {action}: start block {start_block} (head {current})")

        return await self._paginator.fetch(
            action, address, start_block, options.window, max_records
        )

    # ─────────────────────────────────────────────────────────────
    # Block height
    # ─────────────────────────────────────────────────────────────

    def extrapolate_block(self, now: Optional[int] = None) -> int:
        """Deterministic height estimate from the reference block."""
        if self.spec.is_testnet:
            return 0
        now = int(time.time()) if now is None else now
        elapsed = max(0, now - self.REFERENCE_TIMESTAMP)
        return self.REFERENCE_BLOCK + int(elapsed / self.AVERAGE_BLOCK_TIME)

    def _plausible_height(self, height: int) -> bool:
        if self.spec.is_testnet:
            return height > 0
        low, high = self.BLOCK_HEIGHT_BOUNDS
        return low <= height <= high

    async def get_current_block(self) -> int:
        """Current block height, or the extrapolated estimate on failure."""
        try:
            response = await self.http.get(
                self.spec.explorer_url,
                params=self._params(module="proxy", action="eth_blockNumber"),
            )
            result = response.get("result") if isinstance(response, dict) else None
            height = int(result, 16)
            if self._plausible_height(height):
                return height
            logger.warning(f"[{self._tag}] Implausible block height {height}, extrapolating")
        except Exception as e:
            logger.warning(f"[{self._tag}] Block height query failed: {e}, extrapolating")

        return self.extrapolate_block()

    # ─────────────────────────────────────────────────────────────
    # Balance / prices
    # ─────────────────────────────────────────────────────────────

    async def get_native_balance(self, address: str) -> int:
        address = self.validate_address(address)
        response = await self.http.get(
            self.spec.explorer_url,
            params=self._params(module="account", action="balance", address=address, tag="latest"),
        )
        if isinstance(response, dict) and str(response.get("status")) == "1":
            return int(response.get("result") or 0)
        self._unwrap_explorer_response(response, self.spec.explorer_url)
        return 0

    def native_price_fallback(self, timestamp: int) -> Decimal:
        return eth_price_fallback(timestamp)
