"""
Mantle Chain Client - Blockscout explorer, MNT native token.

Pricing differences from Ethereum:
- WETH is priced as ETH/USD (not as the native token)
- MNT/USD falls back to DeFiLlama before the hard-coded constant
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from wallet_analytics.clients.blockscout import BlockscoutClient
from wallet_analytics.clients.ethereum import eth_price_fallback
from wallet_analytics.models import ChainSpec, TokenInfo, TokenPrice


logger = logging.getLogger(__name__)


MANTLE_MAINNET = ChainSpec(
    chain_id=5000,
    name="Mantle",
    native_symbol="MNT",
    explorer_url="https://explorer.mantle.xyz/api",
    block_time_seconds=2,
    data_source="Mantle Explorer (Blockscout)",
    rpc_url="https://rpc.mantle.xyz",
)

MANTLE_SEPOLIA = ChainSpec(
    chain_id=5003,
    name="Mantle Sepolia",
    native_symbol="MNT",
    explorer_url="https://explorer.sepolia.mantle.xyz/api",
    block_time_seconds=2,
    data_source="Mantle Sepolia Explorer (Blockscout)",
    rpc_url="https://rpc.sepolia.mantle.xyz",
    is_testnet=True,
)

MANTLE_COINGECKO_KEY = "coingecko:mantle"


def mnt_price_fallback(timestamp: int) -> Decimal:
    """Date-bucketed MNT/USD constants."""
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    if date.year < 2024:
        return Decimal("0.50")
    if date.year == 2024:
        return Decimal("0.70") if date.month <= 6 else Decimal("0.85")
    return Decimal("0.98")


class MantleClient(BlockscoutClient):
    """Mantle mainnet/testnet client."""

    DEFILLAMA_CHAIN = "mantle"
    MORALIS_CHAIN = "mantle"

    KNOWN_TOKENS = {
        info.address: info
        for info in (
            TokenInfo("0x09bc4e0d864854c6afb6eb9a9cdf58ac190d0df9", "USDC", 6, "USD Coin"),
            TokenInfo("0x201eba5cc46d216ce6dc03f6a759e8e766e956ae", "USDT", 6, "Tether USD"),
            TokenInfo("0xdeaddeaddeaddeaddeaddeaddeaddeaddead1111", "WETH", 18, "Wrapped Ether"),
        )
    }
    WRAPPED_NATIVE_SYMBOLS = frozenset({"WMNT"})

    def __init__(self, spec: ChainSpec = MANTLE_MAINNET, rpc_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(spec, rpc_url=rpc_url, **kwargs)
        if rpc_url is None and not spec.is_testnet and self.config.mantle_rpc_url:
            self.rpc_url = self.config.mantle_rpc_url

    def native_price_fallback(self, timestamp: int) -> Decimal:
        return mnt_price_fallback(timestamp)

    async def _fetch_native_price(self, timestamp: int) -> Optional[Decimal]:
        price = await super()._fetch_native_price(timestamp)
        if price is not None:
            return price
        try:
            return await self.defillama.current(MANTLE_COINGECKO_KEY)
        except Exception as e:
            logger.warning(f"[{self._tag}] DeFiLlama MNT price failed: {e}")
            return None

    async def _eth_usd(self, timestamp: int) -> Decimal:
        try:
            price = await self.cryptocompare.historical("ETH", "USD", timestamp)
        except Exception as e:
            logger.debug(f"[{self._tag}] ETH/USD lookup failed: {e}")
            price = None
        return price or eth_price_fallback(timestamp)

    async def _special_price(
        self,
        info: TokenInfo,
        timestamp: int,
        native_usd: Decimal,
    ) -> Optional[TokenPrice]:
        if info.symbol == "WETH":
            eth_usd = await self._eth_usd(timestamp)
            return self._from_usd(eth_usd, native_usd, timestamp, "eth-usd")
        return await super()._special_price(info, timestamp, native_usd)
