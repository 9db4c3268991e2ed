"""
Lisk Chain Client - Blockscout explorer, ETH native token (OP Stack L2).

Lisk's Blockscout rejects large offsets, so pages are 1000 rows and
paging stops once page × 1000 would exceed 10,000 rows.
"""

from decimal import Decimal
from typing import Any, Optional

from wallet_analytics.clients.blockscout import BlockscoutClient
from wallet_analytics.clients.ethereum import eth_price_fallback
from wallet_analytics.models import ChainSpec, TokenInfo


LISK_MAINNET = ChainSpec(
    chain_id=1135,
    name="Lisk",
    native_symbol="ETH",
    explorer_url="https://blockscout.lisk.com/api",
    block_time_seconds=2,
    data_source="Lisk Blockscout",
    rpc_url="https://rpc.api.lisk.com",
)

LISK_SEPOLIA = ChainSpec(
    chain_id=4202,
    name="Lisk Sepolia",
    native_symbol="ETH",
    explorer_url="https://sepolia-blockscout.lisk.com/api",
    block_time_seconds=2,
    data_source="Lisk Sepolia Blockscout",
    rpc_url="https://rpc.sepolia-api.lisk.com",
    is_testnet=True,
)


class LiskClient(BlockscoutClient):
    """Lisk mainnet/testnet client."""

    DEFILLAMA_CHAIN = "lisk"
    MORALIS_CHAIN = "lisk"

    PAGE_SIZE = 1000
    PROVIDER_LIMIT = 10_000

    KNOWN_TOKENS = {
        info.address: info
        for info in (
            TokenInfo("0x05d032ac25d322df992303dca074ee7392c117b9", "USDT", 6, "Tether USD"),
            TokenInfo("0xac485391eb2d7d88253a7f1ef18c37f4242d1a24", "LSK", 18, "Lisk"),
        )
    }
    WRAPPED_NATIVE_SYMBOLS = frozenset({"WETH"})
    SYMBOL_FALLBACK_USD = {"LSK": Decimal("1.0")}

    def __init__(self, spec: ChainSpec = LISK_MAINNET, rpc_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(spec, rpc_url=rpc_url, **kwargs)
        if rpc_url is None and not spec.is_testnet and self.config.lisk_rpc_url:
            self.rpc_url = self.config.lisk_rpc_url

    def native_price_fallback(self, timestamp: int) -> Decimal:
        return eth_price_fallback(timestamp)
