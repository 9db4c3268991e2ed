"""
Chain clients: one implementation per chain, created by chain id.
"""

from wallet_analytics.clients.base import (
    BaseChainClient,
    is_valid_address,
    merge_transactions,
    month_key,
    month_start,
)
from wallet_analytics.clients.blockscout import BlockscoutClient
from wallet_analytics.clients.ethereum import ETHEREUM_MAINNET, ETHEREUM_SEPOLIA, EthereumClient
from wallet_analytics.clients.lisk import LISK_MAINNET, LISK_SEPOLIA, LiskClient
from wallet_analytics.clients.mantle import MANTLE_MAINNET, MANTLE_SEPOLIA, MantleClient
from wallet_analytics.clients.registry import (
    ChainClientRegistry,
    create_client,
    get_default_registry,
    list_supported_chain_ids,
)


__all__ = [
    "BaseChainClient",
    "BlockscoutClient",
    "EthereumClient",
    "MantleClient",
    "LiskClient",
    "ETHEREUM_MAINNET",
    "ETHEREUM_SEPOLIA",
    "MANTLE_MAINNET",
    "MANTLE_SEPOLIA",
    "LISK_MAINNET",
    "LISK_SEPOLIA",
    "ChainClientRegistry",
    "create_client",
    "get_default_registry",
    "list_supported_chain_ids",
    "is_valid_address",
    "merge_transactions",
    "month_key",
    "month_start",
]
