"""
Chain Client Registry - Construct chain clients by chain id.

============================================================
USAGE
============================================================
```python
client = create_client(5000)                      # Mantle mainnet
client = create_client(1, config=AnalyticsConfig.from_env())

# Add a chain without editing any dispatch code
registry = get_default_registry()
registry.register(8453, partial(EthereumClient, BASE_SPEC))
```
============================================================
"""

import logging
from functools import partial
from typing import Callable, Optional

from wallet_analytics.cache import CacheRegistry
from wallet_analytics.clients.base import BaseChainClient
from wallet_analytics.clients.ethereum import ETHEREUM_MAINNET, ETHEREUM_SEPOLIA, EthereumClient
from wallet_analytics.clients.lisk import LISK_MAINNET, LISK_SEPOLIA, LiskClient
from wallet_analytics.clients.mantle import MANTLE_MAINNET, MANTLE_SEPOLIA, MantleClient
from wallet_analytics.config import AnalyticsConfig
from wallet_analytics.exceptions import ChainNotSupportedError
from wallet_analytics.http import HTTPClient


logger = logging.getLogger(__name__)


ClientFactory = Callable[..., BaseChainClient]


class ChainClientRegistry:
    """
    Chain id -> client factory map.

    A factory is any callable accepting `config`, `caches` and `http`
    keyword arguments and returning a BaseChainClient.
    """

    def __init__(self) -> None:
        self._factories: dict[int, ClientFactory] = {}

    def register(self, chain_id: int, factory: ClientFactory) -> None:
        if chain_id in self._factories:
            logger.warning(f"Chain id {chain_id} already registered, replacing")
        self._factories[chain_id] = factory
        logger.debug(f"Registered chain client factory for chain id {chain_id}")

    def unregister(self, chain_id: int) -> Optional[ClientFactory]:
        return self._factories.pop(chain_id, None)

    def is_supported(self, chain_id: int) -> bool:
        return chain_id in self._factories

    def list_chain_ids(self) -> list[int]:
        return sorted(self._factories)

    def create(
        self,
        chain_id: int,
        config: Optional[AnalyticsConfig] = None,
        caches: Optional[CacheRegistry] = None,
        http: Optional[HTTPClient] = None,
    ) -> BaseChainClient:
        """
        Create a client for `chain_id`.

        Raises:
            ChainNotSupportedError: No factory registered
        """
        factory = self._factories.get(chain_id)
        if factory is None:
            raise ChainNotSupportedError(chain_id, self.list_chain_ids())
        return factory(config=config, caches=caches, http=http)


def register_builtin_chains(registry: ChainClientRegistry) -> ChainClientRegistry:
    registry.register(ETHEREUM_MAINNET.chain_id, partial(EthereumClient, ETHEREUM_MAINNET))
    registry.register(ETHEREUM_SEPOLIA.chain_id, partial(EthereumClient, ETHEREUM_SEPOLIA))
    registry.register(MANTLE_MAINNET.chain_id, partial(MantleClient, MANTLE_MAINNET))
    registry.register(MANTLE_SEPOLIA.chain_id, partial(MantleClient, MANTLE_SEPOLIA))
    registry.register(LISK_MAINNET.chain_id, partial(LiskClient, LISK_MAINNET))
    registry.register(LISK_SEPOLIA.chain_id, partial(LiskClient, LISK_SEPOLIA))
    return registry


_default_registry: Optional[ChainClientRegistry] = None


def get_default_registry() -> ChainClientRegistry:
    """Get or create the default registry with the built-in chains."""
    global _default_registry
    if _default_registry is None:
        _default_registry = register_builtin_chains(ChainClientRegistry())
    return _default_registry


def create_client(
    chain_id: int,
    config: Optional[AnalyticsConfig] = None,
    caches: Optional[CacheRegistry] = None,
    http: Optional[HTTPClient] = None,
) -> BaseChainClient:
    """Create a chain client from the default registry."""
    return get_default_registry().create(chain_id, config=config, caches=caches, http=http)


def list_supported_chain_ids() -> list[int]:
    return get_default_registry().list_chain_ids()
