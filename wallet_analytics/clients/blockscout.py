"""
Blockscout-backed chain client (page/offset pagination, JSON-RPC balance).

Blockscout exposes an Etherscan-compatible `module=account` API but
ignores block-range parameters, so the time window is applied after
fetching.
"""

import logging
from typing import Any, Optional

from wallet_analytics.clients.base import BaseChainClient
from wallet_analytics.clients.pagination import PageOffsetPaginator
from wallet_analytics.exceptions import APIError
from wallet_analytics.models import ChainSpec, FetchOptions


logger = logging.getLogger(__name__)


class BlockscoutClient(BaseChainClient):
    """
    Base for chains indexed by Blockscout.

    Subclasses set PAGE_SIZE / PROVIDER_LIMIT when the explorer needs
    smaller pages than `config.blockscout_max_records`.
    """

    PAGE_SIZE: Optional[int] = None
    PROVIDER_LIMIT: Optional[int] = 10_000

    def __init__(self, spec: ChainSpec, rpc_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(spec, **kwargs)
        self.rpc_url = rpc_url or spec.rpc_url
        self._paginator = PageOffsetPaginator(
            self._fetch_page,
            page_size=self.PAGE_SIZE or self.config.blockscout_max_records,
            provider_limit=self.PROVIDER_LIMIT,
            label=self._tag,
        )

    async def _fetch_page(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        query = {"module": "account", **params}
        response = await self.http.get(self.spec.explorer_url, params=query)
        return self._unwrap_explorer_response(response, self.spec.explorer_url)

    async def _fetch_rows(
        self,
        action: str,
        address: str,
        options: FetchOptions,
        max_records: int,
    ) -> list[dict[str, Any]]:
        return await self._paginator.fetch(action, address, options.window, max_records)

    async def get_native_balance(self, address: str) -> int:
        """`eth_getBalance` at `latest` through the chain's JSON-RPC endpoint."""
        address = self.validate_address(address)
        if not self.rpc_url:
            raise APIError("No RPC endpoint configured", chain=self.chain_name)

        response = await self.http.post(
            self.rpc_url,
            body={
                "jsonrpc": "2.0",
                "method": "eth_getBalance",
                "params": [address, "latest"],
                "id": 1,
            },
            headers={"Content-Type": "application/json"},
        )
        if not isinstance(response, dict) or "result" not in response:
            error = response.get("error") if isinstance(response, dict) else response
            raise APIError(
                f"eth_getBalance failed: {error}",
                chain=self.chain_name,
                request_url=self.rpc_url,
                response_body=str(response),
            )
        return int(response["result"], 16)
