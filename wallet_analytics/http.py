"""
Retrying HTTP client for explorer and price APIs.

Every call carries a total timeout. Statuses in
`RetryConfig.retryable_statuses` are retried up to `max_retries`
additional times:
- 429: exponential backoff, base_delay × 2^attempt
- 5xx: flat base_delay

Exhausted retries raise APIRateLimitError (429) or APIError. Transport
exceptions (aiohttp.ClientError, asyncio.TimeoutError) are not HTTP
statuses and propagate unchanged.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from wallet_analytics.config import RetryConfig
from wallet_analytics.exceptions import APIError, APIRateLimitError


logger = logging.getLogger(__name__)


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


class HTTPClient:
    """
    Thin aiohttp wrapper with retry/backoff and a request counter.

    Usage:
        async with HTTPClient(chain_name="ethereum") as http:
            data = await http.get(url, params={"module": "account"})
    """

    def __init__(
        self,
        chain_name: Optional[str] = None,
        config: Optional[RetryConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.chain_name = chain_name
        self.config = config or RetryConfig()
        self._session = session
        self._owns_session = session is None
        self._request_count = 0

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def get(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """GET a JSON document."""
        return await self._request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        return await self._request("POST", url, json_body=body, headers=headers)

    @property
    def request_count(self) -> int:
        """Number of HTTP requests issued (retries included)."""
        return self._request_count

    def reset_request_count(self) -> None:
        self._request_count = 0

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                headers={
                    "Accept": "application/json",
                    "User-Agent": "wallet-analytics/1.0",
                },
            )
            self._owns_session = True
        return self._session

    def _backoff(self, status: int, attempt: int) -> float:
        if status == 429:
            return self.config.base_delay_seconds * (2 ** attempt)
        return self.config.base_delay_seconds

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        session = await self._get_session()
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):
            self._request_count += 1
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            ) as response:
                status = response.status

                if status < 400:
                    return await response.json(content_type=None)

                if status in self.config.retryable_statuses and attempt < max_retries:
                    delay = self._backoff(status, attempt)
                    logger.warning(
                        f"[http] {method} {url} returned {status}, "
                        f"retry {attempt + 1}/{max_retries} in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if status == 429:
                    raise APIRateLimitError(
                        chain=self.chain_name,
                        retry_after_seconds=_parse_retry_after(
                            response.headers.get("Retry-After")
                        ),
                        request_url=url,
                    )

                body = await response.text()
                raise APIError(
                    f"HTTP {status} from {method} {url}",
                    chain=self.chain_name,
                    status_code=status,
                    request_url=url,
                    response_body=body,
                )

        # range() always runs at least once and every branch returns or raises
        raise AssertionError("unreachable")

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HTTPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
