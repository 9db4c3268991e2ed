"""
Wallet Analytics Exceptions - Error taxonomy for chain clients and analysis.

Only two failure classes are fatal to a search:
- InvalidAddressError (raised before any network call)
- Exhausted-retry HTTP failures (APIRateLimitError / APIError)

Everything else is caught per item inside the aggregators and degraded
to a zero/absent value.
"""

from datetime import datetime
from typing import Any, Optional


class WalletAnalyticsError(Exception):
    """Base exception for all wallet analytics errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        code: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.chain = chain
        self.code = code
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.chain:
            parts.append(f"[chain={self.chain}]")
        if self.code:
            parts.append(f"[code={self.code}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class BlockchainClientError(WalletAnalyticsError):
    """Error raised by a chain client or its HTTP layer."""

    def __init__(
        self,
        message: str,
        code: str,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            chain=chain,
            code=code,
            original_error=original_error,
            context=context,
        )


class InvalidAddressError(BlockchainClientError):
    """Malformed wallet or contract address."""

    def __init__(
        self,
        address: str,
        chain: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Invalid address: {address}",
            code="INVALID_ADDRESS",
            chain=chain,
            context={"address": address},
        )
        self.address = address


class APIRateLimitError(BlockchainClientError):
    """Upstream kept answering 429 after all retries."""

    def __init__(
        self,
        chain: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        request_url: Optional[str] = None,
    ) -> None:
        message = "API rate limit exceeded"
        if retry_after_seconds is not None:
            message += f" (retry after {retry_after_seconds}s)"
        super().__init__(
            message,
            code="RATE_LIMIT",
            chain=chain,
            context={"retry_after_seconds": retry_after_seconds, "request_url": request_url},
        )
        self.retry_after_seconds = retry_after_seconds
        self.request_url = request_url


class APIError(BlockchainClientError):
    """Generic upstream failure (HTTP error status or error envelope)."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        status_code: Optional[int] = None,
        request_url: Optional[str] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            code="API_ERROR",
            chain=chain,
            original_error=original_error,
            context={
                "status_code": status_code,
                "request_url": request_url,
                "response_body": response_body[:500] if response_body else None,
            },
        )
        self.status_code = status_code
        self.request_url = request_url
        self.response_body = response_body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"{base} [status={self.status_code}]"
        return base


class ChainNotSupportedError(WalletAnalyticsError):
    """No client factory registered for the requested chain id."""

    def __init__(
        self,
        chain_id: int,
        supported_chain_ids: Optional[list[int]] = None,
    ) -> None:
        super().__init__(
            f"Chain id {chain_id} not supported",
            code="CHAIN_NOT_SUPPORTED",
            context={"supported_chain_ids": supported_chain_ids or []},
        )
        self.chain_id = chain_id
        self.supported_chain_ids = supported_chain_ids or []


class ConfigurationError(WalletAnalyticsError):
    """Invalid or missing configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONFIGURATION",
            context={"config_key": config_key},
        )
        self.config_key = config_key
