"""Async HTTP client utilities with connection pooling for the translation API."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

logger = structlog.get_logger(__name__)


class HTTPClientConfig:
    """Configuration for async HTTP clients."""

    def __init__(
        self,
        base_url: str = "",
        timeout: float | None = None,
        max_keepalive_connections: int = 10,
        max_connections: int = 20,
        keepalive_expiry: float = 30.0,
        user_agent: str = "translator-client/1.0",
    ) -> None:
        """Initialize HTTP client configuration.

        Args:
            base_url: Origin every relative request URL is resolved against
            timeout: Request timeout in seconds, None disables the timeout
            max_keepalive_connections: Maximum number of keepalive connections
            max_connections: Maximum total connections
            keepalive_expiry: Keepalive timeout in seconds
            user_agent: User agent string for requests
        """
        self.base_url = base_url
        self.timeout = timeout
        self.max_keepalive_connections = max_keepalive_connections
        self.max_connections = max_connections
        self.keepalive_expiry = keepalive_expiry
        self.user_agent = user_agent


class AsyncHTTPClientFactory:
    """Factory for creating configured async HTTP clients."""

    def __init__(
        self,
        config: HTTPClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client factory.

        Args:
            config: Optional configuration, uses defaults if not provided
            transport: Optional transport override (used by tests to fake the server)
        """
        self.config = config or HTTPClientConfig()
        self.transport = transport
        self._httpx_client: httpx.AsyncClient | None = None

    @asynccontextmanager
    async def get_httpx_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Get or create an httpx async client.

        Yields:
            Configured httpx async client
        """
        if self._httpx_client is None:
            self._httpx_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout),
                limits=httpx.Limits(
                    max_keepalive_connections=self.config.max_keepalive_connections,
                    max_connections=self.config.max_connections,
                    keepalive_expiry=self.config.keepalive_expiry,
                ),
                headers={"User-Agent": self.config.user_agent},
                transport=self.transport,
            )
        try:
            yield self._httpx_client
        except Exception as e:
            logger.error("Error with httpx client", error=str(e))
            raise

    async def close(self) -> None:
        """Close the pooled HTTP client."""
        if self._httpx_client:
            await self._httpx_client.aclose()
            self._httpx_client = None


# Global client factory instance
_global_factory: AsyncHTTPClientFactory | None = None


def get_global_http_factory(
    config: HTTPClientConfig | None = None,
) -> AsyncHTTPClientFactory:
    """Get or create the global HTTP client factory.

    Args:
        config: Optional configuration for the factory

    Returns:
        Global HTTP client factory instance
    """
    global _global_factory
    if _global_factory is None:
        _global_factory = AsyncHTTPClientFactory(config)
    return _global_factory


async def cleanup_global_factory() -> None:
    """Cleanup the global HTTP client factory."""
    global _global_factory
    if _global_factory:
        await _global_factory.close()
        _global_factory = None
