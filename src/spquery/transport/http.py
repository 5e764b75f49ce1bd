"""
httpx-based transport.

Puts requests on the wire through a lazily created httpx.AsyncClient.
"""

from typing import Mapping, Optional

import httpx
import structlog

from spquery.config import ClientConfig, get_config
from spquery.exceptions import TransportError
from spquery.transport.interface import Body, RawResponse, Transport

logger = structlog.get_logger(__name__)


class HttpxTransport(Transport):
    """
    Transport implemented with httpx.

    Token acquisition is out of scope; callers supply default headers
    (e.g. a bearer token) or any ``httpx.Auth`` implementation.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        headers: Optional[Mapping[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Client configuration. Uses global config if not provided.
            headers: Default headers added to every request
            auth: Optional httpx authentication flow
            client: Pre-built AsyncClient (mostly for tests)
        """
        self.config = config or get_config()
        self.headers = dict(headers or {})
        self.auth = auth
        self._client: Optional[httpx.AsyncClient] = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=self.auth,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    def cache_fingerprint(self) -> str:
        headers = "\n".join(
            f"{name.lower()}:{value}" for name, value in sorted(self.headers.items(), key=lambda kv: kv[0].lower())
        )
        # auth flows are opaque; only the same instance may share entries
        auth = f"{type(self.auth).__name__}@{id(self.auth)}" if self.auth is not None else ""
        return f"{headers}\n{auth}"

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Body = None,
    ) -> RawResponse:
        """Send a request and wrap the httpx response."""
        client = self._get_client()
        request_headers = dict(self.headers)
        request_headers.update(headers)
        try:
            response = await client.request(method, url, headers=request_headers, content=body)
        except httpx.RequestError as e:
            logger.error("http_request_error", method=method, url=url, error=str(e))
            raise TransportError(f"Request failed: {e}", url=url) from e

        logger.debug("http_response", method=method, url=url, status=response.status_code)
        return RawResponse(
            status=response.status_code,
            headers=response.headers,
            content=response.content,
            url=url,
            reason=response.reason_phrase,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("http_transport_closed")
