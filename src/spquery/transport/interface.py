"""
Abstract interface for HTTP transports.

Defines the contract the pipeline uses to put requests on the wire.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

import httpx


Body = Union[str, bytes, None]


@dataclass
class RawResponse:
    """An undecoded HTTP response (or a batch sub-response)."""
    status: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: bytes = b""
    url: Optional[str] = None
    reason: str = ""

    def __post_init__(self):
        """Normalize headers to a case-insensitive mapping."""
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers or {})
        if isinstance(self.content, str):
            self.content = self.content.encode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status < 400

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").lower()

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.text)


class Transport(ABC):
    """
    Abstract HTTP transport.

    Implementations only move bytes; retries, parsing and batching are
    handled by the pipeline.
    """

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Body = None,
    ) -> RawResponse:
        """
        Send a single HTTP request.

        Args:
            method: HTTP verb
            url: Absolute URL including the query string
            headers: Request headers
            body: Serialized request body

        Returns:
            The raw response, whatever its status code

        Raises:
            TransportError: If the request could not be completed
        """
        pass

    def cache_fingerprint(self) -> str:
        """
        Identify the credentials this transport adds to every request.

        Mixed into response cache keys so that two transports carrying
        different default headers or auth never share cached responses.
        """
        return ""

    async def aclose(self) -> None:
        """Release any held connections."""
        pass

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
