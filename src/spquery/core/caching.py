"""
Response cache for idempotent reads.

Only GET requests that explicitly opt in (``node.using_caching()``) are
cached. Entries are raw responses keyed by absolute URL plus a header
fingerprint, so two callers with different credentials never share an
entry. Every hit is parsed again, which hands each caller its own
hydrated node.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

import structlog

from spquery.transport.interface import RawResponse

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached response and its expiry (monotonic clock)."""
    response: RawResponse
    expires_at: float


class ResponseCache:
    """In-memory TTL cache of raw GET responses."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Lifetime in seconds used when a request gives none
            clock: Time source (monotonic seconds)
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(url: str, headers: Mapping[str, str], transport_fingerprint: str = "") -> str:
        """
        Build a cache key from the absolute URL and every request header.

        Args:
            url: Absolute request URL
            headers: Headers set by the pipeline
            transport_fingerprint: Credentials the transport adds on the wire
                (see ``Transport.cache_fingerprint``)
        """
        fingerprint = "\n".join(
            f"{name.lower()}:{value}" for name, value in sorted(headers.items(), key=lambda kv: kv[0].lower())
        )
        material = f"{url}\n{fingerprint}\n{transport_fingerprint}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[RawResponse]:
        """Get a live entry, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            logger.debug("cache_expired", key=key[:12])
            return None
        logger.debug("cache_hit", key=key[:12])
        return entry.response

    def put(self, key: str, response: RawResponse, ttl: Optional[float] = None) -> None:
        """Store a response."""
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(response=response, expires_at=self._clock() + lifetime)
        logger.debug("cache_stored", key=key[:12], ttl=lifetime)

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


# Process-wide cache used by clients that are not given their own
default_cache = ResponseCache()
