"""
Client base class.

A client is the root every node chain starts from. It owns the
configuration, the transport, the pipeline, the hook registry and the
response cache used by the nodes created from it.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Optional

import structlog

from spquery.config import ClientConfig, get_config
from spquery.core.batch import Batch, BatchCodec
from spquery.core.caching import ResponseCache, default_cache
from spquery.core.hooks import HookRegistry
from spquery.core.pipeline import Pipeline
from spquery.transport.http import HttpxTransport
from spquery.transport.interface import Transport

if TYPE_CHECKING:
    from spquery.core.queryable import Queryable
    from spquery.core.request import PendingRequest

logger = structlog.get_logger(__name__)


class Client(ABC):
    """
    Abstract API client.

    Subclasses supply the service-specific default headers and batch
    wire format.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        cache: Optional[ResponseCache] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration. Uses global config if not provided.
            transport: HTTP transport (an HttpxTransport by default)
            cache: Response cache (the process-wide default cache by default)
        """
        self.config = config or get_config()
        self.transport = transport or HttpxTransport(self.config)
        self.cache = cache if cache is not None else default_cache
        self.hooks = HookRegistry()
        self.pipeline = Pipeline(self)

    @abstractmethod
    def default_headers(self, request: "PendingRequest") -> Dict[str, str]:
        """Get the headers every request starts from."""
        pass

    @abstractmethod
    def batch_codec(self, node: Optional["Queryable"] = None) -> BatchCodec:
        """Get the batch wire format, targeting ``node``'s endpoint when given."""
        pass

    def create_batch(self, node: Optional["Queryable"] = None) -> Batch:
        """
        Create a new open batch.

        Args:
            node: Node whose endpoint the batch targets (the client root if omitted)
        """
        batch = Batch(self.pipeline, self.batch_codec(node))
        logger.debug("batch_created", batch_id=batch.batch_id[:8] + "...", endpoint=batch.codec.endpoint)
        return batch

    async def aclose(self) -> None:
        """Close the transport."""
        await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
