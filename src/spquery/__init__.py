"""
spquery

An asyncio client for the SharePoint REST API and Microsoft Graph.
Chained calls compose an OData request, invocations are deferred until
awaited, pending requests can be merged into a single ``$batch`` call,
and responses are parsed back into further-chainable nodes.
"""

__version__ = "0.1.0"

from spquery.config import ClientConfig, MetadataMode, get_config, set_config
from spquery.core.batch import Batch, BatchStatus
from spquery.core.caching import ResponseCache, default_cache
from spquery.core.hooks import HookEvent
from spquery.core.queryable import Queryable
from spquery.core.request import PendingRequest, RequestStatus
from spquery.exceptions import (
    BatchStateError,
    ConfigurationError,
    ODataError,
    ParseError,
    SPQueryError,
    ThrottledError,
    TransportError,
)
from spquery.graph.client import GraphClient
from spquery.log import setup_logging
from spquery.sp.client import SPClient
from spquery.transport import HttpxTransport, RawResponse, Transport

__all__ = [
    "ClientConfig",
    "MetadataMode",
    "get_config",
    "set_config",
    "Batch",
    "BatchStatus",
    "ResponseCache",
    "default_cache",
    "HookEvent",
    "Queryable",
    "PendingRequest",
    "RequestStatus",
    "BatchStateError",
    "ConfigurationError",
    "ODataError",
    "ParseError",
    "SPQueryError",
    "ThrottledError",
    "TransportError",
    "GraphClient",
    "setup_logging",
    "SPClient",
    "HttpxTransport",
    "RawResponse",
    "Transport",
]
