"""Core queryable, pipeline and batching components."""

from spquery.core.batch import Batch, BatchCodec, BatchSlot, BatchStatus
from spquery.core.caching import ResponseCache, default_cache
from spquery.core.client import Client
from spquery.core.hooks import HookEvent, HookHandle, HookRegistry
from spquery.core.parsers import (
    BytesParser,
    HeadersParser,
    JSONParser,
    LambdaParser,
    ODataDefaultParser,
    ODataEntityArrayParser,
    ODataEntityParser,
    ODataParser,
    Parser,
    TextParser,
    hydrate,
)
from spquery.core.pipeline import Pipeline
from spquery.core.queryable import Queryable
from spquery.core.request import PendingRequest, RequestStatus
from spquery.core.urls import combine, encode_path, escape_literal, odata_literal

__all__ = [
    "Batch",
    "BatchCodec",
    "BatchSlot",
    "BatchStatus",
    "ResponseCache",
    "default_cache",
    "Client",
    "HookEvent",
    "HookHandle",
    "HookRegistry",
    "BytesParser",
    "HeadersParser",
    "JSONParser",
    "LambdaParser",
    "ODataDefaultParser",
    "ODataEntityArrayParser",
    "ODataEntityParser",
    "ODataParser",
    "Parser",
    "TextParser",
    "hydrate",
    "Pipeline",
    "Queryable",
    "PendingRequest",
    "RequestStatus",
    "combine",
    "encode_path",
    "escape_literal",
    "odata_literal",
]
