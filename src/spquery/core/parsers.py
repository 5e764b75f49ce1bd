"""
Response parsers.

A parser is a stateless strategy bound to a pending request that turns a
raw response into the value handed back to the caller.
"""

import inspect
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Callable, Optional, Type

import structlog

from spquery.core.odata import odata_url_from, unwrap_payload
from spquery.exceptions import ODataError, ParseError, ThrottledError
from spquery.transport.interface import RawResponse

if TYPE_CHECKING:
    from spquery.core.queryable import Queryable
    from spquery.core.request import PendingRequest

logger = structlog.get_logger(__name__)

THROTTLED_STATUSES = (429, 503)


def _request_url(response: RawResponse, request: Optional["PendingRequest"]) -> Optional[str]:
    if request is not None and request.url:
        return request.url
    return response.url


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header (delta seconds or HTTP date).

    Returns:
        Delay in seconds, or None when the header is absent or malformed
    """
    if not value:
        return None

    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def error_from_response(response: RawResponse, url: Optional[str] = None) -> ODataError:
    """
    Build a typed error from a failed response.

    Understands the minimal ``{"odata.error": ...}`` shape as well as the
    verbose/Graph ``{"error": ...}`` shape, with ``message`` either a
    plain string or ``{"lang": ..., "value": ...}``.
    """
    raw = response.text
    message = response.reason or f"HTTP {response.status}"
    code = None

    try:
        payload = json.loads(raw) if raw.strip() else None
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("odata.error") or payload.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            detail = error.get("message")
            if isinstance(detail, dict):
                detail = detail.get("value")
            if detail:
                message = str(detail)

    if response.status in THROTTLED_STATUSES:
        return ThrottledError(
            response.status,
            message,
            code=code,
            raw=raw,
            url=url,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )

    return ODataError(response.status, message, code=code, raw=raw, url=url)


class Parser(ABC):
    """Base class for response parsers."""

    @abstractmethod
    async def parse(self, response: RawResponse, request: Optional["PendingRequest"] = None) -> Any:
        """
        Turn a raw response into a value.

        Args:
            response: Raw response (or batch sub-response)
            request: Request the response belongs to

        Raises:
            ODataError: If the response status indicates failure
            ParseError: If the body does not match the expected shape
        """
        pass


class ODataParser(Parser):
    """
    Default OData parser.

    Fails on error statuses, returns ``{}`` for empty bodies, decodes
    JSON and strips the OData envelope. Text and binary content types
    bypass JSON handling.
    """

    async def parse(self, response: RawResponse, request: Optional["PendingRequest"] = None) -> Any:
        url = _request_url(response, request)

        if not response.ok:
            error = error_from_response(response, url)
            logger.debug("odata_error_response", status=response.status, url=url, message=error.message)
            raise error

        if response.status == 204 or not response.content.strip():
            return {}

        return self.parse_content(response, request)

    def parse_content(self, response: RawResponse, request: Optional["PendingRequest"]) -> Any:
        content_type = response.content_type

        if "json" in content_type:
            return self.handle_json(self.decode_json(response, request), request)
        if content_type.startswith("text/") or "xml" in content_type:
            return response.text
        if content_type:
            return response.content

        # undeclared content type: attempt JSON first
        try:
            payload = json.loads(response.text)
        except ValueError:
            return response.text
        return self.handle_json(payload, request)

    def decode_json(self, response: RawResponse, request: Optional["PendingRequest"]) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                f"Response body is not valid JSON: {e}",
                raw=response.text,
                url=_request_url(response, request),
            ) from e

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        return unwrap_payload(payload)


class JSONParser(ODataParser):
    """Decodes JSON without removing the OData envelope."""

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        return payload


class TextParser(ODataParser):
    """Returns the body as text."""

    def parse_content(self, response: RawResponse, request: Optional["PendingRequest"]) -> Any:
        return response.text


class BytesParser(ODataParser):
    """Returns the body as bytes (blob and buffer downloads)."""

    async def parse(self, response: RawResponse, request: Optional["PendingRequest"] = None) -> Any:
        if not response.ok:
            raise error_from_response(response, _request_url(response, request))
        return response.content


class HeadersParser(ODataParser):
    """Returns the response headers."""

    async def parse(self, response: RawResponse, request: Optional["PendingRequest"] = None) -> Any:
        if not response.ok:
            raise error_from_response(response, _request_url(response, request))
        return dict(response.headers)


class LambdaParser(Parser):
    """Delegates parsing to a callable (which may be a coroutine function)."""

    def __init__(self, handler: Callable[[RawResponse], Any]):
        self.handler = handler

    async def parse(self, response: RawResponse, request: Optional["PendingRequest"] = None) -> Any:
        result = self.handler(response)
        if inspect.isawaitable(result):
            result = await result
        return result


# ============================================================================
# Hydration
# ============================================================================

def hydrate(
    factory: Type["Queryable"],
    data: Any,
    request: Optional["PendingRequest"] = None,
    url: Optional[str] = None,
) -> Any:
    """
    Turn decoded entity properties into a chainable node.

    Hydrating an already hydrated node re-uses its data, so the result is
    an equivalent node rather than a node wrapping a node.

    Args:
        factory: Node type to instantiate
        data: Entity properties (or an already hydrated node)
        request: Originating request, supplies the client and web URL
        url: Canonical URL; recovered from the metadata when omitted

    Returns:
        The hydrated node, or the plain properties when no URL is found
    """
    from spquery.core.queryable import Queryable

    origin = request.queryable if request is not None else None

    if isinstance(data, Queryable):
        if origin is None:
            origin = data
        if url is None:
            url = data.url
        data = data.to_json()
    if not isinstance(data, dict) or not data:
        return data

    if url is None:
        url = odata_url_from(data, origin.url if origin is not None else None)
    if not url:
        return data

    node = factory(url, None, client=origin.client if origin is not None else None)
    node.data.update(data)
    return node


class ODataEntityParser(ODataParser):
    """Hydrates a single entity into ``factory`` nodes."""

    def __init__(self, factory: Type["Queryable"]):
        self.factory = factory

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        return hydrate(self.factory, unwrap_payload(payload), request)


class ODataEntityArrayParser(ODataParser):
    """Hydrates every entity of a collection into ``factory`` nodes."""

    def __init__(self, factory: Type["Queryable"]):
        self.factory = factory

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        items = unwrap_payload(payload)
        if not isinstance(items, list):
            raise ParseError(
                "Expected a collection payload",
                raw=json.dumps(payload)[:500],
                url=request.url if request is not None else None,
            )
        return [hydrate(self.factory, item, request) for item in items]


class ODataDefaultParser(ODataParser):
    """
    Parser bound to every node that was not given one explicitly.

    Single entities hydrate into ``factory``; collections hydrate into
    ``item_factory`` when the node declares one.
    """

    def __init__(
        self,
        factory: Optional[Type["Queryable"]] = None,
        item_factory: Optional[Type["Queryable"]] = None,
    ):
        self.factory = factory
        self.item_factory = item_factory

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        value = unwrap_payload(payload)
        if isinstance(value, list):
            if self.item_factory is None:
                return value
            return [hydrate(self.item_factory, item, request) for item in value]
        if isinstance(value, dict) and self.factory is not None:
            return hydrate(self.factory, value, request)
        return value
