"""
Request pipeline.

Every invocation runs through the same ordered stages:

    configure -> validate -> send -> parse -> post_process

``send`` is the substitution point between direct execution and
batching: a request tagged with a batch is registered there instead of
being put on the wire, and the batch later drives the remaining stages.
"""

import asyncio
import inspect
import json
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import structlog

from spquery.core.hooks import HookEvent
from spquery.core.parsers import THROTTLED_STATUSES, error_from_response, parse_retry_after
from spquery.core.request import PendingRequest
from spquery.core.urls import is_url_absolute
from spquery.exceptions import ConfigurationError, ThrottledError
from spquery.transport.interface import Body, RawResponse

if TYPE_CHECKING:
    from spquery.core.batch import BatchSlot
    from spquery.core.client import Client
    from spquery.core.parsers import Parser
    from spquery.core.queryable import Queryable

logger = structlog.get_logger(__name__)

ALLOWED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}


class Pipeline:
    """
    Runs pending requests through the pipeline stages.

    One pipeline exists per client; it reads the client's config,
    transport, hook registry and cache.
    """

    def __init__(self, client: "Client"):
        self.client = client

    @property
    def config(self):
        return self.client.config

    @property
    def hooks(self):
        return self.client.hooks

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def start(
        self,
        queryable: "Queryable",
        method: str = "GET",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional["Parser"] = None,
        post_process: Optional[Callable[[Any], Any]] = None,
        slot: Optional["BatchSlot"] = None,
    ) -> asyncio.Future:
        """
        Create a pending request and start it.

        Configuration and validation errors are raised synchronously;
        everything later surfaces through the returned future.
        """
        request = PendingRequest(
            queryable=queryable,
            method=method,
            body=body,
            headers=dict(headers or {}),
            parser=parser,
            batch=queryable.batch,
            post_process=post_process,
        )

        self.configure(request)
        self.validate(request)

        if slot is not None:
            slot.fill(request)
        elif request.batch is not None:
            request.batch.register(request)
        else:
            request.task = asyncio.ensure_future(self._run(request))

        return request.future

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def configure(self, request: PendingRequest) -> None:
        """Apply headers, body encoding, parser and caching options."""
        queryable = request.queryable

        if isinstance(request.body, (dict, list)):
            request.body = json.dumps(request.body)

        headers = dict(self.client.default_headers(request))
        headers.update(queryable.headers)
        headers.update(request.headers)
        request.headers = headers

        request.url = queryable.to_url()
        request.parser = request.parser or queryable.parser or queryable.default_parser()

        caching = queryable.caching
        if caching is not None and request.method == "GET" and request.batch is None:
            request.cache_key = caching.get("key") or self.client.cache.make_key(
                request.url,
                headers,
                self.client.transport.cache_fingerprint(),
            )
            ttl = caching.get("ttl")
            request.cache_ttl = ttl if ttl is not None else self.config.cache_ttl_seconds

        self.hooks.fire(HookEvent.CONFIGURE, request)

    def validate(self, request: PendingRequest) -> None:
        """Reject requests that can never succeed."""
        if not is_url_absolute(request.url):
            raise ConfigurationError(f"Request URL must be absolute, got '{request.url}'")
        if request.method not in ALLOWED_METHODS:
            raise ConfigurationError(f"Unsupported HTTP method '{request.method}'")
        if request.batch is not None:
            request.batch.codec.validate(request)

    async def send(self, request: PendingRequest) -> RawResponse:
        """Send a single (non-batched) request, consulting the cache first."""
        if request.cache_key:
            cached = self.client.cache.get(request.cache_key)
            if cached is not None:
                logger.debug("request_cache_hit", url=request.url)
                return cached

        self.hooks.fire(HookEvent.SEND, request)
        request.mark_sent()
        response = await self.dispatch(request.method, request.url, request.headers, request.body)

        if request.cache_key and response.ok:
            self.client.cache.put(request.cache_key, response, request.cache_ttl)

        return response

    async def dispatch(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Body = None,
    ) -> RawResponse:
        """
        Put one HTTP request on the wire, retrying throttled responses.

        429 and 503 responses are retried after the server's Retry-After
        delay (exponential backoff when absent) up to ``max_retries``
        times. Any other response is returned as-is.

        Raises:
            ThrottledError: If the request is still throttled after the last retry
            TransportError: If the transport fails
        """
        attempt = 0
        while True:
            response = await self.client.transport.send(method, url, headers, body)
            if response.status not in THROTTLED_STATUSES:
                return response

            retry_after = parse_retry_after(response.headers.get("retry-after"))

            if attempt >= self.config.max_retries:
                error = error_from_response(response, url)
                if isinstance(error, ThrottledError):
                    error.attempts = attempt + 1
                logger.error(
                    "request_throttled_giving_up",
                    method=method,
                    url=url,
                    status=response.status,
                    attempts=attempt + 1,
                )
                raise error

            delay = retry_after if retry_after is not None else self.config.retry_delay_seconds * (2 ** attempt)
            logger.warning(
                "request_throttled",
                method=method,
                url=url,
                status=response.status,
                retry_in=delay,
                attempt=attempt + 1,
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def parse(self, request: PendingRequest, response: RawResponse) -> Any:
        """Run the bound parser."""
        if response.url is None:
            response.url = request.url
        value = await request.parser.parse(response, request)
        request.mark_parsed()
        return value

    async def post_process(self, request: PendingRequest, value: Any) -> Any:
        """Apply the request's post-process transform, if any."""
        if request.post_process is None:
            return value
        result = request.post_process(value)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def complete(self, request: PendingRequest, response: RawResponse) -> Any:
        """Run the parse and post-process stages for a received response."""
        value = await self.parse(request, response)
        value = await self.post_process(request, value)
        self.hooks.fire(HookEvent.PARSED, request, value)
        return value

    def fail(self, request: PendingRequest, error: BaseException) -> None:
        """Reject a request and notify error observers."""
        request.fail(error)
        self.hooks.fire(HookEvent.ERROR, request, error)

    async def _run(self, request: PendingRequest) -> None:
        try:
            response = await self.send(request)
            value = await self.complete(request, response)
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            logger.debug("request_failed", method=request.method, url=request.url, error=str(e))
            self.fail(request, e)
            return

        request.settle(value)
