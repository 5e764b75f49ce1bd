"""
Queryable nodes.

A Queryable is the composable unit of the fluent API: it carries an
absolute URL and an ordered OData query, can be cloned into child nodes,
and is executed explicitly through ``invoke()`` (or one of the verb
helpers). Nodes returned from a parsed response additionally carry the
entity properties in ``data``.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Optional, Type, TypeVar, Union

from spquery.core.odata import EDIT_LINK, METADATA
from spquery.core.parsers import ODataDefaultParser, Parser
from spquery.core.urls import combine, encode_component, encode_path, is_url_absolute
from spquery.exceptions import BatchStateError, ConfigurationError

if TYPE_CHECKING:
    from spquery.core.batch import Batch, BatchSlot
    from spquery.core.client import Client

T = TypeVar("T", bound="Queryable")

_DEFAULT_PATH = object()


class Queryable:
    """
    Base queryable node.

    Subclasses declare ``default_path`` (the URL segment appended when a
    node is created without an explicit path) and, for collections,
    ``item_factory`` (the node type their entries hydrate into).

    Usage:
        ```python
        lists = client.web.lists.select("Title", "Id").top(10)
        result = await lists.get()
        ```
    """

    default_path: Optional[str] = None
    item_factory: Optional[Type["Queryable"]] = None

    def __init__(
        self,
        base: Union[str, "Queryable"],
        path: Any = _DEFAULT_PATH,
        client: Optional["Client"] = None,
    ):
        """
        Initialize a node.

        Args:
            base: Absolute URL, or the parent node
            path: Segment appended to the base; ``None`` appends nothing
            client: Owning client (inherited from a parent node)

        Raises:
            ConfigurationError: If a string base is empty or not absolute
        """
        if path is _DEFAULT_PATH:
            path = self.default_path
        segment = encode_path(path) if path else None

        self.query: Dict[str, str] = {}
        self.headers: Dict[str, str] = {}
        self.data: Dict[str, Any] = {}
        self.batch: Optional["Batch"] = None
        self._batch_slot: Optional["BatchSlot"] = None
        self._parser: Optional[Parser] = None
        self._caching: Optional[Dict[str, Any]] = None

        if isinstance(base, Queryable):
            self.client = client or base.client
            self.parent_url = base.url
            self.url = combine(base.url, segment)
            self.headers.update(base.headers)
            target = base.query.get("@target")
            if target is not None:
                self.query["@target"] = target
        else:
            base = self.resolve_base(base)
            self.client = client
            self.parent_url = base
            self.url = combine(base, segment)

    def resolve_base(self, base: Optional[str]) -> str:
        """Validate a string base URL; subclasses may normalize it further."""
        if base is None or not str(base).strip():
            raise ConfigurationError(f"{type(self).__name__} requires a non-empty base URL")
        if not is_url_absolute(base):
            raise ConfigurationError(f"{type(self).__name__} requires an absolute base URL, got '{base}'")
        return str(base)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def clone(
        self,
        factory: Type[T],
        path: Optional[str] = None,
        inherit_query: bool = True,
        include_batch: bool = True,
    ) -> T:
        """
        Create a child node.

        Args:
            factory: Node type of the child
            path: Segment appended to this node's URL
            inherit_query: Copy this node's query parameters
            include_batch: Carry this node's batch tag

        Returns:
            The child node; this node is left untouched
        """
        child = factory(self, path)
        if inherit_query:
            child.query.update(self.query)
        if include_batch and self.batch is not None:
            child.in_batch(self.batch)
        return child

    def concat(self: T, segment: str) -> T:
        """Append a segment to the URL without a separating slash (e.g. ``items(5)``)."""
        self.url = f"{self.url}{encode_path(segment)}"
        return self

    def query_param(self: T, key: str, value: Any) -> T:
        """Set a raw query-string parameter."""
        self.query[key] = str(value)
        return self

    def select(self: T, *fields: str) -> T:
        """Choose the fields to return."""
        if fields:
            self.query["$select"] = ",".join(fields)
        return self

    def expand(self: T, *fields: str) -> T:
        """Expand related entities."""
        if fields:
            self.query["$expand"] = ",".join(fields)
        return self

    def filter(self: T, expression: str) -> T:
        """Apply an OData filter expression."""
        self.query["$filter"] = expression
        return self

    def orderby(self: T, field: str, ascending: bool = True) -> T:
        """Append a sort clause."""
        clause = f"{field} {'asc' if ascending else 'desc'}"
        existing = self.query.get("$orderby")
        self.query["$orderby"] = f"{existing},{clause}" if existing else clause
        return self

    def top(self: T, count: int) -> T:
        """Limit the number of returned entries."""
        self.query["$top"] = str(int(count))
        return self

    def skip(self: T, count: int) -> T:
        """Skip a number of entries."""
        self.query["$skip"] = str(int(count))
        return self

    def to_url(self) -> str:
        """Get the absolute URL including the encoded query string."""
        if not self.query:
            return self.url
        query = "&".join(f"{key}={encode_component(value)}" for key, value in self.query.items())
        return f"{self.url}?{query}"

    # ------------------------------------------------------------------
    # Per-node options
    # ------------------------------------------------------------------

    def configure(self: T, headers: Optional[Dict[str, str]] = None) -> T:
        """Merge headers sent with every invocation of this node."""
        if headers:
            self.headers.update(headers)
        return self

    def using_parser(self: T, parser: Parser) -> T:
        """Override the parser for invocations of this node."""
        self._parser = parser
        return self

    def using_caching(self: T, ttl_seconds: Optional[float] = None, key: Optional[str] = None) -> T:
        """
        Opt GET invocations of this node into the response cache.

        Args:
            ttl_seconds: Entry lifetime (config default when omitted)
            key: Explicit cache key (derived from URL and headers when omitted)
        """
        self._caching = {"ttl": ttl_seconds, "key": key}
        return self

    def in_batch(self: T, batch: "Batch") -> T:
        """
        Tag this node so its invocations register on ``batch``.

        Raises:
            BatchStateError: If the batch no longer accepts registrations
        """
        batch.ensure_open()
        self.batch = batch
        self._batch_slot = None
        return self

    def in_batch_slot(self: T, slot: "BatchSlot") -> T:
        """Tag this node so its next invocation fills a reserved batch slot."""
        if slot.is_settled:
            raise BatchStateError(f"Batch slot {slot.sequence} has already been used")
        self.batch = slot.batch
        self._batch_slot = slot
        return self

    def create_batch(self) -> "Batch":
        """Create a batch targeting this node's endpoint."""
        return self._require_client().create_batch(self)

    @property
    def has_batch(self) -> bool:
        return self.batch is not None

    @property
    def parser(self) -> Optional[Parser]:
        return self._parser

    @property
    def caching(self) -> Optional[Dict[str, Any]]:
        return self._caching

    def default_parser(self) -> Parser:
        """Get the parser used when none is given explicitly."""
        return ODataDefaultParser(factory=type(self), item_factory=self.item_factory)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def _require_client(self) -> "Client":
        if self.client is None:
            raise ConfigurationError(f"{type(self).__name__} at {self.url} is not bound to a client")
        return self.client

    def invoke(
        self,
        method: str = "GET",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional[Parser] = None,
        post_process: Optional[Callable[[Any], Any]] = None,
    ) -> asyncio.Future:
        """
        Execute this node.

        Creates exactly one pending request immediately. The returned
        awaitable settles once the response is parsed, whether the
        request is sent now or as part of a batch.

        Args:
            method: HTTP verb
            body: Request body; dicts and lists are JSON-encoded
            headers: Per-call headers (take precedence over node headers)
            parser: Per-call parser override
            post_process: Transform applied to the parsed value

        Returns:
            Awaitable resolving to the parsed value
        """
        slot = self._batch_slot
        self._batch_slot = None
        return self._require_client().pipeline.start(
            self,
            method=method,
            body=body,
            headers=headers,
            parser=parser,
            post_process=post_process,
            slot=slot,
        )

    def get(self, parser: Optional[Parser] = None) -> asyncio.Future:
        """Execute a GET."""
        return self.invoke("GET", parser=parser)

    def post(
        self,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional[Parser] = None,
    ) -> asyncio.Future:
        """Execute a POST."""
        return self.invoke("POST", body=body, headers=headers, parser=parser)

    def patch(
        self,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional[Parser] = None,
    ) -> asyncio.Future:
        """Execute a PATCH."""
        return self.invoke("PATCH", body=body, headers=headers, parser=parser)

    def put(
        self,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional[Parser] = None,
    ) -> asyncio.Future:
        """Execute a PUT."""
        return self.invoke("PUT", body=body, headers=headers, parser=parser)

    def delete(self, headers: Optional[Dict[str, str]] = None) -> asyncio.Future:
        """Execute a DELETE."""
        return self.invoke("DELETE", headers=headers)

    # ------------------------------------------------------------------
    # Entity data
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def get_property(self, key: str, default: Any = None) -> Any:
        """Get an entity property, or a default."""
        return self.data.get(key, default)

    def to_json(self) -> Dict[str, Any]:
        """
        Get the entity properties as a plain dict.

        A relative ``odata.editLink`` without ``odata.metadata`` (a
        nometadata payload) is replaced by the node's absolute URL, so the
        dict hydrates into an equivalent node without the original request.
        """
        data = dict(self.data)
        link = data.get(EDIT_LINK)
        if isinstance(link, str) and METADATA not in data and not is_url_absolute(link):
            data[EDIT_LINK] = self.url
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.to_url()!r})"
