"""
Microsoft Graph queryable bases.

Graph entities carry no edit links; collection entries are addressed by
their absolute ``@odata.id`` when present, else by appending their
``id`` to the collection URL.
"""

from typing import TYPE_CHECKING, Any, Optional, Type

from spquery.core.odata import GRAPH_ODATA_ID, unwrap_payload
from spquery.core.parsers import ODataParser, Parser, hydrate
from spquery.core.queryable import Queryable
from spquery.core.urls import combine, is_url_absolute

if TYPE_CHECKING:
    from spquery.core.request import PendingRequest


class GraphDefaultParser(ODataParser):
    """Hydrates Graph entities and collection entries into nodes."""

    def __init__(
        self,
        factory: Optional[Type[Queryable]] = None,
        item_factory: Optional[Type[Queryable]] = None,
        base_url: Optional[str] = None,
    ):
        """
        Args:
            factory: Node type single entities hydrate into
            item_factory: Node type collection entries hydrate into
            base_url: URL entry ids are appended to (the request URL by default)
        """
        self.factory = factory
        self.item_factory = item_factory
        self.base_url = base_url

    def handle_json(self, payload: Any, request: Optional["PendingRequest"]) -> Any:
        value = unwrap_payload(payload)
        base = self.base_url or (request.queryable.url if request is not None else None)

        if isinstance(value, list):
            if self.item_factory is None:
                return value
            return [self.hydrate_item(item, base, request) for item in value]

        if isinstance(value, dict) and self.factory is not None and base:
            return hydrate(self.factory, value, request, url=base)

        return value

    def hydrate_item(self, item: Any, base: Optional[str], request: Optional["PendingRequest"]) -> Any:
        if not isinstance(item, dict):
            return item

        url = None
        if is_url_absolute(item.get(GRAPH_ODATA_ID)):
            url = item[GRAPH_ODATA_ID]
        elif item.get("id") and base:
            url = combine(base, str(item["id"]))

        return hydrate(self.item_factory, item, request, url=url)


class GraphQueryable(Queryable):
    """Base node for Microsoft Graph."""

    def default_parser(self) -> Parser:
        return GraphDefaultParser(factory=type(self), item_factory=self.item_factory)


class GraphQueryableCollection(GraphQueryable):
    """A Graph entity collection."""
    pass


class GraphQueryableInstance(GraphQueryable):
    """A single Graph entity."""

    def update(self, properties: dict):
        """Update this entity with a PATCH request."""
        return self.patch(properties)
