"""
List items.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog

from spquery.core.parsers import ODataParser
from spquery.sp.queryable import (
    SharePointQueryableCollection,
    SharePointQueryableInstance,
    write_body,
    write_headers,
)

if TYPE_CHECKING:
    from spquery.core.batch import BatchSlot

logger = structlog.get_logger(__name__)


@dataclass
class ItemAddResult:
    """Result of adding an item: the returned properties and a node for the new item."""
    data: Dict[str, Any]
    item: Optional["Item"]


@dataclass
class ItemUpdateResult:
    data: Any
    item: "Item"


class Item(SharePointQueryableInstance):
    """A single list item."""

    def update(
        self,
        properties: Dict[str, Any],
        etag: str = "*",
        entity_type_name: Optional[str] = None,
    ) -> asyncio.Future:
        """
        Update this item.

        Returns:
            Awaitable resolving to an ItemUpdateResult
        """
        return self.merge(
            properties,
            entity_type=entity_type_name,
            etag=etag,
            post_process=lambda data: ItemUpdateResult(data=data, item=self),
        )


class Items(SharePointQueryableCollection):
    """The items of a list."""

    default_path = "items"
    item_factory = Item

    def get_by_id(self, item_id: int, include_batch: bool = True) -> Item:
        """Get an item by its numeric id."""
        return self.clone(Item, None, inherit_query=False, include_batch=include_batch).concat(f"({int(item_id)})")

    def add(
        self,
        properties: Optional[Dict[str, Any]] = None,
        entity_type_name: Optional[str] = None,
    ) -> asyncio.Future:
        """
        Add a new item.

        When ``entity_type_name`` is omitted it is fetched from the parent
        list first. Inside a batch the item's position is reserved up
        front, so the add still settles in the order it was called.

        Args:
            properties: Field values of the new item
            entity_type_name: ``ListItemEntityTypeFullName`` of the parent list

        Returns:
            Awaitable resolving to an ItemAddResult
        """
        properties = dict(properties or {})

        if entity_type_name is not None:
            return self._post_item(properties, entity_type_name)

        slot = self.batch.reserve() if self.batch is not None else None
        task = asyncio.ensure_future(self._add_with_lookup(properties, slot))
        if slot is not None:
            # a no-op once the slot is filled; frees it on failure or cancellation
            task.add_done_callback(lambda _: slot.release())
            slot.track(task)
        return task

    async def _add_with_lookup(self, properties: Dict[str, Any], slot: Optional["BatchSlot"]) -> ItemAddResult:
        from spquery.sp.lists import List

        parent = List(self.parent_url, None, client=self.client).configure(self.headers)
        entity_type_name = await parent.get_list_item_entity_type_full_name()

        logger.debug("item_entity_type_resolved", list_url=parent.url, entity_type=entity_type_name)
        return await self._post_item(properties, entity_type_name, slot)

    def _post_item(
        self,
        properties: Dict[str, Any],
        entity_type_name: str,
        slot: Optional["BatchSlot"] = None,
    ) -> asyncio.Future:
        target = self.clone(Items, None, inherit_query=False, include_batch=slot is None)
        if slot is not None:
            target.in_batch_slot(slot)

        def to_result(data: Dict[str, Any]) -> ItemAddResult:
            item_id = data.get("Id", data.get("ID"))
            item = self.get_by_id(item_id, include_batch=False) if item_id is not None else None
            return ItemAddResult(data=data, item=item)

        return target.invoke(
            "POST",
            body=write_body(properties, entity_type_name),
            headers=write_headers(entity_type_name),
            parser=ODataParser(),
            post_process=to_result,
        )
