"""
Lists and list instances.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from spquery.core.parsers import ODataParser
from spquery.core.urls import escape_literal
from spquery.exceptions import ConfigurationError, ODataError
from spquery.sp.items import Items
from spquery.sp.queryable import (
    SharePointQueryableCollection,
    SharePointQueryableInstance,
    metadata,
)

logger = structlog.get_logger(__name__)


@dataclass
class ListAddResult:
    data: Dict[str, Any]
    list: "List"


@dataclass
class ListEnsureResult:
    """Result of ensuring a list exists."""
    created: bool
    data: Any
    list: "List"


@dataclass
class ListUpdateResult:
    data: Any
    list: "List"


class List(SharePointQueryableInstance):
    """A single list."""

    @property
    def items(self) -> Items:
        return self.clone(Items, "items", inherit_query=False)

    def get_list_item_entity_type_full_name(self) -> asyncio.Future:
        """
        Get the entity type name list items of this list are written with.

        Returns:
            Awaitable resolving to the type name (e.g. ``SP.Data.DocsListItem``)
        """
        return self.clone(List, None, inherit_query=False).select("ListItemEntityTypeFullName").invoke(
            "GET",
            parser=ODataParser(),
            post_process=lambda data: data["ListItemEntityTypeFullName"],
        )

    def update(self, properties: Dict[str, Any], etag: str = "*") -> asyncio.Future:
        """
        Update this list's properties.

        Returns:
            Awaitable resolving to a ListUpdateResult
        """
        return self.merge(
            properties,
            entity_type="SP.List",
            etag=etag,
            post_process=lambda data: ListUpdateResult(data=data, list=self),
        )


class Lists(SharePointQueryableCollection):
    """The lists of a web."""

    default_path = "lists"
    item_factory = List

    def get_by_title(self, title: str, include_batch: bool = True) -> List:
        """Get a list by its title."""
        return self.clone(
            List,
            f"getByTitle('{escape_literal(title)}')",
            inherit_query=False,
            include_batch=include_batch,
        )

    def get_by_id(self, list_id: str) -> List:
        """Get a list by its id (guid)."""
        return self.clone(List, None, inherit_query=False).concat(f"('{escape_literal(str(list_id))}')")

    def add(
        self,
        title: str,
        description: str = "",
        template: int = 100,
        enable_content_types: bool = False,
        additional_settings: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Future:
        """
        Create a new list.

        Args:
            title: Title of the list
            description: Description of the list
            template: Base template id (100 is a custom list)
            enable_content_types: Allow content type management
            additional_settings: Extra SP.List properties

        Returns:
            Awaitable resolving to a ListAddResult
        """
        body = metadata("SP.List")
        body.update({
            "AllowContentTypes": enable_content_types,
            "BaseTemplate": template,
            "ContentTypesEnabled": enable_content_types,
            "Description": description,
            "Title": title,
        })
        body.update(additional_settings or {})

        return self.clone(Lists, None, inherit_query=False).invoke(
            "POST",
            body=body,
            parser=ODataParser(),
            post_process=lambda data: ListAddResult(
                data=data,
                list=self.get_by_title(title, include_batch=False),
            ),
        )

    async def ensure(
        self,
        title: str,
        description: str = "",
        template: int = 100,
        enable_content_types: bool = False,
        additional_settings: Optional[Dict[str, Any]] = None,
    ) -> ListEnsureResult:
        """
        Get a list by title, creating it when it does not exist.

        Raises:
            ConfigurationError: If called on a batched node
        """
        if self.has_batch:
            raise ConfigurationError("Lists.ensure cannot be used in a batch")

        target = self.get_by_title(title)
        try:
            data = await target.get()
        except ODataError as e:
            if e.status != 404:
                raise
        else:
            return ListEnsureResult(created=False, data=data, list=target)

        logger.info("list_not_found_creating", title=title)
        result = await self.add(title, description, template, enable_content_types, additional_settings)
        return ListEnsureResult(created=True, data=result.data, list=result.list)
