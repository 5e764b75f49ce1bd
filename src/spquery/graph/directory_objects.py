"""
Directory objects.
"""

import asyncio
from typing import List, Optional

from spquery.graph.queryable import GraphDefaultParser, GraphQueryableCollection, GraphQueryableInstance


class DirectoryObject(GraphQueryableInstance):
    """
    A directory object (the base of users and groups).

    The membership operations resolve to the list of matching object ids.
    """

    def get_member_objects(self, security_enabled_only: bool = False) -> asyncio.Future:
        """Get every group and directory role this object is a transitive member of."""
        return self.clone(DirectoryObject, "getMemberObjects", inherit_query=False).post(
            {"securityEnabledOnly": security_enabled_only}
        )

    def get_member_groups(self, security_enabled_only: bool = False) -> asyncio.Future:
        """Get every group this object is a transitive member of."""
        return self.clone(DirectoryObject, "getMemberGroups", inherit_query=False).post(
            {"securityEnabledOnly": security_enabled_only}
        )

    def check_member_groups(self, group_ids: List[str]) -> asyncio.Future:
        """
        Check membership in the given groups.

        Args:
            group_ids: Object ids of the groups to check (at most 20)

        Returns:
            Awaitable resolving to the subset of ``group_ids`` this object belongs to
        """
        return self.clone(DirectoryObject, "checkMemberGroups", inherit_query=False).post(
            {"groupIds": list(group_ids)}
        )


class DirectoryObjects(GraphQueryableCollection):
    """A collection of directory objects."""

    default_path = "directoryObjects"
    item_factory = DirectoryObject

    def get_by_id(self, object_id: str) -> DirectoryObject:
        return self.clone(self.item_factory, object_id, inherit_query=False)

    def get_by_ids(self, ids: List[str], types: Optional[List[str]] = None) -> asyncio.Future:
        """
        Get the directory objects with the given ids.

        Args:
            ids: Object ids (at most 1000)
            types: Resource types to search, e.g. ``["user", "group"]``
        """
        body = {"ids": list(ids)}
        if types:
            body["types"] = list(types)
        return self.clone(DirectoryObjects, "getByIds", inherit_query=False).post(
            body,
            parser=GraphDefaultParser(item_factory=DirectoryObject, base_url=self.url),
        )
