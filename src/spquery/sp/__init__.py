"""SharePoint REST API wrappers."""

from spquery.sp.client import SPClient
from spquery.sp.items import Item, ItemAddResult, Items, ItemUpdateResult
from spquery.sp.lists import List, ListAddResult, ListEnsureResult, Lists, ListUpdateResult
from spquery.sp.queryable import (
    SharePointQueryable,
    SharePointQueryableCollection,
    SharePointQueryableInstance,
    metadata,
)
from spquery.sp.site_users import SiteUser, SiteUsers, UserUpdateResult
from spquery.sp.webs import EnsureUserResult, Web

__all__ = [
    "SPClient",
    "Item",
    "ItemAddResult",
    "Items",
    "ItemUpdateResult",
    "List",
    "ListAddResult",
    "ListEnsureResult",
    "Lists",
    "ListUpdateResult",
    "SharePointQueryable",
    "SharePointQueryableCollection",
    "SharePointQueryableInstance",
    "metadata",
    "SiteUser",
    "SiteUsers",
    "UserUpdateResult",
    "EnsureUserResult",
    "Web",
]
