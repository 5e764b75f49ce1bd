"""Microsoft Graph API wrappers."""

from spquery.graph.client import GraphClient
from spquery.graph.directory_objects import DirectoryObject, DirectoryObjects
from spquery.graph.groups import Group, Groups, GroupType, Member, Members
from spquery.graph.queryable import (
    GraphDefaultParser,
    GraphQueryable,
    GraphQueryableCollection,
    GraphQueryableInstance,
)
from spquery.graph.users import User, Users

__all__ = [
    "GraphClient",
    "DirectoryObject",
    "DirectoryObjects",
    "Group",
    "Groups",
    "GroupType",
    "Member",
    "Members",
    "GraphDefaultParser",
    "GraphQueryable",
    "GraphQueryableCollection",
    "GraphQueryableInstance",
    "User",
    "Users",
]
