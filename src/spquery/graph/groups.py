"""
Groups and group membership.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from spquery.core.parsers import ODataParser
from spquery.graph.directory_objects import DirectoryObject, DirectoryObjects
from spquery.graph.queryable import GraphQueryableCollection, GraphQueryableInstance


class GroupType(str, Enum):
    """Kinds of group that can be created."""
    OFFICE365 = "office365"
    DYNAMIC = "dynamic"
    SECURITY = "security"


class Member(GraphQueryableInstance):
    """A member (or owner) of a group."""

    def remove(self) -> asyncio.Future:
        """Remove this member from the group."""
        return self.clone(Member, "$ref", inherit_query=False).delete()


class Members(GraphQueryableCollection):
    """The members (or owners) of a group."""

    default_path = "members"
    item_factory = Member

    def get_by_id(self, member_id: str) -> Member:
        return self.clone(Member, member_id, inherit_query=False)

    def add(self, odata_id: str) -> asyncio.Future:
        """
        Add a member.

        Args:
            odata_id: Full ``@odata.id`` of the user, group or directory object
        """
        return self.clone(Members, "$ref", inherit_query=False).post({"@odata.id": odata_id})


class Group(DirectoryObject):
    """A single group."""

    @property
    def members(self) -> Members:
        return self.clone(Members, "members", inherit_query=False)

    @property
    def owners(self) -> Members:
        return self.clone(Members, "owners", inherit_query=False)

    @property
    def member_of(self) -> DirectoryObjects:
        return self.clone(DirectoryObjects, "memberOf", inherit_query=False)


class Groups(GraphQueryableCollection):
    """The groups of the tenant."""

    default_path = "groups"
    item_factory = Group

    def get_by_id(self, group_id: str) -> Group:
        return self.clone(Group, group_id, inherit_query=False)

    def add(
        self,
        display_name: str,
        mail_nickname: str,
        group_type: GroupType = GroupType.SECURITY,
        additional_properties: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Future:
        """
        Create a group.

        Args:
            display_name: Name shown in the address book
            mail_nickname: Mail alias of the group
            group_type: Office 365, dynamic or security group
            additional_properties: Extra group properties

        Returns:
            Awaitable resolving to the created Group node
        """
        body: Dict[str, Any] = {
            "displayName": display_name,
            "mailEnabled": group_type == GroupType.OFFICE365,
            "mailNickname": mail_nickname,
            "securityEnabled": group_type != GroupType.OFFICE365,
        }
        if group_type != GroupType.SECURITY:
            body["groupTypes"] = ["Unified" if group_type == GroupType.OFFICE365 else "DynamicMembership"]
        body.update(additional_properties or {})

        def to_group(data: Dict[str, Any]) -> Group:
            group = Group(self, str(data["id"]))
            group.data.update(data)
            return group

        return self.clone(Groups, None, inherit_query=False).invoke(
            "POST",
            body=body,
            parser=ODataParser(),
            post_process=to_group,
        )
