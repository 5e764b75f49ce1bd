"""
Site users.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict

from spquery.core.parsers import ODataParser
from spquery.core.urls import escape_literal
from spquery.sp.queryable import (
    SharePointQueryableCollection,
    SharePointQueryableInstance,
    metadata,
)


def _alias_literal(value: str) -> str:
    # the query string is escaped when the URL is rendered
    return "'" + value.replace("'", "''") + "'"


@dataclass
class UserUpdateResult:
    data: Any
    user: "SiteUser"


class SiteUser(SharePointQueryableInstance):
    """A single site user."""

    def update(self, properties: Dict[str, Any]) -> asyncio.Future:
        """
        Update this user.

        Returns:
            Awaitable resolving to a UserUpdateResult
        """
        return self.merge(
            properties,
            entity_type="SP.User",
            post_process=lambda data: UserUpdateResult(data=data, user=self),
        )


class SiteUsers(SharePointQueryableCollection):
    """All users of a site collection."""

    default_path = "siteusers"
    item_factory = SiteUser

    def get_by_id(self, user_id: int, include_batch: bool = True) -> SiteUser:
        """Get a user by id."""
        return self.clone(SiteUser, f"getById({int(user_id)})", inherit_query=False, include_batch=include_batch)

    def get_by_email(self, email: str) -> SiteUser:
        """Get a user by email address."""
        return self.clone(SiteUser, f"getByEmail('{escape_literal(email)}')", inherit_query=False)

    def get_by_login_name(self, login_name: str, include_batch: bool = True) -> SiteUser:
        """
        Get a user by login name.

        The login name is passed as the ``@v`` parameter alias since claims
        encoded names contain characters that are not valid in a path.
        """
        user = self.clone(SiteUser, None, inherit_query=False, include_batch=include_batch).concat("(@v)")
        user.query_param("@v", _alias_literal(login_name))
        return user

    def remove_by_id(self, user_id: int) -> asyncio.Future:
        """Remove a user from the site collection by id."""
        return self.clone(SiteUsers, f"removeById({int(user_id)})", inherit_query=False).post()

    def remove_by_login_name(self, login_name: str) -> asyncio.Future:
        """Remove a user from the site collection by login name."""
        target = self.clone(SiteUsers, "removeByLoginName(@v)", inherit_query=False)
        target.query_param("@v", _alias_literal(login_name))
        return target.post()

    def add(self, login_name: str) -> asyncio.Future:
        """
        Add a user to the site collection.

        Returns:
            Awaitable resolving to a SiteUser node for the added user
        """
        body = metadata("SP.User")
        body["LoginName"] = login_name
        return self.clone(SiteUsers, None, inherit_query=False).invoke(
            "POST",
            body=body,
            parser=ODataParser(),
            post_process=lambda _: self.get_by_login_name(login_name, include_batch=False),
        )
