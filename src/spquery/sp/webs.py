"""
Webs.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict

from spquery.core.parsers import ODataParser
from spquery.sp.lists import Lists
from spquery.sp.queryable import SharePointQueryableInstance
from spquery.sp.site_users import SiteUser, SiteUsers


@dataclass
class EnsureUserResult:
    data: Dict[str, Any]
    user: SiteUser


class Web(SharePointQueryableInstance):
    """
    A SharePoint web.

    Usage:
        ```python
        web = Web("https://contoso.sharepoint.com/sites/dev", client=client)
        lists = await web.lists.select("Title").get()
        ```
    """

    default_path = "web"

    @property
    def lists(self) -> Lists:
        return self.clone(Lists, "lists", inherit_query=False)

    @property
    def site_users(self) -> SiteUsers:
        return self.clone(SiteUsers, "siteusers", inherit_query=False)

    @property
    def current_user(self) -> SiteUser:
        return self.clone(SiteUser, "currentuser", inherit_query=False)

    def ensure_user(self, login_name: str) -> asyncio.Future:
        """
        Make sure a user exists in the web, adding it when needed.

        Returns:
            Awaitable resolving to an EnsureUserResult
        """
        def to_result(data: Dict[str, Any]) -> EnsureUserResult:
            user = self.site_users.get_by_id(data["Id"], include_batch=False)
            return EnsureUserResult(data=data, user=user)

        return self.clone(Web, "ensureuser", inherit_query=False).invoke(
            "POST",
            body={"logonName": login_name},
            parser=ODataParser(),
            post_process=to_result,
        )
