"""
Microsoft Graph client.
"""

from typing import TYPE_CHECKING, Dict, Optional

from spquery.batching.json_batch import GraphBatchCodec
from spquery.core.client import Client
from spquery.graph.directory_objects import DirectoryObjects
from spquery.graph.groups import Groups
from spquery.graph.users import User, Users

if TYPE_CHECKING:
    from spquery.core.queryable import Queryable
    from spquery.core.request import PendingRequest


class GraphClient(Client):
    """
    Client for Microsoft Graph, rooted at ``config.graph_root``.

    Usage:
        ```python
        async with GraphClient(transport=HttpxTransport(headers={"Authorization": f"Bearer {token}"})) as graph:
            users = await graph.users.select("displayName").top(5).get()
        ```
    """

    @property
    def root(self) -> str:
        return self.config.graph_root

    @property
    def users(self) -> Users:
        return Users(self.root, client=self)

    @property
    def groups(self) -> Groups:
        return Groups(self.root, client=self)

    @property
    def directory_objects(self) -> DirectoryObjects:
        return DirectoryObjects(self.root, client=self)

    @property
    def me(self) -> User:
        """Get the signed-in user."""
        return User(self.root, "me", client=self)

    def default_headers(self, request: "PendingRequest") -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if request.body is not None:
            headers["Content-Type"] = "application/json"
        return headers

    def batch_codec(self, node: Optional["Queryable"] = None) -> GraphBatchCodec:
        return GraphBatchCodec(self.config)

    def __repr__(self) -> str:
        return f"GraphClient(root={self.root!r})"
