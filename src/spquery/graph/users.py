"""
Users.
"""

from spquery.graph.directory_objects import DirectoryObject, DirectoryObjects
from spquery.graph.queryable import GraphQueryableCollection


class User(DirectoryObject):
    """A single user."""

    @property
    def member_of(self) -> DirectoryObjects:
        """Groups, directory roles and administrative units the user is a direct member of."""
        return self.clone(DirectoryObjects, "memberOf", inherit_query=False)


class Users(GraphQueryableCollection):
    """The users of the tenant."""

    default_path = "users"
    item_factory = User

    def get_by_id(self, user_id: str) -> User:
        """Get a user by object id or user principal name."""
        return self.clone(User, user_id, inherit_query=False)
