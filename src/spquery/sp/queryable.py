"""
SharePoint queryable bases.

Entity wrappers derive from one of the two bases here: a collection
(whose entries hydrate into ``item_factory``) or a single instance
(which additionally supports MERGE updates and deletion).
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from spquery.core.queryable import Queryable
from spquery.core.urls import combine

VERBOSE_JSON = "application/json;odata=verbose;charset=utf-8"
NOMETADATA_JSON = "application/json;odata=nometadata;charset=utf-8"


def metadata(entity_type: str) -> Dict[str, Any]:
    """Get the ``__metadata`` block a verbose write body carries."""
    return {"__metadata": {"type": entity_type}}


def write_body(properties: Dict[str, Any], entity_type: Optional[str]) -> Dict[str, Any]:
    body = metadata(entity_type) if entity_type else {}
    body.update(properties)
    return body


def write_headers(entity_type: Optional[str]) -> Dict[str, str]:
    # without a type name the body cannot carry __metadata
    return {"Content-Type": VERBOSE_JSON if entity_type else NOMETADATA_JSON}


class SharePointQueryable(Queryable):
    """Base node for the SharePoint REST API."""

    def resolve_base(self, base: Optional[str]) -> str:
        """Accept either a web URL or a URL already below ``_api``."""
        base = super().resolve_base(base)
        if "/_api" not in base.lower():
            base = combine(base, "_api")
        return base


class SharePointQueryableCollection(SharePointQueryable):
    """A SharePoint entity collection."""
    pass


class SharePointQueryableInstance(SharePointQueryable):
    """A single SharePoint entity."""

    def merge(
        self,
        properties: Dict[str, Any],
        entity_type: Optional[str] = None,
        etag: str = "*",
        post_process: Optional[Callable[[Any], Any]] = None,
    ) -> asyncio.Future:
        """
        Update this entity with a MERGE request.

        Args:
            properties: Property names and values to change
            entity_type: Entity type name sent in ``__metadata``
            etag: Value of the IF-MATCH header
            post_process: Transform applied to the (usually empty) response
        """
        headers = write_headers(entity_type)
        headers.update({
            "X-HTTP-Method": "MERGE",
            "IF-MATCH": etag,
        })
        return self.invoke(
            "POST",
            body=write_body(properties, entity_type),
            headers=headers,
            post_process=post_process,
        )

    def delete(self, etag: str = "*") -> asyncio.Future:
        """Delete this entity."""
        return self.invoke(
            "POST",
            headers={
                "X-HTTP-Method": "DELETE",
                "IF-MATCH": etag,
            },
        )
