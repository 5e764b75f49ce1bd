"""
OData payload conventions.

SharePoint returns three payload shapes depending on the requested
metadata level:

- verbose: ``{"d": {"__metadata": {"uri": ...}, ...}}``
- minimal: ``{"odata.metadata": ..., "odata.editLink": ..., ...}``
- nometadata: bare properties, ``odata.editLink`` only when asked for

The helpers here normalize those shapes and recover the canonical
resource URL used to hydrate chainable nodes.
"""

from typing import Any, Mapping, Optional

import structlog

from spquery.core.urls import combine, is_url_absolute

logger = structlog.get_logger(__name__)

EDIT_LINK = "odata.editLink"
METADATA = "odata.metadata"
TYPE = "odata.type"
ODATA_ID = "odata.id"
GRAPH_ODATA_ID = "@odata.id"
VERBOSE_METADATA = "__metadata"


def extract_web_url(candidate: Optional[str]) -> str:
    """
    Get the web URL from any URL below ``_api/`` or ``_vti_bin/``.

    Example:
        >>> extract_web_url("https://t.sharepoint.com/sites/dev/_api/web/lists")
        'https://t.sharepoint.com/sites/dev/'
    """
    if not candidate:
        return ""

    for marker in ("_api/", "_vti_bin/"):
        index = candidate.find(marker)
        if index > -1:
            return candidate[:index]

    if candidate.endswith("_api"):
        return candidate[:-len("_api")]

    return candidate


def unwrap_payload(payload: Any) -> Any:
    """
    Strip the OData envelope from a decoded JSON payload.

    Verbose ``d``/``d.results`` and minimal ``value`` wrappers are
    removed; anything else is returned unchanged.
    """
    if isinstance(payload, dict):
        if "d" in payload:
            inner = payload["d"]
            if isinstance(inner, dict) and "results" in inner:
                return inner["results"]
            return inner
        if "value" in payload:
            return payload["value"]
    return payload


def odata_url_from(candidate: Mapping[str, Any], web_url: Optional[str] = None) -> str:
    """
    Recover the canonical resource URL embedded in an OData entity.

    Args:
        candidate: Decoded entity properties
        web_url: Web URL of the originating request, used to resolve a
            relative ``odata.editLink`` from a nometadata payload

    Returns:
        Absolute URL, or "" when the payload carries no URL information
    """
    parts = []

    if candidate.get(TYPE) == "SP.Web":
        # webs return an absolute url in the editLink
        if EDIT_LINK in candidate:
            parts.append(candidate[EDIT_LINK])
        elif VERBOSE_METADATA in candidate:
            parts.append(candidate[VERBOSE_METADATA].get("uri"))
    elif METADATA in candidate and EDIT_LINK in candidate:
        parts.extend([extract_web_url(candidate[METADATA]), "_api", candidate[EDIT_LINK]])
    elif EDIT_LINK in candidate:
        if is_url_absolute(candidate[EDIT_LINK]):
            parts.append(candidate[EDIT_LINK])
        else:
            parts.extend([extract_web_url(web_url), "_api", candidate[EDIT_LINK]])
    elif VERBOSE_METADATA in candidate:
        parts.append(candidate[VERBOSE_METADATA].get("uri"))
    elif is_url_absolute(candidate.get(ODATA_ID)):
        parts.append(candidate[ODATA_ID])
    elif is_url_absolute(candidate.get(GRAPH_ODATA_ID)):
        parts.append(candidate[GRAPH_ODATA_ID])

    url = combine(*parts)
    if not is_url_absolute(url):
        logger.warning("odata_url_missing", keys=sorted(candidate.keys())[:10])
        return ""

    return url
