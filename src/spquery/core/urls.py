"""
URL helpers used when composing OData request URLs.
"""

import re
import uuid
from typing import Any, Optional
from urllib.parse import quote

_DUPLICATE_SLASHES = re.compile(r"(?<!:)/{2,}")
_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_PARAMETER_ALIAS = re.compile(r"^!(@.*?)::(.*)$", re.DOTALL)

# Characters OData syntax needs verbatim inside a path segment
_PATH_SAFE = "/()',=@$:!*;+%"


def combine(*parts: Optional[str]) -> str:
    """
    Join URL parts with single slashes.

    Empty parts are dropped, leading/trailing slashes are stripped from
    every part and duplicate slashes are collapsed (except after the
    scheme).

    Example:
        >>> combine("https://contoso.sharepoint.com/", "/_api//", "web")
        'https://contoso.sharepoint.com/_api/web'
    """
    cleaned = []
    for part in parts:
        if part is None:
            continue
        part = str(part).replace("\\", "/").strip("/")
        if part:
            cleaned.append(part)
    return _DUPLICATE_SLASHES.sub("/", "/".join(cleaned))


def is_url_absolute(url: Optional[str]) -> bool:
    """Check whether a URL carries an http(s) scheme."""
    return bool(url) and _ABSOLUTE_URL.match(url) is not None


def encode_component(value: str) -> str:
    """Percent-escape a value the way encodeURIComponent does."""
    return quote(str(value), safe="!~*'()")


def encode_path(segment: str) -> str:
    """
    Percent-escape a path segment.

    Parentheses, quotes, commas and the other characters that OData
    method-call syntax uses are kept as-is, as are already escaped
    ``%XX`` sequences.
    """
    return quote(segment, safe=_PATH_SAFE)


def escape_literal(value: Any) -> str:
    """
    Escape a value for use inside a quoted OData string literal.

    Single quotes are doubled and the result is percent-escaped. A
    parameter-alias value of the form ``!@p::value`` keeps its prefix.
    """
    if value is None or value == "":
        return ""

    value = str(value)
    match = _PARAMETER_ALIAS.match(value)
    if match:
        label, inner = match.groups()
        escaped = encode_component(inner.replace("'", "''"))
        return f"!{label}::{escaped}"

    return encode_component(value.replace("'", "''"))


def odata_literal(value: Any) -> str:
    """
    Render a Python value as an OData URL literal.

    Example:
        >>> odata_literal("O'Neil")
        "'O''Neil'"
        >>> odata_literal(True)
        'true'
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, uuid.UUID):
        return f"'{value}'"
    if isinstance(value, (int, float)):
        return str(value)
    return f"'{escape_literal(value)}'"
