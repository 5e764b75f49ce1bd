"""
HTTP transport layer.

The core depends only on the abstract Transport; HttpxTransport is the
default implementation.
"""

from spquery.transport.interface import RawResponse, Transport
from spquery.transport.http import HttpxTransport

__all__ = [
    "RawResponse",
    "Transport",
    "HttpxTransport",
]
