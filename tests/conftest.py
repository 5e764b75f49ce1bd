"""
Pytest configuration and shared fixtures for the test suite.
"""

import inspect
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from spquery.config import ClientConfig, MetadataMode
from spquery.core.caching import ResponseCache
from spquery.graph.client import GraphClient
from spquery.sp.client import SPClient
from spquery.transport.interface import Body, RawResponse, Transport


SITE_URL = "https://contoso.sharepoint.com/sites/dev"
GRAPH_ROOT = "https://graph.microsoft.com/v1.0"

JSON_MINIMAL = "application/json;odata=minimalmetadata;streaming=true;charset=utf-8"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> ClientConfig:
    """Create a test configuration."""
    return ClientConfig(
        site_url=SITE_URL,
        metadata=MetadataMode.MINIMAL,
        timeout_seconds=5,
        max_retries=2,
        retry_delay_seconds=0.01,
        cache_ttl_seconds=60,
        graph_batch_limit=20,
        log_level="DEBUG",
    )


# ============================================================================
# Response Builders
# ============================================================================

def json_response(payload: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> RawResponse:
    """Build a JSON response."""
    response_headers = {"Content-Type": JSON_MINIMAL}
    response_headers.update(headers or {})
    return RawResponse(status=status, headers=response_headers, content=json.dumps(payload))


def empty_response(status: int = 204, headers: Optional[Dict[str, str]] = None) -> RawResponse:
    return RawResponse(status=status, headers=headers or {}, content=b"")


def error_response(status: int, message: str, code: str = "-1, Microsoft.SharePoint.SPException",
                   headers: Optional[Dict[str, str]] = None) -> RawResponse:
    """Build a minimal-metadata error response."""
    payload = {"odata.error": {"code": code, "message": {"lang": "en-US", "value": message}}}
    return json_response(payload, status=status, headers=headers)


def sp_batch_response(parts: List[Tuple[int, Any]], boundary: str = "batchresponse_8ad6e0ce") -> RawResponse:
    """
    Build a SharePoint multipart batch response.

    Args:
        parts: (status, payload) per member; a payload of None gives an empty body,
            a str is sent verbatim
    """
    reasons = {200: "OK", 201: "Created", 204: "No Content", 400: "Bad Request",
               404: "Not Found", 429: "Too Many Requests", 500: "Internal Server Error"}
    lines: List[str] = []
    for status, payload in parts:
        lines.append(f"--{boundary}")
        lines.append("Content-Type: application/http")
        lines.append("Content-Transfer-Encoding: binary")
        lines.append("")
        lines.append(f"HTTP/1.1 {status} {reasons.get(status, 'Unknown')}")
        if payload is None:
            lines.append("")
        else:
            lines.append(f"CONTENT-TYPE: {JSON_MINIMAL}")
            lines.append("")
            lines.append(payload if isinstance(payload, str) else json.dumps(payload))
    lines.append(f"--{boundary}--")
    lines.append("")
    return RawResponse(
        status=200,
        headers={"Content-Type": f"multipart/mixed; boundary={boundary}"},
        content="\r\n".join(lines),
    )


_BATCH_PART = re.compile(r"^(GET|POST|PUT|PATCH|DELETE) (https?://\S+) HTTP/1\.1$", re.MULTILINE)


def batch_parts(body: str) -> List[Tuple[str, str]]:
    """Get the (method, url) of every part in a SharePoint batch body."""
    return _BATCH_PART.findall(body.replace("\r\n", "\n"))


def sp_batch_echo(payload_for: Callable[[str, str], Tuple[int, Any]]):
    """Route handler answering each part of a SharePoint batch with ``payload_for(method, url)``."""
    def handler(method: str, url: str, headers: Dict[str, str], body: Body) -> RawResponse:
        return sp_batch_response([payload_for(m, u) for m, u in batch_parts(body)])
    return handler


def graph_batch_echo(payload_for: Callable[[Dict[str, Any]], Tuple[int, Any]], reverse: bool = False):
    """Route handler answering each Graph batch request with ``payload_for(entry)``."""
    def handler(method: str, url: str, headers: Dict[str, str], body: Body) -> RawResponse:
        entries = json.loads(body)["requests"]
        responses = []
        for entry in entries:
            status, payload = payload_for(entry)
            response = {"id": entry["id"], "status": status, "headers": {"Content-Type": "application/json"}}
            if payload is not None:
                response["body"] = payload
            responses.append(response)
        if reverse:
            responses.reverse()
        return json_response({"responses": responses}, headers={"Content-Type": "application/json"})
    return handler


# ============================================================================
# Sample Payloads
# ============================================================================

def web_payload(title: str = "Dev") -> Dict[str, Any]:
    return {
        "odata.metadata": f"{SITE_URL}/_api/$metadata#SP.ApiData.Webs/@Element",
        "odata.type": "SP.Web",
        "odata.id": f"{SITE_URL}/_api/Web",
        "odata.editLink": f"{SITE_URL}/_api/Web",
        "Title": title,
    }


def list_payload_minimal(title: str = "Docs", guid: str = "6f1c2f3a-0000-4000-8000-000000000001") -> Dict[str, Any]:
    return {
        "odata.metadata": f"{SITE_URL}/_api/$metadata#SP.ApiData.Lists/@Element",
        "odata.type": "SP.List",
        "odata.id": f"{SITE_URL}/_api/Web/Lists(guid'{guid}')",
        "odata.editLink": f"Web/Lists(guid'{guid}')",
        "Title": title,
    }


def list_payload_verbose(title: str = "Docs", guid: str = "6f1c2f3a-0000-4000-8000-000000000001") -> Dict[str, Any]:
    return {
        "__metadata": {
            "id": f"{SITE_URL}/_api/Web/Lists(guid'{guid}')",
            "uri": f"{SITE_URL}/_api/Web/Lists(guid'{guid}')",
            "type": "SP.List",
        },
        "Title": title,
    }


def list_payload_nometadata(title: str = "Docs", guid: str = "6f1c2f3a-0000-4000-8000-000000000001") -> Dict[str, Any]:
    return {
        "odata.editLink": f"Web/Lists(guid'{guid}')",
        "Title": title,
    }


def lists_collection_minimal(titles: List[str]) -> Dict[str, Any]:
    return {
        "odata.metadata": f"{SITE_URL}/_api/$metadata#SP.ApiData.Lists",
        "value": [
            list_payload_minimal(title, f"6f1c2f3a-0000-4000-8000-{i + 1:012d}")
            for i, title in enumerate(titles)
        ],
    }


# ============================================================================
# Fake Transport
# ============================================================================

Responder = Union[RawResponse, List[RawResponse], Callable[..., RawResponse], Exception]


@dataclass
class SentRequest:
    """A request recorded by the fake transport."""
    method: str
    url: str
    headers: Dict[str, str]
    body: Body


class FakeTransport(Transport):
    """
    In-memory transport for testing.

    Routes map an HTTP method and a URL substring to a response, a list of
    responses (served in turn, the last one repeating), a callable
    ``(method, url, headers, body) -> RawResponse`` (sync or async) or an exception to
    raise. Later routes take precedence; unmatched requests get a 404.
    """

    def __init__(self):
        self.routes: List[Tuple[str, str, Responder]] = []
        self.calls: List[SentRequest] = []
        self.closed = False

    def add(self, method: str, fragment: str, responder: Responder) -> "FakeTransport":
        if isinstance(responder, list):
            responder = list(responder)
        self.routes.append((method.upper(), fragment, responder))
        return self

    def calls_to(self, fragment: str) -> List[SentRequest]:
        return [call for call in self.calls if fragment in call.url]

    async def send(self, method: str, url: str, headers, body: Body = None) -> RawResponse:
        self.calls.append(SentRequest(method, url, dict(headers), body))

        for route_method, fragment, responder in reversed(self.routes):
            if route_method != method or fragment not in url:
                continue
            if isinstance(responder, Exception):
                raise responder
            if isinstance(responder, list):
                return responder.pop(0) if len(responder) > 1 else responder[0]
            if callable(responder):
                response = responder(method, url, dict(headers), body)
                if inspect.isawaitable(response):
                    response = await response
                return response
            return responder

        return error_response(404, f"No route for {method} {url}")

    async def aclose(self) -> None:
        self.closed = True


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache(default_ttl=60)


@pytest.fixture
def sp_client(test_config, transport, cache) -> SPClient:
    """Create a SharePoint client on the fake transport."""
    return SPClient(SITE_URL, config=test_config, transport=transport, cache=cache)


@pytest.fixture
def graph_client(test_config, transport, cache) -> GraphClient:
    """Create a Graph client on the fake transport."""
    return GraphClient(config=test_config, transport=transport, cache=cache)
