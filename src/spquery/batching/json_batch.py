"""
Microsoft Graph ``$batch`` wire format.

Requests are posted as ``{"requests": [{id, method, url, headers, body}]}``
with URLs relative to the versioned Graph root; responses come back as
``{"responses": [...]}`` in any order and are matched by id.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import structlog

from spquery.config import ClientConfig, get_config
from spquery.core.batch import BatchCodec
from spquery.core.request import PendingRequest
from spquery.core.urls import combine
from spquery.exceptions import ConfigurationError, ParseError
from spquery.transport.interface import Body, RawResponse

logger = structlog.get_logger(__name__)


class GraphBatchCodec(BatchCodec):
    """JSON batch codec for Microsoft Graph."""

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or get_config()
        self.root = self.config.graph_root
        self.max_requests = self.config.graph_batch_limit

    @property
    def endpoint(self) -> str:
        return combine(self.root, "$batch")

    def relative_url(self, url: str) -> str:
        """Get ``url`` relative to the versioned Graph root."""
        if not url.lower().startswith(self.root.lower()):
            raise ConfigurationError(f"'{url}' is not below the Graph root {self.root}")
        relative = url[len(self.root):]
        return relative if relative.startswith("/") else f"/{relative}"

    def validate(self, request: PendingRequest) -> None:
        self.relative_url(request.url)
        if isinstance(request.body, bytes):
            raise ConfigurationError(
                f"Binary bodies cannot be sent in a Graph batch ({request.method} {request.url})"
            )

    def encode(self, batch_id: str, requests: List[PendingRequest]) -> Tuple[Dict[str, str], Body]:
        entries = []
        for request in requests:
            entry: Dict[str, Any] = {
                "id": str(request.sequence),
                "method": request.method,
                "url": self.relative_url(request.url),
            }
            if request.headers:
                entry["headers"] = dict(request.headers)
            if request.body is not None:
                try:
                    entry["body"] = json.loads(request.body)
                except ValueError:
                    entry["body"] = request.body
            entries.append(entry)

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return headers, json.dumps({"requests": entries})

    def decode(self, response: RawResponse, requests: List[PendingRequest]) -> List[Optional[RawResponse]]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Graph batch response is not valid JSON: {e}", raw=response.text, url=self.endpoint) from e

        by_id: Dict[str, RawResponse] = {}
        for entry in payload.get("responses", []):
            by_id[str(entry.get("id"))] = self._sub_response(entry)

        if len(by_id) != len(requests):
            logger.warning(
                "batch_response_count_mismatch",
                expected=len(requests),
                received=len(by_id),
            )

        return [by_id.get(str(request.sequence)) for request in requests]

    @staticmethod
    def _sub_response(entry: Dict[str, Any]) -> RawResponse:
        headers = dict(entry.get("headers") or {})
        body = entry.get("body")

        if body is None:
            content = b""
        elif isinstance(body, (dict, list)):
            content = json.dumps(body).encode("utf-8")
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = "application/json"
        else:
            content = str(body).encode("utf-8")

        return RawResponse(status=int(entry.get("status", 0)), headers=headers, content=content)
