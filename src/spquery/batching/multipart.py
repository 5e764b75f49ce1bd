"""
SharePoint ``$batch`` wire format.

Requests are serialized into a ``multipart/mixed`` body. Reads are
standalone ``application/http`` parts; runs of consecutive writes are
grouped into one changeset part. The response is a multipart body whose
fragments come back in request order, each beginning with an
``HTTP/1.1 <status> <reason>`` line.
"""

import re
import uuid
from typing import Dict, List, Optional, Tuple

import httpx
import structlog

from spquery.core.batch import BatchCodec
from spquery.core.odata import extract_web_url
from spquery.core.request import PendingRequest
from spquery.core.urls import combine
from spquery.exceptions import ConfigurationError
from spquery.transport.interface import Body, RawResponse

logger = structlog.get_logger(__name__)

CRLF = "\r\n"

_STATUS_LINE = re.compile(r"^HTTP/\d\.\d (\d{3}) ?(.*)$")


class SPBatchCodec(BatchCodec):
    """
    Multipart batch codec for the SharePoint REST API.

    Args:
        web_url: Any URL of the target web; everything from ``_api/`` on
            is dropped to find the ``$batch`` endpoint
    """

    def __init__(self, web_url: str):
        self.web_url = extract_web_url(web_url)

    @property
    def endpoint(self) -> str:
        return combine(self.web_url, "_api/$batch")

    def validate(self, request: PendingRequest) -> None:
        if isinstance(request.body, bytes):
            raise ConfigurationError(
                f"Binary bodies cannot be sent in a SharePoint batch ({request.method} {request.url})"
            )

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, batch_id: str, requests: List[PendingRequest]) -> Tuple[Dict[str, str], Body]:
        boundary = f"batch_{batch_id}"
        lines: List[str] = []
        changeset: Optional[str] = None

        for request in requests:
            if request.method == "GET":
                if changeset is not None:
                    lines.append(f"--{changeset}--")
                    lines.append("")
                    changeset = None
                lines.append(f"--{boundary}")
                lines.extend(self._http_part(request))
                continue

            if changeset is None:
                changeset = f"changeset_{uuid.uuid4()}"
                lines.append(f"--{boundary}")
                lines.append(f'Content-Type: multipart/mixed; boundary="{changeset}"')
                lines.append("")
            lines.append(f"--{changeset}")
            lines.extend(self._http_part(request))

        if changeset is not None:
            lines.append(f"--{changeset}--")
            lines.append("")
        lines.append(f"--{boundary}--")
        lines.append("")

        headers = {"Content-Type": f'multipart/mixed; boundary="{boundary}"'}
        return headers, CRLF.join(lines)

    def _http_part(self, request: PendingRequest) -> List[str]:
        lines = [
            "Content-Type: application/http",
            "Content-Transfer-Encoding: binary",
            "",
            f"{request.method} {request.url} HTTP/1.1",
        ]
        for name, value in request.headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")
        if request.body is not None:
            lines.append(request.body)
        lines.append("")
        return lines

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, response: RawResponse, requests: List[PendingRequest]) -> List[Optional[RawResponse]]:
        fragments = self.split(response.text)

        if len(fragments) != len(requests):
            logger.warning(
                "batch_response_count_mismatch",
                expected=len(requests),
                received=len(fragments),
            )

        matched: List[Optional[RawResponse]] = list(fragments[:len(requests)])
        matched.extend([None] * (len(requests) - len(matched)))
        return matched

    @staticmethod
    def split(text: str) -> List[RawResponse]:
        """
        Split a multipart batch response into sub-responses.

        Each fragment starts at an ``HTTP/1.1`` status line, is followed
        by its headers up to a blank line, and its body runs until the
        next boundary line.
        """
        fragments: List[RawResponse] = []
        state = "scan"
        status = 0
        reason = ""
        headers: List[Tuple[str, str]] = []
        body: List[str] = []

        def flush() -> None:
            while body and not body[-1].strip():
                body.pop()
            fragments.append(RawResponse(
                status=status,
                headers=httpx.Headers(headers),
                content="\n".join(body),
                reason=reason,
            ))

        for line in re.split(r"\r?\n", text):
            if state == "scan":
                match = _STATUS_LINE.match(line)
                if match:
                    status = int(match.group(1))
                    reason = match.group(2).strip()
                    headers = []
                    body = []
                    state = "headers"
            elif state == "headers":
                if not line.strip():
                    state = "body"
                elif ":" in line:
                    name, value = line.split(":", 1)
                    headers.append((name.strip(), value.strip()))
            elif state == "body":
                if line.startswith("--"):
                    flush()
                    state = "scan"
                else:
                    body.append(line)

        if state in ("headers", "body"):
            flush()

        return fragments
