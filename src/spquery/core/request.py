"""
Pending request model.

Represents a single invocation of a queryable node, from creation until
its awaitable is settled.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from spquery.core.batch import Batch
    from spquery.core.parsers import Parser
    from spquery.core.queryable import Queryable


class RequestStatus(str, Enum):
    """Status of a pending request."""
    CREATED = "created"           # Invocation recorded, not yet dispatched
    QUEUED = "queued"             # Registered on a batch
    SENT = "sent"                 # On the wire (alone or inside a batch)
    PARSED = "parsed"             # Response decoded by the bound parser
    SETTLED = "settled"           # Awaitable resolved with a value
    FAILED = "failed"             # Awaitable rejected with an error


@dataclass
class PendingRequest:
    """
    Represents one invocation of a queryable node.

    Exactly one PendingRequest exists per ``invoke()`` call; it is owned
    by the batch it is registered on, or by the pipeline when sent
    directly.

    Attributes:
        queryable: Node the request was created from
        method: HTTP verb
        body: Serialized request body
        headers: Final request headers
        parser: Strategy used to turn the response into a value
        batch: Batch the request is registered on, if any
        post_process: Optional transform applied to the parsed value
        url: Absolute URL (with query) frozen at configure time
        sequence: 1-based position inside the batch
        status: Current lifecycle status
        future: Awaitable handed back to the caller
    """

    queryable: "Queryable"
    method: str = "GET"
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    parser: Optional["Parser"] = None
    batch: Optional["Batch"] = None
    post_process: Optional[Callable[[Any], Any]] = None

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    url: str = ""
    sequence: Optional[int] = None
    status: RequestStatus = RequestStatus.CREATED
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    # Caching
    cache_key: Optional[str] = None
    cache_ttl: Optional[float] = None

    future: Optional[asyncio.Future] = None
    task: Optional[asyncio.Task] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        """Normalize after initialization."""
        self.method = self.method.upper()
        if self.future is None:
            self.future = asyncio.get_running_loop().create_future()

    @property
    def is_settled(self) -> bool:
        """Check if the awaitable has been resolved or rejected."""
        return self.future.done()

    def mark_queued(self, batch: "Batch", sequence: int) -> None:
        """Mark request as registered on a batch."""
        self.status = RequestStatus.QUEUED
        self.batch = batch
        self.sequence = sequence
        self.updated_at = datetime.utcnow()

    def mark_sent(self) -> None:
        """Mark request as sent."""
        self.status = RequestStatus.SENT
        self.updated_at = datetime.utcnow()

    def mark_parsed(self) -> None:
        """Mark request as parsed."""
        self.status = RequestStatus.PARSED
        self.updated_at = datetime.utcnow()

    def settle(self, value: Any) -> None:
        """Resolve the awaitable with a value."""
        self.status = RequestStatus.SETTLED
        self.updated_at = datetime.utcnow()
        if not self.future.done():
            self.future.set_result(value)

    def fail(self, error: BaseException) -> None:
        """Reject the awaitable with an error."""
        self.status = RequestStatus.FAILED
        self.error = error
        self.updated_at = datetime.utcnow()
        if not self.future.done():
            self.future.set_exception(error)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "request_id": self.request_id,
            "method": self.method,
            "url": self.url,
            "sequence": self.sequence,
            "status": self.status.value,
            "batch_id": self.batch.batch_id if self.batch else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "error": str(self.error) if self.error else None,
        }

    def __repr__(self) -> str:
        return f"PendingRequest({self.method} {self.url}, status={self.status.value})"
