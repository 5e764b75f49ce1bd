"""
Batch model and coordinator.

Collects pending requests issued against a batch, sends them as one
``$batch`` HTTP request, and fans the sub-responses back out to each
caller in registration order.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import structlog

from spquery.core.hooks import HookEvent
from spquery.core.parsers import error_from_response
from spquery.core.request import PendingRequest
from spquery.exceptions import BatchStateError, ParseError
from spquery.transport.interface import Body, RawResponse

if TYPE_CHECKING:
    from spquery.core.pipeline import Pipeline

logger = structlog.get_logger(__name__)


class BatchStatus(str, Enum):
    """Status of a batch."""
    OPEN = "open"                 # Still accepting registrations
    EXECUTING = "executing"       # Envelope being built, sent or demultiplexed
    COMPLETED = "completed"       # Every member settled
    FAILED = "failed"             # Envelope-level failure


class BatchCodec(ABC):
    """
    Wire format of a batch envelope.

    A codec turns the ordered member requests into one HTTP request and
    splits the envelope response back into one sub-response per member.
    """

    #: Maximum number of members per envelope (None for unbounded)
    max_requests: Optional[int] = None

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Absolute URL the envelope is posted to."""
        pass

    def validate(self, request: PendingRequest) -> None:
        """Reject a request that cannot be carried by this format."""
        pass

    @abstractmethod
    def encode(self, batch_id: str, requests: List[PendingRequest]) -> Tuple[Dict[str, str], Body]:
        """
        Serialize the members.

        Returns:
            Tuple of (envelope headers, envelope body)
        """
        pass

    @abstractmethod
    def decode(self, response: RawResponse, requests: List[PendingRequest]) -> List[Optional[RawResponse]]:
        """
        Split the envelope response.

        Returns:
            One sub-response per member, in member order; None where the
            envelope carried no response for that member
        """
        pass


class BatchSlot:
    """
    A reserved position in a batch.

    Used by operations that must fetch something before they know the
    request they will register (a dependent follow-up). The batch waits
    for every reserved slot to be filled or released before it sends.
    """

    def __init__(self, batch: "Batch", sequence: int):
        self.batch = batch
        self.sequence = sequence
        self.request: Optional[PendingRequest] = None
        self.released = False
        self._trackers: List[asyncio.Future] = []
        self._ready = asyncio.Event()

    @property
    def is_settled(self) -> bool:
        """Check if the slot was filled or released."""
        return self._ready.is_set()

    def fill(self, request: PendingRequest) -> None:
        """
        Place a request in this slot.

        Raises:
            BatchStateError: If the slot was already used or the batch has finished
        """
        if self.is_settled:
            raise BatchStateError(f"Batch slot {self.sequence} has already been used")
        if self.batch.status in (BatchStatus.COMPLETED, BatchStatus.FAILED):
            raise BatchStateError(
                f"Batch {self.batch.batch_id} is {self.batch.status.value}; cannot register requests"
            )
        request.mark_queued(self.batch, self.sequence)
        self.request = request
        self._ready.set()

    def release(self) -> None:
        """Give the slot up without registering a request."""
        if not self.is_settled:
            self.released = True
            self._ready.set()

    def track(self, awaitable: asyncio.Future) -> asyncio.Future:
        """Have the batch also wait on an outer awaitable derived from this slot."""
        self._trackers.append(awaitable)
        return awaitable

    async def wait(self) -> None:
        await self._ready.wait()


class Batch:
    """
    A batch of pending requests sent as one HTTP request.

    Lifecycle: ``open`` (accepting registrations) -> ``executing`` ->
    ``completed`` or ``failed``. A batch is executed exactly once.

    Usage:
        ```python
        batch = client.create_batch()
        titles = client.web.lists.in_batch(batch).select("Title").get()
        me = client.web.current_user.in_batch(batch).get()
        await batch.execute()
        print(await titles, await me)
        ```

    Attributes:
        batch_id: Unique identifier, also used for the multipart boundary
        status: Current lifecycle status
        created_at: When the batch was created
        executed_at: When execution started
        error_message: Envelope-level error, if any
    """

    def __init__(
        self,
        pipeline: "Pipeline",
        codec: BatchCodec,
        batch_id: Optional[str] = None,
    ):
        self.pipeline = pipeline
        self.codec = codec
        self.batch_id = batch_id or str(uuid.uuid4())
        self.status = BatchStatus.OPEN
        self.created_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()
        self.executed_at: Optional[datetime] = None
        self.error_message: Optional[str] = None
        self._slots: List[BatchSlot] = []

    @property
    def requests(self) -> List[PendingRequest]:
        """Registered requests in registration order."""
        return [slot.request for slot in self._slots if slot.request is not None]

    @property
    def size(self) -> int:
        """Get the number of reserved positions."""
        return len(self._slots)

    @property
    def is_empty(self) -> bool:
        return len(self._slots) == 0

    @property
    def is_open(self) -> bool:
        return self.status == BatchStatus.OPEN

    def ensure_open(self) -> None:
        """
        Raises:
            BatchStateError: If the batch no longer accepts registrations
        """
        if self.status != BatchStatus.OPEN:
            raise BatchStateError(
                f"Batch {self.batch_id} is {self.status.value}; cannot register requests"
            )

    def reserve(self) -> BatchSlot:
        """
        Reserve the next position for a request that will be registered later.

        Raises:
            BatchStateError: If the batch is not open or is full
        """
        self.ensure_open()
        limit = self.codec.max_requests
        if limit is not None and len(self._slots) >= limit:
            raise BatchStateError(f"Batch {self.batch_id} is full ({limit} requests)")
        slot = BatchSlot(self, len(self._slots) + 1)
        self._slots.append(slot)
        self.updated_at = datetime.utcnow()
        return slot

    def register(self, request: PendingRequest) -> asyncio.Future:
        """
        Register a request at the next position.

        Returns:
            The request's future, settled when the batch executes
        """
        slot = self.reserve()
        slot.fill(request)
        logger.debug(
            "batch_request_registered",
            batch_id=self.batch_id[:8] + "...",
            sequence=slot.sequence,
            method=request.method,
            url=request.url,
        )
        return request.future

    def mark_executing(self) -> None:
        """Mark batch as executing."""
        self.status = BatchStatus.EXECUTING
        self.executed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_completed(self) -> None:
        """Mark batch as completed."""
        self.status = BatchStatus.COMPLETED
        self.updated_at = datetime.utcnow()

    def mark_failed(self, error: BaseException) -> None:
        """Mark batch as failed and reject every unsettled member with ``error``."""
        self.status = BatchStatus.FAILED
        self.error_message = str(error)
        self.updated_at = datetime.utcnow()
        for request in self.requests:
            if not request.is_settled:
                self.pipeline.fail(request, error)

    async def execute(self) -> None:
        """
        Send the batch and settle every member.

        Members settle in registration order; this coroutine returns only
        after every member's callbacks have run.

        Raises:
            BatchStateError: If the batch was already executed
            TransportError: If the envelope could not be sent
            ODataError: If the envelope itself was rejected
        """
        if self.status != BatchStatus.OPEN:
            raise BatchStateError(f"Batch {self.batch_id} is {self.status.value}; it can only be executed once")

        self.mark_executing()

        # dependent follow-ups fill their slots before anything is sent
        await asyncio.gather(*(slot.wait() for slot in self._slots))

        requests = self.requests
        trackers = [t for slot in self._slots for t in slot._trackers]

        if not requests:
            self.mark_completed()
            await self._drain(requests, trackers)
            logger.debug("batch_empty", batch_id=self.batch_id[:8] + "...")
            return

        logger.info(
            "batch_executing",
            batch_id=self.batch_id[:8] + "...",
            size=len(requests),
            endpoint=self.codec.endpoint,
        )

        try:
            headers, body = self.codec.encode(self.batch_id, requests)
            for request in requests:
                self.pipeline.hooks.fire(HookEvent.SEND, request)
                request.mark_sent()

            response = await self.pipeline.dispatch("POST", self.codec.endpoint, headers, body)
            if not response.ok:
                raise error_from_response(response, self.codec.endpoint)

            fragments = self.codec.decode(response, requests)
        except Exception as e:
            logger.error(
                "batch_failed",
                batch_id=self.batch_id[:8] + "...",
                error=str(e),
            )
            self.mark_failed(e)
            await self._drain(requests, trackers)
            raise

        for request, fragment in zip(requests, fragments):
            if fragment is None:
                self.pipeline.fail(
                    request,
                    ParseError(
                        f"Batch response carried no entry for request {request.sequence}",
                        raw=response.text[:500],
                        url=request.url,
                    ),
                )
                continue
            fragment.url = request.url
            try:
                value = await self.pipeline.complete(request, fragment)
            except Exception as e:
                self.pipeline.fail(request, e)
                continue
            request.settle(value)

        self.mark_completed()
        await self._drain(requests, trackers)

        logger.info(
            "batch_completed",
            batch_id=self.batch_id[:8] + "...",
            failed=sum(1 for r in requests if r.error is not None),
        )

    async def _drain(self, requests: List[PendingRequest], trackers: List[asyncio.Future]) -> None:
        """Wait until every member (and derived awaitable) has run its callbacks."""
        awaitables = [r.future for r in requests] + trackers
        if awaitables:
            await asyncio.gather(*awaitables, return_exceptions=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "size": self.size,
            "endpoint": self.codec.endpoint,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "error_message": self.error_message,
            "requests": [r.to_dict() for r in self.requests],
        }

    def __repr__(self) -> str:
        return f"Batch(id={self.batch_id[:8]}..., status={self.status.value}, size={self.size})"
