"""
Pipeline observer registry.

Each client owns one HookRegistry. Callbacks are added and removed
through explicit handles and fire in registration order; there is no
process-wide switch that affects other clients.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

logger = structlog.get_logger(__name__)


class HookEvent(str, Enum):
    """Pipeline points observers can attach to."""
    CONFIGURE = "configure"       # Request headers/body/parser finalized
    SEND = "send"                 # Request about to go on the wire
    PARSED = "parsed"             # Response parsed (value after post-processing)
    ERROR = "error"               # Request failed


@dataclass(eq=False)
class HookHandle:
    """Handle returned by ``HookRegistry.add``; removes the callback again."""
    registry: "HookRegistry"
    event: HookEvent
    callback: Callable[..., Any]

    @property
    def active(self) -> bool:
        return self in self.registry._hooks[self.event]

    def remove(self) -> bool:
        """
        Remove the callback from its registry.

        Returns:
            True if removed, False if it was already gone
        """
        return self.registry.remove(self)


class HookRegistry:
    """
    Ordered collection of observer callbacks.

    Usage:
        ```python
        handle = client.hooks.add("send", lambda request: print(request.url))
        ...
        handle.remove()
        ```
    """

    def __init__(self):
        self._hooks: Dict[HookEvent, List[HookHandle]] = {
            event: [] for event in HookEvent
        }

    def add(self, event: Union[HookEvent, str], callback: Callable[..., Any]) -> HookHandle:
        """
        Register a callback for an event.

        Args:
            event: Event name or HookEvent
            callback: Called with the event arguments

        Returns:
            Handle used to remove the callback
        """
        handle = HookHandle(self, HookEvent(event), callback)
        self._hooks[handle.event].append(handle)
        logger.debug("hook_added", hook_event=handle.event.value, count=len(self._hooks[handle.event]))
        return handle

    def remove(self, handle: HookHandle) -> bool:
        """Remove a previously registered callback."""
        handles = self._hooks[handle.event]
        if handle in handles:
            handles.remove(handle)
            return True
        return False

    def clear(self, event: Optional[Union[HookEvent, str]] = None) -> None:
        """Remove all callbacks from this registry (or from one event)."""
        events = [HookEvent(event)] if event is not None else list(HookEvent)
        for e in events:
            self._hooks[e].clear()

    def count(self, event: Union[HookEvent, str]) -> int:
        """Get the number of callbacks registered for an event."""
        return len(self._hooks[HookEvent(event)])

    def fire(self, event: HookEvent, *args: Any) -> None:
        """Invoke the callbacks for an event in registration order."""
        for handle in list(self._hooks[event]):
            handle.callback(*args)
