"""
Launch Event Log

Append-only, in-memory log of launch notifications: milestone crossings, graduation
thresholds, reward distributions and recorded trades. The log stands in for the
external event store; it keeps events in append order and answers queries newest first.
"""
import threading
from typing import List, Optional

from mcp_solana_launchpad.schemas import EventKind, LaunchEvent
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


class EventLog:
    def __init__(self):
        self._events: List[LaunchEvent] = []
        self._lock = threading.Lock()

    def append(self, event: LaunchEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.debug(f"Event {event.kind.value} for launch '{event.launch_id}': value={event.value}, "
                     f"tx={event.transaction_ref}")

    def query(
        self,
        launch_id: Optional[str] = None,
        kind: Optional[EventKind] = None,
        limit: Optional[int] = None,
    ) -> List[LaunchEvent]:
        """Returns matching events, newest first."""
        with self._lock:
            events = list(self._events)
        matches = [
            e for e in reversed(events)
            if (launch_id is None or e.launch_id == launch_id) and (kind is None or e.kind == kind)
        ]
        return matches[:limit] if limit is not None else matches

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
