"""Per-call debug event broadcaster for live state-machine tracing.

A CallSession with an attached CallEventBroadcaster reports each
transition, rejected action, availability check and reset. Subscribers
(the debug WebSocket) each get their own asyncio.Queue; the broadcaster
also keeps a bounded log for the call detail API.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TypedDict

log = logging.getLogger("callflow.debug_events")

EVENT_LOG_LIMIT = 500


class CallEvent(TypedDict):
    type: str          # transition | transition_rejected | availability_check | reset | wrap_up
    timestamp: float
    session_id: str
    state: str
    data: dict


class CallEventBroadcaster:
    """Fan-out of one call's events to any number of queue subscribers."""

    def __init__(self, session_id: str, log_limit: int = EVENT_LOG_LIMIT) -> None:
        self._session_id = session_id
        self._subscribers: list[asyncio.Queue[CallEvent]] = []
        self._event_log: deque[CallEvent] = deque(maxlen=log_limit)

    def subscribe(self) -> asyncio.Queue[CallEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[CallEvent] = asyncio.Queue(maxsize=200)
        self._subscribers.append(q)
        log.info("Debug subscriber added for call %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[CallEvent]) -> None:
        try:
            self._subscribers.remove(q)
        except ValueError:
            return
        log.info("Debug subscriber removed for call %s (total: %d)",
                 self._session_id, len(self._subscribers))

    def emit(self, event_type: str, state: str, data: dict) -> None:
        """Record an event and push it to every subscriber.

        A full subscriber queue drops its oldest event to make room.
        """
        event: CallEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "state": state,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            if q.full():
                q.get_nowait()
            q.put_nowait(event)

    @property
    def event_log(self) -> list[CallEvent]:
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# ── Broadcaster registry ─────────────────────────────────────────────

_broadcasters: dict[str, CallEventBroadcaster] = {}


def get_broadcaster(session_id: str) -> CallEventBroadcaster:
    """Get or create the broadcaster for a call."""
    if session_id not in _broadcasters:
        _broadcasters[session_id] = CallEventBroadcaster(session_id)
        log.info("Broadcaster created for call %s", session_id)
    return _broadcasters[session_id]


def remove_broadcaster(session_id: str) -> None:
    if _broadcasters.pop(session_id, None) is not None:
        log.info("Broadcaster removed for call %s", session_id)
