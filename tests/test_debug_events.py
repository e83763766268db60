"""Tests for debug event tracing: events flow from session to broadcaster."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callflow.debug_events import CallEventBroadcaster, get_broadcaster, remove_broadcaster
from callflow.session import CallSession


# ── Broadcaster unit tests ─────────────────────────────────────────

class TestCallEventBroadcaster:
    def test_emit_without_subscribers(self):
        """Emitting with no subscribers should not raise."""
        b = CallEventBroadcaster("test-1")
        b.emit("transition", "identity_checking", {"from": "initial", "to": "identity_checking"})
        assert len(b.event_log) == 1

    def test_emit_to_subscriber(self):
        b = CallEventBroadcaster("test-2")
        q = b.subscribe()
        b.emit("availability_check", "reschedule_checking", {"date": "2025-04-20"})

        event = q.get_nowait()
        assert event["type"] == "availability_check"
        assert event["state"] == "reschedule_checking"
        assert event["data"]["date"] == "2025-04-20"
        assert event["session_id"] == "test-2"
        assert "timestamp" in event

    def test_multiple_subscribers(self):
        b = CallEventBroadcaster("test-3")
        q1 = b.subscribe()
        q2 = b.subscribe()
        b.emit("reset", "initial", {})
        assert q1.get_nowait()["type"] == q2.get_nowait()["type"] == "reset"

    def test_unsubscribe(self):
        b = CallEventBroadcaster("test-4")
        q = b.subscribe()
        assert b.subscriber_count == 1
        b.unsubscribe(q)
        assert b.subscriber_count == 0

        b.emit("reset", "initial", {})
        assert q.empty()

    def test_unsubscribe_twice_is_harmless(self):
        b = CallEventBroadcaster("test-5")
        q = b.subscribe()
        b.unsubscribe(q)
        b.unsubscribe(q)
        assert b.subscriber_count == 0

    def test_full_queue_drops_oldest(self):
        b = CallEventBroadcaster("test-6")
        q = b.subscribe()
        for i in range(q.maxsize + 1):
            b.emit("transition", "initial", {"n": i})
        assert q.qsize() == q.maxsize
        assert q.get_nowait()["data"]["n"] == 1

    def test_event_log_bounded(self):
        b = CallEventBroadcaster("test-7", log_limit=3)
        for i in range(5):
            b.emit("transition", "initial", {"n": i})
        assert [e["data"]["n"] for e in b.event_log] == [2, 3, 4]


class TestBroadcasterRegistry:
    def test_get_is_idempotent(self):
        try:
            assert get_broadcaster("reg-1") is get_broadcaster("reg-1")
        finally:
            remove_broadcaster("reg-1")

    def test_remove(self):
        first = get_broadcaster("reg-2")
        remove_broadcaster("reg-2")
        assert get_broadcaster("reg-2") is not first
        remove_broadcaster("reg-2")


# ── Session integration ────────────────────────────────────────────

class TestSessionEvents:
    def _session(self, details):
        session = CallSession(details)
        b = CallEventBroadcaster("session-test")
        session.attach_broadcaster(b)
        return session, b, b.subscribe()

    def test_transition_event(self, details):
        session, b, q = self._session(details)
        session.update_state("start_call", {"notes": "answered quickly"})

        event = q.get_nowait()
        assert event["type"] == "transition"
        assert event["state"] == "identity_checking"
        assert event["data"] == {
            "from": "initial",
            "to": "identity_checking",
            "action": "start_call",
            "source": "agent",
            "additional_data": {"notes": "answered quickly"},
        }

    def test_operator_source(self, details):
        session, b, q = self._session(details)
        session.perform_action("start_call")
        assert q.get_nowait()["data"]["source"] == "operator"

    def test_rejected_event(self, details):
        session, b, q = self._session(details)
        session.update_state("end_call")

        event = q.get_nowait()
        assert event["type"] == "transition_rejected"
        assert event["state"] == "initial"
        assert event["data"]["valid_actions"] == ["start_call"]

    def test_rejected_data_event(self, details):
        session, b, q = self._session(details)
        session.update_state("start_call", {"confirmed": "perhaps"})

        event = q.get_nowait()
        assert event["type"] == "transition_rejected"
        assert event["state"] == "initial"
        assert event["data"]["action"] == "start_call"
        assert event["data"]["invalid_fields"] == ["confirmed"]
        assert event["data"]["valid_actions"] == ["start_call"]
        assert q.empty()

    def test_availability_event(self, details):
        session, b, q = self._session(details)
        session.check_desired_date("2025-04-20T14:00:00")

        event = q.get_nowait()
        assert event["type"] == "availability_check"
        assert event["data"]["available"] is True
        assert event["data"]["alternatives"] == 4

    def test_reset_and_wrap_up_events(self, details):
        session, b, q = self._session(details)
        session.wrap_up_instruction()
        session.reset()
        assert [q.get_nowait()["type"], q.get_nowait()["type"]] == ["wrap_up", "reset"]

    def test_no_broadcaster_is_fine(self, details):
        session = CallSession(details)
        session.update_state("start_call")
        session.check_desired_date(None)
