"""Tests for the transition engine and the call data it accumulates."""

import sys
import os

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callflow import engine
from callflow.errors import InvalidTransition
from callflow.models.call_data import CallData, ConversationState
from callflow.workflows.schema import Action, State


def _walk(*actions, data=None) -> ConversationState:
    state = engine.initialize()
    for action in actions:
        state = engine.transition(state, action, (data or {}).get(action))
    return state


# ── Initialization ─────────────────────────────────────────────────

class TestInitialize:
    def test_fresh_state(self):
        state = engine.initialize()
        assert state.current_state == State.INITIAL
        assert state.previous_state is None
        assert state.call_data == CallData()
        assert state.call_data.state_history == ()

    def test_available_actions(self):
        assert engine.get_available_actions(State.INITIAL) == ["start_call"]
        assert engine.get_available_actions("attendance_checking") == ["can_attend", "cannot_attend"]
        assert engine.get_available_actions(State.CALL_ENDED) == []


# ── Legal transitions ──────────────────────────────────────────────

class TestTransition:
    def test_advances_and_records_history(self):
        state = _walk("start_call", "confirm_identity")
        assert state.current_state == State.ATTENDANCE_CHECKING
        assert state.previous_state == State.IDENTITY_CHECKING
        assert state.call_data.state_history == (State.INITIAL, State.IDENTITY_CHECKING)

    def test_accepts_enum_action(self):
        state = engine.transition(engine.initialize(), Action.START_CALL)
        assert state.current_state == State.IDENTITY_CHECKING

    def test_input_not_mutated(self):
        start = engine.initialize()
        after = engine.transition(start, "start_call", {"notes": "picked up"})
        assert start.current_state == State.INITIAL
        assert start.call_data.notes == ""
        assert start.call_data.state_history == ()
        assert after is not start

    def test_previous_is_last_history_entry(self):
        state = _walk("start_call", "confirm_identity", "cannot_attend", "offer_alternatives")
        assert state.previous_state == state.call_data.state_history[-1]

    def test_confirm_patch(self):
        state = _walk("start_call", "confirm_identity", "can_attend")
        assert state.current_state == State.APPOINTMENT_CONFIRMED
        assert state.call_data.confirmed is True
        assert state.call_data.cancelled is False

    def test_wrong_number_ends_call(self):
        state = _walk("start_call", "wrong_number")
        assert state.current_state == State.CALL_ENDED
        assert state.call_data.wrong_number is True

    def test_cancel_patch(self):
        state = _walk("start_call", "confirm_identity", "cannot_attend", "cancel_appointment")
        assert state.current_state == State.APPOINTMENT_CANCELLED
        assert state.call_data.cancelled is True

    def test_incoming_data_merged(self):
        state = _walk(
            "start_call", "confirm_identity", "cannot_attend", "offer_alternatives",
            "can_reschedule",
            data={"can_reschedule": {"rescheduled_date": "April 17, 2025", "rescheduled_time": "3:00 PM"}},
        )
        assert state.current_state == State.RESCHEDULE_CONFIRMED
        assert state.call_data.rescheduled_date == "April 17, 2025"
        assert state.call_data.rescheduled_time == "3:00 PM"

    def test_incoming_data_wins_over_patch(self):
        state = _walk(
            "start_call", "confirm_identity", "can_attend",
            data={"can_attend": {"confirmed": False}},
        )
        assert state.call_data.confirmed is False

    def test_unknown_keys_go_to_extra(self):
        state = _walk("start_call", data={"start_call": {"callback_number": "555-0100"}})
        assert state.call_data.extra == {"callback_number": "555-0100"}
        assert state.call_data.to_record()["callback_number"] == "555-0100"

    def test_non_mapping_extra_kept(self):
        state = _walk("start_call", data={"start_call": {"extra": "caller sounded busy"}})
        assert state.call_data.extra == {"extra": "caller sounded busy"}

    def test_mapping_extra_merged(self):
        state = _walk("start_call", data={"start_call": {"extra": {"mood": "busy"}, "pets": 2}})
        assert state.call_data.extra == {"mood": "busy", "pets": 2}

    def test_alias_keys_accepted(self):
        state = _walk("start_call", data={"start_call": {"wrongNumber": True}})
        assert state.call_data.wrong_number is True

    def test_incoming_history_ignored(self):
        state = _walk("start_call", data={"start_call": {"state_history": ["call_ended"]}})
        assert state.call_data.state_history == (State.INITIAL,)

    def test_data_persists_across_transitions(self):
        state = _walk(
            "start_call", "confirm_identity",
            data={"start_call": {"notes": "spoke to spouse first"}},
        )
        assert state.call_data.notes == "spoke to spouse first"

    def test_bad_typed_value_raises(self):
        with pytest.raises(ValidationError):
            engine.transition(engine.initialize(), "start_call", {"confirmed": "perhaps"})

    def test_history_grows_by_one_each_step(self):
        state = engine.initialize()
        for i, action in enumerate(["start_call", "confirm_identity", "can_attend", "end_call"], 1):
            state = engine.transition(state, action)
            assert len(state.call_data.state_history) == i
        assert state.current_state == State.CALL_ENDED


# ── Rejected transitions ───────────────────────────────────────────

class TestInvalidTransition:
    def test_wrong_action_for_state(self):
        confirmed = _walk("start_call", "confirm_identity", "can_attend")
        with pytest.raises(InvalidTransition) as exc_info:
            engine.transition(confirmed, "cannot_attend")
        exc = exc_info.value
        assert exc.state == "appointment_confirmed"
        assert exc.action == "cannot_attend"
        assert exc.valid_actions == ["end_call"]
        assert str(exc) == (
            'Invalid action "cannot_attend" for state "appointment_confirmed". '
            "Valid actions: end_call."
        )

    def test_unknown_action(self):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.transition(engine.initialize(), "hang_up")
        assert exc_info.value.valid_actions == ["start_call"]

    def test_terminal_state_rejects_everything(self):
        ended = _walk("start_call", "wrong_number")
        with pytest.raises(InvalidTransition) as exc_info:
            engine.transition(ended, "end_call")
        assert exc_info.value.valid_actions == []
        assert 'State "call_ended" has no valid actions.' in str(exc_info.value)

    def test_rejection_to_dict(self):
        with pytest.raises(InvalidTransition) as exc_info:
            engine.transition(engine.initialize(), "end_call")
        payload = exc_info.value.to_dict()
        assert payload["error"] == "invalid_transition"
        assert payload["valid_actions"] == ["start_call"]


# ── Serialization ──────────────────────────────────────────────────

class TestRecord:
    def test_record_shape(self):
        state = _walk("start_call")
        record = state.to_record()
        assert record["previousState"] == "initial"
        assert record["currentState"] == "identity_checking"
        assert record["callData"]["stateHistory"] == ["initial"]
        assert record["callData"]["wrongNumber"] is False

    def test_record_validates_back(self):
        state = _walk("start_call", "confirm_identity", "can_attend")
        again = ConversationState.model_validate(state.to_record())
        assert again == state
