"""Tests for per-state instruction rendering."""

import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callflow import engine
from callflow.models.call_data import CallData
from callflow.templates import (
    TEMPLATES,
    get_template,
    render,
    render_instruction,
    wrap_instruction,
)
from callflow.workflows import appointment_confirmation as registry
from callflow.workflows.schema import State


class TestCoverage:
    def test_every_state_has_template(self):
        assert set(TEMPLATES) == set(State)

    def test_unknown_state_falls_back_to_initial(self):
        assert get_template("voicemail") is TEMPLATES[State.INITIAL]

    def test_unknown_state_renders_initial_text(self, details):
        assert render("voicemail", details, CallData()) == render(State.INITIAL, details, CallData())


class TestRender:
    @pytest.mark.parametrize("state", list(State))
    def test_idempotent(self, state, details):
        data = CallData(rescheduled_date="April 17, 2025", rescheduled_time="3:00 PM")
        first = render(state, details, data, State.RESCHEDULE_CHECKING)
        second = render(state, details, data, State.RESCHEDULE_CHECKING)
        assert first == second

    @pytest.mark.parametrize("state", [s for s in State if s != State.CALL_ENDED])
    def test_mentions_every_legal_action(self, state, details):
        text = render(state, details, CallData())
        for action in registry.available_actions(state):
            assert f'"{action.value}"' in text

    def test_initial_mentions_appointment(self, details):
        text = render(State.INITIAL, details, CallData())
        assert "Jordan Avery" in text
        assert "April 15, 2025 at 2:30 PM" in text

    def test_identity_uses_company(self, details, bare_details):
        assert "calling from Riverside Dental" in render(State.IDENTITY_CHECKING, details, CallData())
        assert "calling from our office" in render(State.IDENTITY_CHECKING, bare_details, CallData())

    def test_attendance_uses_first_name(self, details):
        text = render(State.ATTENDANCE_CHECKING, details, CallData())
        assert "Hi Jordan," in text

    def test_offering_lists_alternatives(self, details):
        text = render(State.RESCHEDULE_OFFERING, details, CallData())
        assert "- April 16, 2025 at 10:00 AM" in text
        assert "- April 17, 2025 at 3:00 PM" in text

    def test_offering_without_alternatives(self, bare_details):
        text = render(State.RESCHEDULE_OFFERING, bare_details, CallData())
        assert "checkDesiredDate" in text
        assert "no pre-arranged alternative times" in text
        assert "- May" not in text

    def test_reschedule_confirmed_reads_call_data(self, details):
        data = CallData(rescheduled_date="April 17, 2025", rescheduled_time="3:00 PM")
        text = render(State.RESCHEDULE_CONFIRMED, details, data)
        assert "rescheduled your appointment for April 17, 2025 at 3:00 PM" in text


class TestCallEndedSummary:
    def test_rescheduled(self, details):
        data = CallData(rescheduled_date="April 17, 2025", rescheduled_time="3:00 PM")
        text = render(State.CALL_ENDED, details, data, State.RESCHEDULE_CONFIRMED)
        assert text == (
            "\nThe call has ended.\n\n"
            "The appointment has been rescheduled for April 17, 2025 at 3:00 PM.\n"
        )

    def test_rescheduled_takes_precedence(self, details):
        data = CallData(rescheduled_date="April 17, 2025")
        text = render(State.CALL_ENDED, details, data, State.APPOINTMENT_CONFIRMED)
        assert "rescheduled for April 17, 2025." in text

    def test_confirmed(self, details):
        text = render(State.CALL_ENDED, details, CallData(confirmed=True), State.APPOINTMENT_CONFIRMED)
        assert "The original appointment on April 15, 2025 at 2:30 PM is confirmed." in text

    def test_cancelled(self, details):
        text = render(State.CALL_ENDED, details, CallData(cancelled=True), State.APPOINTMENT_CANCELLED)
        assert "The appointment has been cancelled." in text

    def test_neither(self, details):
        text = render(State.CALL_ENDED, details, CallData(wrong_number=True), State.IDENTITY_CHECKING)
        assert "Call ended without confirmation or rescheduling." in text

    def test_string_previous_state(self, details):
        text = render("call_ended", details, CallData(), "appointment_cancelled")
        assert "cancelled" in text


class TestEnvelope:
    def test_wrap(self):
        assert wrap_instruction("hello") == "<instruction>hello</instruction>"

    def test_render_instruction(self, details):
        state = engine.initialize()
        text = render_instruction(state.current_state, details, state.call_data)
        assert text.startswith("<instruction>")
        assert text.endswith("</instruction>")
        assert render(State.INITIAL, details, state.call_data) in text
