"""Per-state instruction templates for the voice agent.

Each state owns exactly one renderer. A renderer receives the appointment
details, the accumulated call data and the previous state, and returns the
guidance the agent follows on its next turn. Renderers are pure.
"""

from __future__ import annotations

import logging
from textwrap import dedent
from typing import Callable, Optional

from callflow.models.appointment import AppointmentDetails
from callflow.models.call_data import CallData
from callflow.workflows.schema import Action, State

log = logging.getLogger("callflow.templates")

Renderer = Callable[[AppointmentDetails, CallData, Optional[State]], str]


def _when(date: Optional[str], time: Optional[str]) -> str:
    if date and time:
        return f"{date} at {time}"
    return date or time or ""


def _initial(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    return dedent(f"""
        Preparing to make an outbound call to {details.client_name}
        regarding the appointment on {_when(details.appointment_date, details.appointment_time)}.

        To start the call, select "{Action.START_CALL.value}".
    """)


def _identity_checking(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    company = details.company_name or "our office"
    return dedent(f"""
        You have just made an outbound phone call. Say something like:
        "Hi, I am a virtual assistant calling from {company}. Is {details.client_name} available?"

        If they aren't {details.client_name} and don't know who {details.client_name} is,
        apologize for the confusion, thank them for their time, and select "{Action.WRONG_NUMBER.value}".

        If they say they are {details.client_name}, select "{Action.CONFIRM_IDENTITY.value}".
    """)


def _attendance_checking(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    when = _when(details.appointment_date, details.appointment_time)
    return dedent(f"""
        Say something like: "Hi {details.client_first}, I'm calling to confirm your upcoming
        appointment scheduled for {when}. Is that still going to work for you?"

        If they confirm they can attend, select "{Action.CAN_ATTEND.value}".

        If they say they cannot attend, select "{Action.CANNOT_ATTEND.value}".
    """)


def _appointment_confirmed(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    when = _when(details.appointment_date, details.appointment_time)
    return dedent(f"""
        The client will attend. Say something like:
        "Great! We're looking forward to seeing you on {when}. Have a wonderful day!"

        Thank them for their time and select "{Action.END_CALL.value}" to end the call.
    """)


def _reschedule_offering(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    alternatives = details.alternatives()
    if alternatives:
        offered = "\n".join(f"- {_when(d, t)}" for d, t in alternatives)
        offer_block = f"Offer the following alternative times:\n{offered}"
    else:
        offer_block = (
            "There are no pre-arranged alternative times. Ask which day and time "
            "would suit them and use checkDesiredDate to find open slots."
        )
    return (
        dedent("""
            Say something like:
            "I'm sorry to hear that. We do have a couple of alternative times available.
            Would any of these work better for you?"

        """)
        + offer_block
        + dedent(f"""

            If they accept one of the times right away, include it as
            "rescheduled_date" and "rescheduled_time" in additionalData and select
            "{Action.NEW_DATE_CONFIRMED.value}".

            If they need a moment to consider the options or ask for a different day,
            select "{Action.OFFER_ALTERNATIVES.value}".

            If they don't want to reschedule at all, select "{Action.CANCEL_APPOINTMENT.value}".
        """)
    )


def _reschedule_checking(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    return dedent(f"""
        Find out if {details.client_name} can make any of the alternative appointment times.
        If they suggest a different date, use checkDesiredDate to see whether it's open
        and read back the available times.

        If they can make one of the times, collect their preferred date and time,
        include them as "rescheduled_date" and "rescheduled_time" in additionalData,
        and select "{Action.CAN_RESCHEDULE.value}".

        If they cannot make any of the times, select "{Action.CANNOT_RESCHEDULE.value}".
    """)


def _reschedule_confirmed(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    when = _when(call_data.rescheduled_date, call_data.rescheduled_time) or "the new time"
    return dedent(f"""
        Confirm their selection by saying something like:
        "Great! I've rescheduled your appointment for {when}.
        We look forward to seeing you then, {details.client_first}.
        Is there anything else I can help you with today?"

        Address any additional questions they might have, then thank them for their time
        and select "{Action.END_CALL.value}".
    """)


def _appointment_cancelled(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    return dedent(f"""
        Let them know you'll cancel the current appointment by saying something like:
        "I understand. I'll cancel the appointment for now.
        Please feel free to reach out to us in the future when you'd like to reschedule.
        Thank you for letting us know, and we hope to see you soon!"

        Select "{Action.END_CALL.value}" to end the call.
    """)


def _call_ended(details: AppointmentDetails, call_data: CallData, previous: Optional[State]) -> str:
    if call_data.rescheduled_date:
        summary = (
            "The appointment has been rescheduled for "
            f"{_when(call_data.rescheduled_date, call_data.rescheduled_time)}."
        )
    elif previous == State.APPOINTMENT_CONFIRMED:
        summary = (
            "The original appointment on "
            f"{_when(details.appointment_date, details.appointment_time)} is confirmed."
        )
    elif previous == State.APPOINTMENT_CANCELLED:
        summary = "The appointment has been cancelled."
    else:
        summary = "Call ended without confirmation or rescheduling."
    return f"\nThe call has ended.\n\n{summary}\n"


TEMPLATES: dict[State, Renderer] = {
    State.INITIAL: _initial,
    State.IDENTITY_CHECKING: _identity_checking,
    State.ATTENDANCE_CHECKING: _attendance_checking,
    State.APPOINTMENT_CONFIRMED: _appointment_confirmed,
    State.RESCHEDULE_OFFERING: _reschedule_offering,
    State.RESCHEDULE_CHECKING: _reschedule_checking,
    State.RESCHEDULE_CONFIRMED: _reschedule_confirmed,
    State.APPOINTMENT_CANCELLED: _appointment_cancelled,
    State.CALL_ENDED: _call_ended,
}

_missing = set(State) - set(TEMPLATES)
if _missing:
    raise RuntimeError(f"States without a template: {sorted(s.value for s in _missing)}")


def get_template(state: State | str) -> Renderer:
    """Renderer for *state*; unknown states fall back to the Initial renderer."""
    try:
        return TEMPLATES[State(state)]
    except ValueError:
        log.warning("No template for state %r, using %s", state, State.INITIAL.value)
        return TEMPLATES[State.INITIAL]


def render(
    state: State | str,
    details: AppointmentDetails,
    call_data: CallData,
    previous_state: Optional[State | str] = None,
) -> str:
    """Render the agent instruction for *state* (without the envelope)."""
    previous: Optional[State] = None
    if previous_state is not None:
        try:
            previous = State(previous_state)
        except ValueError:
            previous = None
    return get_template(state)(details, call_data, previous)


def wrap_instruction(text: str) -> str:
    """Wrap *text* in the instruction envelope the agent expects."""
    return f"<instruction>{text}</instruction>"


def render_instruction(
    state: State | str,
    details: AppointmentDetails,
    call_data: CallData,
    previous_state: Optional[State | str] = None,
) -> str:
    return wrap_instruction(render(state, details, call_data, previous_state))
