"""Pydantic models for the appointment call workflow.

The workflow is a closed set of states; each state declares the actions
legal in it, the state each action leads to, and an optional static data
patch applied to the call data when the action is taken.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class State(str, Enum):
    """Every state a confirmation call can be in."""

    INITIAL = "initial"
    IDENTITY_CHECKING = "identity_checking"
    ATTENDANCE_CHECKING = "attendance_checking"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    RESCHEDULE_OFFERING = "reschedule_offering"
    RESCHEDULE_CHECKING = "reschedule_checking"
    RESCHEDULE_CONFIRMED = "reschedule_confirmed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    CALL_ENDED = "call_ended"


class Action(str, Enum):
    """Symbolic events the agent or an operator can select."""

    START_CALL = "start_call"
    CONFIRM_IDENTITY = "confirm_identity"
    WRONG_NUMBER = "wrong_number"
    CAN_ATTEND = "can_attend"
    CANNOT_ATTEND = "cannot_attend"
    OFFER_ALTERNATIVES = "offer_alternatives"
    NEW_DATE_CONFIRMED = "new_date_confirmed"
    CAN_RESCHEDULE = "can_reschedule"
    CANNOT_RESCHEDULE = "cannot_reschedule"
    CANCEL_APPOINTMENT = "cancel_appointment"
    END_CALL = "end_call"


TERMINAL_STATE = State.CALL_ENDED


class ActionDef(BaseModel):
    """One outgoing edge of a state."""

    model_config = ConfigDict(frozen=True)

    description: str
    next_state: State
    data_patch: dict[str, Any] = {}        # applied before the caller's data


class StateDef(BaseModel):
    """One state in the call workflow."""

    model_config = ConfigDict(frozen=True)

    id: State
    description: str = ""
    actions: dict[Action, ActionDef] = {}

    @property
    def is_terminal(self) -> bool:
        return not self.actions


class WorkflowDef(BaseModel):
    """A complete call workflow definition."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    initial_state: State = State.INITIAL
    state_order: list[State] = []
    states: dict[State, StateDef] = {}
