"""Appointment confirmation call workflow: the state/action registry.

The canonical definition lives in appointment_confirmation.jsonl next to
this module. It is loaded and validated once at import and treated as
read-only afterwards; everything here is a pure lookup over it.

    INITIAL               -> start_call
        |
    IDENTITY_CHECKING     -> confirm_identity    ||  wrong_number
        |
    ATTENDANCE_CHECKING   -> can_attend          ||  cannot_attend
        |
    APPOINTMENT_CONFIRMED -> end_call
        |
    RESCHEDULE_OFFERING   -> offer_alternatives  ||  new_date_confirmed  ||  cancel_appointment
        |
    RESCHEDULE_CHECKING   -> can_reschedule      ||  cannot_reschedule
        |
    RESCHEDULE_CONFIRMED  -> end_call
        |
    APPOINTMENT_CANCELLED -> end_call
        |
    CALL_ENDED

RESCHEDULE_OFFERING joins the two call-flow tables this workflow grew out
of: "offer_alternatives" (on to RESCHEDULE_CHECKING) comes from the
offer-then-check flow, while "new_date_confirmed" and "cancel_appointment"
come from the flow where the client accepts or declines the offered times
directly.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from callflow.workflows.loader import load_workflow_jsonl
from callflow.workflows.schema import Action, ActionDef, State, WorkflowDef

_JSONL_PATH = Path(__file__).resolve().parent / "appointment_confirmation.jsonl"

WORKFLOW_DEF: WorkflowDef = load_workflow_jsonl(_JSONL_PATH)

WORKFLOW_ID = WORKFLOW_DEF.id
WORKFLOW_NAME = WORKFLOW_DEF.name
FIRST_STATE: State = WORKFLOW_DEF.initial_state

STATE_ORDER: tuple[State, ...] = tuple(WORKFLOW_DEF.state_order or list(State))

STATE_DESCRIPTIONS: Mapping[State, str] = MappingProxyType({
    state_id: state.description for state_id, state in WORKFLOW_DEF.states.items()
})

# Several states share an action label (end_call); the first description wins.
_action_descriptions: dict[Action, str] = {}
for _state in WORKFLOW_DEF.states.values():
    for _action, _action_def in _state.actions.items():
        _action_descriptions.setdefault(_action, _action_def.description)
ACTION_DESCRIPTIONS: Mapping[Action, str] = MappingProxyType(_action_descriptions)

STATE_TRANSITIONS: Mapping[State, tuple[State, ...]] = MappingProxyType({
    state_id: tuple(a.next_state for a in state.actions.values())
    for state_id, state in WORKFLOW_DEF.states.items()
})


def _coerce_state(state: State | str) -> Optional[State]:
    try:
        return State(state)
    except ValueError:
        return None


def _coerce_action(action: Action | str) -> Optional[Action]:
    try:
        return Action(action)
    except ValueError:
        return None


def available_actions(state: State | str) -> list[Action]:
    """Actions legal in *state*, in declaration order. Empty if terminal or unknown."""
    state = _coerce_state(state)
    if state is None:
        return []
    return list(WORKFLOW_DEF.states[state].actions)


def action_def(state: State | str, action: Action | str) -> Optional[ActionDef]:
    """Return the edge for (state, action), or None when it's not legal."""
    state = _coerce_state(state)
    action = _coerce_action(action)
    if state is None or action is None:
        return None
    return WORKFLOW_DEF.states[state].actions.get(action)


def next_state(state: State | str, action: Action | str) -> Optional[State]:
    edge = action_def(state, action)
    return edge.next_state if edge else None


def is_terminal(state: State | str) -> bool:
    state = _coerce_state(state)
    return state is not None and WORKFLOW_DEF.states[state].is_terminal


def action_descriptions_for(state: State | str) -> dict[str, str]:
    """Legal actions of *state* mapped to their state-specific description."""
    state = _coerce_state(state)
    if state is None:
        return {}
    return {
        action.value: edge.description
        for action, edge in WORKFLOW_DEF.states[state].actions.items()
    }


def describe_workflow() -> str:
    """Human-readable listing of every state and its legal actions."""
    lines: list[str] = []
    for state in STATE_ORDER:
        state_def = WORKFLOW_DEF.states[state]
        lines.append(f"- {state.value}: {state_def.description}")
        if not state_def.actions:
            lines.append("    (terminal state, no actions)")
        for action, edge in state_def.actions.items():
            lines.append(
                f'    * "{action.value}" -> {edge.next_state.value}: {edge.description}'
            )
    return "\n".join(lines)


def workflow_summary() -> dict[str, Any]:
    """JSON-friendly dump of the registry for the admin API and UIs."""
    return {
        "id": WORKFLOW_ID,
        "name": WORKFLOW_NAME,
        "initial_state": FIRST_STATE.value,
        "state_order": [s.value for s in STATE_ORDER],
        "states": {
            state.value: {
                "description": state_def.description,
                "actions": {
                    action.value: {
                        "description": edge.description,
                        "next_state": edge.next_state.value,
                        "data_patch": dict(edge.data_patch),
                    }
                    for action, edge in state_def.actions.items()
                },
            }
            for state, state_def in WORKFLOW_DEF.states.items()
        },
        "transitions": {
            state.value: [t.value for t in targets]
            for state, targets in STATE_TRANSITIONS.items()
        },
    }
