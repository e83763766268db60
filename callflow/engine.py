"""Transition engine: validates one action and produces the next conversation state.

``transition`` is a pure function over immutable values: it never mutates
its input, so any earlier ConversationState can be replayed or audited.
Hosts that share a state between the agent and a human operator must
serialise calls to it (see ``callflow.session``).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from callflow.errors import InvalidTransition
from callflow.models.call_data import ConversationState
from callflow.workflows import appointment_confirmation as registry
from callflow.workflows.schema import Action, State

log = logging.getLogger("callflow.engine")


def get_available_actions(state: State | str) -> list[str]:
    """Action labels legal in *state* (empty for the terminal state)."""
    return [a.value for a in registry.available_actions(state)]


def initialize() -> ConversationState:
    """A fresh conversation: Initial state, no history."""
    return ConversationState.initial()


def transition(
    current: ConversationState,
    action: Action | str,
    incoming_data: Optional[Mapping[str, Any]] = None,
) -> ConversationState:
    """Apply *action* to *current* and return the resulting state.

    The action's static data patch is applied first, then *incoming_data*
    is merged over it (incoming keys win). The state being left is
    appended to the history.

    Raises:
        InvalidTransition: *action* isn't legal in ``current.current_state``.
    """
    state = current.current_state
    label = action.value if isinstance(action, Action) else str(action)

    edge = registry.action_def(state, label)
    if edge is None:
        valid = get_available_actions(state)
        log.warning(
            "Rejected transition: %s from %s (valid: %s)",
            label, state.value, ", ".join(valid) or "none",
        )
        raise InvalidTransition(state.value, label, valid)

    call_data = current.call_data.merged(edge.data_patch)
    call_data = call_data.merged(incoming_data)
    call_data = call_data.with_history(state)

    new_state = ConversationState(
        current_state=edge.next_state,
        previous_state=state,
        call_data=call_data,
    )
    log.info("FSM advance: %s → %s (action: %s)", state.value, edge.next_state.value, label)
    return new_state
