"""Error types raised by the call-flow controller."""

from __future__ import annotations

from typing import Any


class CallFlowError(Exception):
    """Base class for controller errors."""


class InvalidTransition(CallFlowError):
    """An action is not legal in the current state.

    This is an expected condition: the message and payload enumerate the
    actions that *are* legal so the agent (or operator) can self-correct.
    """

    def __init__(self, state: str, action: str, valid_actions: list[str]) -> None:
        self.state = state
        self.action = action
        self.valid_actions = list(valid_actions)
        if self.valid_actions:
            hint = "Valid actions: " + ", ".join(self.valid_actions) + "."
        else:
            hint = f'State "{state}" has no valid actions.'
        super().__init__(f'Invalid action "{action}" for state "{state}". {hint}')

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "invalid_transition",
            "state": self.state,
            "action": self.action,
            "valid_actions": self.valid_actions,
            "message": str(self),
        }


class InvalidDateInput(CallFlowError):
    """A missing or unparsable date was given to the availability oracle."""

    def __init__(self, value: Any, message: str) -> None:
        self.value = value
        super().__init__(message)


class WorkflowDefinitionError(CallFlowError):
    """The workflow definition is incomplete or inconsistent."""
