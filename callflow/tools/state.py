"""``updateState`` tool: lets the agent advance the call's state machine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from callflow.tools.base import BaseTool

if TYPE_CHECKING:
    from callflow.session import CallSession


class UpdateStateTool(BaseTool):
    """Apply the action the agent selected and return its next instruction.

    Parameters accepted from the LLM:

    * ``action``         -- Action label legal in the current state.
    * ``additionalData`` -- Optional facts to merge into the call data
      (e.g. ``rescheduled_date`` / ``rescheduled_time``).
    """

    def __init__(self, session: "CallSession") -> None:
        self._session = session

    @property
    def name(self) -> str:
        return "updateState"

    @property
    def description(self) -> str:
        return "Updates the current state and call data"

    @property
    def parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "description": "The action to perform in the current state.",
                },
                "additionalData": {
                    "type": "object",
                    "description": "Additional data to update in the call state.",
                    "additionalProperties": True,
                },
            },
            "required": ["action"],
        }

    async def execute(self, **kwargs: Any) -> str:
        action = kwargs.get("action")
        if not action or not isinstance(action, str):
            return "Invalid parameters: 'action' is required and must be a string."

        additional = kwargs.get("additionalData")
        if additional is not None and not isinstance(additional, dict):
            return "Invalid parameters: 'additionalData' must be an object."

        return self._session.update_state(action, additional)
