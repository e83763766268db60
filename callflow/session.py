"""Per-call session: owns one call's conversation state and tool surface.

Each call gets a CallSession that:
  1. Holds the immutable AppointmentDetails supplied at call creation
  2. Holds the current ConversationState, replaced wholesale per transition
  3. Exposes the agent's tools (updateState, checkDesiredDate)
  4. Exposes the operator's manual controls (list / perform actions, reset)
  5. Reports every transition to an attached debug broadcaster

The agent and a human operator can both drive the same call, so every
transition runs under the session lock: read the latest committed state,
compute, commit. A rejected action leaves the state untouched and is never
retried automatically.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from callflow import engine
from callflow.bootstrap import build_call_request
from callflow.debug_events import CallEventBroadcaster
from callflow.errors import InvalidTransition
from callflow.models.appointment import AppointmentDetails
from callflow.models.call_data import ConversationState
from callflow.templates import render, render_instruction, wrap_instruction
from callflow.tools.availability import CheckDesiredDateTool, check_availability
from callflow.tools.base import BaseTool
from callflow.tools.state import UpdateStateTool
from callflow.workflows import appointment_confirmation as registry
from callflow.workflows.schema import Action, State

log = logging.getLogger("callflow.session")

WRAP_UP_TEXT = "This conversation has been going on for too long. Wrap it up."


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def _invalid_fields(exc: ValidationError) -> list[str]:
    return [str(e["loc"][0]) for e in exc.errors() if e.get("loc")]


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "CallSession"] = {}


def register_session(session: "CallSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "CallSession"]:
    return _active_sessions


def get_session(session_id: str) -> "CallSession | None":
    return _active_sessions.get(session_id)


class CallSession:
    """One outbound call's conversation controller.

    Typical lifecycle::

        session = CallSession(details)
        payload = session.call_request()      # → voice client creates the call

        # Agent tool invocations, routed back by the voice client
        instruction = session.update_state("start_call")
        verdict = session.check_desired_date("2025-04-20T14:00:00")

        # Operator controls
        session.available_actions             # → ["confirm_identity", "wrong_number"]
        session.perform_action("confirm_identity")
    """

    def __init__(
        self,
        details: AppointmentDetails,
        state: Optional[ConversationState] = None,
    ) -> None:
        self._details = details
        self._state = state or engine.initialize()
        self._lock = threading.Lock()

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        self._tools: dict[str, BaseTool] = {}
        self._init_tools()

        self._debug_broadcaster: CallEventBroadcaster | None = None

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def details(self) -> AppointmentDetails:
        return self._details

    @property
    def conversation_state(self) -> ConversationState:
        """The latest committed state. Treat as a snapshot."""
        return self._state

    @property
    def current_state(self) -> State:
        return self._state.current_state

    @property
    def available_actions(self) -> list[str]:
        return engine.get_available_actions(self._state.current_state)

    @property
    def is_done(self) -> bool:
        return registry.is_terminal(self._state.current_state)

    @property
    def tools(self) -> dict[str, BaseTool]:
        return dict(self._tools)

    def attach_broadcaster(self, broadcaster: CallEventBroadcaster) -> None:
        """Attach a debug broadcaster for real-time event streaming."""
        self._debug_broadcaster = broadcaster

    def _emit_event(self, event_type: str, data: dict) -> None:
        if self._debug_broadcaster:
            self._debug_broadcaster.emit(event_type, self._state.current_state.value, data)

    def call_request(self) -> dict[str, Any]:
        """Call-creation payload: system prompt, first instruction, tools."""
        return build_call_request(
            self._details,
            state=self._state,
            tools=[self._tools["updateState"], self._tools["checkDesiredDate"]],
        )

    def current_instruction(self) -> str:
        """The current state's instruction, wrapped for the agent."""
        state = self._state
        return render_instruction(
            state.current_state, self._details, state.call_data, state.previous_state,
        )

    def apply(
        self,
        action: Action | str,
        additional_data: Optional[Mapping[str, Any]] = None,
        source: str = "agent",
    ) -> ConversationState:
        """Run one transition against the latest state and commit it.

        Raises:
            InvalidTransition: *action* isn't legal in the current state.
            pydantic.ValidationError: *additional_data* has a bad value for
                a typed call data field.
        """
        label = str(getattr(action, "value", action))
        with self._lock:
            current = self._state
            try:
                new_state = engine.transition(current, action, additional_data)
            except InvalidTransition as exc:
                self._emit_event("transition_rejected", {
                    "action": exc.action,
                    "valid_actions": exc.valid_actions,
                    "source": source,
                })
                raise
            except ValidationError as exc:
                self._emit_event("transition_rejected", {
                    "action": label,
                    "valid_actions": engine.get_available_actions(current.current_state),
                    "invalid_fields": _invalid_fields(exc),
                    "source": source,
                })
                raise
            self._state = new_state

        log.info(
            "Session %s: %s → %s via %s (%s)",
            self._session_id or "-", current.current_state.value,
            new_state.current_state.value, label, source,
        )
        self._emit_event("transition", {
            "from": current.current_state.value,
            "to": new_state.current_state.value,
            "action": label,
            "source": source,
            "additional_data": dict(additional_data or {}),
        })
        return new_state

    def update_state(
        self, action: str, additional_data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Agent tool path: transition, then render the next instruction.

        Always returns text. Invalid actions and bad data come back as
        error strings listing what the agent can do instead.
        """
        try:
            new_state = self.apply(action, additional_data, source="agent")
        except InvalidTransition as exc:
            return f"Error updating state. {exc} Please try a different action."
        except ValidationError as exc:
            log.warning("Rejected additionalData for %s: %s", action, exc)
            fields = ", ".join(_invalid_fields(exc))
            return (
                f"Error updating state. Invalid additionalData ({fields}). "
                f"Valid actions: {', '.join(self.available_actions)}."
            )

        return render_instruction(
            new_state.current_state,
            self._details,
            new_state.call_data,
            new_state.previous_state,
        )

    def perform_action(self, action: Action | str) -> ConversationState:
        """Operator path: apply *action* locally with no extra data."""
        return self.apply(action, None, source="operator")

    def check_desired_date(self, date: Any) -> str:
        """Agent tool path for the availability oracle. Never mutates state."""
        result = check_availability(date)
        self._emit_event("availability_check", {
            "date": str(date),
            "available": result.available,
            "alternatives": len(result.alternatives),
        })
        return result.to_json()

    def reset(self) -> ConversationState:
        """Start the conversation over from the Initial state."""
        with self._lock:
            self._state = engine.initialize()
        self._emit_event("reset", {})
        log.info("Session %s reset", self._session_id or "-")
        return self._state

    def wrap_up_instruction(self) -> str:
        """Operator nudge telling the agent to bring the call to a close."""
        self._emit_event("wrap_up", {})
        return wrap_instruction(WRAP_UP_TEXT)

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the full conversation record, the current
        instruction text and the debug event log.
        """
        state = self._state
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "client_name": self._details.client_name,
            "current_state": state.current_state.value,
            "state_description": registry.STATE_DESCRIPTIONS.get(state.current_state, ""),
            "available_actions": self.available_actions,
            "is_done": self.is_done,
            "started_at": self._started_at,
        }
        if detail:
            d["details"] = self._details.model_dump()
            d["conversation"] = state.to_record()
            d["instruction"] = render(
                state.current_state, self._details, state.call_data, state.previous_state,
            ).strip()
            if self._debug_broadcaster:
                d["event_log"] = self._debug_broadcaster.event_log
        return d

    # ── Internal: Tool initialization ─────────────────────────

    def _init_tools(self) -> None:
        self._tools["updateState"] = UpdateStateTool(self)
        self._tools["checkDesiredDate"] = CheckDesiredDateTool(self)
        log.debug("Tools for %s: %s", redact_pii(self._details.client_name), list(self._tools))
