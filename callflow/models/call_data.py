"""Call data accumulator and the conversation state that carries it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from callflow.workflows.schema import State

log = logging.getLogger("callflow.models")


class CallData(BaseModel):
    """Facts accumulated while the call progresses.

    ``state_history`` lists exited states in order; it is owned by the
    transition engine and never shrinks. ``extra`` is the open key/value
    escape hatch for ad hoc facts the agent volunteers (anything that isn't
    one of the typed fields below).
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    state_history: tuple[State, ...] = Field(default=(), alias="stateHistory")
    rescheduled_date: Optional[str] = None
    rescheduled_time: Optional[str] = None
    confirmed: bool = False
    cancelled: bool = False
    wrong_number: bool = Field(default=False, alias="wrongNumber")
    notes: str = ""
    extra: dict[str, Any] = {}

    def merged(self, patch: Optional[Mapping[str, Any]]) -> "CallData":
        """Return a copy with *patch* merged over the current values.

        Keys naming a typed field (by field name or wire alias) replace that
        field; any other key lands in ``extra``. History can't be patched.
        """
        if not patch:
            return self

        values = self.model_dump()
        extra = dict(self.extra)
        for key, value in patch.items():
            name = _FIELD_NAMES.get(key)
            if name == "state_history":
                log.debug("Ignoring state_history in call data patch")
                continue
            if name == "extra":
                if isinstance(value, Mapping):
                    extra.update(value)
                else:
                    extra["extra"] = value
            elif name:
                values[name] = value
            else:
                extra[key] = value
        values["extra"] = extra
        return type(self).model_validate(values)

    def with_history(self, state: State) -> "CallData":
        """Return a copy with *state* appended to the history."""
        return self.model_copy(update={"state_history": (*self.state_history, state)})

    def to_record(self) -> dict[str, Any]:
        """Plain dict in the wire shape, with ``extra`` flattened in."""
        record = self.model_dump(mode="json", by_alias=True, exclude={"extra"})
        for key, value in self.extra.items():
            record.setdefault(key, value)
        return record


_FIELD_NAMES: dict[str, str] = {}
for _name, _field in CallData.model_fields.items():
    _FIELD_NAMES[_name] = _name
    if _field.alias:
        _FIELD_NAMES[_field.alias] = _name


class ConversationState(BaseModel):
    """Where one call is in its scripted flow.

    Exactly one value exists per call. It is replaced wholesale after every
    transition, never mutated in place.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    current_state: State = Field(default=State.INITIAL, alias="currentState")
    previous_state: Optional[State] = Field(default=None, alias="previousState")
    call_data: CallData = Field(default_factory=CallData, alias="callData")

    @classmethod
    def initial(cls) -> "ConversationState":
        return cls(current_state=State.INITIAL, previous_state=None, call_data=CallData())

    def to_record(self) -> dict[str, Any]:
        """Serialise to ``{previousState, currentState, callData}``."""
        return {
            "previousState": self.previous_state.value if self.previous_state else None,
            "currentState": self.current_state.value,
            "callData": self.call_data.to_record(),
        }
