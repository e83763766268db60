"""Pydantic model for the appointment a call is about."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class AppointmentDetails(BaseModel):
    """Call-scoped facts supplied when the call is created.

    Read-only for the lifetime of the call. Dates and times are kept as the
    display strings the agent should speak (``"April 15, 2025"``,
    ``"2:30 PM"``).
    """

    model_config = ConfigDict(frozen=True)

    client_name: str
    client_first: str = ""
    company_name: str = ""
    appointment_date: str
    appointment_time: str

    # Up to two alternative slots offered when the client can't attend
    alt_date_1: Optional[str] = None
    alt_time_1: Optional[str] = None
    alt_date_2: Optional[str] = None
    alt_time_2: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_first_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("client_first"):
            name = str(data.get("client_name") or "").strip()
            if name:
                data = {**data, "client_first": name.split()[0]}
        return data

    def alternatives(self) -> list[tuple[str, str]]:
        """Return the (date, time) alternatives that were actually supplied."""
        pairs = [
            (self.alt_date_1, self.alt_time_1),
            (self.alt_date_2, self.alt_time_2),
        ]
        return [(d, t or "") for d, t in pairs if d]
