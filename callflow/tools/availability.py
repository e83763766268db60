"""Appointment availability oracle and the ``checkDesiredDate`` tool.

There is no real calendar behind this: availability is derived from the
requested date itself, so the same date always yields the same slots. The
agent may ask about a date several times in one call and must get the same
answer each time.

Slot generation for a day:

* seed = day + month + two-digit year
* the day has no slots at all when ``seed % 5 == 0``
* candidates are 09:00-16:30 in 30-minute steps; an hour is skipped when
  ``(hour + seed) % 3 == 0``, a half-hour mark is skipped when
  ``(minute + day) % 2 == 0`` on an odd hour
* the first ``3 + seed % 3`` survivors are kept

When the requested day has no slots, up to three days either side are
searched for alternatives.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Optional

from dateutil import parser as dateparser
from pydantic import BaseModel, ConfigDict, Field

from callflow.errors import InvalidDateInput
from callflow.tools.base import BaseTool

if TYPE_CHECKING:
    from callflow.session import CallSession

log = logging.getLogger("callflow.tools.availability")

BUSINESS_HOURS = (9, 10, 11, 12, 13, 14, 15, 16)
SLOT_MINUTES = (0, 30)
NEIGHBOR_OFFSETS = (-3, -2, -1, 1, 2, 3)
MAX_ALTERNATIVES = 5

NO_DATE_MESSAGE = "No date provided. Please specify a date and time for checking availability."
INVALID_DATE_MESSAGE = "Invalid date format. Please provide a valid date."
NO_AVAILABILITY_MESSAGE = (
    "Unfortunately, we don't have any available time slots in the next few days. "
    "Please try a different week."
)

_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


class AvailabilityResult(BaseModel):
    """Verdict for one requested date plus alternative slots."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    available: bool
    is_exact_available: Optional[bool] = Field(default=None, alias="isExactAvailable")
    suggested_times: list[datetime] = Field(default_factory=list, alias="suggestedTimes")
    alternatives: list[str] = []
    message: str

    def to_json(self) -> str:
        """Serialise for the agent using the wire field names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


def date_seed(day: date) -> int:
    return day.day + day.month + (day.year % 100)


def generate_slots(day: datetime) -> list[datetime]:
    """Open slots on *day*'s date, in chronological order.

    The time of day on *day* is ignored; tzinfo is carried onto the slots.
    """
    seed = date_seed(day)
    if seed % 5 == 0:
        return []

    slots: list[datetime] = []
    for hour in BUSINESS_HOURS:
        if (hour + seed) % 3 == 0:
            continue
        for minute in SLOT_MINUTES:
            if (minute + day.day) % 2 == 0 and hour % 2 == 1:
                continue
            slots.append(day.replace(hour=hour, minute=minute, second=0, microsecond=0))

    return slots[: 3 + seed % 3]


def neighboring_days(day: datetime) -> list[datetime]:
    """Days from three before to three after *day*, excluding *day*.

    Days outside the representable datetime range are skipped.
    """
    days: list[datetime] = []
    for offset in NEIGHBOR_OFFSETS:
        try:
            days.append(day + timedelta(days=offset))
        except OverflowError:
            continue
    return days


def _ordinal_suffix(n: int) -> str:
    if n in (1, 21, 31):
        return "st"
    if n in (2, 22):
        return "nd"
    if n in (3, 23):
        return "rd"
    return "th"


def format_slot(slot: datetime) -> str:
    """Spoken-style slot, e.g. ``Sunday, April 20th, 2025 at 2:00 PM``."""
    hour = slot.hour % 12 or 12
    ampm = "PM" if slot.hour >= 12 else "AM"
    return (
        f"{_DAY_NAMES[slot.weekday()]}, {_MONTH_NAMES[slot.month - 1]} "
        f"{slot.day}{_ordinal_suffix(slot.day)}, {slot.year} "
        f"at {hour}:{slot.minute:02d} {ampm}"
    )


def parse_requested_date(value: Any) -> datetime:
    """Turn the agent's date argument into a datetime.

    Accepts datetimes, dates (midnight) and strings in ISO 8601 or any
    format ``dateutil`` understands.

    Raises:
        InvalidDateInput: *value* is missing or can't be parsed.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidDateInput(value, NO_DATE_MESSAGE)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str):
        raise InvalidDateInput(value, INVALID_DATE_MESSAGE)

    try:
        return dateparser.parse(value.strip())
    except (ValueError, OverflowError) as exc:
        raise InvalidDateInput(value, INVALID_DATE_MESSAGE) from exc


def check_availability(value: Any) -> AvailabilityResult:
    """Availability verdict and alternatives for a requested date.

    Never raises for bad input: a missing or unparsable date comes back as
    an unavailable result whose message asks for a valid date.
    """
    try:
        requested = parse_requested_date(value)
    except InvalidDateInput as exc:
        log.info("Availability check rejected input %r: %s", value, exc)
        return AvailabilityResult(available=False, message=str(exc))

    exact_slots = generate_slots(requested)
    if exact_slots:
        alternatives = [format_slot(s) for s in exact_slots]
        log.info("Availability for %s: %d slot(s) on the day", requested.date(), len(exact_slots))
        return AvailabilityResult(
            available=True,
            is_exact_available=True,
            suggested_times=exact_slots,
            alternatives=alternatives,
            message=(
                "The requested time is available for an appointment. We also have the "
                f"following times available on the same day: {', '.join(alternatives)}"
            ),
        )

    suggested: list[datetime] = []
    for neighbor in neighboring_days(requested):
        suggested.extend(generate_slots(neighbor))
        if len(suggested) >= MAX_ALTERNATIVES:
            break
    suggested = sorted(suggested)[:MAX_ALTERNATIVES]

    if not suggested:
        log.info("Availability for %s: nothing in range", requested.date())
        return AvailabilityResult(
            available=False,
            is_exact_available=False,
            message=NO_AVAILABILITY_MESSAGE,
        )

    alternatives = [format_slot(s) for s in suggested]
    log.info("Availability for %s: day closed, %d alternative(s)", requested.date(), len(suggested))
    return AvailabilityResult(
        available=False,
        is_exact_available=False,
        suggested_times=suggested,
        alternatives=alternatives,
        message=(
            "The requested time is not available. Here are some alternative times "
            f"we can offer: {', '.join(alternatives)}"
        ),
    )


class CheckDesiredDateTool(BaseTool):
    """Check whether the client's desired date has open appointment slots.

    Parameters accepted from the LLM:

    * ``date`` -- ISO 8601 date-time the client asked for.
    """

    @property
    def name(self) -> str:
        return "checkDesiredDate"

    @property
    def description(self) -> str:
        return "Check if the desired date is available for an appointment."

    @property
    def parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "format": "date-time",
                    "description": "The ISO 8601 datetime to check.",
                },
            },
            "required": ["date"],
        }

    def __init__(self, session: "CallSession | None" = None) -> None:
        self._session = session

    async def execute(self, **kwargs: Any) -> str:
        """Run the oracle and return its JSON-serialised result."""
        if self._session is not None:
            return self._session.check_desired_date(kwargs.get("date"))
        return check_availability(kwargs.get("date")).to_json()

