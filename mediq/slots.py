"""Slot resolution: map a requested time onto one of the clinic's daily windows.

The clinic serves patients in a small number of fixed windows per day.
Everyone whose request falls into the same window competes for the same
queue, so the requested minute is discarded in favour of the window start.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, NamedTuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator, model_validator

from mediq import config


class SlotDefinition(BaseModel):
    """One daily service window, [start_hour, end_hour) in clinic wall time."""
    name: str = Field(..., min_length=1, max_length=50, description="Slot name (e.g., Morning)")
    start_hour: int = Field(..., ge=0, le=23, description="First hour of the window")
    end_hour: int = Field(..., ge=1, le=24, description="Hour the window closes (exclusive)")

    @model_validator(mode="after")
    def check_window(self):
        if self.start_hour >= self.end_hour:
            raise ValueError(
                f"Slot '{self.name}' must start before it ends "
                f"({self.start_hour} >= {self.end_hour})"
            )
        return self

    def contains_hour(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


class SlotSchedule(BaseModel):
    """
    Table of daily windows plus the window that absorbs every other hour.

    Alternate clinics supply a different table; the resolver logic does not
    change.
    """
    slots: List[SlotDefinition] = Field(..., min_length=1)
    fallback: str = Field(..., description="Slot name used for hours outside every window")

    @field_validator("slots")
    @classmethod
    def validate_no_overlap(cls, v):
        names = [s.name for s in v]
        if len(set(names)) != len(names):
            raise ValueError("Slot names must be unique")

        ordered = sorted(v, key=lambda s: s.start_hour)
        for earlier, later in zip(ordered, ordered[1:]):
            if later.start_hour < earlier.end_hour:
                raise ValueError(f"Slots '{earlier.name}' and '{later.name}' overlap")
        return v

    @model_validator(mode="after")
    def validate_fallback(self):
        if self.fallback not in {s.name for s in self.slots}:
            raise ValueError(f"Fallback slot '{self.fallback}' is not defined")
        return self

    def get(self, name: str) -> SlotDefinition:
        return next(s for s in self.slots if s.name == name)


class SlotKey(NamedTuple):
    """Calendar date plus slot name; the queue partition key."""
    date: date
    name: str

    def __str__(self):
        return f"{self.date.isoformat()}/{self.name}"


class ResolvedSlot(NamedTuple):
    key: SlotKey
    start: datetime
    end: datetime


DEFAULT_SCHEDULE = SlotSchedule(
    slots=[SlotDefinition(**entry) for entry in config.SLOT_TABLE],
    fallback=config.FALLBACK_SLOT,
)


def to_clinic_time(value: datetime, tz_name: str = config.CLINIC_TIMEZONE) -> datetime:
    """
    Normalise a timestamp to naive clinic wall time.

    Aware timestamps are converted to the clinic timezone; naive ones are
    assumed to already be clinic wall time.
    """
    if value.tzinfo is None:
        return value
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return value.astimezone(tz).replace(tzinfo=None)


def _at_hour(day: date, hour: int) -> datetime:
    # end_hour may be 24 (midnight of the next day)
    return datetime.combine(day, time(0)) + timedelta(hours=hour)


def resolve_slot(
    requested_time: datetime,
    schedule: SlotSchedule = DEFAULT_SCHEDULE,
    tz_name: str = config.CLINIC_TIMEZONE,
) -> ResolvedSlot:
    """
    Resolve a requested timestamp to its daily slot.

    Args:
        requested_time: Timestamp the patient asked for
        schedule: Window table (defaults to config.SLOT_TABLE)
        tz_name: Clinic timezone used for aware timestamps

    Returns:
        ResolvedSlot(key=(date, slot name), start, end)

    Example:
        >>> resolve_slot(datetime(2025, 3, 4, 14, 0)).start
        datetime.datetime(2025, 3, 4, 13, 0)
    """
    local = to_clinic_time(requested_time, tz_name)
    day = local.date()

    slot = next(
        (s for s in schedule.slots if s.contains_hour(local.hour)),
        schedule.get(schedule.fallback)
    )

    return ResolvedSlot(
        key=SlotKey(day, slot.name),
        start=_at_hour(day, slot.start_hour),
        end=_at_hour(day, slot.end_hour),
    )
