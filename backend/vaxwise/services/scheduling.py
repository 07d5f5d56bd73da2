"""Module: scheduling.

Pure date logic for vaccination records: the next due date implied by a vaccine's
booster plan, and upcoming/overdue classification of a due date against "now".
Nothing here touches the database.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable

from dateutil.relativedelta import relativedelta

from vaxwise.core.errors import InvalidRecord
from vaxwise.db.models.vaccination import VACCINATION_STATUSES, Vaccination
from vaxwise.db.models.vaccine import BOOSTER_UNITS, Vaccine

UPCOMING = "upcoming"
OVERDUE = "overdue"


def utcnow() -> datetime:
    # Naive UTC, matching how DateTime columns are stored.
    return datetime.now(UTC).replace(tzinfo=None)


def as_utc_naive(value: datetime | None) -> datetime | None:
    """Normalize an incoming timestamp to naive UTC; naive values are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class ScheduleEntry:
    vaccination_id: uuid.UUID
    vaccine_id: uuid.UUID | None
    vaccine_name: str
    last_date: datetime
    next_due_date: datetime
    status: str
    days_until_due: int


def classify(last_date: datetime | None, next_due_date: datetime | None, now: datetime) -> str:
    """
    Classify a due date relative to ``now``.

    Strictly earlier than now is overdue; a due date equal to now is still upcoming.
    ``last_date`` is carried for callers that render it and does not affect the result.
    """
    if next_due_date is None:
        raise InvalidRecord("Vaccination has no next due date")
    return OVERDUE if next_due_date < now else UPCOMING


def days_until(next_due_date: datetime, now: datetime) -> int:
    # Partial days round up, so "due later today" reads as 1.
    return math.ceil((next_due_date - now).total_seconds() / 86400)


def booster_interval(vaccine: Vaccine) -> relativedelta | None:
    value = vaccine.booster_interval_value
    if not value:
        return None

    unit = (vaccine.booster_interval_unit or "months").lower()
    if unit not in BOOSTER_UNITS:
        raise InvalidRecord(f"Unsupported booster interval unit: {unit}")
    if value < 0:
        raise InvalidRecord("Booster interval must be positive")
    return relativedelta(**{unit: value})


def compute_next_due_date(administered_at: datetime, vaccine: Vaccine | None) -> datetime:
    """Next due date from the vaccine's booster plan."""
    if administered_at is None:
        raise InvalidRecord("Administered date is required")
    interval = booster_interval(vaccine) if vaccine is not None else None
    if interval is None:
        raise InvalidRecord("Next due date is required when the vaccine has no booster interval")
    return administered_at + interval


def validate_vaccination(vaccination: Vaccination) -> None:
    if not (vaccination.vaccine_name or "").strip():
        raise InvalidRecord("Vaccine name is required")
    if vaccination.status not in VACCINATION_STATUSES:
        raise InvalidRecord(f"Invalid vaccination status: {vaccination.status}")
    if vaccination.administered_at is None:
        raise InvalidRecord("Administered date is required")
    if vaccination.status == "completed":
        if vaccination.next_due_at is None:
            raise InvalidRecord("Completed vaccinations need a next due date")
        if vaccination.next_due_at <= vaccination.administered_at:
            raise InvalidRecord("Next due date must be after the administered date")


def build_schedule(vaccinations: Iterable[Vaccination], now: datetime) -> list[ScheduleEntry]:
    """Derived schedule view, one entry per record that has a next due date."""
    entries = []
    for vaccination in vaccinations:
        if vaccination.next_due_at is None:
            continue
        entries.append(
            ScheduleEntry(
                vaccination_id=vaccination.vaccination_id,
                vaccine_id=vaccination.vaccine_id,
                vaccine_name=vaccination.vaccine_name,
                last_date=vaccination.administered_at,
                next_due_date=vaccination.next_due_at,
                status=classify(vaccination.administered_at, vaccination.next_due_at, now),
                days_until_due=days_until(vaccination.next_due_at, now),
            )
        )
    return entries
