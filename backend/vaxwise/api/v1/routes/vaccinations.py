"""Module: vaccinations."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vaxwise.api.v1.routes.deps import get_current_principal, get_db, parse_uuid
from vaxwise.core.security import Principal
from vaxwise.db.models.vaccination import Vaccination
from vaxwise.services.reminders import ReminderQueryService
from vaxwise.services.scheduling import classify, utcnow
from vaxwise.services.vaccinations import update_vaccination

router = APIRouter()


class VaccinationUpdatePayload(BaseModel):
    vaccine_id: str | None = None
    vaccine_name: str | None = None
    batch_number: str | None = None
    administered_at: datetime | None = None
    next_due_at: datetime | None = None
    status: str | None = None
    notes: str | None = None


def vaccination_out(vaccination: Vaccination, now: datetime | None = None) -> dict:
    out = {
        "id": str(vaccination.vaccination_id),
        "animal_id": str(vaccination.animal_id),
        "vaccine_id": str(vaccination.vaccine_id) if vaccination.vaccine_id else None,
        "vaccine_name": vaccination.vaccine_name,
        "batch_number": vaccination.batch_number,
        "administered_at": vaccination.administered_at,
        "administered_by": str(vaccination.administered_by) if vaccination.administered_by else None,
        "next_due_at": vaccination.next_due_at,
        "status": vaccination.status,
        "notes": vaccination.notes,
    }
    if now is not None and vaccination.next_due_at is not None:
        out["schedule_status"] = classify(vaccination.administered_at, vaccination.next_due_at, now)
    return out


def _recipient(principal: Principal, recipient_id: str | None):
    return parse_uuid(recipient_id, "recipient_id") if recipient_id else principal.user_id


# Endpoint: completed vaccinations falling due after now, soonest first.
@router.get("/upcoming", summary="Upcoming vaccinations for a farmer or vet")
def list_upcoming_vaccinations(
    recipient_id: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    now = utcnow()
    rows = ReminderQueryService(db).upcoming_vaccinations(principal, _recipient(principal, recipient_id), now)
    return [vaccination_out(v, now) for v in rows]


# Endpoint: completed vaccinations whose due date has passed, least recently due first.
@router.get("/overdue", summary="Overdue vaccinations for a farmer or vet")
def list_overdue_vaccinations(
    recipient_id: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    now = utcnow()
    rows = ReminderQueryService(db).overdue_vaccinations(principal, _recipient(principal, recipient_id), now)
    return [vaccination_out(v, now) for v in rows]


@router.patch("/{vaccination_id}", summary="Edit a vaccination record (recomputes next due date)")
def edit_vaccination(
    vaccination_id: str,
    payload: VaccinationUpdatePayload,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    vid = parse_uuid(vaccination_id, "vaccination_id")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("vaccine_id"):
        changes["vaccine_id"] = parse_uuid(changes["vaccine_id"], "vaccine_id")

    vaccination = update_vaccination(db, principal, vid, changes)
    return vaccination_out(vaccination, utcnow())
