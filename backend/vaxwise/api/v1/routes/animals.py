"""Module: animals."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vaxwise.api.v1.routes.deps import get_current_principal, get_db, parse_uuid
from vaxwise.api.v1.routes.vaccinations import vaccination_out
from vaxwise.core.security import Principal
from vaxwise.services.reminders import get_visible_animal
from vaxwise.services.scheduling import build_schedule, utcnow
from vaxwise.services.vaccinations import record_vaccination, remove_vaccination

router = APIRouter()


class VaccinationCreatePayload(BaseModel):
    vaccine_id: str | None = None
    vaccine_name: str | None = None
    administered_at: datetime
    next_due_at: datetime | None = None
    batch_number: str | None = None
    status: str = "completed"
    notes: str | None = None


# -------------------------
# Endpoints
# -------------------------

@router.get("/{animal_id}/schedule", summary="Vaccination schedule for an animal")
def get_vaccination_schedule(
    animal_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    aid = parse_uuid(animal_id, "animal_id")
    animal = get_visible_animal(db, principal, aid)

    out = []
    for entry in build_schedule(animal.vaccinations, utcnow()):
        d = asdict(entry)
        d["vaccination_id"] = str(d["vaccination_id"])
        d["vaccine_id"] = str(d["vaccine_id"]) if d["vaccine_id"] else None
        out.append(d)
    return out


@router.post("/{animal_id}/vaccinations", status_code=201, summary="Record a vaccination for an animal")
def add_vaccination(
    animal_id: str,
    payload: VaccinationCreatePayload,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    aid = parse_uuid(animal_id, "animal_id")
    vaccine_id = parse_uuid(payload.vaccine_id, "vaccine_id") if payload.vaccine_id else None

    vaccination = record_vaccination(
        db,
        principal,
        aid,
        administered_at=payload.administered_at,
        vaccine_id=vaccine_id,
        vaccine_name=payload.vaccine_name,
        next_due_at=payload.next_due_at,
        batch_number=payload.batch_number,
        status=payload.status,
        notes=payload.notes,
    )
    return vaccination_out(vaccination, utcnow())


@router.delete("/{animal_id}/vaccinations/{vaccination_id}", status_code=204, summary="Remove a vaccination record")
def delete_vaccination(
    animal_id: str,
    vaccination_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    remove_vaccination(
        db,
        principal,
        parse_uuid(animal_id, "animal_id"),
        parse_uuid(vaccination_id, "vaccination_id"),
    )
    return Response(status_code=204)
