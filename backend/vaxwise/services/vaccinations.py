"""
Vaccination records on the Animal aggregate.

Records are added, edited and removed through their animal and saved in one commit.
A completed record always has a next due date after its administered date; when the
caller gives none it is derived from the vaccine's booster plan.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from vaxwise.core.errors import AuthorizationError, InvalidRecord, NotFoundError
from vaxwise.core.security import Principal
from vaxwise.db.models.animal import Animal
from vaxwise.db.models.vaccination import Vaccination
from vaxwise.db.models.vaccine import Vaccine
from vaxwise.services.reminders import get_visible_animal
from vaxwise.services.scheduling import as_utc_naive, compute_next_due_date, validate_vaccination

logger = logging.getLogger(__name__)

# Fields a caller may change on an existing record.
EDITABLE_FIELDS = ("vaccine_id", "vaccine_name", "batch_number", "administered_at", "next_due_at", "status", "notes")


def _resolve_vaccine(db: Session, vaccine_id: uuid.UUID | None) -> Vaccine | None:
    if vaccine_id is None:
        return None
    vaccine = db.get(Vaccine, vaccine_id)
    if vaccine is None:
        raise NotFoundError("Vaccine not found")
    return vaccine


def _fill_next_due(vaccination: Vaccination, vaccine: Vaccine | None) -> None:
    if vaccination.next_due_at is None and vaccination.status == "completed":
        vaccination.next_due_at = compute_next_due_date(vaccination.administered_at, vaccine)


def record_vaccination(
    db: Session,
    principal: Principal,
    animal_id: uuid.UUID,
    administered_at: datetime,
    vaccine_id: uuid.UUID | None = None,
    vaccine_name: str | None = None,
    next_due_at: datetime | None = None,
    batch_number: str | None = None,
    status: str = "completed",
    notes: str | None = None,
) -> Vaccination:
    animal = get_visible_animal(db, principal, animal_id)
    vaccine = _resolve_vaccine(db, vaccine_id)

    name = (vaccine_name or "").strip() or (vaccine.name if vaccine else "")
    if not name:
        raise InvalidRecord("Vaccine name or vaccine_id is required")

    vaccination = Vaccination(
        vaccine_id=vaccine.vaccine_id if vaccine else None,
        vaccine_name=name,
        administered_by=principal.user_id,
        administered_at=as_utc_naive(administered_at),
        next_due_at=as_utc_naive(next_due_at),
        batch_number=batch_number,
        status=status,
        notes=notes,
    )
    _fill_next_due(vaccination, vaccine)
    validate_vaccination(vaccination)

    animal.add_vaccination(vaccination)
    db.commit()
    db.refresh(vaccination)
    logger.info(f"Recorded {vaccination.vaccine_name} for animal {animal.animal_id}, next due {vaccination.next_due_at}")
    return vaccination


def _authorize_edit(principal: Principal, animal: Animal, vaccination: Vaccination) -> None:
    if principal.is_admin:
        return
    if principal.user_id in (vaccination.administered_by, animal.farmer_id):
        return
    raise AuthorizationError("Not authorized to change this vaccination record")


def update_vaccination(
    db: Session,
    principal: Principal,
    vaccination_id: uuid.UUID,
    changes: dict,
) -> Vaccination:
    """
    Apply ``changes`` and recompute the next due date.

    Moving the administered date or switching vaccine without giving a new next due date
    re-derives it from the booster plan.
    """
    vaccination = db.get(Vaccination, vaccination_id)
    if vaccination is None:
        raise NotFoundError("Vaccination record not found")
    animal = get_visible_animal(db, principal, vaccination.animal_id)
    _authorize_edit(principal, animal, vaccination)

    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    for key in ("administered_at", "next_due_at"):
        if key in changes:
            changes[key] = as_utc_naive(changes[key])
    if "vaccine_id" in changes:
        vaccine = _resolve_vaccine(db, changes["vaccine_id"])
        if vaccine is not None and not changes.get("vaccine_name"):
            changes["vaccine_name"] = vaccine.name
    else:
        vaccine = _resolve_vaccine(db, vaccination.vaccine_id)

    reschedule = ("administered_at" in changes or "vaccine_id" in changes) and changes.get("next_due_at") is None
    try:
        for field, value in changes.items():
            setattr(vaccination, field, value)
        if reschedule:
            vaccination.next_due_at = None
        _fill_next_due(vaccination, vaccine)
        validate_vaccination(vaccination)
    except InvalidRecord:
        db.rollback()
        raise

    db.commit()
    db.refresh(vaccination)
    return vaccination


def remove_vaccination(db: Session, principal: Principal, animal_id: uuid.UUID, vaccination_id: uuid.UUID) -> None:
    animal = get_visible_animal(db, principal, animal_id)
    try:
        vaccination = next(v for v in animal.vaccinations if v.vaccination_id == vaccination_id)
    except StopIteration:
        raise NotFoundError("Vaccination record not found")
    _authorize_edit(principal, animal, vaccination)

    animal.remove_vaccination(vaccination_id)
    db.commit()
