"""
Reminder queries and the vaccination reminder factory.

Read-side classification of a recipient's vaccinations and notifications, plus the
notification lifecycle operations that act on a single record (create, read, cancel,
delete). Dispatch lives in ``vaxwise.services.dispatch``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy import Select, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vaxwise.core.errors import (
    AuthorizationError,
    DispatchConflict,
    DuplicateReminder,
    InvalidRecord,
    NotFoundError,
)
from vaxwise.core.security import Principal
from vaxwise.db.models.animal import Animal
from vaxwise.db.models.notification import (
    NOTIFICATION_TYPES,
    PRIORITIES,
    Notification,
)
from vaxwise.db.models.user import User
from vaxwise.db.models.vaccination import Vaccination
from vaxwise.db.models.vaccine import Vaccine
from vaxwise.services.dispatch import MAX_MERGE_ATTEMPTS
from vaxwise.services.scheduling import as_utc_naive

logger = logging.getLogger(__name__)

DUE_DATE_FORMAT = "%d %B %Y"
# Reminder states that block a duplicate for the same animal/vaccine/due date.
LIVE_REMINDER_STATUSES = ("pending", "attempting", "sent")


class ReminderQueryService:
    """Upcoming/overdue vaccinations and pending notifications for one recipient."""

    def __init__(self, db: Session):
        self.db = db

    def _authorize(self, principal: Principal, recipient_id: uuid.UUID) -> User:
        if not principal.can_act_for(recipient_id):
            raise AuthorizationError("Not authorized to view another user's reminders")
        recipient = self.db.get(User, recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")
        return recipient

    def _visible_vaccinations(self, recipient: User) -> Select:
        stmt = select(Vaccination).where(Vaccination.status == "completed")
        # Vets see what they administered, farmers see their own herd.
        if (recipient.role or "").upper() == "VET":
            return stmt.where(Vaccination.administered_by == recipient.user_id)
        return stmt.join(Animal, Animal.animal_id == Vaccination.animal_id).where(
            Animal.farmer_id == recipient.user_id
        )

    def upcoming_vaccinations(
        self, principal: Principal, recipient_id: uuid.UUID, now: datetime
    ) -> list[Vaccination]:
        recipient = self._authorize(principal, recipient_id)
        stmt = (
            self._visible_vaccinations(recipient)
            .where(Vaccination.next_due_at > now)
            .order_by(Vaccination.next_due_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def overdue_vaccinations(
        self, principal: Principal, recipient_id: uuid.UUID, now: datetime
    ) -> list[Vaccination]:
        # Ascending due date: least recently due first.
        recipient = self._authorize(principal, recipient_id)
        stmt = (
            self._visible_vaccinations(recipient)
            .where(Vaccination.next_due_at < now)
            .order_by(Vaccination.next_due_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def pending_notifications(
        self, principal: Principal, recipient_id: uuid.UUID, now: datetime
    ) -> list[Notification]:
        self._authorize(principal, recipient_id)
        stmt = (
            select(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.scheduled_for > now,
                Notification.status == "pending",
            )
            .order_by(Notification.scheduled_for.asc())
        )
        return list(self.db.execute(stmt).scalars().all())


def get_visible_animal(db: Session, principal: Principal, animal_id: uuid.UUID) -> Animal:
    animal = db.get(Animal, animal_id)
    # Farmers only see their own animals; vets and admins see all.
    if animal is None or (principal.role == "FARMER" and animal.farmer_id != principal.user_id):
        raise NotFoundError("Animal not found")
    return animal


def create_vaccination_reminder(
    db: Session,
    principal: Principal,
    animal_id: uuid.UUID,
    vaccine_id: uuid.UUID,
    due_date: datetime,
    deduplicate: bool = True,
) -> Notification:
    """
    Build and store a pending ``vaccination_due`` reminder for the animal's farmer.

    Does not dispatch.
    """
    due_date = as_utc_naive(due_date)
    if due_date is None:
        raise InvalidRecord("Due date is required")

    animal = get_visible_animal(db, principal, animal_id)
    vaccine = db.get(Vaccine, vaccine_id)
    if vaccine is None:
        raise NotFoundError("Vaccine not found")

    if deduplicate:
        existing = db.execute(
            select(Notification.notification_id).where(
                Notification.type == "vaccination_due",
                Notification.related_animal_id == animal.animal_id,
                Notification.related_vaccine_id == vaccine.vaccine_id,
                Notification.scheduled_for == due_date,
                Notification.status.in_(LIVE_REMINDER_STATUSES),
            )
        ).first()
        if existing:
            raise DuplicateReminder(
                f"A reminder for {vaccine.name} on {due_date:{DUE_DATE_FORMAT}} already exists"
            )

    notification = Notification(
        recipient_id=animal.farmer_id,
        type="vaccination_due",
        title="Vaccination Due",
        message=f"{vaccine.name} vaccination due for {animal.name} on {due_date:{DUE_DATE_FORMAT}}",
        priority="high",
        related_animal_id=animal.animal_id,
        related_vaccine_id=vaccine.vaccine_id,
        scheduled_for=due_date,
        status="pending",
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    logger.info(
        f"Created vaccination reminder {notification.notification_id} for animal {animal.animal_id} "
        f"due {due_date.isoformat()}"
    )
    return notification


def create_notification(
    db: Session,
    principal: Principal,
    recipient_id: uuid.UUID,
    notification_type: str,
    title: str,
    message: str,
    scheduled_for: datetime,
    priority: str = "medium",
    related_animal_id: uuid.UUID | None = None,
    related_vaccine_id: uuid.UUID | None = None,
) -> Notification:
    if notification_type not in NOTIFICATION_TYPES:
        raise InvalidRecord(f"Invalid notification type: {notification_type}")
    if priority not in PRIORITIES:
        raise InvalidRecord(f"Invalid priority: {priority}")
    scheduled_for = as_utc_naive(scheduled_for)
    if scheduled_for is None:
        raise InvalidRecord("scheduled_for is required")
    if not title.strip() or not message.strip():
        raise InvalidRecord("Title and message are required")

    if related_animal_id is not None:
        get_visible_animal(db, principal, related_animal_id)
    if related_vaccine_id is not None and db.get(Vaccine, related_vaccine_id) is None:
        raise NotFoundError("Vaccine not found")

    notification = Notification(
        recipient_id=recipient_id,
        type=notification_type,
        title=title.strip(),
        message=message.strip(),
        priority=priority,
        related_animal_id=related_animal_id,
        related_vaccine_id=related_vaccine_id,
        scheduled_for=scheduled_for,
        status="pending",
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_recipient_notification(db: Session, principal: Principal, notification_id: uuid.UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    # Other users' notifications are reported as missing.
    if notification is None or notification.recipient_id != principal.user_id:
        raise NotFoundError("Notification not found")
    return notification


def get_dispatchable_notification(db: Session, principal: Principal, notification_id: uuid.UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    if not principal.can_act_for(notification.recipient_id):
        raise AuthorizationError("Not authorized to dispatch this notification")
    return notification


def _reload(db: Session, notification_id: uuid.UUID) -> Notification:
    notification = db.get(Notification, notification_id, populate_existing=True)
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def _commit_recipient_change(
    db: Session,
    notification: Notification,
    apply: Callable[[Notification], None],
) -> Notification:
    # A dispatch may have written the row since it was loaded: reload and reapply.
    notification_id = notification.notification_id
    for attempt in range(1, MAX_MERGE_ATTEMPTS + 1):
        apply(notification)
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            if attempt == MAX_MERGE_ATTEMPTS:
                raise DispatchConflict(
                    f"Notification {notification_id} kept changing, try again"
                )
            notification = _reload(db, notification_id)
            continue
        db.refresh(notification)
        return notification


def mark_as_read(db: Session, principal: Principal, notification_id: uuid.UUID, now: datetime) -> Notification:
    notification = get_recipient_notification(db, principal, notification_id)
    if notification.read:
        return notification
    return _commit_recipient_change(db, notification, lambda n: n.mark_as_read(now))


def _cancel(notification: Notification) -> None:
    if notification.status != "pending":
        raise InvalidRecord(f"Only pending notifications can be cancelled (status is '{notification.status}')")
    notification.status = "cancelled"


def cancel_notification(db: Session, principal: Principal, notification_id: uuid.UUID) -> Notification:
    notification = get_recipient_notification(db, principal, notification_id)
    return _commit_recipient_change(db, notification, _cancel)


def delete_notification(db: Session, principal: Principal, notification_id: uuid.UUID) -> None:
    notification = get_recipient_notification(db, principal, notification_id)
    db.delete(notification)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise DispatchConflict(f"Notification {notification_id} changed while being deleted, try again")
