"""Module: notifications."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from vaxwise.api.v1.routes.deps import (
    get_current_principal,
    get_db,
    get_dispatch_coordinator,
    parse_uuid,
)
from vaxwise.core.config import settings
from vaxwise.core.errors import AuthorizationError
from vaxwise.core.security import Principal
from vaxwise.db.models.notification import Notification
from vaxwise.services.dispatch import DispatchCoordinator
from vaxwise.services import reminders
from vaxwise.services.scheduling import utcnow

router = APIRouter()


class NotificationCreatePayload(BaseModel):
    type: str
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=4000)
    priority: str = "medium"
    scheduled_for: datetime
    recipient_id: str | None = None
    related_animal_id: str | None = None
    related_vaccine_id: str | None = None


class VaccinationReminderPayload(BaseModel):
    animal_id: str
    vaccine_id: str
    due_date: datetime


def notification_out(notification: Notification) -> dict:
    delivery = asdict(notification.delivery_status)
    return {
        "id": str(notification.notification_id),
        "recipient_id": str(notification.recipient_id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "related_animal_id": str(notification.related_animal_id) if notification.related_animal_id else None,
        "related_vaccine_id": str(notification.related_vaccine_id) if notification.related_vaccine_id else None,
        "scheduled_for": notification.scheduled_for,
        "status": notification.status,
        "read": bool(notification.read),
        "read_at": notification.read_at,
        "delivery_status": delivery,
        "dispatch_attempts": notification.dispatch_attempts or 0,
        "dispatch_started_at": notification.dispatch_started_at,
        "created_at": notification.created_at,
    }


# -------------------------
# Endpoints
# -------------------------

@router.get("", summary="List my notifications (newest first)")
def list_notifications(
    limit: int = 200,
    offset: int = 0,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    stmt = (
        select(Notification)
        .where(Notification.recipient_id == principal.user_id)
        .order_by(desc(Notification.created_at))
        .offset(offset)
        .limit(limit)
    )
    return [notification_out(n) for n in db.execute(stmt).scalars().all()]


@router.get("/upcoming", summary="Pending notifications scheduled after now")
def list_upcoming_notifications(
    recipient_id: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    rid = parse_uuid(recipient_id, "recipient_id") if recipient_id else principal.user_id
    rows = reminders.ReminderQueryService(db).pending_notifications(principal, rid, utcnow())
    return [notification_out(n) for n in rows]


@router.post("/vaccination-reminder", status_code=201, summary="Create a vaccination due reminder")
def create_vaccination_reminder(
    payload: VaccinationReminderPayload,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    notification = reminders.create_vaccination_reminder(
        db,
        principal,
        parse_uuid(payload.animal_id, "animal_id"),
        parse_uuid(payload.vaccine_id, "vaccine_id"),
        payload.due_date,
        deduplicate=settings.reminder_deduplication,
    )
    return notification_out(notification)


@router.post("", status_code=201, summary="Create a notification")
def create_notification(
    payload: NotificationCreatePayload,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    recipient_id = parse_uuid(payload.recipient_id, "recipient_id") if payload.recipient_id else principal.user_id
    if not principal.can_act_for(recipient_id):
        raise AuthorizationError("Not authorized to notify another user")

    notification = reminders.create_notification(
        db,
        principal,
        recipient_id=recipient_id,
        notification_type=payload.type,
        title=payload.title,
        message=payload.message,
        scheduled_for=payload.scheduled_for,
        priority=payload.priority,
        related_animal_id=parse_uuid(payload.related_animal_id, "related_animal_id") if payload.related_animal_id else None,
        related_vaccine_id=parse_uuid(payload.related_vaccine_id, "related_vaccine_id") if payload.related_vaccine_id else None,
    )
    return notification_out(notification)


@router.get("/{notification_id}", summary="Get a notification")
def get_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    nid = parse_uuid(notification_id, "notification_id")
    return notification_out(reminders.get_recipient_notification(db, principal, nid))


@router.put("/{notification_id}/read", summary="Mark a notification as read")
def mark_notification_read(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    nid = parse_uuid(notification_id, "notification_id")
    return notification_out(reminders.mark_as_read(db, principal, nid, utcnow()))


@router.patch("/{notification_id}/cancel", summary="Cancel a pending notification")
def cancel_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    nid = parse_uuid(notification_id, "notification_id")
    return notification_out(reminders.cancel_notification(db, principal, nid))


@router.delete("/{notification_id}", status_code=204, summary="Delete a notification")
def delete_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    nid = parse_uuid(notification_id, "notification_id")
    reminders.delete_notification(db, principal, nid)
    return Response(status_code=204)


@router.post("/{notification_id}/dispatch", summary="Deliver a notification on the recipient's channels")
async def dispatch_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    coordinator: DispatchCoordinator = Depends(get_dispatch_coordinator),
):
    nid = parse_uuid(notification_id, "notification_id")
    notification = reminders.get_dispatchable_notification(db, principal, nid)
    # The coordinator's session is the request session: FastAPI caches get_db per request.
    notification = await coordinator.dispatch(notification)
    return notification_out(notification)
