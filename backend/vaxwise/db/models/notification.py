"""Module: notification."""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vaxwise.db.base import Base

NOTIFICATION_TYPES = (
    "vaccination_due",
    "vaccination_overdue",
    "health_alert",
    "appointment_reminder",
    "system_alert",
    "subscription_update",
)
PRIORITIES = ("low", "medium", "high", "urgent")
NOTIFICATION_STATUSES = ("pending", "attempting", "sent", "failed", "cancelled")
# A notification in one of these states may be (re)dispatched.
DISPATCHABLE_STATUSES = ("pending", "failed")


class Channel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


@dataclass(frozen=True)
class ChannelDelivery:
    sent: bool = False
    sent_at: datetime | None = None
    error: str | None = None


@dataclass(frozen=True)
class DeliveryStatus:
    email: ChannelDelivery
    sms: ChannelDelivery
    push: ChannelDelivery


# Reminder or alert addressed to one user, with one delivery slot per channel.
class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_status", "recipient_id", "status"),
        Index("ix_notifications_type_status", "type", "status"),
    )

    notification_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(String, nullable=False)
    priority: Mapped[str] = mapped_column(String, nullable=False, default="medium")

    related_animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("animals.animal_id", ondelete="SET NULL"),
        nullable=True,
    )
    related_vaccine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vaccines.vaccine_id", ondelete="SET NULL"),
        nullable=True,
    )

    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    # Delivery slots, one fixed triple per Channel member.
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    email_error: Mapped[str] = mapped_column(String, nullable=True)
    sms_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sms_sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    sms_error: Mapped[str] = mapped_column(String, nullable=True)
    push_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    push_sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    push_error: Mapped[str] = mapped_column(String, nullable=True)

    dispatch_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Set when a dispatch claims the row; used to find claims abandoned by a dead worker.
    dispatch_started_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    # Bumped on every UPDATE; a stale writer gets StaleDataError instead of a lost update.
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def delivery(self, channel: Channel) -> ChannelDelivery:
        channel = Channel(channel)
        return ChannelDelivery(
            sent=bool(getattr(self, f"{channel.value}_sent")),
            sent_at=getattr(self, f"{channel.value}_sent_at"),
            error=getattr(self, f"{channel.value}_error"),
        )

    def record_delivery(self, channel: Channel, outcome: ChannelDelivery) -> None:
        # Overwrites this channel's slot only.
        channel = Channel(channel)
        setattr(self, f"{channel.value}_sent", outcome.sent)
        setattr(self, f"{channel.value}_sent_at", outcome.sent_at)
        setattr(self, f"{channel.value}_error", outcome.error)

    @property
    def delivery_status(self) -> DeliveryStatus:
        return DeliveryStatus(
            email=self.delivery(Channel.EMAIL),
            sms=self.delivery(Channel.SMS),
            push=self.delivery(Channel.PUSH),
        )

    def mark_as_read(self, now: datetime) -> None:
        # The first read time is kept.
        if self.read and self.read_at is not None:
            return
        self.read = True
        self.read_at = now
