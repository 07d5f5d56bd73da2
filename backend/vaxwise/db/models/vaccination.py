"""Module: vaccination."""

import uuid
from datetime import datetime
from sqlalchemy import DateTime, String, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vaxwise.db.base import Base

VACCINATION_STATUSES = ("scheduled", "completed", "missed", "cancelled")

class Vaccination(Base):
    __tablename__ = "vaccinations"

    vaccination_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("animals.animal_id", ondelete="CASCADE"),
        nullable=False
    )
    vaccine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vaccines.vaccine_id", ondelete="SET NULL"),
        nullable=True
    )
    administered_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True
    )

    vaccine_name: Mapped[str] = mapped_column(String, nullable=False)
    batch_number: Mapped[str] = mapped_column(String, nullable=True)
    administered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    next_due_at: Mapped[datetime] = mapped_column(DateTime, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="completed")
    notes: Mapped[str] = mapped_column(String, nullable=True)

    animal: Mapped["Animal"] = relationship(back_populates="vaccinations")  # noqa: F821
