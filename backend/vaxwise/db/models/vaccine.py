"""Module: vaccine."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vaxwise.db.base import Base

BOOSTER_UNITS = ("weeks", "months", "years")


# Vaccine catalogue entry with its dosing plan.
class Vaccine(Base):
    __tablename__ = "vaccines"

    vaccine_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String, nullable=False)
    manufacturer: Mapped[str] = mapped_column(String, nullable=True)
    vaccine_type: Mapped[str] = mapped_column(String, nullable=True)  # live, inactivated, subunit, toxoid
    route: Mapped[str] = mapped_column(String, nullable=True)

    # Booster plan, e.g. 6 months. Both null means single dose with no renewal.
    booster_interval_value: Mapped[int] = mapped_column(Integer, nullable=True)
    booster_interval_unit: Mapped[str] = mapped_column(String, nullable=True, default="months")
    total_doses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
