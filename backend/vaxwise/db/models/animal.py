"""Module: animal."""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vaxwise.db.base import Base


# Livestock profile owned by a farmer. Vaccination records hang off this aggregate.
class Animal(Base):
    __tablename__ = "animals"

    # Primary Key
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    farmer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Basic Info
    tag_number: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    species: Mapped[str] = mapped_column(String, nullable=False)
    breed: Mapped[str] = mapped_column(String, nullable=True)
    sex: Mapped[str] = mapped_column(String, nullable=True)
    health_status: Mapped[str] = mapped_column(String, nullable=False, default="healthy")

    # Optional Info
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=True)

    vaccinations: Mapped[list["Vaccination"]] = relationship(  # noqa: F821
        back_populates="animal",
        cascade="all, delete-orphan",
        order_by="Vaccination.administered_at",
    )

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow
    )

    def add_vaccination(self, vaccination: "Vaccination") -> None:  # noqa: F821
        self.vaccinations.append(vaccination)

    def remove_vaccination(self, vaccination_id: uuid.UUID) -> "Vaccination":  # noqa: F821
        for vaccination in self.vaccinations:
            if vaccination.vaccination_id == vaccination_id:
                self.vaccinations.remove(vaccination)
                return vaccination
        raise LookupError(vaccination_id)
