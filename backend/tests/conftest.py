# backend/tests/conftest.py
"""
Shared fixtures: an in-memory SQLite database rebuilt per test, factories for the domain
rows, bearer tokens for principals, and recording fakes for the channel senders.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from vaxwise.api.v1.routes.deps import get_channel_senders  # noqa: E402
from vaxwise.core.errors import ChannelDeliveryError  # noqa: E402
from vaxwise.core.security import Principal, create_access_token  # noqa: E402
from vaxwise.db.base import Base  # noqa: E402
from vaxwise.db.models import Animal, Notification, User, Vaccination, Vaccine  # noqa: E402
from vaxwise.db.models.notification import Channel  # noqa: E402
from vaxwise.db.session import SessionLocal, engine  # noqa: E402
from vaxwise.main import app  # noqa: E402


class FakeSender:
    """Records every send; fails with ``error`` or raises ``exc`` when configured."""

    def __init__(self, channel: Channel, error: str | None = None, exc: BaseException | None = None, delay: float = 0):
        self.channel = channel
        self.error = error
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple] = []

    async def send(self, user, notification) -> None:
        self.calls.append((user.user_id, notification.notification_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        if self.error is not None:
            raise ChannelDeliveryError(self.channel.value, self.error)


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def senders() -> dict[Channel, FakeSender]:
    return {channel: FakeSender(channel) for channel in Channel}


@pytest.fixture
def client(senders):
    app.dependency_overrides[get_channel_senders] = lambda: senders
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_channel_senders, None)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: str = "FARMER", **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "email": f"user{n}@example.com",
            "full_name": f"User {n}",
            "role": role,
            "phone": f"+2782000000{n}",
            "push_token": f"device-token-{n:04d}",
        }
        fields.update(kwargs)
        user = User(**fields)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_vaccine(db):
    def _make(name: str = "Anthrax Spore", booster_interval_value: int | None = 6, booster_interval_unit: str = "months") -> Vaccine:
        vaccine = Vaccine(
            name=name,
            manufacturer="Onderstepoort",
            booster_interval_value=booster_interval_value,
            booster_interval_unit=booster_interval_unit,
        )
        db.add(vaccine)
        db.commit()
        return vaccine

    return _make


@pytest.fixture
def make_animal(db):
    counter = {"n": 0}

    def _make(farmer: User, name: str = "Bessie", species: str = "cattle") -> Animal:
        counter["n"] += 1
        animal = Animal(
            farmer_id=farmer.user_id,
            tag_number=f"A{counter['n']:03d}",
            name=name,
            species=species,
        )
        db.add(animal)
        db.commit()
        return animal

    return _make


@pytest.fixture
def make_vaccination(db):
    def _make(
        animal: Animal,
        administered_at: datetime,
        next_due_at: datetime | None,
        vaccine: Vaccine | None = None,
        administered_by: User | None = None,
        status: str = "completed",
    ) -> Vaccination:
        vaccination = Vaccination(
            animal_id=animal.animal_id,
            vaccine_id=vaccine.vaccine_id if vaccine else None,
            vaccine_name=vaccine.name if vaccine else "Lumpy Skin Disease",
            administered_at=administered_at,
            next_due_at=next_due_at,
            administered_by=administered_by.user_id if administered_by else None,
            status=status,
        )
        db.add(vaccination)
        db.commit()
        return vaccination

    return _make


@pytest.fixture
def make_notification(db):
    def _make(recipient: User, scheduled_for: datetime = datetime(2024, 9, 1), status: str = "pending", **kwargs) -> Notification:
        fields = {
            "recipient_id": recipient.user_id,
            "type": "vaccination_due",
            "title": "Vaccination Due",
            "message": "Anthrax Spore vaccination due for Bessie on 01 September 2024",
            "priority": "high",
            "scheduled_for": scheduled_for,
            "status": status,
        }
        fields.update(kwargs)
        notification = Notification(**fields)
        db.add(notification)
        db.commit()
        return notification

    return _make


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.user_id, role=user.role)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.user_id, user.role)}"}
