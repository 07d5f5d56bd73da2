# backend/tests/test_reminders.py
import asyncio
import uuid
from datetime import datetime, timedelta

import pytest

from conftest import principal_for
from vaxwise.core.errors import (
    AuthorizationError,
    DispatchConflict,
    DuplicateReminder,
    InvalidRecord,
    NotFoundError,
)
from vaxwise.core.security import Principal
from vaxwise.db.models import Notification, Vaccination
from vaxwise.db.session import SessionLocal
from vaxwise.services import reminders
from vaxwise.services.dispatch import DispatchCoordinator
from vaxwise.services.reminders import ReminderQueryService
from vaxwise.services.vaccinations import record_vaccination, remove_vaccination, update_vaccination

NOW = datetime(2024, 6, 1, 12, 0)


# -------------------------
# Reminder factory
# -------------------------

def test_vaccination_reminder_is_built_for_the_farmer(db, make_user, make_animal, make_vaccine):
    farmer = make_user()
    animal = make_animal(farmer, name="Bessie")
    vaccine = make_vaccine("Anthrax Spore")

    n = reminders.create_vaccination_reminder(
        db, principal_for(farmer), animal.animal_id, vaccine.vaccine_id, datetime(2024, 9, 1)
    )

    assert n.recipient_id == farmer.user_id
    assert n.type == "vaccination_due"
    assert n.title == "Vaccination Due"
    assert n.priority == "high"
    assert n.status == "pending"
    assert n.scheduled_for == datetime(2024, 9, 1)
    assert n.message == "Anthrax Spore vaccination due for Bessie on 01 September 2024"
    assert n.related_animal_id == animal.animal_id
    assert n.related_vaccine_id == vaccine.vaccine_id
    assert n.read is False


def test_vet_can_create_reminder_for_a_farmers_animal(db, make_user, make_animal, make_vaccine):
    farmer, vet = make_user(), make_user("VET")
    animal = make_animal(farmer)
    vaccine = make_vaccine()

    n = reminders.create_vaccination_reminder(
        db, principal_for(vet), animal.animal_id, vaccine.vaccine_id, datetime(2024, 9, 1)
    )
    assert n.recipient_id == farmer.user_id


def test_reminder_for_missing_animal_or_vaccine(db, make_user, make_animal, make_vaccine):
    farmer = make_user()
    animal = make_animal(farmer)
    vaccine = make_vaccine()
    principal = principal_for(farmer)

    with pytest.raises(NotFoundError):
        reminders.create_vaccination_reminder(db, principal, uuid.uuid4(), vaccine.vaccine_id, NOW)
    with pytest.raises(NotFoundError):
        reminders.create_vaccination_reminder(db, principal, animal.animal_id, uuid.uuid4(), NOW)
    assert db.query(Notification).count() == 0


def test_farmer_cannot_create_reminder_for_another_farmers_animal(db, make_user, make_animal, make_vaccine):
    owner, stranger = make_user(), make_user()
    animal = make_animal(owner)
    vaccine = make_vaccine()

    with pytest.raises(NotFoundError):
        reminders.create_vaccination_reminder(
            db, principal_for(stranger), animal.animal_id, vaccine.vaccine_id, NOW
        )


def test_duplicate_reminder_is_rejected_unless_deduplication_is_off(db, make_user, make_animal, make_vaccine):
    farmer = make_user()
    animal = make_animal(farmer)
    vaccine = make_vaccine()
    principal = principal_for(farmer)
    due = datetime(2024, 9, 1)

    reminders.create_vaccination_reminder(db, principal, animal.animal_id, vaccine.vaccine_id, due)
    with pytest.raises(DuplicateReminder):
        reminders.create_vaccination_reminder(db, principal, animal.animal_id, vaccine.vaccine_id, due)

    reminders.create_vaccination_reminder(
        db, principal, animal.animal_id, vaccine.vaccine_id, due, deduplicate=False
    )
    assert db.query(Notification).count() == 2


def test_cancelled_reminder_does_not_block_a_new_one(db, make_user, make_animal, make_vaccine):
    farmer = make_user()
    animal = make_animal(farmer)
    vaccine = make_vaccine()
    principal = principal_for(farmer)
    due = datetime(2024, 9, 1)

    first = reminders.create_vaccination_reminder(db, principal, animal.animal_id, vaccine.vaccine_id, due)
    reminders.cancel_notification(db, principal, first.notification_id)

    second = reminders.create_vaccination_reminder(db, principal, animal.animal_id, vaccine.vaccine_id, due)
    assert second.notification_id != first.notification_id


def test_create_notification_validates_enums(db, make_user):
    farmer = make_user()
    principal = principal_for(farmer)
    with pytest.raises(InvalidRecord):
        reminders.create_notification(db, principal, farmer.user_id, "carrier_pigeon", "Hi", "There", NOW)
    with pytest.raises(InvalidRecord):
        reminders.create_notification(db, principal, farmer.user_id, "system_alert", "Hi", "There", NOW, priority="critical")

    n = reminders.create_notification(db, principal, farmer.user_id, "system_alert", " Hi ", "There", NOW)
    assert n.title == "Hi"
    assert n.priority == "medium"


def test_create_notification_checks_related_animal_and_vaccine(db, make_user, make_animal, make_vaccine):
    farmer, neighbour = make_user(), make_user()
    principal = principal_for(farmer)
    theirs = make_animal(neighbour)
    vaccine = make_vaccine()

    with pytest.raises(NotFoundError):
        reminders.create_notification(
            db, principal, farmer.user_id, "health_alert", "Hi", "There", NOW, related_animal_id=uuid.uuid4()
        )
    with pytest.raises(NotFoundError):
        reminders.create_notification(
            db, principal, farmer.user_id, "health_alert", "Hi", "There", NOW, related_vaccine_id=uuid.uuid4()
        )
    with pytest.raises(NotFoundError):
        reminders.create_notification(
            db, principal, farmer.user_id, "health_alert", "Hi", "There", NOW, related_animal_id=theirs.animal_id
        )
    assert db.query(Notification).count() == 0

    mine = make_animal(farmer)
    n = reminders.create_notification(
        db,
        principal,
        farmer.user_id,
        "health_alert",
        "Hi",
        "There",
        NOW,
        related_animal_id=mine.animal_id,
        related_vaccine_id=vaccine.vaccine_id,
    )
    assert n.related_animal_id == mine.animal_id


# -------------------------
# Queries
# -------------------------

@pytest.fixture
def herd(make_user, make_animal, make_vaccination):
    farmer = make_user()
    animal = make_animal(farmer)
    rows = {
        "due_in_week": make_vaccination(animal, NOW - timedelta(days=170), NOW + timedelta(days=7)),
        "due_in_month": make_vaccination(animal, NOW - timedelta(days=150), NOW + timedelta(days=30)),
        "overdue_long": make_vaccination(animal, NOW - timedelta(days=400), NOW - timedelta(days=40)),
        "overdue_recent": make_vaccination(animal, NOW - timedelta(days=200), NOW - timedelta(days=2)),
        "due_now": make_vaccination(animal, NOW - timedelta(days=180), NOW),
        "scheduled": make_vaccination(animal, NOW - timedelta(days=10), NOW + timedelta(days=3), status="scheduled"),
    }
    return farmer, rows


def _ids(rows):
    return [v.vaccination_id for v in rows]


def test_upcoming_is_ascending_and_excludes_boundary(db, herd):
    farmer, rows = herd
    upcoming = ReminderQueryService(db).upcoming_vaccinations(principal_for(farmer), farmer.user_id, NOW)
    assert _ids(upcoming) == [rows["due_in_week"].vaccination_id, rows["due_in_month"].vaccination_id]


def test_overdue_is_ascending_least_recent_first(db, herd):
    farmer, rows = herd
    overdue = ReminderQueryService(db).overdue_vaccinations(principal_for(farmer), farmer.user_id, NOW)
    assert _ids(overdue) == [rows["overdue_long"].vaccination_id, rows["overdue_recent"].vaccination_id]


def test_upcoming_and_overdue_are_disjoint(db, herd):
    farmer, _ = herd
    service = ReminderQueryService(db)
    principal = principal_for(farmer)
    upcoming = set(_ids(service.upcoming_vaccinations(principal, farmer.user_id, NOW)))
    overdue = set(_ids(service.overdue_vaccinations(principal, farmer.user_id, NOW)))
    assert upcoming and overdue
    assert not upcoming & overdue


def test_queries_only_see_the_recipients_own_herd(db, herd, make_user, make_animal, make_vaccination):
    farmer, _ = herd
    neighbour = make_user()
    make_vaccination(make_animal(neighbour), NOW - timedelta(days=30), NOW + timedelta(days=5))

    service = ReminderQueryService(db)
    mine = service.upcoming_vaccinations(principal_for(farmer), farmer.user_id, NOW)
    theirs = service.upcoming_vaccinations(principal_for(neighbour), neighbour.user_id, NOW)
    assert len(mine) == 2
    assert len(theirs) == 1


def test_other_users_reminders_are_forbidden(db, herd, make_user):
    farmer, _ = herd
    stranger = make_user()
    service = ReminderQueryService(db)
    with pytest.raises(AuthorizationError):
        service.upcoming_vaccinations(principal_for(stranger), farmer.user_id, NOW)
    with pytest.raises(AuthorizationError):
        service.pending_notifications(principal_for(stranger), farmer.user_id, NOW)


def test_admin_may_query_any_recipient(db, herd, make_user):
    farmer, _ = herd
    admin = make_user("ADMIN")
    overdue = ReminderQueryService(db).overdue_vaccinations(principal_for(admin), farmer.user_id, NOW)
    assert len(overdue) == 2

    with pytest.raises(NotFoundError):
        ReminderQueryService(db).overdue_vaccinations(principal_for(admin), uuid.uuid4(), NOW)


def test_vet_sees_the_vaccinations_they_administered(db, make_user, make_animal, make_vaccination):
    farmer, vet, other_vet = make_user(), make_user("VET"), make_user("VET")
    animal = make_animal(farmer)
    given = make_vaccination(animal, NOW - timedelta(days=100), NOW + timedelta(days=10), administered_by=vet)
    make_vaccination(animal, NOW - timedelta(days=100), NOW + timedelta(days=12), administered_by=other_vet)

    upcoming = ReminderQueryService(db).upcoming_vaccinations(principal_for(vet), vet.user_id, NOW)
    assert _ids(upcoming) == [given.vaccination_id]


def test_pending_notifications_are_future_pending_only(db, make_user, make_notification):
    farmer = make_user()
    later = make_notification(farmer, scheduled_for=NOW + timedelta(days=10))
    sooner = make_notification(farmer, scheduled_for=NOW + timedelta(days=1))
    make_notification(farmer, scheduled_for=NOW - timedelta(days=1))
    make_notification(farmer, scheduled_for=NOW + timedelta(days=2), status="cancelled")
    make_notification(farmer, scheduled_for=NOW + timedelta(days=3), status="sent")

    pending = ReminderQueryService(db).pending_notifications(principal_for(farmer), farmer.user_id, NOW)
    assert [n.notification_id for n in pending] == [sooner.notification_id, later.notification_id]


# -------------------------
# Notification lifecycle
# -------------------------

def test_mark_as_read_keeps_first_read_time(db, make_user, make_notification):
    farmer = make_user()
    n = make_notification(farmer)
    principal = principal_for(farmer)

    first = reminders.mark_as_read(db, principal, n.notification_id, NOW)
    again = reminders.mark_as_read(db, principal, n.notification_id, NOW + timedelta(hours=3))

    assert first.read is True
    assert again.read_at == NOW


def test_other_users_notification_is_not_found(db, make_user, make_notification):
    n = make_notification(make_user())
    with pytest.raises(NotFoundError):
        reminders.mark_as_read(db, principal_for(make_user()), n.notification_id, NOW)


def test_only_pending_notifications_can_be_cancelled(db, make_user, make_notification):
    farmer = make_user()
    principal = principal_for(farmer)
    pending = make_notification(farmer)
    sent = make_notification(farmer, status="sent")

    assert reminders.cancel_notification(db, principal, pending.notification_id).status == "cancelled"
    with pytest.raises(InvalidRecord):
        reminders.cancel_notification(db, principal, sent.notification_id)


def test_dispatch_lookup_allows_admin_and_forbids_strangers(db, make_user, make_notification):
    farmer = make_user()
    n = make_notification(farmer)

    admin = Principal(user_id=uuid.uuid4(), role="ADMIN")
    assert reminders.get_dispatchable_notification(db, admin, n.notification_id) is n
    with pytest.raises(AuthorizationError):
        reminders.get_dispatchable_notification(db, principal_for(make_user()), n.notification_id)
    with pytest.raises(NotFoundError):
        reminders.get_dispatchable_notification(db, admin, uuid.uuid4())


def _dispatch_elsewhere(notification_id, senders):
    # Another worker dispatches the row this test session already holds.
    other = SessionLocal()
    try:
        row = other.get(Notification, notification_id)
        asyncio.run(DispatchCoordinator(other, senders, clock=lambda: NOW).dispatch(row))
    finally:
        other.close()


def test_read_during_dispatch_is_merged(db, make_user, make_notification, senders):
    farmer = make_user()
    n = make_notification(farmer)
    _dispatch_elsewhere(n.notification_id, senders)

    read = reminders.mark_as_read(db, principal_for(farmer), n.notification_id, NOW + timedelta(minutes=5))

    assert read.read is True
    assert read.read_at == NOW + timedelta(minutes=5)
    assert read.status == "sent"
    assert read.email_sent is True
    assert read.dispatch_attempts == 1


def test_cancel_after_dispatch_is_rejected(db, make_user, make_notification, senders):
    farmer = make_user()
    n = make_notification(farmer)
    _dispatch_elsewhere(n.notification_id, senders)

    with pytest.raises(InvalidRecord):
        reminders.cancel_notification(db, principal_for(farmer), n.notification_id)

    db.expire_all()
    assert db.get(Notification, n.notification_id).status == "sent"


def test_delete_during_dispatch_conflicts(db, make_user, make_notification, senders):
    farmer = make_user()
    n = make_notification(farmer)
    _dispatch_elsewhere(n.notification_id, senders)

    with pytest.raises(DispatchConflict):
        reminders.delete_notification(db, principal_for(farmer), n.notification_id)

    db.expire_all()
    assert db.get(Notification, n.notification_id) is not None


# -------------------------
# Animal aggregate
# -------------------------

def test_recording_a_vaccination_derives_next_due(db, make_user, make_animal, make_vaccine):
    vet = make_user("VET")
    animal = make_animal(make_user())
    vaccine = make_vaccine("Anthrax Spore", booster_interval_value=12, booster_interval_unit="months")

    v = record_vaccination(db, principal_for(vet), animal.animal_id, datetime(2024, 3, 15), vaccine_id=vaccine.vaccine_id)

    assert v.vaccine_name == "Anthrax Spore"
    assert v.next_due_at == datetime(2025, 3, 15)
    assert v.administered_by == vet.user_id
    assert [x.vaccination_id for x in animal.vaccinations] == [v.vaccination_id]


def test_recording_without_plan_or_due_date_is_invalid(db, make_user, make_animal, make_vaccine):
    farmer = make_user()
    animal = make_animal(farmer)
    vaccine = make_vaccine(booster_interval_value=None)

    with pytest.raises(InvalidRecord):
        record_vaccination(db, principal_for(farmer), animal.animal_id, NOW, vaccine_id=vaccine.vaccine_id)
    with pytest.raises(InvalidRecord):
        record_vaccination(db, principal_for(farmer), animal.animal_id, NOW)
    assert db.query(Vaccination).count() == 0


def test_moving_administered_date_reschedules(db, make_user, make_animal, make_vaccine, make_vaccination):
    farmer = make_user()
    vaccine = make_vaccine(booster_interval_value=6, booster_interval_unit="months")
    v = make_vaccination(make_animal(farmer), datetime(2024, 1, 10), datetime(2024, 7, 10), vaccine=vaccine)

    updated = update_vaccination(db, principal_for(farmer), v.vaccination_id, {"administered_at": datetime(2024, 2, 1)})
    assert updated.next_due_at == datetime(2024, 8, 1)


def test_explicit_next_due_wins_over_booster_plan(db, make_user, make_animal, make_vaccine, make_vaccination):
    farmer = make_user()
    vaccine = make_vaccine()
    v = make_vaccination(make_animal(farmer), datetime(2024, 1, 10), datetime(2024, 7, 10), vaccine=vaccine)

    updated = update_vaccination(
        db,
        principal_for(farmer),
        v.vaccination_id,
        {"administered_at": datetime(2024, 2, 1), "next_due_at": datetime(2024, 5, 1)},
    )
    assert updated.next_due_at == datetime(2024, 5, 1)


def test_invalid_edit_leaves_record_unchanged(db, make_user, make_animal, make_vaccination):
    farmer = make_user()
    v = make_vaccination(make_animal(farmer), datetime(2024, 1, 10), datetime(2024, 7, 10))

    with pytest.raises(InvalidRecord):
        update_vaccination(db, principal_for(farmer), v.vaccination_id, {"next_due_at": datetime(2023, 12, 1)})

    db.expire_all()
    assert db.get(Vaccination, v.vaccination_id).next_due_at == datetime(2024, 7, 10)


def test_clearing_name_or_status_is_invalid(db, make_user, make_animal, make_vaccination):
    farmer = make_user()
    v = make_vaccination(make_animal(farmer), datetime(2024, 1, 10), datetime(2024, 7, 10))

    for changes in ({"vaccine_name": None}, {"vaccine_name": "  "}, {"status": None}):
        with pytest.raises(InvalidRecord):
            update_vaccination(db, principal_for(farmer), v.vaccination_id, changes)

    db.expire_all()
    stored = db.get(Vaccination, v.vaccination_id)
    assert stored.vaccine_name == "Lumpy Skin Disease"
    assert stored.status == "completed"


def test_unrelated_vet_cannot_edit(db, make_user, make_animal, make_vaccination):
    farmer = make_user()
    v = make_vaccination(make_animal(farmer), datetime(2024, 1, 10), datetime(2024, 7, 10))
    with pytest.raises(AuthorizationError):
        update_vaccination(db, principal_for(make_user("VET")), v.vaccination_id, {"notes": "booster given"})


def test_removing_a_vaccination(db, make_user, make_animal, make_vaccination):
    farmer = make_user()
    animal = make_animal(farmer)
    v = make_vaccination(animal, datetime(2024, 1, 10), datetime(2024, 7, 10))

    remove_vaccination(db, principal_for(farmer), animal.animal_id, v.vaccination_id)
    assert db.get(Vaccination, v.vaccination_id) is None

    with pytest.raises(NotFoundError):
        remove_vaccination(db, principal_for(farmer), animal.animal_id, v.vaccination_id)
