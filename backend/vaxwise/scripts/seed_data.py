"""Module: seed_data."""

import random
import string
from datetime import timedelta

from faker import Faker

from vaxwise.core.security import create_access_token
from vaxwise.db.init_db import drop_db, init_db
from vaxwise.db.session import SessionLocal

from vaxwise.db.models.user import User
from vaxwise.db.models.animal import Animal
from vaxwise.db.models.vaccine import Vaccine
from vaxwise.db.models.vaccination import Vaccination
from vaxwise.services.scheduling import compute_next_due_date, utcnow

fake = Faker()

SPECIES_BREEDS = {
    "cattle": ["Angus", "Hereford", "Nguni", "Brahman"],
    "sheep": ["Merino", "Dorper", "Dohne Merino"],
    "goats": ["Boer", "Saanen", "Kalahari Red"],
    "pigs": ["Large White", "Landrace", "Duroc"],
}

# (name, manufacturer, type, route, booster value, booster unit, species)
VACCINES = [
    ("Anthrax Spore", "Onderstepoort", "live", "subcutaneous", 1, "years", "cattle"),
    ("Lumpy Skin Disease", "Onderstepoort", "live", "subcutaneous", 1, "years", "cattle"),
    ("Brucella S19", "Zoetis", "live", "subcutaneous", None, None, "cattle"),
    ("Pulpy Kidney", "MSD", "inactivated", "subcutaneous", 6, "months", "sheep"),
    ("Blue Tongue", "Onderstepoort", "live", "subcutaneous", 1, "years", "sheep"),
    ("Pasteurella", "MSD", "inactivated", "subcutaneous", 6, "months", "goats"),
    ("Erysipelas", "Zoetis", "inactivated", "intramuscular", 6, "months", "pigs"),
]


# Shared helpers used by multiple seed builders.
def generate_mobile() -> str:
    return "+27" + "".join(random.choice(string.digits) for _ in range(9))


def seed_users(session, farmers: int = 20, vets: int = 4) -> tuple[list[User], list[User]]:
    farmer_users = [
        User(
            email=fake.unique.email(),
            role="FARMER",
            full_name=fake.name(),
            phone=generate_mobile(),
            push_token=fake.sha1() if random.random() < 0.6 else None,
            notify_sms=random.random() < 0.8,
        )
        for _ in range(farmers)
    ]
    vet_users = [
        User(email=fake.unique.email(), role="VET", full_name=f"Dr {fake.name()}", phone=generate_mobile())
        for _ in range(vets)
    ]
    session.add_all(farmer_users + vet_users)
    session.flush()
    return farmer_users, vet_users


def seed_vaccines(session) -> list[Vaccine]:
    vaccines = [
        Vaccine(
            name=name,
            manufacturer=manufacturer,
            vaccine_type=vaccine_type,
            route=route,
            booster_interval_value=value,
            booster_interval_unit=unit,
            total_doses=1 if value is None else 2,
        )
        for name, manufacturer, vaccine_type, route, value, unit, _ in VACCINES
    ]
    session.add_all(vaccines)
    session.flush()
    return vaccines


def seed_animals(session, farmers: list[User], per_farmer: int = 8) -> list[Animal]:
    animals = []
    tag = 1000
    for farmer in farmers:
        for _ in range(random.randint(1, per_farmer)):
            species = random.choice(list(SPECIES_BREEDS))
            tag += 1
            animals.append(
                Animal(
                    farmer_id=farmer.user_id,
                    tag_number=f"ZA-{tag}",
                    name=fake.first_name(),
                    species=species,
                    breed=random.choice(SPECIES_BREEDS[species]),
                    sex=random.choice(["male", "female"]),
                    date_of_birth=fake.date_between(start_date="-8y", end_date="-3m"),
                )
            )
    session.add_all(animals)
    session.flush()
    return animals


def seed_vaccinations(session, animals: list[Animal], vaccines: list[Vaccine], vets: list[User]) -> int:
    by_species: dict[str, list[Vaccine]] = {}
    for vaccine, row in zip(vaccines, VACCINES):
        by_species.setdefault(row[-1], []).append(vaccine)

    count = 0
    now = utcnow()
    for animal in animals:
        for vaccine in by_species.get(animal.species, []):
            if vaccine.booster_interval_value is None or random.random() < 0.3:
                continue
            administered_at = now - timedelta(days=random.randint(30, 500))
            animal.add_vaccination(
                Vaccination(
                    vaccine_id=vaccine.vaccine_id,
                    vaccine_name=vaccine.name,
                    administered_by=random.choice(vets).user_id,
                    administered_at=administered_at,
                    next_due_at=compute_next_due_date(administered_at, vaccine),
                    batch_number=fake.bothify("B-####-??").upper(),
                    status="completed",
                )
            )
            count += 1
    session.flush()
    return count


if __name__ == "__main__":
    session = SessionLocal()
    try:
        drop_db()
        init_db()
        farmers, vets = seed_users(session)
        vaccines = seed_vaccines(session)
        animals = seed_animals(session, farmers)
        n_vax = seed_vaccinations(session, animals, vaccines, vets)
        session.commit()

        print(f"Seeded {len(farmers)} farmers, {len(vets)} vets, {len(animals)} animals, {n_vax} vaccinations.")
        print(f"Sample farmer token ({farmers[0].email}): {create_access_token(farmers[0].user_id, 'FARMER')}")
    finally:
        session.close()
