"""Shared fixtures for Kinkonnect tests."""

import os

import pytest

# Set env vars BEFORE importing any kinkonnect modules
# Explicit values so a local .env doesn't leak in (load_dotenv won't override existing)
os.environ["KINKONNECT_DATA_FILE"] = ""
os.environ["KINKONNECT_USER_ID"] = ""
os.environ["KINKONNECT_TRACING_ENABLED"] = "false"

from kinkonnect.constants import KIND_FAMILY_MEMBER, KIND_SELF  # noqa: E402
from kinkonnect.models import Person  # noqa: E402
from kinkonnect.store import RecordStore  # noqa: E402


def make_person(person_id: str, owner_id: str = "u1", **fields) -> Person:
    """A Person owned by owner_id; the record whose id is the owner id is the profile."""
    kind = KIND_SELF if person_id == owner_id else KIND_FAMILY_MEMBER
    return Person(id=person_id, owner_id=owner_id, kind=kind, **fields)


async def seed(store: RecordStore, *people: Person) -> RecordStore:
    batch = store.batch()
    for person in people:
        batch.set(person)
    await store.commit(batch)
    return store


@pytest.fixture
def store():
    """An empty in-memory record store."""
    return RecordStore()


@pytest.fixture
async def family_store(store):
    """u1 (Ravi) with parents, a wife, a son and an older brother.

    f1 + m1 are married parents of u1 and b1; u1 + s1 are married parents of c1.
    """
    await seed(
        store,
        make_person(
            "u1",
            name="Ravi Kumar",
            gender="Male",
            dob="1985-03-10",
            father_id="f1",
            mother_id="m1",
            spouse_ids=["s1"],
            child_ids=["c1"],
            sibling_ids=["b1"],
            native_place="Chennai",
            religion="Hindu",
            caste="Iyer",
        ),
        make_person("f1", name="Gopal", gender="Male", dob="1955-01-01", spouse_ids=["m1"], child_ids=["u1", "b1"]),
        make_person("m1", name="Lakshmi", gender="Female", dob="1958-06-15", spouse_ids=["f1"], child_ids=["u1", "b1"]),
        make_person("s1", name="Priya", gender="Female", dob="1987-09-20", spouse_ids=["u1"], child_ids=["c1"]),
        make_person("c1", name="Arun", gender="Male", dob="2012-02-02", father_id="u1", mother_id="s1"),
        make_person(
            "b1", name="Mohan", gender="Male", dob="1980-07-07", father_id="f1", mother_id="m1", sibling_ids=["u1"]
        ),
    )
    return store


def people_by_id(people: list[Person]) -> dict[str, Person]:
    return {p.id: p for p in people}


def assert_symmetric(people: list[Person]) -> None:
    """Spouse, divorced-spouse and sibling links point both ways."""
    by_id = people_by_id(people)
    for person in people:
        for name in ("spouse_ids", "divorced_spouse_ids", "sibling_ids"):
            for other_id in getattr(person, name):
                if other_id in by_id:
                    assert person.id in getattr(by_id[other_id], name), (person.id, name, other_id)
