"""Normalization of person records into comparable projections for matching."""

import logging
import re

from .helpers import first_name
from .models import ComparablePerson, Person

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def _clean(value: str | None) -> str | None:
    """Trim and lowercase; empty becomes None."""
    return (value or "").strip().lower() or None


def _clean_place(value: str | None) -> str | None:
    """Like _clean, with all internal whitespace removed."""
    return _WHITESPACE.sub("", (value or "").strip().lower()) or None


def normalize_person(person: Person | ComparablePerson) -> ComparablePerson:
    """Project a person into the case and whitespace normalized form used by the scorer.

    Accepts an already-normalized ComparablePerson and returns an equal one, so
    normalization is idempotent. Never raises on missing fields.
    """
    if isinstance(person, ComparablePerson):
        original = person.original
        relationship = person.relationship_to_owner
    else:
        original = person
        relationship = person.relationship

    name = first_name(person.name).lower()
    if not name:
        logger.debug("Person %s has no name; first name normalizes to empty", person.id)

    return ComparablePerson(
        id=person.id,
        name=name,
        original=original,
        alias_name=_clean(person.alias_name),
        dob=person.dob,
        is_deceased=bool(person.is_deceased),
        native_place=_clean_place(person.native_place),
        current_place=_clean_place(person.current_place),
        religion=_clean(person.religion),
        caste=_clean(person.caste),
        relationship_to_owner=_clean(relationship),
        gender=_clean(person.gender),
        is_alternate_profile=bool(person.is_alternate_profile),
    )


def normalize_tree(people: list[Person]) -> list[ComparablePerson]:
    return [normalize_person(p) for p in people]
