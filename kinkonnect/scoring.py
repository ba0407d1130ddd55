"""Weighted pairwise similarity between two comparable persons."""

from rapidfuzz.distance import Levenshtein

from .constants import (
    ALIAS_NAME_WEIGHT,
    CASTE_WEIGHT,
    CURRENT_PLACE_WEIGHT,
    DECEASED_STATUS_WEIGHT,
    DOB_AGE_APPROX_WEIGHT,
    DOB_AGE_APPROX_YEARS,
    DOB_BOTH_UNKNOWN_WEIGHT,
    DOB_EXACT_WEIGHT,
    FIRST_NAME_REASONS,
    FIRST_NAME_WEIGHTS,
    NATIVE_PLACE_BOTH_UNKNOWN_WEIGHT,
    NATIVE_PLACE_WEIGHT,
    RELIGION_WEIGHT,
    ROLE_WEIGHT,
    UNKNOWN_DATE,
)
from .helpers import calculate_age
from .models import ComparablePerson


def name_distance(name1: str, name2: str) -> int:
    """Unit-cost Levenshtein distance between two normalized first names."""
    return Levenshtein.distance(name1 or "", name2 or "")


def _both_equal(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a == b


def score_pair(p1: ComparablePerson, p2: ComparablePerson) -> tuple[float, list[str]]:
    """Score how likely p1 and p2 are the same person.

    Returns the additive score and the reason labels of every signal that fired,
    in signal order. Symmetric in its arguments.
    """
    score = 0.0
    reasons: list[str] = []

    distance = name_distance(p1.name, p2.name)
    if distance in FIRST_NAME_WEIGHTS:
        score += FIRST_NAME_WEIGHTS[distance]
        reasons.append(FIRST_NAME_REASONS[distance])

    if _both_equal(p1.alias_name, p2.alias_name):
        score += ALIAS_NAME_WEIGHT
        reasons.append("Alias Name (Exact)")

    if p1.dob and p2.dob and UNKNOWN_DATE not in (p1.dob, p2.dob):
        if p1.dob == p2.dob:
            score += DOB_EXACT_WEIGHT
            reasons.append("DOB (Exact)")
        else:
            age1 = calculate_age(p1.dob)
            age2 = calculate_age(p2.dob)
            if age1 is not None and age2 is not None and abs(age1 - age2) <= DOB_AGE_APPROX_YEARS:
                score += DOB_AGE_APPROX_WEIGHT
                reasons.append("DOB (Age Approx. ±2yrs)")
    elif p1.dob == UNKNOWN_DATE and p2.dob == UNKNOWN_DATE:
        score += DOB_BOTH_UNKNOWN_WEIGHT
        reasons.append("DOB (N/A for both)")

    if _both_equal(p1.native_place, p2.native_place):
        score += NATIVE_PLACE_WEIGHT
        reasons.append("Native Place")
    elif not p1.native_place and not p2.native_place:
        score += NATIVE_PLACE_BOTH_UNKNOWN_WEIGHT
        reasons.append("Native Place (Unknown for both)")

    if p1.is_deceased == p2.is_deceased:
        score += DECEASED_STATUS_WEIGHT
        reasons.append("Deceased Status")

    if _both_equal(p1.religion, p2.religion):
        score += RELIGION_WEIGHT
        reasons.append("Religion")

    if _both_equal(p1.caste, p2.caste):
        score += CASTE_WEIGHT
        reasons.append("Caste")

    if _both_equal(p1.current_place, p2.current_place):
        score += CURRENT_PLACE_WEIGHT
        reasons.append("Current Place")

    if _both_equal(p1.relationship_to_owner, p2.relationship_to_owner):
        score += ROLE_WEIGHT
        reasons.append("Role (Same to their tree owner)")

    return score, reasons
