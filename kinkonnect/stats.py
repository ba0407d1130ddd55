"""Tree statistics, member badges and member list filtering."""

from datetime import date

from .constants import BADGE_LEVELS, GENDER_FEMALE, GENDER_MALE, NO_BADGE
from .errors import InvalidArgumentError
from .helpers import calculate_age, parse_date
from .models import Person

SORT_OPTIONS = ("generation", "name", "name_desc", "dob", "dob_desc")
STATUS_OPTIONS = ("all", "alive", "deceased")


def _badge_dict(badge: tuple) -> dict:
    name, required, description, tier = badge
    return {"name": name, "members_required": required, "description": description, "tier": tier}


def get_badge_for_member_count(count: int) -> dict:
    for badge in BADGE_LEVELS:
        if count >= badge[1]:
            return _badge_dict(badge)
    return _badge_dict(NO_BADGE)


def get_next_badge(count: int) -> dict | None:
    """The next badge to earn with members needed and progress percent, or None when all are earned."""
    current_required = get_badge_for_member_count(count)["members_required"]
    for badge in sorted(BADGE_LEVELS, key=lambda b: b[1]):
        required = badge[1]
        if count < required:
            span = required - current_required
            progress = (count - current_required) / span * 100 if span > 0 else 100.0
            return {
                "next_badge": _badge_dict(badge),
                "members_needed": required - count,
                "progress_percentage": min(100.0, max(0.0, progress)),
            }
    return None


def counted_people(people: list[Person]) -> list[Person]:
    """People that count towards totals; alternate profiles are excluded."""
    return [p for p in people if p.is_self or not p.is_alternate_profile]


def tree_statistics(people: list[Person]) -> dict:
    """Totals by gender and living status, with the badge they earn."""
    counted = counted_people(people)
    total = len(counted)
    return {
        "total_members": total,
        "male": sum(1 for p in counted if p.gender == GENDER_MALE),
        "female": sum(1 for p in counted if p.gender == GENDER_FEMALE),
        "other": sum(1 for p in counted if p.gender and p.gender not in (GENDER_MALE, GENDER_FEMALE)),
        "alive": sum(1 for p in counted if not p.is_deceased),
        "deceased": sum(1 for p in counted if p.is_deceased),
        "badge": get_badge_for_member_count(total),
        "next_badge": get_next_badge(total),
    }


def _contains(value: str | None, needle: str | None) -> bool:
    if not needle:
        return True
    return needle.strip().lower() in (value or "").lower()


def filter_members(
    people: list[Person],
    search: str | None = None,
    gender: str | None = None,
    status: str = "all",
    place: str | None = None,
    religion: str | None = None,
    caste: str | None = None,
    min_age: int | None = None,
    max_age: int | None = None,
    sort_by: str = "generation",
    generations: dict[str, int | None] | None = None,
    today: date | None = None,
) -> list[Person]:
    """Filter and sort a member list.

    place matches native or current place. Age bounds are inclusive and drop
    anyone whose age is unknown. The "generation" sort needs a generations
    mapping and orders by generation (unknown last), then date of birth,
    then name.
    """
    if status not in STATUS_OPTIONS:
        raise InvalidArgumentError(f"Unknown status filter '{status}'.")
    if sort_by not in SORT_OPTIONS:
        raise InvalidArgumentError(f"Unknown sort '{sort_by}'. Expected one of: {', '.join(SORT_OPTIONS)}")

    selected = []
    for person in people:
        if not _contains(person.name, search):
            continue
        if gender and person.gender != gender:
            continue
        if status == "alive" and person.is_deceased:
            continue
        if status == "deceased" and not person.is_deceased:
            continue
        if place and not (_contains(person.native_place, place) or _contains(person.current_place, place)):
            continue
        if not _contains(person.religion, religion) or not _contains(person.caste, caste):
            continue
        if min_age is not None or max_age is not None:
            age = calculate_age(person.dob, today)
            if age is None:
                continue
            if min_age is not None and age < min_age:
                continue
            if max_age is not None and age > max_age:
                continue
        selected.append(person)

    def name_key(p: Person) -> str:
        return (p.name or "").lower()

    def dob_key(p: Person):
        born = parse_date(p.dob)
        return (born is None, born or date.max)

    if sort_by == "name":
        return sorted(selected, key=name_key)
    if sort_by == "name_desc":
        return sorted(selected, key=name_key, reverse=True)
    if sort_by == "dob":
        return sorted(selected, key=lambda p: (dob_key(p), name_key(p)))
    if sort_by == "dob_desc":
        known = [p for p in selected if parse_date(p.dob)]
        unknown = [p for p in selected if not parse_date(p.dob)]
        return sorted(known, key=lambda p: parse_date(p.dob), reverse=True) + sorted(unknown, key=name_key)

    generations = generations or {}

    def generation_key(p: Person):
        gen = generations.get(p.id)
        return (gen is None, gen if gen is not None else 0, dob_key(p), name_key(p))

    return sorted(selected, key=generation_key)
