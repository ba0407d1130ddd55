"""Calendar events: birthdays, wedding anniversaries and death anniversaries."""

import calendar
import logging
from datetime import date

from .constants import EVENT_TYPE_ORDER
from .helpers import get_ordinal, parse_date
from .models import Person

logger = logging.getLogger(__name__)


def _in_year(original: date, year: int) -> date:
    # Feb 29 falls on Feb 28 in non-leap years
    day = min(original.day, calendar.monthrange(year, original.month)[1])
    return date(year, original.month, day)


def _long_date(value: date) -> str:
    return f"{value.strftime('%B')} {get_ordinal(value.day)}, {value.year}"


def _event(event_id: str, when: date, kind: str, title: str, description: str, original: str, *people):
    event = {
        "id": event_id,
        "date": when.isoformat(),
        "type": kind,
        "title": title,
        "description": description,
        "original_event_date": original,
    }
    for index, person in enumerate(people, start=1):
        event[f"person_id{index}"] = person.id
        event[f"person_name{index}"] = person.name or f"Person {index}"
    return event


def _pair_anniversary(a: Person, b: Person) -> str | None:
    return a.anniversary_dates.get(b.id) or b.anniversary_dates.get(a.id)


def calendar_events(people: list[Person], year: int, month: int | None = None) -> list[dict]:
    """Every event falling in year (optionally one month of it).

    Anniversaries come from the per-spouse dates of current spouses, one event
    per couple. Events are ordered by date, then birthday, anniversary,
    death anniversary, then title.
    """
    by_id = {p.id: p for p in people}
    events: list[dict] = []
    seen_pairs: set[frozenset] = set()

    def wanted(original: date) -> bool:
        return (month is None or original.month == month) and year >= original.year

    for person in people:
        name = person.name or "Member"

        born = parse_date(person.dob)
        if born and wanted(born):
            events.append(
                _event(
                    f"{person.id}-birthday-{year}",
                    _in_year(born, year),
                    "birthday",
                    f"{name}'s {get_ordinal(year - born.year)} Birthday",
                    f"Born {_long_date(born)}",
                    person.dob,
                    person,
                )
            )

        for spouse_id in person.spouse_ids:
            spouse = by_id.get(spouse_id)
            pair = frozenset((person.id, spouse_id))
            if spouse is None or pair in seen_pairs:
                continue
            raw = _pair_anniversary(person, spouse)
            married = parse_date(raw)
            if married is None:
                continue
            seen_pairs.add(pair)
            if not wanted(married):
                continue
            first, second = sorted((person, spouse), key=lambda p: p.id)
            events.append(
                _event(
                    f"{first.id}-{second.id}-anniversary-{year}",
                    _in_year(married, year),
                    "anniversary",
                    f"{get_ordinal(year - married.year)} Anniv: {first.name} & {second.name}",
                    f"Married on {_long_date(married)}",
                    raw,
                    first,
                    second,
                )
            )

        died = parse_date(person.deceased_date) if person.is_deceased else None
        if died and wanted(died):
            events.append(
                _event(
                    f"{person.id}-death-anniversary-{year}",
                    _in_year(died, year),
                    "death-anniversary",
                    f"{get_ordinal(year - died.year)} Remembrance: {name}",
                    f"Passed on {_long_date(died)}",
                    person.deceased_date,
                    person,
                )
            )

    events.sort(key=lambda e: (e["date"], EVENT_TYPE_ORDER[e["type"]], e["title"]))
    logger.debug("%d calendar events for %s/%s", len(events), year, month or "*")
    return events
