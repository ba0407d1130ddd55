"""Shortest relationship path between two people in the same tree."""

from collections import deque

from .constants import GENDER_FEMALE, GENDER_MALE
from .models import PathResult, PathStep, Person


def _gendered(person: Person, male: str, female: str, other: str) -> str:
    if person.gender == GENDER_MALE:
        return male
    if person.gender == GENDER_FEMALE:
        return female
    return other


def _step(person: Person, connection: str, generation: int) -> PathStep:
    return PathStep(
        person_id=person.id,
        person_name=person.name or "Unknown",
        connection_to_previous=connection,
        generation_relative_to_start=generation,
        gender=person.gender,
    )


def _neighbors(person: Person, by_id: dict[str, Person]) -> list[tuple[str, str, int]]:
    """(neighbor id, label of the neighbor relative to person, generation offset)."""
    found: list[tuple[str, str, int]] = []
    if person.father_id in by_id:
        found.append((person.father_id, "Father", -1))
    if person.mother_id in by_id:
        found.append((person.mother_id, "Mother", -1))
    for child_id in person.child_ids:
        child = by_id.get(child_id)
        if child:
            found.append((child_id, _gendered(child, "Son", "Daughter", "Child"), 1))
    # Former spouses are still a valid step in a relationship description
    for spouse_id in person.ever_spouse_ids():
        if spouse_id in by_id:
            found.append((spouse_id, "Spouse", 0))
    for sibling_id in person.sibling_ids:
        sibling = by_id.get(sibling_id)
        if sibling:
            found.append((sibling_id, _gendered(sibling, "Brother", "Sister", "Sibling"), 0))
    return found


def find_relationship_path(start_id: str, end_id: str, people: list[Person]) -> PathResult:
    """Breadth-first search for the fewest-hops path from start_id to end_id.

    Each step records how that person relates to the previous one and its
    generation offset from the start. The generation gap is the sum of the
    offsets along the path, which can differ from what assign_generations
    reports for the same pair.
    """
    by_id = {p.id: p for p in people}
    start = by_id.get(start_id)
    if start is None:
        return PathResult()

    if start_id == end_id:
        return PathResult(path=[_step(start, "Self", 0)], path_found=True, generation_gap=0)

    queue = deque([(start_id, [_step(start, "Self", 0)], 0)])
    visited = {start_id}

    while queue:
        current_id, path, generation = queue.popleft()
        for neighbor_id, connection, offset in _neighbors(by_id[current_id], by_id):
            step = _step(by_id[neighbor_id], connection, generation + offset)
            if neighbor_id == end_id:
                return PathResult(
                    path=[*path, step], path_found=True, generation_gap=generation + offset
                )
            if neighbor_id not in visited:
                visited.add(neighbor_id)
                queue.append((neighbor_id, [*path, step], generation + offset))

    return PathResult()
