"""Generation numbers relative to a root person, by breadth-first traversal."""

import logging
from collections import deque

from .errors import NotFoundError
from .models import Person
from .store import RecordStore
from .telemetry import get_tracer

logger = logging.getLogger(__name__)


def assign_generations(root_id: str, people: list[Person]) -> dict[str, int | None]:
    """Annotate every person with a generation relative to root_id (root = 0).

    Parents get g-1, children g+1, current spouses and siblings g. The first
    assignment wins; a person reached again by another route keeps the
    generation it already has. People not reachable from the root map to None.

    Raises:
        NotFoundError: root_id is not in people.
    """
    by_id = {p.id: p for p in people}
    if root_id not in by_id:
        raise NotFoundError(f"Root person {root_id} not found", record_id=root_id)

    generations: dict[str, int | None] = {p.id: None for p in people}
    generations[root_id] = 0
    queue = deque([root_id])
    visited = {root_id}

    while queue:
        current = by_id[queue.popleft()]
        gen = generations[current.id]

        neighbors = [
            *((pid, gen - 1) for pid in (current.father_id, current.mother_id) if pid),
            *((cid, gen + 1) for cid in current.child_ids),
            *((sid, gen) for sid in current.spouse_ids),
            *((sid, gen) for sid in current.sibling_ids),
        ]
        for neighbor_id, neighbor_gen in neighbors:
            if neighbor_id not in by_id or generations[neighbor_id] is not None:
                continue
            generations[neighbor_id] = neighbor_gen
            if neighbor_id not in visited:
                visited.add(neighbor_id)
                queue.append(neighbor_id)

    return generations


async def get_family_with_generations(store: RecordStore, owner_id: str) -> list[dict]:
    """The owner's tree, alternate profiles excluded, each record with a 'generation' key."""
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("graph.generations") as span:
        span.set_attribute("graph.owner_id", owner_id)
        profile = await store.get_profile(owner_id)
        if profile is None:
            raise NotFoundError(f"Profile {owner_id} not found", record_id=owner_id)
        members = [m for m in await store.get_family_members(owner_id) if not m.is_alternate_profile]
        people = [profile, *members]
        generations = assign_generations(owner_id, people)

    unreached = sum(1 for g in generations.values() if g is None)
    if unreached:
        logger.debug("%d people in %s's tree are not connected to the root", unreached, owner_id)
    return [{**p.to_dict(), "generation": generations[p.id]} for p in people]
