"""Tree queries shared by the MCP tools and resources."""

from datetime import date

from . import state
from .describe import build_describer_input, describe_relationship
from .errors import NotFoundError, PermissionDeniedError
from .events import calendar_events
from .generations import assign_generations, get_family_with_generations
from .layout import build_descendant_tree, derive_tree_layout
from .models import Person
from .pathfinder import find_relationship_path
from .stats import filter_members, tree_statistics


async def _check_view_access(caller_id: str, owner_id: str) -> None:
    """Owners see their own tree; konnected users see each other's."""
    if caller_id == owner_id:
        return
    if await state.store.get_konnection(caller_id, owner_id) is None:
        raise PermissionDeniedError(
            f"You are not konnected with {owner_id}; send a Konnect request to view their tree."
        )


async def _load_people(caller_id: str, owner_id: str | None = None) -> tuple[str, list[Person]]:
    owner_id = owner_id or caller_id
    await _check_view_access(caller_id, owner_id)
    people = await state.store.get_tree(owner_id)
    if not people or people[0].id != owner_id:
        raise NotFoundError(f"Profile {owner_id} not found", record_id=owner_id)
    return owner_id, people


async def _get_tree(caller_id: str, owner_id: str | None = None) -> dict:
    owner_id, people = await _load_people(caller_id, owner_id)
    return {"owner_id": owner_id, "people": [p.to_dict() for p in people]}


async def _get_person(caller_id: str, owner_id: str, person_id: str) -> dict:
    await _check_view_access(caller_id, owner_id)
    person = await state.store.get_person(owner_id, person_id)
    if person is None:
        raise NotFoundError(f"Person {person_id} not found", record_id=person_id)
    return person.to_dict()


async def _get_generations(caller_id: str, owner_id: str | None = None) -> list[dict]:
    owner_id = owner_id or caller_id
    await _check_view_access(caller_id, owner_id)
    return await get_family_with_generations(state.store, owner_id)


async def _find_relationship(caller_id: str, start_id: str, end_id: str, owner_id: str | None = None) -> dict:
    _, people = await _load_people(caller_id, owner_id)
    return find_relationship_path(start_id, end_id, people).to_dict()


async def _describe_relationship(
    caller_id: str, start_id: str, end_id: str, owner_id: str | None = None
) -> dict:
    _, people = await _load_people(caller_id, owner_id)
    result = find_relationship_path(start_id, end_id, people)
    if not result.path_found:
        return {**result.to_dict(), "relationshipName": None, "explanation": "No path found."}
    description = await describe_relationship(build_describer_input(result), model=state.DESCRIBE_MODEL)
    return {**result.to_dict(), **description}


async def _get_tree_layout(caller_id: str, root_id: str | None = None, owner_id: str | None = None) -> dict:
    owner_id, people = await _load_people(caller_id, owner_id)
    return derive_tree_layout(root_id or owner_id, people).to_dict()


async def _get_descendant_tree(caller_id: str, root_id: str | None = None, owner_id: str | None = None) -> dict:
    owner_id, people = await _load_people(caller_id, owner_id)
    root_id = root_id or owner_id
    tree = build_descendant_tree(root_id, people)
    if tree is None:
        raise NotFoundError(f"Person {root_id} not found", record_id=root_id)
    return tree


async def _get_tree_statistics(caller_id: str, owner_id: str | None = None) -> dict:
    owner_id, people = await _load_people(caller_id, owner_id)
    return {"owner_id": owner_id, **tree_statistics(people)}


async def _list_members(caller_id: str, owner_id: str | None = None, **filters) -> list[dict]:
    owner_id, people = await _load_people(caller_id, owner_id)
    visible = [p for p in people if p.is_self or not p.is_alternate_profile]
    generations = assign_generations(owner_id, visible)
    selected = filter_members(visible, generations=generations, **filters)
    return [{**p.to_summary(), "generation": generations.get(p.id)} for p in selected]


async def _get_calendar_events(
    caller_id: str, year: int | None = None, month: int | None = None, owner_id: str | None = None
) -> list[dict]:
    _, people = await _load_people(caller_id, owner_id)
    return calendar_events(people, year or date.today().year, month)
