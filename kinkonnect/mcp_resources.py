"""MCP resource definitions for the Kinkonnect server."""

from . import state
from .core import _get_person, _get_tree, _get_tree_statistics
from .errors import KinkonnectError


def register_resources(mcp):
    """Register all MCP resources with the server."""

    @mcp.resource("kinkonnect://person/{owner_id}/{person_id}")
    async def resource_person(owner_id: str, person_id: str) -> str:
        """Get one person record from a tree."""
        try:
            return str(await _get_person(state.resolve_caller(), owner_id, person_id))
        except KinkonnectError as e:
            return f"Person {person_id} unavailable: {e}"

    @mcp.resource("kinkonnect://tree/{owner_id}")
    async def resource_tree(owner_id: str) -> str:
        """Get a tree as one line per person."""
        try:
            tree = await _get_tree(state.resolve_caller(), owner_id)
        except KinkonnectError as e:
            return f"Tree {owner_id} unavailable: {e}"
        lines = []
        for person in tree["people"]:
            born = person["dob"] or "?"
            lines.append(f"{person['id']}: {person['name'] or 'Unnamed'} ({person['gender']}, b. {born})")
        return "\n".join(lines)

    @mcp.resource("kinkonnect://stats/{owner_id}")
    async def resource_stats(owner_id: str) -> str:
        """Get tree statistics."""
        try:
            return str(await _get_tree_statistics(state.resolve_caller(), owner_id))
        except KinkonnectError as e:
            return f"Statistics for {owner_id} unavailable: {e}"
