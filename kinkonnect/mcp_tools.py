"""MCP tool definitions for the Kinkonnect server.

Every tool acts as the configured user unless caller_id is given, and reports
failures as {"error": ..., "code": ...} instead of raising.
"""

from . import state
from .core import (
    _describe_relationship,
    _find_relationship,
    _get_calendar_events,
    _get_descendant_tree,
    _get_generations,
    _get_tree,
    _get_tree_layout,
    _get_tree_statistics,
    _list_members,
)
from .discovery import find_similar_trees as _find_similar_trees
from .errors import KinkonnectError
from .konnections import (
    accept_konnect_request,
    cancel_konnect_request as _cancel_konnect_request,
    decline_konnect_request,
    get_konnection_status as _get_konnection_status,
    list_konnections,
    remove_konnection as _remove_konnection,
    send_konnect_request as _send_konnect_request,
)
from .layout import select_node
from .mutations import (
    add_family_member as _add_family_member,
    delete_family_member as _delete_family_member,
    delete_user_account,
    link_parent_to_profile,
    set_anniversary_date as _set_anniversary_date,
    update_family_member as _update_family_member,
    update_user_profile,
)


def register_tools(mcp):
    """Register all MCP tools with the server."""

    # ============== DISCOVERY TOOLS (1) ==============

    @mcp.tool()
    async def find_similar_trees(filter_option: str, caller_id: str | None = None) -> dict:
        """
        Scan every other public tree for probable shared relatives.

        Candidates are first screened on profile fields, then their whole tree
        is compared person by person. Konnected users and private profiles are
        skipped. A private caller gets no matches.

        Args:
            filter_option: "nativePlace", "religionAndCaste" or "combined".
                The caller's profile must have the fields the filter compares.
            caller_id: Acting user (default: the configured user)

        Returns:
            {"matches": [...]} with matchedUserId, matchedUserName, score,
            totalMembersInTree, detailedContributingPairs, myMatchedPersons and
            otherMatchedPersons for each similar tree
        """
        try:
            return await _find_similar_trees(
                state.store,
                caller_id or state.ACTING_USER_ID,
                filter_option,
                timeout=state.SCAN_TIMEOUT,
            )
        except KinkonnectError as e:
            return e.to_dict()

    # ============== TREE TOOLS (7) ==============

    @mcp.tool()
    async def get_tree(owner_id: str | None = None, caller_id: str | None = None) -> dict:
        """
        Get every record in a tree: the owner's profile first, then family members.

        Args:
            owner_id: Whose tree (default: the caller's). Other users' trees
                need a konnection.
            caller_id: Acting user (default: the configured user)

        Returns:
            {"owner_id": ..., "people": [...]} with full person records
        """
        try:
            return await _get_tree(state.resolve_caller(caller_id), owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_generations(owner_id: str | None = None, caller_id: str | None = None) -> list[dict] | dict:
        """
        Get the tree with a generation number per person, relative to the owner (0).

        Parents are -1, children +1, spouses and siblings 0. People not
        connected to the owner have generation null. Alternate profiles are left out.

        Args:
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            List of person records, each with a "generation" key
        """
        try:
            return await _get_generations(state.resolve_caller(caller_id), owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def find_relationship(
        start_id: str, end_id: str, owner_id: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Find the shortest chain of relatives between two people in one tree.

        Each step says how that person relates to the previous one (Father,
        Mother, Son, Daughter, Spouse, Brother, Sister...). Former spouses
        count as a step.

        Args:
            start_id: Person the path starts from
            end_id: Person the path ends at
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            {"path": [...], "pathFound": bool, "generationGap": int | None}
        """
        try:
            return await _find_relationship(state.resolve_caller(caller_id), start_id, end_id, owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def describe_relationship(
        start_id: str, end_id: str, owner_id: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Name the relationship of end_id to start_id (e.g. "Paternal Uncle").

        Finds the path like find_relationship, then asks an LLM to turn it into
        a single genealogical term with a name-based explanation.

        Args:
            start_id: Person 1
            end_id: Person 2
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            The path result plus relationshipName and explanation
        """
        try:
            return await _describe_relationship(state.resolve_caller(caller_id), start_id, end_id, owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_tree_layout(
        root_id: str | None = None, owner_id: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Compute the visual tree around one root person.

        Older siblings sit left of the root, spouses and younger siblings to
        the right, parents above and children below grouped by co-parent.

        Args:
            root_id: Person at the centre (default: the tree owner)
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            {"root_id", "nodes": [...], "edges": [...]} with node positions
        """
        try:
            return await _get_tree_layout(state.resolve_caller(caller_id), root_id, owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    def select_tree_node(current_root_id: str, node_id: str) -> dict:
        """
        What clicking a node does: re-root on it, or add a relative to the current root.

        Args:
            current_root_id: Root of the layout being shown
            node_id: Node that was clicked

        Returns:
            {"action": "reroot", "root_id"} or {"action": "add_relative", "anchor_id"}
        """
        return select_node(current_root_id, node_id)

    @mcp.tool()
    async def get_descendant_tree(
        root_id: str | None = None, owner_id: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Get a nested tree of someone's descendants.

        Each child carries spouse_group_index (which of the parent's spouses
        is the other parent) and color_index for grouping.

        Args:
            root_id: Top of the tree (default: the tree owner)
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)
        """
        try:
            return await _get_descendant_tree(state.resolve_caller(caller_id), root_id, owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    # ============== MEMBER TOOLS (3) ==============

    @mcp.tool()
    async def list_family_members(
        search: str | None = None,
        gender: str | None = None,
        status: str = "all",
        place: str | None = None,
        religion: str | None = None,
        caste: str | None = None,
        min_age: int | None = None,
        max_age: int | None = None,
        sort_by: str = "generation",
        owner_id: str | None = None,
        caller_id: str | None = None,
    ) -> list[dict] | dict:
        """
        List tree members with filters.

        Args:
            search: Case-insensitive name substring
            gender: "Male", "Female" or "Other"
            status: "all", "alive" or "deceased"
            place: Substring of native or current place
            religion: Substring of religion
            caste: Substring of caste
            min_age: Minimum age in years (unknown ages are excluded)
            max_age: Maximum age in years (unknown ages are excluded)
            sort_by: "generation", "name", "name_desc", "dob" or "dob_desc"
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            Person summaries with their generation
        """
        try:
            return await _list_members(
                state.resolve_caller(caller_id),
                owner_id,
                search=search,
                gender=gender,
                status=status,
                place=place,
                religion=religion,
                caste=caste,
                min_age=min_age,
                max_age=max_age,
                sort_by=sort_by,
            )
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_tree_statistics(owner_id: str | None = None, caller_id: str | None = None) -> dict:
        """
        Count members by gender and living status, with the earned badge.

        Alternate profiles are not counted. Badges: Steel 100, Bronze 500,
        Silver 1000, Gold 1500, Diamond 2000, Platinum 3000 members.

        Args:
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)
        """
        try:
            return await _get_tree_statistics(state.resolve_caller(caller_id), owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_calendar_events(
        year: int | None = None,
        month: int | None = None,
        owner_id: str | None = None,
        caller_id: str | None = None,
    ) -> list[dict] | dict:
        """
        Birthdays, wedding anniversaries and death anniversaries for a year or month.

        Args:
            year: Calendar year (default: this year)
            month: 1-12 to limit to one month (default: whole year)
            owner_id: Whose tree (default: the caller's)
            caller_id: Acting user (default: the configured user)

        Returns:
            Events ordered by date, then birthday, anniversary, death anniversary
        """
        try:
            return await _get_calendar_events(state.resolve_caller(caller_id), year, month, owner_id)
        except KinkonnectError as e:
            return e.to_dict()

    # ============== EDIT TOOLS (7) ==============

    @mcp.tool()
    async def add_family_member(
        anchor_id: str,
        relationship: str,
        member: dict,
        co_parent_id: str | None = None,
        caller_id: str | None = None,
    ) -> dict:
        """
        Add a relative of an existing person in the caller's tree.

        All affected links are written together: a new parent marries the
        anchor's other parent and adopts the anchor's siblings, a new spouse
        fills the empty parent slot of the anchor's children, a new sibling
        shares the anchor's parents, a new child joins siblings who share both
        parents.

        Args:
            anchor_id: Existing person the new relative is added to
            relationship: What the new person is to the anchor: "Father",
                "Mother", "Spouse", "Brother", "Sister", "Son" or "Daughter"
            member: Fields of the new person, e.g. {"name": "Ravi",
                "gender": "Male", "dob": "1960-01-31"}; "anniversary_date" is
                used for a Spouse
            co_parent_id: Other parent of a new Son/Daughter; needed when the
                anchor has more than one spouse
            caller_id: Acting user (default: the configured user)

        Returns:
            The new person record
        """
        try:
            owner = state.resolve_caller(caller_id)
            person = await _add_family_member(
                state.store, owner, member, anchor_id, relationship, co_parent_id
            )
            return person.to_dict()
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def update_family_member(
        member_id: str,
        fields: dict | None = None,
        divorce_selections: dict[str, bool] | None = None,
        caller_id: str | None = None,
    ) -> dict:
        """
        Edit a person's fields and/or mark marriages as divorced or restored.

        Args:
            member_id: Person to edit
            fields: Plain fields to change (name, alias_name, dob, gender,
                is_deceased, deceased_date, native_place, ...). Links between
                people cannot be edited here.
            divorce_selections: Spouse id -> true (divorced) or false (married)
            caller_id: Acting user (default: the configured user)

        Returns:
            The updated person record
        """
        try:
            owner = state.resolve_caller(caller_id)
            person = await _update_family_member(
                state.store, owner, member_id, fields, divorce_selections
            )
            return person.to_dict()
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def set_anniversary_date(
        person_id: str, spouse_id: str, anniversary_date: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Set or clear the wedding anniversary of one couple.

        Args:
            person_id: One spouse
            spouse_id: The other spouse (current or former)
            anniversary_date: ISO date; empty clears it
            caller_id: Acting user (default: the configured user)
        """
        try:
            owner = state.resolve_caller(caller_id)
            await _set_anniversary_date(state.store, owner, person_id, spouse_id, anniversary_date)
            return {"success": True}
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def delete_family_member(
        member_id: str, include_divorced: bool = False, caller_id: str | None = None
    ) -> dict:
        """
        Delete a family member and remove every link to them.

        Args:
            member_id: Person to delete (not the caller's own profile)
            include_divorced: Also remove the id from former spouses' records
            caller_id: Acting user (default: the configured user)
        """
        try:
            owner = state.resolve_caller(caller_id)
            await _delete_family_member(state.store, owner, member_id, include_divorced)
            return {"success": True, "deleted_id": member_id}
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def link_parent(
        parent_type: str, parent_member_id: str | None = None, caller_id: str | None = None
    ) -> dict:
        """
        Set or clear the caller's own father or mother to an existing member.

        Args:
            parent_type: "Father" or "Mother"
            parent_member_id: Existing family member, or null to unlink
            caller_id: Acting user (default: the configured user)

        Returns:
            The updated profile
        """
        try:
            owner = state.resolve_caller(caller_id)
            profile = await link_parent_to_profile(state.store, owner, parent_member_id, parent_type)
            return profile.to_dict()
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def update_profile(fields: dict, caller_id: str | None = None) -> dict:
        """
        Update (or create) the caller's own profile.

        Args:
            fields: Profile fields, including email and is_public (private
                profiles are hidden from Discovery and Konnect requests)
            caller_id: Acting user (default: the configured user)

        Returns:
            The profile record
        """
        try:
            profile = await update_user_profile(state.store, state.resolve_caller(caller_id), fields)
            return profile.to_dict()
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def delete_account(confirm: bool = False, caller_id: str | None = None) -> dict:
        """
        Permanently delete the caller's account, whole tree and konnections.

        References to the deleted people are removed from every other tree.

        Args:
            confirm: Must be true
            caller_id: Acting user (default: the configured user)
        """
        if not confirm:
            return {"error": "Pass confirm=true to delete the account.", "code": "invalid-argument"}
        try:
            writes = await delete_user_account(state.store, state.resolve_caller(caller_id))
            return {"success": True, "writes": writes}
        except KinkonnectError as e:
            return e.to_dict()

    # ============== KONNECT TOOLS (6) ==============

    @mcp.tool()
    async def send_konnect_request(recipient_id: str, caller_id: str | None = None) -> dict:
        """
        Ask another user to konnect; accepts instead if they already asked you.

        Args:
            recipient_id: User to konnect with
            caller_id: Acting user (default: the configured user)

        Returns:
            {"success", "message", "status"}
        """
        try:
            return await _send_konnect_request(
                state.store, state.resolve_caller(caller_id), recipient_id
            )
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def respond_to_konnect_request(
        sender_id: str, accept: bool, caller_id: str | None = None
    ) -> dict:
        """
        Accept or decline a pending Konnect request.

        Args:
            sender_id: User who sent the request
            accept: true to konnect, false to decline
            caller_id: Acting user (default: the configured user)
        """
        try:
            user_id = state.resolve_caller(caller_id)
            if accept:
                await accept_konnect_request(state.store, user_id, sender_id)
            else:
                await decline_konnect_request(state.store, user_id, sender_id)
            return {"success": True, "status": await _get_konnection_status(state.store, user_id, sender_id)}
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def cancel_konnect_request(recipient_id: str, caller_id: str | None = None) -> dict:
        """
        Withdraw a Konnect request you sent.

        Args:
            recipient_id: User the request was sent to
            caller_id: Acting user (default: the configured user)
        """
        try:
            cancelled = await _cancel_konnect_request(
                state.store, state.resolve_caller(caller_id), recipient_id
            )
            return {"success": cancelled}
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def remove_konnection(other_id: str, caller_id: str | None = None) -> dict:
        """
        Remove a konnection on both sides.

        Args:
            other_id: Konnected user
            caller_id: Acting user (default: the configured user)
        """
        try:
            await _remove_konnection(state.store, state.resolve_caller(caller_id), other_id)
            return {"success": True}
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_konnections(caller_id: str | None = None) -> dict:
        """
        List the caller's konnections and pending incoming Konnect requests.

        Args:
            caller_id: Acting user (default: the configured user)
        """
        try:
            return await list_konnections(state.store, state.resolve_caller(caller_id))
        except KinkonnectError as e:
            return e.to_dict()

    @mcp.tool()
    async def get_konnection_status(other_id: str, caller_id: str | None = None) -> dict:
        """
        Konnection status with another user.

        Args:
            other_id: The other user
            caller_id: Acting user (default: the configured user)

        Returns:
            {"status": "not_konnected" | "request_sent" | "request_received" | "konnected"}
        """
        try:
            user_id = state.resolve_caller(caller_id)
            return {"status": await _get_konnection_status(state.store, user_id, other_id)}
        except KinkonnectError as e:
            return e.to_dict()
