"""Tree layout derivation: sibling, spouse and child ordering around a root person.

The layout is centred on one root. Older siblings sit left of the root, then
the root, then its current and former spouses, then younger siblings. Parents
sit one generation up, centred over the root; children sit one generation down,
grouped by co-parent in spouse order.
"""

import logging
from collections import deque
from functools import cmp_to_key

from .constants import (
    CHILD_INTER_GROUP_HORIZONTAL_GAP,
    CHILD_INTRA_GROUP_HORIZONTAL_GAP,
    FALLBACK_SPOUSE_GROUP,
    GENDER_FEMALE,
    GENDER_MALE,
    MAIN_LINE_HORIZONTAL_GAP,
    MAX_SPOUSE_GROUPS,
    NO_SPOUSE_GROUP,
    NODE_WIDTH,
    VERTICAL_GENERATION_GAP,
)
from .errors import NotFoundError
from .helpers import parse_date, timestamp_ms
from .models import LayoutEdge, LayoutNode, Person, TreeLayout

logger = logging.getLogger(__name__)


# ============== ORDERING ==============


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _cmp_present(a, b, factor: int) -> int:
    """Compare two optional keys; a present key sorts before a missing one."""
    if a is not None and b is not None:
        return _cmp(a, b) * factor
    if a is not None:
        return -factor
    if b is not None:
        return factor
    return 0


def compare_by_age(a: Person, b: Person, ascending: bool = True) -> int:
    """Sibling order: sibling_order_index, then dob, then creation time, then name."""
    factor = 1 if ascending else -1
    for key_a, key_b in (
        (a.sibling_order_index, b.sibling_order_index),
        (parse_date(a.dob), parse_date(b.dob)),
        (timestamp_ms(a.created_at), timestamp_ms(b.created_at)),
    ):
        result = _cmp_present(key_a, key_b, factor)
        if result:
            return result
    # Name tie-break ignores direction
    return _cmp((a.name or "").lower(), (b.name or "").lower())


def sort_people_by_age(people: list[Person], ascending: bool = True) -> list[Person]:
    return sorted(people, key=cmp_to_key(lambda a, b: compare_by_age(a, b, ascending)))


def anniversary_with(spouse: Person, partner: Person | None) -> str | None:
    """The anniversary of spouse's marriage to partner, falling back to spouse's own date."""
    if partner is not None:
        pair_date = spouse.anniversary_dates.get(partner.id) or partner.anniversary_dates.get(
            spouse.id
        )
        if pair_date:
            return pair_date
    return spouse.anniversary_date


def sort_spouses_by_order(
    spouses: list[Person], partner: Person | None = None, ascending: bool = True
) -> list[Person]:
    """Spouse order: anniversary date, then dob, then creation time, then name."""
    factor = 1 if ascending else -1

    def compare(a: Person, b: Person) -> int:
        for key_a, key_b in (
            (parse_date(anniversary_with(a, partner)), parse_date(anniversary_with(b, partner))),
            (parse_date(a.dob), parse_date(b.dob)),
            (timestamp_ms(a.created_at), timestamp_ms(b.created_at)),
        ):
            result = _cmp_present(key_a, key_b, factor)
            if result:
                return result
        return _cmp((a.name or "").lower(), (b.name or "").lower()) * factor

    return sorted(spouses, key=cmp_to_key(compare))


def color_index(order: int | None) -> int | None:
    """Grouping key for a spouse order; orders past the distinguishable range share one."""
    if order is None:
        return None
    return order if order < MAX_SPOUSE_GROUPS else FALLBACK_SPOUSE_GROUP


# ============== RELATIVES ==============


def _parents_of(person: Person, members: dict[str, Person]) -> tuple[Person | None, Person | None]:
    return members.get(person.father_id), members.get(person.mother_id)


def find_siblings_of(root: Person, members: dict[str, Person]) -> list[Person]:
    """Direct siblings, or failing that, everyone sharing root's known parents."""
    direct = [members[s] for s in root.sibling_ids if s in members and s != root.id]
    if direct:
        return direct

    father, mother = _parents_of(root, members)
    if not father and not mother:
        return []

    found = []
    for candidate in members.values():
        if candidate.id in (root.id, root.father_id, root.mother_id):
            continue
        if candidate.id in root.child_ids:
            continue
        cand_father, cand_mother = _parents_of(candidate, members)
        shares_father = bool(father and cand_father and father.id == cand_father.id)
        shares_mother = bool(mother and cand_mother and mother.id == cand_mother.id)
        if (
            (father and mother and shares_father and shares_mother)
            or (father and not mother and shares_father)
            or (not father and mother and shares_mother)
        ):
            found.append(candidate)
    return found


def separate_siblings(
    root: Person, siblings: list[Person]
) -> tuple[list[Person], list[Person]]:
    """Split siblings into (older, younger) relative to root, each sorted oldest first."""
    older, younger = [], []
    for sibling in siblings:
        if sibling.id == root.id:
            continue
        # Equal keys keep the sibling first, so it counts as older
        if compare_by_age(sibling, root) <= 0:
            older.append(sibling)
        else:
            younger.append(sibling)
    return sort_people_by_age(older), sort_people_by_age(younger)


def relationship_to_root(
    root: Person, target: Person, members: dict[str, Person]
) -> tuple[str, str]:
    """(label, category) describing target from root's point of view."""
    if target.id == root.id:
        return "Self", "root"
    if target.id == root.father_id:
        return "Father", "parent"
    if target.id == root.mother_id:
        return "Mother", "parent"
    if target.id in root.child_ids:
        label = {GENDER_MALE: "Son", GENDER_FEMALE: "Daughter"}.get(target.gender, "Child")
        return label, "child"
    if target.id in root.spouse_ids or target.id in root.divorced_spouse_ids:
        return "Spouse", "spouse"
    if any(s.id == target.id for s in find_siblings_of(root, members)):
        label = {GENDER_MALE: "Brother", GENDER_FEMALE: "Sister"}.get(target.gender, "Sibling")
        return label, "sibling"
    return "Relative", "other"


def _visible_members(people: list[Person]) -> dict[str, Person]:
    """Index people by id, leaving out alternate profiles (the self profile always stays)."""
    return {p.id: p for p in people if p.is_self or not p.is_alternate_profile}


# ============== LAYOUT ==============


class _LayoutBuilder:
    def __init__(self, root: Person):
        self.root = root
        self.nodes: dict[str, LayoutNode] = {}
        self.edges: dict[str, LayoutEdge] = {}

    def add_node(self, person: Person, x: float, y: float, label: str, category: str, **extra):
        node = LayoutNode(
            id=person.id,
            name=person.name or "Unknown",
            relationship=label,
            category=category,
            x=x,
            y=y,
            gender=person.gender or "Other",
            dob=person.dob,
            is_deceased=bool(person.is_deceased),
            is_root=person.id == self.root.id,
            **extra,
        )
        self.nodes[person.id] = node
        return node

    def add_parent_child_edge(self, parent_id: str, child_id: str) -> None:
        edge_id = f"e-{parent_id}-{child_id}-pc"
        if parent_id in self.nodes and child_id in self.nodes and edge_id not in self.edges:
            self.edges[edge_id] = LayoutEdge(edge_id, parent_id, child_id, "parent-child")

    def add_spouse_edge(self, a: str, b: str) -> None:
        edge_id = "e-spouse-" + "-".join(sorted((a, b)))
        if a in self.nodes and b in self.nodes and edge_id not in self.edges:
            self.edges[edge_id] = LayoutEdge(edge_id, a, b, "spouse")

    def result(self) -> TreeLayout:
        return TreeLayout(
            root_id=self.root.id, nodes=list(self.nodes.values()), edges=list(self.edges.values())
        )


def derive_tree_layout(root_id: str, people: list[Person]) -> TreeLayout:
    """Position the root's immediate family for rendering.

    Coordinates are node centres; the root sits at y=0 with parents one
    generation gap above and children one below.

    Raises:
        NotFoundError: root_id is not among the visible people.
    """
    members = _visible_members(people)
    root = members.get(root_id)
    if root is None:
        raise NotFoundError(f"Root person {root_id} not found", record_id=root_id)

    builder = _LayoutBuilder(root)
    root_y = 0
    parent_y = root_y - VERTICAL_GENERATION_GAP
    children_y = root_y + VERTICAL_GENERATION_GAP

    ever_spouses = sort_spouses_by_order(
        [members[s] for s in root.ever_spouse_ids() if s in members], partner=root
    )
    spouse_order = {spouse.id: order for order, spouse in enumerate(ever_spouses)}
    older, younger = separate_siblings(root, find_siblings_of(root, members))

    # Main line: older siblings, root, spouses, younger siblings
    line = [*older, root, *ever_spouses, *younger]
    total_width = len(line) * NODE_WIDTH + (len(line) - 1) * MAIN_LINE_HORIZONTAL_GAP
    x = -total_width / 2 + NODE_WIDTH / 2
    for person in line:
        label, category = relationship_to_root(root, person, members)
        extra = {}
        if person.id == root.id:
            category = "root"
        elif person.id in spouse_order:
            category = "spouse"
            extra = {
                "spouse_order": spouse_order[person.id],
                "group_index": color_index(spouse_order[person.id]),
                "is_divorced_from_root": person.id in root.divorced_spouse_ids,
            }
        builder.add_node(person, x, root_y, label, category, **extra)
        x += NODE_WIDTH + MAIN_LINE_HORIZONTAL_GAP

    root_x = builder.nodes[root.id].x

    # Divorced spouses stay on the line but get no spouse edge
    for spouse_id in root.spouse_ids:
        builder.add_spouse_edge(root.id, spouse_id)

    father, mother = _parents_of(root, members)
    if father and mother:
        offset = (NODE_WIDTH + MAIN_LINE_HORIZONTAL_GAP) / 2
        builder.add_node(father, root_x - offset, parent_y, "Father", "parent")
        builder.add_node(mother, root_x + offset, parent_y, "Mother", "parent")
        if mother.id in father.spouse_ids:
            builder.add_spouse_edge(father.id, mother.id)
    elif father:
        builder.add_node(father, root_x, parent_y, "Father", "parent")
    elif mother:
        builder.add_node(mother, root_x, parent_y, "Mother", "parent")

    for parent in (father, mother):
        if parent:
            builder.add_parent_child_edge(parent.id, root.id)

    for person in line:
        if person.id == root.id or person.id in spouse_order:
            continue
        if father and person.father_id == father.id:
            builder.add_parent_child_edge(father.id, person.id)
        if mother and person.mother_id == mother.id:
            builder.add_parent_child_edge(mother.id, person.id)

    _place_children(builder, members, spouse_order, root_x, children_y)

    logger.debug(
        "Layout for %s: %d nodes, %d edges", root.id, len(builder.nodes), len(builder.edges)
    )
    return builder.result()


def _co_parent_id(child: Person, parent_id: str) -> str | None:
    return child.mother_id if child.father_id == parent_id else child.father_id


def _place_children(
    builder: _LayoutBuilder,
    members: dict[str, Person],
    spouse_order: dict[str, int],
    root_x: float,
    children_y: float,
) -> None:
    root = builder.root
    children = [members[c] for c in root.child_ids if c in members]

    groups: dict[int, list[Person]] = {NO_SPOUSE_GROUP: []}
    for order in spouse_order.values():
        groups[order] = []
    for child in children:
        co_parent = _co_parent_id(child, root.id)
        key = spouse_order.get(co_parent, NO_SPOUSE_GROUP) if co_parent else NO_SPOUSE_GROUP
        groups.setdefault(key, []).append(child)

    keys = sorted(groups)
    total_width = 0.0
    for index, key in enumerate(keys):
        group = groups[key]
        if not group:
            continue
        total_width += len(group) * NODE_WIDTH + (len(group) - 1) * CHILD_INTRA_GROUP_HORIZONTAL_GAP
        # A gap follows every non-empty group that is not last, even when only
        # empty groups come after it
        if index < len(keys) - 1:
            total_width += CHILD_INTER_GROUP_HORIZONTAL_GAP

    x = root_x - total_width / 2 + NODE_WIDTH / 2
    for key in keys:
        group = sort_people_by_age(groups[key])
        if not group:
            continue
        group_x = x
        parent_order = None if key == NO_SPOUSE_GROUP else key
        for child in group:
            label, _ = relationship_to_root(root, child, members)
            builder.add_node(
                child,
                group_x,
                children_y,
                label,
                "child",
                parent_spouse_order=parent_order,
                group_index=color_index(parent_order),
            )
            if root.id in (child.father_id, child.mother_id):
                builder.add_parent_child_edge(root.id, child.id)
            co_parent = _co_parent_id(child, root.id)
            if co_parent and co_parent in spouse_order:
                builder.add_parent_child_edge(co_parent, child.id)
            group_x += NODE_WIDTH + CHILD_INTRA_GROUP_HORIZONTAL_GAP
        x = group_x - CHILD_INTRA_GROUP_HORIZONTAL_GAP + CHILD_INTER_GROUP_HORIZONTAL_GAP


# ============== NAVIGATION ==============


def select_node(current_root_id: str, node_id: str) -> dict:
    """Click semantics: another node re-roots the view, the current root adds a relative."""
    if node_id != current_root_id:
        return {"action": "reroot", "root_id": node_id}
    return {"action": "add_relative", "anchor_id": node_id}


class TreeNavigator:
    """Tracks the current root and the back-navigation history for one tree view."""

    def __init__(self, main_root_id: str):
        self.main_root_id = main_root_id
        self.current_root_id = main_root_id
        self.history: list[str] = []

    def select(self, node_id: str) -> dict:
        action = select_node(self.current_root_id, node_id)
        if action["action"] == "reroot":
            self.history.append(self.current_root_id)
            self.current_root_id = node_id
        return action

    def go_back(self) -> str:
        if self.history:
            self.current_root_id = self.history.pop()
        return self.current_root_id

    def return_to_main(self) -> str:
        self.current_root_id = self.main_root_id
        self.history.clear()
        return self.current_root_id

    def forget(self, person_id: str) -> None:
        """Drop a deleted person from the navigation state."""
        if self.current_root_id == person_id:
            self.return_to_main()
        else:
            self.history = [h for h in self.history if h != person_id]


# ============== DESCENDANTS ==============


def build_descendant_tree(root_id: str, people: list[Person]) -> dict | None:
    """Nested tree of root's descendants, linked through child records' parent ids.

    Each child carries the order of its co-parent among the parent's spouses
    (spouse_group_index) and the matching color_index. None if root is missing.
    """
    members = _visible_members(people)
    if root_id not in members:
        logger.warning("Root %s not found for descendant tree", root_id)
        return None

    children_of: dict[str, list[str]] = {pid: [] for pid in members}
    for person in members.values():
        for parent_id in (person.father_id, person.mother_id):
            if parent_id in children_of and person.id not in children_of[parent_id]:
                children_of[parent_id].append(person.id)

    level = {root_id: 0}
    group_index: dict[str, int] = {}
    queue = deque([root_id])
    while queue:
        current = members[queue.popleft()]
        spouses = sort_spouses_by_order(
            [members[s] for s in current.ever_spouse_ids() if s in members], partner=current
        )
        order = {s.id: i for i, s in enumerate(spouses)}
        for child_id in children_of[current.id]:
            if child_id in level:
                continue
            level[child_id] = level[current.id] + 1
            co_parent = _co_parent_id(members[child_id], current.id)
            if co_parent in order:
                group_index[child_id] = order[co_parent]
            queue.append(child_id)

    def render(person_id: str, ancestors: frozenset[str]) -> dict:
        person = members[person_id]
        return {
            **person.to_summary(),
            "generation_level": level.get(person_id),
            "spouse_group_index": group_index.get(person_id),
            "color_index": color_index(group_index.get(person_id)),
            "children": [
                render(child_id, ancestors | {person_id})
                for child_id in children_of[person_id]
                if child_id not in ancestors and child_id != person_id
            ],
        }

    return render(root_id, frozenset())
