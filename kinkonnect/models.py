"""Data models for person records, match results and graph outputs."""

from dataclasses import dataclass, field, fields

from .constants import GENDER_OTHER, KIND_FAMILY_MEMBER, KIND_SELF

PERSON_FIELDS: frozenset[str] = frozenset()  # filled in below the class


@dataclass
class Person:
    """A self profile or a family member; both share one shape.

    Graph edges reference other records of the same owner by id.
    """

    id: str
    owner_id: str
    kind: str = KIND_FAMILY_MEMBER
    name: str = ""
    alias_name: str | None = None
    email: str | None = None
    dob: str | None = None  # ISO date, "N/A", or None when not entered
    gender: str = GENDER_OTHER
    is_deceased: bool = False
    deceased_date: str | None = None
    anniversary_date: str | None = None
    anniversary_dates: dict[str, str] = field(default_factory=dict)  # spouse id -> date
    father_id: str | None = None
    mother_id: str | None = None
    spouse_ids: list[str] = field(default_factory=list)
    divorced_spouse_ids: list[str] = field(default_factory=list)
    child_ids: list[str] = field(default_factory=list)
    sibling_ids: list[str] = field(default_factory=list)
    sibling_order_index: int | None = None
    native_place: str | None = None
    current_place: str | None = None
    religion: str | None = None
    caste: str | None = None
    stories: str | None = None
    relationship: str | None = None  # free-text relation to the tree owner
    is_alternate_profile: bool = False
    is_public: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_self(self) -> bool:
        return self.kind == KIND_SELF

    def display_name(self) -> str:
        return self.name or "Unnamed"

    def ever_spouse_ids(self) -> list[str]:
        """Current then former spouses, without duplicates."""
        return list(dict.fromkeys([*self.spouse_ids, *self.divorced_spouse_ids]))

    def to_dict(self) -> dict:
        return {f.name: _copy_value(getattr(self, f.name)) for f in fields(self)}

    def to_summary(self) -> dict:
        """Short summary for list views."""
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "dob": self.dob,
            "is_deceased": self.is_deceased,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Person":
        """Build a Person from a loosely-typed record, filling defaults."""
        order = data.get("sibling_order_index")
        return cls(
            id=data["id"],
            owner_id=data.get("owner_id") or data["id"],
            kind=data.get("kind") or KIND_FAMILY_MEMBER,
            name=data.get("name") or "",
            alias_name=data.get("alias_name") or None,
            email=data.get("email") or None,
            dob=data.get("dob") or None,
            gender=data.get("gender") or GENDER_OTHER,
            is_deceased=bool(data.get("is_deceased")),
            deceased_date=data.get("deceased_date") or None,
            anniversary_date=data.get("anniversary_date") or None,
            anniversary_dates=dict(data.get("anniversary_dates") or {}),
            father_id=data.get("father_id") or None,
            mother_id=data.get("mother_id") or None,
            spouse_ids=list(data.get("spouse_ids") or []),
            divorced_spouse_ids=list(data.get("divorced_spouse_ids") or []),
            child_ids=list(data.get("child_ids") or []),
            sibling_ids=list(data.get("sibling_ids") or []),
            sibling_order_index=_order_or_none(order),
            native_place=data.get("native_place") or None,
            current_place=data.get("current_place") or None,
            religion=data.get("religion") or None,
            caste=data.get("caste") or None,
            stories=data.get("stories") or None,
            relationship=data.get("relationship") or None,
            is_alternate_profile=bool(data.get("is_alternate_profile")),
            is_public=data.get("is_public") is not False,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


PERSON_FIELDS = frozenset(f.name for f in fields(Person))


def _order_or_none(order):
    # Stored records may carry junk here; treat it as unset.
    if order is None or order == "":
        return None
    try:
        return int(order)
    except (TypeError, ValueError):
        return None


def _copy_value(value):
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


@dataclass
class ComparablePerson:
    """Normalized projection of a Person, used only for matching."""

    id: str
    name: str  # lowercased first token of the original name
    original: Person
    alias_name: str | None = None
    dob: str | None = None
    is_deceased: bool = False
    native_place: str | None = None
    current_place: str | None = None
    religion: str | None = None
    caste: str | None = None
    relationship_to_owner: str | None = None
    gender: str | None = None
    is_alternate_profile: bool = False


@dataclass
class PairMatch:
    person1: ComparablePerson
    person2: ComparablePerson
    pair_score: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class TreeMatch:
    is_similar: bool
    score: float
    contributing_pairs: list[PairMatch] = field(default_factory=list)


@dataclass
class MatchedMemberInfo:
    id: str
    name: str
    alias_name: str | None = None
    dob: str | None = None
    gender: str | None = None
    relationship_to_their_owner: str | None = None
    is_deceased: bool = False
    native_place: str | None = None
    current_place: str | None = None
    religion: str | None = None
    caste: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "aliasName": self.alias_name,
            "dob": self.dob,
            "gender": self.gender,
            "relationshipToTheirOwner": self.relationship_to_their_owner,
            "isDeceased": self.is_deceased,
            "nativePlace": self.native_place,
            "currentPlace": self.current_place,
            "religion": self.religion,
            "caste": self.caste,
        }


@dataclass
class MatchedIndividualPair:
    person1_id: str
    person1_name: str
    person1_details: str
    person2_id: str
    person2_name: str
    person2_details: str
    pair_score: float
    match_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "person1Id": self.person1_id,
            "person1Name": self.person1_name,
            "person1Details": self.person1_details,
            "person2Id": self.person2_id,
            "person2Name": self.person2_name,
            "person2Details": self.person2_details,
            "pairScore": self.pair_score,
            "matchReasons": list(self.match_reasons),
        }


@dataclass
class MatchedTreeResult:
    matched_user_id: str
    matched_user_name: str
    score: float
    total_members_in_tree: int
    detailed_contributing_pairs: list[MatchedIndividualPair] = field(default_factory=list)
    my_matched_persons: list[MatchedMemberInfo] = field(default_factory=list)
    other_matched_persons: list[MatchedMemberInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "matchedUserId": self.matched_user_id,
            "matchedUserName": self.matched_user_name,
            "score": self.score,
            "totalMembersInTree": self.total_members_in_tree,
            "detailedContributingPairs": [p.to_dict() for p in self.detailed_contributing_pairs],
            "myMatchedPersons": [p.to_dict() for p in self.my_matched_persons],
            "otherMatchedPersons": [p.to_dict() for p in self.other_matched_persons],
        }


@dataclass
class PathStep:
    person_id: str
    person_name: str
    connection_to_previous: str
    generation_relative_to_start: int
    gender: str | None = None

    def to_dict(self) -> dict:
        return {
            "personId": self.person_id,
            "personName": self.person_name,
            "connectionToPrevious": self.connection_to_previous,
            "generationRelativeToStart": self.generation_relative_to_start,
            "gender": self.gender,
        }


@dataclass
class PathResult:
    path: list[PathStep] = field(default_factory=list)
    path_found: bool = False
    generation_gap: int | None = None

    def to_dict(self) -> dict:
        return {
            "path": [step.to_dict() for step in self.path],
            "pathFound": self.path_found,
            "generationGap": self.generation_gap,
        }


@dataclass
class LayoutNode:
    id: str
    name: str
    relationship: str
    category: str  # root | parent | sibling | spouse | child | other
    x: float
    y: float
    gender: str | None = None
    dob: str | None = None
    is_deceased: bool = False
    is_root: bool = False
    is_divorced_from_root: bool | None = None
    spouse_order: int | None = None
    parent_spouse_order: int | None = None
    group_index: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "relationship": self.relationship,
            "category": self.category,
            "x": self.x,
            "y": self.y,
            "gender": self.gender,
            "dob": self.dob,
            "is_deceased": self.is_deceased,
            "is_root": self.is_root,
            "is_divorced_from_root": self.is_divorced_from_root,
            "spouse_order": self.spouse_order,
            "parent_spouse_order": self.parent_spouse_order,
            "group_index": self.group_index,
        }


@dataclass
class LayoutEdge:
    id: str
    source: str
    target: str
    kind: str  # parent-child | spouse

    def to_dict(self) -> dict:
        return {"id": self.id, "source": self.source, "target": self.target, "kind": self.kind}


@dataclass
class TreeLayout:
    root_id: str
    nodes: list[LayoutNode] = field(default_factory=list)
    edges: list[LayoutEdge] = field(default_factory=list)

    def node(self, node_id: str) -> LayoutNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def to_dict(self) -> dict:
        return {
            "root_id": self.root_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
