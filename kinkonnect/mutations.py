"""Relationship graph mutations.

Every operation reads the owner's tree, stages all edge changes (both sides of
each bidirectional edge) into a single WriteBatch, and commits it once. A
missing anchor, member or co-parent aborts before anything is written.
"""

import logging

from .constants import (
    ADD_RELATIONSHIPS,
    EDITABLE_FIELDS,
    GENDER_FEMALE,
    GENDER_MALE,
    GENDER_OTHER,
    KIND_FAMILY_MEMBER,
    KIND_SELF,
    NULLABLE_TEXT_FIELDS,
    REL_BROTHER,
    REL_FATHER,
    REL_MOTHER,
    REL_SISTER,
    REL_SPOUSE,
)
from .errors import InvalidArgumentError, NotFoundError
from .models import Person
from .store import DELETE_FIELD, RecordStore, WriteBatch, array_remove, array_union
from .telemetry import get_tracer

logger = logging.getLogger(__name__)

PROFILE_FIELDS = EDITABLE_FIELDS | {"email"}


class _Tree:
    """Snapshot of one owner's records, indexed by id."""

    def __init__(self, owner_id: str, people: list[Person]):
        self.owner_id = owner_id
        self.by_id = {p.id: p for p in people}

    @classmethod
    async def load(cls, store: RecordStore, owner_id: str) -> "_Tree":
        return cls(owner_id, await store.get_tree(owner_id))

    def get(self, person_id: str | None) -> Person | None:
        return self.by_id.get(person_id) if person_id else None

    def require(self, person_id: str | None, role: str) -> Person:
        person = self.get(person_id)
        if person is None:
            raise NotFoundError(f"{role} {person_id} not found.", record_id=person_id)
        return person

    def existing(self, ids: list[str], skip: tuple = ()) -> list[Person]:
        """Records for ids, skipping dangling references with a warning."""
        found = []
        for person_id in ids:
            if not person_id or person_id in skip:
                continue
            person = self.by_id.get(person_id)
            if person is None:
                logger.warning("Skipping missing related record %s in %s", person_id, self.owner_id)
                continue
            found.append(person)
        return found


def _clean_fields(fields: dict, allowed: frozenset[str]) -> dict:
    unknown = set(fields) - allowed
    if unknown:
        raise InvalidArgumentError(f"Fields cannot be edited directly: {', '.join(sorted(unknown))}")
    cleaned = dict(fields)
    for name in NULLABLE_TEXT_FIELDS:
        if cleaned.get(name) == "":
            cleaned[name] = None
    if "sibling_order_index" in cleaned:
        order = cleaned["sibling_order_index"]
        try:
            cleaned["sibling_order_index"] = None if order in (None, "") else int(order)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(
                f"sibling_order_index must be an integer, got {order!r}"
            ) from e
    return cleaned


def _gender(person: Person | None) -> str | None:
    return person.gender if person else None


# ============== ADD ==============


async def add_family_member(
    store: RecordStore,
    owner_id: str,
    member_data: dict,
    anchor_id: str,
    relationship: str,
    co_parent_id: str | None = None,
) -> Person:
    """Add a relative of anchor_id and link every affected edge in one batch.

    relationship names what the new person is to the anchor: Father, Mother,
    Spouse, Brother, Sister, Son or Daughter. co_parent_id picks the other
    parent for a Son/Daughter when the anchor has several spouses.

    Returns the stored record of the new person.
    """
    if relationship not in ADD_RELATIONSHIPS:
        raise InvalidArgumentError(
            f"Unknown relationship '{relationship}'. Expected one of: {', '.join(ADD_RELATIONSHIPS)}"
        )
    data = _clean_fields(member_data, EDITABLE_FIELDS)
    if not (data.get("name") or "").strip():
        raise InvalidArgumentError("A name is required for a new family member.")

    tree = await _Tree.load(store, owner_id)
    anchor = tree.require(anchor_id, "Anchor member")

    new = Person(id=store.new_id(), owner_id=owner_id, kind=KIND_FAMILY_MEMBER)
    for name, value in data.items():
        setattr(new, name, value)
    new.gender = new.gender or GENDER_OTHER
    new.is_alternate_profile = False
    new.is_public = True
    if relationship != REL_SPOUSE:
        new.anniversary_date = None

    batch = store.batch()
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("mutation.add_member") as span:
        span.set_attribute("mutation.relationship", relationship)
        if relationship in (REL_FATHER, REL_MOTHER):
            _link_new_parent(tree, batch, anchor, new, relationship)
        elif relationship == REL_SPOUSE:
            _link_new_spouse(tree, batch, anchor, new)
        elif relationship in (REL_BROTHER, REL_SISTER):
            _link_new_sibling(tree, batch, anchor, new)
        else:
            _link_new_child(tree, batch, anchor, new, co_parent_id)

        new.spouse_ids = list(dict.fromkeys(new.spouse_ids))
        new.child_ids = list(dict.fromkeys(new.child_ids))
        new.sibling_ids = list(dict.fromkeys(new.sibling_ids))
        batch.set(new)
        await store.commit(batch)

    logger.info(
        "Added %s %s to %s (anchor %s) with %d writes",
        relationship,
        new.id,
        owner_id,
        anchor.id,
        len(batch),
    )
    return await store.get_person(owner_id, new.id)


def _link_new_parent(tree: _Tree, batch: WriteBatch, anchor: Person, new: Person, role: str):
    slot, other_slot = ("father_id", "mother_id") if role == REL_FATHER else ("mother_id", "father_id")
    if getattr(anchor, slot):
        raise InvalidArgumentError(
            f"{anchor.display_name()} already has a {role.lower()}; edit or delete it first."
        )

    new.child_ids.append(anchor.id)
    batch.update(tree.owner_id, anchor.id, {slot: new.id})

    # The existing other parent marries into the new one
    other_parent = tree.get(getattr(anchor, other_slot))
    if other_parent is not None:
        if new.id not in other_parent.spouse_ids:
            batch.update(tree.owner_id, other_parent.id, {"spouse_ids": array_union(new.id)})
        new.spouse_ids.append(other_parent.id)
    elif getattr(anchor, other_slot):
        logger.warning("Anchor %s references missing %s", anchor.id, other_slot)

    for sibling in tree.existing(anchor.sibling_ids, skip=(anchor.id,)):
        previous = getattr(sibling, slot)
        if previous and previous != new.id and tree.get(previous):
            batch.update(tree.owner_id, previous, {"child_ids": array_remove(sibling.id)})
        batch.update(tree.owner_id, sibling.id, {slot: new.id})
        new.child_ids.append(sibling.id)


def _link_new_spouse(tree: _Tree, batch: WriteBatch, anchor: Person, new: Person):
    new.spouse_ids.append(anchor.id)
    anchor_fields: dict = {"spouse_ids": array_union(new.id)}
    if new.anniversary_date:
        new.anniversary_dates[anchor.id] = new.anniversary_date
        anchor_fields[f"anniversary_dates.{new.id}"] = new.anniversary_date
    batch.update(tree.owner_id, anchor.id, anchor_fields)

    # Children the anchor already has get the new spouse in their empty parent slot
    for child in tree.existing(anchor.child_ids):
        slot = _retroactive_slot(anchor, child, new.gender)
        if slot:
            batch.update(tree.owner_id, child.id, {slot: new.id})
            new.child_ids.append(child.id)


def _retroactive_slot(anchor: Person, child: Person, spouse_gender: str) -> str | None:
    anchor_is_father = child.father_id == anchor.id and not child.mother_id
    anchor_is_mother = child.mother_id == anchor.id and not child.father_id
    if anchor.gender == GENDER_MALE:
        return "mother_id" if anchor_is_father and spouse_gender == GENDER_FEMALE else None
    if anchor.gender == GENDER_FEMALE:
        return "father_id" if anchor_is_mother and spouse_gender == GENDER_MALE else None
    if anchor_is_father and spouse_gender == GENDER_FEMALE:
        return "mother_id"
    if anchor_is_mother and spouse_gender == GENDER_MALE:
        return "father_id"
    return None


def _link_new_sibling(tree: _Tree, batch: WriteBatch, anchor: Person, new: Person):
    new.father_id = anchor.father_id
    new.mother_id = anchor.mother_id
    new.sibling_ids.append(anchor.id)
    batch.update(tree.owner_id, anchor.id, {"sibling_ids": array_union(new.id)})

    for sibling in tree.existing(anchor.sibling_ids, skip=(anchor.id,)):
        batch.update(tree.owner_id, sibling.id, {"sibling_ids": array_union(new.id)})
        new.sibling_ids.append(sibling.id)

    for parent in tree.existing([anchor.father_id, anchor.mother_id]):
        batch.update(tree.owner_id, parent.id, {"child_ids": array_union(new.id)})


def _link_new_child(
    tree: _Tree, batch: WriteBatch, anchor: Person, new: Person, co_parent_id: str | None
):
    co_parent = None
    if co_parent_id:
        co_parent = tree.require(co_parent_id, "Co-parent")
    elif len(anchor.spouse_ids) == 1:
        co_parent = tree.get(anchor.spouse_ids[0])
    elif len(anchor.spouse_ids) > 1:
        raise InvalidArgumentError(
            f"{anchor.display_name()} has more than one spouse; choose the child's other parent."
        )

    father_id, mother_id = _resolve_parent_slots(anchor, co_parent)
    new.father_id, new.mother_id = father_id, mother_id

    batch.update(tree.owner_id, anchor.id, {"child_ids": array_union(new.id)})
    if co_parent is not None and co_parent.id in (father_id, mother_id):
        batch.update(tree.owner_id, co_parent.id, {"child_ids": array_union(new.id)})

    # Anyone already sharing both parents becomes a sibling
    if father_id and mother_id:
        for person in tree.by_id.values():
            if person.father_id == father_id and person.mother_id == mother_id:
                batch.update(tree.owner_id, person.id, {"sibling_ids": array_union(new.id)})
                new.sibling_ids.append(person.id)


def _resolve_parent_slots(anchor: Person, co_parent: Person | None) -> tuple[str | None, str | None]:
    """(father_id, mother_id) for a child of anchor and co_parent."""
    co_gender = _gender(co_parent)
    if anchor.gender == GENDER_MALE:
        return anchor.id, co_parent.id if co_gender == GENDER_FEMALE else None
    if anchor.gender == GENDER_FEMALE:
        return co_parent.id if co_gender == GENDER_MALE else None, anchor.id
    if co_parent is None:
        return anchor.id, None
    if co_gender == GENDER_MALE:
        return co_parent.id, anchor.id
    return anchor.id, co_parent.id


# ============== EDIT ==============


async def update_family_member(
    store: RecordStore,
    owner_id: str,
    member_id: str,
    fields: dict | None = None,
    divorce_selections: dict[str, bool] | None = None,
) -> Person:
    """Apply plain field edits and divorce toggles to one person.

    divorce_selections maps an ever-spouse id to True (divorced) or False
    (married). Spouses left out, or whose state already matches, are untouched.
    Each real toggle moves the id between spouse_ids and divorced_spouse_ids on
    both records.
    """
    cleaned = _clean_fields(fields or {}, EDITABLE_FIELDS)
    tree = await _Tree.load(store, owner_id)
    member = tree.require(member_id, "Member to edit")

    batch = store.batch()
    if cleaned:
        batch.update(owner_id, member.id, cleaned)

    ever_spouses = member.ever_spouse_ids()
    unknown = set(divorce_selections or {}) - set(ever_spouses)
    if unknown:
        raise InvalidArgumentError(
            f"Not a current or former spouse of {member.display_name()}: {', '.join(sorted(unknown))}"
        )

    toggles = 0
    for spouse_id in ever_spouses:
        selection = (divorce_selections or {}).get(spouse_id)
        if selection is None:
            continue
        was_divorced = spouse_id in member.divorced_spouse_ids
        if bool(selection) == was_divorced:
            continue
        tree.require(spouse_id, "Spouse")
        if selection:
            _move_spouse(batch, owner_id, member.id, spouse_id, "spouse_ids", "divorced_spouse_ids")
        else:
            _move_spouse(batch, owner_id, member.id, spouse_id, "divorced_spouse_ids", "spouse_ids")
        toggles += 1

    if len(batch):
        with get_tracer(__name__).start_as_current_span("mutation.update_member"):
            await store.commit(batch)
    logger.info(
        "Updated %s in %s: %d fields, %d spouse toggles", member.id, owner_id, len(cleaned), toggles
    )
    return await store.get_person(owner_id, member.id)


def _move_spouse(batch: WriteBatch, owner_id: str, a: str, b: str, source: str, target: str):
    batch.update(owner_id, a, {source: array_remove(b), target: array_union(b)})
    batch.update(owner_id, b, {source: array_remove(a), target: array_union(a)})


async def set_anniversary_date(
    store: RecordStore, owner_id: str, person_id: str, spouse_id: str, anniversary: str | None
) -> None:
    """Record (or clear) the anniversary of one marriage on both spouses."""
    tree = await _Tree.load(store, owner_id)
    person = tree.require(person_id, "Person")
    tree.require(spouse_id, "Spouse")
    if spouse_id not in person.ever_spouse_ids():
        raise InvalidArgumentError(f"{spouse_id} is not a spouse of {person.display_name()}.")

    value = anniversary or DELETE_FIELD
    batch = store.batch()
    batch.update(owner_id, person_id, {f"anniversary_dates.{spouse_id}": value})
    batch.update(owner_id, spouse_id, {f"anniversary_dates.{person_id}": value})
    await store.commit(batch)


# ============== DELETE ==============


async def delete_family_member(
    store: RecordStore, owner_id: str, member_id: str, include_divorced: bool = False
) -> None:
    """Delete a family member and unlink every record that points at it.

    Parents lose the id from child_ids, current spouses from spouse_ids and
    anniversary_dates, siblings from sibling_ids, and children have the
    matching parent slot set to None. Former spouses keep their entries unless
    include_divorced is set. The record itself is deleted last, in the same batch.
    """
    tree = await _Tree.load(store, owner_id)
    member = tree.require(member_id, "Family member")
    if member.kind == KIND_SELF:
        raise InvalidArgumentError("The self profile cannot be deleted as a family member.")

    batch = store.batch()
    for parent in tree.existing([member.father_id, member.mother_id]):
        batch.update(owner_id, parent.id, {"child_ids": array_remove(member.id)})
    for spouse in tree.existing(member.spouse_ids):
        batch.update(
            owner_id,
            spouse.id,
            {"spouse_ids": array_remove(member.id), f"anniversary_dates.{member.id}": DELETE_FIELD},
        )
    if include_divorced:
        for spouse in tree.existing(member.divorced_spouse_ids):
            batch.update(
                owner_id,
                spouse.id,
                {
                    "divorced_spouse_ids": array_remove(member.id),
                    f"anniversary_dates.{member.id}": DELETE_FIELD,
                },
            )
    for child in tree.existing(member.child_ids):
        unlink = {}
        if child.father_id == member.id:
            unlink["father_id"] = None
        if child.mother_id == member.id:
            unlink["mother_id"] = None
        if unlink:
            batch.update(owner_id, child.id, unlink)
    for sibling in tree.existing(member.sibling_ids):
        batch.update(owner_id, sibling.id, {"sibling_ids": array_remove(member.id)})
    batch.delete(owner_id, member.id)

    with get_tracer(__name__).start_as_current_span("mutation.delete_member"):
        await store.commit(batch)
    logger.info("Deleted %s from %s with %d writes", member.id, owner_id, len(batch))


# ============== PROFILE ==============


async def link_parent_to_profile(
    store: RecordStore, owner_id: str, parent_member_id: str | None, parent_type: str
) -> Person:
    """Point the self profile's father or mother at an existing member, or clear it.

    The old parent loses the profile from child_ids, the new parent gains it and
    the profile's siblings, and the two parents are married when both are known.
    """
    if parent_type not in (REL_FATHER, REL_MOTHER):
        raise InvalidArgumentError("parent_type must be 'Father' or 'Mother'.")
    slot = "father_id" if parent_type == REL_FATHER else "mother_id"

    tree = await _Tree.load(store, owner_id)
    profile = tree.require(owner_id, "Profile")
    new_parent = tree.require(parent_member_id, parent_type) if parent_member_id else None

    batch = store.batch()
    batch.update(owner_id, owner_id, {slot: parent_member_id})

    old_parent_id = getattr(profile, slot)
    if old_parent_id and old_parent_id != parent_member_id and tree.get(old_parent_id):
        batch.update(owner_id, old_parent_id, {"child_ids": array_remove(owner_id)})

    if new_parent is not None:
        batch.update(owner_id, new_parent.id, {"child_ids": array_union(owner_id)})

        father_id = new_parent.id if slot == "father_id" else profile.father_id
        mother_id = new_parent.id if slot == "mother_id" else profile.mother_id
        father, mother = tree.get(father_id), tree.get(mother_id)
        if father and mother and father.id != mother.id:
            if mother.id not in father.spouse_ids:
                batch.update(owner_id, father.id, {"spouse_ids": array_union(mother.id)})
            if father.id not in mother.spouse_ids:
                batch.update(owner_id, mother.id, {"spouse_ids": array_union(father.id)})

        for sibling in tree.existing(profile.sibling_ids, skip=(owner_id, new_parent.id)):
            if getattr(sibling, slot) != new_parent.id:
                batch.update(owner_id, sibling.id, {slot: new_parent.id})
            batch.update(owner_id, new_parent.id, {"child_ids": array_union(sibling.id)})

    await store.commit(batch)
    logger.info("Linked %s of %s to %s", parent_type, owner_id, parent_member_id)
    return await store.get_profile(owner_id)


async def update_user_profile(store: RecordStore, user_id: str, fields: dict) -> Person:
    """Update the self profile, creating it on first save."""
    cleaned = _clean_fields(fields, PROFILE_FIELDS)
    profile = await store.get_profile(user_id)
    if profile is None:
        profile = Person(id=user_id, owner_id=user_id, kind=KIND_SELF)
        for name, value in cleaned.items():
            setattr(profile, name, value)
        if cleaned.get("is_public") is None:
            profile.is_public = True
        profile.gender = profile.gender or GENDER_OTHER
        logger.info("Creating profile for %s", user_id)
        return await store.create_profile(profile)

    if cleaned:
        await store.commit(store.batch().update(user_id, user_id, cleaned))
    return await store.get_profile(user_id)


async def delete_user_account(store: RecordStore, user_id: str) -> int:
    """Delete a user's whole tree and strip every reference to it elsewhere.

    Konnections and konnect requests in both directions go too. Returns the
    number of staged writes.
    """
    owned = await store.get_tree(user_id)
    if not owned:
        raise NotFoundError(f"User {user_id} not found.", record_id=user_id)
    owned_ids = {p.id for p in owned} | {user_id}

    batch = store.batch()
    for person in owned:
        if person.id != user_id:
            batch.delete(user_id, person.id)

    for person in await store.find_people_referencing(owned_ids):
        if person.owner_id == user_id:
            continue
        unlink: dict = {}
        if person.father_id in owned_ids:
            unlink["father_id"] = None
        if person.mother_id in owned_ids:
            unlink["mother_id"] = None
        for name in ("spouse_ids", "divorced_spouse_ids", "child_ids", "sibling_ids"):
            values = getattr(person, name)
            if any(v in owned_ids for v in values):
                unlink[name] = [v for v in values if v not in owned_ids]
        if any(k in owned_ids for k in person.anniversary_dates):
            unlink["anniversary_dates"] = {
                k: v for k, v in person.anniversary_dates.items() if k not in owned_ids
            }
        if unlink:
            batch.update(person.owner_id, person.id, unlink)

    for request in await store.get_konnect_requests(user_id):
        batch.delete_request(user_id, request["id"])
    for konnection in await store.get_konnections(user_id):
        batch.delete_konnection(user_id, konnection["id"])
    for recipient_id in await store.find_requests_sent_by(user_id):
        batch.delete_request(recipient_id, user_id)
    for owner_id in await store.find_konnections_to(user_id):
        batch.delete_konnection(owner_id, user_id)

    batch.delete(user_id, user_id)

    with get_tracer(__name__).start_as_current_span("mutation.delete_account"):
        await store.commit(batch)
    logger.info("Deleted account %s (%d records, %d writes)", user_id, len(owned), len(batch))
    return len(batch)
