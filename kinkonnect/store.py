"""Async in-memory record store with atomic batched writes.

Records are partitioned per owner: each user has one self profile (whose id is
the user id) and a collection of family members. Every multi-record change goes
through a WriteBatch, which is applied all-or-nothing by RecordStore.commit().
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from .constants import KIND_SELF
from .errors import NotFoundError, StoreError
from .helpers import now_iso
from .models import PERSON_FIELDS, Person

logger = logging.getLogger(__name__)

_EDGE_LIST_FIELDS = ("spouse_ids", "divorced_spouse_ids", "child_ids", "sibling_ids")


@dataclass(frozen=True)
class ArrayUnion:
    """Append values to a list field, skipping ones already present."""

    values: tuple


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every occurrence of the values from a list field."""

    values: tuple


def array_union(*values: str) -> ArrayUnion:
    return ArrayUnion(tuple(values))


def array_remove(*values: str) -> ArrayRemove:
    return ArrayRemove(tuple(values))


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


# Used with a dotted key ("anniversary_dates.<spouse id>") to drop a map entry
DELETE_FIELD = _DeleteField()


@dataclass
class WriteBatch:
    """Staged writes, applied together by RecordStore.commit()."""

    ops: list[tuple] = field(default_factory=list)

    def set(self, person: Person) -> "WriteBatch":
        """Create or replace a person record."""
        self.ops.append(("set", copy.deepcopy(person)))
        return self

    def update(self, owner_id: str, person_id: str, fields: dict) -> "WriteBatch":
        """Update fields of an existing record; fails the commit if it is missing."""
        self.ops.append(("update", owner_id, person_id, dict(fields)))
        return self

    def delete(self, owner_id: str, person_id: str) -> "WriteBatch":
        self.ops.append(("delete", owner_id, person_id))
        return self

    def set_konnection(self, owner_id: str, other_id: str, data: dict) -> "WriteBatch":
        self.ops.append(("set_konnection", owner_id, other_id, dict(data)))
        return self

    def delete_konnection(self, owner_id: str, other_id: str) -> "WriteBatch":
        self.ops.append(("delete_konnection", owner_id, other_id))
        return self

    def set_request(self, recipient_id: str, sender_id: str, data: dict) -> "WriteBatch":
        self.ops.append(("set_request", recipient_id, sender_id, dict(data)))
        return self

    def delete_request(self, recipient_id: str, sender_id: str) -> "WriteBatch":
        self.ops.append(("delete_request", recipient_id, sender_id))
        return self

    def __len__(self) -> int:
        return len(self.ops)


@dataclass
class _State:
    users: dict[str, Person] = field(default_factory=dict)
    family_members: dict[str, dict[str, Person]] = field(default_factory=dict)
    konnections: dict[str, dict[str, dict]] = field(default_factory=dict)
    konnect_requests: dict[str, dict[str, dict]] = field(default_factory=dict)


class RecordStore:
    """Owner-scoped person records plus konnections and konnect requests."""

    def __init__(self, path: Path | None = None):
        self.path = path
        self._state = _State()
        self._lock = asyncio.Lock()

    # ============== PERSISTENCE ==============

    def load(self) -> None:
        """Load the JSON snapshot at self.path, if there is one."""
        if self.path is None or not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            raw = json.load(f)
        state = _State()
        for uid, data in raw.get("users", {}).items():
            state.users[uid] = Person.from_dict(data)
        for uid, members in raw.get("family_members", {}).items():
            state.family_members[uid] = {
                member_id: Person.from_dict(data) for member_id, data in members.items()
            }
        state.konnections = raw.get("konnections", {})
        state.konnect_requests = raw.get("konnect_requests", {})
        self._state = state
        logger.info(
            "Loaded %d users and %d family members from %s",
            len(state.users),
            sum(len(m) for m in state.family_members.values()),
            self.path,
        )

    def _flush(self, state: _State) -> None:
        if self.path is None:
            return
        payload = {
            "users": {uid: p.to_dict() for uid, p in state.users.items()},
            "family_members": {
                uid: {mid: p.to_dict() for mid, p in members.items()}
                for uid, members in state.family_members.items()
            },
            "konnections": state.konnections,
            "konnect_requests": state.konnect_requests,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StoreError(f"Could not write snapshot {self.path}: {e}") from e

    # ============== READS ==============

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:20]

    async def get_profile(self, user_id: str) -> Person | None:
        profile = self._state.users.get(user_id)
        return copy.deepcopy(profile) if profile else None

    async def get_family_members(self, owner_id: str) -> list[Person]:
        members = self._state.family_members.get(owner_id, {})
        return [copy.deepcopy(m) for m in members.values()]

    async def get_person(self, owner_id: str, person_id: str) -> Person | None:
        """Look up a record by id; the profile's id is the owner id."""
        record = _find(self._state, owner_id, person_id)
        return copy.deepcopy(record) if record else None

    async def get_tree(self, owner_id: str) -> list[Person]:
        """The owner's profile (first, if present) followed by every family member."""
        people = await self.get_family_members(owner_id)
        profile = await self.get_profile(owner_id)
        return [profile, *people] if profile else people

    async def list_user_ids(self) -> list[str]:
        return list(self._state.users)

    async def find_people_referencing(self, ids: set[str] | list[str]) -> list[Person]:
        """Every record, in any tree, whose edges or anniversary keys mention one of ids."""
        wanted = set(ids)
        found = []
        for person in _all_people(self._state):
            if (
                person.father_id in wanted
                or person.mother_id in wanted
                or any(wanted.intersection(getattr(person, name)) for name in _EDGE_LIST_FIELDS)
                or wanted.intersection(person.anniversary_dates)
            ):
                found.append(copy.deepcopy(person))
        return found

    async def get_konnections(self, user_id: str) -> list[dict]:
        konnections = self._state.konnections.get(user_id, {})
        return [{"id": other_id, **data} for other_id, data in konnections.items()]

    async def get_konnection(self, user_id: str, other_id: str) -> dict | None:
        data = self._state.konnections.get(user_id, {}).get(other_id)
        return dict(data) if data is not None else None

    async def get_konnect_requests(self, user_id: str) -> list[dict]:
        """Pending requests received by user_id."""
        requests = self._state.konnect_requests.get(user_id, {})
        return [
            {"id": sender_id, **data}
            for sender_id, data in requests.items()
            if data.get("status", "pending") == "pending"
        ]

    async def get_konnect_request(self, recipient_id: str, sender_id: str) -> dict | None:
        data = self._state.konnect_requests.get(recipient_id, {}).get(sender_id)
        return dict(data) if data is not None else None

    async def find_requests_sent_by(self, sender_id: str) -> list[str]:
        """Recipient ids holding a request from sender_id."""
        return [
            recipient_id
            for recipient_id, requests in self._state.konnect_requests.items()
            if sender_id in requests
        ]

    async def find_konnections_to(self, user_id: str) -> list[str]:
        """Owner ids whose konnections include user_id."""
        return [
            owner_id
            for owner_id, konnections in self._state.konnections.items()
            if user_id in konnections
        ]

    # ============== WRITES ==============

    def batch(self) -> WriteBatch:
        return WriteBatch()

    async def commit(self, batch: WriteBatch) -> None:
        """Apply every staged write or none of them.

        Only the records and owner maps a batch touches are copied; the
        snapshot is written off the event loop before the new state is swapped in.
        """
        async with self._lock:
            staged = _Staged(self._state)
            timestamp = now_iso()
            for op in batch.ops:
                _apply(staged, op, timestamp)
            await asyncio.to_thread(self._flush, staged.state)
            self._state = staged.state
        logger.debug("Committed batch of %d writes", len(batch))

    async def create_profile(self, profile: Person) -> Person:
        """Create the self profile for a new account."""
        profile.kind = KIND_SELF
        profile.owner_id = profile.id
        await self.commit(self.batch().set(profile))
        return await self.get_profile(profile.id)


class _Staged:
    """Copy-on-write view over a committed _State."""

    def __init__(self, base: _State):
        self.state = _State(
            users=dict(base.users),
            family_members=dict(base.family_members),
            konnections=dict(base.konnections),
            konnect_requests=dict(base.konnect_requests),
        )
        self._copied: set[tuple] = set()

    def owned(self, name: str, owner_id: str) -> dict:
        """A writable per-owner map from one of the partitioned collections."""
        collection = getattr(self.state, name)
        if (name, owner_id) not in self._copied:
            collection[owner_id] = dict(collection.get(owner_id, {}))
            self._copied.add((name, owner_id))
        return collection[owner_id]

    def record(self, owner_id: str, person_id: str) -> Person | None:
        """A writable copy of a person record, or None if there is none."""
        current = _find(self.state, owner_id, person_id)
        if current is None or ("record", owner_id, person_id) in self._copied:
            return current
        record = copy.deepcopy(current)
        if person_id == owner_id:
            self.state.users[owner_id] = record
        else:
            self.owned("family_members", owner_id)[person_id] = record
        self._copied.add(("record", owner_id, person_id))
        return record


def _all_people(state: _State):
    yield from state.users.values()
    for members in state.family_members.values():
        yield from members.values()


def _find(state: _State, owner_id: str, person_id: str) -> Person | None:
    if person_id == owner_id:
        return state.users.get(owner_id)
    return state.family_members.get(owner_id, {}).get(person_id)


def _apply(staged: _Staged, op: tuple, timestamp: str) -> None:
    kind = op[0]
    if kind == "set":
        person: Person = copy.deepcopy(op[1])
        person.created_at = person.created_at or timestamp
        person.updated_at = timestamp
        if person.kind == KIND_SELF:
            staged.state.users[person.id] = person
            staged._copied.add(("record", person.id, person.id))
        else:
            staged.owned("family_members", person.owner_id)[person.id] = person
            staged._copied.add(("record", person.owner_id, person.id))
    elif kind == "update":
        _, owner_id, person_id, fields = op
        record = staged.record(owner_id, person_id)
        if record is None:
            raise NotFoundError(f"Record {person_id} not found for update", record_id=person_id)
        for name, value in fields.items():
            _apply_field(record, name, value)
        record.updated_at = timestamp
    elif kind == "delete":
        _, owner_id, person_id = op
        if person_id == owner_id:
            staged.state.users.pop(owner_id, None)
        elif person_id in staged.state.family_members.get(owner_id, {}):
            staged.owned("family_members", owner_id).pop(person_id)
    elif kind == "set_konnection":
        _, owner_id, other_id, data = op
        staged.owned("konnections", owner_id)[other_id] = {
            **data,
            "konnected_at": data.get("konnected_at") or timestamp,
        }
    elif kind == "delete_konnection":
        _, owner_id, other_id = op
        if other_id in staged.state.konnections.get(owner_id, {}):
            staged.owned("konnections", owner_id).pop(other_id)
    elif kind == "set_request":
        _, recipient_id, sender_id, data = op
        staged.owned("konnect_requests", recipient_id)[sender_id] = {
            **data,
            "timestamp": data.get("timestamp") or timestamp,
        }
    elif kind == "delete_request":
        _, recipient_id, sender_id = op
        if sender_id in staged.state.konnect_requests.get(recipient_id, {}):
            staged.owned("konnect_requests", recipient_id).pop(sender_id)
    else:
        raise StoreError(f"Unknown batch operation: {kind}")


def _apply_field(record: Person, name: str, value) -> None:
    if "." in name:
        map_name, key = name.split(".", 1)
        mapping = getattr(record, map_name)
        if value is DELETE_FIELD:
            mapping.pop(key, None)
        else:
            mapping[key] = value
        return
    if name not in PERSON_FIELDS:
        raise StoreError(f"Unknown person field: {name}")
    if isinstance(value, ArrayUnion):
        current = getattr(record, name)
        current.extend(v for v in dict.fromkeys(value.values) if v not in current)
    elif isinstance(value, ArrayRemove):
        setattr(record, name, [v for v in getattr(record, name) if v not in value.values])
    else:
        setattr(record, name, copy.deepcopy(value))
