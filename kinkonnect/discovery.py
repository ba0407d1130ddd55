"""Discovery: scan other users' public trees for probable overlaps with the caller's."""

import asyncio
import logging

from .constants import (
    DEFAULT_SCAN_TIMEOUT_SECONDS,
    FIELD_LABELS,
    FILTER_REQUIRED_FIELDS,
    UNKNOWN_DATE,
)
from .errors import (
    InternalError,
    InvalidArgumentError,
    KinkonnectError,
    NotFoundError,
    PreconditionError,
    ScanTimeoutError,
    UnauthenticatedError,
)
from .helpers import capitalize, first_name
from .matching import match_trees
from .models import (
    ComparablePerson,
    MatchedIndividualPair,
    MatchedMemberInfo,
    MatchedTreeResult,
    Person,
)
from .normalize import normalize_tree
from .store import RecordStore
from .telemetry import get_tracer

logger = logging.getLogger(__name__)


def _has_named_person(people: list[Person]) -> bool:
    return any(first_name(p.name) for p in people)


def _screen_value(value: str | None) -> str:
    return (value or "").strip().lower()


def _missing_fields(profile: Person, filter_option: str) -> list[str]:
    return [f for f in FILTER_REQUIRED_FIELDS[filter_option] if not getattr(profile, f)]


def _precondition_message(filter_option: str) -> str:
    labels = [FIELD_LABELS[f] for f in FILTER_REQUIRED_FIELDS[filter_option]]
    if len(labels) == 1:
        needed = f"a {labels[0]}"
    elif len(labels) == 2:
        needed = f"both {labels[0]} and {labels[1]}"
    else:
        needed = ", ".join(labels[:-1]) + f", and {labels[-1]}"
    return f"Your profile must have {needed} to use this filter."


def passes_prefilter(caller: Person, candidate: Person, filter_option: str) -> bool:
    """Cheap field-equality screen run before a full tree comparison."""
    return all(
        _screen_value(getattr(caller, f)) == _screen_value(getattr(candidate, f))
        for f in FILTER_REQUIRED_FIELDS[filter_option]
    )


def format_person_details(person: ComparablePerson) -> str:
    """One-line summary of a matched person, e.g. "DOB: 1990-05-01, Alive, Native: Chennai"."""
    original = person.original
    details: list[str] = []
    if original.dob and original.dob != UNKNOWN_DATE:
        details.append(f"DOB: {original.dob}")
    elif original.dob == UNKNOWN_DATE:
        details.append("DOB: N/A")

    details.append("Deceased" if original.is_deceased else "Alive")
    details.append(f"Native: {original.native_place or 'N/A'}")
    if original.current_place:
        details.append(f"Lives: {original.current_place}")
    if original.religion:
        details.append(capitalize(original.religion))
    if original.caste:
        details.append(capitalize(original.caste))

    role = person.relationship_to_owner or ("Self" if original.is_self else "N/A")
    if role != "Self":
        details.append(f"Role: {role}")
    return ", ".join(details)


def to_member_info(person: ComparablePerson) -> MatchedMemberInfo:
    original = person.original
    return MatchedMemberInfo(
        id=person.id,
        name=original.name or "Unnamed",
        alias_name=original.alias_name or None,
        dob=original.dob,
        gender=original.gender,
        relationship_to_their_owner=person.relationship_to_owner,
        is_deceased=person.is_deceased,
        native_place=original.native_place,
        current_place=original.current_place,
        religion=original.religion,
        caste=original.caste,
    )


async def find_similar_trees(
    store: RecordStore,
    caller_id: str | None,
    filter_option: str | None,
    timeout: float | None = DEFAULT_SCAN_TIMEOUT_SECONDS,
) -> dict:
    """Run a Discovery scan for caller_id.

    Returns {"matches": [...]} with one entry per similar tree, in scan order.
    A private caller, an empty tree or no qualifying candidates all yield an
    empty list rather than an error.

    Raises:
        UnauthenticatedError: no caller identity.
        InvalidArgumentError: filter option missing or unknown.
        NotFoundError: the caller has no profile.
        PreconditionError: the caller's profile lacks a field the filter needs.
        ScanTimeoutError: the scan ran past `timeout` seconds.
        InternalError: anything else; the message carries the caller id.
    """
    if not caller_id:
        logger.warning("Unauthenticated call to find_similar_trees")
        raise UnauthenticatedError()
    if not filter_option:
        raise InvalidArgumentError("A filter option must be provided to perform a scan.")
    if filter_option not in FILTER_REQUIRED_FIELDS:
        raise InvalidArgumentError(f"Unknown filter option: {filter_option}")

    logger.info("[Discovery] Scan requested by %s with filter %s", caller_id, filter_option)

    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("discovery.scan") as span:
        span.set_attribute("discovery.caller_id", caller_id)
        span.set_attribute("discovery.filter", filter_option)
        try:
            matches = await asyncio.wait_for(
                _scan(store, caller_id, filter_option), timeout=timeout
            )
        except KinkonnectError:
            raise
        except asyncio.TimeoutError as e:
            logger.error("[Discovery] Scan for %s timed out after %ss", caller_id, timeout)
            raise ScanTimeoutError() from e
        except Exception as e:
            logger.exception("[Discovery] Critical error during scan for %s", caller_id)
            raise InternalError(f"An internal error occurred. {e}", caller_id=caller_id) from e
        span.set_attribute("discovery.matches", len(matches))

    return {"matches": [m.to_dict() for m in matches]}


async def _scan(store: RecordStore, caller_id: str, filter_option: str) -> list[MatchedTreeResult]:
    caller = await store.get_profile(caller_id)
    if caller is None:
        raise NotFoundError(
            "Caller's profile not found. Please complete your profile.", record_id=caller_id
        )

    if not caller.is_public:
        logger.info("[Discovery] Caller %s is in Private Mode. Aborting scan.", caller_id)
        return []

    missing = _missing_fields(caller, filter_option)
    if missing:
        raise PreconditionError(_precondition_message(filter_option), missing_fields=tuple(missing))

    konnected = {k["id"] for k in await store.get_konnections(caller_id)}
    logger.info(
        "[Discovery] Caller %s has %d konnections; these users are excluded",
        caller_id,
        len(konnected),
    )

    my_raw_tree = [caller, *await store.get_family_members(caller_id)]
    if not _has_named_person(my_raw_tree):
        logger.info("[Discovery] Caller %s has no named individuals; returning 0 matches", caller_id)
        return []
    my_tree = normalize_tree(my_raw_tree)

    other_ids = [
        uid for uid in await store.list_user_ids() if uid != caller_id and uid not in konnected
    ]
    logger.info("[Discovery] %d other users to compare with", len(other_ids))

    matches: list[MatchedTreeResult] = []
    private_skipped = 0
    filter_skipped = 0
    tracer = get_tracer(__name__)

    for other_id in other_ids:
        # Yield between candidates so the deadline can fire
        await asyncio.sleep(0)

        other = await store.get_profile(other_id)
        if other is None:
            logger.warning("[Discovery] Profile not found for user %s; skipped", other_id)
            continue
        if not other.is_public:
            private_skipped += 1
            logger.info("[Discovery] SKIPPED user %s: profile is private", other_id)
            continue
        if not passes_prefilter(caller, other, filter_option):
            filter_skipped += 1
            logger.info("[Discovery] SKIPPED user %s: filter mismatch (%s)", other_id, filter_option)
            continue

        other_members = await store.get_family_members(other_id)
        other_raw_tree = [other, *other_members]
        if not _has_named_person(other_raw_tree):
            logger.info("[Discovery] User %s has no named individuals; skipped", other_id)
            continue

        with tracer.start_as_current_span("discovery.compare") as span:
            span.set_attribute("discovery.candidate_id", other_id)
            result = match_trees(my_tree, normalize_tree(other_raw_tree))
            span.set_attribute("discovery.similar", result.is_similar)

        logger.debug(
            "[Discovery] %s: similar=%s score=%.1f pairs=%d",
            other_id,
            result.is_similar,
            result.score,
            len(result.contributing_pairs),
        )
        if not result.is_similar:
            continue

        logger.info("[Discovery] MATCH FOUND with user %s, score %.1f", other_id, result.score)
        pairs = result.contributing_pairs
        matches.append(
            MatchedTreeResult(
                matched_user_id=other_id,
                matched_user_name=other.name or other.email or "Unnamed User",
                score=round(result.score, 1),
                total_members_in_tree=len(other_members) + 1,
                detailed_contributing_pairs=[
                    MatchedIndividualPair(
                        person1_id=pair.person1.id,
                        person1_name=pair.person1.original.name or "Unnamed",
                        person1_details=format_person_details(pair.person1),
                        person2_id=pair.person2.id,
                        person2_name=pair.person2.original.name or "Unnamed",
                        person2_details=format_person_details(pair.person2),
                        pair_score=pair.pair_score,
                        match_reasons=list(pair.reasons),
                    )
                    for pair in pairs
                ],
                my_matched_persons=[to_member_info(pair.person1) for pair in pairs],
                other_matched_persons=[to_member_info(pair.person2) for pair in pairs],
            )
        )

    logger.info(
        "[Discovery] Scan complete for %s. Filter: %s. Konnections excluded: %d. "
        "Private users skipped: %d. Filtered out: %d. Matches: %d.",
        caller_id,
        filter_option,
        len(konnected),
        private_skipped,
        filter_skipped,
        len(matches),
    )
    return matches
