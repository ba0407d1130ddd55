"""Greedy one-to-one matching of two normalized trees."""

import logging

from .constants import MIN_INDIVIDUAL_PAIR_SCORE_THRESHOLD, TREE_SIMILARITY_THRESHOLD
from .models import ComparablePerson, PairMatch, TreeMatch
from .scoring import score_pair

logger = logging.getLogger(__name__)


def _matchable(person: ComparablePerson) -> bool:
    return not person.is_alternate_profile and bool(person.name)


def match_trees(mine: list[ComparablePerson], theirs: list[ComparablePerson]) -> TreeMatch:
    """Compare two trees person by person.

    Each of my persons, in order, takes its best-scoring unclaimed partner from
    theirs (ties keep the first found). The pair is committed, and the partner
    claimed, only when the pair score reaches MIN_INDIVIDUAL_PAIR_SCORE_THRESHOLD.
    The trees are similar when the committed total reaches
    TREE_SIMILARITY_THRESHOLD and at least one pair was committed.

    This is a greedy first-fit match, not an optimal assignment.
    """
    if not mine or not theirs:
        logger.debug("One or both trees are empty; nothing to compare")
        return TreeMatch(is_similar=False, score=0.0)

    total = 0.0
    pairs: list[PairMatch] = []
    claimed: set[int] = set()

    for p1 in mine:
        if not _matchable(p1):
            logger.debug("Skipping %s from my tree (alternate profile or unnamed)", p1.id)
            continue

        best: tuple[int, ComparablePerson, float, list[str]] | None = None
        for index, p2 in enumerate(theirs):
            if index in claimed or not _matchable(p2):
                continue
            pair_score, reasons = score_pair(p1, p2)
            if pair_score > (best[2] if best else 0.0):
                best = (index, p2, pair_score, reasons)

        if best is None:
            logger.debug("No candidate found for %s", p1.id)
            continue

        index, p2, pair_score, reasons = best
        if pair_score >= MIN_INDIVIDUAL_PAIR_SCORE_THRESHOLD:
            claimed.add(index)
            total += pair_score
            pairs.append(PairMatch(person1=p1, person2=p2, pair_score=pair_score, reasons=reasons))
            logger.debug(
                "COUNTED: %s and %s (pair score %.1f, total %.1f)", p1.id, p2.id, pair_score, total
            )
        else:
            logger.debug(
                "NOT COUNTED: best pair score %.1f for %s with %s is below %.1f",
                pair_score,
                p1.id,
                p2.id,
                MIN_INDIVIDUAL_PAIR_SCORE_THRESHOLD,
            )

    is_similar = total >= TREE_SIMILARITY_THRESHOLD and len(pairs) > 0
    logger.debug("Tree match: similar=%s score=%.1f pairs=%d", is_similar, total, len(pairs))
    return TreeMatch(is_similar=is_similar, score=total, contributing_pairs=pairs)
