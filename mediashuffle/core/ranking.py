"""Prioritization algorithms that turn a candidate set into a presentation order."""

import logging
import random
from collections.abc import Callable, Sequence
from itertools import groupby
from typing import Any

from .models import MediaRecord, PrioritizationAlgorithm, RankedEntry

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = PrioritizationAlgorithm.RANDOM

SortKey = Callable[[MediaRecord], Any]


class UnknownAlgorithmError(ValueError):
    """Raised for an algorithm name outside the supported set."""

    def __init__(self, algorithm: Any) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unknown prioritization algorithm: {algorithm!r}")


def parse_algorithm(
    algorithm: str | PrioritizationAlgorithm,
) -> PrioritizationAlgorithm:
    """Resolve an algorithm name, raising UnknownAlgorithmError if unsupported."""
    try:
        return PrioritizationAlgorithm(algorithm)
    except ValueError:
        raise UnknownAlgorithmError(algorithm) from None


def last_viewed_key(record: MediaRecord) -> tuple[int, str]:
    """Sort key for last_viewed where never-viewed sorts before any timestamp."""
    if record.last_viewed is None:
        return (0, "")
    return (1, record.last_viewed)


def view_count_key(record: MediaRecord) -> int:
    return record.view_count


def like_count_key(record: MediaRecord) -> int:
    return record.like_count


def shuffle_random(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """Uniform random permutation (Fisher-Yates)."""
    result = list(records)
    rng.shuffle(result)
    return result


def split_by_viewed(
    records: Sequence[MediaRecord],
) -> tuple[list[MediaRecord], list[MediaRecord]]:
    """Split records into (never viewed, viewed), keeping input order."""
    never_viewed: list[MediaRecord] = []
    viewed: list[MediaRecord] = []
    for record in records:
        if record.never_viewed:
            never_viewed.append(record)
        else:
            viewed.append(record)
    return never_viewed, viewed


def sort_with_tie_break(
    records: Sequence[MediaRecord],
    primary: SortKey,
    secondary: SortKey,
    rng: random.Random,
    primary_descending: bool = False,
    secondary_descending: bool = False,
) -> list[MediaRecord]:
    """
    Stable sort by (primary, secondary), then shuffle exact ties.

    Records whose primary and secondary keys are both equal form a run;
    each run is shuffled in place. Records that differ on either key are
    never reordered relative to each other.
    """
    ordered = sorted(records, key=secondary, reverse=secondary_descending)
    ordered.sort(key=primary, reverse=primary_descending)

    result: list[MediaRecord] = []
    for _, run in groupby(ordered, key=lambda r: (primary(r), secondary(r))):
        tied = list(run)
        if len(tied) > 1:
            rng.shuffle(tied)
        result.extend(tied)
    return result


def prioritize_unviewed(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """Never-viewed records first, each group shuffled independently."""
    never_viewed, viewed = split_by_viewed(records)
    return shuffle_random(never_viewed, rng) + shuffle_random(viewed, rng)


def prioritize_least_viewed(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """view_count ascending, then last_viewed ascending (never viewed first)."""
    return sort_with_tie_break(records, view_count_key, last_viewed_key, rng)


def prioritize_most_liked(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """like_count descending, then view_count ascending."""
    return sort_with_tie_break(
        records, like_count_key, view_count_key, rng, primary_descending=True
    )


def prioritize_most_viewed(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """view_count descending, then last_viewed descending (never viewed last)."""
    return sort_with_tie_break(
        records,
        view_count_key,
        last_viewed_key,
        rng,
        primary_descending=True,
        secondary_descending=True,
    )


def prioritize_oldest_first(
    records: Sequence[MediaRecord], rng: random.Random
) -> list[MediaRecord]:
    """Never-viewed records shuffled first, then viewed by last_viewed ascending."""
    never_viewed, viewed = split_by_viewed(records)
    viewed.sort(key=last_viewed_key)
    return shuffle_random(never_viewed, rng) + viewed


def order_media(
    records: Sequence[MediaRecord],
    algorithm: PrioritizationAlgorithm,
    rng: random.Random,
) -> list[MediaRecord]:
    """Order records using the specified algorithm."""
    if algorithm == PrioritizationAlgorithm.RANDOM:
        return shuffle_random(records, rng)
    elif algorithm == PrioritizationAlgorithm.UNVIEWED_FIRST:
        return prioritize_unviewed(records, rng)
    elif algorithm == PrioritizationAlgorithm.LEAST_VIEWED:
        return prioritize_least_viewed(records, rng)
    elif algorithm == PrioritizationAlgorithm.MOST_LIKED:
        return prioritize_most_liked(records, rng)
    elif algorithm == PrioritizationAlgorithm.MOST_VIEWED:
        return prioritize_most_viewed(records, rng)
    elif algorithm == PrioritizationAlgorithm.OLDEST_FIRST:
        return prioritize_oldest_first(records, rng)
    else:
        raise UnknownAlgorithmError(algorithm)


def randomize(
    media_files: Sequence[MediaRecord],
    algorithm: str | PrioritizationAlgorithm = DEFAULT_ALGORITHM,
    exclude_disliked: bool = True,
    rng: random.Random | None = None,
) -> list[RankedEntry]:
    """
    Produce a presentation order for a candidate set of media records.

    Args:
        media_files: Candidate records, in any order
        algorithm: Name or member of PrioritizationAlgorithm
        exclude_disliked: Drop records with a negative like_count first
        rng: Source of randomness; a fresh generator is used when omitted

    Returns:
        One RankedEntry per surviving record, idx running 0..n-1

    Raises:
        UnknownAlgorithmError: If the algorithm is not supported. Raised
            before any records are examined.
    """
    strategy = parse_algorithm(algorithm)
    logger.debug(
        "Ordering %d media files with %s (exclude_disliked=%s)",
        len(media_files),
        strategy.value,
        exclude_disliked,
    )

    if exclude_disliked:
        candidates = [m for m in media_files if not m.is_disliked]
    else:
        candidates = list(media_files)

    if not candidates:
        logger.warning("No media files left to order after filtering")
        return []

    if rng is None:
        rng = random.Random()

    ordered = order_media(candidates, strategy, rng)
    result = [RankedEntry(id=m.id, idx=i) for i, m in enumerate(ordered)]

    logger.info("Ordered %d media files with %s", len(result), strategy.value)
    return result
