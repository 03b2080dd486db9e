"""Second-pass diversity filter over the composite-sorted feed.

A single forward pass that only culls: accepted items keep their order and
dropped items are skipped, not deferred. The first ``free_pass`` accepted
items are admitted unconditionally; after that an author over its tally is
admitted again only once ``lookback`` other items separate it from its last
appearance.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from feedrank.feed.candidates import ScoredCandidate

T = TypeVar("T")


@dataclass(frozen=True)
class DiversityConfig:
    max_per_author: int = 2
    free_pass: int = 5
    lookback: int = 3


DEFAULT_DIVERSITY_CONFIG = DiversityConfig()


def _scored_author(item: ScoredCandidate) -> Hashable:
    return item.candidate.author_id


def apply_diversity_filter(
    items: Iterable[T],
    config: DiversityConfig = DEFAULT_DIVERSITY_CONFIG,
    author_of: Callable[[T], Hashable] = _scored_author,
) -> list[T]:
    accepted: list[T] = []
    author_frequency: dict[Hashable, int] = {}

    for item in items:
        author = author_of(item)
        tally = author_frequency.get(author, 0)

        if tally < config.max_per_author or len(accepted) < config.free_pass:
            accepted.append(item)
            author_frequency[author] = tally + 1
            continue

        recent = accepted[-config.lookback:] if config.lookback > 0 else []
        if not any(author_of(prev) == author for prev in recent):
            accepted.append(item)
            author_frequency[author] = 1

    return accepted
