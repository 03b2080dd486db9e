"""Mode ranking: pure functions over already-fetched candidates.

  chronological   created_at descending, no scoring
  algorithmic     score (input order) → sort by composite → diversity filter
  trending        see feedrank.feed.trending

The I/O side (fetching, enrichment, caching, deadlines) lives in
feedrank.feed.service.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from feedrank.feed.affinity import DEFAULT_AFFINITY_CONFIG, AffinityConfig
from feedrank.feed.candidates import (
    CandidateItem,
    FeedMode,
    ScoredCandidate,
    ViewerContext,
    validate_candidate,
)
from feedrank.feed.diversity import DEFAULT_DIVERSITY_CONFIG, DiversityConfig, apply_diversity_filter
from feedrank.feed.exceptions import InvalidCandidateError
from feedrank.feed.scoring import (
    DEFAULT_ALGORITHM_CONFIG,
    AlgorithmConfig,
    score_candidates,
    sort_by_composite,
)
from feedrank.feed.trending import DEFAULT_TRENDING_CONFIG, TrendingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineOptions:
    """Everything one ranking call is configured with."""

    algorithm: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG
    trending: TrendingConfig = DEFAULT_TRENDING_CONFIG
    diversity: DiversityConfig = DEFAULT_DIVERSITY_CONFIG
    affinity: AffinityConfig = DEFAULT_AFFINITY_CONFIG
    # Algorithmic mode fetches limit × overfetch_factor candidates
    overfetch_factor: int = 3
    # Non-followed authors enter the algorithmic pool above this engagement
    outside_network_min_engagement: int = 10
    # Upper bound on items scanned for trending
    trending_scan_limit: int = 500
    affinity_cache_ttl_s: int = 60
    ranking_deadline_s: float = 5.0


DEFAULT_TIMELINE_OPTIONS = TimelineOptions()

_MODE_DEFAULTS: dict[FeedMode, AlgorithmConfig | TrendingConfig | None] = {
    FeedMode.ALGORITHMIC: DEFAULT_ALGORITHM_CONFIG,
    FeedMode.TRENDING: DEFAULT_TRENDING_CONFIG,
    FeedMode.CHRONOLOGICAL: None,
}


def default_config_for(mode: FeedMode) -> AlgorithmConfig | TrendingConfig | None:
    """Default configuration for a mode; chronological needs none."""
    return _MODE_DEFAULTS[mode]


def rank_chronological(candidates: Sequence[CandidateItem]) -> list[ScoredCandidate]:
    valid: list[CandidateItem] = []
    for candidate in candidates:
        try:
            validate_candidate(candidate)
        except InvalidCandidateError as exc:
            logger.warning("Excluding candidate from timeline: %s", exc)
            continue
        valid.append(candidate)
    valid.sort(key=lambda c: c.created_at, reverse=True)
    return [ScoredCandidate(candidate=c) for c in valid]


def rank_algorithmic(
    candidates: Sequence[CandidateItem],
    viewer: ViewerContext,
    now: datetime,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
    diversity: DiversityConfig = DEFAULT_DIVERSITY_CONFIG,
) -> list[ScoredCandidate]:
    """Full algorithmic ordering, before page truncation.

    The diversity sub-score is computed against the pre-sort order and the list
    is then re-sorted by composite; the post-filter handles same-author runs in
    the final order.
    """
    scored = score_candidates(candidates, viewer, now, config)
    return apply_diversity_filter(sort_by_composite(scored), diversity)
