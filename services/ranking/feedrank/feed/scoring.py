"""Pure feed scoring functions: no I/O, no framework imports.

Five sub-scores are computed per candidate and combined into a composite:

  recency     exp(-hours / time_decay_hours), in (0, 1]
  engagement  likes×1 + reposts×3 + replies×5, partially time-decayed,
              boosted for verified authors and media, then log-compressed
  affinity    following boost + capped interaction history + topical proxies
  virality    engagement velocity with a tiered multiplier
  diversity   penalty for repeating the author / media type of the preceding
              five candidates in *input* order

Default weights (need not sum to 1.0):
  recency 0.25, engagement 0.30, affinity 0.25, virality 0.15, diversity 0.05

The AlgorithmConfig dataclass is immutable and passed into every call.
All callers that omit the config= argument use DEFAULT_ALGORITHM_CONFIG.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from feedrank.feed.candidates import (
    CandidateItem,
    ScoreBreakdown,
    ScoredCandidate,
    ViewerContext,
    validate_candidate,
)
from feedrank.feed.exceptions import InvalidCandidateError
from feedrank.models.enums import MediaType

logger = logging.getLogger(__name__)

# Points per engagement type for the engagement sub-score
ENGAGEMENT_POINTS: dict[str, float] = {
    "like": 1.0,
    "repost": 3.0,
    "reply": 5.0,
}

# Share of raw engagement that never decays with age
ENGAGEMENT_DECAY_FLOOR: float = 0.3

# Media boosts applied to engagement
VIDEO_BOOST: float = 1.3
MEDIA_BOOST: float = 1.1

# Bound on how much interaction history can add to affinity
INTERACTION_WEIGHT_CAP: float = 20.0
HASHTAG_AFFINITY: float = 0.5
MENTION_AFFINITY: float = 0.3

# (velocity threshold, multiplier), highest first; strictly-greater comparison
VIRALITY_TIERS: tuple[tuple[float, float], ...] = (
    (20.0, 3.0),
    (10.0, 2.0),
    (5.0, 1.5),
)

DIVERSITY_WINDOW: int = 5
SAME_AUTHOR_PENALTY: float = 0.3
SAME_MEDIA_PENALTY: float = 0.1
DIVERSITY_FLOOR: float = 0.1


@dataclass(frozen=True)
class AlgorithmConfig:
    """Algorithmic-mode scoring configuration.

    Used per request; the service builds one from Settings so weights are
    engineer-tunable through the environment.
    """

    recency: float = 0.25
    engagement: float = 0.30
    affinity: float = 0.25
    virality: float = 0.15
    diversity: float = 0.05
    time_decay_hours: float = 24.0
    # Flat affinity bonus for authors the viewer follows
    following_boost: float = 10.0
    # Engagement multiplier for verified authors
    verified_boost: float = 1.2


DEFAULT_ALGORITHM_CONFIG = AlgorithmConfig()


def hours_since(created_at: datetime, now: datetime) -> float:
    """Age in hours, clamped at 0 for timestamps in the future."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 3600.0)


def score_recency(
    created_at: datetime,
    now: datetime,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
) -> float:
    """Exponential decay: 1.0 for a brand-new item, 1/e after time_decay_hours."""
    return math.exp(-hours_since(created_at, now) / config.time_decay_hours)


def media_boost(candidate: CandidateItem) -> float:
    if not candidate.has_media:
        return 1.0
    return VIDEO_BOOST if candidate.media_type is MediaType.VIDEO else MEDIA_BOOST


def score_engagement(
    candidate: CandidateItem,
    recency: float,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
) -> float:
    """Log-compressed engagement with partial time decay.

    Old items keep 30% of their raw engagement so a viral post from yesterday
    is discounted rather than zeroed.
    """
    counters = candidate.counters
    raw = (
        counters.likes * ENGAGEMENT_POINTS["like"]
        + counters.reposts * ENGAGEMENT_POINTS["repost"]
        + counters.replies * ENGAGEMENT_POINTS["reply"]
    )
    value = raw * (ENGAGEMENT_DECAY_FLOOR + (1.0 - ENGAGEMENT_DECAY_FLOOR) * recency)
    if candidate.author is not None and candidate.author.is_verified:
        value *= config.verified_boost
    value *= media_boost(candidate)
    return math.log10(value + 1.0) * 10.0


def score_affinity(
    candidate: CandidateItem,
    viewer: ViewerContext,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
) -> float:
    score = 0.0
    if candidate.author_id in viewer.following:
        score += config.following_boost
    score += min(viewer.interaction_weight(candidate.author_id), INTERACTION_WEIGHT_CAP)
    score += HASHTAG_AFFINITY * len(candidate.hashtags)
    score += MENTION_AFFINITY * len(candidate.mentions)
    return score


def engagement_velocity(candidate: CandidateItem, now: datetime) -> float:
    """Total engagements per hour; items younger than an hour count as one hour old."""
    return candidate.counters.total / max(hours_since(candidate.created_at, now), 1.0)


def score_virality(candidate: CandidateItem, now: datetime) -> float:
    velocity = engagement_velocity(candidate, now)
    for threshold, multiplier in VIRALITY_TIERS:
        if velocity > threshold:
            return velocity * multiplier
    return velocity


def score_diversity(candidate: CandidateItem, preceding: Iterable[CandidateItem]) -> float:
    """Reward items unlike the ones right before them in the unsorted stream."""
    same_author = 0
    same_media = 0
    for other in preceding:
        if other.author_id == candidate.author_id:
            same_author += 1
        if other.media_type is candidate.media_type:
            same_media += 1
    return max(
        DIVERSITY_FLOOR,
        1.0 - SAME_AUTHOR_PENALTY * same_author - SAME_MEDIA_PENALTY * same_media,
    )


def score_composite(
    recency: float,
    engagement: float,
    affinity: float,
    virality: float,
    diversity: float,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
) -> float:
    """Weighted sum of the five sub-scores, floored at 0."""
    total = (
        config.recency * recency
        + config.engagement * engagement
        + config.affinity * affinity
        + config.virality * virality
        + config.diversity * diversity
    )
    return max(0.0, total)


def score_candidates(
    candidates: Sequence[CandidateItem],
    viewer: ViewerContext,
    now: datetime,
    config: AlgorithmConfig = DEFAULT_ALGORITHM_CONFIG,
) -> list[ScoredCandidate]:
    """Score every valid candidate, in input order.

    Invalid candidates are logged and left out of the result. Only scored
    candidates enter the trailing diversity window.
    """
    window: deque[CandidateItem] = deque(maxlen=DIVERSITY_WINDOW)
    scored: list[ScoredCandidate] = []
    for candidate in candidates:
        try:
            validate_candidate(candidate)
        except InvalidCandidateError as exc:
            logger.warning("Excluding candidate from scoring: %s", exc)
            continue

        recency = score_recency(candidate.created_at, now, config)
        engagement = score_engagement(candidate, recency, config)
        affinity = score_affinity(candidate, viewer, config)
        virality = score_virality(candidate, now)
        diversity = score_diversity(candidate, window)
        composite = score_composite(
            recency, engagement, affinity, virality, diversity, config
        )
        scored.append(
            ScoredCandidate(
                candidate=candidate,
                scores=ScoreBreakdown(
                    recency=recency,
                    engagement=engagement,
                    affinity=affinity,
                    virality=virality,
                    diversity=diversity,
                    composite=composite,
                ),
            )
        )
        window.append(candidate)
    return scored


def sort_by_composite(scored: Iterable[ScoredCandidate]) -> list[ScoredCandidate]:
    """Descending by composite; ties keep input order."""
    return sorted(
        scored,
        key=lambda s: s.scores.composite if s.scores is not None else 0.0,
        reverse=True,
    )
