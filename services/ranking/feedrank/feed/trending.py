"""Non-personalised trending ranking.

Velocity = (likes×1 + reposts×2 + replies×3) / max(hours_old, 1), computed
only for items inside the lookback window whose total engagement exceeds the
minimum threshold. No diversity pass is applied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from feedrank.feed.candidates import CandidateItem, ScoredCandidate, validate_candidate
from feedrank.feed.exceptions import InvalidCandidateError
from feedrank.feed.scoring import hours_since

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrendingConfig:
    window_hours: float = 24.0
    # Items need strictly more total engagements than this to trend
    min_engagement: int = 3
    like_weight: float = 1.0
    repost_weight: float = 2.0
    reply_weight: float = 3.0


DEFAULT_TRENDING_CONFIG = TrendingConfig()


def window_start(now: datetime, config: TrendingConfig = DEFAULT_TRENDING_CONFIG) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now - timedelta(hours=config.window_hours)


def is_trending_eligible(
    candidate: CandidateItem,
    now: datetime,
    config: TrendingConfig = DEFAULT_TRENDING_CONFIG,
) -> bool:
    created_at = candidate.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if created_at < window_start(now, config):
        return False
    return candidate.counters.total > config.min_engagement


def trending_velocity(
    candidate: CandidateItem,
    now: datetime,
    config: TrendingConfig = DEFAULT_TRENDING_CONFIG,
) -> float:
    counters = candidate.counters
    weighted = (
        counters.likes * config.like_weight
        + counters.reposts * config.repost_weight
        + counters.replies * config.reply_weight
    )
    return weighted / max(hours_since(candidate.created_at, now), 1.0)


def rank_trending(
    candidates: Iterable[CandidateItem],
    now: datetime,
    limit: int | None = None,
    config: TrendingConfig = DEFAULT_TRENDING_CONFIG,
) -> list[ScoredCandidate]:
    """Eligible candidates sorted by velocity (descending), truncated to ``limit``."""
    ranked: list[ScoredCandidate] = []
    for candidate in candidates:
        try:
            validate_candidate(candidate)
        except InvalidCandidateError as exc:
            logger.warning("Excluding candidate from trending: %s", exc)
            continue
        if not is_trending_eligible(candidate, now, config):
            continue
        ranked.append(
            ScoredCandidate(
                candidate=candidate,
                velocity=trending_velocity(candidate, now, config),
            )
        )

    ranked.sort(key=lambda s: s.velocity or 0.0, reverse=True)
    return ranked if limit is None else ranked[:limit]
