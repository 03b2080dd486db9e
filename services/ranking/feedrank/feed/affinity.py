"""Interaction history aggregation: per-author affinity weights for a viewer.

Points per action (optionally decayed by exp(-days / 30)):
  like    1    to the liked item's author
  repost  2    to the original author
  reply   3    to the parent item's author
  follow  5    to the followed author

The four signal types are fetched concurrently, each under its own timeout.
A fetch that fails or times out contributes nothing; the others still count.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from feedrank.feed.candidates import InteractionSignal, SignalType
from feedrank.feed.supplier import CandidateSupplier

logger = logging.getLogger(__name__)

SignalFetcher = Callable[[UUID, int], Awaitable[list[InteractionSignal]]]


@dataclass(frozen=True)
class AffinityConfig:
    like_weight: float = 1.0
    repost_weight: float = 2.0
    reply_weight: float = 3.0
    follow_weight: float = 5.0
    # Most recent N of each signal type
    like_limit: int = 500
    repost_limit: int = 200
    reply_limit: int = 200
    follow_limit: int = 500
    decay_days: float = 30.0
    apply_decay: bool = True
    fetch_timeout_s: float = 2.0

    def weight_for(self, kind: SignalType) -> float:
        return {
            SignalType.LIKE: self.like_weight,
            SignalType.REPOST: self.repost_weight,
            SignalType.REPLY: self.reply_weight,
            SignalType.FOLLOW: self.follow_weight,
        }[kind]

    def limit_for(self, kind: SignalType) -> int:
        return {
            SignalType.LIKE: self.like_limit,
            SignalType.REPOST: self.repost_limit,
            SignalType.REPLY: self.reply_limit,
            SignalType.FOLLOW: self.follow_limit,
        }[kind]


DEFAULT_AFFINITY_CONFIG = AffinityConfig()


def decay_factor(created_at: datetime, now: datetime, decay_days: float) -> float:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    days = max(0.0, (now - created_at).total_seconds() / 86400.0)
    return math.exp(-days / decay_days)


def accumulate_signals(
    signals: Iterable[InteractionSignal],
    now: datetime,
    config: AffinityConfig = DEFAULT_AFFINITY_CONFIG,
) -> dict[UUID, float]:
    weights: dict[UUID, float] = {}
    for signal in signals:
        points = config.weight_for(signal.kind)
        if config.apply_decay:
            points *= decay_factor(signal.created_at, now, config.decay_days)
        weights[signal.author_id] = weights.get(signal.author_id, 0.0) + points
    return weights


async def _fetch_signal(
    kind: SignalType,
    fetch: SignalFetcher,
    viewer_id: UUID,
    config: AffinityConfig,
) -> list[InteractionSignal]:
    try:
        return await asyncio.wait_for(
            fetch(viewer_id, config.limit_for(kind)), timeout=config.fetch_timeout_s
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Interaction fetch '%s' for viewer %s timed out after %ss, counting as zero",
            kind.value,
            viewer_id,
            config.fetch_timeout_s,
        )
    except Exception as exc:
        logger.warning(
            "Interaction fetch '%s' for viewer %s failed, counting as zero: %s",
            kind.value,
            viewer_id,
            exc,
        )
    return []


async def aggregate_interactions(
    viewer_id: UUID,
    supplier: CandidateSupplier,
    now: datetime,
    config: AffinityConfig = DEFAULT_AFFINITY_CONFIG,
) -> dict[UUID, float]:
    """Return author id → accumulated (non-negative) weight for this viewer."""
    fetchers: dict[SignalType, SignalFetcher] = {
        SignalType.LIKE: supplier.fetch_recent_likes,
        SignalType.REPOST: supplier.fetch_recent_reposts,
        SignalType.REPLY: supplier.fetch_recent_replies,
        SignalType.FOLLOW: supplier.fetch_recent_follows,
    }
    results = await asyncio.gather(
        *(_fetch_signal(kind, fetch, viewer_id, config) for kind, fetch in fetchers.items())
    )
    return accumulate_signals((s for batch in results for s in batch), now, config)
