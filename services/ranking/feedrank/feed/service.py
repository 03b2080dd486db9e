"""Feed service: ranking orchestration, no FastAPI imports.

Feed strategies implemented
---------------------------
- Chronological : followed authors (+ self), newest first, offset-based
- Algorithmic   : followed authors + high-engagement outsiders, over-fetched
                  3× the page size, scored, sorted, diversity-filtered
- Trending      : last N hours (default 24) by engagement velocity; anonymous OK

Collaborator fetches that do not depend on each other run concurrently.
Enrichment fetches (authors, like/repost state, interaction history) degrade
to empty results on failure; a failed candidate fetch fails the ranking.
Every call is bounded by ``options.ranking_deadline_s`` and returns nothing
partial on expiry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TypeVar
from uuid import UUID

from redis.asyncio import Redis

from feedrank.feed import cache as feed_cache
from feedrank.feed.affinity import aggregate_interactions
from feedrank.feed.candidates import (
    AuthorSummary,
    CandidateItem,
    FeedMode,
    ScoredCandidate,
    ViewerContext,
)
from feedrank.feed.exceptions import (
    CandidateFetchError,
    RankingTimeoutError,
    ViewerNotFoundError,
    ViewerRequiredError,
)
from feedrank.feed.ranking import (
    DEFAULT_TIMELINE_OPTIONS,
    TimelineOptions,
    rank_algorithmic,
    rank_chronological,
)
from feedrank.feed.supplier import CandidateFilter, CandidateSupplier
from feedrank.feed.trending import rank_trending, window_start

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TimelineResult:
    items: list[ScoredCandidate]
    mode: FeedMode
    page: int
    limit: int
    has_more: bool
    total_fetched: int = 0
    total_ranked: int = 0


# ===========================================================================
# Entry point
# ===========================================================================


async def get_timeline(
    *,
    viewer_id: UUID | None,
    supplier: CandidateSupplier,
    redis: Redis,
    mode: FeedMode = FeedMode.ALGORITHMIC,
    page: int = 1,
    limit: int = 20,
    hours: float | None = None,
    options: TimelineOptions = DEFAULT_TIMELINE_OPTIONS,
    now: datetime | None = None,
) -> TimelineResult:
    """Rank one page of the viewer's timeline in the requested mode.

    Raises ViewerRequiredError / ViewerNotFoundError for personalised modes
    without a valid viewer, CandidateFetchError when candidates cannot be
    loaded, and RankingTimeoutError when the deadline passes.
    """
    now = now or datetime.now(timezone.utc)
    try:
        return await asyncio.wait_for(
            _build_timeline(viewer_id, supplier, redis, mode, page, limit, hours, options, now),
            timeout=options.ranking_deadline_s,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Ranking %s timeline for viewer %s exceeded %ss",
            mode.value,
            viewer_id,
            options.ranking_deadline_s,
        )
        raise RankingTimeoutError(options.ranking_deadline_s) from None


async def _build_timeline(
    viewer_id: UUID | None,
    supplier: CandidateSupplier,
    redis: Redis,
    mode: FeedMode,
    page: int,
    limit: int,
    hours: float | None,
    options: TimelineOptions,
    now: datetime,
) -> TimelineResult:
    if mode is FeedMode.TRENDING:
        return await _trending_timeline(supplier, page, limit, hours, options, now)

    if viewer_id is None:
        raise ViewerRequiredError()
    if not await supplier.viewer_exists(viewer_id):
        raise ViewerNotFoundError(viewer_id)

    following = await _best_effort(
        "following", supplier.fetch_following(viewer_id), set()
    )
    following = frozenset(following) | {viewer_id}

    if mode is FeedMode.CHRONOLOGICAL:
        return await _chronological_timeline(viewer_id, following, supplier, page, limit)
    return await _algorithmic_timeline(
        viewer_id, following, supplier, redis, page, limit, options, now
    )


# ===========================================================================
# Helpers (private)
# ===========================================================================


async def _best_effort(label: str, aw: Awaitable[T], default: T) -> T:
    """Await an enrichment fetch; log and fall back to ``default`` on failure."""
    try:
        return await aw
    except Exception as exc:
        logger.warning("Feed enrichment '%s' failed, continuing without it: %s", label, exc)
        return default


async def _fetch_candidates(
    supplier: CandidateSupplier,
    viewer_id: UUID | None,
    candidate_filter: CandidateFilter,
) -> list[CandidateItem]:
    try:
        return await supplier.fetch_candidates(viewer_id, candidate_filter)
    except Exception as exc:
        logger.exception("Candidate fetch failed for viewer %s", viewer_id)
        raise CandidateFetchError(str(exc)) from exc


def _enrich(
    candidates: Sequence[CandidateItem],
    authors: dict[UUID, AuthorSummary],
    liked: set[UUID],
    reposted: set[UUID],
) -> list[CandidateItem]:
    return [
        replace(
            c,
            author=authors.get(c.author_id) if c.author_id is not None else None,
            is_liked=c.id in liked,
            is_reposted=c.id in reposted,
        )
        for c in candidates
    ]


async def _viewer_state(
    viewer_id: UUID, candidates: Sequence[CandidateItem], supplier: CandidateSupplier
) -> tuple[dict[UUID, AuthorSummary], set[UUID], set[UUID]]:
    item_ids = [c.id for c in candidates]
    author_ids = {c.author_id for c in candidates if c.author_id is not None}
    authors, liked, reposted = await asyncio.gather(
        _best_effort("authors", supplier.fetch_authors(author_ids), {}),
        _best_effort("likes", supplier.fetch_viewer_like_state(viewer_id, item_ids), set()),
        _best_effort("reposts", supplier.fetch_viewer_repost_state(viewer_id, item_ids), set()),
    )
    return authors, liked, reposted


async def _viewer_affinity(
    viewer_id: UUID,
    supplier: CandidateSupplier,
    redis: Redis,
    options: TimelineOptions,
    now: datetime,
) -> dict[UUID, float]:
    """Interaction weights per author (Redis cache + supplier fallback)."""
    decayed = options.affinity.apply_decay
    cached = await feed_cache.get_affinity_map(viewer_id, decayed, redis)
    if cached is not None:
        return cached
    weights = await aggregate_interactions(viewer_id, supplier, now, options.affinity)
    await feed_cache.set_affinity_map(
        viewer_id, decayed, weights, redis, ttl_s=options.affinity_cache_ttl_s
    )
    return weights


# ===========================================================================
# Modes
# ===========================================================================


async def _chronological_timeline(
    viewer_id: UUID,
    following: frozenset[UUID],
    supplier: CandidateSupplier,
    page: int,
    limit: int,
) -> TimelineResult:
    candidates = await _fetch_candidates(
        supplier,
        viewer_id,
        CandidateFilter(author_ids=following, offset=(page - 1) * limit, limit=limit),
    )
    authors, liked, reposted = await _viewer_state(viewer_id, candidates, supplier)
    ranked = rank_chronological(_enrich(candidates, authors, liked, reposted))
    return TimelineResult(
        items=ranked[:limit],
        mode=FeedMode.CHRONOLOGICAL,
        page=page,
        limit=limit,
        has_more=len(candidates) == limit,
        total_fetched=len(candidates),
        total_ranked=len(ranked),
    )


async def _algorithmic_timeline(
    viewer_id: UUID,
    following: frozenset[UUID],
    supplier: CandidateSupplier,
    redis: Redis,
    page: int,
    limit: int,
    options: TimelineOptions,
    now: datetime,
) -> TimelineResult:
    fetch_window = limit * options.overfetch_factor
    candidates = await _fetch_candidates(
        supplier,
        viewer_id,
        CandidateFilter(
            author_ids=following,
            outside_network_min_engagement=options.outside_network_min_engagement,
            offset=(page - 1) * fetch_window,
            limit=fetch_window,
        ),
    )
    if not candidates:
        return TimelineResult(
            items=[], mode=FeedMode.ALGORITHMIC, page=page, limit=limit, has_more=False
        )

    (authors, liked, reposted), weights = await asyncio.gather(
        _viewer_state(viewer_id, candidates, supplier),
        _viewer_affinity(viewer_id, supplier, redis, options, now),
    )
    viewer = ViewerContext(
        viewer_id=viewer_id,
        following=following,
        interaction_weights=weights,
        mode=FeedMode.ALGORITHMIC,
    )
    ranked = rank_algorithmic(
        _enrich(candidates, authors, liked, reposted),
        viewer,
        now,
        options.algorithm,
        options.diversity,
    )
    return TimelineResult(
        items=ranked[:limit],
        mode=FeedMode.ALGORITHMIC,
        page=page,
        limit=limit,
        has_more=len(candidates) == fetch_window,
        total_fetched=len(candidates),
        total_ranked=len(ranked),
    )


async def _trending_timeline(
    supplier: CandidateSupplier,
    page: int,
    limit: int,
    hours: float | None,
    options: TimelineOptions,
    now: datetime,
) -> TimelineResult:
    config = options.trending
    if hours is not None:
        config = replace(config, window_hours=hours)

    candidates = await _fetch_candidates(
        supplier,
        None,
        CandidateFilter(
            since=window_start(now, config),
            min_engagement=config.min_engagement,
            velocity_weights=(config.like_weight, config.repost_weight, config.reply_weight),
            as_of=now,
            limit=options.trending_scan_limit,
        ),
    )
    author_ids = {c.author_id for c in candidates if c.author_id is not None}
    authors = await _best_effort("authors", supplier.fetch_authors(author_ids), {})
    ranked = rank_trending(_enrich(candidates, authors, set(), set()), now, None, config)

    offset = (page - 1) * limit
    return TimelineResult(
        items=ranked[offset: offset + limit],
        mode=FeedMode.TRENDING,
        page=page,
        limit=limit,
        has_more=len(ranked) > offset + limit,
        total_fetched=len(candidates),
        total_ranked=len(ranked),
    )
