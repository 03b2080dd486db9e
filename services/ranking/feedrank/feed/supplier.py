"""Candidate supplier: the read-only data collaborators of the ranking engine.

``CandidateSupplier`` is the interface the service depends on.
``SqlCandidateSupplier`` implements it over PostgreSQL. Each method opens its
own session so the service can issue fetches concurrently without sharing an
AsyncSession between tasks.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import Float, Select, and_, extract, func, literal, or_, select
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from feedrank.feed.candidates import (
    AuthorSummary,
    CandidateItem,
    Counters,
    InteractionSignal,
    SignalType,
)
from feedrank.models.enums import MediaType, PostVisibility
from feedrank.models.interaction import Like
from feedrank.models.post import Post
from feedrank.models.social import Follow, User


@dataclass(frozen=True)
class CandidateFilter:
    """What ``fetch_candidates`` should return.

    author_ids restricts candidates to those authors. When
    outside_network_min_engagement is also set, items by other authors are
    admitted too if their total engagement exceeds it.

    velocity_weights (like, repost, reply) orders by weighted engagement per
    hour as of ``as_of`` instead of newest first, before offset and limit.
    """

    author_ids: frozenset[UUID] | None = None
    outside_network_min_engagement: int | None = None
    since: datetime | None = None
    min_engagement: int | None = None
    velocity_weights: tuple[float, float, float] | None = None
    as_of: datetime | None = None
    offset: int = 0
    limit: int = 20


class CandidateSupplier(Protocol):
    async def viewer_exists(self, viewer_id: UUID) -> bool: ...

    async def fetch_candidates(
        self, viewer_id: UUID | None, candidate_filter: CandidateFilter
    ) -> list[CandidateItem]: ...

    async def fetch_authors(self, author_ids: Iterable[UUID]) -> dict[UUID, AuthorSummary]: ...

    async def fetch_viewer_like_state(
        self, viewer_id: UUID, item_ids: Iterable[UUID]
    ) -> set[UUID]: ...

    async def fetch_viewer_repost_state(
        self, viewer_id: UUID, item_ids: Iterable[UUID]
    ) -> set[UUID]: ...

    async def fetch_following(self, viewer_id: UUID) -> set[UUID]: ...

    async def fetch_recent_likes(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]: ...

    async def fetch_recent_reposts(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]: ...

    async def fetch_recent_replies(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]: ...

    async def fetch_recent_follows(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]: ...


# ===========================================================================
# PostgreSQL implementation
# ===========================================================================

# Rows without a visibility value predate the column and are public
_VISIBLE = or_(Post.visibility == PostVisibility.PUBLIC, Post.visibility.is_(None))

_TOTAL_ENGAGEMENT = Post.like_count + Post.repost_count + Post.reply_count


def _velocity(weights: tuple[float, float, float], as_of: datetime | None):
    """Weighted engagement per hour of age, with age floored at one hour."""
    like_w, repost_w, reply_w = (literal(w, Float) for w in weights)
    weighted = (
        Post.like_count * like_w + Post.repost_count * repost_w + Post.reply_count * reply_w
    )
    reference = func.now() if as_of is None else literal(as_of, TIMESTAMP(timezone=True))
    age_hours = extract("epoch", reference - Post.created_at) / 3600.0
    return weighted / func.greatest(age_hours, 1.0)


def candidates_query(f: CandidateFilter) -> Select:
    q = select(Post).where(_VISIBLE)

    if f.author_ids is not None:
        in_network = Post.author_id.in_(list(f.author_ids))
        if f.outside_network_min_engagement is not None:
            q = q.where(
                or_(
                    in_network,
                    and_(
                        Post.author_id.notin_(list(f.author_ids)),
                        _TOTAL_ENGAGEMENT > f.outside_network_min_engagement,
                    ),
                )
            )
        else:
            q = q.where(in_network)
    if f.since is not None:
        q = q.where(Post.created_at >= f.since)
    if f.min_engagement is not None:
        q = q.where(_TOTAL_ENGAGEMENT > f.min_engagement)

    if f.velocity_weights is not None:
        q = q.order_by(_velocity(f.velocity_weights, f.as_of).desc())
    return (
        q.order_by(Post.created_at.desc(), Post.post_id.desc())
        .offset(f.offset)
        .limit(f.limit)
    )


def recent_likes_query(viewer_id: UUID, limit: int) -> Select:
    return (
        select(Post.author_id, Like.created_at)
        .select_from(Like)
        .join(Post, Post.post_id == Like.post_id)
        .where(Like.user_id == viewer_id)
        .order_by(Like.created_at.desc())
        .limit(limit)
    )


def recent_reposts_query(viewer_id: UUID, limit: int) -> Select:
    original = aliased(Post)
    return (
        select(original.author_id, Post.created_at)
        .select_from(Post)
        .join(original, original.post_id == Post.original_post_id)
        .where(Post.author_id == viewer_id, Post.is_repost.is_(True))
        .order_by(Post.created_at.desc())
        .limit(limit)
    )


def recent_replies_query(viewer_id: UUID, limit: int) -> Select:
    parent = aliased(Post)
    return (
        select(parent.author_id, Post.created_at)
        .select_from(Post)
        .join(parent, parent.post_id == Post.parent_post_id)
        .where(Post.author_id == viewer_id)
        .order_by(Post.created_at.desc())
        .limit(limit)
    )


def recent_follows_query(viewer_id: UUID, limit: int) -> Select:
    return (
        select(Follow.following_id.label("author_id"), Follow.created_at)
        .where(Follow.follower_id == viewer_id)
        .order_by(Follow.created_at.desc())
        .limit(limit)
    )


def _to_candidate(post: Post) -> CandidateItem:
    return CandidateItem(
        id=post.post_id,
        author_id=post.author_id,
        created_at=post.created_at,
        counters=Counters(
            likes=post.like_count,
            reposts=post.repost_count,
            replies=post.reply_count,
        ),
        content=post.content or "",
        media_type=post.media_type or MediaType.NONE,
        media_urls=tuple(post.media_urls or ()),
        hashtags=tuple(post.hashtags or ()),
        mentions=tuple(post.mentions or ()),
        is_repost=post.is_repost,
        is_pinned=post.is_pinned,
        original_post_id=post.original_post_id,
        parent_post_id=post.parent_post_id,
    )


class SqlCandidateSupplier:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def viewer_exists(self, viewer_id: UUID) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(User.id).where(User.id == viewer_id))
            return result.scalar_one_or_none() is not None

    async def fetch_candidates(
        self, viewer_id: UUID | None, candidate_filter: CandidateFilter
    ) -> list[CandidateItem]:
        """Visible posts, most recent first unless velocity ordering is requested."""
        async with self._session_factory() as session:
            posts = (await session.execute(candidates_query(candidate_filter))).scalars().all()
        return [_to_candidate(p) for p in posts]

    async def fetch_authors(self, author_ids: Iterable[UUID]) -> dict[UUID, AuthorSummary]:
        ids = list(set(author_ids))
        if not ids:
            return {}
        async with self._session_factory() as session:
            users = (await session.execute(select(User).where(User.id.in_(ids)))).scalars().all()
        return {
            u.id: AuthorSummary(
                id=u.id,
                is_verified=u.is_verified,
                username=u.username,
                display_name=u.display_name,
                avatar_url=u.avatar_url,
            )
            for u in users
        }

    async def fetch_viewer_like_state(
        self, viewer_id: UUID, item_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(item_ids)
        if not ids:
            return set()
        q = select(Like.post_id).where(Like.user_id == viewer_id, Like.post_id.in_(ids))
        async with self._session_factory() as session:
            return set((await session.execute(q)).scalars().all())

    async def fetch_viewer_repost_state(
        self, viewer_id: UUID, item_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(item_ids)
        if not ids:
            return set()
        q = select(Post.original_post_id).where(
            Post.author_id == viewer_id,
            Post.is_repost.is_(True),
            Post.original_post_id.in_(ids),
        )
        async with self._session_factory() as session:
            return set((await session.execute(q)).scalars().all())

    async def fetch_following(self, viewer_id: UUID) -> set[UUID]:
        q = select(Follow.following_id).where(Follow.follower_id == viewer_id)
        async with self._session_factory() as session:
            return set((await session.execute(q)).scalars().all())

    # -----------------------------------------------------------------------
    # Interaction history (most recent first, bounded per signal type)
    # -----------------------------------------------------------------------

    async def _signals(self, q: Select, kind: SignalType) -> list[InteractionSignal]:
        async with self._session_factory() as session:
            rows = (await session.execute(q)).all()
        return [
            InteractionSignal(kind=kind, author_id=row.author_id, created_at=row.created_at)
            for row in rows
        ]

    async def fetch_recent_likes(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._signals(recent_likes_query(viewer_id, limit), SignalType.LIKE)

    async def fetch_recent_reposts(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._signals(recent_reposts_query(viewer_id, limit), SignalType.REPOST)

    async def fetch_recent_replies(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._signals(recent_replies_query(viewer_id, limit), SignalType.REPLY)

    async def fetch_recent_follows(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._signals(recent_follows_query(viewer_id, limit), SignalType.FOLLOW)
