"""Builders for ranking test data and an in-memory CandidateSupplier."""

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt

from feedrank.feed.candidates import (
    AuthorSummary,
    CandidateItem,
    Counters,
    InteractionSignal,
    SignalType,
)
from feedrank.feed.supplier import CandidateFilter
from feedrank.models.enums import MediaType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

TEST_JWT_SECRET = "test-secret"


def make_token(user_id: UUID, secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode({"sub": str(user_id)}, secret, algorithm="HS256")


def make_author(author_id: UUID | None = None, verified: bool = False) -> AuthorSummary:
    author_id = author_id or uuid4()
    return AuthorSummary(
        id=author_id,
        is_verified=verified,
        username=f"user_{str(author_id)[:8]}",
        display_name="Test User",
    )


def make_candidate(
    author: AuthorSummary | None = None,
    *,
    hours_old: float = 1.0,
    likes: int = 0,
    reposts: int = 0,
    replies: int = 0,
    media_type: MediaType = MediaType.NONE,
    media_urls: tuple[str, ...] | None = None,
    hashtags: tuple[str, ...] = (),
    mentions: tuple[str, ...] = (),
    now: datetime = NOW,
) -> CandidateItem:
    author = author if author is not None else make_author()
    if media_urls is None:
        media_urls = () if media_type is MediaType.NONE else (f"https://cdn.test/{uuid4()}",)
    return CandidateItem(
        id=uuid4(),
        author_id=author.id,
        created_at=now - timedelta(hours=hours_old),
        counters=Counters(likes=likes, reposts=reposts, replies=replies),
        author=author,
        content="hello",
        media_type=media_type,
        media_urls=media_urls,
        hashtags=hashtags,
        mentions=mentions,
    )


def make_signal(
    kind: SignalType, author_id: UUID, days_old: float = 0.0, now: datetime = NOW
) -> InteractionSignal:
    return InteractionSignal(
        kind=kind, author_id=author_id, created_at=now - timedelta(days=days_old)
    )


def _velocity(post: CandidateItem, weights: tuple[float, float, float], as_of: datetime) -> float:
    c = post.counters
    weighted = c.likes * weights[0] + c.reposts * weights[1] + c.replies * weights[2]
    hours = (as_of - post.created_at).total_seconds() / 3600
    return weighted / max(hours, 1.0)


class FakeSupplier:
    """In-memory CandidateSupplier.

    Posts are stored without their author summary, the way the SQL supplier
    returns them; authors are resolved through fetch_authors. ``fail`` names
    methods that raise, ``delay`` maps method names to an await in seconds.
    """

    def __init__(
        self,
        *,
        viewers: Iterable[UUID] = (),
        posts: Iterable[CandidateItem] = (),
        authors: Iterable[AuthorSummary] = (),
        following: dict[UUID, set[UUID]] | None = None,
        likes: dict[UUID, set[UUID]] | None = None,
        signals: Iterable[InteractionSignal] = (),
        fail: Iterable[str] = (),
        delay: dict[str, float] | None = None,
    ) -> None:
        self.viewers = set(viewers)
        self.posts = [replace(p, author=None) for p in posts]
        self.authors = {a.id: a for a in authors}
        self.following = following or {}
        self.likes = likes or {}
        self.signals = list(signals)
        self.fail = set(fail)
        self.delay = delay or {}
        self.calls: dict[str, int] = {}
        self.last_filter: CandidateFilter | None = None

    async def _enter(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.delay:
            await asyncio.sleep(self.delay[name])
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    async def viewer_exists(self, viewer_id: UUID) -> bool:
        await self._enter("viewer_exists")
        return viewer_id in self.viewers

    async def fetch_candidates(
        self, viewer_id: UUID | None, candidate_filter: CandidateFilter
    ) -> list[CandidateItem]:
        await self._enter("fetch_candidates")
        self.last_filter = f = candidate_filter
        out = []
        for post in self.posts:
            total = post.counters.total
            if f.author_ids is not None and post.author_id not in f.author_ids:
                outsider_ok = (
                    f.outside_network_min_engagement is not None
                    and total > f.outside_network_min_engagement
                )
                if not outsider_ok:
                    continue
            if f.since is not None and post.created_at < f.since:
                continue
            if f.min_engagement is not None and total <= f.min_engagement:
                continue
            out.append(post)
        out.sort(key=lambda p: p.created_at, reverse=True)
        if f.velocity_weights is not None:
            out.sort(key=lambda p: _velocity(p, f.velocity_weights, f.as_of or NOW), reverse=True)
        return out[f.offset: f.offset + f.limit]

    async def fetch_authors(self, author_ids: Iterable[UUID]) -> dict[UUID, AuthorSummary]:
        await self._enter("fetch_authors")
        return {i: self.authors[i] for i in set(author_ids) if i in self.authors}

    async def fetch_viewer_like_state(self, viewer_id: UUID, item_ids: Iterable[UUID]) -> set[UUID]:
        await self._enter("fetch_viewer_like_state")
        return self.likes.get(viewer_id, set()) & set(item_ids)

    async def fetch_viewer_repost_state(
        self, viewer_id: UUID, item_ids: Iterable[UUID]
    ) -> set[UUID]:
        await self._enter("fetch_viewer_repost_state")
        return set()

    async def fetch_following(self, viewer_id: UUID) -> set[UUID]:
        await self._enter("fetch_following")
        return set(self.following.get(viewer_id, set()))

    async def _recent(self, name: str, kind: SignalType, limit: int) -> list[InteractionSignal]:
        await self._enter(name)
        return [s for s in self.signals if s.kind is kind][:limit]

    async def fetch_recent_likes(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._recent("fetch_recent_likes", SignalType.LIKE, limit)

    async def fetch_recent_reposts(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._recent("fetch_recent_reposts", SignalType.REPOST, limit)

    async def fetch_recent_replies(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._recent("fetch_recent_replies", SignalType.REPLY, limit)

    async def fetch_recent_follows(self, viewer_id: UUID, limit: int) -> list[InteractionSignal]:
        return await self._recent("fetch_recent_follows", SignalType.FOLLOW, limit)

