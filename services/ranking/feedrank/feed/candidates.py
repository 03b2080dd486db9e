"""Ranking input and output records: no I/O, no framework imports.

Every record is frozen: one ranking pass never mutates its inputs. Enrichment
(author summary, viewer like/repost state) produces new records via
``dataclasses.replace``.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from feedrank.feed.exceptions import InvalidCandidateError
from feedrank.models.enums import MediaType


class FeedMode(str, enum.Enum):
    ALGORITHMIC = "algorithmic"
    CHRONOLOGICAL = "chronological"
    TRENDING = "trending"


class SignalType(str, enum.Enum):
    LIKE = "like"
    REPOST = "repost"
    REPLY = "reply"
    FOLLOW = "follow"


@dataclass(frozen=True)
class Counters:
    likes: int = 0
    reposts: int = 0
    replies: int = 0

    @property
    def total(self) -> int:
        return self.likes + self.reposts + self.replies


@dataclass(frozen=True)
class AuthorSummary:
    id: UUID
    is_verified: bool = False
    username: str = ""
    display_name: str = ""
    avatar_url: str | None = None


@dataclass(frozen=True)
class CandidateItem:
    """One content item eligible for ranking.

    ``author`` is None until the author lookup has been joined in; a candidate
    whose author could not be resolved is never scored.
    """

    id: UUID
    author_id: UUID | None
    created_at: datetime
    counters: Counters = field(default_factory=Counters)
    author: AuthorSummary | None = None
    content: str = ""
    media_type: MediaType = MediaType.NONE
    media_urls: tuple[str, ...] = ()
    hashtags: tuple[str, ...] = ()
    mentions: tuple[str, ...] = ()
    is_repost: bool = False
    is_pinned: bool = False
    original_post_id: UUID | None = None
    parent_post_id: UUID | None = None
    # Viewer-contextual flags, filled in by the service
    is_liked: bool = False
    is_reposted: bool = False

    @property
    def content_length(self) -> int:
        return len(self.content)

    @property
    def has_media(self) -> bool:
        # A media_type without attached URLs does not count
        return bool(self.media_urls)


@dataclass(frozen=True)
class ViewerContext:
    viewer_id: UUID | None
    following: frozenset[UUID] = frozenset()
    interaction_weights: Mapping[UUID, float] = field(default_factory=dict)
    mode: FeedMode = FeedMode.ALGORITHMIC

    def __post_init__(self) -> None:
        # The viewer always "follows" themselves
        following = frozenset(self.following)
        if self.viewer_id is not None:
            following = following | {self.viewer_id}
        object.__setattr__(self, "following", following)

    def interaction_weight(self, author_id: UUID | None) -> float:
        if author_id is None:
            return 0.0
        return self.interaction_weights.get(author_id, 0.0)


@dataclass(frozen=True)
class InteractionSignal:
    """A past action by the viewer that points at an author."""

    kind: SignalType
    author_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class ScoreBreakdown:
    recency: float
    engagement: float
    affinity: float
    virality: float
    diversity: float
    composite: float


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate in ranked output.

    Algorithmic mode attaches ``scores``; trending mode attaches ``velocity``;
    chronological output carries neither.
    """

    candidate: CandidateItem
    scores: ScoreBreakdown | None = None
    velocity: float | None = None

    @property
    def author_id(self) -> UUID | None:
        return self.candidate.author_id


def validate_candidate(candidate: CandidateItem) -> None:
    """Raise InvalidCandidateError if the candidate cannot be ranked."""
    if candidate.author_id is None:
        raise InvalidCandidateError(candidate.id, "missing author id")
    if candidate.author is None:
        raise InvalidCandidateError(candidate.id, "author summary not found")
    if candidate.author.id != candidate.author_id:
        raise InvalidCandidateError(candidate.id, "author summary does not match author id")
    counters = candidate.counters
    if counters.likes < 0 or counters.reposts < 0 or counters.replies < 0:
        raise InvalidCandidateError(candidate.id, "negative engagement counter")
