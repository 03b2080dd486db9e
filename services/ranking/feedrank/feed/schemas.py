"""Feed domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from feedrank.feed.candidates import FeedMode, ScoredCandidate
from feedrank.models.enums import MediaType


class AuthorSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    display_name: str
    avatar_url: str | None = None
    is_verified: bool = False


class ScoreBreakdownSchema(BaseModel):
    """Per-factor scores behind an algorithmic ranking (diagnostics)."""

    model_config = ConfigDict(from_attributes=True)

    recency: float = Field(description="exp(-hours / time_decay_hours), in (0, 1].")
    engagement: float = Field(description="Log-compressed, partially decayed engagement.")
    affinity: float = Field(description="Following boost + capped interaction history + topics.")
    virality: float = Field(description="Engagement velocity with tiered multiplier.")
    diversity: float = Field(description="Penalty for repeating preceding authors / media types.")
    composite: float = Field(description="Weighted sum of the above, floored at 0.")


class TimelineItem(BaseModel):
    """Post card for timeline listings, with the viewer's like/repost state."""

    id: UUID
    author_id: UUID
    author: AuthorSchema
    content: str
    media_type: MediaType
    media_urls: list[str]
    hashtags: list[str]
    mentions: list[str]
    like_count: int
    repost_count: int
    reply_count: int
    is_repost: bool
    is_pinned: bool
    original_post_id: UUID | None = None
    parent_post_id: UUID | None = None
    created_at: datetime
    is_liked: bool = False
    is_reposted: bool = False
    scores: ScoreBreakdownSchema | None = Field(
        default=None, description="Present in algorithmic mode."
    )
    velocity: float | None = Field(
        default=None, description="Weighted engagements per hour. Present in trending mode."
    )

    @classmethod
    def from_ranked(cls, ranked: ScoredCandidate) -> TimelineItem:
        c = ranked.candidate
        return cls(
            id=c.id,
            author_id=c.author_id,
            author=AuthorSchema.model_validate(c.author),
            content=c.content,
            media_type=c.media_type,
            media_urls=list(c.media_urls),
            hashtags=list(c.hashtags),
            mentions=list(c.mentions),
            like_count=c.counters.likes,
            repost_count=c.counters.reposts,
            reply_count=c.counters.replies,
            is_repost=c.is_repost,
            is_pinned=c.is_pinned,
            original_post_id=c.original_post_id,
            parent_post_id=c.parent_post_id,
            created_at=c.created_at,
            is_liked=c.is_liked,
            is_reposted=c.is_reposted,
            scores=(
                ScoreBreakdownSchema.model_validate(ranked.scores)
                if ranked.scores is not None
                else None
            ),
            velocity=ranked.velocity,
        )


class TimelinePagination(BaseModel):
    page: int
    limit: int
    has_more: bool = Field(description="True when another page is likely available.")


class TimelineDebug(BaseModel):
    """Pipeline counts, returned only in development."""

    total_fetched: int = Field(description="Candidates returned by the supplier.")
    total_ranked: int = Field(description="Candidates that survived validation and filtering.")
    final_count: int = Field(description="Items on this page.")


class TimelineResponse(BaseModel):
    """Ranked timeline page.

    On a recoverable ranking failure ``items`` is empty and ``error`` carries a
    machine-readable code; a half-ranked list is never returned.
    """

    items: list[TimelineItem]
    pagination: TimelinePagination
    algorithm: FeedMode = Field(description="Echo of the mode that produced this page.")
    error: str | None = Field(default=None, description="Set when ranking degraded to empty.")
    debug: TimelineDebug | None = None
