from uuid import UUID

from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis

from feedrank.config import Settings
from feedrank.dependencies import get_optional_user, get_redis, get_settings, get_supplier
from feedrank.feed import controller
from feedrank.feed.candidates import FeedMode
from feedrank.feed.schemas import TimelineResponse
from feedrank.feed.supplier import CandidateSupplier

router = APIRouter(prefix="/timeline", tags=["Timeline"])


@router.get(
    "",
    response_model=TimelineResponse,
    summary="Viewer timeline",
    description=(
        "Ranked timeline page. `algorithmic` (default) scores followed authors and "
        "high-engagement outsiders on recency, engagement, affinity, virality and "
        "diversity, then caps same-author runs. `chronological` returns followed "
        "authors newest first. `trending` ranks the last `hours` by engagement "
        "velocity and does not require authentication. "
        "Personalised modes require a bearer token."
    ),
)
async def get_timeline(
    algorithm: FeedMode = Query(FeedMode.ALGORITHMIC, description="Ranking mode."),
    page: int = Query(1, ge=1, description="Page number (1-indexed)."),
    limit: int = Query(20, ge=1, le=100, description="Page size."),
    hours: int = Query(24, ge=1, le=168, description="Trending lookback window in hours."),
    viewer_id: UUID | None = Depends(get_optional_user),
    supplier: CandidateSupplier = Depends(get_supplier),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> TimelineResponse:
    return await controller.get_timeline(
        viewer_id=viewer_id,
        supplier=supplier,
        redis=redis,
        settings=settings,
        algorithm=algorithm,
        page=page,
        limit=limit,
        hours=hours if algorithm is FeedMode.TRENDING else None,
    )


@router.get(
    "/trending",
    response_model=TimelineResponse,
    summary="Trending posts",
    description=(
        "Posts from the last `hours` (default 24) with more than the minimum "
        "engagement, ordered by (likes + reposts×2 + replies×3) per hour. "
        "No auth required."
    ),
)
async def get_trending(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    hours: int = Query(24, ge=1, le=168),
    supplier: CandidateSupplier = Depends(get_supplier),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> TimelineResponse:
    return await controller.get_timeline(
        viewer_id=None,
        supplier=supplier,
        redis=redis,
        settings=settings,
        algorithm=FeedMode.TRENDING,
        page=page,
        limit=limit,
        hours=hours,
    )
