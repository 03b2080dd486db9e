"""Feed controller: orchestration layer between router and service."""

from uuid import UUID

from redis.asyncio import Redis

from feedrank.config import Settings
from feedrank.exceptions import GatewayTimeoutError, NotFoundError, UnauthorizedError
from feedrank.feed import service
from feedrank.feed.candidates import FeedMode
from feedrank.feed.exceptions import (
    CandidateFetchError,
    RankingTimeoutError,
    ViewerNotFoundError,
    ViewerRequiredError,
)
from feedrank.feed.schemas import (
    TimelineDebug,
    TimelineItem,
    TimelinePagination,
    TimelineResponse,
)
from feedrank.feed.supplier import CandidateSupplier


async def get_timeline(
    viewer_id: UUID | None,
    supplier: CandidateSupplier,
    redis: Redis,
    settings: Settings,
    algorithm: FeedMode = FeedMode.ALGORITHMIC,
    page: int = 1,
    limit: int = 20,
    hours: int | None = None,
) -> TimelineResponse:
    try:
        result = await service.get_timeline(
            viewer_id=viewer_id,
            supplier=supplier,
            redis=redis,
            mode=algorithm,
            page=page,
            limit=limit,
            hours=hours,
            options=settings.timeline_options(),
        )
    except ViewerRequiredError:
        raise UnauthorizedError()
    except ViewerNotFoundError:
        raise NotFoundError("Viewer")
    except RankingTimeoutError:
        raise GatewayTimeoutError("Timeline ranking timed out.")
    except CandidateFetchError:
        return TimelineResponse(
            items=[],
            pagination=TimelinePagination(page=page, limit=limit, has_more=False),
            algorithm=algorithm,
            error="candidates_unavailable",
        )

    items = [TimelineItem.from_ranked(r) for r in result.items]
    debug = None
    if settings.env_name == "development":
        debug = TimelineDebug(
            total_fetched=result.total_fetched,
            total_ranked=result.total_ranked,
            final_count=len(items),
        )
    return TimelineResponse(
        items=items,
        pagination=TimelinePagination(page=page, limit=limit, has_more=result.has_more),
        algorithm=result.mode,
        debug=debug,
    )
