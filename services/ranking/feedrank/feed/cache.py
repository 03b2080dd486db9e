"""Redis cache helpers for the feed domain.

Key schema
----------
feed:{viewer_id}:affinity:{variant}   JSON object   TTL from settings   author_id → weight

``variant`` is "decay" or "flat" so toggling interaction decay never serves a
map computed under the other rule. Redis errors are logged and treated as a
cache miss; ranking never fails because the cache is down.
"""

import json
import logging
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_DEFAULT_AFFINITY_TTL_S: int = 60


def _affinity_key(viewer_id: UUID, decayed: bool) -> str:
    return f"feed:{viewer_id}:affinity:{'decay' if decayed else 'flat'}"


async def get_affinity_map(
    viewer_id: UUID, decayed: bool, redis: Redis
) -> dict[UUID, float] | None:
    """Return the cached author → weight map, or None on miss."""
    try:
        val = await redis.get(_affinity_key(viewer_id, decayed))
    except RedisError as exc:
        logger.warning("Affinity cache read failed for viewer %s: %s", viewer_id, exc)
        return None
    if val is None:
        return None
    try:
        raw = json.loads(val)
        return {UUID(author_id): float(weight) for author_id, weight in raw.items()}
    except (ValueError, AttributeError) as exc:
        logger.warning("Discarding malformed affinity cache entry for viewer %s: %s", viewer_id, exc)
        return None


async def set_affinity_map(
    viewer_id: UUID,
    decayed: bool,
    weights: dict[UUID, float],
    redis: Redis,
    ttl_s: int = _DEFAULT_AFFINITY_TTL_S,
) -> None:
    payload = json.dumps({str(author_id): weight for author_id, weight in weights.items()})
    try:
        await redis.setex(_affinity_key(viewer_id, decayed), ttl_s, payload)
    except RedisError as exc:
        logger.warning("Affinity cache write failed for viewer %s: %s", viewer_id, exc)
