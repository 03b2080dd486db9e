from functools import lru_cache
from uuid import UUID

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis

from feedrank.config import Settings
from feedrank.database import get_session_factory
from feedrank.feed.supplier import CandidateSupplier, SqlCandidateSupplier

_bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def _decode_subject(token: str, settings: Settings) -> UUID:
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    return UUID(payload["sub"])


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_settings),
) -> UUID | None:
    """Returns viewer_id if a valid JWT is present, None for anonymous requests."""
    if credentials is None:
        return None
    try:
        return _decode_subject(credentials.credentials, settings)
    except (jwt.PyJWTError, KeyError, ValueError):
        return None


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_supplier() -> CandidateSupplier:
    return SqlCandidateSupplier(get_session_factory())
