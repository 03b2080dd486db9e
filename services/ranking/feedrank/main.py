import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedrank.database import dispose_db, get_redis_client, init_db
from feedrank.dependencies import get_settings
from feedrank.feed.router import router as timeline_router
from feedrank.middleware import (
    error_envelope_middleware,
    request_id_middleware,
    timing_middleware,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")

# Swagger tag groups displayed in the OpenAPI docs sidebar
_OPENAPI_TAGS = [
    {
        "name": "Timeline",
        "description": (
            "Personalised timelines. `algorithmic` blends recency, engagement, "
            "author affinity, virality and author diversity; `chronological` is "
            "newest-first from followed authors; `trending` ranks recent posts by "
            "engagement velocity and is available anonymously."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness probe.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db(settings.ranking_database_url)
    app.state.redis = get_redis_client(settings.redis_url)

    yield

    await app.state.redis.aclose()
    await dispose_db()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Feedrank Ranking Service",
        description=(
            "Read-only ranking service that turns a viewer's social graph, "
            "interaction history and recent posts into a ranked timeline page."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=_OPENAPI_TAGS,
        lifespan=lifespan,
    )

    # CORS must be registered first (runs last in middleware stack)
    # so that preflight OPTIONS requests get CORS headers before any auth check.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
        max_age=600,
    )
    # Registered innermost first: error envelope wraps request id wraps timing.
    app.middleware("http")(timing_middleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)

    app.include_router(timeline_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        """Lightweight liveness probe. Does not hit the database."""
        return {"status": "ok", "service": "ranking"}

    return app


app = create_app()
