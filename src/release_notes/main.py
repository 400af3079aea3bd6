"""FastAPI application serving reduced release notes.

Routes:
- GET /{org}/{repo}?tag=... - Release notes for the latest release or a tag
- GET /force/{org}/{repo}?tag=... - Re-fetch a release into the cache
- GET /health - Health check for load balancers and monitoring

A missing `tag` parameter, or the literal "latest", selects the latest
release.

Architecture notes:
- FastAPI handles HTTP concerns (routing, serialization, status codes)
- CacheCoordinator owns the cache and the fetch pipeline
- One coordinator is created per application in the lifespan handler

To run locally:
    uvicorn release_notes.main:app --reload --port 4200
or:
    release-notes serve
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from release_notes import __version__
from release_notes.cache import CacheCoordinator
from release_notes.config import Settings, load_settings
from release_notes.errors import UpstreamError, UpstreamNotFound
from release_notes.logging_config import get_logger, setup_logging
from release_notes.schemas import ReleaseRecord, TagSelector
from release_notes.upstream.github import GitHubReleaseFetcher

logger = get_logger(__name__)


def build_coordinator(settings: Settings) -> CacheCoordinator:
    """Create the coordinator and its GitHub fetcher from settings."""
    fetcher = GitHubReleaseFetcher(
        token=settings.github_token,
        base_url=settings.github_api_url,
        timeout=settings.request_timeout,
    )
    return CacheCoordinator(fetcher=fetcher, capacity=settings.cache_capacity)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = time.time() - start
        response.headers["X-Process-Time"] = f"{duration:.2f}s"
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 3),
        )
        return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


async def get_release_notes(
    org: str,
    repo: str,
    request: Request,
    tag: str | None = None,
) -> ReleaseRecord:
    """Return the release notes for a repository's latest release or a tag.

    Served from the cache when a matching record is present. Any upstream
    failure, not-found or otherwise, is reported as 404.
    """
    coordinator: CacheCoordinator = request.app.state.coordinator
    selector = TagSelector.from_query(tag)
    try:
        return await coordinator.get(org, repo, selector)
    except UpstreamError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


async def force_refresh(
    org: str,
    repo: str,
    request: Request,
    tag: str | None = None,
) -> Response:
    """Re-fetch a release and cache it, bypassing any cached record.

    The body is always empty: 200 on success, 404 when the release does not
    exist upstream, 500 for any other failure.
    """
    coordinator: CacheCoordinator = request.app.state.coordinator
    selector = TagSelector.from_query(tag)
    try:
        await coordinator.force_refresh(org, repo, selector)
    except UpstreamNotFound:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    except Exception as e:
        logger.error(
            "force_refresh_failed",
            org=org,
            repo=repo,
            tag=str(selector),
            error=str(e),
        )
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(status_code=status.HTTP_200_OK)


async def general_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error"},
    )


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    coordinator: CacheCoordinator | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Service settings. Loaded from the environment at startup
                  if not provided.
        coordinator: A ready-made coordinator (tests pass one backed by
                     MockReleaseFetcher). Built from settings if not provided.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if app.state.coordinator is None:
            resolved = settings or load_settings()
            setup_logging(environment=resolved.environment, log_level=resolved.log_level)
            app.state.coordinator = build_coordinator(resolved)
            logger.info(
                "service_started",
                cache_capacity=resolved.cache_capacity,
                authenticated=bool(resolved.github_token),
            )
        yield

    app = FastAPI(
        title="Release Notes",
        description="Reduced, cached GitHub release notes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(Exception, general_error_handler)

    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route(
        "/force/{org}/{repo}",
        force_refresh,
        methods=["GET"],
        response_class=Response,
    )
    app.add_api_route(
        "/{org}/{repo}",
        get_release_notes,
        methods=["GET"],
        response_model=ReleaseRecord,
    )
    return app


app = create_app()
