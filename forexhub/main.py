# forexhub/main.py
"""
FastAPI application for the forex content marketplace.

Blog (posts, categories, comments, SEO), download catalog (EAs,
indicators, reviews) and reader engagement (analytics, newsletter),
served from whichever store the StorageSelector has active: PostgreSQL
when reachable, the in-process volatile store otherwise.
"""

import logging
from contextlib import asynccontextmanager

from cachetools import TTLCache
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from forexhub.auth import AuthConfig
from forexhub.config import Settings, get_settings
from forexhub.logging_config import configure_logging
from forexhub.routers import (
    analytics_admin_router,
    analytics_router,
    categories_admin_router,
    categories_router,
    comments_admin_router,
    comments_router,
    downloads_admin_router,
    downloads_router,
    health_router,
    newsletter_admin_router,
    newsletter_router,
    posts_admin_router,
    posts_router,
    users_admin_router,
    users_router,
)
from forexhub.storage.errors import NotFoundError, StoreUnavailableError
from forexhub.storage.errors import ValidationError as StorageValidationError
from forexhub.storage.factory import build_storage_selector
from forexhub.storage.reconciler import BackgroundReconciler
from forexhub.storage.refresh import StorageRefreshHook, StorageRefreshMiddleware
from forexhub.storage.seed import seed_default_categories
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, selector: StorageSelector | None = None) -> FastAPI:
    """
    Build the application.

    Tests pass their own selector (fake prober, in-memory durable adapter);
    production builds one from settings.
    """
    settings = settings or get_settings()
    selector = selector or build_storage_selector(settings)
    reconciler = BackgroundReconciler(selector, interval_seconds=settings.RECONCILE_INTERVAL_SECONDS)
    hook = StorageRefreshHook(selector, min_interval_seconds=settings.REQUEST_RECONCILE_MIN_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
        logger.info(
            f"Starting ForexHub API ({settings.ENVIRONMENT})",
            extra={"event": "app_starting"},
        )

        if settings.SEED_VOLATILE_STORE:
            await seed_default_categories(selector.volatile)

        await selector.start()
        reconciler.start()

        yield

        logger.info("Shutting down ForexHub API", extra={"event": "app_stopping"})
        await reconciler.stop()
        await selector.close()

    app = FastAPI(
        title="ForexHub API",
        description="Forex blog and Expert Advisor download catalog with dual-mode persistence",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.storage_selector = selector
    app.state.auth_config = AuthConfig.from_settings(settings)
    app.state.read_cache = TTLCache(maxsize=32, ttl=60)
    app.state.reconciler = reconciler

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "X-API-Key"],
            expose_headers=["X-Storage-Mode"],
        )
    app.add_middleware(StorageRefreshMiddleware, hook=hook)

    @app.exception_handler(StorageValidationError)
    async def handle_validation_error(request: Request, exc: StorageValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        # Writes are not replayed on the volatile store; the client retries.
        request.app.state.storage_selector.note_unavailable(exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Storage temporarily unavailable, retry shortly"},
            headers={"Retry-After": "5"},
        )

    app.include_router(health_router)
    app.include_router(posts_router)
    app.include_router(posts_admin_router)
    app.include_router(downloads_router)
    app.include_router(downloads_admin_router)
    app.include_router(categories_router)
    app.include_router(categories_admin_router)
    app.include_router(comments_router)
    app.include_router(comments_admin_router)
    app.include_router(users_router)
    app.include_router(users_admin_router)
    app.include_router(analytics_router)
    app.include_router(analytics_admin_router)
    app.include_router(newsletter_router)
    app.include_router(newsletter_admin_router)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("forexhub.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
