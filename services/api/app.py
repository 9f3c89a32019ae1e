"""
CarHub API - FastAPI application factory.

The lifespan builds one instance of every component (store, topic router,
fan-out engine, services, analytics engine, scheduler) and hangs them on
app.state. Shutdown stops the periodic jobs before closing connections.

Usage:
    app = create_app()                          # MongoDB from config
    app = create_app(store=FakeStore(), enable_scheduler=False)
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.accounts import AccountService
from core.analytics import AnalyticsEngine
from core.auth import TokenAuthenticator
from core.config import config
from core.database import close_db, get_db
from core.errors import (
    AuthenticationError,
    ConflictError,
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from core.jobs import NotificationJobs
from core.listings import ListingService
from core.logging import get_logger
from core.messages import MessageService
from core.models.common import utc_now
from core.realtime import EventFanOut, TopicRouter
from core.scheduler import Scheduler
from core.search import SearchService
from core.store import EntityStore, MongoEntityStore
from core.thresholds import DEFAULT_THRESHOLDS, Thresholds
from services.api.routes import auth, listings, messages, realtime, vendors

logger = get_logger("api")

ERROR_STATUS = {
    NotFoundError: 404,
    PermissionDeniedError: 403,
    AuthenticationError: 401,
    ConflictError: 409,
    StoreUnavailableError: 503,
}


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error_type": type(exc).__name__, "error": str(exc)},
        )
    return JSONResponse(status_code=status_code, content={"message": str(exc)})


def create_app(
    store: Optional[EntityStore] = None,
    authenticator: Optional[TokenAuthenticator] = None,
    enable_scheduler: Optional[bool] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Entity store (defaults to MongoDB from config)
        authenticator: Bearer token authenticator (defaults to config secret)
        enable_scheduler: Start the periodic jobs (defaults to config)
        thresholds: Business limits shared by fan-out and analytics
        clock: Time source for services and analytics

    Returns:
        FastAPI application
    """
    authenticator = authenticator or TokenAuthenticator()
    if enable_scheduler is None:
        enable_scheduler = config.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        entity_store = store
        if entity_store is None:
            entity_store = MongoEntityStore(get_db())
            try:
                await entity_store.ensure_indexes()
            except StoreUnavailableError:
                logger.error("Could not ensure indexes; continuing without them", exc_info=True)

        topics = TopicRouter(authenticator)
        fanout = EventFanOut(topics, thresholds)
        search = SearchService(entity_store)
        analytics = AnalyticsEngine(entity_store, thresholds, clock)
        scheduler = Scheduler()
        NotificationJobs(analytics, fanout).register(scheduler)

        app.state.store = entity_store
        app.state.authenticator = authenticator
        app.state.router = topics
        app.state.fanout = fanout
        app.state.search = search
        app.state.listings = ListingService(entity_store, fanout, search, clock)
        app.state.messages = MessageService(entity_store, fanout, clock)
        app.state.accounts = AccountService(entity_store, authenticator)
        app.state.analytics = analytics
        app.state.scheduler = scheduler

        if enable_scheduler:
            scheduler.start_all()
        logger.info("CarHub API started", extra={"scheduler": enable_scheduler})
        yield

        await scheduler.shutdown()
        await topics.close()
        if store is None:
            await close_db()
        logger.info("CarHub API stopped")

    app = FastAPI(title="CarHub API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)

    app.include_router(auth.router)
    app.include_router(listings.router)
    app.include_router(vendors.router)
    app.include_router(messages.router)
    app.include_router(realtime.router)

    @app.get("/api/ping")
    async def ping(request: Request):
        return {
            "message": "pong",
            "timestamp": utc_now().isoformat(),
            "connections": request.app.state.router.connection_count,
        }

    return app
