from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel
from craftlink.api.routers import cur_version, public_routers
from craftlink.auth.services import AuthService
from craftlink.auth.tokens import TokenIssuer
from craftlink.background_workers.cleanup_worker import ExpiryCleanupWorker
from craftlink.common.custom_exceptions import register_all_exceptions
from craftlink.common.logging_setup import get_logger, setup_logging, shutdown_logging
from craftlink.config.settings import Settings, config_settings
from craftlink.db.connection import build_engine, build_session_factory
from craftlink.db.store import RecordStore
from craftlink.middlewares.rate_limit_middleware import RateLimitMiddleware
from craftlink.middlewares.request_id_middleware import RequestIdMiddleware
from craftlink.rate_limiting.limiter import FixedWindowRateLimiter
from craftlink.schema import full_schema  # noqa: F401  registers tables on SQLModel.metadata

logger = get_logger("craftlink.app")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or config_settings

    engine = build_engine(settings.DATABASE_URL)
    store = RecordStore(build_session_factory(engine))
    auth_service = AuthService(store, TokenIssuer(settings), settings)
    limiter = FixedWindowRateLimiter(sweep_interval=settings.RATE_LIMIT_SWEEP_SECONDS)
    cleanup_worker = ExpiryCleanupWorker(auth_service, interval=settings.CLEANUP_INTERVAL_SECONDS)

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        setup_logging(settings)
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        limiter.start()
        cleanup_worker.start()
        logger.info("app.started", extra={"env": settings.ENV, "version": cur_version})

        try:
            yield
        finally:
            # new requests are no longer accepted at this point
            await cleanup_worker.stop()
            await limiter.stop()
            await engine.dispose()
            logger.info("app.stopped")
            shutdown_logging()

    app = FastAPI(
        title="Craftlink",
        version=cur_version,
        lifespan=app_lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.auth_service = auth_service
    app.state.rate_limiter = limiter
    app.state.cleanup_worker = cleanup_worker

    app.include_router(public_routers, prefix=settings.API_PREFIX)

    app.add_middleware(RateLimitMiddleware, limiter=limiter,
                       limit=settings.RATE_LIMIT_MAX, window=settings.RATE_LIMIT_WINDOW_SECONDS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
