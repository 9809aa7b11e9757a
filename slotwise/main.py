"""
Slotwise - appointment booking and lifecycle engine.
Main FastAPI application entry point.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slotwise.config import APP_VERSION, get_settings
from slotwise.api.router import api_router
from slotwise.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("slotwise")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


def _init_sentry(settings) -> None:
    if not settings.sentry_dsn:
        return
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            environment=settings.app_env,
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.warning("Sentry initialization failed: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Slotwise starting up (env=%s, timezone=%s)", settings.app_env, settings.app_timezone)

    _init_sentry(settings)

    scheduler = None
    dispatcher_task = None

    if settings.sweeps_enabled:
        # Undo any wrong auto-missed transitions before the periodic sweeps start
        from slotwise.workers.recovery_sweep import restore_future_appointments
        try:
            restored = await restore_future_appointments()
            logger.info("Startup recovery sweep restored %d appointments", restored)
        except Exception as e:
            logger.error("Startup recovery sweep failed: %s", str(e), exc_info=True)

        from slotwise.services.notifier import get_notifier
        dispatcher_task = asyncio.create_task(get_notifier().run_dispatcher())

        from slotwise.workers.lifecycle import build_lifecycle_scheduler
        scheduler = build_lifecycle_scheduler(jitter_seconds=settings.scheduler_jitter_seconds)
        scheduler.start()
        logger.info("Lifecycle sweeps started: %s", ", ".join(scheduler.tasks))
    else:
        logger.info("Lifecycle sweeps disabled (SWEEPS_ENABLED=false)")

    yield

    # Shutdown does not drain in-flight sweeps or queued notifications
    logger.info("Slotwise shutting down")
    if scheduler is not None:
        await scheduler.stop()
    if dispatcher_task is not None:
        dispatcher_task.cancel()
        await asyncio.gather(dispatcher_task, return_exceptions=True)

    from slotwise.utils.redis_client import close_redis
    from slotwise.database import dispose_engine
    await close_redis()
    await dispose_engine()
    logger.info("Slotwise shutdown complete")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Slotwise",
        description="Appointment booking and lifecycle engine",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[*settings.cors_origins, settings.app_base_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
