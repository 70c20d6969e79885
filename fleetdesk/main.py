# FleetDesk - Main Application
# FastAPI application factory and startup

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleetdesk import __version__
from fleetdesk.config import get_settings
from fleetdesk.database import check_connection
from fleetdesk.logging import configure_logging, get_logger
from fleetdesk.services.subscriptions import PollingSubscription
from fleetdesk.services.time_entry import run_scheduled_checks


settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Verifies the database on startup and, when sweep_interval_seconds is
    set, runs the long-running entry checks in the background until
    shutdown.
    """
    configure_logging(settings.log_level, json=settings.log_json)
    logger.info("startup", app=settings.app_name, version=__version__)

    try:
        check_connection()
        logger.info("database_connection_ok")
    except Exception as e:
        logger.error("database_connection_failed", error=str(e))
        if not settings.debug:
            raise

    sweep = None
    if settings.sweep_interval_seconds > 0:
        sweep = PollingSubscription(
            "long_running_entries",
            run_scheduled_checks,
            settings.sweep_interval_seconds,
        )
        sweep.start()
    app.state.sweep = sweep

    yield

    if sweep is not None:
        await sweep.stop()
    logger.info("shutdown", app=settings.app_name)


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Time tracking, project allocation and driving journal",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    from fleetdesk.routes import ROUTERS, register_error_handlers
    register_error_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    def health_check():
        """Health check endpoint for monitoring."""
        try:
            check_connection()
            db_status = "healthy"
        except Exception as e:
            db_status = f"unhealthy: {e}"

        return {
            "status": "ok",
            "app": settings.app_name,
            "version": __version__,
            "database": db_status,
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fleetdesk.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug,
    )
