"""FastAPI application for the configuration engine.

Route handlers live in separate modules under api/routes/.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from temporal_config.api.state import get_state, reset_state
from temporal_config.constants import VERSION
from temporal_config.services.config_service import ConfigService

logger = logging.getLogger(__name__)


def configure_logging(
    log_level: str,
    log_file: Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Configure logging for the server.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path; logs go to stderr otherwise.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.
    """
    from logging.handlers import RotatingFileHandler

    level = getattr(logging, log_level.upper(), logging.INFO)

    app_logger = logging.getLogger("temporal_config")
    app_logger.setLevel(level)

    # Uvicorn configures the root logger before lifespan runs
    app_logger.propagate = False
    app_logger.handlers.clear()

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if level == logging.DEBUG:
        logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    if level == logging.DEBUG:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    handler: logging.Handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        # Uvicorn tracebacks end up in the same rotated file
        logging.getLogger("uvicorn.error").addHandler(handler)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    app_logger.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the shared service on shutdown."""
    state = get_state()
    if state.service is not None:
        logger.info(f"Configuration API ready (store: {state.service.store.db_path})")
    yield
    logger.info("Shutting down configuration API")
    reset_state()


def create_app(
    service: ConfigService | None = None,
    db_path: Path | None = None,
    admin_role: str | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        service: Existing service to serve; one is opened on ``db_path`` otherwise.
        db_path: Database file used when no service is given.
        admin_role: Role header value required for writes.

    Returns:
        Configured FastAPI application.
    """
    from temporal_config.api.routes import admin, history, rollback, rules, settings, snapshots
    from temporal_config.config.settings import api_settings

    state = get_state()
    state.service = service or ConfigService(db_path=db_path)
    state.admin_role = admin_role or api_settings.admin_role

    app = FastAPI(
        title="temporal-config",
        description="Scoped, effective-dated configuration with rollback",
        version=VERSION,
        lifespan=lifespan,
    )

    app.include_router(admin.router)
    app.include_router(settings.router)
    app.include_router(rules.router)
    app.include_router(history.router)
    app.include_router(rollback.router)
    app.include_router(snapshots.router)

    return app
