from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from fastapi import FastAPI
from structlog.stdlib import BoundLogger

from infrastructure.events import (
    register_infrastructure_handlers,
    shutdown_event_executor,
    start_event_executor,
)
from infrastructure.logging.setup import configure_logging
from infrastructure.services import get_engine, get_settings

if TYPE_CHECKING:
    from infrastructure.configuration import Settings


def _get_logger(settings: "Settings") -> BoundLogger:
    return configure_logging(settings=settings)


def _list_configs(settings: "Settings", logger: BoundLogger) -> None:
    config_settings: dict[str, list[object]] = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger = _get_logger(settings)

    app.state.settings = settings
    app.state.logger = logger

    logger.info("application_startup")
    _list_configs(settings, logger)

    register_infrastructure_handlers()
    start_event_executor()

    engine = get_engine()
    app.state.engine = engine

    if settings.server.ENGINE_AUTOSTART:
        engine.start()
    else:
        logger.info("reminder_engine_autostart_disabled")

    yield

    logger.info("application_shutdown")
    engine.close()
    shutdown_event_executor()
