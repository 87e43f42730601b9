"""Entry point wiring settings, logging, metrics and health around a monitor."""

import asyncio
import signal
from typing import Any, Optional

from prometheus_client import start_http_server

from . import __version__
from .config import DEFAULT_PROPERTY_MAP, MonitorSettings, PropertyMap
from .monitors import UpdateMonitor
from .monitors.controller import UpdateHandler
from .utils import (
    PropertyCollectorClient,
    setup_logging,
    start_health_server,
    stop_health_server,
)


def build_monitor(
    client: PropertyCollectorClient,
    object_set: Any,
    settings: MonitorSettings,
    property_map: Optional[PropertyMap] = None,
    logger: Any = None,
) -> UpdateMonitor:
    """Create an update monitor configured from settings."""
    return UpdateMonitor(
        client,
        object_set,
        property_map=property_map or DEFAULT_PROPERTY_MAP.copy(),
        max_wait=settings.max_wait,
        update_delay=settings.update_delay,
        debug_updates=settings.debug_updates,
        logger=logger,
    )


async def run(
    client: PropertyCollectorClient,
    object_set: Any,
    handler: UpdateHandler,
    settings: Optional[MonitorSettings] = None,
    property_map: Optional[PropertyMap] = None,
) -> None:
    """Monitor updates until a stop signal arrives or the session is lost.

    SIGINT and SIGTERM request a graceful stop.

    Args:
        client: Connected property collector session
        object_set: Traversal spec selecting the objects to watch
        handler: Called with (obj, changed properties or None) per update
        settings: Monitor settings, read from the environment if omitted
        property_map: Types and paths to track, the default map if omitted
    """
    settings = settings or MonitorSettings()
    logger = setup_logging(settings.log_level, settings.log_format)
    logger.info("Starting inventory monitor", version=__version__)

    monitor = build_monitor(client, object_set, settings, property_map, logger)

    if settings.metrics_enabled:
        start_http_server(settings.metrics_port)
        logger.info("Started Prometheus metrics server", port=settings.metrics_port)

    await start_health_server(settings.health_port, monitor)
    logger.info("Started health check server", port=settings.health_port)

    task = await monitor.start(handler)
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, monitor.stop_threadsafe)

    try:
        await task
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)
        await stop_health_server()
        logger.info("Inventory monitor shut down")
