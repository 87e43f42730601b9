"""Health check utilities for the update monitor."""

from typing import Optional
from datetime import datetime, timezone

from aiohttp import web
import structlog
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .. import __version__


logger = structlog.get_logger(__name__)


class HealthCheckServer:
    """HTTP server for health checks and monitor status."""

    def __init__(self, port: int = 8081, monitor=None) -> None:
        """Initialize health check server.

        Args:
            port: Port to listen on
            monitor: Update monitor to report on
        """
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._startup_time = datetime.now(timezone.utc)
        self._monitor = monitor

        # Setup routes
        self.app.router.add_get('/healthz', self._health_handler)
        self.app.router.add_get('/readyz', self._readiness_handler)
        self.app.router.add_get('/stats', self._stats_handler)
        self.app.router.add_get('/metrics', self._metrics_handler)

        logger.info("Initialized HealthCheckServer", port=port)

    async def start(self) -> None:
        """Start the health check server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, '0.0.0.0', self.port)
        await self.site.start()

        logger.info("Health check server started", port=self.port)

    async def stop(self) -> None:
        """Stop the health check server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Health check server stopped")

    def _uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self._startup_time).total_seconds()

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle liveness requests, healthy while the session is alive."""
        alive = True
        if self._monitor is not None:
            alive = await self._monitor.is_alive()

        health_data = {
            "status": "healthy" if alive else "session_lost",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": self._uptime_seconds(),
            "version": __version__
        }

        return web.json_response(health_data, status=200 if alive else 503)

    async def _readiness_handler(self, request: web.Request) -> web.Response:
        """Handle readiness requests, ready while the monitor loop runs."""
        checks = {}

        if self._monitor is None:
            checks["update_monitor"] = "not_available"
        elif not self._monitor.is_running:
            checks["update_monitor"] = "stopped"
        else:
            checks["update_monitor"] = "running"

        ready = checks["update_monitor"] == "running"
        response_data = {
            "status": "ready" if ready else "not_ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks
        }

        return web.json_response(response_data, status=200 if ready else 503)

    async def _stats_handler(self, request: web.Request) -> web.Response:
        """Handle statistics requests."""
        stats = {
            "service": {
                "uptime_seconds": self._uptime_seconds(),
                "startup_time": self._startup_time.isoformat(),
                "version": __version__
            }
        }

        if self._monitor is not None:
            try:
                stats["monitor"] = self._monitor.get_stats()
            except Exception as e:
                logger.warning("Failed to get monitor stats", error=str(e))
                stats["monitor"] = {"error": str(e)}

        return web.json_response(stats)

    async def _metrics_handler(self, request: web.Request) -> web.Response:
        """Handle Prometheus metrics exposition."""
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST}
        )


# Global health check server instance
_health_server: Optional[HealthCheckServer] = None


async def start_health_server(port: int = 8081, monitor=None) -> HealthCheckServer:
    """Start the global health check server.

    Args:
        port: Port to listen on
        monitor: Update monitor to report on

    Returns:
        HealthCheckServer instance
    """
    global _health_server

    if _health_server is not None:
        logger.warning("Health server already started")
        return _health_server

    _health_server = HealthCheckServer(port, monitor)
    await _health_server.start()
    return _health_server


async def stop_health_server() -> None:
    """Stop the global health check server."""
    global _health_server

    if _health_server is not None:
        await _health_server.stop()
        _health_server = None
