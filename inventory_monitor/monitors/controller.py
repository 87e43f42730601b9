"""Update monitor that subscribes to property changes and dispatches them."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from prometheus_client import Counter, Gauge, Histogram

from ..config import DEFAULT_PROPERTY_MAP, PropertyMap
from ..exceptions import ConnectionLostError
from ..types import FilterHandle, ManagedObjectRef
from ..utils.collector import PropertyCollectorClient
from .filter_spec import build_update_spec
from .liveness import LivenessProbe
from .snapshot import SnapshotFetcher
from .updates import ChangedProperties, IncrementalUpdateFetcher, ObjectUpdateDecoder

# Prometheus metrics
POLLS_TOTAL = Counter(
    "inventory_monitor_polls_total",
    "Total number of wait-for-updates round trips",
    ["status"],
)

POLL_DURATION = Histogram(
    "inventory_monitor_poll_duration_seconds",
    "Time spent waiting for update batches",
)

UPDATES_DISPATCHED = Counter(
    "inventory_monitor_updates_dispatched_total",
    "Total number of object updates dispatched to handlers",
    ["kind"],
)

ACTIVE_MONITORS = Gauge(
    "inventory_monitor_active_monitors", "Number of running update monitors"
)

UpdateHandler = Callable[
    [ManagedObjectRef, Optional[ChangedProperties]], Union[None, Awaitable[None]]
]


class UpdateMonitor:
    """Watches a property collector filter and hands changes to a handler.

    Only one wait for updates is outstanding at a time, and each batch is
    dispatched in order before the next wait starts.
    """

    def __init__(
        self,
        client: PropertyCollectorClient,
        object_set: Any,
        property_map: Optional[PropertyMap] = None,
        max_wait: int = 60,
        update_delay: Optional[float] = None,
        debug_updates: bool = False,
        logger: Any = None,
    ) -> None:
        """Initialize update monitor.

        Args:
            client: Connected property collector session
            object_set: Traversal spec selecting the objects to watch
            property_map: Types and paths to track, a copy of the default map if omitted
            max_wait: Seconds the collector may hold each wait
            update_delay: Seconds to pause after each batch
            debug_updates: Log every property change received
            logger: Structured logger, module logger if omitted
        """
        self.client = client
        self.object_set = object_set
        self.property_map = property_map if property_map is not None else DEFAULT_PROPERTY_MAP.copy()
        self.max_wait = max_wait
        self.update_delay = update_delay
        self.logger = logger or structlog.get_logger(__name__)

        self._stop_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._running = False
        self._scheduled = False
        self._cancel_requested = False
        self._version: Optional[str] = None

        self.snapshots = SnapshotFetcher(client, logger=self.logger)
        self.probe = LivenessProbe(client, self.snapshots, logger=self.logger)
        self.decoder = ObjectUpdateDecoder(debug_updates, logger=self.logger)
        self.fetcher = IncrementalUpdateFetcher(
            client, self.probe, self._stop_event, logger=self.logger
        )

        self._stats = {"polls": 0, "batches": 0, "dispatched": 0, "skipped": 0}

        self.logger.info(
            "Initialized update monitor",
            tracked_types=len(self.property_map),
            max_wait=max_wait,
            update_delay=update_delay,
        )

    @property
    def is_running(self) -> bool:
        """Check if the monitoring loop is active."""
        return self._running

    @property
    def filter_handle(self) -> Optional[FilterHandle]:
        """Handle of the active server-side filter, if any."""
        return self.fetcher.filter_handle

    async def start(self, handler: UpdateHandler) -> asyncio.Task:
        """Start monitoring in a background task.

        Args:
            handler: Called with (obj, changed properties or None) per update

        Returns:
            The task running the monitor
        """
        if self._monitor_task is not None and not self._monitor_task.done():
            self.logger.warning("Update monitor already started")
            return self._monitor_task

        # Stops requested from here on apply to the scheduled run.
        self._reset()
        self._scheduled = True
        self._monitor_task = asyncio.create_task(self.monitor(handler))
        return self._monitor_task

    def _reset(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._cancel_requested = False

    async def monitor(self, handler: UpdateHandler) -> None:
        """Subscribe to updates and dispatch them until stopped.

        Called directly it begins a fresh run; through start() it honours
        any stop requested since start() returned.

        Args:
            handler: Called with (obj, changed properties or None) per update

        Raises:
            ConnectionLostError: If the session dies while waiting
        """
        if not self._scheduled:
            self._reset()
        self._scheduled = False
        self._running = True
        ACTIVE_MONITORS.inc()

        try:
            spec = build_update_spec(self.property_map, self.object_set)
            self.fetcher.filter_handle = await self.client.create_filter(
                self.client.property_collector, spec, True
            )
            self.logger.info("Created property filter", tracked_types=len(spec.prop_set))

            self._version = None
            while not self._stop_event.is_set():
                version = await self._do_update(self._version, handler)
                if version is None:
                    continue
                self._version = version
                if self.update_delay:
                    await self._pause(self.update_delay)

        except KeyboardInterrupt:
            self.logger.info("Update monitor interrupted")
        except ConnectionLostError as e:
            self.logger.error("Update monitor lost its session", error=str(e))
            raise
        except Exception as e:
            self.logger.exception("Error in update monitor", error=str(e))
            raise
        finally:
            self._running = False
            ACTIVE_MONITORS.dec()
            await self._cleanup()

        self.logger.info("Update monitor stopped", version=self._version)

    async def _do_update(
        self, version: Optional[str], handler: UpdateHandler
    ) -> Optional[str]:
        """Fetch one batch and dispatch it.

        Returns:
            The version to carry forward, or None if nothing was received
        """
        self._stats["polls"] += 1
        with POLL_DURATION.time():
            batch = await self.fetcher.fetch(version, self.max_wait)

        if batch is None:
            status = "canceled" if self._stop_event.is_set() else "no_change"
            POLLS_TOTAL.labels(status=status).inc()
            return None

        POLLS_TOTAL.labels(status="updates").inc()
        self._stats["batches"] += 1

        for update in self.fetcher.applicable_updates(batch):
            decoded = self.decoder.decode(update)
            if decoded is None:
                self._stats["skipped"] += 1
                continue

            result = handler(*decoded)
            if inspect.isawaitable(result):
                await result
            self._stats["dispatched"] += 1
            UPDATES_DISPATCHED.labels(kind=update.kind).inc()

        return batch.version if batch.version is not None else version

    async def _pause(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _cleanup(self) -> None:
        """Release the filter and close the session if it is still usable."""
        handle = self.fetcher.filter_handle
        self.fetcher.filter_handle = None

        if not await self.probe.is_alive():
            self.logger.info("Session not alive, skipping cleanup")
            return

        if handle is not None:
            try:
                await self.client.destroy_property_filter(handle)
                self.logger.info("Destroyed property filter")
            except Exception as e:
                self.logger.warning("Failed to destroy property filter", error=str(e))

        try:
            await self.client.disconnect()
            self.logger.info("Disconnected session")
        except Exception as e:
            self.logger.warning("Failed to disconnect session", error=str(e))

    async def stop(self) -> None:
        """Ask the monitor to stop and unblock any pending wait.

        Safe to call more than once, and after the monitor has exited.
        """
        self._stop_event.set()

        if not self._running or self._cancel_requested:
            self.logger.debug("Update monitor not running, nothing to cancel")
            return

        self._cancel_requested = True
        self.logger.info("Stopping update monitor")
        try:
            await self.client.cancel_wait_for_updates(self.client.property_collector)
        except Exception as e:
            self.logger.warning("Failed to cancel wait for updates", error=str(e))

    def stop_threadsafe(self) -> None:
        """Request a stop from another thread or a signal handler."""
        if self._loop is None or self._loop.is_closed():
            # No loop has run this monitor, so nothing waits on the event.
            self._stop_event.set()
            return
        asyncio.run_coroutine_threadsafe(self.stop(), self._loop)

    async def is_alive(self) -> bool:
        """Check if the monitor's session is still usable."""
        return await self.probe.is_alive()

    async def fetch_snapshot(self, obj: ManagedObjectRef) -> Optional[dict]:
        """Fetch all current properties of one object as a nested tree."""
        return await self.snapshots.fetch(obj)

    def get_stats(self) -> dict[str, Any]:
        """Get monitoring statistics.

        Returns:
            Dictionary with monitoring statistics
        """
        return {
            **self._stats,
            "timeouts": self.fetcher.timeouts,
            "running": self._running,
            "alive": self.probe.alive,
            "version": self._version,
        }
