"""Incremental update retrieval and decoding."""

import asyncio
import contextlib
from typing import Any, Dict, Iterator, List, Optional, Tuple

import structlog

from ..exceptions import ConnectionLostError, TransportTimeoutError, is_cancellation
from ..types import (
    FilterHandle,
    ManagedObjectRef,
    ObjectUpdate,
    PropertyChange,
    UpdateBatch,
    UpdateKind,
)
from ..utils.collector import PropertyCollectorClient
from ..utils.property_path import flatten
from .liveness import LivenessProbe

ChangedProperties = Dict[str, Any]
DecodedUpdate = Tuple[ManagedObjectRef, Optional[ChangedProperties]]


class ObjectUpdateDecoder:
    """Turns object updates into (object, changed properties) pairs."""

    def __init__(self, debug_updates: bool = False, logger: Any = None) -> None:
        self.debug_updates = debug_updates
        self.logger = logger or structlog.get_logger(__name__)

    def decode(self, update: ObjectUpdate) -> Optional[DecodedUpdate]:
        """Decode one object update.

        Args:
            update: Object update from a filter update

        Returns:
            (obj, properties) for enter and modify, (obj, None) for leave,
            or None if the update kind is not recognized
        """
        if update.kind in (UpdateKind.ENTER, UpdateKind.MODIFY):
            return update.obj, self.changed_properties(update.change_set)
        if update.kind == UpdateKind.LEAVE:
            return update.obj, None

        self.logger.warning(
            "Unrecognized update kind", kind=update.kind, obj=str(update.obj)
        )
        return None

    def changed_properties(
        self, change_set: Optional[List[PropertyChange]]
    ) -> ChangedProperties:
        """Flatten a change set into a path to value map, last write wins."""
        changed: ChangedProperties = {}
        for change in change_set or []:
            if self.debug_updates:
                self._log_change(change)
            changed[change.name] = change.val
        return changed

    def _log_change(self, change: PropertyChange) -> None:
        value = change.val
        if isinstance(value, dict):
            value = dict(flatten(value))
        self.logger.debug(
            "Property change",
            path=change.name,
            op=change.op,
            value_type=type(change.val).__name__,
            value=value,
        )


class IncrementalUpdateFetcher:
    """Performs bounded waits for the next batch of changes on one filter."""

    def __init__(
        self,
        client: PropertyCollectorClient,
        probe: LivenessProbe,
        stop_event: asyncio.Event,
        logger: Any = None,
    ) -> None:
        """Initialize update fetcher.

        Args:
            client: Connected property collector session
            probe: Liveness probe consulted after timeouts
            stop_event: Set when the monitor is asked to stop
            logger: Structured logger, module logger if omitted
        """
        self.client = client
        self.probe = probe
        self.stop_event = stop_event
        self.logger = logger or structlog.get_logger(__name__)
        self.filter_handle: Optional[FilterHandle] = None
        self.timeouts = 0

    async def fetch(self, version: Optional[str], max_wait: int) -> Optional[UpdateBatch]:
        """Wait for the changes that follow a version.

        Timeouts are retried for as long as the session is alive. A
        cancellation, either a stop request or a cancel fault from the
        collector, sets the stop event and returns None.

        Args:
            version: Last version received, None before the first batch
            max_wait: Seconds the collector may hold the call

        Returns:
            The next batch, or None if there is nothing new

        Raises:
            ConnectionLostError: If a wait times out and the session is dead
        """
        while True:
            try:
                self.logger.debug("Waiting for updates", version=version, max_wait=max_wait)
                canceled, batch = await self._wait(version, max_wait)
            except (TransportTimeoutError, asyncio.TimeoutError) as e:
                self.timeouts += 1
                self.logger.info("Wait for updates timed out", version=version)
                if await self.probe.is_alive():
                    continue
                self.logger.warning("Connection lost", version=version)
                raise ConnectionLostError("Session lost while waiting for updates") from e
            except Exception as e:
                if not is_cancellation(e):
                    raise
                canceled, batch = True, None

            if canceled:
                self.logger.info("Wait for updates canceled")
                self.stop_event.set()
                return None

            self.logger.debug(
                "Wait for updates complete",
                version=batch.version if batch else version,
                changed=batch is not None,
            )
            return batch

    async def _wait(
        self, version: Optional[str], max_wait: int
    ) -> Tuple[bool, Optional[UpdateBatch]]:
        """Race the collector call against the stop event."""
        wait_task = asyncio.ensure_future(
            self.client.wait_for_updates_ex(
                self.client.property_collector, version, max_wait
            )
        )
        stop_task = asyncio.ensure_future(self.stop_event.wait())

        try:
            done, _ = await asyncio.wait(
                {wait_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            if not wait_task.done():
                wait_task.cancel()
                # The abandoned call settles before the next wait starts.
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await wait_task

        if wait_task in done:
            return False, wait_task.result()
        return True, None

    def applicable_updates(self, batch: UpdateBatch) -> Iterator[ObjectUpdate]:
        """Yield the object updates that belong to this fetcher's filter."""
        for filter_update in batch.filter_set or []:
            if filter_update.filter != self.filter_handle:
                self.logger.debug(
                    "Skipping updates for foreign filter",
                    objects=len(filter_update.object_set),
                )
                continue
            yield from filter_update.object_set
