"""Session liveness checks."""

from typing import Any

import structlog

from ..utils.collector import PropertyCollectorClient
from .snapshot import SnapshotFetcher

CURRENT_SESSION = "currentSession"


class LivenessProbe:
    """Tracks whether the session behind a monitor can still be used.

    Once a probe fails the session is considered dead for good; a new
    session needs a new probe.
    """

    def __init__(
        self,
        client: PropertyCollectorClient,
        snapshots: SnapshotFetcher,
        logger: Any = None,
    ) -> None:
        self.client = client
        self.snapshots = snapshots
        self.logger = logger or structlog.get_logger(__name__)
        self._alive = True

    @property
    def alive(self) -> bool:
        """Last known liveness, without querying the service."""
        return self._alive

    async def is_alive(self) -> bool:
        """Check that the current session still exists.

        Returns:
            False if the session is gone or the service cannot be reached
        """
        if not self._alive:
            return False

        try:
            session = await self.snapshots.fetch(
                self.client.session_manager, CURRENT_SESSION
            )
            if not session or session.get(CURRENT_SESSION) is None:
                self.logger.info("Current session no longer exists")
                self._alive = False
        except Exception as e:
            self.logger.info("Could not access connection", error=str(e))
            self._alive = False

        return self._alive
