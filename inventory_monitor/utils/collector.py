"""Property collector session interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..types import (
    FilterHandle,
    ManagedObjectRef,
    ObjectContent,
    PropertyFilterSpec,
    UpdateBatch,
)


class PropertyCollectorClient(ABC):
    """Connected session to a property collector service.

    Transports implement the raw RPCs. They raise
    ``TransportTimeoutError`` (or ``asyncio.TimeoutError``) when a read times
    out and ``RequestCanceledError`` when a pending wait is cancelled.
    """

    def __init__(
        self,
        property_collector: ManagedObjectRef,
        root_folder: ManagedObjectRef,
        session_manager: ManagedObjectRef,
    ) -> None:
        """Initialize the client.

        Args:
            property_collector: The collector endpoint
            root_folder: Root of the managed object tree
            session_manager: Object exposing the current session
        """
        self.property_collector = property_collector
        self.root_folder = root_folder
        self.session_manager = session_manager

    @abstractmethod
    async def create_filter(
        self,
        collector: ManagedObjectRef,
        spec: PropertyFilterSpec,
        partial_updates: bool,
    ) -> FilterHandle:
        """Create a server-side filter and return its handle."""

    @abstractmethod
    async def destroy_property_filter(self, handle: FilterHandle) -> None:
        """Release a filter created by create_filter."""

    @abstractmethod
    async def wait_for_updates_ex(
        self,
        collector: ManagedObjectRef,
        version: Optional[str],
        max_wait: int,
    ) -> Optional[UpdateBatch]:
        """Wait up to max_wait seconds for changes newer than version.

        Returns:
            The next batch, or None if nothing changed before max_wait
        """

    @abstractmethod
    async def cancel_wait_for_updates(self, collector: ManagedObjectRef) -> None:
        """Unblock a pending wait_for_updates_ex call."""

    @abstractmethod
    async def retrieve_properties(
        self, collector: ManagedObjectRef, spec: PropertyFilterSpec
    ) -> List[ObjectContent]:
        """Run a one-shot property query."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Log out and close the session."""
