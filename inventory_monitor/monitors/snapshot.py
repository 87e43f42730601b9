"""One-shot property snapshots for single managed objects."""

from typing import Any, Dict, Optional

import structlog

from ..types import ManagedObjectRef
from ..utils.collector import PropertyCollectorClient
from ..utils.property_path import materialize
from .filter_spec import build_object_spec


class SnapshotFetcher:
    """Retrieves the current properties of one object as a nested tree."""

    def __init__(self, client: PropertyCollectorClient, logger: Any = None) -> None:
        """Initialize snapshot fetcher.

        Args:
            client: Connected property collector session
            logger: Structured logger, module logger if omitted
        """
        self.client = client
        self.logger = logger or structlog.get_logger(__name__)

    async def fetch(
        self, obj: ManagedObjectRef, path: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Fetch a snapshot of an object's properties.

        Args:
            obj: Object to query
            path: Single property path to fetch, all properties if omitted

        Returns:
            Materialized property tree, or None if the object returned no properties

        Raises:
            MaterializationError: If the returned paths are inconsistent
        """
        spec = build_object_spec(obj, path)
        contents = await self.client.retrieve_properties(
            self.client.property_collector, spec
        )

        if not contents or not contents[0].prop_set:
            self.logger.debug("No properties returned", obj=str(obj), path=path)
            return None

        snapshot = materialize((prop.name, prop.val) for prop in contents[0].prop_set)

        self.logger.debug(
            "Fetched object snapshot",
            obj=str(obj),
            path=path,
            properties=len(contents[0].prop_set),
        )
        return snapshot
