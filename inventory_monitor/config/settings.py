"""Configuration models using Pydantic."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, RootModel, field_validator
from pydantic_settings import BaseSettings


class TrackedProperties(BaseModel):
    """Properties tracked for one object type.

    ``props`` of None means every property of the type is tracked.
    """

    props: Optional[List[str]] = Field(
        default=None,
        description="Property paths to track, or None for all properties"
    )

    @field_validator("props")
    @classmethod
    def _validate_paths(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        paths: List[str] = []
        for path in value:
            path = path.strip()
            if not path:
                raise ValueError("property paths must be non-empty")
            if path not in paths:
                paths.append(path)
        return paths

    @property
    def all(self) -> bool:
        """Check if every property of the type is tracked."""
        return self.props is None


class PropertyMap(RootModel[Dict[str, TrackedProperties]]):
    """Object types to watch and the property paths tracked for each."""

    def __iter__(self):
        return iter(self.root.items())

    def __contains__(self, type_name: str) -> bool:
        return type_name in self.root

    def __getitem__(self, type_name: str) -> TrackedProperties:
        return self.root[type_name]

    def __len__(self) -> int:
        return len(self.root)

    def copy(self) -> "PropertyMap":
        """Return an independent copy that can be extended safely."""
        return PropertyMap.model_validate(self.model_dump())

    def covers(self, type_name: str, path: str) -> bool:
        """Check if a path, or one of its dotted prefixes, is already tracked."""
        tracked = self.root.get(type_name)
        if tracked is None:
            return False
        if tracked.all:
            return True
        parts = path.split(".")
        return any(
            ".".join(parts[:i]) in tracked.props for i in range(1, len(parts) + 1)
        )

    def add_property(self, type_name: str, path: str) -> bool:
        """Track one more path for an already tracked type.

        Args:
            type_name: Object type the path belongs to
            path: Dotted property path

        Returns:
            True if the path was added, False if the type is not tracked or
            the path is already covered
        """
        if type_name not in self.root or self.covers(type_name, path):
            return False
        self.root[type_name].props.append(path)
        return True


DEFAULT_PROPERTY_MAP = PropertyMap.model_validate({
    "ComputeResource": {"props": ["name", "host", "parent", "resourcePool"]},
    "ClusterComputeResource": {
        "props": ["name", "host", "parent", "resourcePool", "configuration.dasConfig"]
    },
    "Datacenter": {"props": ["name", "hostFolder", "vmFolder", "parent"]},
    "Datastore": {
        "props": [
            "summary.capacity",
            "summary.freeSpace",
            "summary.name",
            "summary.type",
            "summary.url",
            "host",
        ]
    },
    "Folder": {"props": ["name", "childEntity", "parent"]},
    "HostSystem": {
        "props": [
            "name",
            "parent",
            "summary.runtime.connectionState",
            "summary.runtime.powerState",
            "summary.config.product.version",
            "vm",
        ]
    },
    "ResourcePool": {"props": ["name", "parent", "resourcePool", "vm"]},
    "VirtualMachine": {
        "props": [
            "name",
            "parent",
            "resourcePool",
            "config.hardware.device",
            "config.template",
            "config.uuid",
            "runtime.host",
            "runtime.powerState",
            "summary.config.vmPathName",
        ]
    },
})


def extend_for_api_version(property_map: PropertyMap, api_version: str) -> PropertyMap:
    """Return a copy of the map with the paths newer service versions provide.

    Args:
        property_map: Map to extend, left unchanged
        api_version: Dotted API version reported by the service

    Returns:
        Extended copy of the map
    """
    extended = property_map.copy()
    try:
        major = int(api_version.split(".")[0])
    except ValueError:
        return extended
    if major >= 4:
        extended.add_property("VirtualMachine", "runtime.memoryOverhead")
    return extended


class MonitorSettings(BaseSettings):
    """Global monitor configuration settings."""

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log format (json, plain)"
    )

    # Polling configuration
    max_wait: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Seconds the collector may hold each wait-for-updates call"
    )
    update_delay: Optional[float] = Field(
        default=None,
        ge=0,
        description="Seconds to pause after each dispatched batch"
    )
    debug_updates: bool = Field(
        default=False,
        description="Log every property change received"
    )

    # Metrics configuration
    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics"
    )
    metrics_port: int = Field(
        default=8080,
        ge=1024,
        le=65535,
        description="Port for Prometheus metrics server"
    )

    # Health check configuration
    health_port: int = Field(
        default=8081,
        ge=1024,
        le=65535,
        description="Port for health check endpoint"
    )

    class Config:
        """Pydantic configuration."""
        env_prefix = "INVMON_"
        case_sensitive = False
        validate_assignment = True
