"""Property collector data types exchanged with the transport."""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional


# Opaque token returned by the collector when a filter is created.
FilterHandle = Hashable


class UpdateKind:
    """Kinds of object updates reported by the property collector."""

    ENTER = "enter"
    LEAVE = "leave"
    MODIFY = "modify"


@dataclass(frozen=True)
class ManagedObjectRef:
    """Reference to a managed object on the remote service."""

    type: str
    value: str

    def __str__(self) -> str:
        return f"{self.type}:{self.value}"


@dataclass
class PropertyChange:
    """A single property change within an object update."""

    name: str
    op: str = "assign"
    val: Any = None


@dataclass
class ObjectUpdate:
    """Change record for one object within a filter update."""

    obj: ManagedObjectRef
    kind: str
    change_set: Optional[List[PropertyChange]] = None


@dataclass
class FilterUpdate:
    """Object updates produced by one server-side filter."""

    filter: FilterHandle
    object_set: List[ObjectUpdate] = field(default_factory=list)


@dataclass
class UpdateBatch:
    """Result of one wait-for-updates round trip."""

    version: Optional[str]
    filter_set: Optional[List[FilterUpdate]] = None


@dataclass
class DynamicProperty:
    """A property path and its value returned by a retrieve call."""

    name: str
    val: Any


@dataclass
class ObjectContent:
    """Properties of one object returned by a retrieve call."""

    obj: ManagedObjectRef
    prop_set: Optional[List[DynamicProperty]] = None


@dataclass
class PropertySpec:
    """Which properties of one object type to collect."""

    type: str
    all: bool = False
    path_set: Optional[List[str]] = None


@dataclass
class ObjectSpec:
    """Starting object for a property filter."""

    obj: ManagedObjectRef
    skip: bool = False


@dataclass
class PropertyFilterSpec:
    """Request describing the objects and properties a filter covers.

    ``object_set`` is whatever traversal description the caller supplies and
    is passed to the transport untouched.
    """

    prop_set: List[PropertySpec]
    object_set: Any

    def tracked_types(self) -> Dict[str, Optional[List[str]]]:
        """Map each tracked type to its path list (None for all properties)."""
        return {
            spec.type: None if spec.all else list(spec.path_set or [])
            for spec in self.prop_set
        }
