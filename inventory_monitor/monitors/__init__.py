"""Update monitoring against a property collector."""

from .controller import UpdateMonitor
from .liveness import LivenessProbe
from .snapshot import SnapshotFetcher
from .updates import IncrementalUpdateFetcher, ObjectUpdateDecoder

__all__ = [
    "UpdateMonitor",
    "LivenessProbe",
    "SnapshotFetcher",
    "IncrementalUpdateFetcher",
    "ObjectUpdateDecoder",
]
