"""Change notifications and snapshots from a property collector service."""

__version__ = "0.1.0"
