"""Exceptions raised by the inventory monitor and its transports."""

from typing import Any

# Fault reason the property collector reports when a pending wait is cancelled.
CANCELED_BY_USER = "The task was canceled by a user."


class InventoryMonitorError(Exception):
    """Base class for inventory monitor errors."""


class TransportTimeoutError(InventoryMonitorError):
    """The transport gave up waiting for a response."""


class RequestCanceledError(InventoryMonitorError):
    """A pending wait for updates was cancelled."""

    def __init__(self, reason: str = CANCELED_BY_USER) -> None:
        super().__init__(reason)
        self.reason = reason


class ConnectionLostError(InventoryMonitorError):
    """The session stopped responding and is no longer alive."""


class MaterializationError(InventoryMonitorError):
    """A property path could not be resolved against the snapshot built so far."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message} in {path}")
        self.path = path


def is_cancellation(exc: BaseException) -> bool:
    """Check whether an error means a wait was cancelled on purpose.

    Transports either raise RequestCanceledError or their own fault type
    carrying the collector's cancellation reason.
    """
    if isinstance(exc, RequestCanceledError):
        return True
    reason: Any = getattr(exc, "reason", None)
    return reason == CANCELED_BY_USER
