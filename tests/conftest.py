"""Pytest configuration and fixtures for inventory monitor tests."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from inventory_monitor.config import MonitorSettings, PropertyMap
from inventory_monitor.exceptions import RequestCanceledError
from inventory_monitor.types import (
    DynamicProperty,
    FilterUpdate,
    ManagedObjectRef,
    ObjectContent,
    ObjectSpec,
    ObjectUpdate,
    PropertyChange,
    UpdateBatch,
)
from inventory_monitor.utils.collector import PropertyCollectorClient


class FakeCollectorClient(PropertyCollectorClient):
    """In-memory property collector that replays scripted responses.

    Each entry in ``responses`` is returned (or raised, for exceptions) by
    one wait_for_updates_ex call. Once the script runs out, waits block
    until cancel_wait_for_updates is called.
    """

    def __init__(self) -> None:
        super().__init__(
            property_collector=ManagedObjectRef("PropertyCollector", "propertyCollector"),
            root_folder=ManagedObjectRef("Folder", "group-d1"),
            session_manager=ManagedObjectRef("SessionManager", "SessionManager"),
        )
        self.filter = "session[52b1]filter-1"
        self.responses: List[Any] = []
        self.versions: List[Optional[str]] = []
        self.created_specs: List[Any] = []
        self.destroyed: List[Any] = []
        self.disconnects = 0
        self.cancel_calls = 0
        self.retrieve_calls = 0
        self.session_alive: Any = True
        self.properties: Dict[ManagedObjectRef, List[Tuple[str, Any]]] = {}
        self._canceled = asyncio.Event()

    async def create_filter(self, collector, spec, partial_updates):
        self.created_specs.append(spec)
        return self.filter

    async def destroy_property_filter(self, handle):
        self.destroyed.append(handle)

    async def wait_for_updates_ex(self, collector, version, max_wait):
        self.versions.append(version)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response

        await self._canceled.wait()
        self._canceled.clear()
        raise RequestCanceledError()

    async def cancel_wait_for_updates(self, collector):
        self.cancel_calls += 1
        self._canceled.set()

    async def retrieve_properties(self, collector, spec):
        self.retrieve_calls += 1
        obj = spec.object_set[0].obj

        if obj == self.session_manager:
            if isinstance(self.session_alive, BaseException):
                raise self.session_alive
            if not self.session_alive:
                return []
            return [
                ObjectContent(
                    obj=obj,
                    prop_set=[
                        DynamicProperty(
                            "currentSession", {"key": "52b1", "userName": "monitor"}
                        )
                    ],
                )
            ]

        props = self.properties.get(obj)
        if props is None:
            return []
        return [
            ObjectContent(obj=obj, prop_set=[DynamicProperty(n, v) for n, v in props])
        ]

    async def disconnect(self):
        self.disconnects += 1


class RecordingHandler:
    """Update handler that records every dispatched update."""

    def __init__(self) -> None:
        self.calls: List[Tuple[ManagedObjectRef, Optional[Dict[str, Any]]]] = []

    def __call__(self, obj, props):
        self.calls.append((obj, props))

    async def wait_for(self, count: int, timeout: float = 2.0) -> None:
        """Wait until at least count updates have been dispatched."""
        async def _poll():
            while len(self.calls) < count:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout=timeout)


def vm(value: str) -> ManagedObjectRef:
    return ManagedObjectRef("VirtualMachine", value)


@pytest.fixture
def collector():
    """Provide a fake property collector session."""
    return FakeCollectorClient()


@pytest.fixture
def handler():
    """Provide a recording update handler."""
    return RecordingHandler()


@pytest.fixture
def object_set(collector):
    """Provide a traversal spec rooted at the root folder."""
    return [ObjectSpec(obj=collector.root_folder, skip=False)]


@pytest.fixture
def make_update():
    """Provide a factory for object updates."""
    def _make(kind: str, obj: str, props: Optional[Dict[str, Any]] = None) -> ObjectUpdate:
        change_set = None
        if props is not None:
            change_set = [PropertyChange(name, "assign", val) for name, val in props.items()]
        return ObjectUpdate(obj=vm(obj), kind=kind, change_set=change_set)

    return _make


@pytest.fixture
def make_batch(collector):
    """Provide a factory for update batches on the collector's filter."""
    def _make(version: Optional[str], *updates: ObjectUpdate, filter_handle=None) -> UpdateBatch:
        handle = collector.filter if filter_handle is None else filter_handle
        return UpdateBatch(
            version=version,
            filter_set=[FilterUpdate(filter=handle, object_set=list(updates))],
        )

    return _make


@pytest.fixture
def property_map():
    """Provide a small property map."""
    return PropertyMap.model_validate({
        "VirtualMachine": {"props": ["name", "runtime.powerState"]},
        "HostSystem": {"props": None},
    })


@pytest.fixture
def monitor_settings():
    """Provide test monitor settings."""
    return MonitorSettings(
        log_level="DEBUG",
        max_wait=5,
        metrics_enabled=False,
        health_port=9999,
    )
