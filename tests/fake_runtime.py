"""In-memory NativeRuntime used by the tests.

Callbacks are fired explicitly by the test, either on the calling thread or
on a fresh thread (fire_async) to stand in for the runtime's delivery thread.
Every native operation is appended to ``log`` so tests can assert ordering.
"""
from __future__ import annotations

import itertools
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from phidget.errors import PhidgetError, ReturnCode
from phidget.models import ChannelClass, ChannelFilter, ChannelIdentity, DeviceDescriptor, PropertySpec
from phidget.native.base import NativeRuntime

_ids = itertools.count(1)


class FakeHandle:
    def __init__(self, channel_class: ChannelClass):
        self.id = next(_ids)
        self.channel_class = channel_class
        self.filter: Optional[ChannelFilter] = None
        self.opened = False
        self.closed = False
        self.deleted = False
        self.attached = False
        self.handlers: Dict[str, Any] = {}
        self.properties: Dict[str, Any] = {}

    def __repr__(self):
        return f"<FakeHandle {self.id} {self.channel_class.name}>"


class FakeManager:
    def __init__(self):
        self.on_attach = None
        self.on_detach = None
        self.opened = False
        self.deleted = False


class FakeRuntime(NativeRuntime):
    """Records calls and lets tests play the part of the hardware."""

    def __init__(self):
        self.handles: List[FakeHandle] = []
        self.managers: List[FakeManager] = []
        self.present: List[DeviceDescriptor] = []
        self.log: List[tuple] = []
        self.fail: Dict[str, Union[int, BaseException]] = {}
        # Called inside identity resolution, to hold a callback mid-read
        self.on_resolve: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    def _record(self, op: str, target: Any = None) -> None:
        with self._lock:
            self.log.append((op, target, time.monotonic()))

    def _maybe_fail(self, op: str) -> None:
        code = self.fail.get(op)
        if isinstance(code, BaseException):
            raise code
        if code is not None:
            raise PhidgetError.from_code(code, op)

    def ops(self) -> List[str]:
        with self._lock:
            return [op for op, _, _ in self.log]

    def time_of(self, op: str) -> float:
        with self._lock:
            return next(t for o, _, t in self.log if o == op)

    @property
    def last_handle(self) -> FakeHandle:
        return self.handles[-1]

    # --- Channel handles ---

    def create(self, channel_class: ChannelClass) -> FakeHandle:
        self._maybe_fail("create")
        handle = FakeHandle(channel_class)
        self.handles.append(handle)
        self._record("create", handle)
        return handle

    def configure(self, handle: FakeHandle, channel_filter: ChannelFilter) -> None:
        self._maybe_fail("configure")
        handle.filter = channel_filter

    def open(self, handle: FakeHandle) -> None:
        self._maybe_fail("open")
        handle.opened = True
        self._record("open", handle)

    def close(self, handle: FakeHandle) -> None:
        assert not handle.deleted, "close after delete"
        handle.closed = True
        handle.attached = False
        self._record("close", handle)
        self._maybe_fail("close")

    def delete(self, handle: FakeHandle) -> None:
        assert not handle.deleted, "double delete"
        handle.deleted = True
        self._record("delete", handle)

    def set_attach_handler(self, handle, callback) -> None:
        self._set_handler(handle, "attach", callback)

    def set_detach_handler(self, handle, callback) -> None:
        self._set_handler(handle, "detach", callback)

    def set_error_handler(self, handle, callback) -> None:
        self._set_handler(handle, "error", callback)

    def set_change_handler(self, handle, event: str, callback) -> None:
        self._set_handler(handle, event, callback)

    def _set_handler(self, handle: FakeHandle, key: str, callback) -> None:
        assert not handle.deleted, "handler change after delete"
        if callback is None:
            self._maybe_fail(f"clear_{key}")
            handle.handlers.pop(key, None)
            self._record(f"clear_{key}", handle)
        else:
            handle.handlers[key] = callback

    def get_property(self, handle: FakeHandle, spec: PropertySpec) -> Any:
        assert not handle.deleted, "get_property after delete"
        self._record("get", spec.name)
        if not handle.attached:
            raise PhidgetError.from_code(ReturnCode.EPHIDGET_NOTATTACHED)
        if spec.native not in handle.properties:
            raise PhidgetError.from_code(ReturnCode.EPHIDGET_UNKNOWNVAL)
        return handle.properties[spec.native]

    def set_property(self, handle: FakeHandle, spec: PropertySpec, value: Any) -> None:
        assert not handle.deleted, "set_property after delete"
        self._record("set", spec.name)
        if not handle.attached:
            raise PhidgetError.from_code(ReturnCode.EPHIDGET_NOTATTACHED)
        handle.properties[spec.native] = value

    def resolve_identity(self, handle: FakeHandle, channel_class: ChannelClass) -> ChannelIdentity:
        return self.identity_for(handle)

    def identity_for(self, handle: FakeHandle, **overrides) -> ChannelIdentity:
        f = handle.filter or ChannelFilter()
        fields = dict(
            channel_class=handle.channel_class,
            serial_number=f.serial_number if f.serial_number is not None else 10000,
            hub_port=f.hub_port,
            channel=f.channel if f.channel is not None else 0,
            label=f.label,
            is_hub_port_device=f.is_hub_port_device,
        )
        fields.update(overrides)
        return ChannelIdentity(**fields)

    # --- Playing the hardware ---

    def fire_attach(self, handle: Optional[FakeHandle] = None, **identity) -> None:
        handle = handle or self.last_handle
        handle.attached = True
        callback = handle.handlers.get("attach")
        if callback is not None:
            callback(lambda: self._resolve(handle, identity))

    def _resolve(self, handle: FakeHandle, overrides: Dict[str, Any]) -> ChannelIdentity:
        if self.on_resolve is not None:
            self.on_resolve()
        assert not handle.deleted, "identity read after delete"
        self._record("resolve", handle)
        self._maybe_fail("resolve_identity")
        return self.identity_for(handle, **overrides)

    def fire_detach(self, handle: Optional[FakeHandle] = None) -> None:
        handle = handle or self.last_handle
        handle.attached = False
        callback = handle.handlers.get("detach")
        if callback is not None:
            callback()

    def fire_error(self, code: int, description: str = "", handle: Optional[FakeHandle] = None) -> None:
        handle = handle or self.last_handle
        callback = handle.handlers.get("error")
        if callback is not None:
            callback(code, description)

    def fire_change(self, event: str, *args, handle: Optional[FakeHandle] = None) -> None:
        handle = handle or self.last_handle
        callback = handle.handlers.get(event)
        if callback is not None:
            callback(args)

    @staticmethod
    def fire_async(fn, *args, **kwargs) -> threading.Thread:
        thread = threading.Thread(target=fn, args=args, kwargs=kwargs, daemon=True,
                                  name="FakeDelivery")
        thread.start()
        return thread

    # --- Device manager ---

    def create_manager(self) -> FakeManager:
        self._maybe_fail("create_manager")
        manager = FakeManager()
        self.managers.append(manager)
        self._record("create_manager", manager)
        return manager

    def set_manager_handlers(self, manager: FakeManager, on_attach, on_detach) -> None:
        manager.on_attach = on_attach
        manager.on_detach = on_detach
        if on_attach is None and on_detach is None:
            self._maybe_fail("clear_manager")
            self._record("clear_manager", manager)

    def open_manager(self, manager: FakeManager) -> None:
        self._maybe_fail("open_manager")
        manager.opened = True
        self._record("open_manager", manager)
        for descriptor in list(self.present):
            if manager.on_attach is not None:
                manager.on_attach(self._describer(manager, descriptor))

    def close_manager(self, manager: FakeManager) -> None:
        manager.opened = False
        self._record("close_manager", manager)

    def delete_manager(self, manager: FakeManager) -> None:
        assert not manager.deleted, "double delete of manager"
        manager.deleted = True
        self._record("delete_manager", manager)

    def _describer(self, manager: FakeManager, descriptor: DeviceDescriptor):
        def describe() -> DeviceDescriptor:
            assert not manager.deleted, "device read after manager delete"
            self._maybe_fail("describe")
            return descriptor
        return describe

    def plug(self, descriptor: DeviceDescriptor, manager: Optional[FakeManager] = None) -> None:
        manager = manager or self.managers[-1]
        self.present.append(descriptor)
        if manager.on_attach is not None:
            manager.on_attach(self._describer(manager, descriptor))

    def unplug(self, descriptor: DeviceDescriptor, manager: Optional[FakeManager] = None) -> None:
        manager = manager or self.managers[-1]
        if descriptor in self.present:
            self.present.remove(descriptor)
        if manager.on_detach is not None:
            manager.on_detach(self._describer(manager, descriptor))
