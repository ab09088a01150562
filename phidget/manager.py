"""Observer of every device channel attached to the system.

The DeviceManager keeps a snapshot of attached channels, keyed by
(serial number, hub port, channel index, class). The snapshot is only
mutated on the native delivery path and can be read from any thread.
"""
from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from .channel.bridge import EventBridge, EventKind
from .errors import ErrorKind, PhidgetError
from .models import DeviceDescriptor
from .native import NativeRuntime, default_runtime
from .native.base import DeviceResolver

logger = logging.getLogger(__name__)

DeviceHandler = Callable[[DeviceDescriptor], None]


class DeviceManager:
    """Process-wide device discovery with an explicit start/stop lifecycle.

    Example:
        >>> manager = DeviceManager()
        >>> manager.start(on_attach=lambda d: print(f"+ {d.device_name}"))
        >>> print(manager.devices)
        >>> manager.stop()
    """

    def __init__(self, runtime: Optional[NativeRuntime] = None):
        self._runtime = runtime or default_runtime()
        self._cond = threading.Condition()
        self._lifecycle = threading.RLock()
        self._bridge = EventBridge(self._cond, name="DeviceManager")
        self._devices: Dict[Any, DeviceDescriptor] = {}
        self._handle: Optional[Any] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    def start(self,
              on_attach: Optional[DeviceHandler] = None,
              on_detach: Optional[DeviceHandler] = None) -> None:
        """Begin observing devices.

        Devices already attached are reported through on_attach as the
        runtime discovers them.

        Raises:
            PhidgetError: ALREADY_OPEN if already started, or the native failure.
        """
        with self._lifecycle:
            with self._cond:
                if self._running:
                    raise PhidgetError(ErrorKind.ALREADY_OPEN, "device manager already started")
                self._running = True
                self._devices.clear()
                self._bridge.start()
                self._bridge.register(EventKind.ATTACH, on_attach)
                self._bridge.register(EventKind.DETACH, on_detach)

            handle = None
            try:
                handle = self._runtime.create_manager()
                with self._cond:
                    self._handle = handle
                self._runtime.set_manager_handlers(handle, self._on_native_attach,
                                                   self._on_native_detach)
                self._runtime.open_manager(handle)
            except BaseException:
                self._teardown(handle, opened=False)
                raise
        logger.info("Device manager started")

    def stop(self) -> None:
        """Stop observing, wait for running handlers, clear the snapshot.

        Idempotent.
        """
        self._bridge.ensure_outside_handler()
        with self._lifecycle:
            with self._cond:
                if not self._running:
                    return
                handle = self._handle
            self._teardown(handle, opened=True)
        logger.info("Device manager stopped")

    def _teardown(self, handle: Optional[Any], opened: bool) -> None:
        with self._cond:
            self._bridge.shutdown()
        try:
            if handle is not None:
                self._runtime.set_manager_handlers(handle, None, None)
        except PhidgetError as e:
            logger.warning(f"Failed to deregister device manager callbacks: {e}")
        try:
            self._bridge.rundown()
            if handle is not None and opened:
                self._runtime.close_manager(handle)
        finally:
            if handle is not None:
                self._runtime.delete_manager(handle)
            with self._cond:
                self._devices.clear()
                self._handle = None
                self._running = False

    def __enter__(self) -> DeviceManager:
        """Context manager support - start on enter."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - stop on exit."""
        self.stop()

    # --- Snapshot ---

    def snapshot(self) -> Mapping[Any, DeviceDescriptor]:
        """Read-only copy of the attached devices, keyed by identity key."""
        with self._cond:
            return MappingProxyType(dict(self._devices))

    @property
    def devices(self) -> List[DeviceDescriptor]:
        with self._cond:
            return list(self._devices.values())

    # --- Native callbacks (runtime threads) ---

    def _resolved(self, resolve: DeviceResolver) -> Optional[DeviceDescriptor]:
        try:
            return resolve()
        except PhidgetError as e:
            logger.warning(f"Could not describe device channel: {e}")
            return None

    def _on_native_attach(self, resolve: DeviceResolver) -> None:
        with self._bridge.callback() as accepted:
            descriptor = self._resolved(resolve) if accepted else None
            if descriptor is not None:
                self._device_attached(descriptor)

    def _on_native_detach(self, resolve: DeviceResolver) -> None:
        with self._bridge.callback() as accepted:
            descriptor = self._resolved(resolve) if accepted else None
            if descriptor is not None:
                self._device_detached(descriptor)

    def _device_attached(self, descriptor: DeviceDescriptor) -> None:
        def apply():
            self._devices[descriptor.key] = descriptor
            return descriptor

        if self._bridge.dispatch(EventKind.ATTACH, apply):
            logger.info(f"Device attached: {descriptor.device_name} {descriptor.identity}")

    def _device_detached(self, descriptor: DeviceDescriptor) -> None:
        def apply():
            known = self._devices.pop(descriptor.key, None)
            if known is None:
                logger.debug(f"Detach for unknown device {descriptor.identity}")
            return known

        if self._bridge.dispatch(EventKind.DETACH, apply):
            logger.info(f"Device detached: {descriptor.device_name} {descriptor.identity}")
