"""NativeRuntime implementation over the official Phidget22 Python bindings.

The Phidget22 package wraps libphidget22 with ctypes. Each channel object it
creates is used here as the opaque native handle. Device modules are imported
lazily so that importing this package never loads the native library.
"""
from __future__ import annotations

import logging
from importlib import import_module
from typing import Any, Callable, Optional

from ..errors import ErrorKind, PhidgetError
from ..models import ChannelClass, ChannelFilter, ChannelIdentity, DeviceDescriptor, PropertySpec
from .base import (
    AttachCallback,
    ChangeCallback,
    DetachCallback,
    DeviceCallback,
    ErrorCallback,
    NativeRuntime,
)

logger = logging.getLogger(__name__)

# ChannelClass -> (module, class) inside the Phidget22 package
DEVICE_CLASSES = {
    ChannelClass.VOLTAGE_INPUT: ("Phidget22.Devices.VoltageInput", "VoltageInput"),
    ChannelClass.DIGITAL_INPUT: ("Phidget22.Devices.DigitalInput", "DigitalInput"),
    ChannelClass.DIGITAL_OUTPUT: ("Phidget22.Devices.DigitalOutput", "DigitalOutput"),
    ChannelClass.DC_MOTOR: ("Phidget22.Devices.DCMotor", "DCMotor"),
    ChannelClass.ENCODER: ("Phidget22.Devices.Encoder", "Encoder"),
    ChannelClass.TEMPERATURE_SENSOR: ("Phidget22.Devices.TemperatureSensor", "TemperatureSensor"),
    ChannelClass.SOUND_SENSOR: ("Phidget22.Devices.SoundSensor", "SoundSensor"),
    ChannelClass.HUB: ("Phidget22.Devices.Hub", "Hub"),
}

MANAGER_CLASS = ("Phidget22.Manager", "Manager")
EXCEPTION_CLASS = ("Phidget22.PhidgetException", "PhidgetException")


def _load(location) -> Any:
    module_name, attr = location
    return getattr(import_module(module_name), attr)


class Phidget22Runtime(NativeRuntime):
    """Runtime backed by the Phidget22 package.

    Every call into the bindings goes through _call(), which converts
    PhidgetException into PhidgetError with the translated kind.
    """

    def __init__(self):
        self._exception_type: Optional[type] = None

    def _exception(self) -> type:
        if self._exception_type is None:
            self._exception_type = _load(EXCEPTION_CLASS)
        return self._exception_type

    def _call(self, fn: Callable, *args) -> Any:
        try:
            return fn(*args)
        except self._exception() as e:
            details = getattr(e, "details", None) or getattr(e, "description", "")
            raise PhidgetError.from_code(e.code, details) from e

    def _try_get(self, fn: Callable) -> Any:
        """Read an identity attribute that some devices do not report."""
        try:
            return self._call(fn)
        except PhidgetError as e:
            logger.debug(f"Identity attribute unavailable: {e}")
            return None

    # --- Channel handles ---

    def create(self, channel_class: ChannelClass) -> Any:
        location = DEVICE_CLASSES.get(channel_class)
        if location is None:
            raise PhidgetError(ErrorKind.UNSUPPORTED, f"no binding for {channel_class.name}")
        return self._call(_load(location))

    def configure(self, handle: Any, channel_filter: ChannelFilter) -> None:
        if channel_filter.serial_number is not None:
            self._call(handle.setDeviceSerialNumber, channel_filter.serial_number)
        if channel_filter.hub_port is not None:
            self._call(handle.setHubPort, channel_filter.hub_port)
        if channel_filter.channel is not None:
            self._call(handle.setChannel, channel_filter.channel)
        if channel_filter.label is not None:
            self._call(handle.setDeviceLabel, channel_filter.label)
        self._call(handle.setIsHubPortDevice, channel_filter.is_hub_port_device)

    def open(self, handle: Any) -> None:
        self._call(handle.open)

    def close(self, handle: Any) -> None:
        self._call(handle.close)

    def delete(self, handle: Any) -> None:
        # The bindings free the native object when the wrapper is collected;
        # dropping the handlers here breaks the ctypes reference cycles.
        for setter in ("setOnAttachHandler", "setOnDetachHandler", "setOnErrorHandler"):
            self._call(getattr(handle, setter), None)

    def set_attach_handler(self, handle: Any, callback: Optional[AttachCallback]) -> None:
        if callback is None:
            self._call(handle.setOnAttachHandler, None)
            return

        def on_attach(ch):
            callback(lambda: self._identity_of(ch))

        self._call(handle.setOnAttachHandler, on_attach)

    def set_detach_handler(self, handle: Any, callback: Optional[DetachCallback]) -> None:
        if callback is None:
            self._call(handle.setOnDetachHandler, None)
            return
        self._call(handle.setOnDetachHandler, lambda ch: callback())

    def set_error_handler(self, handle: Any, callback: Optional[ErrorCallback]) -> None:
        if callback is None:
            self._call(handle.setOnErrorHandler, None)
            return
        self._call(handle.setOnErrorHandler,
                   lambda ch, code, description: callback(code, description))

    def set_change_handler(self, handle: Any, event: str,
                           callback: Optional[ChangeCallback]) -> None:
        setter = getattr(handle, f"setOn{event}Handler", None)
        if setter is None:
            raise PhidgetError(ErrorKind.UNSUPPORTED, f"{type(handle).__name__} has no {event} event")
        if callback is None:
            self._call(setter, None)
            return
        self._call(setter, lambda ch, *args: callback(args))

    def get_property(self, handle: Any, spec: PropertySpec) -> Any:
        getter = getattr(handle, f"get{spec.native}", None)
        if getter is None:
            raise PhidgetError(ErrorKind.UNSUPPORTED, f"cannot read {spec.name}")
        return self._call(getter)

    def set_property(self, handle: Any, spec: PropertySpec, value: Any) -> None:
        setter = getattr(handle, f"set{spec.native}", None)
        if setter is None:
            raise PhidgetError(ErrorKind.UNSUPPORTED, f"cannot write {spec.name}")
        self._call(setter, value)

    def _identity_of(self, ch: Any) -> ChannelIdentity:
        channel_class = ChannelClass.from_native(int(self._call(ch.getChannelClass)))
        return self.resolve_identity(ch, channel_class)

    def resolve_identity(self, handle: Any, channel_class: ChannelClass) -> ChannelIdentity:
        hub_port = self._try_get(handle.getHubPort)
        return ChannelIdentity(
            channel_class=channel_class,
            serial_number=self._try_get(handle.getDeviceSerialNumber),
            hub_port=hub_port if hub_port is not None and hub_port >= 0 else None,
            channel=self._try_get(handle.getChannel),
            label=self._try_get(handle.getDeviceLabel) or None,
            is_hub_port_device=bool(self._try_get(handle.getIsHubPortDevice)),
        )

    # --- Device manager ---

    def create_manager(self) -> Any:
        return self._call(_load(MANAGER_CLASS))

    def set_manager_handlers(self, manager: Any,
                             on_attach: Optional[DeviceCallback],
                             on_detach: Optional[DeviceCallback]) -> None:
        self._call(manager.setOnAttachHandler, self._device_adapter(on_attach))
        self._call(manager.setOnDetachHandler, self._device_adapter(on_detach))

    def _device_adapter(self, callback: Optional[DeviceCallback]):
        if callback is None:
            return None

        def on_device(manager, ch):
            callback(lambda: self._describe(ch))

        return on_device

    def _describe(self, ch: Any) -> Optional[DeviceDescriptor]:
        channel_class = ChannelClass.from_native(int(self._call(ch.getChannelClass)))
        if channel_class is None:
            logger.debug("Ignoring device channel of an unmodelled class")
            return None
        return DeviceDescriptor(
            identity=self.resolve_identity(ch, channel_class),
            device_name=self._try_get(ch.getDeviceName) or "",
        )

    def open_manager(self, manager: Any) -> None:
        self._call(manager.open)

    def close_manager(self, manager: Any) -> None:
        self._call(manager.close)

    def delete_manager(self, manager: Any) -> None:
        self.set_manager_handlers(manager, None, None)
