"""Phidget - safe channel lifecycle and event bridging over the Phidget22 runtime."""

from .errors import ErrorKind, InvariantError, PhidgetError, ReturnCode, translate
from .models import (
    AttachEvent,
    ChangeEvent,
    ChannelClass,
    ChannelFilter,
    ChannelIdentity,
    ChannelState,
    DetachEvent,
    DeviceDescriptor,
    ErrorEvent,
    PositionChange,
    PropertySpec,
    SPLReading,
)
from .native import NativeRuntime, Phidget22Runtime, default_runtime
from .channel import (
    DEFAULT_OPEN_TIMEOUT,
    INFINITE,
    Channel,
    DCMotor,
    DigitalInput,
    DigitalOutput,
    Encoder,
    EventKind,
    Hub,
    SoundSensor,
    TemperatureSensor,
    VoltageInput,
)
from .manager import DeviceManager

__version__ = "0.1.4"

__all__ = [
    "ErrorKind",
    "InvariantError",
    "PhidgetError",
    "ReturnCode",
    "translate",
    "AttachEvent",
    "ChangeEvent",
    "ChannelClass",
    "ChannelFilter",
    "ChannelIdentity",
    "ChannelState",
    "DetachEvent",
    "DeviceDescriptor",
    "ErrorEvent",
    "PositionChange",
    "PropertySpec",
    "SPLReading",
    "NativeRuntime",
    "Phidget22Runtime",
    "default_runtime",
    "DEFAULT_OPEN_TIMEOUT",
    "INFINITE",
    "Channel",
    "DCMotor",
    "DigitalInput",
    "DigitalOutput",
    "Encoder",
    "EventKind",
    "Hub",
    "SoundSensor",
    "TemperatureSensor",
    "VoltageInput",
    "DeviceManager",
]
