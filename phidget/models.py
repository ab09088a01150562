"""Immutable data models for channels, events and devices.

All event and identity models are frozen dataclasses so they can be handed
from native delivery threads to user code without copying.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Type

from .errors import ErrorKind, PhidgetError


class ChannelClass(Enum):
    """Device classes modelled by this package.

    Values are the native Phidget_ChannelClass codes.
    """
    DC_MOTOR = 4
    DIGITAL_INPUT = 5
    DIGITAL_OUTPUT = 6
    ENCODER = 8
    HUB = 13
    SOUND_SENSOR = 25
    TEMPERATURE_SENSOR = 28
    VOLTAGE_INPUT = 29

    @classmethod
    def from_native(cls, code: int) -> Optional[ChannelClass]:
        """Return the member for a native class code, or None if unmodelled."""
        try:
            return cls(code)
        except ValueError:
            return None


class ChannelState(Enum):
    """Lifecycle states of a channel's native handle."""
    UNOPENED = "unopened"
    OPENING = "opening"
    ATTACHED = "attached"
    DETACHED = "detached"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelIdentity:
    """Resolved identity of an attached channel.

    Attributes:
        channel_class: Device class of the channel
        serial_number: Serial number of the device the channel lives on
        hub_port: VINT hub port, or None when not on a hub
        channel: Channel index on the device
        label: Device label, if one is set
        is_hub_port_device: True when the hub port itself is the device
    """
    channel_class: ChannelClass
    serial_number: Optional[int] = None
    hub_port: Optional[int] = None
    channel: Optional[int] = None
    label: Optional[str] = None
    is_hub_port_device: bool = False

    @property
    def key(self) -> Tuple[Optional[int], Optional[int], Optional[int], ChannelClass]:
        """Key used to index devices in a manager snapshot."""
        return (self.serial_number, self.hub_port, self.channel, self.channel_class)


@dataclass(frozen=True)
class ChannelFilter:
    """Criteria used to pick which physical channel an open binds to.

    Unset criteria (None) match anything.
    """
    serial_number: Optional[int] = None
    hub_port: Optional[int] = None
    channel: Optional[int] = None
    label: Optional[str] = None
    is_hub_port_device: bool = False

    def validate(self) -> None:
        """Check the criteria are mutually consistent.

        Raises:
            PhidgetError: INVALID_ARGUMENT on inconsistent criteria.
        """
        for name in ("serial_number", "hub_port", "channel"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise PhidgetError(ErrorKind.INVALID_ARGUMENT, f"{name} must be >= 0, got {value}")
        if self.is_hub_port_device:
            if self.hub_port is None:
                raise PhidgetError(ErrorKind.INVALID_ARGUMENT,
                                   "is_hub_port_device requires a hub_port")
            if self.channel not in (None, 0):
                raise PhidgetError(ErrorKind.INVALID_ARGUMENT,
                                   "a hub port device only has channel 0")
        if self.label is not None and not self.label:
            raise PhidgetError(ErrorKind.INVALID_ARGUMENT, "label must not be empty")

    def matches(self, identity: ChannelIdentity) -> bool:
        """True if the identity satisfies every criterion that is set."""
        if self.serial_number is not None and identity.serial_number != self.serial_number:
            return False
        if self.hub_port is not None and identity.hub_port != self.hub_port:
            return False
        if self.channel is not None and identity.channel != self.channel:
            return False
        if self.label is not None and identity.label != self.label:
            return False
        if self.is_hub_port_device and not identity.is_hub_port_device:
            return False
        return True


@dataclass(frozen=True)
class PropertySpec:
    """Typed property of a device class.

    Attributes:
        name: Python-facing name, e.g. "voltage"
        type: Python type of the value (float, int or bool)
        native: Native accessor stem, e.g. "Voltage" for getVoltage/setVoltage
        readable: Whether the property can be read
        writable: Whether the property can be written
    """
    name: str
    type: Type
    native: str
    readable: bool = True
    writable: bool = False

    def coerce(self, value: Any) -> Any:
        """Check a value against the property type and normalise it.

        Raises:
            TypeError: If the value has the wrong type.
        """
        if self.type is bool:
            if isinstance(value, bool):
                return value
        elif self.type is int:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        elif self.type is float:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
        elif isinstance(value, self.type):
            return value
        raise TypeError(
            f"property {self.name!r} expects {self.type.__name__}, "
            f"got {type(value).__name__}"
        )


@dataclass(frozen=True)
class PositionChange:
    """Encoder position update.

    Attributes:
        position_change: Counts moved since the previous event
        time_change: Milliseconds since the previous event
        index_triggered: True if the index pulse was seen
    """
    position_change: int
    time_change: float
    index_triggered: bool


@dataclass(frozen=True)
class SPLReading:
    """Sound pressure level update from a sound sensor."""
    db: float
    db_a: float
    db_c: float
    octaves: Tuple[float, ...]


@dataclass(frozen=True)
class AttachEvent:
    """A channel became backed by real hardware."""
    identity: ChannelIdentity


@dataclass(frozen=True)
class DetachEvent:
    """Hardware backing a channel went away."""
    identity: ChannelIdentity


@dataclass(frozen=True)
class ErrorEvent:
    """The runtime reported an asynchronous error for a channel.

    Attributes:
        identity: Channel identity as last known
        kind: Translated error kind
        code: Native error event code
        description: Text supplied by the runtime
    """
    identity: ChannelIdentity
    kind: ErrorKind
    code: int
    description: str = ""


@dataclass(frozen=True)
class ChangeEvent:
    """A channel's primary value changed.

    The value type depends on the channel class: float for voltage,
    temperature and motor velocity, bool for digital state, PositionChange
    for encoders and SPLReading for sound sensors.
    """
    identity: ChannelIdentity
    value: Any


@dataclass(frozen=True)
class DeviceDescriptor:
    """Minimal description of an attached device channel."""
    identity: ChannelIdentity
    device_name: str = ""

    @property
    def key(self) -> Tuple[Optional[int], Optional[int], Optional[int], ChannelClass]:
        return self.identity.key
