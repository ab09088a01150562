"""Channel layer.

This module provides:
- Native handle ownership with borrow/release (NativeHandleGuard)
- Callback delivery with in-flight counting and rundown (EventBridge)
- Blocking wait for attachment (AttachmentWaiter)
- The generic typed channel (Channel) and the device classes built on it
"""

from .handle import NativeHandleGuard
from .bridge import EventBridge, EventKind
from .waiter import AttachmentWaiter, INFINITE
from .base import Channel, DEFAULT_OPEN_TIMEOUT
from .devices import (
    DCMotor,
    DigitalInput,
    DigitalOutput,
    Encoder,
    Hub,
    SoundSensor,
    TemperatureSensor,
    VoltageInput,
)

__all__ = [
    # Core
    'NativeHandleGuard',
    'EventBridge',
    'EventKind',
    'AttachmentWaiter',
    'INFINITE',
    'Channel',
    'DEFAULT_OPEN_TIMEOUT',

    # Devices
    'DCMotor',
    'DigitalInput',
    'DigitalOutput',
    'Encoder',
    'Hub',
    'SoundSensor',
    'TemperatureSensor',
    'VoltageInput',
]
