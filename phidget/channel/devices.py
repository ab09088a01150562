"""Device-class channels.

Each class only declares its property table and change event; lifecycle,
error translation and event bridging all live in Channel. Typed methods are
one-line wrappers over get() and set().
"""
from __future__ import annotations

from typing import Any, Tuple

from ..models import ChannelClass, PositionChange, PropertySpec, SPLReading
from .base import Channel

DATA_INTERVAL = PropertySpec("data_interval", int, "DataInterval", writable=True)


class _DataIntervalMixin:
    """Sampling interval accessors shared by sensor-like channels."""

    def data_interval(self) -> int:
        """Milliseconds between change events."""
        return self.get(DATA_INTERVAL)

    def set_data_interval(self, interval_ms: int) -> None:
        self.set(DATA_INTERVAL, interval_ms)


class VoltageInput(_DataIntervalMixin, Channel):
    """Analog voltage input."""
    VOLTAGE = PropertySpec("voltage", float, "Voltage")
    VOLTAGE_CHANGE_TRIGGER = PropertySpec("voltage_change_trigger", float,
                                          "VoltageChangeTrigger", writable=True)

    CHANNEL_CLASS = ChannelClass.VOLTAGE_INPUT
    PROPERTIES = (VOLTAGE, VOLTAGE_CHANGE_TRIGGER, DATA_INTERVAL)
    CHANGE_EVENT = "VoltageChange"

    def voltage(self) -> float:
        """Most recent voltage reading, in volts."""
        return self.get(self.VOLTAGE)

    def set_voltage_change_trigger(self, volts: float) -> None:
        """Minimum change in volts before a change event fires."""
        self.set(self.VOLTAGE_CHANGE_TRIGGER, volts)

    def _decode_change(self, args: Tuple[Any, ...]) -> float:
        return float(args[0])


class DigitalInput(Channel):
    """Digital (on/off) input."""
    STATE = PropertySpec("state", bool, "State")

    CHANNEL_CLASS = ChannelClass.DIGITAL_INPUT
    PROPERTIES = (STATE,)
    CHANGE_EVENT = "StateChange"

    def read_state(self) -> bool:
        return self.get(self.STATE)

    def _decode_change(self, args: Tuple[Any, ...]) -> bool:
        return bool(args[0])


class DigitalOutput(Channel):
    """Digital output, optionally PWM driven through the duty cycle."""
    STATE = PropertySpec("state", bool, "State", writable=True)
    DUTY_CYCLE = PropertySpec("duty_cycle", float, "DutyCycle", writable=True)

    CHANNEL_CLASS = ChannelClass.DIGITAL_OUTPUT
    PROPERTIES = (STATE, DUTY_CYCLE)

    def read_state(self) -> bool:
        return self.get(self.STATE)

    def set_state(self, on: bool) -> None:
        self.set(self.STATE, on)

    def duty_cycle(self) -> float:
        return self.get(self.DUTY_CYCLE)

    def set_duty_cycle(self, duty_cycle: float) -> None:
        """Set the output duty cycle, 0.0 to 1.0."""
        self.set(self.DUTY_CYCLE, duty_cycle)


class DCMotor(_DataIntervalMixin, Channel):
    """DC motor controller."""
    VELOCITY = PropertySpec("velocity", float, "Velocity")
    TARGET_VELOCITY = PropertySpec("target_velocity", float, "TargetVelocity", writable=True)
    ACCELERATION = PropertySpec("acceleration", float, "Acceleration", writable=True)

    CHANNEL_CLASS = ChannelClass.DC_MOTOR
    PROPERTIES = (VELOCITY, TARGET_VELOCITY, ACCELERATION, DATA_INTERVAL)
    CHANGE_EVENT = "VelocityUpdate"

    def velocity(self) -> float:
        """Current duty cycle the motor is driven at, -1.0 to 1.0."""
        return self.get(self.VELOCITY)

    def set_velocity(self, velocity: float) -> None:
        """Set the target velocity, -1.0 to 1.0."""
        self.set(self.TARGET_VELOCITY, velocity)

    def acceleration(self) -> float:
        return self.get(self.ACCELERATION)

    def set_acceleration(self, acceleration: float) -> None:
        self.set(self.ACCELERATION, acceleration)

    def _decode_change(self, args: Tuple[Any, ...]) -> float:
        return float(args[0])


class Encoder(_DataIntervalMixin, Channel):
    """Quadrature encoder input."""
    POSITION = PropertySpec("position", int, "Position", writable=True)
    ENABLED = PropertySpec("enabled", bool, "Enabled", writable=True)

    CHANNEL_CLASS = ChannelClass.ENCODER
    PROPERTIES = (POSITION, ENABLED, DATA_INTERVAL)
    CHANGE_EVENT = "PositionChange"

    def position(self) -> int:
        return self.get(self.POSITION)

    def set_position(self, position: int) -> None:
        """Re-zero or offset the accumulated position."""
        self.set(self.POSITION, position)

    def set_enabled(self, enabled: bool) -> None:
        self.set(self.ENABLED, enabled)

    def _decode_change(self, args: Tuple[Any, ...]) -> PositionChange:
        position_change, time_change, index_triggered = args
        return PositionChange(int(position_change), float(time_change), bool(index_triggered))


class TemperatureSensor(_DataIntervalMixin, Channel):
    """Temperature probe or thermocouple input."""
    TEMPERATURE = PropertySpec("temperature", float, "Temperature")
    TEMPERATURE_CHANGE_TRIGGER = PropertySpec("temperature_change_trigger", float,
                                              "TemperatureChangeTrigger", writable=True)

    CHANNEL_CLASS = ChannelClass.TEMPERATURE_SENSOR
    PROPERTIES = (TEMPERATURE, TEMPERATURE_CHANGE_TRIGGER, DATA_INTERVAL)
    CHANGE_EVENT = "TemperatureChange"

    def temperature(self) -> float:
        """Most recent temperature, in degrees Celsius."""
        return self.get(self.TEMPERATURE)

    def set_temperature_change_trigger(self, degrees: float) -> None:
        self.set(self.TEMPERATURE_CHANGE_TRIGGER, degrees)

    def _decode_change(self, args: Tuple[Any, ...]) -> float:
        return float(args[0])


class SoundSensor(_DataIntervalMixin, Channel):
    """Sound pressure level sensor."""
    DB = PropertySpec("db", float, "dB")
    DB_A = PropertySpec("db_a", float, "dBA")
    DB_C = PropertySpec("db_c", float, "dBC")
    DB_MAX = PropertySpec("db_max", float, "MaxdB")

    CHANNEL_CLASS = ChannelClass.SOUND_SENSOR
    PROPERTIES = (DB, DB_A, DB_C, DB_MAX, DATA_INTERVAL)
    CHANGE_EVENT = "SPLChange"

    OCTAVE_BANDS = 10

    def db(self) -> float:
        """Most recent dB SPL value."""
        return self.get(self.DB)

    def db_a(self) -> float:
        """Most recent dBA SPL value."""
        return self.get(self.DB_A)

    def db_c(self) -> float:
        """Most recent dBC SPL value."""
        return self.get(self.DB_C)

    def _decode_change(self, args: Tuple[Any, ...]) -> SPLReading:
        db, db_a, db_c, octaves = args
        octaves = tuple(float(x) for x in octaves)
        if len(octaves) != self.OCTAVE_BANDS:
            raise ValueError(f"expected {self.OCTAVE_BANDS} octave bands, got {len(octaves)}")
        return SPLReading(float(db), float(db_a), float(db_c), octaves)


class Hub(Channel):
    """VINT hub. Only lifecycle and attach/detach/error events."""
    CHANNEL_CLASS = ChannelClass.HUB
