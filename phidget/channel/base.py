"""Channel lifecycle and the generic typed property interface.

A Channel is created with matching criteria only. open() acquires a native
handle and starts attachment; the runtime then drives the state machine

    UNOPENED -> OPENING -> ATTACHED <-> DETACHED -> CLOSED

through callbacks on its own threads. close() stops delivery, waits out any
handler still running, and only then releases the handle.

Device classes subclass Channel and declare a property table and, where the
device reports one, a change event. Their typed methods are thin wrappers
over get() and set().
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Type, Union

from ..errors import ErrorKind, PhidgetError, translate
from ..models import (
    AttachEvent,
    ChangeEvent,
    ChannelClass,
    ChannelFilter,
    ChannelIdentity,
    ChannelState,
    DetachEvent,
    ErrorEvent,
    PropertySpec,
)
from ..native import NativeRuntime, default_runtime
from .bridge import EventBridge, EventKind
from .handle import NativeHandleGuard
from .waiter import AttachmentWaiter

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIMEOUT = 5.0  # seconds

_OPEN_STATES = (ChannelState.OPENING, ChannelState.ATTACHED, ChannelState.DETACHED)


class Channel:
    """One logical hardware endpoint.

    Attributes:
        CHANNEL_CLASS: Device class handled by the subclass
        PROPERTIES: Typed properties the class supports
        CHANGE_EVENT: Native change event stem, or None if the class has none

    Example:
        >>> with VoltageInput(serial_number=12345, channel=0) as vin:
        ...     vin.wait_for_attachment(5.0)
        ...     vin.on_change(lambda e: print(e.value))
        ...     print(vin.voltage())
    """

    CHANNEL_CLASS: ClassVar[Optional[ChannelClass]] = None
    PROPERTIES: ClassVar[Tuple[PropertySpec, ...]] = ()
    CHANGE_EVENT: ClassVar[Optional[str]] = None

    _registry: ClassVar[Dict[ChannelClass, Type[Channel]]] = {}
    _property_table: ClassVar[Dict[str, PropertySpec]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._property_table = {spec.name: spec for spec in cls.PROPERTIES}
        if cls.CHANNEL_CLASS is not None:
            Channel._registry[cls.CHANNEL_CLASS] = cls

    @classmethod
    def for_class(cls, channel_class: ChannelClass) -> Type[Channel]:
        """Return the Channel subclass that handles a device class."""
        try:
            return Channel._registry[channel_class]
        except KeyError:
            raise PhidgetError(ErrorKind.UNSUPPORTED,
                               f"no channel type for {channel_class.name}") from None

    def __init__(self,
                 serial_number: Optional[int] = None,
                 hub_port: Optional[int] = None,
                 channel: Optional[int] = None,
                 label: Optional[str] = None,
                 is_hub_port_device: bool = False,
                 runtime: Optional[NativeRuntime] = None):
        """Create an unopened channel.

        Args:
            serial_number: Only bind to the device with this serial number
            hub_port: Only bind to this VINT hub port
            channel: Only bind to this channel index
            label: Only bind to a device carrying this label
            is_hub_port_device: Use the hub port itself as the device
            runtime: Native runtime, or None for the shared Phidget22 runtime
        """
        if self.CHANNEL_CLASS is None:
            raise TypeError("Channel is abstract; instantiate a device class")

        self._filter = ChannelFilter(
            serial_number=serial_number,
            hub_port=hub_port,
            channel=channel,
            label=label,
            is_hub_port_device=is_hub_port_device,
        )
        self._runtime = runtime or default_runtime()

        # One condition guards state, identity, handler slots and counters
        self._cond = threading.Condition()
        # Serialises open() and close() against each other
        self._lifecycle = threading.RLock()

        self._state = ChannelState.UNOPENED
        self._identity: Optional[ChannelIdentity] = None
        self._last_value: Any = None

        self._guard = NativeHandleGuard(self._runtime, self._cond)
        self._bridge = EventBridge(self._cond, name=type(self).__name__)
        self._waiter = AttachmentWaiter(self._cond, lambda: self._state, lambda: self._identity)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.state.value} {self._filter}>"

    # --- State ---

    @property
    def channel_class(self) -> ChannelClass:
        return self.CHANNEL_CLASS

    @property
    def filter(self) -> ChannelFilter:
        return self._filter

    @property
    def state(self) -> ChannelState:
        with self._cond:
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state in _OPEN_STATES

    @property
    def is_attached(self) -> bool:
        return self.state is ChannelState.ATTACHED

    @property
    def identity(self) -> ChannelIdentity:
        """Identity resolved on the most recent attach.

        Raises:
            PhidgetError: NOT_ATTACHED if the channel never attached.
        """
        with self._cond:
            if self._identity is None:
                raise PhidgetError(ErrorKind.NOT_ATTACHED, "channel has not attached")
            return self._identity

    @property
    def serial_number(self) -> Optional[int]:
        return self.identity.serial_number

    @property
    def hub_port(self) -> Optional[int]:
        return self.identity.hub_port

    @property
    def channel_index(self) -> Optional[int]:
        return self.identity.channel

    @property
    def last_value(self) -> Any:
        """Value carried by the most recent change event, or None."""
        with self._cond:
            return self._last_value

    # --- Lifecycle ---

    def open(self, channel_filter: Optional[ChannelFilter] = None) -> None:
        """Acquire a native handle and start attachment. Does not block.

        Args:
            channel_filter: Criteria replacing the ones given at construction

        Raises:
            PhidgetError: ALREADY_OPEN if open, INVALID_ARGUMENT for an
                inconsistent filter, or the translated native failure.
        """
        channel_filter = channel_filter or self._filter
        channel_filter.validate()

        with self._lifecycle:
            with self._cond:
                if self._state in _OPEN_STATES:
                    raise PhidgetError(ErrorKind.ALREADY_OPEN, f"{self!r} is already open")
                self._filter = channel_filter
                self._state = ChannelState.OPENING
                self._identity = None
                self._last_value = None
                self._bridge.start()

            try:
                handle = self._guard.acquire(self.CHANNEL_CLASS)
                self._runtime.configure(handle, channel_filter)
                self._register_native(handle)
                self._runtime.open(handle)
            except BaseException:
                self._abort_open()
                raise

        logger.info(f"Opened {type(self).__name__} ({channel_filter})")

    def open_wait(self, timeout: float = DEFAULT_OPEN_TIMEOUT) -> ChannelIdentity:
        """Open and block until attached; closes again if that fails."""
        self.open()
        try:
            return self.wait_for_attachment(timeout)
        except PhidgetError:
            self.close()
            raise

    def wait_for_attachment(self, timeout: Optional[float]) -> ChannelIdentity:
        """Block until the channel is attached.

        Args:
            timeout: Seconds; 0 or None returns at once, INFINITE waits forever.

        Raises:
            PhidgetError: TIMEOUT or NOT_ATTACHED.
        """
        return self._waiter.wait(timeout)

    def close(self) -> None:
        """Stop event delivery, wait for running handlers, release the handle.

        Safe to call repeatedly and from any thread other than one running
        this channel's handler.
        """
        self._bridge.ensure_outside_handler()
        with self._lifecycle:
            with self._cond:
                if self._state not in _OPEN_STATES and not self._guard.is_live:
                    return
                self._bridge.shutdown()
            try:
                self._release_native()
            finally:
                with self._cond:
                    self._state = ChannelState.CLOSED
                    self._waiter.notify()
        logger.info(f"Closed {type(self).__name__}")

    def __enter__(self) -> Channel:
        """Context manager support - open on enter unless already open."""
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()

    def _register_native(self, handle: Any) -> None:
        self._runtime.set_attach_handler(handle, self._on_native_attach)
        self._runtime.set_detach_handler(handle, self._on_native_detach)
        self._runtime.set_error_handler(handle, self._on_native_error)
        if self.CHANGE_EVENT is not None:
            self._runtime.set_change_handler(handle, self.CHANGE_EVENT, self._on_native_change)

    def _deregister_native(self, handle: Any) -> None:
        self._runtime.set_attach_handler(handle, None)
        self._runtime.set_detach_handler(handle, None)
        self._runtime.set_error_handler(handle, None)
        if self.CHANGE_EVENT is not None:
            self._runtime.set_change_handler(handle, self.CHANGE_EVENT, None)

    def _release_native(self) -> None:
        """Deregister callbacks, wait for running handlers, free the handle.

        The bridge must already be shut down. A failure to deregister is
        logged; the handle is released regardless.
        """
        handle = self._guard.handle if self._guard.is_live else None
        try:
            if handle is not None:
                self._deregister_native(handle)
        except PhidgetError as e:
            logger.warning(f"Failed to deregister {type(self).__name__} callbacks: {e}")
        finally:
            self._bridge.rundown()
            if handle is not None:
                self._guard.release()

    def _abort_open(self) -> None:
        """Undo a partially completed open()."""
        with self._cond:
            self._bridge.shutdown()
        try:
            self._release_native()
        except PhidgetError as e:
            logger.warning(f"Failed to release handle after failed open: {e}")
        finally:
            with self._cond:
                self._state = ChannelState.UNOPENED
                self._waiter.notify()

    # --- Native callbacks (runtime threads) ---

    def _on_native_attach(self, resolve: Callable[[], ChannelIdentity]) -> None:
        # Resolving reads the handle, so it must run inside the in-flight window
        with self._bridge.callback() as accepted:
            if not accepted:
                return
            try:
                identity = resolve()
            except PhidgetError as e:
                logger.warning(f"Could not resolve attached {type(self).__name__}: {e}")
                return
            self._attached(identity)

    def _attached(self, identity: ChannelIdentity) -> None:
        def apply():
            if not self._filter.matches(identity):
                logger.warning(f"Ignoring attach of {identity}: does not match {self._filter}")
                return None
            self._identity = identity
            self._state = ChannelState.ATTACHED
            self._waiter.notify()
            return AttachEvent(identity)

        if self._bridge.dispatch(EventKind.ATTACH, apply):
            logger.info(f"{type(self).__name__} attached: {identity}")

    def _on_native_detach(self) -> None:
        def apply():
            if self._state is not ChannelState.ATTACHED:
                return None
            self._state = ChannelState.DETACHED
            self._waiter.notify()
            return DetachEvent(self._identity)

        if self._bridge.dispatch(EventKind.DETACH, apply):
            logger.info(f"{type(self).__name__} detached")

    def _on_native_error(self, code: int, description: str) -> None:
        logger.warning(f"{type(self).__name__} error {code}: {description}")

        def apply():
            identity = self._identity or ChannelIdentity(self.CHANNEL_CLASS)
            return ErrorEvent(identity, translate(code), code, description)

        self._bridge.dispatch(EventKind.ERROR, apply)

    def _on_native_change(self, args: Tuple[Any, ...]) -> None:
        try:
            value = self._decode_change(args)
        except (TypeError, ValueError):
            logger.exception(f"Malformed {self.CHANGE_EVENT} event: {args!r}")
            return

        def apply():
            if self._state is not ChannelState.ATTACHED:
                return None
            self._last_value = value
            return ChangeEvent(self._identity, value)

        self._bridge.dispatch(EventKind.CHANGE, apply)

    def _decode_change(self, args: Tuple[Any, ...]) -> Any:
        """Turn raw native change arguments into the typed change value."""
        return args[0] if len(args) == 1 else args

    # --- Event registration ---

    def on_attach(self, handler: Optional[Callable[[AttachEvent], None]]) -> None:
        """Set the attach handler (None clears it). Channel must be open."""
        self._bridge.register(EventKind.ATTACH, handler)

    def on_detach(self, handler: Optional[Callable[[DetachEvent], None]]) -> None:
        """Set the detach handler (None clears it). Channel must be open."""
        self._bridge.register(EventKind.DETACH, handler)

    def on_error(self, handler: Optional[Callable[[ErrorEvent], None]]) -> None:
        """Set the error handler (None clears it). Channel must be open."""
        self._bridge.register(EventKind.ERROR, handler)

    def on_change(self, handler: Optional[Callable[[ChangeEvent], None]]) -> None:
        """Set the change handler (None clears it). Channel must be open.

        Raises:
            TypeError: If the device class has no change event.
        """
        if self.CHANGE_EVENT is None:
            raise TypeError(f"{type(self).__name__} has no change event")
        self._bridge.register(EventKind.CHANGE, handler)

    def remove_handler(self, kind: EventKind) -> None:
        self._bridge.register(kind, None)

    # --- Typed properties ---

    def _property(self, prop: Union[str, PropertySpec], write: bool) -> PropertySpec:
        name = prop.name if isinstance(prop, PropertySpec) else prop
        spec = self._property_table.get(name)
        if spec is None or (isinstance(prop, PropertySpec) and prop != spec):
            raise TypeError(f"{type(self).__name__} has no property {name!r}")
        if write and not spec.writable:
            raise TypeError(f"property {name!r} of {type(self).__name__} is read-only")
        if not write and not spec.readable:
            raise TypeError(f"property {name!r} of {type(self).__name__} is write-only")
        return spec

    def _require_attached(self) -> None:
        if self._state is not ChannelState.ATTACHED:
            raise PhidgetError(ErrorKind.NOT_ATTACHED,
                               f"{type(self).__name__} is {self._state.value}")

    def get(self, prop: Union[str, PropertySpec]) -> Any:
        """Read a typed property.

        Raises:
            TypeError: If the class has no such readable property.
            PhidgetError: NOT_ATTACHED unless attached, or the native failure.
        """
        spec = self._property(prop, write=False)
        with self._guard.borrow(self._require_attached) as handle:
            value = self._runtime.get_property(handle, spec)
        return spec.type(value)

    def set(self, prop: Union[str, PropertySpec], value: Any) -> None:
        """Write a typed property.

        Raises:
            TypeError: If the class has no such writable property, or the
                value has the wrong type.
            PhidgetError: NOT_ATTACHED unless attached, or the native failure.
        """
        spec = self._property(prop, write=True)
        value = spec.coerce(value)
        with self._guard.borrow(self._require_attached) as handle:
            self._runtime.set_property(handle, spec, value)
