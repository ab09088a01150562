"""Abstract base class for the native runtime surface.

The NativeRuntime interface is the only way the channel layer talks to the
vendor runtime. It is handle based: create() hands out an opaque handle,
every other call takes that handle, and callbacks are registered per handle
and per event kind.

Key principles:
- Handles are opaque; callers never inspect them
- Every failing call raises PhidgetError translated from the native code
- Callbacks run on runtime-owned threads, never on the caller's thread
- Passing None as a callback deregisters it
- Attach callbacks receive a resolver instead of a value; calling it reads
  the native handle, so the receiver decides when that read is safe
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple

from ..models import ChannelClass, ChannelFilter, ChannelIdentity, DeviceDescriptor, PropertySpec

IdentityResolver = Callable[[], ChannelIdentity]
DeviceResolver = Callable[[], Optional[DeviceDescriptor]]

AttachCallback = Callable[[IdentityResolver], None]
DetachCallback = Callable[[], None]
ErrorCallback = Callable[[int, str], None]
ChangeCallback = Callable[[Tuple[Any, ...]], None]
DeviceCallback = Callable[[DeviceResolver], None]


class NativeRuntime(ABC):
    """Abstract native runtime interface.

    Implementations wrap a concrete runtime (Phidget22) or fake one for
    tests. They must not add their own locking around callbacks; the channel
    layer does that.
    """

    # --- Channel handles ---

    @abstractmethod
    def create(self, channel_class: ChannelClass) -> Any:
        """Acquire a new native handle for a channel class.

        Returns:
            An opaque handle, never reused after delete()
        """

    @abstractmethod
    def configure(self, handle: Any, channel_filter: ChannelFilter) -> None:
        """Apply matching criteria to a handle before it is opened."""

    @abstractmethod
    def open(self, handle: Any) -> None:
        """Ask the runtime to begin attaching the handle. Does not block."""

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Close an opened handle. The handle remains allocated."""

    @abstractmethod
    def delete(self, handle: Any) -> None:
        """Free a handle. It must not be used afterwards."""

    @abstractmethod
    def set_attach_handler(self, handle: Any, callback: Optional[AttachCallback]) -> None:
        """Register the attach callback.

        The callback receives a resolver returning the attached identity. The
        resolver may raise PhidgetError.
        """

    @abstractmethod
    def set_detach_handler(self, handle: Any, callback: Optional[DetachCallback]) -> None:
        """Register the detach callback."""

    @abstractmethod
    def set_error_handler(self, handle: Any, callback: Optional[ErrorCallback]) -> None:
        """Register the error callback; it receives (code, description)."""

    @abstractmethod
    def set_change_handler(
        self,
        handle: Any,
        event: str,
        callback: Optional[ChangeCallback],
    ) -> None:
        """Register a data-change callback.

        Args:
            handle: Channel handle
            event: Native event stem, e.g. "VoltageChange"
            callback: Receives the raw event arguments as a tuple
        """

    @abstractmethod
    def get_property(self, handle: Any, spec: PropertySpec) -> Any:
        """Read a property. Blocks until the runtime answers."""

    @abstractmethod
    def set_property(self, handle: Any, spec: PropertySpec, value: Any) -> None:
        """Write a property. Blocks until the runtime answers."""

    @abstractmethod
    def resolve_identity(self, handle: Any, channel_class: ChannelClass) -> ChannelIdentity:
        """Read back which physical channel a handle is bound to."""

    # --- Device manager ---

    @abstractmethod
    def create_manager(self) -> Any:
        """Acquire a native device-manager handle."""

    @abstractmethod
    def set_manager_handlers(
        self,
        manager: Any,
        on_attach: Optional[DeviceCallback],
        on_detach: Optional[DeviceCallback],
    ) -> None:
        """Register (or clear, with None) device add/remove callbacks.

        Each callback receives a resolver returning the DeviceDescriptor, or
        None for a channel class this package does not model.
        """

    @abstractmethod
    def open_manager(self, manager: Any) -> None:
        """Start discovery. Already-attached devices are reported as attaches."""

    @abstractmethod
    def close_manager(self, manager: Any) -> None:
        """Stop discovery."""

    @abstractmethod
    def delete_manager(self, manager: Any) -> None:
        """Free a manager handle."""
