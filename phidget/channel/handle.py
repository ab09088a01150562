"""Exclusive ownership of one native channel handle.

The guard hands the handle out to caller threads through borrow(), and
release() waits until every borrow has ended before closing and freeing the
handle. A handle is released exactly once; acquiring again always yields a
fresh handle from the runtime.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from ..errors import ErrorKind, InvariantError, PhidgetError
from ..models import ChannelClass
from ..native.base import NativeRuntime

logger = logging.getLogger(__name__)


class NativeHandleGuard:
    """Owner of a single native handle.

    Shares its condition with the owning channel so that state checks and
    borrows are atomic with respect to state transitions.
    """

    def __init__(self, runtime: NativeRuntime, cond: threading.Condition):
        self._runtime = runtime
        self._cond = cond
        self._handle: Optional[Any] = None
        self._borrowers = 0

    @property
    def is_live(self) -> bool:
        """True while a handle is held."""
        with self._cond:
            return self._handle is not None

    @property
    def handle(self) -> Any:
        """The live handle.

        Raises:
            PhidgetError: NOT_ATTACHED if no handle is held.
        """
        with self._cond:
            if self._handle is None:
                raise PhidgetError(ErrorKind.NOT_ATTACHED, "channel has no native handle")
            return self._handle

    @property
    def borrowers(self) -> int:
        with self._cond:
            return self._borrowers

    def acquire(self, channel_class: ChannelClass) -> Any:
        """Create a new native handle for the channel class."""
        with self._cond:
            if self._handle is not None:
                raise InvariantError("handle guard already owns a handle")
        handle = self._runtime.create(channel_class)
        with self._cond:
            self._handle = handle
        logger.debug(f"Acquired native handle for {channel_class.name}")
        return handle

    @contextmanager
    def borrow(self, precondition: Optional[Callable[[], None]] = None) -> Iterator[Any]:
        """Use the handle for a native call.

        Args:
            precondition: Called under the lock before the borrow is counted;
                it raises to refuse the borrow.

        Raises:
            PhidgetError: NOT_ATTACHED if no handle is held.
        """
        with self._cond:
            if precondition is not None:
                precondition()
            if self._handle is None:
                raise PhidgetError(ErrorKind.NOT_ATTACHED, "channel has no native handle")
            handle = self._handle
            self._borrowers += 1
        try:
            yield handle
        finally:
            with self._cond:
                self._borrowers -= 1
                if self._borrowers < 0:
                    raise InvariantError("handle borrow count went negative")
                if self._borrowers == 0:
                    self._cond.notify_all()

    def release(self) -> None:
        """Close and free the handle once no borrow is in progress.

        Raises:
            InvariantError: If no handle is held (double release).
            PhidgetError: If the runtime fails to close the handle. The
                handle is freed regardless.
        """
        with self._cond:
            if self._handle is None:
                raise InvariantError("release of a handle that is not held")
            self._cond.wait_for(lambda: self._borrowers == 0)
            handle = self._handle
            self._handle = None
        try:
            self._runtime.close(handle)
        finally:
            self._runtime.delete(handle)
            logger.debug("Released native handle")
