"""Bridge from native callback threads to user handlers.

The native runtime calls back on its own threads, at any time. The bridge
keeps one handler slot per event kind, counts invocations that are in
progress, and lets the owner run down: stop accepting, then wait for the
in-flight count to reach zero before the native handle goes away.

Performance Note:
    Handlers run synchronously on the runtime's delivery thread. A handler
    that blocks stalls delivery for every channel sharing that thread.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from ..errors import ErrorKind, InvariantError, PhidgetError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventKind(Enum):
    ATTACH = "attach"
    DETACH = "detach"
    ERROR = "error"
    CHANGE = "change"


class EventBridge:
    """Handler slots plus in-flight accounting for one channel or manager.

    All state lives under the owner's condition, which must be re-entrant
    (threading.Condition() defaults to an RLock).
    """

    def __init__(self, cond: threading.Condition, name: str = ""):
        self._cond = cond
        self._name = name
        self._slots: Dict[EventKind, Handler] = {}
        self._accepting = False
        self._in_flight = 0
        # thread ident -> number of invocations it is inside of
        self._delivering: Counter = Counter()

    @property
    def accepting(self) -> bool:
        with self._cond:
            return self._accepting

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def start(self) -> None:
        """Begin accepting native callbacks with all slots empty."""
        with self._cond:
            self._slots.clear()
            self._accepting = True

    def register(self, kind: EventKind, handler: Optional[Handler]) -> None:
        """Store the handler for an event kind; last registration wins.

        Passing None clears the slot.

        Raises:
            PhidgetError: NOT_ATTACHED if the owner is not open.
        """
        with self._cond:
            if not self._accepting:
                raise PhidgetError(ErrorKind.NOT_ATTACHED,
                                   f"{self._name or 'bridge'} is not open")
            if handler is None:
                self._slots.pop(kind, None)
            else:
                self._slots[kind] = handler

    def handler(self, kind: EventKind) -> Optional[Handler]:
        with self._cond:
            return self._slots.get(kind)

    def dispatch(self, kind: EventKind, apply: Callable[[], Any]) -> bool:
        """Deliver one native callback.

        Args:
            kind: Which slot to invoke
            apply: Runs under the lock; records any state change the event
                implies and returns the event to deliver, or None to drop it.

        Returns:
            True if the event was accepted (whether or not a handler was set).
        """
        with self._cond:
            if not self._accepting:
                return False
            event = apply()
            if event is None:
                return False
            handler = self._slots.get(kind)
            if handler is None:
                return True
            self._enter()

        try:
            handler(event)
        except Exception:
            logger.exception(f"Error in {self._name} {kind.value} handler")
        finally:
            self._leave()
        return True

    @contextmanager
    def callback(self) -> Iterator[bool]:
        """Count a whole native callback as in flight.

        Yields False, without counting, once the bridge has stopped
        accepting. Native reads done inside the block finish before
        rundown() returns, so the handle they use is still live.
        """
        with self._cond:
            if not self._accepting:
                accepted = False
            else:
                accepted = True
                self._enter()
        try:
            yield accepted
        finally:
            if accepted:
                self._leave()

    def _enter(self) -> None:
        # Caller holds the lock
        self._in_flight += 1
        self._delivering[threading.get_ident()] += 1

    def _leave(self) -> None:
        me = threading.get_ident()
        with self._cond:
            self._in_flight -= 1
            self._delivering[me] -= 1
            if self._delivering[me] <= 0:
                del self._delivering[me]
            if self._in_flight < 0:
                raise InvariantError("in-flight handler count went negative")
            if self._in_flight == 0:
                self._cond.notify_all()

    def ensure_outside_handler(self) -> None:
        """Refuse rundown from a thread that is running one of our handlers.

        Raises:
            InvariantError: If called from inside a handler of this bridge.
        """
        with self._cond:
            if threading.get_ident() in self._delivering:
                raise InvariantError(
                    f"{self._name} cannot be closed from inside its own handler"
                )

    def shutdown(self) -> None:
        """Stop accepting callbacks and drop every handler."""
        with self._cond:
            self._accepting = False
            self._slots.clear()

    def rundown(self) -> None:
        """Block until no handler invocation is in progress.

        Must follow shutdown(); afterwards no invocation can begin.
        """
        self.ensure_outside_handler()
        with self._cond:
            if self._accepting:
                raise InvariantError("rundown requested while still accepting callbacks")
            self._cond.wait_for(lambda: self._in_flight == 0)
