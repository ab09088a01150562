"""Blocking wait for a channel to become attached."""
from __future__ import annotations

import math
import threading
from typing import Callable, Optional

from ..errors import ErrorKind, PhidgetError
from ..models import ChannelIdentity, ChannelState

INFINITE = math.inf

# States in which waiting longer cannot lead to attachment
_NOT_OPEN = (ChannelState.UNOPENED, ChannelState.CLOSED)


class AttachmentWaiter:
    """Waits on the channel's condition for the ATTACHED state.

    The state is read under the same lock the attach callback records the
    transition under, so an attach that happens before wait() starts is seen.
    """

    def __init__(self,
                 cond: threading.Condition,
                 get_state: Callable[[], ChannelState],
                 get_identity: Callable[[], Optional[ChannelIdentity]]):
        self._cond = cond
        self._get_state = get_state
        self._get_identity = get_identity

    def notify(self) -> None:
        """Wake waiters after a state change. Caller holds the lock."""
        self._cond.notify_all()

    def wait(self, timeout: Optional[float]) -> ChannelIdentity:
        """Block until attached.

        Args:
            timeout: Seconds to wait. 0 or None checks the current state and
                returns at once; INFINITE waits indefinitely.

        Returns:
            The resolved identity of the attached channel.

        Raises:
            PhidgetError: TIMEOUT if attachment did not happen in time,
                NOT_ATTACHED if the channel is not open or was closed while
                waiting, INVALID_ARGUMENT for a negative timeout.
        """
        if timeout is None:
            timeout = 0
        if timeout < 0:
            raise PhidgetError(ErrorKind.INVALID_ARGUMENT, f"negative timeout {timeout}")
        if math.isinf(timeout):
            timeout = None

        def settled() -> bool:
            return self._get_state() is ChannelState.ATTACHED or self._get_state() in _NOT_OPEN

        with self._cond:
            if not settled() and timeout != 0:
                self._cond.wait_for(settled, timeout)
            state = self._get_state()
            if state is ChannelState.ATTACHED:
                return self._get_identity()
            if state in _NOT_OPEN:
                raise PhidgetError(ErrorKind.NOT_ATTACHED, f"channel is {state.value}")
            raise PhidgetError(ErrorKind.TIMEOUT, "timed out waiting for attachment")
