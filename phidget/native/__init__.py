"""Native runtime layer.

This module provides:
- The abstract handle-based call surface (NativeRuntime)
- The Phidget22-backed implementation (Phidget22Runtime)
- A shared default runtime used when none is injected (default_runtime)
"""

import threading
from typing import Optional

from .base import NativeRuntime
from .phidget22 import Phidget22Runtime

_default_runtime: Optional[NativeRuntime] = None
_default_lock = threading.Lock()


def default_runtime() -> NativeRuntime:
    """Return the process-wide Phidget22Runtime, creating it on first use."""
    global _default_runtime
    with _default_lock:
        if _default_runtime is None:
            _default_runtime = Phidget22Runtime()
        return _default_runtime


__all__ = [
    'NativeRuntime',
    'Phidget22Runtime',
    'default_runtime',
]
