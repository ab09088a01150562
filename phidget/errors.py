"""Error taxonomy for the Phidget layer.

Native calls report failures as integer status codes. These are translated
into a small set of ErrorKind values and raised as PhidgetError. Broken
internal invariants (the safety protocol itself failing) raise
InvariantError instead, which callers are not expected to recover from.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ReturnCode:
    """Native status codes returned by the phidget22 runtime."""
    EPHIDGET_OK = 0
    EPHIDGET_PERM = 1
    EPHIDGET_NOENT = 2
    EPHIDGET_TIMEOUT = 3
    EPHIDGET_INTERRUPTED = 4
    EPHIDGET_IO = 5
    EPHIDGET_NOMEMORY = 6
    EPHIDGET_ACCESS = 7
    EPHIDGET_FAULT = 8
    EPHIDGET_BUSY = 9
    EPHIDGET_EXIST = 10
    EPHIDGET_NOTDIR = 11
    EPHIDGET_ISDIR = 12
    EPHIDGET_INVALID = 13
    EPHIDGET_NFILE = 14
    EPHIDGET_MFILE = 15
    EPHIDGET_NOSPC = 16
    EPHIDGET_FBIG = 17
    EPHIDGET_ROFS = 18
    EPHIDGET_RO = 19
    EPHIDGET_UNSUPPORTED = 20
    EPHIDGET_INVALIDARG = 21
    EPHIDGET_AGAIN = 22
    EPHIDGET_NOTEMPTY = 26
    EPHIDGET_DUPLICATE = 27
    EPHIDGET_UNEXPECTED = 28
    EPHIDGET_EOF = 31
    EPHIDGET_NODEV = 40
    EPHIDGET_WRONGDEVICE = 50
    EPHIDGET_UNKNOWNVAL = 51
    EPHIDGET_NOTATTACHED = 52
    EPHIDGET_INVALIDPACKET = 53
    EPHIDGET_2BIG = 54
    EPHIDGET_BADVERSION = 55
    EPHIDGET_CLOSED = 56
    EPHIDGET_NOTCONFIGURED = 57


class ErrorKind(Enum):
    """Structured failure categories surfaced by every public operation."""
    UNSUPPORTED = "unsupported"
    INVALID_ARGUMENT = "invalid_argument"
    NOT_ATTACHED = "not_attached"
    TIMEOUT = "timeout"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    ALREADY_OPEN = "already_open"
    INTERNAL = "internal"


_KIND_BY_CODE = {
    ReturnCode.EPHIDGET_UNSUPPORTED: ErrorKind.UNSUPPORTED,
    ReturnCode.EPHIDGET_WRONGDEVICE: ErrorKind.UNSUPPORTED,
    ReturnCode.EPHIDGET_INVALIDARG: ErrorKind.INVALID_ARGUMENT,
    ReturnCode.EPHIDGET_INVALID: ErrorKind.INVALID_ARGUMENT,
    ReturnCode.EPHIDGET_2BIG: ErrorKind.INVALID_ARGUMENT,
    ReturnCode.EPHIDGET_NOTATTACHED: ErrorKind.NOT_ATTACHED,
    ReturnCode.EPHIDGET_CLOSED: ErrorKind.NOT_ATTACHED,
    ReturnCode.EPHIDGET_NODEV: ErrorKind.NOT_ATTACHED,
    ReturnCode.EPHIDGET_TIMEOUT: ErrorKind.TIMEOUT,
    ReturnCode.EPHIDGET_PERM: ErrorKind.PERMISSION_DENIED,
    ReturnCode.EPHIDGET_ACCESS: ErrorKind.PERMISSION_DENIED,
    ReturnCode.EPHIDGET_NOMEMORY: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_NFILE: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_MFILE: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_NOSPC: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_BUSY: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_AGAIN: ErrorKind.RESOURCE_EXHAUSTED,
    ReturnCode.EPHIDGET_EXIST: ErrorKind.ALREADY_OPEN,
    ReturnCode.EPHIDGET_DUPLICATE: ErrorKind.ALREADY_OPEN,
}


def translate(native_code: int) -> ErrorKind:
    """Map a native status code to an ErrorKind.

    Codes without a dedicated kind map to ErrorKind.INTERNAL; the original
    code is kept on the raised PhidgetError.
    """
    return _KIND_BY_CODE.get(native_code, ErrorKind.INTERNAL)


class PhidgetError(RuntimeError):
    """Recoverable failure from a channel, manager or native call.

    Attributes:
        kind: The ErrorKind category.
        code: Native status code, if the failure came from the runtime.
    """

    def __init__(self, kind: ErrorKind, message: str = "",
                 code: Optional[int] = None):
        self.kind = kind
        self.code = code
        if not message:
            message = kind.value.replace("_", " ")
        if code is not None:
            message = f"{message} (native code {code})"
        super().__init__(message)

    @classmethod
    def from_code(cls, code: int, message: str = "") -> PhidgetError:
        """Build an error from a native status code."""
        return cls(translate(code), message, code=code)


class InvariantError(AssertionError):
    """Raised when the handle/rundown protocol is violated.

    This signals a programming error (double release, negative in-flight
    count, rundown from inside a handler) and is not a PhidgetError.
    """
