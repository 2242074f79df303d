# safe_app/_internal/error_const.py

"""
Host-side error codes and their messages.

Codes below zero belong to the native library (see `NativeErrorCode`); the
codes defined here are raised by the binding itself and start at 1000.
"""
from dataclasses import dataclass
from typing import Any, Callable, Union

Message = Union[str, Callable[[Any], str]]


@dataclass(frozen=True, slots=True)
class ErrorConst:
    code: int
    msg: Message

    def format(self, detail: Any = None) -> str:
        """Renders the message, applying `detail` when it is a template."""
        if callable(self.msg):
            return self.msg(detail)
        return self.msg


FAILED_TO_LOAD_LIB = ErrorConst(1000, lambda e: f"Failed to load native libraries: {e}")
SETUP_INCOMPLETE = ErrorConst(1001, "Setup Incomplete. Connection not available yet.")
MALFORMED_APP_INFO = ErrorConst(
    1002,
    'Malformed app info. Be sure "id", "name", and "vendor" are defined and not empty.',
)
MISSING_AUTH_URI = ErrorConst(1008, "Please provide auth URI")
LOGGER_INIT_ERROR = ErrorConst(1015, lambda e: f"Logger initialisation failed. Reason: {e}")
CONFIG_PATH_ERROR = ErrorConst(
    1016, lambda e: f"Failed to set additional config search path. Reason: {e}"
)
XOR_NAME = ErrorConst(1017, lambda size: f"Name _must be_ provided and {size} bytes long.")
NONCE = ErrorConst(1018, lambda size: f"Nonce _must be_ provided and {size} bytes long.")
TYPE_TAG_NAN = ErrorConst(1019, "Type tag provided _must be_ an integer")
INVALID_SEC_KEY = ErrorConst(
    1020, lambda size: f"Secret encryption key _must be_ provided and {size} bytes long."
)
INVALID_KEY = ErrorConst(1024, lambda size: f"Key _must be_ provided and {size} bytes long.")
CONNECTION_FREED = ErrorConst(
    1025, "Connection has been freed. Handles derived from it are no longer valid."
)
HANDLE_RELEASED = ErrorConst(1026, lambda name: f"{name} handle has already been released.")
OUTSTANDING_HANDLES = ErrorConst(
    1027,
    lambda count: f"Cannot free the connection while {count} handle(s) are still live. "
    "Release them first or use `close()`.",
)
INTEGER_OUT_OF_RANGE = ErrorConst(1028, lambda detail: f"Integer argument out of range: {detail}")
PROTOCOL_VIOLATION = ErrorConst(1029, lambda detail: f"Native callback protocol violated: {detail}")
INVALID_ARGUMENT = ErrorConst(1030, lambda detail: f"Invalid argument: {detail}")
NO_EVENT_LOOP = ErrorConst(1031, "No running event loop to deliver native results to.")
LIBRARY_CLOSED = ErrorConst(1032, "Native library has been closed.")

ALL: dict[int, ErrorConst] = {
    c.code: c
    for c in (
        FAILED_TO_LOAD_LIB,
        SETUP_INCOMPLETE,
        MALFORMED_APP_INFO,
        MISSING_AUTH_URI,
        LOGGER_INIT_ERROR,
        CONFIG_PATH_ERROR,
        XOR_NAME,
        NONCE,
        TYPE_TAG_NAN,
        INVALID_SEC_KEY,
        INVALID_KEY,
        CONNECTION_FREED,
        HANDLE_RELEASED,
        OUTSTANDING_HANDLES,
        INTEGER_OUT_OF_RANGE,
        PROTOCOL_VIOLATION,
        INVALID_ARGUMENT,
        NO_EVENT_LOOP,
        LIBRARY_CLOSED,
    )
}
