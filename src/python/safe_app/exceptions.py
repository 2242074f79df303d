# safe_app/exceptions.py
"""Custom exception types for the safe_app library."""

from typing import Any, Optional, Union

from .dataclasses import ErrorRecord
from .types import NativeErrorCode
from ._internal import error_const
from ._internal.error_const import ErrorConst


class SafeError(Exception):
    """
    Base exception for all errors raised by this library.

    Attributes:
        message (str): The human-readable error message.
        code (int): A stable numeric code callers can branch on.
    """
    def __init__(self, message: str, *, code: int):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return f"{self.message} (code={self.code})"

    @property
    def record(self) -> ErrorRecord:
        """An immutable snapshot of this error's code and message."""
        return ErrorRecord(code=self.code, message=self.message)

    @classmethod
    def from_const(cls, const: ErrorConst, detail: Any = None) -> "SafeError":
        return cls(const.format(detail), code=const.code)


class ValidationError(SafeError):
    """A host-side precondition failed before any native call was issued."""
    pass


class LibraryLoadError(SafeError):
    """The native shared library could not be loaded."""
    pass


class LifecycleError(SafeError):
    """
    An operation was attempted on a connection or handle that is not usable,
    either because setup is incomplete or because it has been freed.
    """
    pass


class ProtocolViolationError(SafeError):
    """
    A native call did not honour its callback contract: both callbacks
    fired, one fired twice, or neither fired before the library closed.
    """
    pass


class NativeCallError(SafeError):
    """
    Error reported by the native library through an error callback.

    Attributes:
        message (str): The description provided by the native side.
        code (int): The native error code (e.g., -103 for ERR_NO_SUCH_DATA).
        name (str | None): The symbolic name of the code, if known.
    """
    def __init__(self, message: str, *, code: int, name: Optional[str] = None):
        super().__init__(message, code=code)
        self.name = name

    def __str__(self) -> str:
        return f"{self.message} (code={self.code}, name='{self.name}')"

    @classmethod
    def from_native(cls, code: int, message: Union[bytes, str, None]) -> "NativeCallError":
        """Factory method to create a NativeCallError from a native (code, message) pair."""
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        try:
            name = NativeErrorCode(code).name
        except ValueError:
            name = None
        if not message:
            message = name or "Unknown native error"
        return cls(message, code=code, name=name)


_CLASS_FOR_CODE: dict[int, type[SafeError]] = {
    error_const.FAILED_TO_LOAD_LIB.code: LibraryLoadError,
    error_const.SETUP_INCOMPLETE.code: LifecycleError,
    error_const.CONNECTION_FREED.code: LifecycleError,
    error_const.HANDLE_RELEASED.code: LifecycleError,
    error_const.OUTSTANDING_HANDLES.code: LifecycleError,
    error_const.NO_EVENT_LOOP.code: LifecycleError,
    error_const.LIBRARY_CLOSED.code: LifecycleError,
    error_const.PROTOCOL_VIOLATION.code: ProtocolViolationError,
}


def make_error(code: int, message: Union[bytes, str, None] = None, detail: Any = None) -> SafeError:
    """
    Maps an error code to a typed error carrying that code.

    Host codes (>= 1000) use the registered message, formatted with `detail`
    when it is a template, unless an explicit `message` overrides it. Every
    other code is treated as a native error.
    """
    const = error_const.ALL.get(code)
    if const is None:
        return NativeCallError.from_native(code, message)
    cls = _CLASS_FOR_CODE.get(code, ValidationError)
    if message is None:
        return cls.from_const(const, detail)
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    return cls(message, code=code)
