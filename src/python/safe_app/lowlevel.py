# safe_app/lowlevel.py
"""
A low-level wrapper around the native library.

This module isolates the native/Python boundary from the rest of the library.
Native functions report their results through callbacks, possibly from a
native thread. Here every call is given a correlation token and an
`asyncio.Future`. The callbacks hand the outcome back to the event loop,
where the future is settled exactly once.
"""

import asyncio
import ctypes
import itertools
import logging
import threading
import types
from functools import cached_property
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from .dataclasses import TransformSpec
from .exceptions import (
    LibraryLoadError,
    LifecycleError,
    ProtocolViolationError,
    SafeError,
    ValidationError,
    make_error,
)
from .handles import autoref
from .types import CallStyle
from ._internal import error_const
from ._internal.ffi_types import (
    ErrorCallback,
    FfiResult,
    NotifierCallback,
    Param,
    UserData,
    as_param,
)

logger = logging.getLogger(__name__)


class NativeFunction:
    """
    Declaration of one native entry point.

    Args:
        name: The exported symbol name.
        params: Descriptors (or bare ctypes types) of the host-level
                arguments, in native order.
        results: Descriptors of the values delivered to the success callback
                 after the correlation token.
        transform: Input/output mappers applied around the call.
        style: The callback convention, see `CallStyle`.
        notifier: Whether a persistent `void(*)(void*)` notifier follows the
                  token in the native signature.
        restype: Return type of a synchronous function.
        asynchronous: False for functions that return directly and take no
                      token or callbacks.
    """
    def __init__(
        self,
        name: str,
        params: Sequence[Union[Param, type]] = (),
        results: Sequence[Union[Param, type]] = (),
        *,
        transform: Optional[TransformSpec] = None,
        style: CallStyle = CallStyle.PAIR,
        notifier: bool = False,
        restype: Optional[type] = None,
        asynchronous: bool = True,
    ):
        self.name = name
        self.params = tuple(as_param(p) for p in params)
        self.results = tuple(as_param(r) for r in results)
        self.transform = transform or TransformSpec()
        self.style = style
        self.notifier = notifier
        self.restype = restype
        self.asynchronous = asynchronous

    @cached_property
    def callback_types(self) -> tuple[type, ...]:
        result_types = [t for r in self.results for t in r.native_types]
        if self.style is CallStyle.RESULT:
            return (ctypes.CFUNCTYPE(None, UserData, ctypes.POINTER(FfiResult), *result_types),)
        return (ctypes.CFUNCTYPE(None, UserData, *result_types), ErrorCallback)

    @cached_property
    def argtypes(self) -> list[type]:
        native = [t for p in self.params for t in p.native_types]
        if not self.asynchronous:
            return native
        trailing = [UserData] + ([NotifierCallback] if self.notifier else [])
        return native + trailing + list(self.callback_types)

    def encode_args(self, args: Sequence[Any]) -> list[Any]:
        """
        Converts host-level arguments into native arguments.

        Raises:
            ValidationError: On a wrong argument count or an invalid value.
        """
        if len(args) != len(self.params):
            raise ValidationError.from_const(
                error_const.INVALID_ARGUMENT,
                f"{self.name} expects {len(self.params)} argument(s), got {len(args)}",
            )
        native: list[Any] = []
        for param, value in zip(self.params, args):
            native.extend(param.to_native(value))
        return native

    def decode_results(self, raw: Sequence[Any]) -> list[Any]:
        """Converts (and copies) the raw values delivered to a success callback."""
        values = []
        offset = 0
        for result in self.results:
            values.append(result.from_native(*raw[offset:offset + result.arity]))
            offset += result.arity
        return values

    def __repr__(self) -> str:
        return f"<NativeFunction {self.name}>"


class PendingCall:
    """One in-flight native invocation awaiting exactly one callback."""
    __slots__ = ("token", "function", "future", "loop", "owner", "generation", "fired")

    def __init__(self, token, function, future, loop, owner, generation=None):
        self.token = token
        self.function = function
        self.future = future
        self.loop = loop
        self.owner = owner
        # connection generation of the owner when the call was issued
        self.generation = generation
        self.fired = False


class PendingCallTable:
    """
    Correlation-token-keyed table of in-flight calls.

    `claim` runs on whichever thread the native callback fires on, so the
    table is guarded by a lock.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._calls: dict[int, PendingCall] = {}
        self._tokens = itertools.count(1)

    def open(self, function: NativeFunction, future: asyncio.Future,
             loop: asyncio.AbstractEventLoop, owner: Any = None,
             generation: Optional[int] = None) -> PendingCall:
        with self._lock:
            call = PendingCall(next(self._tokens), function, future, loop, owner, generation)
            self._calls[call.token] = call
        return call

    def claim(self, token: Optional[int]) -> PendingCall:
        """
        Marks the call for `token` as fired.

        Raises:
            ProtocolViolationError: If the token is unknown or already fired.
        """
        with self._lock:
            call = self._calls.get(token or 0)
            if call is None:
                raise ProtocolViolationError.from_const(
                    error_const.PROTOCOL_VIOLATION, f"callback for unknown token {token}"
                )
            if call.fired:
                raise ProtocolViolationError.from_const(
                    error_const.PROTOCOL_VIOLATION,
                    f"'{call.function.name}' (token {token}) invoked a second callback",
                )
            call.fired = True
            return call

    def remove(self, token: int) -> None:
        with self._lock:
            self._calls.pop(token, None)

    def drain_unfired(self, owner: Any = None) -> list[PendingCall]:
        """
        Removes and returns every call whose callback never fired, limited to
        the calls issued for `owner` when one is given.
        """
        with self._lock:
            unfired = [
                c for c in self._calls.values()
                if not c.fired and (owner is None or c.owner is owner)
            ]
            for call in unfired:
                del self._calls[call.token]
        return unfired

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)


class SyncCall:
    """A native function that returns its result directly."""
    def __init__(self, library: "NativeLibrary", function: NativeFunction, raw: Callable):
        self._library = library
        self.function = function
        self._raw = raw

    def __call__(self, *args: Any) -> Any:
        self._library._ensure_open()
        return self._raw(*self.function.encode_args(args))


class PromisifiedCall:
    """
    A native function of signature
    `(...args, token, [notifier,] callbacks...)` exposed as
    `call(*args) -> asyncio.Future`.

    The native function is invoked immediately. Its callbacks are created once
    per function and shared by all invocations; the token echoed back by the
    native side identifies the pending call.
    """
    def __init__(self, library: "NativeLibrary", function: NativeFunction, raw: Callable):
        self._library = library
        self.function = function
        self._raw = raw
        self._callbacks = self._make_callbacks()

    @property
    def name(self) -> str:
        return self.function.name

    def __call__(self, *args: Any, notifier: Any = None) -> asyncio.Future:
        """
        Issues the native call.

        Raises:
            ValidationError: Synchronously, if an argument cannot be converted.
            LifecycleError: If the library is closed or there is no event loop.
        """
        library = self._library
        library._ensure_open()
        spec = self.function.transform

        owner = generation = None
        if spec.handle_type is not None:
            if not args:
                raise ValidationError.from_const(
                    error_const.INVALID_ARGUMENT, f"{self.name} expects the owning App first"
                )
            owner = args[0]
            args = (owner.connection, *args[1:])
            generation = owner.connection_generation
        if spec.input is not None:
            args = tuple(spec.input(*args))
        native_args = self.function.encode_args(args)

        trailing: list[Any] = []
        if self.function.notifier:
            if notifier is None:
                raise ValidationError.from_const(
                    error_const.INVALID_ARGUMENT, f"{self.name} requires a notifier callback"
                )
            trailing.append(notifier)
        trailing.extend(self._callbacks)

        loop = library._bind_loop()
        future = loop.create_future()
        call = library._pending.open(self.function, future, loop, owner, generation)
        logger.debug("Calling %s (token %d)", self.name, call.token)
        try:
            self._raw(*native_args, ctypes.c_void_p(call.token), *trailing)
        except BaseException:
            library._pending.remove(call.token)
            raise
        return future

    # --- Callback side (any thread) ---

    def _make_callbacks(self) -> tuple:
        function = self.function
        if function.style is CallStyle.RESULT:
            (result_type,) = function.callback_types

            def on_result(token, result_ptr, *raw):
                result = result_ptr.contents if result_ptr else None
                if result is not None and result.error_code != 0:
                    self._settle(token, error=(result.error_code, result.description))
                else:
                    self._settle(token, raw=raw)

            return (result_type(on_result),)

        success_type, error_type = function.callback_types

        def on_success(token, *raw):
            self._settle(token, raw=raw)

        def on_error(token, code, message):
            self._settle(token, error=(code, message))

        return (success_type(on_success), error_type(on_error))

    def _settle(self, token: Optional[int], raw: Sequence[Any] = (),
                error: Optional[tuple[int, Any]] = None) -> None:
        try:
            call = self._library._pending.claim(token)
        except ProtocolViolationError as violation:
            self._library._report_violation(violation)
            return

        if error is not None:
            outcome: Any = make_error(*error)
            deliver = self._reject
        else:
            # native memory is only valid until this callback returns
            try:
                outcome = self.function.decode_results(raw)
                deliver = self._resolve
            except SafeError as e:
                outcome, deliver = e, self._reject

        try:
            call.loop.call_soon_threadsafe(deliver, call, outcome)
        except RuntimeError:
            self._library._pending.remove(call.token)
            logger.warning(
                "Event loop closed before the result of %s (token %d) was delivered",
                self.name, call.token,
            )

    # --- Loop side ---

    def _reject(self, call: PendingCall, error: BaseException) -> None:
        self._library._pending.remove(call.token)
        logger.debug("%s (token %d) failed: %s", self.name, call.token, error)
        if not call.future.done():
            call.future.set_exception(error)

    def _resolve(self, call: PendingCall, values: list[Any]) -> None:
        self._library._pending.remove(call.token)
        logger.debug("%s (token %d) succeeded", self.name, call.token)
        if call.future.done():
            return
        try:
            value = self._shape(call, values)
        except Exception as e:
            call.future.set_exception(e)
        else:
            call.future.set_result(value)

    def _shape(self, call: PendingCall, values: list[Any]) -> Any:
        spec = self.function.transform
        if spec.output is not None:
            value = spec.output(*values)
        elif not values:
            value = None
        elif len(values) == 1:
            value = values[0]
        else:
            value = tuple(values)

        if spec.handle_type is None:
            return value
        if isinstance(spec.handle_type, tuple):
            return tuple(
                autoref(cls(call.owner, v, call.generation)) for cls, v in zip(spec.handle_type, value)
            )
        return autoref(spec.handle_type(call.owner, value, call.generation))

    def __repr__(self) -> str:
        return f"<PromisifiedCall {self.name}>"


class NativeLibrary:
    """
    A loaded native library together with its declared functions.

    Registered functions are reachable as attributes:
    `library.sign_key_new(app, raw_key)` returns a future for asynchronous
    functions and the direct result for synchronous ones.
    """
    def __init__(self, handle: Any, functions: Iterable[NativeFunction] = ()):
        self._handle = handle
        self._functions: dict[str, NativeFunction] = {}
        self._calls: dict[str, Union[PromisifiedCall, SyncCall]] = {}
        self._pending = PendingCallTable()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
        self._violations = 0
        self._violations_lock = threading.Lock()
        for function in functions:
            self.register(function)

    @classmethod
    def load(cls, path: str, functions: Optional[Iterable[NativeFunction]] = None) -> "NativeLibrary":
        """
        Loads the shared library at `path` and binds its functions.

        Raises:
            LibraryLoadError: If the library or one of its symbols cannot be loaded.
        """
        try:
            handle = ctypes.CDLL(path, mode=ctypes.RTLD_GLOBAL)
        except OSError as e:
            raise LibraryLoadError.from_const(error_const.FAILED_TO_LOAD_LIB, e) from e
        logger.debug("Loaded native library %s", path)
        if functions is None:
            from .native import FUNCTIONS as functions
        return cls(handle, functions)

    @property
    def functions(self) -> Mapping[str, NativeFunction]:
        """A read-only view of the registered native functions."""
        return types.MappingProxyType(self._functions)

    def register(self, function: NativeFunction) -> None:
        """
        Binds a native function declaration to its symbol.

        Raises:
            ValueError: If a function of that name is already registered.
            LibraryLoadError: If the symbol does not exist.
        """
        if function.name in self._functions:
            raise ValueError(f"Native function '{function.name}' is already registered.")
        try:
            raw = getattr(self._handle, function.name)
        except AttributeError as e:
            raise LibraryLoadError.from_const(
                error_const.FAILED_TO_LOAD_LIB, f"missing symbol '{function.name}'"
            ) from e
        if hasattr(raw, "argtypes"):
            raw.argtypes = function.argtypes
            raw.restype = function.restype

        self._functions[function.name] = function
        if function.asynchronous:
            self._calls[function.name] = PromisifiedCall(self, function, raw)
        else:
            self._calls[function.name] = SyncCall(self, function, raw)

    def __getattr__(self, name: str) -> Union[PromisifiedCall, SyncCall]:
        try:
            return self.__dict__["_calls"][name]
        except KeyError:
            raise AttributeError(f"Native function '{name}' is not registered.") from None

    def call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        return getattr(self, name)(*args, **kwargs)

    def make_notifier(self, callback: Callable[[], Any]) -> Any:
        """
        Wraps `callback` as a native `void(*)(void*)` notifier.

        Notifications are delivered on the event loop that is running now.
        The returned object must be kept alive as long as the native side may
        invoke it.
        """
        loop = self._bind_loop()

        def notify(user_data):
            try:
                loop.call_soon_threadsafe(callback)
            except RuntimeError:
                logger.warning("Dropped a native notification: event loop is closed")

        return NotifierCallback(notify)

    @property
    def pending_count(self) -> int:
        """Number of issued calls that have not been settled yet."""
        return len(self._pending)

    @property
    def protocol_violations(self) -> int:
        """Number of callback contract violations observed so far."""
        return self._violations

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stops accepting calls and fails the calls that will never settle."""
        if self._closed:
            return
        self._closed = True
        self.abandon_pending()

    def abandon_pending(self, owner: Any = None) -> None:
        """
        Fails every call whose callbacks never fired with a
        `ProtocolViolationError`, so that no caller waits forever. With
        `owner`, only the calls issued for that owner are failed.
        """
        for call in self._pending.drain_unfired(owner):
            violation = ProtocolViolationError.from_const(
                error_const.PROTOCOL_VIOLATION,
                f"'{call.function.name}' (token {call.token}) never invoked a callback",
            )
            self._report_violation(violation, call.loop)
            if not call.loop.is_closed():
                call.loop.call_soon_threadsafe(_fail_future, call.future, violation)

    # --- Internals ---

    def _ensure_open(self) -> None:
        if self._closed:
            raise LifecycleError.from_const(error_const.LIBRARY_CLOSED)

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # e.g. a GC-triggered release outside of a coroutine
            loop = self._loop
            if loop is None or loop.is_closed():
                raise LifecycleError.from_const(error_const.NO_EVENT_LOOP) from None
        self._loop = loop
        return loop

    def _report_violation(self, violation: ProtocolViolationError,
                          loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        with self._violations_lock:
            self._violations += 1
        logger.critical("%s", violation)
        loop = loop or self._loop
        if loop is None or loop.is_closed():
            return
        context = {"message": violation.message, "exception": violation}
        loop.call_soon_threadsafe(loop.call_exception_handler, context)


def _fail_future(future: asyncio.Future, error: BaseException) -> None:
    if not future.done():
        future.set_exception(error)
