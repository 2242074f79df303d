# tests/conftest.py
"""
Pytest configuration and shared fixtures for the test suite.

`FakeNative` stands in for the shared library. Its functions are plain
Python callables that receive exactly what a native function would: the
converted arguments, the correlation token, the notifier and the `ctypes`
callback objects. Results are delivered by invoking those callbacks, so the
whole callback path (argument conversion included) is exercised.
"""
import ctypes
import functools
import itertools
import threading
from typing import Any, Callable, Optional

import pytest
import pytest_asyncio

from safe_app import App, AppInfo
from safe_app.lowlevel import NativeFunction, NativeLibrary
from safe_app.native import FUNCTIONS
from safe_app.types import CallStyle
from safe_app._internal.ffi_types import ByteBuffer, FfiAccountInfo, FfiResult, FixedBytes, Scalar, StructPtr

APP_INFO = AppInfo(id="net.maidsafe.test", name="Test App", vendor="MaidSafe")
AUTH_URI = b"safe-auth:AAAAAAAAAAAAAAAAAAABAAAAAAAAAAAAAAAAAA"


def native_buffer(data: bytes, capacity: bool = False) -> tuple:
    """Native `(uint8*, len[, cap])` values for `data`."""
    buf = (ctypes.c_uint8 * max(len(data), 1)).from_buffer_copy(data.ljust(1, b"\0"))
    return (buf, len(data), len(data)) if capacity else (buf, len(data))


def native_fixed(data: bytes) -> tuple:
    return ((ctypes.c_uint8 * len(data)).from_buffer_copy(data),)


class FakeNative:
    """
    In-process stand-in for the native library.

    Attributes:
        calls: `(name, native_args)` of every invocation, in order.
        freed: `(name, handle)` of every asynchronous free.
        freed_connections: Connection pointers passed to `app_free`.
        errors: Maps a function name to the `(code, description)` it fails with.
        results: Maps a function name to a callable producing its native
                 result values from its native arguments.
        mode: "inline" fires callbacks before returning, "thread" fires them
              from a worker thread, "manual" queues them in `deferred`.
    """
    def __init__(self, functions=FUNCTIONS):
        self.declarations: dict[str, NativeFunction] = {f.name: f for f in functions}
        self.calls: list[tuple[str, tuple]] = []
        self.freed: list[tuple[str, int]] = []
        self.freed_connections: list[int] = []
        self.notifiers: list[Any] = []
        self.errors: dict[str, tuple[int, bytes]] = {}
        self.results: dict[str, Callable[[tuple], tuple]] = {}
        self.deferred: list[Callable[[], None]] = []
        self.threads: list[threading.Thread] = []
        self.mode = "inline"
        self.mock_build = True
        self._handles = itertools.count(1)
        self._connections = itertools.count(0x1000)
        self._lock = threading.Lock()

    def declare(self, function: NativeFunction) -> None:
        self.declarations[function.name] = function

    def __getattr__(self, name: str):
        declarations = self.__dict__.get("declarations", {})
        if name not in declarations:
            raise AttributeError(name)
        return functools.partial(self._invoke, declarations[name])

    def calls_to(self, name: str) -> list[tuple]:
        return [args for n, args in self.calls if n == name]

    def fire_all(self) -> None:
        deferred, self.deferred = self.deferred, []
        for fire in deferred:
            fire()

    def join(self) -> None:
        for thread in self.threads:
            thread.join()

    # --- Invocation ---

    def _invoke(self, function: NativeFunction, *args):
        with self._lock:
            self.calls.append((function.name, args))
        if not function.asynchronous:
            return self._sync(function.name, args)

        n_callbacks = len(function.callback_types)
        callbacks, rest = args[-n_callbacks:], args[:-n_callbacks]
        if function.notifier:
            self.notifiers.append(rest[-1])
            rest = rest[:-1]
        token, native_args = rest[-1], rest[:-1]

        fire = functools.partial(self._fire, function, callbacks, token, native_args)
        match self.mode:
            case "inline":
                fire()
            case "thread":
                thread = threading.Thread(target=fire)
                self.threads.append(thread)
                thread.start()
            case "manual":
                self.deferred.append(fire)

    def _sync(self, name: str, args: tuple) -> Any:
        match name:
            case "app_free":
                self.freed_connections.append(args[0])
            case "is_mock_build":
                return self.mock_build
        return None

    def _fire(self, function: NativeFunction, callbacks: tuple, token: Any, native_args: tuple) -> None:
        error = self.errors.get(function.name)
        if error is None:
            values = self._result_values(function, native_args)
            if function.name.endswith("_free"):
                self.freed.append((function.name, native_args[-1]))
        else:
            values = tuple(t() for r in function.results for t in r.native_types)

        if function.style is CallStyle.RESULT:
            (on_result,) = callbacks
            code, description = error or (0, None)
            on_result(token, FfiResult(code, description), *values)
        elif error is None:
            callbacks[0](token, *values)
        else:
            callbacks[1](token, *error)

    def _result_values(self, function: NativeFunction, native_args: tuple) -> tuple:
        produce = self.results.get(function.name)
        if produce is not None:
            return tuple(produce(native_args))
        values: list[Any] = []
        for result in function.results:
            match result:
                case FixedBytes():
                    values.extend(native_fixed(bytes(range(result.width))))
                case ByteBuffer():
                    values.extend(native_buffer(b"native-bytes", result.capacity))
                case StructPtr():
                    values.append(FfiAccountInfo(5, 995))
                case Scalar() if result.ctype is ctypes.c_void_p:
                    values.append(next(self._connections))
                case Scalar():
                    values.append(next(self._handles))
                case _:
                    values.append(b"net.maidsafe.test")
        return tuple(values)


@pytest.fixture
def fake() -> FakeNative:
    return FakeNative()


@pytest.fixture
def library(fake: FakeNative) -> NativeLibrary:
    return NativeLibrary(fake, FUNCTIONS)


@pytest.fixture
def unconnected_app(library: NativeLibrary) -> App:
    return App(APP_INFO, library=library)


@pytest_asyncio.fixture
async def app(unconnected_app: App):
    """A session connected through the unregistered path."""
    await unconnected_app.connect_unregistered(AUTH_URI)
    yield unconnected_app
    if unconnected_app.connection_alive:
        await unconnected_app.close()
