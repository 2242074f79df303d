# safe_app/handles.py
"""
Native handle wrappers and their automatic release.

Every handle returned by the native library is wrapped in a `NetworkObject`
subtype that knows how to free it, and registered with `autoref` so that
the native resource is released exactly once: explicitly through
`force_release()` (or `async with`), or as a best-effort fallback when the
wrapper is garbage collected.
"""

import abc
import asyncio
import logging
import weakref
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from .abc import Releasable
from .exceptions import LifecycleError, SafeError
from ._internal import error_const

if TYPE_CHECKING:
    from .app import App

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Releasable)


class NetworkObject(Releasable):
    """
    A native reference (pointer or object handle) paired with the session
    that owns it.

    A handle is only valid on the connection it was derived from. Once that
    connection is replaced or freed, `ref` refuses to hand the reference out
    and the release is skipped.

    Subclasses must implement the `release` classmethod. There is no default,
    so a handle type without one cannot be instantiated.
    """
    def __init__(self, app: "App", ref: Any, generation: Optional[int] = None):
        self._app = app
        self._ref = ref
        if generation is None:
            generation = app.connection_generation
        self._generation = generation

    @property
    def app(self) -> "App":
        """The session this handle belongs to."""
        return self._app

    @property
    def ref(self) -> Any:
        """
        The native reference to pass back into native calls.

        Raises:
            LifecycleError: If the handle was released or its connection freed
                            or replaced.
        """
        if self.released:
            raise LifecycleError.from_const(error_const.HANDLE_RELEASED, type(self).__name__)
        if self._app.connection_generation != self._generation:
            raise LifecycleError.from_const(error_const.CONNECTION_FREED)
        return self._ref

    @classmethod
    @abc.abstractmethod
    def release(cls, app: "App", ref: Any) -> Any:
        """Frees the native resource behind `ref`."""
        raise NotImplementedError

    def _release_action(self):
        return _release_handle, (type(self), self._app, self._ref, self._generation)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"<{type(self).__name__} ref={self._ref!r} {state}>"


def _log_release_failure(name: str, ref: Any, future: asyncio.Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.warning("Releasing %s %r failed: %s", name, ref, exc)


def _release_handle(cls: type[NetworkObject], app: "App", ref: Any, generation: int) -> Any:
    name = cls.__name__
    if app.connection_generation != generation:
        logger.warning("Skipping release of %s %r: its connection is already freed.", name, ref)
        return None
    logger.debug("Releasing %s %r", name, ref)
    try:
        result = cls.release(app, ref)
    except LifecycleError as e:
        # reached from a GC-triggered release with no loop left to deliver to
        logger.warning("Could not release %s %r: %s", name, ref, e)
        return None
    if isinstance(result, asyncio.Future):
        result.add_done_callback(lambda fut: _log_release_failure(name, ref, fut))
    return result


def autoref(obj: R) -> R:
    """
    Ties the release of `obj`'s native resource to the object's lifetime.

    The release action runs at most once: when `obj.force_release()` is
    called, or when `obj` is garbage collected, whichever comes first. The
    GC-triggered path is a safety net only and is skipped at interpreter exit.

    Returns:
        The same object, now tracked.

    Raises:
        TypeError: If `obj` has no release operation.
    """
    if not isinstance(obj, Releasable):
        raise TypeError(f"No release operation found for handle type {type(obj).__name__}")
    if obj._finalizer is not None:
        return obj

    func, args = obj._release_action()
    finalizer = weakref.finalize(obj, func, *args)
    finalizer.atexit = False
    obj._finalizer = finalizer

    if isinstance(obj, NetworkObject):
        obj.app._track_handle(obj)
    logger.debug("Tracking %s", type(obj).__name__)
    return obj


async def release_all(objs: "list[Releasable]") -> list[SafeError]:
    """
    Force-releases every object and waits for the asynchronous releases.

    Returns:
        The errors reported by failed releases; an empty list on success.
    """
    pending = []
    for obj in objs:
        result = obj.force_release()
        if isinstance(result, asyncio.Future):
            pending.append(result)
    outcomes = await asyncio.gather(*pending, return_exceptions=True)
    return [o for o in outcomes if isinstance(o, SafeError)]
