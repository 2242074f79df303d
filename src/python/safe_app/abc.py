# safe_app/abc.py
"""Abstract Base Classes for the safe_app library."""

import abc
import inspect
import weakref
from typing import Any, Callable, Optional


class Releasable(abc.ABC):
    """
    Abstract base class for everything backed by a native resource.

    Every native-backed object, including the session itself, releases
    itself through the same interface. `safe_app.handles.autoref` attaches
    the release action to the object's lifetime.
    """
    _finalizer: Optional[weakref.finalize] = None
    _release_result: Any = None

    @abc.abstractmethod
    def _release_action(self) -> tuple[Callable[..., Any], tuple]:
        """
        Returns `(func, args)` such that `func(*args)` frees the native resource.

        Neither `func` nor `args` may reference `self`, otherwise the object
        could never be garbage collected.
        """
        raise NotImplementedError

    @property
    def released(self) -> bool:
        """Returns True once the native resource has been released."""
        return self._finalizer is not None and not self._finalizer.alive

    def force_release(self) -> Any:
        """
        Releases the native resource now.

        Only the first call reaches the native library. Its result (a future
        for asynchronous releases) is cached and returned by later calls.
        """
        finalizer = self._finalizer
        if finalizer is None:
            raise ValueError(
                f"{type(self).__name__} is not tracked. Register it with autoref() first."
            )
        if finalizer.alive:
            self._release_result = finalizer()
        return self._release_result

    async def __aenter__(self) -> "Releasable":
        if self.released:
            raise ValueError("Cannot enter context with a released handle.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        result = self.force_release()
        if inspect.isawaitable(result):
            await result
