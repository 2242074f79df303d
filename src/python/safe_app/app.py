# safe_app/app.py
"""
The session object and the ownership of its native connection.

An `App` validates its identity, loads the native library and connects,
either unregistered or with an authorisation grant. It owns the one native
connection pointer through a `ConnectionSlot` and keeps track of every
handle derived from it, so that the connection is never freed underneath a
live handle.
"""

import logging
import re
import weakref
from typing import Any, Callable, ClassVar, Optional

from .abc import Releasable
from .api import CipherOptInterface, CryptoInterface, ImmutableDataInterface, MDataInfoInterface
from .config import InitOptions
from .dataclasses import AccountInfo, AppInfo
from .exceptions import LifecycleError, SafeError, ValidationError
from .handles import autoref, release_all
from .lowlevel import NativeLibrary
from .types import ConnectionState, NetworkState
from ._internal import error_const
from ._internal.codec import BytesLike

logger = logging.getLogger(__name__)

NetworkStateCallback = Callable[[NetworkState], Any]


class ConnectionSlot:
    """
    Sole owner of a session's native connection pointer.

    A pointer is freed exactly once: when it is replaced by a newer one, or
    when the slot is freed. Every change of pointer starts a new generation;
    handles remember the generation they were derived from.
    """
    def __init__(self, library: NativeLibrary):
        self._library = library
        self._pointer: Optional[int] = None
        self._notifier: Any = None
        self._freed = False
        self._generation = 0

    @property
    def pointer(self) -> Optional[int]:
        return self._pointer

    @property
    def freed(self) -> bool:
        return self._freed

    @property
    def generation(self) -> int:
        return self._generation

    def adopt(self, pointer: int, notifier: Any = None) -> None:
        """
        Makes `pointer` the current connection, freeing the previous one first.

        Args:
            pointer: The connection returned by the native library.
            notifier: The native disconnect notifier registered for this
                      connection, kept alive with it.

        Raises:
            LifecycleError: If the slot has already been freed. The incoming
                            pointer is freed in that case.
        """
        if self._freed:
            self.discard(pointer)
            raise LifecycleError.from_const(error_const.CONNECTION_FREED)
        previous = self._pointer
        self._generation += 1
        if previous is not None:
            logger.debug("Replacing connection %s with %s", previous, pointer)
            self._pointer = None
            self._free_pointer(previous)
        else:
            logger.debug("Adopting connection %s", pointer)
        self._pointer = pointer
        self._notifier = notifier

    def discard(self, pointer: int) -> None:
        """Frees a connection that was never adopted."""
        logger.debug("Discarding connection %s", pointer)
        self._free_pointer(pointer)

    def free(self) -> None:
        """Frees the current connection, if any. Later calls do nothing."""
        if self._freed:
            return
        self._freed = True
        self._generation += 1
        pointer, self._pointer = self._pointer, None
        if pointer is not None:
            self._free_pointer(pointer)
        self._notifier = None

    def _free_pointer(self, pointer: int) -> None:
        if self._library.closed:
            logger.warning("Cannot free connection %s: native library already closed", pointer)
            return
        logger.debug("Freeing connection %s", pointer)
        self._library.app_free(pointer)


def _free_session(slot: ConnectionSlot, library: Optional[NativeLibrary]) -> None:
    slot.free()
    # only a library the session loaded itself is closed with it
    if library is not None:
        library.close()


def _validate_app_info(app_info: AppInfo) -> AppInfo:
    fields = {}
    for name in ("id", "name", "vendor"):
        value = getattr(app_info, name, None)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError.from_const(error_const.MALFORMED_APP_INFO)
        fields[name] = value.strip()
    return AppInfo(scope=app_info.scope, **fields)


class App(Releasable):
    """
    A session with the network.

    Args:
        app_info: Identity of the application.
        network_state_callback: Called with the new `NetworkState` whenever
                                the connection state changes.
        options: Library location and start-up options.
        library: An already loaded native library to use instead of loading
                 one from `options`.

    Raises:
        LibraryLoadError: If the native library cannot be loaded.
        ValidationError: If `app_info` is malformed.
    """
    log_file_path: ClassVar[Optional[str]] = None
    _state: ConnectionState = ConnectionState.UNINITIALIZED

    def __init__(
        self,
        app_info: AppInfo,
        network_state_callback: Optional[NetworkStateCallback] = None,
        *,
        options: Optional[InitOptions] = None,
        library: Optional[NativeLibrary] = None,
    ):
        self._network_state = NetworkState.INIT
        self.options = options or InitOptions()
        self._state = ConnectionState.INITIALIZING
        self._owns_library = library is None
        if library is None:
            library = NativeLibrary.load(self.options.library_path())
        self._library = library
        self.app_info = _validate_app_info(app_info)
        self._network_state_callback = network_state_callback
        self._slot = ConnectionSlot(self._library)
        self._handles: "weakref.WeakSet[Releasable]" = weakref.WeakSet()

        self.crypto = CryptoInterface(self)
        self.cipher_opt = CipherOptInterface(self)
        self.immutable_data = ImmutableDataInterface(self)
        self.mdata_info = MDataInfoInterface(self)
        autoref(self)

    def _release_action(self):
        return _free_session, (self._slot, self._library if self._owns_library else None)

    # --- Properties ---

    @property
    def library(self) -> NativeLibrary:
        return self._library

    @property
    def connection(self) -> int:
        """
        The native connection pointer.

        Raises:
            LifecycleError: Before the session is connected (SETUP_INCOMPLETE)
                            or after it has been freed (CONNECTION_FREED).
        """
        if self._slot.freed:
            raise LifecycleError.from_const(error_const.CONNECTION_FREED)
        pointer = self._slot.pointer
        if pointer is None:
            raise LifecycleError.from_const(error_const.SETUP_INCOMPLETE)
        return pointer

    @property
    def connection_alive(self) -> bool:
        return not self._slot.freed

    @property
    def connection_generation(self) -> int:
        """Changes whenever the connection pointer is replaced or freed."""
        return self._slot.generation

    @property
    def owns_library(self) -> bool:
        """True if the session loaded its native library and closes it on free."""
        return self._owns_library

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def network_state(self) -> NetworkState:
        return self._network_state

    def is_net_state_init(self) -> bool:
        return self._network_state is NetworkState.INIT

    def is_net_state_connected(self) -> bool:
        return self._network_state is NetworkState.CONNECTED

    def is_net_state_disconnected(self) -> bool:
        return self._network_state is NetworkState.DISCONNECTED

    @property
    def live_handle_count(self) -> int:
        """Number of tracked handles that have not been released yet."""
        return sum(1 for h in list(self._handles) if not h.released)

    def _track_handle(self, handle: Releasable) -> None:
        self._handles.add(handle)

    # --- Connecting ---

    async def connect_unregistered(self, uri: BytesLike) -> "App":
        """
        Connects without an account, for read-only access.

        Args:
            uri: The unregistered-client authorisation URI.

        Raises:
            ValidationError: If `uri` is empty (MISSING_AUTH_URI).
            LifecycleError: If this replaces a connection that still has live
                            handles (OUTSTANDING_HANDLES).
            NativeCallError: If the native library rejects the connection.
        """
        if uri is None or len(uri) == 0:
            raise ValidationError.from_const(error_const.MISSING_AUTH_URI)
        self._ensure_replaceable()
        notifier = self._make_disconnect_notifier()
        pointer = await self._library.app_unregistered(uri, notifier=notifier)
        self._adopt(pointer, notifier)
        return self

    async def connect_registered(self, auth_granted: Any) -> "App":
        """
        Connects with an account, using an authorisation grant.

        Args:
            auth_granted: A pointer to a native auth-granted structure,
                          passed through untouched.

        Raises:
            LifecycleError: If this replaces a connection that still has live
                            handles (OUTSTANDING_HANDLES).
        """
        self._ensure_replaceable()
        notifier = self._make_disconnect_notifier()
        pointer = await self._library.app_registered(
            self.app_info.id, auth_granted, notifier=notifier
        )
        self._adopt(pointer, notifier)
        return self

    async def reconnect(self) -> None:
        """Reconnects a disconnected session to the network."""
        await self._library.app_reconnect(self.connection)
        self._network_state_updated(NetworkState.CONNECTED)

    def _ensure_replaceable(self) -> None:
        live = self.live_handle_count
        if live and self._slot.pointer is not None:
            raise LifecycleError.from_const(error_const.OUTSTANDING_HANDLES, live)

    def _adopt(self, pointer: int, notifier: Any) -> None:
        # handles may have been created while the connect call was in flight
        try:
            self._ensure_replaceable()
        except LifecycleError:
            self._slot.discard(pointer)
            raise
        self._slot.adopt(pointer, notifier)
        self._network_state_updated(NetworkState.CONNECTED)

    def _make_disconnect_notifier(self) -> Any:
        # the notifier is kept alive by the slot, so it must not hold the session
        ref = weakref.ref(self)

        def on_disconnect():
            app = ref()
            if app is not None:
                app._network_state_updated(NetworkState.DISCONNECTED)

        return self._library.make_notifier(on_disconnect)

    def _network_state_updated(self, state: NetworkState) -> None:
        if self._slot.freed:
            return
        self._network_state = state
        match state:
            case NetworkState.CONNECTED:
                self._state = ConnectionState.CONNECTED
            case NetworkState.DISCONNECTED:
                self._state = ConnectionState.DISCONNECTED
        logger.debug("Network state of %s changed to %s", self.app_info.id, state.label)
        if self._network_state_callback is not None:
            self._network_state_callback(state)

    # --- Teardown ---

    def free(self) -> None:
        """
        Frees the native connection.

        A library loaded by the session is closed with it. A library passed in
        by the caller stays open for the other sessions using it; only the
        calls issued for this session's handles are abandoned.

        Raises:
            LifecycleError: If handles derived from the connection are still
                            live (OUTSTANDING_HANDLES).
        """
        live = self.live_handle_count
        if live:
            raise LifecycleError.from_const(error_const.OUTSTANDING_HANDLES, live)
        self.force_release()
        if not self._owns_library:
            self._library.abandon_pending(owner=self)
        self._state = ConnectionState.FREED

    async def close(self) -> None:
        """Releases every live handle, waits for the releases, then frees the connection."""
        if self.connection_alive:
            handles = [h for h in list(self._handles) if not h.released]
            errors = await release_all(handles)
            if errors:
                logger.warning("%d handle(s) failed to release on close", len(errors))
        self.free()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --- Session operations ---

    async def get_account_info(self) -> AccountInfo:
        return await self._library.app_account_info(self.connection)

    async def get_own_container_name(self) -> str:
        """The name of the app's own container, derived from its id."""
        return await self._library.app_container_name(self.app_info.id)

    async def clear_object_cache(self) -> None:
        """Drops every handle cached by the native library for this connection."""
        await self._library.app_reset_object_cache(self.connection)

    def is_mock_build(self) -> bool:
        return bool(self._library.is_mock_build())

    def default_log_filename(self) -> str:
        filename = f"{self.app_info.name}.{self.app_info.vendor}"
        return re.sub(r"[^\w\-.]", "_", filename) + ".log"

    async def init_logging(self, filename: Optional[str] = None) -> Optional[str]:
        """
        Starts native-side logging to `filename`.

        Native logging is process-wide, so it is set up once per process.
        Failures are logged and do not affect the session.

        Returns:
            The path of the native log file, or None if initialisation failed.
        """
        if App.log_file_path is not None:
            return App.log_file_path
        filename = filename or self.default_log_filename()
        try:
            await self._library.app_init_logging(filename)
            App.log_file_path = await self._library.app_output_log_path(filename)
        except SafeError as e:
            logger.error("%s", error_const.LOGGER_INIT_ERROR.format(e))
            return None
        return App.log_file_path

    async def log_path(self, filename: Optional[str] = None) -> str:
        """Resolves where the native library writes `filename` (or this app's log file)."""
        return await self._library.app_output_log_path(filename or self.default_log_filename())

    async def set_search_path(self, path: Optional[str] = None) -> None:
        """Adds a directory searched by the native library for its configuration files."""
        path = path or self.options.config_path
        if not path:
            return
        try:
            await self._library.app_set_additional_search_path(path)
        except SafeError as e:
            logger.error("%s", error_const.CONFIG_PATH_ERROR.format(e))

    def __repr__(self) -> str:
        return f"<App id={self.app_info.id!r} state={self._state.name}>"
