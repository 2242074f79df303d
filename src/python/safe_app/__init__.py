# safe_app/__init__.py
"""
Asynchronous Python binding for the SAFE network client library.
"""
from typing import Optional

from .app import App, ConnectionSlot, NetworkStateCallback
from .config import InitOptions
from .dataclasses import AccountInfo, AppInfo, ErrorRecord, NameAndTag
from .exceptions import (
    LibraryLoadError,
    LifecycleError,
    NativeCallError,
    ProtocolViolationError,
    SafeError,
    ValidationError,
    make_error,
)
from .handles import NetworkObject, autoref
from .lowlevel import NativeLibrary
from .types import ConnectionState, NativeErrorCode, NetworkState

__version__ = "0.0.1"


async def initialise_app(
    app_info: AppInfo,
    network_state_callback: Optional[NetworkStateCallback] = None,
    options: Optional[InitOptions] = None,
    *,
    library: Optional[NativeLibrary] = None,
) -> App:
    """
    Creates a session, ready to be connected.
    This function is the primary entry point for the library.

    Native logging is started (unless `options.log` is False) and the
    additional configuration search path is registered, if one is set.

    Args:
        app_info (AppInfo): Identity of the application.
        network_state_callback (callable, optional): Called with the new
            `NetworkState` whenever the connection state changes.
        options (InitOptions, optional): Library location and start-up options.
        library (NativeLibrary, optional): Use an already loaded library.

    Returns:
        An `App`, typically used within an `async with` statement.

    Raises:
        LibraryLoadError: If the native library cannot be loaded.
        ValidationError: If `app_info` is malformed.
    """
    app = App(app_info, network_state_callback, options=options, library=library)
    if app.options.log:
        await app.init_logging()
    await app.set_search_path()
    return app


# Define what gets imported with 'from safe_app import *'
__all__ = [
    'initialise_app',
    'App',
    'ConnectionSlot',
    'InitOptions',
    'AppInfo',
    'AccountInfo',
    'NameAndTag',
    'ErrorRecord',
    'ConnectionState',
    'NetworkState',
    'NativeErrorCode',
    'NativeLibrary',
    'NetworkObject',
    'autoref',
    'make_error',
    'SafeError',
    'ValidationError',
    'NativeCallError',
    'LibraryLoadError',
    'LifecycleError',
    'ProtocolViolationError',
    '__version__',
]
