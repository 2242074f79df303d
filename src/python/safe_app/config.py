# safe_app/config.py
"""Initialisation options and native library location."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LIB_PATH_ENV = "SAFE_APP_LIB_PATH"
USE_MOCK_ENV = "SAFE_APP_USE_MOCK"

LIB_LOCATION_MOCK = "mock"
LIB_LOCATION_PROD = "prod"

_LIB_FILENAMES = {
    "win32": "safe_app.dll",
    "darwin": "libsafe_app.dylib",
}
_DEFAULT_LIB_FILENAME = "libsafe_app.so"

_TRUTHY = {"1", "true", "yes", "on"}


def lib_filename(platform: Optional[str] = None) -> str:
    """The file name of the native library on the given (or current) platform."""
    return _LIB_FILENAMES.get(platform or sys.platform, _DEFAULT_LIB_FILENAME)


def use_mock_by_default() -> bool:
    return os.environ.get(USE_MOCK_ENV, "").strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class InitOptions:
    """
    Options controlling how a session loads and configures the native library.

    Attributes:
        lib_path: Directory holding the `mock/` and `prod/` library builds.
                  Defaults to `$SAFE_APP_LIB_PATH`, then to this package's
                  directory.
        force_use_mock: Use the mock-routing build regardless of
                        `$SAFE_APP_USE_MOCK`.
        log: Initialise native-side logging when the session starts.
        config_path: Additional directory searched by the native library
                     for its configuration files.
    """
    lib_path: Optional[str] = None
    force_use_mock: bool = False
    log: bool = True
    config_path: Optional[str] = None

    @property
    def use_mock(self) -> bool:
        return self.force_use_mock or use_mock_by_default()

    def library_path(self) -> str:
        """Resolves `<base_dir>/<mock|prod>/<platform library file name>`."""
        base_dir = self.lib_path or os.environ.get(LIB_PATH_ENV) or Path(__file__).parent
        location = LIB_LOCATION_MOCK if self.use_mock else LIB_LOCATION_PROD
        return str(Path(base_dir) / location / lib_filename())
