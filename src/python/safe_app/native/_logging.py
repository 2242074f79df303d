# safe_app/native/_logging.py
"""Native-side logging."""

from ..lowlevel import NativeFunction
from ..types import CallStyle
from .._internal.ffi_types import STRING

FUNCTIONS = [
    NativeFunction("app_init_logging", [STRING], style=CallStyle.RESULT),
    NativeFunction("app_output_log_path", [STRING], [STRING], style=CallStyle.RESULT),
]
