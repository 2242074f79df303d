# safe_app/native/_app.py
"""Session management functions."""

import ctypes

from ..dataclasses import AccountInfo, TransformSpec
from ..lowlevel import NativeFunction
from ..types import CallStyle
from .._internal.ffi_types import APP, BUFFER, STRING, FfiAccountInfo, Scalar, StructPtr

AUTH_GRANTED = Scalar(ctypes.c_void_p)


def _account_info(info: FfiAccountInfo) -> AccountInfo:
    return AccountInfo(
        mutations_done=int(info.mutations_done),
        mutations_available=int(info.mutations_available),
    )


FUNCTIONS = [
    NativeFunction(
        "app_unregistered", [BUFFER], [APP], style=CallStyle.RESULT, notifier=True,
    ),
    NativeFunction(
        "app_registered", [STRING, AUTH_GRANTED], [APP], style=CallStyle.RESULT, notifier=True,
    ),
    NativeFunction("app_reconnect", [APP], style=CallStyle.RESULT),
    NativeFunction("app_free", [APP], asynchronous=False),
    NativeFunction(
        "app_account_info",
        [APP],
        [StructPtr(FfiAccountInfo)],
        transform=TransformSpec(output=_account_info),
        style=CallStyle.RESULT,
    ),
    NativeFunction("app_reset_object_cache", [APP], style=CallStyle.RESULT),
    NativeFunction("is_mock_build", restype=ctypes.c_bool, asynchronous=False),
    NativeFunction("app_set_additional_search_path", [STRING], style=CallStyle.RESULT),
    NativeFunction("app_container_name", [STRING], [STRING], style=CallStyle.RESULT),
]
