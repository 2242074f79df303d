# safe_app/native/_mdata_info.py
"""Mutable data info: addressing and encryption info of mutable data objects."""

import numbers

from ..api.mdata_info import MDataInfo
from ..dataclasses import NameAndTag, TransformSpec
from ..exceptions import ValidationError
from ..lowlevel import NativeFunction
from .._internal import error_const
from .._internal.ffi_types import APP, BUFFER, HANDLE, U64, XOR_NAME

_MDATA_INFO = TransformSpec(handle_type=MDataInfo)


def _check_type_tag(*args):
    """Rejects non-integer type tags, which always come last."""
    tag = args[-1]
    if isinstance(tag, bool) or not isinstance(tag, numbers.Integral):
        raise ValidationError.from_const(error_const.TYPE_TAG_NAN)
    return args


_NEW_WITH_TAG = TransformSpec(input=_check_type_tag, handle_type=MDataInfo)

FUNCTIONS = [
    NativeFunction("mdata_info_new_public", [APP, XOR_NAME, U64], [HANDLE], transform=_NEW_WITH_TAG),
    NativeFunction("mdata_info_new_private", [APP, XOR_NAME, U64], [HANDLE], transform=_NEW_WITH_TAG),
    NativeFunction("mdata_info_random_public", [APP, U64], [HANDLE], transform=_NEW_WITH_TAG),
    NativeFunction("mdata_info_random_private", [APP, U64], [HANDLE], transform=_NEW_WITH_TAG),
    NativeFunction(
        "mdata_info_extract_name_and_type_tag",
        [APP, HANDLE],
        [XOR_NAME, U64],
        transform=TransformSpec(output=lambda name, tag: NameAndTag(name=name, type_tag=int(tag))),
    ),
    NativeFunction("mdata_info_serialise", [APP, HANDLE], [BUFFER]),
    NativeFunction("mdata_info_deserialise", [APP, BUFFER], [HANDLE], transform=_MDATA_INFO),
    NativeFunction("mdata_info_free", [APP, HANDLE]),
]
