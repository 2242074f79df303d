# safe_app/_internal/codec.py

"""
Internal utilities for moving bytes across the native boundary.

This module handles validation of host byte inputs and conversion between
host-owned byte sequences and the fixed-size or pointer/length buffers the
native library expects. Anything read from native memory is copied, since
the memory behind callback arguments is only valid while the callback runs.
"""

import ctypes
from typing import Any, TypeAlias, Union

import numpy as np

from . import error_const
from .error_const import ErrorConst
from ..exceptions import ValidationError

BytesLike: TypeAlias = Union[bytes, bytearray, memoryview, str, np.ndarray]

_U8_PTR = ctypes.POINTER(ctypes.c_uint8)


def as_bytes(data: Any) -> bytes:
    """
    Converts a host value into an immutable byte sequence.

    Text is encoded as UTF-8. NumPy arrays must have an 8-bit unsigned
    dtype, and lists or tuples must hold integers in `0..255`.

    Raises:
        ValidationError: If the value cannot be represented as bytes.
    """
    match data:
        case str():
            return data.encode("utf-8")
        case bytes():
            return data
        case bytearray() | memoryview():
            return bytes(data)
        case np.ndarray():
            if data.dtype != np.uint8:
                raise ValidationError.from_const(
                    error_const.INVALID_ARGUMENT,
                    f"expected a uint8 array, got dtype '{data.dtype.name}'",
                )
            return np.ascontiguousarray(data).tobytes()
        case list() | tuple():
            arr = np.asarray(data)
            if arr.size and (arr.dtype.kind not in "iu" or arr.min() < 0 or arr.max() > 255):
                raise ValidationError.from_const(
                    error_const.INVALID_ARGUMENT, "byte sequences must hold integers in 0..255"
                )
            return arr.astype(np.uint8).tobytes()
        case _:
            raise ValidationError.from_const(
                error_const.INVALID_ARGUMENT,
                f"expected a bytes-like value, got {type(data).__name__}",
            )


def encode_fixed(
    data: BytesLike,
    width: int,
    error: ErrorConst = error_const.INVALID_KEY,
) -> ctypes.Array:
    """
    Converts a host byte sequence into a native fixed-size `uint8` array.

    Args:
        data: The bytes-like value to convert.
        width: The exact number of bytes the native side expects.
        error: The error constant reported when the width does not match;
               its message is formatted with `width`.

    Raises:
        ValidationError: If `data` is missing or not exactly `width` bytes.
    """
    if data is None:
        raise ValidationError.from_const(error, width)
    raw = as_bytes(data)
    if len(raw) != width:
        raise ValidationError.from_const(error, width)
    return (ctypes.c_uint8 * width).from_buffer_copy(raw)


def to_buffer(data: BytesLike) -> tuple[ctypes.Array, int]:
    """Converts a host value into a `(uint8 buffer, length)` pair."""
    raw = as_bytes(data)
    size = len(raw)
    buf = (ctypes.c_uint8 * size).from_buffer_copy(raw) if size else (ctypes.c_uint8 * 1)()
    return buf, size


def decode_buffer(ptr: Any, length: int) -> bytes:
    """
    Copies `length` bytes behind a native pointer into host-owned memory.

    A NULL pointer or a zero length yields an empty byte string.
    """
    if not length or not ptr:
        return b""
    if not isinstance(ptr, _U8_PTR):
        ptr = ctypes.cast(ptr, _U8_PTR)
    view = np.ctypeslib.as_array(ptr, shape=(length,))
    return view.tobytes()


def decode_fixed(ptr: Any, width: int) -> bytes:
    """Copies a native fixed-size array of `width` bytes into host memory."""
    if not ptr:
        raise ValidationError.from_const(
            error_const.INVALID_ARGUMENT, f"expected {width} bytes, got a NULL pointer"
        )
    return decode_buffer(ptr, width)


def decode_string(value: Union[bytes, str, None]) -> str:
    """Decodes a NUL-terminated UTF-8 string delivered by the native side."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode("utf-8", errors="replace")
