# safe_app/_internal/ffi_types.py

"""
Native type definitions and the descriptors that convert host values to them.

A descriptor describes one host-level parameter or callback result and how
it expands into native types. `ByteBuffer`, for instance, is a single host
value on the Python side but a `(uint8*, usize)` pair in the native
signature.
"""

import abc
import ctypes
import numbers
from typing import Any, Union

from . import codec, error_const
from .error_const import ErrorConst
from ..exceptions import ValidationError
from ..types import KEY_BYTES, NONCE_BYTES, SIGN_SECRET_KEY_BYTES, XOR_NAME_LEN

# --- Native types ---

AppPtr = ctypes.c_void_p
ObjectHandle = ctypes.c_uint64
UserData = ctypes.c_void_p
BufferPtr = ctypes.POINTER(ctypes.c_uint8)


class FfiResult(ctypes.Structure):
    _fields_ = [
        ("error_code", ctypes.c_int32),
        ("description", ctypes.c_char_p),
    ]


class FfiAccountInfo(ctypes.Structure):
    _fields_ = [
        ("mutations_done", ctypes.c_uint64),
        ("mutations_available", ctypes.c_uint64),
    ]


NotifierCallback = ctypes.CFUNCTYPE(None, UserData)
ErrorCallback = ctypes.CFUNCTYPE(None, UserData, ctypes.c_int32, ctypes.c_char_p)

# struct-format codes of the integer ctypes (lower case is signed)
_INTEGER_CODES = "bBhHiIlLqQ"


# --- Descriptors ---

class Param(abc.ABC):
    """Conversion between one host value and its native representation."""

    native_types: tuple[type, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.native_types)

    @abc.abstractmethod
    def to_native(self, value: Any) -> tuple:
        raise NotImplementedError

    def from_native(self, *raw: Any) -> Any:
        return raw[0] if len(raw) == 1 else raw


class Scalar(Param):
    """A plain ctypes value. Integers are range-checked against the type's width."""

    def __init__(self, ctype: type):
        self.ctype = ctype
        self.native_types = (ctype,)
        code = getattr(ctype, "_type_", None)
        self._is_integer = isinstance(code, str) and code in _INTEGER_CODES
        if self._is_integer:
            bits = ctypes.sizeof(ctype) * 8
            if code.islower():
                self._bounds = (-(1 << (bits - 1)), (1 << (bits - 1)) - 1)
            else:
                self._bounds = (0, (1 << bits) - 1)

    def to_native(self, value: Any) -> tuple:
        if not self._is_integer:
            return (value,)
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ValidationError.from_const(
                error_const.INTEGER_OUT_OF_RANGE,
                f"expected an integer for {self.ctype.__name__}, got {type(value).__name__}",
            )
        low, high = self._bounds
        value = int(value)
        if not low <= value <= high:
            raise ValidationError.from_const(
                error_const.INTEGER_OUT_OF_RANGE,
                f"{value} does not fit in {self.ctype.__name__} [{low}, {high}]",
            )
        return (value,)

    def __repr__(self) -> str:
        return f"Scalar({self.ctype.__name__})"


class CString(Param):
    """A NUL-terminated UTF-8 string."""

    native_types = (ctypes.c_char_p,)

    def to_native(self, value: Union[str, bytes, None]) -> tuple:
        if value is None or isinstance(value, bytes):
            return (value,)
        if isinstance(value, str):
            return (value.encode("utf-8"),)
        raise ValidationError.from_const(
            error_const.INVALID_ARGUMENT, f"expected text, got {type(value).__name__}"
        )

    def from_native(self, value: Union[bytes, None]) -> str:
        return codec.decode_string(value)


class ByteBuffer(Param):
    """
    A variable-length byte buffer passed as `(pointer, length)`, or as
    `(pointer, length, capacity)` when `capacity` is set.
    """

    def __init__(self, capacity: bool = False):
        self.capacity = capacity
        extra = (ctypes.c_size_t,) if capacity else ()
        self.native_types = (BufferPtr, ctypes.c_size_t) + extra

    def to_native(self, value: codec.BytesLike) -> tuple:
        buf, size = codec.to_buffer(value)
        return (buf, size, size) if self.capacity else (buf, size)

    def from_native(self, ptr: Any, length: int, capacity: int = 0) -> bytes:
        return codec.decode_buffer(ptr, length)


class FixedBytes(Param):
    """A fixed-width byte array, passed natively by pointer."""

    def __init__(self, width: int, name: str, error: ErrorConst = error_const.INVALID_KEY):
        self.width = width
        self.name = name
        self.error = error
        self.array_type = ctypes.c_uint8 * width
        self.native_types = (ctypes.POINTER(self.array_type),)

    def to_native(self, value: codec.BytesLike) -> tuple:
        return (codec.encode_fixed(value, self.width, self.error),)

    def from_native(self, ptr: Any) -> bytes:
        return codec.decode_fixed(ptr, self.width)

    def __repr__(self) -> str:
        return f"FixedBytes({self.name}, {self.width})"


class StructPtr(Param):
    """A pointer to a native struct. Results are copied into host memory."""

    def __init__(self, struct: type[ctypes.Structure]):
        self.struct = struct
        self.native_types = (ctypes.POINTER(struct),)

    def to_native(self, value: Any) -> tuple:
        return (value,)

    def from_native(self, ptr: Any) -> Any:
        if not ptr:
            return None
        return self.struct.from_buffer_copy(ptr.contents)


def as_param(value: Union[Param, type]) -> Param:
    """Accepts either a descriptor or a bare ctypes type."""
    return value if isinstance(value, Param) else Scalar(value)


APP = Scalar(AppPtr)
HANDLE = Scalar(ObjectHandle)
U64 = Scalar(ctypes.c_uint64)
USIZE = Scalar(ctypes.c_size_t)
BOOL = Scalar(ctypes.c_bool)
STRING = CString()
BUFFER = ByteBuffer()

XOR_NAME = FixedBytes(XOR_NAME_LEN, "XorName", error_const.XOR_NAME)
SIGN_PUB_KEY = FixedBytes(KEY_BYTES, "SignPubKey")
SIGN_SEC_KEY = FixedBytes(SIGN_SECRET_KEY_BYTES, "SignSecKey")
ENC_PUB_KEY = FixedBytes(KEY_BYTES, "EncryptPubKey")
ENC_SEC_KEY = FixedBytes(KEY_BYTES, "EncryptSecKey", error_const.INVALID_SEC_KEY)
SYM_KEY = FixedBytes(KEY_BYTES, "SymSecretKey", error_const.INVALID_SEC_KEY)
NONCE = FixedBytes(NONCE_BYTES, "Nonce", error_const.NONCE)
