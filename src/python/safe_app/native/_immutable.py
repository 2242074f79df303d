# safe_app/native/_immutable.py
"""Self-encryptor streams over immutable data."""

from ..api.immutable import IDataReader, IDataWriter
from ..dataclasses import TransformSpec
from ..lowlevel import NativeFunction
from .._internal.ffi_types import APP, BUFFER, HANDLE, U64, XOR_NAME, ByteBuffer

FUNCTIONS = [
    NativeFunction(
        "idata_new_self_encryptor", [APP], [HANDLE],
        transform=TransformSpec(handle_type=IDataWriter),
    ),
    NativeFunction("idata_write_to_self_encryptor", [APP, HANDLE, BUFFER]),
    # writer, cipher opt -> address of the stored data
    NativeFunction("idata_close_self_encryptor", [APP, HANDLE, HANDLE], [XOR_NAME]),
    NativeFunction(
        "idata_fetch_self_encryptor", [APP, XOR_NAME], [HANDLE],
        transform=TransformSpec(handle_type=IDataReader),
    ),
    NativeFunction("idata_size", [APP, HANDLE], [U64]),
    NativeFunction(
        "idata_read_from_self_encryptor", [APP, HANDLE, U64, U64], [ByteBuffer(capacity=True)],
    ),
    NativeFunction("idata_self_encryptor_writer_free", [APP, HANDLE]),
    NativeFunction("idata_self_encryptor_reader_free", [APP, HANDLE]),
]
