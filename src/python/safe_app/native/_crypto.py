# safe_app/native/_crypto.py
"""Key handles, hashing and nonce generation."""

from ..api.crypto import PubEncKey, SecEncKey, SignKey
from ..dataclasses import TransformSpec
from ..lowlevel import NativeFunction
from .._internal.ffi_types import (
    APP,
    BUFFER,
    ENC_PUB_KEY,
    ENC_SEC_KEY,
    HANDLE,
    NONCE,
    SIGN_PUB_KEY,
)


def _key_functions(prefix: str, key_type, handle_type) -> list[NativeFunction]:
    """The `<prefix>_new/get/free` triple every key handle type provides."""
    return [
        NativeFunction(
            f"{prefix}_new", [APP, key_type], [HANDLE],
            transform=TransformSpec(handle_type=handle_type),
        ),
        NativeFunction(f"{prefix}_get", [APP, HANDLE], [key_type]),
        NativeFunction(f"{prefix}_free", [APP, HANDLE]),
    ]


FUNCTIONS = [
    NativeFunction(
        "app_pub_sign_key", [APP], [HANDLE], transform=TransformSpec(handle_type=SignKey),
    ),
    *_key_functions("sign_key", SIGN_PUB_KEY, SignKey),
    NativeFunction(
        "app_pub_enc_key", [APP], [HANDLE], transform=TransformSpec(handle_type=PubEncKey),
    ),
    NativeFunction(
        "enc_generate_key_pair",
        [APP],
        [HANDLE, HANDLE],
        transform=TransformSpec(handle_type=(PubEncKey, SecEncKey)),
    ),
    *_key_functions("enc_pub_key", ENC_PUB_KEY, PubEncKey),
    *_key_functions("enc_secret_key", ENC_SEC_KEY, SecEncKey),
    NativeFunction("sha3_hash", [BUFFER], [BUFFER]),
    NativeFunction("generate_nonce", [], [NONCE]),
]
