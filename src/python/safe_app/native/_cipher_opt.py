# safe_app/native/_cipher_opt.py

from ..api.cipher_opt import CipherOpt
from ..dataclasses import TransformSpec
from ..lowlevel import NativeFunction
from .._internal.ffi_types import APP, HANDLE

_CIPHER_OPT = TransformSpec(handle_type=CipherOpt)

FUNCTIONS = [
    NativeFunction("cipher_opt_new_plaintext", [APP], [HANDLE], transform=_CIPHER_OPT),
    NativeFunction("cipher_opt_new_symmetric", [APP], [HANDLE], transform=_CIPHER_OPT),
    NativeFunction("cipher_opt_new_asymmetric", [APP, HANDLE], [HANDLE], transform=_CIPHER_OPT),
    NativeFunction("cipher_opt_free", [APP, HANDLE]),
]
