# safe_app/native/__init__.py
"""
Declarations of the native functions, grouped by resource family.

`FUNCTIONS` lists every declaration; `NativeLibrary.load` registers all of
them unless told otherwise.
"""

from . import _app, _cipher_opt, _crypto, _immutable, _logging, _mdata_info

FUNCTIONS = [
    *_app.FUNCTIONS,
    *_logging.FUNCTIONS,
    *_crypto.FUNCTIONS,
    *_cipher_opt.FUNCTIONS,
    *_immutable.FUNCTIONS,
    *_mdata_info.FUNCTIONS,
]

__all__ = ["FUNCTIONS"]
