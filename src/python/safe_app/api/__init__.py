# safe_app/api/__init__.py
"""Handle types and per-family operation interfaces of a session."""

from .cipher_opt import CipherOpt, CipherOptInterface
from .crypto import CryptoInterface, KeyPair, PubEncKey, SecEncKey, SignKey
from .immutable import IDataReader, IDataWriter, ImmutableDataInterface
from .mdata_info import MDataInfo, MDataInfoInterface

__all__ = [
    "CipherOpt",
    "CipherOptInterface",
    "CryptoInterface",
    "KeyPair",
    "PubEncKey",
    "SecEncKey",
    "SignKey",
    "IDataReader",
    "IDataWriter",
    "ImmutableDataInterface",
    "MDataInfo",
    "MDataInfoInterface",
]
