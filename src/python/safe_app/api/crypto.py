# safe_app/api/crypto.py
"""Signing and encryption key handles, hashing and nonces."""

import asyncio
from typing import TYPE_CHECKING

from ..handles import NetworkObject
from .._internal.codec import BytesLike

if TYPE_CHECKING:
    from ..app import App


class SignKey(NetworkObject):
    """A public signing key held by the native library."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.sign_key_free(app.connection, ref)

    def get_raw(self) -> asyncio.Future:
        """Resolves to the 32 raw key bytes."""
        return self.app.library.sign_key_get(self.app.connection, self.ref)


class PubEncKey(NetworkObject):
    """A public encryption key held by the native library."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.enc_pub_key_free(app.connection, ref)

    def get_raw(self) -> asyncio.Future:
        """Resolves to the 32 raw key bytes."""
        return self.app.library.enc_pub_key_get(self.app.connection, self.ref)


class SecEncKey(NetworkObject):
    """A secret encryption key held by the native library."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.enc_secret_key_free(app.connection, ref)

    def get_raw(self) -> asyncio.Future:
        return self.app.library.enc_secret_key_get(self.app.connection, self.ref)


class KeyPair:
    """
    A public/secret encryption key pair.

    Both halves are tracked individually; releasing the pair releases both.
    """
    def __init__(self, pub_enc_key: PubEncKey, sec_enc_key: SecEncKey):
        self.pub_enc_key = pub_enc_key
        self.sec_enc_key = sec_enc_key

    async def force_release(self) -> None:
        results = [self.pub_enc_key.force_release(), self.sec_enc_key.force_release()]
        await asyncio.gather(*(r for r in results if isinstance(r, asyncio.Future)))

    async def __aenter__(self) -> "KeyPair":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.force_release()


class CryptoInterface:
    """Crypto operations of a session, available as `app.crypto`."""

    def __init__(self, app: "App"):
        self.app = app

    async def get_app_pub_sign_key(self) -> SignKey:
        return await self.app.library.app_pub_sign_key(self.app)

    async def get_app_pub_enc_key(self) -> PubEncKey:
        return await self.app.library.app_pub_enc_key(self.app)

    async def generate_enc_key_pair(self) -> KeyPair:
        """
        Generates a fresh encryption key pair.

        Returns:
            A `KeyPair` whose halves are both tracked for release.
        """
        pub, sec = await self.app.library.enc_generate_key_pair(self.app)
        return KeyPair(pub, sec)

    async def pub_sign_key_from_raw(self, raw: BytesLike) -> SignKey:
        """
        Wraps raw public signing key bytes in a native handle.

        Args:
            raw: Exactly 32 bytes.

        Raises:
            ValidationError: If `raw` is not 32 bytes long.
        """
        return await self.app.library.sign_key_new(self.app, raw)

    async def pub_enc_key_from_raw(self, raw: BytesLike) -> PubEncKey:
        return await self.app.library.enc_pub_key_new(self.app, raw)

    async def sec_enc_key_from_raw(self, raw: BytesLike) -> SecEncKey:
        return await self.app.library.enc_secret_key_new(self.app, raw)

    async def generate_key_pair_from_raw(self, raw_pub: BytesLike, raw_sec: BytesLike) -> KeyPair:
        pub = await self.pub_enc_key_from_raw(raw_pub)
        sec = await self.sec_enc_key_from_raw(raw_sec)
        return KeyPair(pub, sec)

    def sha3_hash(self, data: BytesLike) -> asyncio.Future:
        """Resolves to the SHA3-256 digest of `data`."""
        return self.app.library.sha3_hash(data)

    def generate_nonce(self) -> asyncio.Future:
        """Resolves to 24 random nonce bytes."""
        return self.app.library.generate_nonce()

    def __repr__(self) -> str:
        return f"<CryptoInterface app={self.app!r}>"


__all__ = ["SignKey", "PubEncKey", "SecEncKey", "KeyPair", "CryptoInterface"]
