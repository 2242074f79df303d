# safe_app/api/cipher_opt.py
"""Cipher options, selecting how immutable data is encrypted."""

import asyncio
from typing import TYPE_CHECKING

from ..handles import NetworkObject
from .crypto import PubEncKey

if TYPE_CHECKING:
    from ..app import App


class CipherOpt(NetworkObject):
    """A cipher option handle, consumed when closing an immutable data writer."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.cipher_opt_free(app.connection, ref)


class CipherOptInterface:
    """Factory for cipher options, available as `app.cipher_opt`."""

    def __init__(self, app: "App"):
        self.app = app

    async def new_plain_text(self) -> CipherOpt:
        """Data is stored unencrypted."""
        return await self.app.library.cipher_opt_new_plaintext(self.app)

    async def new_symmetric(self) -> CipherOpt:
        """Data is encrypted with the app's symmetric key."""
        return await self.app.library.cipher_opt_new_symmetric(self.app)

    async def new_asymmetric(self, key: PubEncKey) -> CipherOpt:
        """
        Data is encrypted for the holder of the secret half of `key`.

        Raises:
            LifecycleError: If `key` has already been released.
        """
        return await self.app.library.cipher_opt_new_asymmetric(self.app, key.ref)
