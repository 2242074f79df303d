# safe_app/api/immutable.py
"""
Immutable data, written and read through self-encryptor streams.

A writer accumulates content and, when closed with a cipher option, stores it
on the network and yields its 32-byte address. A reader is opened from such
an address and supports sized, offset reads.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from ..handles import NetworkObject
from .._internal.codec import BytesLike
from .cipher_opt import CipherOpt

if TYPE_CHECKING:
    from ..app import App


class IDataWriter(NetworkObject):
    """A write stream for a new immutable data object."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.idata_self_encryptor_writer_free(app.connection, ref)

    def write(self, data: BytesLike) -> asyncio.Future:
        """Appends `data` to the stream."""
        return self.app.library.idata_write_to_self_encryptor(self.app.connection, self.ref, data)

    async def close(self, cipher_opt: CipherOpt) -> bytes:
        """
        Stores the written content, encrypted according to `cipher_opt`.

        Returns:
            The 32-byte address of the stored data.
        """
        return await self.app.library.idata_close_self_encryptor(
            self.app.connection, self.ref, cipher_opt.ref
        )


class IDataReader(NetworkObject):
    """A read stream over an existing immutable data object."""

    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.idata_self_encryptor_reader_free(app.connection, ref)

    def size(self) -> asyncio.Future:
        """Resolves to the total size of the data, in bytes."""
        return self.app.library.idata_size(self.app.connection, self.ref)

    async def read(self, offset: int = 0, length: Optional[int] = None) -> bytes:
        """
        Reads `length` bytes starting at `offset`.

        Args:
            offset: The position to start reading from.
            length: The number of bytes to read. Defaults to the rest of the data.

        Returns:
            A host-owned copy of the bytes read.
        """
        if length is None:
            length = await self.size() - offset
        return await self.app.library.idata_read_from_self_encryptor(
            self.app.connection, self.ref, offset, length
        )


class ImmutableDataInterface:
    """Immutable data operations of a session, available as `app.immutable_data`."""

    def __init__(self, app: "App"):
        self.app = app

    async def create(self) -> IDataWriter:
        return await self.app.library.idata_new_self_encryptor(self.app)

    async def fetch(self, address: BytesLike) -> IDataReader:
        """
        Opens a reader for the immutable data at `address`.

        Raises:
            ValidationError: If `address` is not 32 bytes long.
            NativeCallError: If nothing is stored at `address`.
        """
        return await self.app.library.idata_fetch_self_encryptor(self.app, address)
