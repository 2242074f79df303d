# safe_app/api/mdata_info.py
"""Mutable data info handles: the address and encryption info of a mutable data object."""

import asyncio
from typing import TYPE_CHECKING

from ..dataclasses import NameAndTag
from ..handles import NetworkObject
from .._internal.codec import BytesLike

if TYPE_CHECKING:
    from ..app import App


class MDataInfo(NetworkObject):
    @classmethod
    def release(cls, app: "App", ref: int) -> asyncio.Future:
        return app.library.mdata_info_free(app.connection, ref)

    def get_name_and_tag(self) -> "asyncio.Future[NameAndTag]":
        """Resolves to the object's network address as a `NameAndTag`."""
        return self.app.library.mdata_info_extract_name_and_type_tag(self.app.connection, self.ref)

    def serialise(self) -> asyncio.Future:
        """Resolves to an opaque byte representation, see `MDataInfoInterface.deserialise`."""
        return self.app.library.mdata_info_serialise(self.app.connection, self.ref)


class MDataInfoInterface:
    """Constructors of `MDataInfo` handles, available as `app.mdata_info`."""

    def __init__(self, app: "App"):
        self.app = app

    async def new_public(self, name: BytesLike, type_tag: int) -> MDataInfo:
        """
        Creates the info for a public mutable data object.

        Args:
            name: The 32-byte network name.
            type_tag: The object's type tag.

        Raises:
            ValidationError: If `name` is not 32 bytes long or `type_tag`
                             is not an unsigned 64-bit integer.
        """
        return await self.app.library.mdata_info_new_public(self.app, name, type_tag)

    async def new_private(self, name: BytesLike, type_tag: int) -> MDataInfo:
        return await self.app.library.mdata_info_new_private(self.app, name, type_tag)

    async def new_random_public(self, type_tag: int) -> MDataInfo:
        return await self.app.library.mdata_info_random_public(self.app, type_tag)

    async def new_random_private(self, type_tag: int) -> MDataInfo:
        return await self.app.library.mdata_info_random_private(self.app, type_tag)

    async def deserialise(self, data: BytesLike) -> MDataInfo:
        return await self.app.library.mdata_info_deserialise(self.app, data)
