"""
Payload codecs for the distributed tier.

The manager passes every serialized entry through a codec before SETEX and
after GET. IdentityCodec is the default; ZlibCodec trades CPU for Redis memory
on large payloads.
"""

import zlib

from tiercache.core.exceptions import CacheSerializationError


class IdentityCodec:
    """Pass-through codec."""

    name = "none"

    def compress(self, data: bytes) -> bytes:
        return data

    def decompress(self, data: bytes) -> bytes:
        return data


class ZlibCodec:
    """
    zlib compression.

    Args:
        level: zlib compression level (0-9)
    """

    name = "zlib"

    def __init__(self, level: int = 6):
        if not 0 <= level <= 9:
            raise ValueError("zlib level must be between 0 and 9")
        self._level = level

    def compress(self, data: bytes) -> bytes:
        return zlib.compress(data, self._level)

    def decompress(self, data: bytes) -> bytes:
        try:
            return zlib.decompress(data)
        except zlib.error as e:
            raise CacheSerializationError.from_exception(e, message="Corrupt compressed payload")


def codec_for(name: str):
    """Resolve a codec from its configured name."""
    codecs = {IdentityCodec.name: IdentityCodec, ZlibCodec.name: ZlibCodec}
    try:
        return codecs[name]()
    except KeyError:
        raise ValueError(f"Unknown cache codec: {name!r}") from None
