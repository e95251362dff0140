"""Decompression engines, one per ZIP compression method.

An engine is created for a single entry. It receives the entry's compressed
bytes in arbitrary slices through decode() and is closed exactly once after
the last slice, when it returns whatever output it still holds.
"""

import bz2
import logging
import lzma
import zlib
from enum import IntEnum
from typing import Callable, Dict, Protocol

import inflate64
import pyzstd

from .errors import DecompressionError, UnsupportedCompressionError

logger = logging.getLogger(__name__)


class CompressionMethod(IntEnum):
    """Compression method codes from the local file header."""
    STORED = 0
    DEFLATED = 8
    DEFLATE64 = 9
    BZIP2 = 12
    LZMA = 14
    ZSTANDARD = 93


class Decoder(Protocol):
    """Incremental decompression engine for one entry."""

    def decode(self, data: bytes | memoryview) -> bytes:
        ...

    def close(self) -> bytes:
        ...


class StoredDecoder:
    """Method 0: data is stored as is."""

    def decode(self, data: bytes | memoryview) -> bytes:
        return bytes(data)

    def close(self) -> bytes:
        return b""


class DeflateDecoder:
    """Method 8: raw deflate stream (no zlib header)."""

    def __init__(self) -> None:
        self._inflater = zlib.decompressobj(-zlib.MAX_WBITS)

    def decode(self, data: bytes | memoryview) -> bytes:
        try:
            return self._inflater.decompress(data)
        except zlib.error as e:
            raise DecompressionError(f"Invalid deflate data: {e}") from e

    def close(self) -> bytes:
        try:
            tail = self._inflater.flush()
        except zlib.error as e:
            raise DecompressionError(f"Invalid deflate data: {e}") from e
        if not self._inflater.eof:
            raise DecompressionError("Deflate stream ended before its final block")
        return tail


class Deflate64Decoder:
    """Method 9: enhanced deflate with a 64 KB window."""

    def __init__(self) -> None:
        self._inflater = inflate64.Inflater()

    def decode(self, data: bytes | memoryview) -> bytes:
        if not data:
            return b""
        try:
            return self._inflater.inflate(bytes(data))
        except ValueError as e:
            raise DecompressionError(f"Invalid deflate64 data: {e}") from e

    def close(self) -> bytes:
        # An empty inflate() call flushes pending output
        try:
            return self._inflater.inflate(b"")
        except ValueError as e:
            raise DecompressionError(f"Invalid deflate64 data: {e}") from e


class Bzip2Decoder:
    """Method 12: bzip2."""

    def __init__(self) -> None:
        self._decompressor = bz2.BZ2Decompressor()

    def decode(self, data: bytes | memoryview) -> bytes:
        if not data:
            return b""
        try:
            return self._decompressor.decompress(data)
        except (OSError, EOFError) as e:
            raise DecompressionError(f"Invalid bzip2 data: {e}") from e

    def close(self) -> bytes:
        if not self._decompressor.eof:
            raise DecompressionError("Bzip2 stream ended before end of stream marker")
        return b""


class LzmaDecoder:
    """Method 14: LZMA1 prefixed by the ZIP properties header.

    The header is 2 bytes of SDK version, a 2-byte properties length and the
    properties themselves. It may arrive split across several decode() calls,
    so it is buffered until complete.
    """

    def __init__(self) -> None:
        self._header = b""
        self._decompressor = None

    def decode(self, data: bytes | memoryview) -> bytes:
        if self._decompressor is None:
            self._header += bytes(data)
            if len(self._header) < 4:
                return b""
            properties_size = int.from_bytes(self._header[2:4], "little")
            if len(self._header) < 4 + properties_size:
                return b""
            properties = self._header[4:4 + properties_size]
            data = self._header[4 + properties_size:]
            self._header = b""
            try:
                filters = lzma._decode_filter_properties(lzma.FILTER_LZMA1, properties)
                self._decompressor = lzma.LZMADecompressor(lzma.FORMAT_RAW, filters=[filters])
            except lzma.LZMAError as e:
                raise DecompressionError(f"Invalid LZMA properties: {e}") from e

        if not data or self._decompressor.eof:
            return b""
        try:
            return self._decompressor.decompress(data)
        except lzma.LZMAError as e:
            raise DecompressionError(f"Invalid LZMA data: {e}") from e

    def close(self) -> bytes:
        if self._decompressor is None:
            raise DecompressionError("LZMA entry ended inside its properties header")
        return b""


class ZstandardDecoder:
    """Method 93: Zstandard frame."""

    def __init__(self) -> None:
        self._decompressor = pyzstd.ZstdDecompressor()

    def decode(self, data: bytes | memoryview) -> bytes:
        if not data:
            return b""
        try:
            return self._decompressor.decompress(data)
        except (pyzstd.ZstdError, EOFError) as e:
            raise DecompressionError(f"Invalid Zstandard data: {e}") from e

    def close(self) -> bytes:
        if not self._decompressor.eof:
            raise DecompressionError("Zstandard frame ended before its last block")
        return b""


DecoderFactory = Callable[[], Decoder]

_DECODERS: Dict[int, DecoderFactory] = {
    CompressionMethod.STORED: StoredDecoder,
    CompressionMethod.DEFLATED: DeflateDecoder,
    CompressionMethod.DEFLATE64: Deflate64Decoder,
    CompressionMethod.BZIP2: Bzip2Decoder,
    CompressionMethod.LZMA: LzmaDecoder,
    CompressionMethod.ZSTANDARD: ZstandardDecoder,
}


def register_decoder(method: int, factory: DecoderFactory) -> None:
    """Register (or replace) the engine factory for a method code."""
    logger.debug(f"Registering decoder for compression method {method}: {factory!r}")
    _DECODERS[int(method)] = factory


def supported_methods() -> list[int]:
    return sorted(int(method) for method in _DECODERS)


def get_decoder(method: int) -> Decoder:
    """Create a fresh engine for one entry.

    Raises:
        UnsupportedCompressionError: If no engine handles the method code
    """
    factory = _DECODERS.get(method)
    if factory is None:
        raise UnsupportedCompressionError(
            f"Unsupported compression method: {method}",
            compression_method=method,
        )
    return factory()
