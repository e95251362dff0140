"""Streaming decoder for ZIP archives."""

from .headers import LocalHeader
from .decoders import CompressionMethod, Decoder, get_decoder, register_decoder
from .stream import (
    END_OF_ENTRY,
    EndOfEntry,
    Item,
    ParseState,
    Stage,
    StreamUnzip,
    iter_file_chunks,
    stream_unzip,
)
from .errors import (
    ArchiveError,
    UnsupportedFeatureError,
    MalformedHeaderError,
    SignatureNotFoundError,
    ChecksumMismatchError,
    UnsupportedCompressionError,
    DecompressionError,
    TruncatedArchiveError,
)

__all__ = [
    'LocalHeader',
    'CompressionMethod',
    'Decoder',
    'get_decoder',
    'register_decoder',
    'END_OF_ENTRY',
    'EndOfEntry',
    'Item',
    'ParseState',
    'Stage',
    'StreamUnzip',
    'iter_file_chunks',
    'stream_unzip',
    'ArchiveError',
    'UnsupportedFeatureError',
    'MalformedHeaderError',
    'SignatureNotFoundError',
    'ChecksumMismatchError',
    'UnsupportedCompressionError',
    'DecompressionError',
    'TruncatedArchiveError',
]
