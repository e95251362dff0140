"""Shared fixtures for building archives and decoding them in chunks."""

import io
import struct
import zipfile
import zlib
from dataclasses import dataclass
from typing import Iterable, List, Optional

import pytest

from zipflow.unzip import END_OF_ENTRY, LocalHeader, StreamUnzip


@dataclass
class DecodedEntry:
    """One entry as reassembled from the item stream."""
    header: LocalHeader
    data: bytes
    data_items: int


class ArchiveBuilder:
    """Builds ZIP byte streams by hand, including invalid ones."""

    # Minimal central directory header: signature followed by zeroed fields
    CENTRAL_DIRECTORY = b"PK\x01\x02" + bytes(42)

    def entry(
        self,
        name: bytes,
        data: bytes,
        *,
        method: int = 0,
        compressed: Optional[bytes] = None,
        crc: Optional[int] = None,
        flags: int = 0,
        extra: bytes = b"",
        signature: int = 0x04034B50,
    ) -> bytes:
        """Local file header, name, extra field and entry data."""
        body = data if compressed is None else compressed
        header = struct.pack(
            "<IHHHHHIIIHH",
            signature,
            20,
            flags,
            method,
            0x6000,  # 12:00:00
            0x5821,  # 2024-01-01
            zlib.crc32(data) if crc is None else crc,
            len(body),
            len(data),
            len(name),
            len(extra),
        )
        return header + name + extra + body

    def deflated_entry(self, name: bytes, data: bytes) -> bytes:
        compressor = zlib.compressobj(6, zlib.DEFLATED, -zlib.MAX_WBITS)
        compressed = compressor.compress(data) + compressor.flush()
        return self.entry(name, data, method=8, compressed=compressed)

    def archive(self, *entries: bytes, central_directory: bool = True) -> bytes:
        return b"".join(entries) + (self.CENTRAL_DIRECTORY if central_directory else b"")

    def zipfile_archive(self, files: dict, compression: int = zipfile.ZIP_DEFLATED) -> bytes:
        """Archive written by the standard library writer."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=compression) as zf:
            for name, content in files.items():
                zf.writestr(name, content)
        return buffer.getvalue()


def split(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def decode_items(chunks: Iterable[bytes], finish: bool = True, **kwargs) -> list:
    """Feed chunks through one StreamUnzip and collect every item."""
    unzipper = StreamUnzip(**kwargs)
    items = []
    for chunk in chunks:
        items.extend(unzipper.feed(chunk))
    if finish:
        unzipper.finish()
    return items


def merge_data_items(items: list) -> list:
    """Join consecutive data items so outputs of different chunkings compare equal."""
    merged: list = []
    for item in items:
        if isinstance(item, bytes) and merged and isinstance(merged[-1], bytes):
            merged[-1] += item
        else:
            merged.append(item)
    return merged


def group_entries(items: list) -> List[DecodedEntry]:
    entries = []
    header = None
    parts: List[bytes] = []
    for item in items:
        if isinstance(item, LocalHeader):
            assert header is None, "header before previous entry ended"
            header, parts = item, []
        elif item is END_OF_ENTRY:
            entries.append(DecodedEntry(header, b"".join(parts), len(parts)))
            header = None
        else:
            assert header is not None, "data outside of an entry"
            parts.append(item)
    assert header is None, "entry without end marker"
    return entries


@pytest.fixture
def builder():
    """Archive builder."""
    return ArchiveBuilder()


@pytest.fixture
def decode():
    """Decode bytes split into chunks of the given size."""
    def _decode(data: bytes, chunk_size: Optional[int] = None, **kwargs) -> list:
        chunks = split(data, chunk_size) if chunk_size else [data]
        return decode_items(chunks, **kwargs)
    return _decode


@pytest.fixture
def entries_of():
    """Group an item list into DecodedEntry records."""
    return group_entries


@pytest.fixture
def merged():
    return merge_data_items


@pytest.fixture
def split_chunks():
    """Split bytes into fixed-size chunks."""
    return split


@pytest.fixture
def decode_chunks():
    """Decode an explicit list of chunks."""
    return decode_items
