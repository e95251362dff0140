"""ZIP record layouts and local file header parsing.

Layouts follow the PKWARE APPNOTE; all integers are little-endian.
"""

import struct
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Tuple

LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
ARCHIVE_EXTRA_DATA_SIGNATURE = 0x08064B50
END_OF_CENTRAL_DIRECTORY_SIGNATURE = 0x06054B50

LOCAL_FILE_HEADER_MAGIC = struct.pack("<I", LOCAL_FILE_HEADER_SIGNATURE)  # b"PK\x03\x04"

# Records after the last local entry; seeing one ends the entry stream
TERMINATOR_SIGNATURES = frozenset({
    CENTRAL_DIRECTORY_SIGNATURE,
    ARCHIVE_EXTRA_DATA_SIGNATURE,
    END_OF_CENTRAL_DIRECTORY_SIGNATURE,
})

# "PK", the first two bytes of every record signature
SIGNATURE_PREFIX = b"PK"
SIGNATURE_SCAN_WINDOW = 28

LOCAL_FILE_HEADER = struct.Struct("<IHHHHHIIIHH")
LOCAL_FILE_HEADER_SIZE = LOCAL_FILE_HEADER.size  # 30

# Both length fields are 16-bit
MAX_NAME_EXTRA_LENGTH = 2 * 0xFFFF

FLAG_DATA_DESCRIPTOR = 1 << 3
FLAG_UTF8 = 1 << 11


@dataclass(frozen=True)
class LocalHeader:
    """Local file header of one archive entry."""
    version_needed: int
    flags: int
    compression_method: int
    last_modified_time: int
    last_modified_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    file_name_length: int
    extra_field_length: int
    file_name: bytes = b""
    extra_field: bytes = b""

    @property
    def is_data_descriptor(self) -> bool:
        """Sizes and CRC follow the data instead of this header."""
        return bool(self.flags & FLAG_DATA_DESCRIPTOR)

    @property
    def is_utf8(self) -> bool:
        return bool(self.flags & FLAG_UTF8)

    @property
    def name(self) -> str:
        """Entry name decoded per flag bit 11 (UTF-8, otherwise CP437)."""
        encoding = "utf-8" if self.is_utf8 else "cp437"
        return self.file_name.decode(encoding, errors="replace")

    @property
    def is_directory(self) -> bool:
        return self.file_name.endswith(b"/")

    @property
    def modified_at(self) -> Optional[datetime]:
        """Last modification time from the MS-DOS date/time fields.

        Returns None when the stored fields do not form a valid date.
        """
        date, time = self.last_modified_date, self.last_modified_time
        try:
            return datetime(
                1980 + (date >> 9),
                (date >> 5) & 0x0F,
                date & 0x1F,
                time >> 11,
                (time >> 5) & 0x3F,
                min((time & 0x1F) * 2, 59),
            )
        except ValueError:
            return None

    @property
    def variable_length(self) -> int:
        """Bytes of name plus extra field following the fixed header."""
        return self.file_name_length + self.extra_field_length

    def with_name_and_extra(self, file_name: bytes, extra_field: bytes) -> "LocalHeader":
        return replace(self, file_name=bytes(file_name), extra_field=bytes(extra_field))


def read_signature(buffer: bytes | memoryview, offset: int = 0) -> int:
    """Read a 4-byte little-endian record signature at offset."""
    return int.from_bytes(buffer[offset:offset + 4], "little")


def parse_local_header(buffer: bytes | memoryview) -> Optional[LocalHeader]:
    """Decode the fixed 30-byte part of a local file header.

    Args:
        buffer: At least LOCAL_FILE_HEADER_SIZE bytes; extra bytes are ignored

    Returns:
        LocalHeader without name and extra field, or None if the buffer
        does not start with the local file header signature
    """
    (
        signature,
        version_needed,
        flags,
        compression_method,
        last_modified_time,
        last_modified_date,
        crc32,
        compressed_size,
        uncompressed_size,
        file_name_length,
        extra_field_length,
    ) = LOCAL_FILE_HEADER.unpack_from(buffer)

    if signature != LOCAL_FILE_HEADER_SIGNATURE:
        return None

    return LocalHeader(
        version_needed=version_needed,
        flags=flags,
        compression_method=compression_method,
        last_modified_time=last_modified_time,
        last_modified_date=last_modified_date,
        crc32=crc32,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        file_name_length=file_name_length,
        extra_field_length=extra_field_length,
    )


def find_next_signature(buffer: bytes | memoryview) -> Optional[Tuple[int, int]]:
    """Look for the next record signature near the start of buffer.

    Only the first SIGNATURE_SCAN_WINDOW bytes are searched, which skips
    the few padding bytes some writers put between records.

    Returns:
        (offset, signature) of the first "PK" prefix found, or None
    """
    window = bytes(buffer[:SIGNATURE_SCAN_WINDOW])
    offset = window.find(SIGNATURE_PREFIX)
    if offset < 0 or offset + 4 > len(buffer):
        return None
    return offset, read_signature(buffer, offset)
