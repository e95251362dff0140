"""Checksum utilities for entry integrity verification."""

import zlib
from pathlib import Path

# Constants for checksum calculation
CRC32_CHUNK_SIZE = 65536  # 64 KB chunks


def update_crc32(data: bytes | memoryview, crc: int = 0) -> int:
    """
    Fold a block of bytes into a running CRC32 value.

    Args:
        data: Bytes to add to the checksum
        crc: Running CRC32 from previous blocks (0 to start)

    Returns:
        Updated CRC32 as unsigned 32-bit integer
    """
    return zlib.crc32(data, crc) & 0xFFFFFFFF


def compute_crc32(file_path: Path) -> int:
    """
    Compute CRC32 checksum of entire file.

    Used for:
    - Verifying files written by the extract command

    Args:
        file_path: Path to the file

    Returns:
        CRC32 checksum as unsigned 32-bit integer

    Raises:
        OSError: If file cannot be read
    """
    crc = 0

    with open(file_path, 'rb') as f:
        while chunk := f.read(CRC32_CHUNK_SIZE):
            crc = update_crc32(chunk, crc)

    return crc


def compute_crc32_hex(file_path: Path) -> str:
    """Compute CRC32 checksum of entire file as 8-character hex string."""
    return format_crc32(compute_crc32(file_path))


def format_crc32(crc: int) -> str:
    """Format a CRC32 value the way archive listings show it (e.g. "a1b2c3d4")."""
    return f"{crc & 0xFFFFFFFF:08x}"
