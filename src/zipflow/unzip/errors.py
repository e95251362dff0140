"""Archive decoding errors.

Every error here is fatal for the archive being decoded: a StreamUnzip
that raised one refuses further input.
"""

from zipflow.common import ZipflowError


class ArchiveError(ZipflowError):
    """Archive decoding failed."""
    pass


class UnsupportedFeatureError(ArchiveError):
    """Entry uses a ZIP feature this decoder does not handle."""
    pass


class MalformedHeaderError(ArchiveError):
    """A record header is present but structurally invalid."""
    pass


class SignatureNotFoundError(ArchiveError):
    """No record signature where the next record was expected."""
    pass


class ChecksumMismatchError(ArchiveError):
    """Decompressed entry data does not match the declared CRC32."""

    def __init__(self, message: str, expected: int, actual: int, **context) -> None:
        super().__init__(message, expected=expected, actual=actual, **context)
        self.expected = expected
        self.actual = actual


class UnsupportedCompressionError(ArchiveError):
    """No decompression engine is registered for the method code."""
    pass


class DecompressionError(ArchiveError):
    """The decompression engine rejected the entry payload."""
    pass


class TruncatedArchiveError(ArchiveError):
    """Input ended in the middle of a record."""
    pass
