"""Streaming ZIP decoder.

StreamUnzip consumes an archive as arbitrary byte chunks and turns it into
a flat sequence of items:

    LocalHeader, bytes, bytes, ..., END_OF_ENTRY, LocalHeader, ...

Each entry starts with its completed LocalHeader, followed by zero or more
non-empty chunks of decompressed data and one END_OF_ENTRY marker. Only the
local file headers are read; decoding stops at the central directory.

Example:
    for item in stream_unzip(iter_file_chunks(Path("photos.zip"))):
        if isinstance(item, LocalHeader):
            out = open(item.name, "wb")
        elif item is END_OF_ENTRY:
            out.close()
        else:
            out.write(item)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from zipflow.common import update_crc32
from .decoders import Decoder, get_decoder
from .errors import (
    ArchiveError,
    ChecksumMismatchError,
    MalformedHeaderError,
    SignatureNotFoundError,
    TruncatedArchiveError,
    UnsupportedFeatureError,
)
from .headers import (
    LOCAL_FILE_HEADER_MAGIC,
    LOCAL_FILE_HEADER_SIGNATURE,
    LOCAL_FILE_HEADER_SIZE,
    TERMINATOR_SIGNATURES,
    LocalHeader,
    find_next_signature,
    parse_local_header,
    read_signature,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536


class Stage(Enum):
    """Which record the decoder expects next."""
    AWAITING_LOCAL_HEADER = "awaiting_local_header"
    AWAITING_NEXT_HEADER = "awaiting_next_header"
    AWAITING_NAME_AND_EXTRA = "awaiting_name_and_extra"
    AWAITING_FILE_DATA = "awaiting_file_data"
    DONE = "done"


@dataclass(frozen=True)
class EndOfEntry:
    """Marks the end of the current entry's data."""

    def __repr__(self) -> str:
        return "END_OF_ENTRY"


END_OF_ENTRY = EndOfEntry()

Item = Union[LocalHeader, bytes, EndOfEntry]


@dataclass
class ParseState:
    """Mutable decoding state owned by one StreamUnzip."""
    stage: Stage = Stage.AWAITING_LOCAL_HEADER
    pending: bytes = b""
    current_header: Optional[LocalHeader] = None
    bytes_consumed: int = 0  # compressed bytes of the current entry passed to the decoder
    decoder: Optional[Decoder] = None
    crc32: int = 0
    entries_seen: int = 0

    def reset_entry(self) -> None:
        self.current_header = None
        self.decoder = None
        self.bytes_consumed = 0
        self.crc32 = 0


# A stage handler consumes from the front of the buffer and returns the
# unconsumed rest, or None when nothing more can happen until new input.
StageHandler = Callable[[memoryview, List[Item]], Optional[memoryview]]


class StreamUnzip:
    """Incremental decoder for one archive.

    Feed chunks with feed(); call finish() once the input is exhausted.
    Any ArchiveError is fatal: afterwards the instance refuses input.
    """

    def __init__(self, max_name_extra_length: Optional[int] = None) -> None:
        """
        Args:
            max_name_extra_length: Upper bound for the name plus extra field
                length a header may declare. Those bytes are buffered before
                parsing, so hosts reading untrusted archives should set it.
        """
        self.state = ParseState()
        self.max_name_extra_length = max_name_extra_length
        self._failure: Optional[ArchiveError] = None
        self._handlers: Dict[Stage, StageHandler] = {
            Stage.AWAITING_LOCAL_HEADER: self._parse_local_header,
            Stage.AWAITING_NEXT_HEADER: self._scan_next_header,
            Stage.AWAITING_NAME_AND_EXTRA: self._parse_name_and_extra,
            Stage.AWAITING_FILE_DATA: self._parse_file_data,
            Stage.DONE: self._discard,
        }

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def done(self) -> bool:
        return self.state.stage is Stage.DONE

    def feed(self, chunk: bytes | bytearray | memoryview) -> List[Item]:
        """Consume one chunk and return the items it completes.

        Raises:
            ArchiveError: On any format, integrity or decompression failure
        """
        self._ensure_usable()
        state = self.state

        if state.pending:
            buffer = memoryview(state.pending + bytes(chunk))
            state.pending = b""
        else:
            buffer = memoryview(chunk).cast("B")

        items: List[Item] = []
        rest: Optional[memoryview] = buffer
        try:
            while rest is not None:
                if len(rest) < self._required_bytes():
                    # Not enough for this stage yet; keep everything for the next call
                    state.pending = bytes(rest)
                    break
                rest = self._handlers[state.stage](rest, items)
        except ArchiveError as e:
            self._fail(e)
            raise

        return items

    def finish(self) -> None:
        """Signal end of input.

        Input may end right after an entry, at a terminating record, or
        before any local header. Ending anywhere else is a truncation.

        Raises:
            TruncatedArchiveError: If input ended in the middle of a record
        """
        self._ensure_usable()
        state = self.state
        pending = state.pending

        try:
            if state.stage is Stage.AWAITING_NEXT_HEADER and pending:
                found = find_next_signature(pending)
                if found is None or found[1] not in TERMINATOR_SIGNATURES:
                    raise TruncatedArchiveError(
                        f"Archive ends with {len(pending)} unparsed bytes after the last entry",
                        pending_bytes=len(pending),
                    )
            elif state.stage is Stage.AWAITING_LOCAL_HEADER and pending:
                at_start = state.entries_seen == 0
                # A cut-off local header signature is a truncation, not an empty archive
                if not at_start or pending[:4] == LOCAL_FILE_HEADER_MAGIC[:len(pending)]:
                    raise TruncatedArchiveError(
                        f"Archive ends inside a local file header ({len(pending)} of "
                        f"{LOCAL_FILE_HEADER_SIZE} bytes)",
                        pending_bytes=len(pending),
                    )
            elif state.stage in (Stage.AWAITING_NAME_AND_EXTRA, Stage.AWAITING_FILE_DATA):
                header = state.current_header
                raise TruncatedArchiveError(
                    f"Archive ends inside entry {header.name!r} "
                    f"({state.bytes_consumed} of {header.compressed_size} compressed bytes read)",
                    entry=header.name,
                    stage=state.stage.value,
                )
        except ArchiveError as e:
            self._fail(e)
            raise

        if not self.done:
            logger.debug(f"End of input after {state.entries_seen} entries")
            state.stage = Stage.DONE
        state.pending = b""

    def _ensure_usable(self) -> None:
        if self._failure is not None:
            raise ArchiveError(
                f"Cannot continue after earlier failure: {self._failure.message}",
                cause=type(self._failure).__name__,
            )

    def _fail(self, error: ArchiveError) -> None:
        self._failure = error
        self.state.decoder = None
        logger.debug(f"Archive decoding failed in stage {self.state.stage.value}: {error.message}")

    def _required_bytes(self) -> int:
        stage = self.state.stage
        if stage in (Stage.AWAITING_LOCAL_HEADER, Stage.AWAITING_NEXT_HEADER):
            return LOCAL_FILE_HEADER_SIZE
        if stage is Stage.AWAITING_NAME_AND_EXTRA:
            return self.state.current_header.variable_length
        return 0

    def _parse_local_header(self, buffer: memoryview, items: List[Item]) -> Optional[memoryview]:
        state = self.state
        header = parse_local_header(buffer)

        if header is None:
            if state.entries_seen:
                raise MalformedHeaderError(
                    f"Invalid local file header signature 0x{read_signature(buffer):08x}",
                    signature=read_signature(buffer),
                )
            # Input that does not open with a local header has no entries
            logger.debug("No local file header at start of input, nothing to decode")
            state.stage = Stage.DONE
            return None

        decoder = get_decoder(header.compression_method)

        if header.is_data_descriptor:
            raise UnsupportedFeatureError(
                "Zip files with data descriptor record are not supported",
                flags=header.flags,
            )

        limit = self.max_name_extra_length
        if limit is not None and header.variable_length > limit:
            raise MalformedHeaderError(
                f"Name and extra field length {header.variable_length} exceeds limit {limit}",
                file_name_length=header.file_name_length,
                extra_field_length=header.extra_field_length,
            )

        state.current_header = header
        state.decoder = decoder
        state.stage = Stage.AWAITING_NAME_AND_EXTRA
        return buffer[LOCAL_FILE_HEADER_SIZE:]

    def _parse_name_and_extra(self, buffer: memoryview, items: List[Item]) -> Optional[memoryview]:
        state = self.state
        name_end = state.current_header.file_name_length
        extra_end = name_end + state.current_header.extra_field_length

        header = state.current_header.with_name_and_extra(
            buffer[:name_end], buffer[name_end:extra_end]
        )
        state.current_header = header
        state.entries_seen += 1
        state.stage = Stage.AWAITING_FILE_DATA

        logger.debug(
            f"Entry {header.name!r}: method={header.compression_method}, "
            f"compressed={header.compressed_size}, uncompressed={header.uncompressed_size}"
        )
        items.append(header)
        return buffer[extra_end:]

    def _parse_file_data(self, buffer: memoryview, items: List[Item]) -> Optional[memoryview]:
        state = self.state
        header = state.current_header
        remaining = header.compressed_size - state.bytes_consumed

        if len(buffer) < remaining:
            if not buffer:
                return None
            self._emit(self._decode(buffer), items)
            state.bytes_consumed += len(buffer)
            return None

        data = self._decode(buffer[:remaining])
        state.bytes_consumed += remaining

        tail = state.decoder.close()
        state.crc32 = update_crc32(tail, state.crc32)

        self._emit(data + tail if tail else data, items)
        items.append(END_OF_ENTRY)

        self._close_entry(header)
        return buffer[remaining:]

    def _decode(self, compressed: memoryview) -> bytes:
        data = self.state.decoder.decode(compressed)
        self.state.crc32 = update_crc32(data, self.state.crc32)
        return data

    @staticmethod
    def _emit(data: bytes, items: List[Item]) -> None:
        if data:
            items.append(data)

    def _close_entry(self, header: LocalHeader) -> None:
        state = self.state
        actual = state.crc32

        if actual != header.crc32:
            raise ChecksumMismatchError(
                f"Invalid crc32 for {header.name!r}, expected: {header.crc32:08x}, "
                f"actual: {actual:08x}",
                expected=header.crc32,
                actual=actual,
                entry=header.name,
            )

        state.reset_entry()
        state.stage = Stage.AWAITING_NEXT_HEADER

    def _scan_next_header(self, buffer: memoryview, items: List[Item]) -> Optional[memoryview]:
        found = find_next_signature(buffer)
        if found is None:
            raise SignatureNotFoundError(
                "Invalid zip file, could not find any signature header",
                entries_seen=self.state.entries_seen,
            )

        offset, signature = found
        if signature == LOCAL_FILE_HEADER_SIGNATURE:
            # The header parser reads the signature again
            self.state.stage = Stage.AWAITING_LOCAL_HEADER
            return buffer[offset:]

        if signature in TERMINATOR_SIGNATURES:
            logger.debug(
                f"Reached record 0x{signature:08x} after {self.state.entries_seen} entries"
            )
            self.state.stage = Stage.DONE
            return None

        raise MalformedHeaderError(
            f"Unexpected record signature 0x{signature:08x} between entries",
            signature=signature,
        )

    def _discard(self, buffer: memoryview, items: List[Item]) -> Optional[memoryview]:
        return None


def stream_unzip(
    chunks: Iterable[bytes],
    max_name_extra_length: Optional[int] = None,
) -> Iterator[Item]:
    """Decode an archive given as an iterable of byte chunks.

    Stops pulling chunks once the entry section of the archive is finished.

    Raises:
        ArchiveError: On any format, integrity or decompression failure
    """
    unzipper = StreamUnzip(max_name_extra_length=max_name_extra_length)
    for chunk in chunks:
        yield from unzipper.feed(chunk)
        if unzipper.done:
            return
    unzipper.finish()


def iter_file_chunks(file_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Read a file as a sequence of chunk_size blocks."""
    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            yield chunk
