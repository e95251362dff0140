"""Command line interface for listing and extracting ZIP archives as streams."""

import argparse
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional

from zipflow.common import (
    ConfigLoader,
    LogContext,
    ZipflowError,
    compute_crc32,
    get_logger,
    safe_join,
    setup_logging,
)
from zipflow.common.checksums import format_crc32
from .config import UnzipConfig, ZipflowConfig
from .decoders import CompressionMethod, supported_methods
from .errors import ChecksumMismatchError
from .headers import LocalHeader
from .stream import END_OF_ENTRY, iter_file_chunks, stream_unzip

APP_NAME = "zipflow"

logger = get_logger(__package__ or __name__)


def method_name(method: int) -> str:
    """Readable name of a compression method code."""
    try:
        return CompressionMethod(method).name.lower()
    except ValueError:
        return str(method)


def list_command(config: ZipflowConfig, archive: Path, out=None) -> int:
    """Print one line per entry: size, CRC32, method and name.

    Sizes are counted from the decompressed stream, so every entry is
    decoded and checked while listing.

    Returns:
        Exit code (0 for success)
    """
    out = out or sys.stdout
    if not archive.is_file():
        logger.error(f"Archive does not exist: {archive}")
        return 1

    entries = 0
    total_size = 0
    header: Optional[LocalHeader] = None
    size = 0

    with LogContext(logger, archive=str(archive)):
        try:
            items = stream_unzip(
                iter_file_chunks(archive, config.unzip.chunk_size),
                max_name_extra_length=config.unzip.max_name_extra_length,
            )
            for item in items:
                if isinstance(item, LocalHeader):
                    header, size = item, 0
                elif item is END_OF_ENTRY:
                    print(
                        f"{size:>12}  {format_crc32(header.crc32)}  "
                        f"{method_name(header.compression_method):<10} {header.name}",
                        file=out,
                    )
                    entries += 1
                    total_size += size
                else:
                    size += len(item)
        except (ZipflowError, OSError) as e:
            logger.error(f"Failed to list {archive}: {e}")
            return 1

        logger.info(f"Listed {entries} entries, {total_size} bytes")
    return 0


def extract_command(config: ZipflowConfig, archive: Path, target_dir: Path) -> int:
    """Stream every entry of an archive into target_dir.

    Returns:
        Exit code (0 for success)
    """
    if not archive.is_file():
        logger.error(f"Archive does not exist: {archive}")
        return 1

    verify = config.unzip.verify_extracted_files
    target_dir.mkdir(parents=True, exist_ok=True)
    extracted = 0
    output: Optional[BinaryIO] = None

    with LogContext(logger, archive=str(archive)):
        try:
            header: Optional[LocalHeader] = None
            path: Optional[Path] = None
            items = stream_unzip(
                iter_file_chunks(archive, config.unzip.chunk_size),
                max_name_extra_length=config.unzip.max_name_extra_length,
            )
            for item in items:
                if isinstance(item, LocalHeader):
                    header = item
                    path = safe_join(target_dir, item.name)
                    if item.is_directory:
                        path.mkdir(parents=True, exist_ok=True)
                    else:
                        path.parent.mkdir(parents=True, exist_ok=True)
                        output = open(path, 'wb')
                elif item is END_OF_ENTRY:
                    if output is not None:
                        output.close()
                        output = None
                        if verify:
                            verify_extracted_file(path, header)
                    extracted += 1
                    logger.debug(f"Extracted {header.name}")
                elif output is not None:
                    output.write(item)
        except (ZipflowError, OSError, ValueError) as e:
            logger.error(f"Failed to extract {archive}: {e}")
            return 1
        finally:
            if output is not None:
                output.close()

        logger.info(f"Extracted {extracted} entries to {target_dir}")
    return 0


def verify_extracted_file(path: Path, header: LocalHeader) -> None:
    """Compare the CRC32 of a written file with the archive header.

    Raises:
        ChecksumMismatchError: If the file on disk differs
    """
    actual = compute_crc32(path)
    if actual != header.crc32:
        raise ChecksumMismatchError(
            f"Extracted file {path} has crc32 {format_crc32(actual)}, "
            f"archive declares {format_crc32(header.crc32)}",
            expected=header.crc32,
            actual=actual,
            file_path=str(path),
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="List or extract ZIP archives in a single streaming pass",
        epilog="Supported compression methods: "
        + ", ".join(method_name(m) for m in supported_methods()),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        help="Bytes read per chunk (overrides config)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (overrides config)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List archive entries")
    list_parser.add_argument("archive", type=Path, help="ZIP archive to read")

    extract_parser = subparsers.add_parser("extract", help="Extract archive entries")
    extract_parser.add_argument("archive", type=Path, help="ZIP archive to read")
    extract_parser.add_argument(
        "--target-dir",
        type=Path,
        default=Path("."),
        help="Directory to extract into (default: current directory)"
    )
    extract_parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip re-reading extracted files to check their CRC32"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the zipflow command."""
    args = build_parser().parse_args(argv)

    loader = ConfigLoader(ZipflowConfig, app_name=APP_NAME)
    config = loader.load(defaults_path=args.config)

    unzip_overrides = {}
    if args.chunk_size is not None:
        unzip_overrides["chunk_size"] = args.chunk_size
    if getattr(args, "no_verify", False):
        unzip_overrides["verify_extracted_files"] = False
    if unzip_overrides:
        config = ZipflowConfig(
            logging=config.logging,
            unzip=UnzipConfig(**{**config.unzip.model_dump(), **unzip_overrides}),
        )

    setup_logging(
        level=args.log_level or config.logging.level,
        format=config.logging.format,
        log_file=config.logging.file,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
    )

    if args.command == "list":
        return list_command(config, args.archive)
    return extract_command(config, args.archive, args.target_dir)


if __name__ == "__main__":
    sys.exit(main())
