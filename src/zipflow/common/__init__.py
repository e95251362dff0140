"""Common utilities for zipflow packages."""

from .config import ConfigLoader
from .logging import setup_logging, get_logger, LogContext
from .logging_config import LoggingConfig
from .errors import ZipflowError
from .path_utils import normalize_path, safe_join
from .checksums import update_crc32, compute_crc32, compute_crc32_hex

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'setup_logging',
    'get_logger',
    'LogContext',
    'ZipflowError',
    'normalize_path',
    'safe_join',
    'update_crc32',
    'compute_crc32',
    'compute_crc32_hex',
]
