"""Base error definitions for zipflow packages."""

from typing import Any, Dict


class ZipflowError(Exception):
    """Base exception for all zipflow errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context
