"""Logging section of the zipflow configuration file."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, ValidationInfo, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["simple", "detailed", "json"]


class LoggingConfig(BaseModel):
    """Where and how zipflow reports progress and failures.

    Console output always goes to stderr so that `zipflow list` output on
    stdout can be piped. A log file, when set, is rotated and written as JSON.
    """

    model_config = ConfigDict(extra='forbid')

    level: LogLevel = Field(
        default="INFO",
        description="Lowest level written; DEBUG shows every decoded entry"
    )
    format: LogFormat = Field(
        default="simple",
        description="Console format: simple, detailed or json"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Rotating JSON log of zipflow runs"
    )
    max_file_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=5, ge=0)

    @field_validator('level', 'format', mode='before')
    @classmethod
    def normalize_case(cls, v: str, info: ValidationInfo) -> str:
        # Levels are upper case, format names lower case
        if isinstance(v, str):
            return v.upper() if info.field_name == 'level' else v.lower()
        return v
