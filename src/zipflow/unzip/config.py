"""Configuration schema for the zipflow commands."""

from pydantic import BaseModel, Field, ConfigDict
from zipflow.common import LoggingConfig
from .headers import MAX_NAME_EXTRA_LENGTH
from .stream import DEFAULT_CHUNK_SIZE


class UnzipConfig(BaseModel):
    """Configuration for streaming decoding."""

    model_config = ConfigDict(extra='forbid')

    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        description="Bytes read from the archive per chunk"
    )
    max_name_extra_length: int = Field(
        default=MAX_NAME_EXTRA_LENGTH,
        ge=0,
        description="Largest name plus extra field length accepted in a local header"
    )
    verify_extracted_files: bool = Field(
        default=True,
        description="Re-read extracted files and compare their CRC32 with the archive"
    )


class ZipflowConfig(BaseModel):
    """Root configuration for zipflow."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    unzip: UnzipConfig = Field(default_factory=UnzipConfig)
