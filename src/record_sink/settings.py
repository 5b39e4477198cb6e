"""
Sink configuration.

Read from keyword arguments, `RECORD_SINK_*` environment variables and an
optional `.env` file, validated once at construction.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .encoder import DEFAULT_SYNC_INTERVAL
from .naming import default_instance_id
from .rotation import SizeUnit


class SinkSettings(BaseSettings):
    """Validated settings for one sink instance.

    Example:
        RECORD_SINK_BASE_PATH=/data/out
        RECORD_SINK_SCHEMA_FILE=schemas/event.avsc
        RECORD_SINK_ROTATION_SIZE=128
        RECORD_SINK_ROTATION_UNIT=MB
        RECORD_SINK_SYNC_COUNT=500
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORD_SINK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    base_path: str = Field(..., min_length=1)
    schema_definition: Optional[str] = None  # inline JSON; wins over schema_file
    schema_file: Optional[Path] = None
    rotation_size: float = Field(1.0, gt=0)
    rotation_unit: SizeUnit = SizeUnit.MB
    sync_count: int = Field(1, ge=1)
    prefix: str = ""
    extension: str = ".avro"
    instance_id: str = Field(default_factory=default_instance_id, min_length=1)
    codec: Literal["null", "deflate", "bzip2", "xz"] = "null"
    sync_interval: int = Field(DEFAULT_SYNC_INTERVAL, gt=0)
    move_to: Optional[str] = None

    @field_validator("rotation_unit", mode="before")
    @classmethod
    def _upcase_unit(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("instance_id", "prefix", "extension")
    @classmethod
    def _no_separator(cls, v: str) -> str:
        if "/" in v:
            raise ValueError("must not contain '/'")
        return v

    @property
    def rotation_bytes(self) -> int:
        return max(1, int(self.rotation_size * self.rotation_unit.multiplier))


@lru_cache()
def get_settings() -> SinkSettings:
    return SinkSettings()
