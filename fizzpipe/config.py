"""
Configuration settings for fizzpipe.

Uses Pydantic Settings to load environment variables (and an optional `.env`
file) for the output location, codec choice, channel watermarks, generator
pacing, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KIB = 1024
MIB = 1024 * KIB


class Settings(BaseSettings):
    # Output
    output_path: str = Field("result.brotli", alias="OUTPUT_PATH")
    store_buffer_size: int = Field(1024, alias="STORE_BUFFER_SIZE", gt=0)

    # Codec
    codec: str = Field("brotli", alias="CODEC")
    brotli_quality: int = Field(1, alias="BROTLI_QUALITY", ge=0, le=11)
    brotli_window: int = Field(24, alias="BROTLI_WINDOW", ge=10, le=24)
    zlib_level: int = Field(6, alias="ZLIB_LEVEL", ge=-1, le=9)
    zstd_level: int = Field(3, alias="ZSTD_LEVEL", ge=1, le=22)

    # Channel watermarks. The raw channel stays small so a fast generator cannot
    # run away; the encoded channel is large so a slow disk does not stall the
    # compressor before true disk throughput is the limit.
    raw_high_watermark: int = Field(32 * KIB, alias="RAW_HIGH_WATERMARK", gt=0)
    raw_low_watermark: int = Field(16 * KIB, alias="RAW_LOW_WATERMARK", ge=0)
    encoded_high_watermark: int = Field(128 * MIB, alias="ENCODED_HIGH_WATERMARK", gt=0)
    encoded_low_watermark: int = Field(16 * KIB, alias="ENCODED_LOW_WATERMARK", ge=0)

    # Generator / transform pacing
    flush_interval: int = Field(128, alias="FLUSH_INTERVAL", gt=0)
    progress_interval: int = Field(1_000_000, alias="PROGRESS_INTERVAL", gt=0)
    record_limit: Optional[int] = Field(None, alias="RECORD_LIMIT", ge=0)
    transform_read_size: Optional[int] = Field(None, alias="TRANSFORM_READ_SIZE", gt=0)

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _check_watermarks(self) -> "Settings":
        for prefix in ("raw", "encoded"):
            high = getattr(self, f"{prefix}_high_watermark")
            low = getattr(self, f"{prefix}_low_watermark")
            if low >= high:
                raise ValueError(
                    f"{prefix}_low_watermark ({low}) must be below {prefix}_high_watermark ({high})"
                )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings", "KIB", "MIB"]
