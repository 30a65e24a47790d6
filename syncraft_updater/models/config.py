"""
Pydantic model for the updater configuration.
Provides validation for all settings read from the INI file or the command line.
"""

import hashlib

from pydantic import BaseModel, Field, field_validator

MIN_CHUNK_SIZE = 1024  # 1 KB
MAX_CHUNK_SIZE = 16 * 1024 * 1024  # 16 MB


class UpdaterConfig(BaseModel):
    """A validated configuration model for the updater."""

    # Timing
    grace_period: float = 3.0
    connect_timeout: float = 15.0
    read_timeout: float = 90.0

    # Download Settings
    chunk_size: int = 64 * 1024
    verify_algorithm: str = ""
    artifact_suffix: str = ".jar"
    temp_dir: str = ""

    # Apply Settings
    cancel_during_apply: bool = False

    # Logging
    json_log: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("grace_period")
    @classmethod
    def validate_grace_period(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Grace period cannot be negative.")
        return v

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Ensures a reasonable streaming chunk size."""
        if v < MIN_CHUNK_SIZE or v > MAX_CHUNK_SIZE:
            raise ValueError(
                f"Chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes."
            )
        return v

    @field_validator("verify_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Accepts an empty value (verification disabled) or a hashlib name."""
        v = v.lower()
        if v and v not in hashlib.algorithms_available:
            raise ValueError(f"Unknown hash algorithm: '{v}'.")
        # shake_* digests have no fixed length to compare against.
        if v and hashlib.new(v).digest_size == 0:
            raise ValueError(f"Variable-length hash algorithm not supported: '{v}'.")
        return v

    @field_validator("artifact_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        if v and not v.startswith("."):
            v = f".{v}"
        if "/" in v or "\\" in v:
            raise ValueError("Artifact suffix cannot contain path separators.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
