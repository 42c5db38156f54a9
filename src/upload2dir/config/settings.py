# src/upload2dir/config/settings.py
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import ByteSize, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from upload2dir.errors import ConfigError

logger = logging.getLogger(__name__)

# Decimal units: "1GB" is 1,000,000,000 bytes, binary sizes are spelled "1GiB".
DEFAULT_SIZE_LIMIT = 1_000_000_000
DEFAULT_FILE_FIELD_NAME = "file"
DEFAULT_TOKEN_COOKIE_KEY = "upload2dir-token"


class Settings(BaseSettings):
    """
    Single source of truth for the gateway configuration.

    Configuration precedence:
    1. Keyword arguments (tests, CLI overrides)
    2. Environment variables prefixed with ``UPLOAD2DIR_``
    3. .env file (if exists)
    4. Default values in this class

    The instance is frozen: it is built once at startup and shared by every
    request handler without further mutation.

    Usage:
        from upload2dir.config.settings import get_settings
        settings = get_settings()
        root = settings.file_server_root
    """

    # Storage
    file_server_root: Path = Field(
        default=Path("storage"),
        description="Root directory every destination must resolve inside"
    )

    dest_field: str = Field(
        default="",
        description="Form/query field carrying an explicit destination path (empty disables)"
    )

    file_field_name: str = Field(
        default=DEFAULT_FILE_FIELD_NAME,
        description="Name of the multipart part carrying the uploaded file"
    )

    # Limits
    max_filesize: ByteSize = Field(
        default=ByteSize(DEFAULT_SIZE_LIMIT),
        description="Request body ceiling, e.g. '1GB' or 1000000000"
    )

    max_form_buffer: ByteSize = Field(
        default=ByteSize(DEFAULT_SIZE_LIMIT),
        description="Bytes of a multipart part buffered in memory before spilling to a temp file"
    )

    # Responses
    response_template: Optional[Path] = Field(
        default=None,
        description="Template rendered for successful uploads instead of the JSON envelope"
    )

    # Authorization
    user_token_cookie_key: str = Field(
        default=DEFAULT_TOKEN_COOKIE_KEY,
        description="Cookie holding the caller's credential token"
    )

    user_config: List[str] = Field(
        default_factory=list,
        description="User table lines, 'token:name:verb/verb'"
    )

    user_config_file: Optional[Path] = Field(
        default=None,
        description="File with one user table line per row ('#' starts a comment)"
    )

    auth_enabled: Optional[bool] = Field(
        default=None,
        description="Force authorization on/off; derived from the user table when unset"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address used by `upload2dir serve`")
    port: int = Field(default=8000, description="Bind port used by `upload2dir serve`")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("file_field_name")
    @classmethod
    def default_file_field_name(cls, v: str) -> str:
        """Fall back to the default part name when configured empty."""
        if not v:
            logger.warning(
                f"no file_field_name specified, using the default one '{DEFAULT_FILE_FIELD_NAME}'"
            )
            return DEFAULT_FILE_FIELD_NAME
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Invalid log_level: {v}")
        return level

    def user_lines(self) -> List[str]:
        """
        Collect the user table lines from `user_config` and `user_config_file`.

        Lines from the file come after the inline ones, so a token defined in
        both places takes the file's definition.

        :raises ConfigError: if the user file cannot be read.
        """
        lines = list(self.user_config)
        if self.user_config_file is not None:
            try:
                text = self.user_config_file.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigError(f"cannot read user_config_file {self.user_config_file}: {e}") from e
            for line in text.splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    lines.append(line)
        return lines

    @property
    def authorization_enabled(self) -> bool:
        """Explicit `auth_enabled`, otherwise enabled exactly when users are configured."""
        if self.auth_enabled is not None:
            return self.auth_enabled
        return bool(self.user_config or self.user_config_file)

    def describe(self) -> dict:
        """Configuration summary safe for logs and `show-config` (no tokens)."""
        return {
            "file_server_root": str(self.file_server_root),
            "dest_field": self.dest_field,
            "file_field_name": self.file_field_name,
            "max_filesize": int(self.max_filesize),
            "max_form_buffer": int(self.max_form_buffer),
            "response_template": str(self.response_template) if self.response_template else None,
            "user_token_cookie_key": self.user_token_cookie_key,
            "authorization": "enabled" if self.authorization_enabled else "disabled",
            "log_level": self.log_level,
        }

    model_config = SettingsConfigDict(
        env_prefix="UPLOAD2DIR_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )


def load_settings(**overrides) -> Settings:
    """
    Build settings, turning validation failures into a `ConfigError`.

    A malformed size string must stop the gateway from starting rather than
    leave it running with an unknown limit.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return load_settings()
