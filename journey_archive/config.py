"""Central Configuration System for Journey Archive.

This module is the single source of truth for application configuration.
Every other module that needs limits, rules or endpoints imports from here.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- Nested sections for upload limits, review rules, reorder UX and backend
- Graceful degradation when the config file is missing or malformed

Example:
    >>> from journey_archive.config import get_config
    >>>
    >>> cfg = get_config()
    >>> cfg.upload.max_file_size_bytes
    8388608
    >>> cfg.upload.concurrency
    2

Config File Format (YAML):
    ```yaml
    upload:
      max_file_size_mb: 8
      max_batch_files: 10
      concurrency: 2
      generate_previews: true

    review:
      name_min_length: 2
      introduction_min_length: 50
      introduction_max_length: 1200

    reorder:
      error_banner_seconds: 3.0

    backend:
      base_url: https://archive.example.org/functions/v1
      profile_function: archive-profile
      notification_function: archive-notifications

    logging:
      level: INFO
      file: ~/.journey-archive/journey-archive.log

    debug: false
    ```

Environment variables use the JOURNEY_ARCHIVE_ prefix with ``__`` between
sections, e.g. ``JOURNEY_ARCHIVE_UPLOAD__CONCURRENCY=3``.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Exception raised for config file issues.

    Raised when:
    - Config file exists but cannot be read
    - Config file holds values of the wrong shape for a section
    """

    pass


# =============================================================================
# Constants
# =============================================================================

DEFAULT_ALLOWED_MIME_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
)

CONFIG_SEARCH_PATHS: tuple[Path, ...] = (
    Path("./journey-archive.yaml"),
    Path("./journey-archive.yml"),
    Path.home() / ".journey-archive" / "config.yaml",
    Path.home() / ".journey-archive" / "config.yml",
)


# =============================================================================
# Configuration Models
# =============================================================================


class UploadConfig(BaseModel):
    """Limits for the bounded-concurrency upload pipeline.

    Attributes:
        allowed_mime_types: Content types accepted at intake.
        max_file_size_mb: Per-file size cap in megabytes (MiB).
        max_batch_files: Files kept from one selection; the rest are dropped.
        concurrency: Number of worker loops pulling from the queue.
        size_estimate_multiplier: Decoded size per encoded character (base64).
        generate_previews: Build thumbnail previews for image files.
        preview_max_px: Longest edge of a preview thumbnail.
    """

    allowed_mime_types: tuple[str, ...] = Field(default=DEFAULT_ALLOWED_MIME_TYPES)
    max_file_size_mb: int = Field(default=8, ge=1)
    max_batch_files: int = Field(default=10, ge=1)
    concurrency: int = Field(default=2, ge=1)
    size_estimate_multiplier: float = Field(default=0.75, gt=0)
    generate_previews: bool = Field(default=True)
    preview_max_px: int = Field(default=160, ge=16)

    @field_validator("allowed_mime_types", mode="before")
    @classmethod
    def normalize_mime_types(cls, v: Any) -> tuple[str, ...]:
        """Lowercase and de-duplicate configured mime types."""
        if isinstance(v, str):
            v = [part for part in v.split(",")]
        seen: dict[str, None] = {}
        for mime in v:
            mime = str(mime).strip().lower()
            if mime:
                seen[mime] = None
        return tuple(seen)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class ReviewConfig(BaseModel):
    """Submission-readiness rules.

    Attributes:
        name_min_length: Minimum trimmed length of the profile name/title.
        introduction_min_length: Minimum trimmed introduction length.
        introduction_max_length: Maximum trimmed introduction length.
        clear_note_on_resubmit: Clear reviewer_note when resubmitting. The note
            is always kept in review_history.
    """

    name_min_length: int = Field(default=2, ge=1)
    introduction_min_length: int = Field(default=50, ge=0)
    introduction_max_length: int = Field(default=1200, ge=1)
    clear_note_on_resubmit: bool = Field(default=True)

    @model_validator(mode="after")
    def check_bounds(self) -> "ReviewConfig":
        if self.introduction_min_length > self.introduction_max_length:
            raise ValueError("introduction_min_length must not exceed introduction_max_length")
        return self


class ReorderConfig(BaseModel):
    """Reorder UX settings.

    Attributes:
        error_banner_seconds: How long the rollback banner stays visible.
    """

    error_banner_seconds: float = Field(default=3.0, ge=0)


class BackendConfig(BaseModel):
    """Where the archive backend lives.

    When base_url is unset the in-memory backend is used.

    Attributes:
        base_url: Root URL of the function endpoints.
        profile_function: Function receiving archive and review actions.
        notification_function: Function receiving notification requests.
        api_key: Bearer token sent with every request.
    """

    base_url: str | None = Field(default=None)
    profile_function: str = Field(default="archive-profile")
    notification_function: str = Field(default="archive-notifications")
    api_key: SecretStr | None = Field(default=None)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v


class LoggingConfig(BaseModel):
    """Logging settings.

    Attributes:
        level: Log level name.
        file: Optional log file.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Path | None = Field(default=None)

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str) and v:
            return Path(v).expanduser()
        return v


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Configuration priority (highest wins):
    1. Environment variables (JOURNEY_ARCHIVE_*)
    2. Config file (YAML)
    3. In-code defaults

    Attributes:
        upload: Upload pipeline limits.
        review: Submission-readiness rules.
        reorder: Reorder UX settings.
        backend: Backend endpoints.
        logging: Logging settings.
        debug: Enable debug mode.
    """

    upload: UploadConfig = Field(default_factory=UploadConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    reorder: ReorderConfig = Field(default_factory=ReorderConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")

    model_config = SettingsConfigDict(
        env_prefix="JOURNEY_ARCHIVE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def uses_memory_backend(self) -> bool:
        """True when no backend URL is configured."""
        return not self.backend.base_url

    def to_summary(self) -> dict[str, Any]:
        """Effective configuration with secrets masked."""
        data = self.model_dump(mode="json")
        if self.backend.api_key is not None:
            data["backend"]["api_key"] = "**********"
        return data


# =============================================================================
# Loading
# =============================================================================


def _find_config_file(path: Path | None) -> Path | None:
    if path is not None:
        if not path.exists():
            raise ConfigFileError(f"Config file not found: {path}")
        return path
    for candidate in CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return None


def _read_yaml(config_file: Path) -> dict[str, Any]:
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Cannot read config file {config_file}: {e}") from e

    if not content.strip():
        return {}

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        return {}

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        return {}
    return loaded


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only (not an error).
    If the YAML is malformed, logs a warning and uses defaults.

    Args:
        path: Optional path to config file. If None, searches default locations.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If an explicit path is missing or a section holds
            values of the wrong shape.

    Example:
        >>> config = load_config()
        >>> config = load_config(Path("./journey-archive.yaml"))
    """
    config_file = _find_config_file(path)
    file_data: dict[str, Any] = {}
    if config_file is not None:
        file_data = _read_yaml(config_file)
        logger.debug(f"Loaded config file {config_file}")

    # Environment wins over the file: build from the environment first, then
    # fill only the keys the environment left at their defaults.
    env_config = AppConfig()
    env_set = env_config.model_fields_set

    merged: dict[str, Any] = {}
    for key, value in file_data.items():
        if key not in AppConfig.model_fields:
            logger.warning(f"Ignoring unknown config section: {key}")
            continue
        if key in env_set and isinstance(value, dict):
            section = getattr(env_config, key).model_dump()
            env_section_set = getattr(env_config, key).model_fields_set
            merged[key] = {**value, **{k: section[k] for k in env_section_set}}
        elif key not in env_set:
            merged[key] = value

    try:
        return AppConfig(**merged)
    except ValidationError as e:
        raise ConfigFileError(f"Invalid configuration in {config_file}: {e}") from e


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton.

    Returns:
        Cached AppConfig instance.
    """
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache (used by tests)."""
    get_config.cache_clear()
