"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml. Environment variables override it using ``__``
as the nested delimiter (e.g. ``SKILLS__OPERATION_TIMEOUT=60``).

Priority (highest wins): init args > env vars > .env > config.toml

Usage::

    from skillsmith.config import get_settings

    s = get_settings()
    print(s.skills.skills_dir)
    print(s.archived_dir)
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from skillsmith.logger import set_level

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models; reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class SkillsConfig(_StrictModel):
    skills_dir: str = "skills"  # relative to the working directory or absolute
    archived_dir: str | None = None  # None → <skills_dir>/.archived
    operation_timeout: float = 30.0  # seconds a caller waits for a queued operation
    use_sandbox: bool = True  # False → edits bypass the boundary-enforced accessor
    delete_timeout_ms: int = 5000  # sandbox delete command timeout

    @field_validator("operation_timeout")
    @classmethod
    def validate_operation_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("operation_timeout must be positive")
        return v

    @field_validator("delete_timeout_ms")
    @classmethod
    def validate_delete_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("delete_timeout_ms must be positive")
        return v


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    skills: SkillsConfig = SkillsConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Computed properties ---

    @cached_property
    def skills_dir(self) -> Path:
        return Path(self.skills.skills_dir).expanduser().resolve()

    @cached_property
    def archived_dir(self) -> Path:
        if self.skills.archived_dir:
            return Path(self.skills.archived_dir).expanduser().resolve()
        return self.skills_dir / ".archived"


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton. The first load applies ``[logging] level``."""
    global _settings
    if _settings is None:
        _settings = Settings()
        set_level(_settings.logging.level)
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
