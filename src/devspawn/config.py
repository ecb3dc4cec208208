"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml in the working directory. Environment variables
override it using ``__`` as the nested delimiter (e.g. ``BOOTSTRAP__IMAGE``).

Priority (highest wins): init args > env vars > .env > config.toml

Usage::

    from devspawn.config import get_settings

    s = get_settings()
    print(s.bootstrap.image)
    print(s.devcontainer.cli)
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models. Rejects unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class DockerConfig(_StrictModel):
    cli: str = "docker"
    command_timeout: float = 30  # seconds, per daemon call
    pull_timeout: float = 600  # seconds, image pulls can be slow on first run

    @field_validator("command_timeout", "pull_timeout")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class BootstrapConfig(_StrictModel):
    """Ephemeral copy-helper container used to populate the workspace volume."""

    image: str = "alpine:3.20"
    container_prefix: str = "devspawn-bootstrap"
    workspace_root: str = "/workspaces"
    # chown target for copied sources (docker cp writes files as root); None = leave as-is
    workspace_owner: str | None = "1000:1000"

    @field_validator("workspace_root")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        stripped = v.rstrip("/")
        if not stripped.startswith("/"):
            raise ValueError("workspace_root must be an absolute container path")
        return stripped


class DevcontainerConfig(_StrictModel):
    cli: str = "devcontainer"
    up_timeout: float = 600  # 10 minutes, image builds and feature installs
    install_hint: str = "npm install -g @devcontainers/cli"


class EditorConfig(_StrictModel):
    commands: list[str] = ["code", "code-insiders"]  # probed in order
    launch_timeout: float = 30


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

    docker: DockerConfig = DockerConfig()
    bootstrap: BootstrapConfig = BootstrapConfig()
    devcontainer: DevcontainerConfig = DevcontainerConfig()
    editor: EditorConfig = EditorConfig()
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


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
