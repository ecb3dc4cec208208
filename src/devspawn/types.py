"""Data models for devspawn."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, Literal


class SpawnStep(IntEnum):
    """Ordered spawn pipeline steps. Doubles as progress cursor and failure marker."""

    DOCKER_CHECK = 1
    DEVCONTAINER_CLI_CHECK = 2
    BOOTSTRAP_IMAGE_CHECK = 3
    VOLUME_CREATION = 4
    BOOTSTRAP_CONTAINER_START = 5
    FILE_COPY_TO_BOOTSTRAP = 6
    DEVCONTAINER_UP = 7
    BOOTSTRAP_CLEANUP = 8
    VSCODE_LAUNCH = 9
    COMPLETED = 10


@dataclass(frozen=True)
class SpawnOptions:
    project_name: str
    project_path: Path  # absolute
    devcontainer_path: Path  # absolute path to the .devcontainer directory
    copy_source_files: bool = True
    launch_editor: bool = True
    reuse_existing: bool = True
    volume_name: str | None = None  # None = generated from project_name


@dataclass(frozen=True)
class SpawnResult:
    success: bool
    completed_step: SpawnStep
    message: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cleanup_warnings: list[str] = field(default_factory=list)
    container_id: str | None = None
    volume_name: str | None = None
    editor_uri: str | None = None
    bootstrap_container_id: str | None = None
    devcontainer_cli_output: str | None = None
    devcontainer_cli_stderr: str | None = None
    duration: float = 0.0  # seconds


@dataclass(frozen=True)
class DockerAvailability:
    is_available: bool
    is_running: bool
    message: str
    version: str | None = None


@dataclass(frozen=True)
class ManagedVolume:
    name: str
    project_name: str
    created: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExistingEnvironmentInfo:
    container_id: str
    volume_name: str
    is_running: bool
    name: str = ""
    created: str = ""
    workspace_folder: str = ""


@dataclass(frozen=True)
class ManagedContainer:
    container_id: str
    name: str
    project_name: str
    volume_name: str
    status: str
    workspace_folder: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BootstrapContainer:
    container_id: str
    name: str
    volume_name: str
    project_name: str


@dataclass(frozen=True)
class DevcontainerUpResult:
    """The JSON summary line printed by ``devcontainer up``."""

    outcome: str
    container_id: str = ""
    remote_user: str = ""
    remote_workspace_folder: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DevcontainerUpResult:
        return cls(
            outcome=str(raw.get("outcome", "")),
            container_id=str(raw.get("containerId", "")),
            remote_user=str(raw.get("remoteUser", "")),
            remote_workspace_folder=str(raw.get("remoteWorkspaceFolder", "")),
            message=str(raw.get("message", "")),
        )


@dataclass(frozen=True)
class EditorInstallation:
    is_installed: bool
    executable_path: str | None = None
    version: str | None = None
    edition: Literal["stable", "insiders"] | None = None
