"""Label keys stamped on volumes and containers devspawn creates."""

from __future__ import annotations

from datetime import UTC, datetime

MANAGED = "devspawn.managed"
MANAGED_VALUE = "true"
BOOTSTRAP = "devspawn.bootstrap"
PROJECT = "devcontainer.project"
CREATED = "devcontainer.created"
# Set by the devcontainer CLI itself; we pass it explicitly via --id-label
LOCAL_FOLDER = "devcontainer.local_folder"
WORKSPACE_FOLDER = "devcontainer.workspace_folder"
# Same key VS Code uses for "clone repository in container volume"
VOLUME = "vsch.local.repository.volume"


def is_managed(labels: dict[str, str] | None) -> bool:
    return (labels or {}).get(MANAGED) == MANAGED_VALUE


def volume_labels(
    project_name: str, volume_name: str, *, now: datetime | None = None
) -> dict[str, str]:
    created = (now or datetime.now(UTC)).isoformat()
    return {
        MANAGED: MANAGED_VALUE,
        PROJECT: project_name,
        CREATED: created,
        VOLUME: volume_name,
    }


def bootstrap_labels(project_name: str, volume_name: str) -> dict[str, str]:
    return {
        MANAGED: MANAGED_VALUE,
        BOOTSTRAP: "true",
        PROJECT: project_name,
        VOLUME: volume_name,
    }


def devcontainer_id_labels(
    project_name: str,
    project_path: str,
    volume_name: str,
    workspace_folder: str,
) -> dict[str, str]:
    """Labels the devcontainer CLI uses to identify (and later find) the dev container."""
    return {
        LOCAL_FOLDER: project_path,
        MANAGED: MANAGED_VALUE,
        PROJECT: project_name,
        VOLUME: volume_name,
        WORKSPACE_FOLDER: workspace_folder,
    }
