"""Existing environment discovery via container labels.

Repeated spawns for the same project path find the container the first
spawn created (``devcontainer.local_folder`` label) and reuse it instead of
creating a second volume.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from devspawn import labels
from devspawn.logger import logger
from devspawn.runtime import ContainerRuntime
from devspawn.types import ExistingEnvironmentInfo, ManagedContainer


def normalize_project_path(project_path: Path | str) -> str:
    return str(Path(project_path).expanduser().resolve())


def _labels_of(doc: dict[str, Any]) -> dict[str, str]:
    return dict((doc.get("Config") or {}).get("Labels") or {})


def _state_of(doc: dict[str, Any]) -> dict[str, Any]:
    state = doc.get("State")
    return state if isinstance(state, dict) else {}


class ExistingEnvironmentLocator:
    def __init__(self, runtime: ContainerRuntime) -> None:
        self._runtime = runtime

    async def find(self, project_path: Path | str) -> ExistingEnvironmentInfo | None:
        """Return the first container whose local-folder label equals *project_path*.

        Listing errors are logged and treated as "nothing found".
        """
        wanted = normalize_project_path(project_path)
        try:
            docs = await self._runtime.list_containers({labels.LOCAL_FOLDER: wanted})
        except Exception:
            logger.exception("Error finding existing container", project_path=wanted)
            return None

        for doc in docs:
            container_labels = _labels_of(doc)
            # the daemon-side filter is not trusted to be exact
            if container_labels.get(labels.LOCAL_FOLDER) != wanted:
                continue
            state = _state_of(doc)
            info = ExistingEnvironmentInfo(
                container_id=doc.get("Id", ""),
                volume_name=container_labels.get(labels.VOLUME, ""),
                is_running=bool(state.get("Running")),
                name=str(doc.get("Name", "")).lstrip("/"),
                created=str(doc.get("Created", "")),
                workspace_folder=container_labels.get(labels.WORKSPACE_FOLDER, ""),
            )
            logger.info(
                "Found existing container",
                container=info.container_id[:12],
                running=info.is_running,
            )
            return info

        logger.debug("No existing container found", project_path=wanted)
        return None

    async def list_managed(self) -> list[ManagedContainer]:
        """All managed dev containers, bootstrap helpers excluded."""
        docs = await self._runtime.list_containers({labels.MANAGED: labels.MANAGED_VALUE})
        containers: list[ManagedContainer] = []
        for doc in docs:
            container_labels = _labels_of(doc)
            if not labels.is_managed(container_labels) or labels.BOOTSTRAP in container_labels:
                continue
            containers.append(
                ManagedContainer(
                    container_id=doc.get("Id", ""),
                    name=str(doc.get("Name", "")).lstrip("/"),
                    project_name=container_labels.get(labels.PROJECT, "unknown"),
                    volume_name=container_labels.get(labels.VOLUME, ""),
                    status=str(_state_of(doc).get("Status", "unknown")),
                    workspace_folder=container_labels.get(labels.WORKSPACE_FOLDER, ""),
                    labels=container_labels,
                )
            )
        return containers
