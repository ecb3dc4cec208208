"""Managed volume registry: create, list and remove devspawn-owned volumes.

A volume is "managed" when it carries the ``devspawn.managed=true`` label.
Name patterns are never trusted: an unlabelled ``devcontainer-*`` volume
belongs to someone else and is left alone.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from devspawn import labels
from devspawn.errors import DockerCommandError, VolumeCreationFailed, VolumeRemovalFailed
from devspawn.logger import logger
from devspawn.runtime import ContainerRuntime
from devspawn.types import ManagedVolume


def _parse_created(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _to_managed_volume(doc: dict[str, Any]) -> ManagedVolume:
    volume_labels = dict(doc.get("Labels") or {})
    return ManagedVolume(
        name=doc.get("Name", ""),
        project_name=volume_labels.get(labels.PROJECT, "unknown"),
        created=_parse_created(volume_labels.get(labels.CREATED)),
        labels=volume_labels,
    )


class ManagedVolumeRegistry:
    def __init__(self, runtime: ContainerRuntime) -> None:
        self._runtime = runtime

    async def ensure_absent(self, name: str) -> None:
        """Raise VolumeCreationFailed if *name* is already taken on the daemon."""
        try:
            exists = await self._runtime.volume_exists(name)
        except Exception as exc:
            raise VolumeCreationFailed(f"Failed to inspect volume {name}: {exc}") from exc
        if exists:
            raise VolumeCreationFailed(f"Volume {name} already exists")

    async def create(
        self, name: str, project_name: str, *, check_absent: bool = True
    ) -> ManagedVolume:
        """Create a labelled volume. Never adopts an existing volume of the same name.

        Pass ``check_absent=False`` when :meth:`ensure_absent` already ran.
        """
        if check_absent:
            await self.ensure_absent(name)
        try:
            volume_labels = labels.volume_labels(project_name, name)
            created_name = await self._runtime.create_volume(name, volume_labels)
        except Exception as exc:
            raise VolumeCreationFailed(f"Failed to create volume {name}: {exc}") from exc

        logger.info("Created volume", volume=created_name, project=project_name)
        return ManagedVolume(
            name=created_name,
            project_name=project_name,
            created=_parse_created(volume_labels[labels.CREATED]),
            labels=volume_labels,
        )

    async def list_managed(self) -> list[ManagedVolume]:
        docs = await self._runtime.list_volumes()
        managed = [_to_managed_volume(d) for d in docs if labels.is_managed(d.get("Labels"))]
        logger.debug("Listed managed volumes", total=len(docs), managed=len(managed))
        return managed

    async def remove(self, name: str, *, force: bool = False) -> None:
        """Remove a volume; a volume that is already gone counts as removed."""
        try:
            await self._runtime.remove_volume(name, force=force)
        except DockerCommandError as exc:
            if exc.not_found:
                logger.debug("Volume already absent", volume=name)
                return
            raise VolumeRemovalFailed(f"Failed to remove volume {name}: {exc}") from exc
        logger.info("Removed volume", volume=name)
