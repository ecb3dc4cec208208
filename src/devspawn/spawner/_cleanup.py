"""Best-effort teardown of resources created by a failed spawn.

Each action runs independently; a failing action is logged and reported as
a cleanup warning but never stops the remaining actions.
"""

from __future__ import annotations

import shutil
from collections.abc import Awaitable, Callable
from pathlib import Path

from devspawn import labels
from devspawn.errors import DockerCommandError
from devspawn.logger import logger
from devspawn.runtime import ContainerRuntime
from devspawn.volumes import ManagedVolumeRegistry


async def force_remove_container(runtime: ContainerRuntime, container_id: str) -> None:
    """Force-remove a container; absent counts as removed."""
    try:
        await runtime.remove_container(container_id, force=True)
    except DockerCommandError as exc:
        if not exc.not_found:
            raise
        logger.debug("Container already absent", container=container_id[:12])
        return
    logger.info("Removed container", container=container_id[:12])


async def remove_volume_containers(
    runtime: ContainerRuntime, volume_name: str, *, skip: str | None = None
) -> None:
    """Force-remove managed containers still mounting *volume_name*.

    A dev container left behind by a half-finished ``devcontainer up`` keeps
    the volume in use, which makes the volume removal fail.
    """
    docs = await runtime.list_containers({labels.VOLUME: volume_name})
    for doc in docs:
        container_id = doc.get("Id", "")
        container_labels = (doc.get("Config") or {}).get("Labels") or {}
        if not container_id or container_id == skip or not labels.is_managed(container_labels):
            continue
        await force_remove_container(runtime, container_id)


def remove_staging_path(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
        logger.debug("Deleted staging directory", path=str(path))


async def cleanup_failed_spawn(
    runtime: ContainerRuntime,
    volumes: ManagedVolumeRegistry,
    volume_name: str | None,
    bootstrap_path: Path | None = None,
    bootstrap_container_id: str | None = None,
) -> list[str]:
    """Remove the bootstrap container, the volume and its containers, and the staging path.

    Returns one warning per action that failed.
    """
    logger.info(
        "Cleaning up failed spawn",
        volume=volume_name or "none",
        bootstrap_path=str(bootstrap_path) if bootstrap_path else "none",
        container=bootstrap_container_id[:12] if bootstrap_container_id else "none",
    )

    actions: list[tuple[str, Callable[[], Awaitable[None]]]] = []
    if bootstrap_container_id:
        cid = bootstrap_container_id
        actions.append(
            (
                f"remove bootstrap container {cid[:12]}",
                lambda: force_remove_container(runtime, cid),
            )
        )
    if volume_name:
        name = volume_name
        actions.append(
            (
                f"remove containers using volume {name}",
                lambda: remove_volume_containers(runtime, name, skip=bootstrap_container_id),
            )
        )
        actions.append((f"remove volume {name}", lambda: volumes.remove(name, force=True)))

    warnings: list[str] = []
    for label, action in actions:
        try:
            await action()
        except Exception as exc:
            logger.warning("Cleanup action failed", action=label, err=str(exc))
            warnings.append(f"Failed to {label}: {exc}")

    if bootstrap_path is not None:
        try:
            remove_staging_path(bootstrap_path)
        except OSError as exc:
            logger.warning(
                "Failed to delete staging directory", path=str(bootstrap_path), err=str(exc)
            )
            warnings.append(f"Failed to delete {bootstrap_path}: {exc}")

    return warnings
