"""Capability interfaces the spawn workflow depends on.

The orchestrator never talks to a concrete client. It gets a
:class:`ContainerRuntime` for volume/container operations and a
:class:`ProcessRunner` for "run an external program and capture output".
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from devspawn.diagnostics import BootstrapExecutionResult


@runtime_checkable
class ProcessRunner(Protocol):
    async def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float,
        cwd: Path | str | None = None,
    ) -> BootstrapExecutionResult: ...


@runtime_checkable
class ContainerRuntime(Protocol):
    """Volume and container operations against the container daemon.

    Listing methods return the daemon's inspect documents as plain dicts
    (``Name``/``Labels`` for volumes, ``Id``/``Name``/``State``/``Config``
    for containers). Mutating methods raise on failure.
    """

    name: str

    async def ping(self) -> None: ...
    async def version(self) -> str: ...

    async def image_exists(self, image: str) -> bool: ...
    async def pull_image(self, image: str) -> None: ...

    async def volume_exists(self, name: str) -> bool: ...
    async def create_volume(self, name: str, labels: Mapping[str, str]) -> str: ...
    async def list_volumes(self) -> list[dict[str, Any]]: ...
    async def remove_volume(self, name: str, *, force: bool = False) -> None: ...

    async def list_containers(
        self, label_filters: Mapping[str, str] | None = None
    ) -> list[dict[str, Any]]: ...
    async def create_container(
        self,
        *,
        image: str,
        name: str,
        command: Sequence[str],
        labels: Mapping[str, str],
        volumes: Mapping[str, str],
    ) -> str: ...
    async def start_container(self, container_id: str) -> None: ...
    async def remove_container(self, container_id: str, *, force: bool = True) -> None: ...
    async def exec_in_container(
        self, container_id: str, command: Sequence[str], *, timeout: float | None = None
    ) -> BootstrapExecutionResult: ...
    async def copy_into_container(
        self, container_id: str, source: Path, destination: str
    ) -> None: ...
