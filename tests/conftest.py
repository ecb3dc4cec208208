"""Shared test fixtures for devspawn."""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from devspawn.diagnostics import BootstrapExecutionResult
from devspawn.errors import DockerCommandError

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object with pure defaults for testing.

    Usage::

        s = make_settings()
        s = make_settings(bootstrap=BootstrapConfig(workspace_owner=None))
    """
    from devspawn.config import (
        BootstrapConfig,
        DevcontainerConfig,
        DockerConfig,
        EditorConfig,
        LoggingConfig,
        Settings,
    )

    defaults = {
        "docker": DockerConfig(),
        "bootstrap": BootstrapConfig(),
        "devcontainer": DevcontainerConfig(),
        "editor": EditorConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def ok(stdout: str = "", stderr: str = "", duration: float = 0.1) -> BootstrapExecutionResult:
    return BootstrapExecutionResult(exit_code=0, stdout=stdout, stderr=stderr, duration=duration)


def failed(
    exit_code: int = 1, stdout: str = "", stderr: str = "", duration: float = 0.1
) -> BootstrapExecutionResult:
    return BootstrapExecutionResult(
        exit_code=exit_code, stdout=stdout, stderr=stderr, duration=duration
    )


def command_error(argv: list[str], stderr: str) -> DockerCommandError:
    return DockerCommandError(argv, failed(stderr=stderr))


# ---------------------------------------------------------------------------
# In-memory fakes of the capability interfaces
# ---------------------------------------------------------------------------

Handler = Callable[[list[str]], "BootstrapExecutionResult | BaseException"]


class FakeRunner:
    """ProcessRunner double. *handler* maps argv to a result or an exception to raise."""

    def __init__(self, handler: Handler | None = None) -> None:
        self.handler: Handler = handler or (lambda argv: ok())
        self.calls: list[list[str]] = []
        self.cwds: list[Path | str | None] = []
        self.timeouts: list[float] = []

    async def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float,
        cwd: Path | str | None = None,
    ) -> BootstrapExecutionResult:
        argv = list(argv)
        self.calls.append(argv)
        self.cwds.append(cwd)
        self.timeouts.append(timeout)
        outcome = self.handler(argv)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeRuntime:
    """ContainerRuntime double holding volumes, containers and images in dicts.

    ``fail[method] = exc`` makes the named method raise *exc*. Volumes mounted
    by an existing container cannot be removed, like on a real daemon.
    """

    name = "fake"

    def __init__(self) -> None:
        self.images: set[str] = {"alpine:3.20"}
        self.volumes: dict[str, dict[str, str]] = {}
        self.containers: dict[str, dict[str, Any]] = {}
        self.mounts: dict[str, set[str]] = {}
        self.fail: dict[str, BaseException] = {}
        self.calls: list[str] = []
        self.pulled: list[str] = []
        self.started: list[str] = []
        self.execs: list[tuple[str, list[str]]] = []
        self.exec_results: dict[str, BootstrapExecutionResult] = {}
        self.copies: list[tuple[str, Path, str, dict[str, str]]] = []
        self._ids = itertools.count(1)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail:
            raise self.fail[method]

    def add_container(
        self,
        labels: Mapping[str, str],
        *,
        name: str = "dev",
        running: bool = True,
        volumes: Sequence[str] = (),
    ) -> str:
        container_id = f"{next(self._ids):064x}"
        self.containers[container_id] = {
            "Id": container_id,
            "Name": f"/{name}",
            "Created": "2026-01-01T00:00:00Z",
            "State": {"Running": running, "Status": "running" if running else "exited"},
            "Config": {"Labels": dict(labels)},
        }
        self.mounts[container_id] = set(volumes)
        return container_id

    # --- daemon ---

    async def ping(self) -> None:
        self._enter("ping")

    async def version(self) -> str:
        self._enter("version")
        return "27.0.3"

    # --- images ---

    async def image_exists(self, image: str) -> bool:
        self._enter("image_exists")
        return image in self.images

    async def pull_image(self, image: str) -> None:
        self._enter("pull_image")
        self.pulled.append(image)
        self.images.add(image)

    # --- volumes ---

    async def volume_exists(self, name: str) -> bool:
        self._enter("volume_exists")
        return name in self.volumes

    async def create_volume(self, name: str, labels: Mapping[str, str]) -> str:
        self._enter("create_volume")
        self.volumes[name] = dict(labels)
        return name

    async def list_volumes(self) -> list[dict[str, Any]]:
        self._enter("list_volumes")
        return [{"Name": n, "Labels": dict(lbl)} for n, lbl in self.volumes.items()]

    async def remove_volume(self, name: str, *, force: bool = False) -> None:
        self._enter("remove_volume")
        argv = ["docker", "volume", "rm", name]
        if name not in self.volumes:
            raise command_error(argv, f"Error response from daemon: get {name}: no such volume")
        if any(name in vols for vols in self.mounts.values()):
            raise command_error(argv, f"remove {name}: volume is in use")
        del self.volumes[name]

    # --- containers ---

    async def list_containers(
        self, label_filters: Mapping[str, str] | None = None
    ) -> list[dict[str, Any]]:
        self._enter("list_containers")
        wanted = dict(label_filters or {})
        return [
            copy.deepcopy(doc)
            for doc in self.containers.values()
            if all(doc["Config"]["Labels"].get(k) == v for k, v in wanted.items())
        ]

    async def create_container(
        self,
        *,
        image: str,
        name: str,
        command: Sequence[str],
        labels: Mapping[str, str],
        volumes: Mapping[str, str],
    ) -> str:
        self._enter("create_container")
        return self.add_container(labels, name=name, running=False, volumes=list(volumes))

    async def start_container(self, container_id: str) -> None:
        self._enter("start_container")
        self.started.append(container_id)
        self.containers[container_id]["State"] = {"Running": True, "Status": "running"}

    async def remove_container(self, container_id: str, *, force: bool = True) -> None:
        self._enter("remove_container")
        if container_id not in self.containers:
            raise command_error(
                ["docker", "rm", "-f", container_id],
                f"Error response from daemon: No such container: {container_id}",
            )
        del self.containers[container_id]
        self.mounts.pop(container_id, None)

    async def exec_in_container(
        self, container_id: str, command: Sequence[str], *, timeout: float | None = None
    ) -> BootstrapExecutionResult:
        self._enter("exec_in_container")
        self.execs.append((container_id, list(command)))
        return self.exec_results.get(command[0], ok())

    async def copy_into_container(self, container_id: str, source: Path, destination: str) -> None:
        self._enter("copy_into_container")
        # snapshot now; the staging directory is deleted later in the run
        files: dict[str, str] = {}
        if source.is_dir():
            for path in sorted(source.rglob("*")):
                if path.is_file():
                    files[str(path.relative_to(source))] = path.read_text()
        self.copies.append((container_id, source, destination, files))


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton.

    Uses ``make_settings()`` to build from pure defaults: no config.toml,
    no .env, no file I/O. Tests are fully isolated from a developer's config.
    """
    monkeypatch.setattr("devspawn.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project directory with a JSONC devcontainer config and one source file."""
    root = tmp_path / "My Project"
    (root / ".devcontainer").mkdir(parents=True)
    (root / ".devcontainer" / "devcontainer.json").write_text(
        """{
  // dev image
  "name": "demo",
  "build": {"dockerfile": "Dockerfile", "context": ".."},
}
"""
    )
    (root / "main.py").write_text("print('hi')\n")
    return root
