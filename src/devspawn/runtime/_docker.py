"""Docker CLI implementation of :class:`ContainerRuntime`.

Every call shells out to ``docker`` through a :class:`ProcessRunner`, so the
event loop never blocks and tests can swap in a fake runner. Listing uses
``inspect`` (JSON array output) because ``ls --format '{{json .}}'`` flattens
labels into a comma-joined string.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from devspawn.diagnostics import BootstrapExecutionResult
from devspawn.errors import DockerCommandError
from devspawn.logger import logger
from devspawn.runtime._protocols import ProcessRunner


def _parse_inspect(stdout: str) -> list[dict[str, Any]]:
    """Parse ``docker ... inspect`` output, tolerating an empty stdout."""
    text = stdout.strip()
    if not text:
        return []
    try:
        docs = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Unparseable docker inspect output", output=text[:200])
        return []
    return [d for d in docs if isinstance(d, dict)] if isinstance(docs, list) else []


class DockerCli:
    name = "docker"

    def __init__(
        self,
        runner: ProcessRunner,
        *,
        cli: str = "docker",
        command_timeout: float = 30,
        pull_timeout: float = 600,
    ) -> None:
        self._runner = runner
        self.cli = cli
        self._timeout = command_timeout
        self._pull_timeout = pull_timeout

    async def _run(
        self,
        *args: str,
        check: bool = True,
        timeout: float | None = None,
    ) -> BootstrapExecutionResult:
        argv = [self.cli, *args]
        start = time.monotonic()
        result = await self._runner.run(argv, timeout=timeout or self._timeout)
        elapsed_ms = (time.monotonic() - start) * 1000
        if elapsed_ms > 2000:
            logger.warning(
                "Slow docker command", args=" ".join(args[:2]), elapsed_ms=round(elapsed_ms)
            )
        if check and not result.success:
            raise DockerCommandError(argv, result)
        return result

    # --- daemon -----------------------------------------------------------

    async def ping(self) -> None:
        await self._run("info", "--format", "{{json .ServerVersion}}")

    async def version(self) -> str:
        result = await self._run("version", "--format", "{{.Server.Version}}")
        return result.stdout.strip()

    # --- images -----------------------------------------------------------

    async def image_exists(self, image: str) -> bool:
        result = await self._run("image", "inspect", image, check=False)
        return result.exit_code == 0

    async def pull_image(self, image: str) -> None:
        await self._run("pull", image, timeout=self._pull_timeout)

    # --- volumes ----------------------------------------------------------

    async def volume_exists(self, name: str) -> bool:
        result = await self._run("volume", "inspect", name, check=False)
        return result.exit_code == 0

    async def create_volume(self, name: str, labels: Mapping[str, str]) -> str:
        label_args = [arg for k, v in labels.items() for arg in ("--label", f"{k}={v}")]
        result = await self._run("volume", "create", *label_args, name)
        return result.stdout.strip() or name

    async def list_volumes(self) -> list[dict[str, Any]]:
        listing = await self._run("volume", "ls", "-q")
        names = [n for n in listing.stdout.split() if n]
        if not names:
            return []
        # A volume removed between ls and inspect makes inspect exit nonzero
        # but the remaining documents are still printed.
        result = await self._run("volume", "inspect", *names, check=False)
        return _parse_inspect(result.stdout)

    async def remove_volume(self, name: str, *, force: bool = False) -> None:
        args = ["volume", "rm"]
        if force:
            args.append("-f")
        await self._run(*args, name)

    # --- containers -------------------------------------------------------

    async def list_containers(
        self, label_filters: Mapping[str, str] | None = None
    ) -> list[dict[str, Any]]:
        args = ["ps", "-a", "-q", "--no-trunc"]
        for key, value in (label_filters or {}).items():
            args += ["--filter", f"label={key}={value}"]
        listing = await self._run(*args)
        ids = [i for i in listing.stdout.split() if i]
        if not ids:
            return []
        result = await self._run("inspect", "--type", "container", *ids, check=False)
        return _parse_inspect(result.stdout)

    async def create_container(
        self,
        *,
        image: str,
        name: str,
        command: Sequence[str],
        labels: Mapping[str, str],
        volumes: Mapping[str, str],
    ) -> str:
        args = ["create", "--name", name]
        for key, value in labels.items():
            args += ["--label", f"{key}={value}"]
        for source, target in volumes.items():
            args += ["-v", f"{source}:{target}"]
        result = await self._run(*args, image, *command)
        return result.stdout.strip().splitlines()[-1]

    async def start_container(self, container_id: str) -> None:
        await self._run("start", container_id)

    async def remove_container(self, container_id: str, *, force: bool = True) -> None:
        args = ["rm"]
        if force:
            args.append("-f")
        await self._run(*args, container_id)

    async def exec_in_container(
        self, container_id: str, command: Sequence[str], *, timeout: float | None = None
    ) -> BootstrapExecutionResult:
        return await self._run("exec", container_id, *command, check=False, timeout=timeout)

    async def copy_into_container(self, container_id: str, source: Path, destination: str) -> None:
        # "<dir>/." copies the directory's contents rather than the directory itself
        src = f"{source}/." if source.is_dir() else str(source)
        await self._run("cp", src, f"{container_id}:{destination}", timeout=self._pull_timeout)
