"""Read-only probes for external dependencies (Docker daemon, devcontainer CLI, editor).

Probes never raise for an absent or broken dependency; they return a
negative result so callers can branch without exception handling.
"""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path

from devspawn.logger import logger
from devspawn.runtime import ContainerRuntime, ProcessRunner
from devspawn.types import DockerAvailability, EditorInstallation

_VERSION_TIMEOUT = 15.0


async def check_docker_availability(runtime: ContainerRuntime) -> DockerAvailability:
    """Ping the daemon and fetch its version."""
    try:
        logger.debug("Pinging container daemon", runtime=runtime.name)
        await runtime.ping()
        version = await runtime.version()
    except Exception as exc:
        logger.debug("Docker availability check failed", err=str(exc))
        return DockerAvailability(
            is_available=False,
            is_running=False,
            message=f"Docker is not available: {exc}",
        )
    return DockerAvailability(
        is_available=True,
        is_running=True,
        version=version or None,
        message=f"Docker is running (version {version or 'unknown'})",
    )


def resolve_command(command: str) -> str:
    # shutil.which honours PATHEXT, so "devcontainer" finds devcontainer.cmd on Windows
    return shutil.which(command) or command


async def is_devcontainer_cli_installed(runner: ProcessRunner, cli: str = "devcontainer") -> bool:
    try:
        result = await runner.run([resolve_command(cli), "--version"], timeout=_VERSION_TIMEOUT)
    except OSError as exc:
        logger.debug("devcontainer CLI not found", cli=cli, err=str(exc))
        return False
    if not result.success or not result.stdout.strip():
        logger.debug("devcontainer CLI version check failed", cli=cli, exit_code=result.exit_code)
        return False
    logger.debug("devcontainer CLI found", version=result.stdout.strip())
    return True


def _well_known_editor_paths(command: str) -> list[Path]:
    insiders = "insiders" in command
    if sys.platform == "darwin":
        app = "Visual Studio Code - Insiders.app" if insiders else "Visual Studio Code.app"
        rel = Path(app) / "Contents" / "Resources" / "app" / "bin" / command
        return [Path("/Applications") / rel, Path.home() / "Applications" / rel]
    if sys.platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        if not local:
            return []
        folder = "Microsoft VS Code Insiders" if insiders else "Microsoft VS Code"
        return [Path(local) / "Programs" / folder / "bin" / f"{command}.cmd"]
    return [Path("/usr/share") / command / "bin" / command, Path("/snap/bin") / command]


def find_editor_executable(command: str) -> str | None:
    """Resolve an editor launcher on PATH, then in well-known install locations."""
    found = shutil.which(command)
    if found:
        return found
    for candidate in _well_known_editor_paths(command):
        if candidate.is_file():
            return str(candidate)
    return None


async def check_editor_installation(
    runner: ProcessRunner,
    commands: Sequence[str] = ("code", "code-insiders"),
) -> EditorInstallation:
    """Return the first working editor launcher among *commands*."""
    for command in commands:
        executable = find_editor_executable(command)
        if executable is None:
            continue
        try:
            result = await runner.run([executable, "--version"], timeout=_VERSION_TIMEOUT)
        except OSError as exc:
            logger.debug("Editor launcher failed to run", editor=executable, err=str(exc))
            continue
        if not result.success:
            continue
        lines = result.stdout.strip().splitlines()
        return EditorInstallation(
            is_installed=True,
            executable_path=executable,
            version=lines[0].strip() if lines else "unknown",
            edition="insiders" if "insiders" in command else "stable",
        )
    return EditorInstallation(is_installed=False)
