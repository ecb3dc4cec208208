"""Container runtime and process capabilities."""

from __future__ import annotations

from devspawn.runtime._docker import DockerCli
from devspawn.runtime._process import SubprocessRunner
from devspawn.runtime._protocols import ContainerRuntime, ProcessRunner

__all__ = [
    "ContainerRuntime",
    "DockerCli",
    "ProcessRunner",
    "SubprocessRunner",
    "default_runtime",
]


def default_runtime(runner: ProcessRunner | None = None) -> DockerCli:
    """Build a :class:`DockerCli` from the current settings."""
    from devspawn.config import get_settings

    s = get_settings()
    return DockerCli(
        runner or SubprocessRunner(),
        cli=s.docker.cli,
        command_timeout=s.docker.command_timeout,
        pull_timeout=s.docker.pull_timeout,
    )
