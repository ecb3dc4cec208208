"""Exception taxonomy for the spawn workflow.

Step errors are raised inside the orchestrator and converted into a
``SpawnResult`` at the step boundary; they never escape ``spawn_local``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devspawn.diagnostics import BootstrapExecutionResult


class DevspawnError(Exception):
    """Base class for all devspawn errors."""


class DockerCommandError(DevspawnError):
    """A container-runtime CLI call exited nonzero."""

    def __init__(self, argv: list[str], result: BootstrapExecutionResult) -> None:
        self.argv = argv
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip() or "(no output)"
        super().__init__(f"{' '.join(argv[:3])} failed with exit code {result.exit_code}: {detail}")

    @property
    def not_found(self) -> bool:
        return "no such" in self.result.stderr.lower()


class VolumeRemovalFailed(DevspawnError):
    pass


class SpawnStepError(DevspawnError):
    """A fatal failure of one spawn step."""


class DockerUnavailable(SpawnStepError):
    pass


class CliNotInstalled(SpawnStepError):
    pass


class BootstrapImageUnavailable(SpawnStepError):
    pass


class VolumeCreationFailed(SpawnStepError):
    pass


class BootstrapContainerFailed(SpawnStepError):
    pass


class FileCopyFailed(SpawnStepError):
    pass


class DevcontainerUpFailed(SpawnStepError):
    def __init__(self, message: str, result: BootstrapExecutionResult | None = None) -> None:
        self.result = result
        if result is not None:
            message = f"{message}\n{result.formatted_diagnostics()}"
        super().__init__(message)


class BootstrapCleanupFailed(SpawnStepError):
    pass


class EditorLaunchFailed(SpawnStepError):
    pass
