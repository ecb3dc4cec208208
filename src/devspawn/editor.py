"""Open the local editor attached to a running dev container."""

from __future__ import annotations

from devspawn.errors import EditorLaunchFailed
from devspawn.logger import logger
from devspawn.runtime import ProcessRunner
from devspawn.types import EditorInstallation


def container_uri(container_id: str, workspace_folder: str) -> str:
    """``vscode-remote://attached-container+<hex id><folder>``.

    The remote authority must be hex-encoded; the folder is appended as-is.
    """
    if workspace_folder and not workspace_folder.startswith("/"):
        workspace_folder = f"/{workspace_folder}"
    return f"vscode-remote://attached-container+{container_id.encode().hex()}{workspace_folder}"


class EditorLauncher:
    def __init__(self, runner: ProcessRunner, *, timeout: float = 30) -> None:
        self._runner = runner
        self._timeout = timeout

    async def launch(self, installation: EditorInstallation, uri: str) -> None:
        if not installation.is_installed or not installation.executable_path:
            raise EditorLaunchFailed("Editor is not installed")
        argv = [installation.executable_path, "--folder-uri", uri]
        try:
            result = await self._runner.run(argv, timeout=self._timeout)
        except OSError as exc:
            raise EditorLaunchFailed(f"Failed to launch editor: {exc}") from exc
        if not result.success:
            raise EditorLaunchFailed(
                f"Editor exited with code {result.exit_code}: {result.combined_output}"
            )
        logger.info("Editor launched", uri=uri)
