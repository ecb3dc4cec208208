"""Local staging of the devcontainer configuration.

The project's ``.devcontainer`` directory is copied into a temporary
directory and its ``devcontainer.json`` is rewritten so the workspace is
mounted from the managed volume instead of bind-mounted from the host.
The staging directory is what ``devcontainer up`` is pointed at and what
failure cleanup deletes.
"""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any

import json5

from devspawn.errors import FileCopyFailed
from devspawn.logger import logger
from devspawn.naming import sanitize_project_name

CONFIG_DIR = ".devcontainer"
CONFIG_FILE = "devcontainer.json"


def project_folder_name(project_name: str) -> str:
    return sanitize_project_name(project_name) or "workspace"


def workspace_folder(workspace_root: str, project_name: str) -> str:
    return f"{workspace_root}/{project_folder_name(project_name)}"


def load_jsonc(text: str) -> Any:
    """Parse devcontainer.json, which allows comments and trailing commas."""
    return json5.loads(text)


def _rewrite_config(
    config: dict[str, Any],
    *,
    source_config_dir: Path,
    volume_name: str,
    folder: str,
) -> dict[str, Any]:
    config = dict(config)
    config["workspaceMount"] = f"source={volume_name},target={folder},type=volume"
    config["workspaceFolder"] = folder

    # build.context is relative to the original config file, which no longer
    # sits next to the staged copy
    build = config.get("build")
    if isinstance(build, dict) and isinstance(build.get("context"), str):
        context = Path(build["context"])
        if not context.is_absolute():
            config["build"] = {**build, "context": str((source_config_dir / context).resolve())}
    return config


def stage_devcontainer_config(
    devcontainer_path: Path,
    *,
    project_name: str,
    volume_name: str,
    folder: str,
) -> Path:
    """Copy and rewrite the devcontainer config into a fresh temp directory.

    Returns the staging directory (containing ``.devcontainer/``). Removes
    it again before raising :class:`FileCopyFailed`.
    """
    if not devcontainer_path.is_dir():
        raise FileCopyFailed(f"Devcontainer directory not found: {devcontainer_path}")

    staging = Path(
        tempfile.mkdtemp(prefix=f"devspawn-bootstrap-{project_folder_name(project_name)}-")
    )
    try:
        target = staging / CONFIG_DIR
        shutil.copytree(devcontainer_path, target)
        config_file = target / CONFIG_FILE
        if not config_file.is_file():
            raise FileCopyFailed(f"{CONFIG_FILE} not found in {devcontainer_path}")
        try:
            config = load_jsonc(config_file.read_text())
        except ValueError as exc:
            raise FileCopyFailed(f"Invalid {CONFIG_FILE}: {exc}") from exc
        if not isinstance(config, dict):
            raise FileCopyFailed(f"{CONFIG_FILE} must contain a JSON object")

        rewritten = _rewrite_config(
            config,
            source_config_dir=devcontainer_path,
            volume_name=volume_name,
            folder=folder,
        )
        config_file.write_text(json.dumps(rewritten, indent=2) + "\n")
    except FileCopyFailed:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise FileCopyFailed(f"Failed to stage devcontainer config: {exc}") from exc

    logger.debug("Staged devcontainer config", staging=str(staging), volume=volume_name)
    return staging
