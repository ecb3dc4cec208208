"""Bootstrap spawning of devcontainers into managed volumes."""

from devspawn.spawner._cleanup import cleanup_failed_spawn
from devspawn.spawner._orchestrator import BootstrapOrchestrator, OnProgress, parse_up_output
from devspawn.spawner._staging import load_jsonc, stage_devcontainer_config

__all__ = [
    "BootstrapOrchestrator",
    "OnProgress",
    "cleanup_failed_spawn",
    "load_jsonc",
    "parse_up_output",
    "stage_devcontainer_config",
]
