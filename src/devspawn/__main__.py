"""Entry point for `python -m devspawn` / `devspawn`.

Subcommands:
    devspawn spawn <path>       Spawn a volume-backed devcontainer for a project
    devspawn volumes            List managed volumes
    devspawn containers         List managed dev containers
    devspawn cleanup <volume>   Remove a managed volume and its containers
    devspawn check              Probe Docker, the devcontainer CLI and the editor
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from devspawn.spawner._staging import CONFIG_DIR


def _orchestrator():
    from devspawn.config import get_settings
    from devspawn.logger import set_level
    from devspawn.runtime import SubprocessRunner, default_runtime
    from devspawn.spawner import BootstrapOrchestrator

    s = get_settings()
    set_level(s.logging.level)
    runner = SubprocessRunner()
    return BootstrapOrchestrator(default_runtime(runner), runner, settings=s)


def _print_progress(step, message: str) -> None:
    print(f"[{step.value}/{len(step.__class__)}] {message}")


async def _spawn(args: argparse.Namespace) -> int:
    from devspawn.types import SpawnOptions

    project_path = Path(args.project_path).expanduser().resolve()
    if not project_path.is_dir():
        print(f"Error: {project_path} is not a directory", file=sys.stderr)
        return 1
    devcontainer_path = (
        Path(args.devcontainer_path).expanduser().resolve()
        if args.devcontainer_path
        else project_path / CONFIG_DIR
    )
    options = SpawnOptions(
        project_name=args.name or project_path.name,
        project_path=project_path,
        devcontainer_path=devcontainer_path,
        copy_source_files=not args.no_copy,
        launch_editor=not args.no_editor,
        reuse_existing=not args.no_reuse,
        volume_name=args.volume_name,
    )

    result = await _orchestrator().spawn_local(options, on_progress=_print_progress)

    print(result.message)
    if result.container_id:
        print(f"  container: {result.container_id[:12]}")
    if result.volume_name:
        print(f"  volume:    {result.volume_name}")
    if result.editor_uri:
        print(f"  uri:       {result.editor_uri}")
    for warning in [*result.warnings, *result.cleanup_warnings]:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    return 0 if result.success else 1


async def _volumes() -> int:
    volumes = await _orchestrator().volumes.list_managed()
    if not volumes:
        print("No managed volumes")
        return 0
    for volume in volumes:
        created = volume.created.isoformat(timespec="seconds") if volume.created else "-"
        print(f"{volume.name}\t{volume.project_name}\t{created}")
    return 0


async def _containers() -> int:
    containers = await _orchestrator().locator.list_managed()
    if not containers:
        print("No managed containers")
        return 0
    for c in containers:
        print(f"{c.container_id[:12]}\t{c.name}\t{c.status}\t{c.project_name}\t{c.volume_name}")
    return 0


async def _cleanup(volume_name: str) -> int:
    orchestrator = _orchestrator()
    managed = {v.name for v in await orchestrator.volumes.list_managed()}
    if volume_name not in managed:
        print(f"Error: {volume_name} is not a managed volume", file=sys.stderr)
        return 1
    warnings = await orchestrator.cleanup_failed_spawn(volume_name)
    for warning in warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if warnings:
        return 1
    print(f"Removed {volume_name}")
    return 0


async def _check() -> int:
    from devspawn.config import get_settings
    from devspawn.probes import check_editor_installation, is_devcontainer_cli_installed
    from devspawn.runtime import SubprocessRunner

    docker = await _orchestrator().check_docker_availability()
    s = get_settings()
    runner = SubprocessRunner()
    cli_ok = await is_devcontainer_cli_installed(runner, s.devcontainer.cli)
    editor = await check_editor_installation(runner, s.editor.commands)

    print(f"docker:       {docker.message}")
    if cli_ok:
        print(f"devcontainer: installed ({s.devcontainer.cli})")
    else:
        print(f"devcontainer: not installed, run: {s.devcontainer.install_hint}")
    if editor.is_installed:
        print(f"editor:       {editor.executable_path} {editor.version} ({editor.edition})")
    else:
        print("editor:       not installed")
    return 0 if docker.is_available and cli_ok else 1


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="devspawn",
        description="Spawn devcontainers backed by managed Docker volumes",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    spawn = sub.add_parser("spawn", help="Spawn a devcontainer for a project")
    spawn.add_argument("project_path", help="Project directory")
    spawn.add_argument("--name", help="Project name (default: directory name)")
    spawn.add_argument(
        "--devcontainer-path",
        help=f"Devcontainer config directory (default: <project>/{CONFIG_DIR})",
    )
    spawn.add_argument("--no-copy", action="store_true", help="Do not copy project sources")
    spawn.add_argument("--no-editor", action="store_true", help="Do not launch the editor")
    spawn.add_argument("--no-reuse", action="store_true", help="Always create a new environment")
    spawn.add_argument("--volume-name", help="Use this volume name instead of a generated one")

    sub.add_parser("volumes", help="List managed volumes")
    sub.add_parser("containers", help="List managed dev containers")
    cleanup = sub.add_parser("cleanup", help="Remove a managed volume and its containers")
    cleanup.add_argument("volume", help="Volume name")
    sub.add_parser("check", help="Check Docker, devcontainer CLI and editor")

    args = parser.parse_args()

    match args.command:
        case "spawn":
            code = asyncio.run(_spawn(args))
        case "volumes":
            code = asyncio.run(_volumes())
        case "containers":
            code = asyncio.run(_containers())
        case "cleanup":
            code = asyncio.run(_cleanup(args.volume))
        case "check":
            code = asyncio.run(_check())
        case _:
            parser.print_help()
            code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
