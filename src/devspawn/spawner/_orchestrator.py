"""Bootstrap spawn orchestrator: the ordered step pipeline.

One spawn runs the steps in ``SpawnStep`` order on the caller's task:

  DockerCheck → DevcontainerCliCheck → BootstrapImageCheck → VolumeCreation
  → BootstrapContainerStart → FileCopyToBootstrap → DevcontainerUp
  → BootstrapCleanup → VsCodeLaunch → Completed

The step table below is the single source of ordering. A fatal step that
raises stops the run, tears down everything the run created (bootstrap
container, volume, staging directory) and returns a failed ``SpawnResult``
whose ``completed_step`` is the failing step. Non-fatal steps record their
failure as a warning and the run continues. When an existing environment
is found for the project path, the resource-creating steps are skipped.
"""

from __future__ import annotations

import asyncio
import json
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from devspawn import labels
from devspawn.config import Settings, get_settings
from devspawn.diagnostics import BootstrapExecutionResult
from devspawn.editor import EditorLauncher, container_uri
from devspawn.errors import (
    BootstrapCleanupFailed,
    BootstrapContainerFailed,
    BootstrapImageUnavailable,
    CliNotInstalled,
    DevcontainerUpFailed,
    DockerUnavailable,
    FileCopyFailed,
)
from devspawn.locator import ExistingEnvironmentLocator, normalize_project_path
from devspawn.logger import logger
from devspawn.naming import generate_volume_name
from devspawn.probes import (
    check_docker_availability,
    check_editor_installation,
    is_devcontainer_cli_installed,
    resolve_command,
)
from devspawn.runtime import ContainerRuntime, ProcessRunner
from devspawn.spawner._cleanup import (
    cleanup_failed_spawn,
    force_remove_container,
    remove_staging_path,
)
from devspawn.spawner._staging import (
    CONFIG_DIR,
    CONFIG_FILE,
    project_folder_name,
    stage_devcontainer_config,
    workspace_folder,
)
from devspawn.types import (
    BootstrapContainer,
    DevcontainerUpResult,
    DockerAvailability,
    ExistingEnvironmentInfo,
    SpawnOptions,
    SpawnResult,
    SpawnStep,
)
from devspawn.volumes import ManagedVolumeRegistry

OnProgress = Callable[[SpawnStep, str], None]

_STEP_DESCRIPTIONS: dict[SpawnStep, str] = {
    SpawnStep.DOCKER_CHECK: "Checking Docker availability",
    SpawnStep.DEVCONTAINER_CLI_CHECK: "Checking devcontainer CLI",
    SpawnStep.BOOTSTRAP_IMAGE_CHECK: "Ensuring bootstrap image",
    SpawnStep.VOLUME_CREATION: "Creating workspace volume",
    SpawnStep.BOOTSTRAP_CONTAINER_START: "Starting bootstrap container",
    SpawnStep.FILE_COPY_TO_BOOTSTRAP: "Copying files into volume",
    SpawnStep.DEVCONTAINER_UP: "Running devcontainer up",
    SpawnStep.BOOTSTRAP_CLEANUP: "Removing bootstrap container",
    SpawnStep.VSCODE_LAUNCH: "Launching editor",
    SpawnStep.COMPLETED: "Done",
}


def parse_up_output(stdout: str) -> DevcontainerUpResult | None:
    """Parse the last JSON line ``devcontainer up`` prints (log lines precede it)."""
    for line in reversed(stdout.splitlines()):
        if not line.lstrip().startswith("{"):
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(raw, dict):
            return DevcontainerUpResult.from_dict(raw)
    return None


@dataclass
class _SpawnRun:
    """Mutable per-spawn state. Frozen into a ``SpawnResult`` at the end."""

    options: SpawnOptions
    project_path: str
    workspace_folder: str
    started: float
    step: SpawnStep = SpawnStep.DOCKER_CHECK
    volume_name: str | None = None
    volume_create_attempted: bool = False
    existing: ExistingEnvironmentInfo | None = None
    bootstrap: BootstrapContainer | None = None
    bootstrap_container_id: str | None = None
    staging_path: Path | None = None
    cli_result: BootstrapExecutionResult | None = None
    up_result: DevcontainerUpResult | None = None
    container_id: str | None = None
    editor_uri: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Step:
    step: SpawnStep
    run: Callable[[_SpawnRun], Awaitable[None]]
    fatal: bool = True
    creates_resources: bool = False  # skipped when an existing environment is reused


class BootstrapOrchestrator:
    def __init__(
        self,
        runtime: ContainerRuntime,
        runner: ProcessRunner,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._runtime = runtime
        self._runner = runner
        self._settings = settings or get_settings()
        self.volumes = ManagedVolumeRegistry(runtime)
        self.locator = ExistingEnvironmentLocator(runtime)
        self.editor = EditorLauncher(runner, timeout=self._settings.editor.launch_timeout)

        self._steps: tuple[_Step, ...] = (
            _Step(SpawnStep.DOCKER_CHECK, self._check_docker),
            _Step(SpawnStep.DEVCONTAINER_CLI_CHECK, self._check_devcontainer_cli),
            _Step(SpawnStep.BOOTSTRAP_IMAGE_CHECK, self._ensure_bootstrap_image),
            _Step(SpawnStep.VOLUME_CREATION, self._create_volume),
            _Step(
                SpawnStep.BOOTSTRAP_CONTAINER_START,
                self._start_bootstrap_container,
                creates_resources=True,
            ),
            _Step(SpawnStep.FILE_COPY_TO_BOOTSTRAP, self._copy_files, creates_resources=True),
            _Step(SpawnStep.DEVCONTAINER_UP, self._devcontainer_up, creates_resources=True),
            _Step(
                SpawnStep.BOOTSTRAP_CLEANUP,
                self._remove_bootstrap,
                fatal=False,
                creates_resources=True,
            ),
            _Step(SpawnStep.VSCODE_LAUNCH, self._launch_editor, fatal=False),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def spawn_local(
        self,
        options: SpawnOptions,
        on_progress: OnProgress | None = None,
    ) -> SpawnResult:
        """Run the full spawn pipeline. Expected failures come back as a value."""
        run = _SpawnRun(
            options=options,
            project_path=normalize_project_path(options.project_path),
            workspace_folder=workspace_folder(
                self._settings.bootstrap.workspace_root, options.project_name
            ),
            started=time.monotonic(),
        )
        log = logger.bind(project=options.project_name)
        log.info("Starting devcontainer spawn", project_path=run.project_path)

        try:
            for entry in self._steps:
                if run.existing is not None and entry.creates_resources:
                    continue
                run.step = entry.step
                _notify(on_progress, entry.step, _STEP_DESCRIPTIONS[entry.step])
                try:
                    await entry.run(run)
                except Exception as exc:
                    if entry.fatal:
                        return await self._fail(run, exc)
                    log.warning("Non-fatal step failed", step=entry.step.name, err=str(exc))
                    run.warnings.append(str(exc))
        except asyncio.CancelledError:
            log.warning("Spawn cancelled, cleaning up", step=run.step.name)
            await self._cleanup(run)
            raise

        run.step = SpawnStep.COMPLETED
        _notify(on_progress, SpawnStep.COMPLETED, _STEP_DESCRIPTIONS[SpawnStep.COMPLETED])
        message = (
            "Reusing existing devcontainer"
            if run.existing is not None
            else "Devcontainer spawned successfully"
        )
        result = self._result(run, success=True, message=message)
        log.info(
            "Devcontainer spawn completed",
            container=(result.container_id or "")[:12],
            volume=result.volume_name,
            elapsed_ms=round(result.duration * 1000),
        )
        return result

    async def spawn_remote(self, options: SpawnOptions, host: str) -> SpawnResult:
        raise NotImplementedError("Remote spawning is not implemented")

    async def check_docker_availability(self) -> DockerAvailability:
        return await check_docker_availability(self._runtime)

    async def find_existing_container(
        self, project_path: Path | str
    ) -> ExistingEnvironmentInfo | None:
        return await self.locator.find(project_path)

    async def cleanup_failed_spawn(
        self,
        volume_name: str | None,
        bootstrap_path: Path | None = None,
        bootstrap_container_id: str | None = None,
    ) -> list[str]:
        return await cleanup_failed_spawn(
            self._runtime, self.volumes, volume_name, bootstrap_path, bootstrap_container_id
        )

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _cleanup(self, run: _SpawnRun) -> list[str]:
        volume = run.volume_name if run.volume_create_attempted else None
        container_id = run.bootstrap.container_id if run.bootstrap else None
        if volume is None and container_id is None and run.staging_path is None:
            return []
        return await self.cleanup_failed_spawn(volume, run.staging_path, container_id)

    async def _fail(self, run: _SpawnRun, exc: Exception) -> SpawnResult:
        logger.error(
            "Devcontainer spawn failed",
            project=run.options.project_name,
            step=run.step.name,
            err=str(exc).splitlines()[0] if str(exc) else type(exc).__name__,
        )
        cleanup_warnings = await self._cleanup(run)
        return self._result(
            run,
            success=False,
            message=f"Devcontainer spawn failed at {_STEP_DESCRIPTIONS[run.step].lower()}",
            errors=[str(exc) or type(exc).__name__],
            cleanup_warnings=cleanup_warnings,
        )

    def _result(
        self,
        run: _SpawnRun,
        *,
        success: bool,
        message: str,
        errors: list[str] | None = None,
        cleanup_warnings: list[str] | None = None,
    ) -> SpawnResult:
        cli = run.cli_result
        return SpawnResult(
            success=success,
            completed_step=run.step,
            message=message,
            errors=list(errors or []),
            warnings=list(run.warnings),
            cleanup_warnings=list(cleanup_warnings or []),
            container_id=run.container_id,
            volume_name=run.volume_name,
            editor_uri=run.editor_uri,
            bootstrap_container_id=run.bootstrap_container_id,
            devcontainer_cli_output=cli.stdout if cli is not None else None,
            devcontainer_cli_stderr=cli.stderr if cli is not None else None,
            duration=time.monotonic() - run.started,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _check_docker(self, run: _SpawnRun) -> None:
        availability = await check_docker_availability(self._runtime)
        if not (availability.is_available and availability.is_running):
            raise DockerUnavailable(availability.message)
        logger.info("Docker is available", version=availability.version)

    async def _check_devcontainer_cli(self, run: _SpawnRun) -> None:
        s = self._settings.devcontainer
        if not await is_devcontainer_cli_installed(self._runner, s.cli):
            raise CliNotInstalled(
                f"devcontainer CLI is not installed. Install it with: {s.install_hint}"
            )

    async def _ensure_bootstrap_image(self, run: _SpawnRun) -> None:
        image = self._settings.bootstrap.image
        try:
            if await self._runtime.image_exists(image):
                return
            logger.info("Pulling bootstrap image (first run may take a minute)", image=image)
            await self._runtime.pull_image(image)
        except Exception as exc:
            raise BootstrapImageUnavailable(
                f"Bootstrap image {image} is not available: {exc}"
            ) from exc
        logger.info("Bootstrap image pulled", image=image)

    async def _create_volume(self, run: _SpawnRun) -> None:
        options = run.options
        if options.reuse_existing:
            existing = await self.locator.find(run.project_path)
            if existing is not None:
                await self._reuse(run, existing)
                return

        name = options.volume_name or generate_volume_name(options.project_name)
        await self.volumes.ensure_absent(name)
        # the daemon may hold the volume even when the create call fails or is cancelled
        run.volume_name = name
        run.volume_create_attempted = True
        volume = await self.volumes.create(name, options.project_name, check_absent=False)
        run.volume_name = volume.name

    async def _reuse(self, run: _SpawnRun, existing: ExistingEnvironmentInfo) -> None:
        run.existing = existing
        run.container_id = existing.container_id
        run.volume_name = existing.volume_name or None
        if existing.workspace_folder:
            run.workspace_folder = existing.workspace_folder
        if existing.is_running:
            return
        try:
            await self._runtime.start_container(existing.container_id)
            logger.info("Started existing container", container=existing.container_id[:12])
        except Exception as exc:
            run.warnings.append(f"Existing container could not be started: {exc}")

    async def _start_bootstrap_container(self, run: _SpawnRun) -> None:
        assert run.volume_name is not None
        s = self._settings.bootstrap
        project = run.options.project_name
        name = f"{s.container_prefix}-{project_folder_name(project)}-{secrets.token_hex(4)}"
        try:
            container_id = await self._runtime.create_container(
                image=s.image,
                name=name,
                command=["sleep", "infinity"],
                labels=labels.bootstrap_labels(project, run.volume_name),
                volumes={run.volume_name: s.workspace_root},
            )
            # recorded before start so a failed start still gets cleaned up
            run.bootstrap = BootstrapContainer(
                container_id=container_id,
                name=name,
                volume_name=run.volume_name,
                project_name=project,
            )
            run.bootstrap_container_id = container_id
            await self._runtime.start_container(container_id)
        except Exception as exc:
            raise BootstrapContainerFailed(f"Failed to start bootstrap container: {exc}") from exc
        logger.info("Bootstrap container started", container=container_id[:12], name=name)

    async def _copy_files(self, run: _SpawnRun) -> None:
        assert run.bootstrap is not None and run.volume_name is not None
        options = run.options
        container_id = run.bootstrap.container_id
        folder = run.workspace_folder

        run.staging_path = stage_devcontainer_config(
            options.devcontainer_path,
            project_name=options.project_name,
            volume_name=run.volume_name,
            folder=folder,
        )
        try:
            mkdir = await self._runtime.exec_in_container(
                container_id, ["mkdir", "-p", f"{folder}/{CONFIG_DIR}"]
            )
            if not mkdir.success:
                raise FileCopyFailed(f"Failed to create {folder}: {mkdir.combined_output}")

            if options.copy_source_files:
                await self._runtime.copy_into_container(container_id, options.project_path, folder)
                logger.info("Copied project sources", source=str(options.project_path))
            else:
                logger.info("Skipping source copy")

            await self._runtime.copy_into_container(
                container_id, run.staging_path / CONFIG_DIR, f"{folder}/{CONFIG_DIR}"
            )
        except FileCopyFailed:
            raise
        except Exception as exc:
            raise FileCopyFailed(f"Failed to copy files into volume: {exc}") from exc

        owner = self._settings.bootstrap.workspace_owner
        if owner:
            chown = await self._runtime.exec_in_container(
                container_id, ["chown", "-R", owner, folder]
            )
            if not chown.success:
                run.warnings.append(f"Could not change workspace owner to {owner}")

    async def _devcontainer_up(self, run: _SpawnRun) -> None:
        assert run.staging_path is not None and run.volume_name is not None
        s = self._settings.devcontainer
        staging = run.staging_path
        argv = [
            resolve_command(s.cli),
            "up",
            "--workspace-folder",
            str(staging),
            "--config",
            str(staging / CONFIG_DIR / CONFIG_FILE),
        ]
        id_labels = labels.devcontainer_id_labels(
            run.options.project_name, run.project_path, run.volume_name, run.workspace_folder
        )
        for key, value in id_labels.items():
            argv += ["--id-label", f"{key}={value}"]

        try:
            result = await self._runner.run(argv, timeout=s.up_timeout, cwd=staging)
        except OSError as exc:
            raise DevcontainerUpFailed(f"Failed to run {s.cli}: {exc}") from exc
        run.cli_result = result

        up = parse_up_output(result.stdout)
        if not result.success:
            detail = f": {up.message}" if up and up.message else ""
            raise DevcontainerUpFailed(
                f"devcontainer up exited with code {result.exit_code}{detail}", result
            )
        if up is None:
            raise DevcontainerUpFailed("Could not find JSON output from devcontainer up", result)
        if up.outcome != "success":
            raise DevcontainerUpFailed(f"devcontainer up returned outcome: {up.outcome}", result)

        run.up_result = up
        run.container_id = up.container_id
        logger.info(
            "Dev container created",
            container=up.container_id[:12],
            duration_s=round(result.duration, 1),
        )

    async def _remove_bootstrap(self, run: _SpawnRun) -> None:
        failures: list[str] = []
        if run.bootstrap is not None:
            try:
                await force_remove_container(self._runtime, run.bootstrap.container_id)
                run.bootstrap = None
            except Exception as exc:
                failures.append(f"bootstrap container: {exc}")
        if run.staging_path is not None:
            try:
                remove_staging_path(run.staging_path)
                run.staging_path = None
            except OSError as exc:
                failures.append(f"staging directory: {exc}")
        if failures:
            raise BootstrapCleanupFailed("Bootstrap cleanup incomplete: " + "; ".join(failures))

    async def _launch_editor(self, run: _SpawnRun) -> None:
        if not run.options.launch_editor or not run.container_id:
            return
        installation = await check_editor_installation(
            self._runner, self._settings.editor.commands
        )
        if not installation.is_installed:
            run.warnings.append("VS Code is not installed, skipping launch")
            return
        folder = (
            run.up_result.remote_workspace_folder
            if run.up_result and run.up_result.remote_workspace_folder
            else run.workspace_folder
        )
        run.editor_uri = container_uri(run.container_id, folder)
        await self.editor.launch(installation, run.editor_uri)


def _notify(on_progress: OnProgress | None, step: SpawnStep, message: str) -> None:
    if on_progress is None:
        return
    try:
        on_progress(step, message)
    except Exception:
        logger.exception("Progress callback failed", step=step.name)
