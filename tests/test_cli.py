"""Tests for the devspawn command line."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from devspawn.__main__ import main
from devspawn.types import DockerAvailability, ManagedVolume, SpawnResult, SpawnStep


def _run(argv: list[str], orchestrator) -> int:
    with (
        patch("sys.argv", ["devspawn", *argv]),
        patch("devspawn.__main__._orchestrator", return_value=orchestrator),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()
    return exc_info.value.code


@pytest.fixture
def orchestrator():
    orch = MagicMock()
    orch.volumes.list_managed = AsyncMock(return_value=[])
    orch.locator.list_managed = AsyncMock(return_value=[])
    orch.cleanup_failed_spawn = AsyncMock(return_value=[])
    orch.check_docker_availability = AsyncMock(
        return_value=DockerAvailability(True, True, "Docker is running (version 27.0.3)", "27.0.3")
    )
    return orch


class TestSpawn:
    def test_success(self, orchestrator, tmp_path, capsys):
        orchestrator.spawn_local = AsyncMock(
            return_value=SpawnResult(
                success=True,
                completed_step=SpawnStep.COMPLETED,
                message="Devcontainer spawned successfully",
                container_id="a" * 64,
                volume_name="devcontainer-demo-0011aabb",
            )
        )

        code = _run(["spawn", str(tmp_path), "--name", "demo", "--no-editor"], orchestrator)

        assert code == 0
        options = orchestrator.spawn_local.call_args.args[0]
        assert options.project_name == "demo"
        assert options.project_path == tmp_path.resolve()
        assert options.devcontainer_path == tmp_path.resolve() / ".devcontainer"
        assert options.launch_editor is False
        assert options.copy_source_files is True
        out = capsys.readouterr().out
        assert "Devcontainer spawned successfully" in out
        assert "devcontainer-demo-0011aabb" in out

    def test_failure_prints_errors(self, orchestrator, tmp_path, capsys):
        orchestrator.spawn_local = AsyncMock(
            return_value=SpawnResult(
                success=False,
                completed_step=SpawnStep.DEVCONTAINER_UP,
                message="Devcontainer spawn failed at running devcontainer up",
                errors=["devcontainer up exited with code 1"],
            )
        )

        code = _run(["spawn", str(tmp_path)], orchestrator)

        assert code == 1
        assert "devcontainer up exited with code 1" in capsys.readouterr().err

    def test_missing_project_directory(self, orchestrator, tmp_path, capsys):
        code = _run(["spawn", str(tmp_path / "nope")], orchestrator)
        assert code == 1
        assert "not a directory" in capsys.readouterr().err


class TestListing:
    def test_volumes(self, orchestrator, capsys):
        created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        orchestrator.volumes.list_managed.return_value = [
            ManagedVolume("devcontainer-demo-0011aabb", "demo", created)
        ]
        assert _run(["volumes"], orchestrator) == 0
        out = capsys.readouterr().out
        assert "devcontainer-demo-0011aabb\tdemo\t2026-03-01T12:00:00+00:00" in out

    def test_no_containers(self, orchestrator, capsys):
        assert _run(["containers"], orchestrator) == 0
        assert "No managed containers" in capsys.readouterr().out


class TestCleanup:
    def test_refuses_unmanaged_volume(self, orchestrator, capsys):
        assert _run(["cleanup", "somebody-elses"], orchestrator) == 1
        orchestrator.cleanup_failed_spawn.assert_not_called()
        assert "not a managed volume" in capsys.readouterr().err

    def test_removes_managed_volume(self, orchestrator, capsys):
        orchestrator.volumes.list_managed.return_value = [ManagedVolume("v", "demo")]
        assert _run(["cleanup", "v"], orchestrator) == 0
        orchestrator.cleanup_failed_spawn.assert_awaited_once_with("v")

    def test_reports_cleanup_warnings(self, orchestrator, capsys):
        orchestrator.volumes.list_managed.return_value = [ManagedVolume("v", "demo")]
        orchestrator.cleanup_failed_spawn.return_value = ["Failed to remove volume v: in use"]
        assert _run(["cleanup", "v"], orchestrator) == 1
        assert "in use" in capsys.readouterr().err
