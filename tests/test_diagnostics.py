"""Tests for process output capture and diagnostics formatting."""

from __future__ import annotations

import sys

import pytest

from devspawn.diagnostics import (
    STDERR_HEADER,
    STDOUT_HEADER,
    BootstrapExecutionResult,
    collect,
)


class TestCombinedOutput:
    def test_stdout_only_omits_stderr_section(self):
        result = BootstrapExecutionResult(exit_code=0, stdout="built image\n", stderr="")
        assert result.combined_output == f"{STDOUT_HEADER}\nbuilt image"
        assert STDERR_HEADER not in result.combined_output

    def test_stderr_only_omits_stdout_section(self):
        result = BootstrapExecutionResult(exit_code=1, stdout="  \n", stderr="boom")
        assert result.combined_output == f"{STDERR_HEADER}\nboom"

    def test_both_sections_in_order(self):
        result = BootstrapExecutionResult(exit_code=1, stdout="out", stderr="err")
        out = result.combined_output
        assert out.index(STDOUT_HEADER) < out.index(STDERR_HEADER)
        assert out == f"{STDOUT_HEADER}\nout\n\n{STDERR_HEADER}\nerr"

    def test_empty_when_nothing_captured(self):
        assert BootstrapExecutionResult(exit_code=0).combined_output == ""

    def test_collapses_blank_line_runs(self):
        result = BootstrapExecutionResult(exit_code=1, stdout="a\n\n\n\n\nb", stderr="c\n \n\t\nd")
        assert "\n\n\n" not in result.combined_output
        assert "a\n\nb" in result.combined_output


class TestFormattedDiagnostics:
    def test_header_and_output(self):
        result = BootstrapExecutionResult(exit_code=2, stderr="no space left", duration=1.234)
        text = result.formatted_diagnostics()
        assert text.startswith("Exit Code: 2\nDuration: 1.23s\n\n")
        assert text.endswith(f"{STDERR_HEADER}\nno space left")
        assert "Timed Out" not in text

    def test_timeout_flag(self):
        result = BootstrapExecutionResult(exit_code=-1, duration=600, timed_out=True)
        assert "Timed Out: yes" in result.formatted_diagnostics()

    def test_placeholder_when_no_output(self):
        text = BootstrapExecutionResult(exit_code=0).formatted_diagnostics()
        assert text.endswith("(No output captured)")

    def test_success_requires_zero_exit_and_no_timeout(self):
        assert BootstrapExecutionResult(exit_code=0).success
        assert not BootstrapExecutionResult(exit_code=3).success
        assert not BootstrapExecutionResult(exit_code=0, timed_out=True).success


class TestCollect:
    @pytest.mark.asyncio
    async def test_captures_both_streams_and_exit_code(self):
        script = "import sys; print('hello'); print('oops', file=sys.stderr); sys.exit(3)"
        result = await collect([sys.executable, "-c", script], timeout=30)
        assert result.exit_code == 3
        assert result.stdout.strip() == "hello"
        assert result.stderr.strip() == "oops"
        assert not result.timed_out
        assert result.duration > 0

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        script = "import sys, time; print('started', flush=True); time.sleep(30)"
        result = await collect([sys.executable, "-c", script], timeout=1)
        assert result.timed_out
        assert result.exit_code == -1
        assert "started" in result.stdout
        assert result.duration < 20

    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, tmp_path):
        script = "import os; print(os.getcwd())"
        result = await collect([sys.executable, "-c", script], timeout=30, cwd=tmp_path)
        assert result.stdout.strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_missing_executable_raises(self):
        with pytest.raises(FileNotFoundError):
            await collect(["definitely-not-a-real-binary-7f3a"], timeout=5)
