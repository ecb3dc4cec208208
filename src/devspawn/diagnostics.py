"""External process diagnostics: capture stdout/stderr, exit code and timing.

Every external invocation (docker CLI, devcontainer CLI, editor launcher)
funnels through :func:`collect`, which produces an immutable
:class:`BootstrapExecutionResult`. The result's ``combined_output`` and
``formatted_diagnostics()`` views are what gets shown to the user when a
step fails.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from devspawn.logger import logger

STDOUT_HEADER = "=== STDOUT ==="
STDERR_HEADER = "=== STDERR ==="

# Two or more consecutive blank lines collapse into one.
_BLANK_RUN = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

# Grace period for draining pipes after the child was killed. Grandchildren
# (docker builds started by the devcontainer CLI) can keep the pipes open.
_DRAIN_GRACE_SECS = 5.0


def _collapse_blank_runs(text: str) -> str:
    return _BLANK_RUN.sub("\n\n", text)


@dataclass(frozen=True)
class BootstrapExecutionResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0  # seconds
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def combined_output(self) -> str:
        """Labelled stdout then stderr; empty sections are omitted."""
        sections: list[str] = []
        if self.stdout.strip():
            sections.append(f"{STDOUT_HEADER}\n{self.stdout.strip()}")
        if self.stderr.strip():
            sections.append(f"{STDERR_HEADER}\n{self.stderr.strip()}")
        return _collapse_blank_runs("\n\n".join(sections))

    def formatted_diagnostics(self) -> str:
        lines = [
            f"Exit Code: {self.exit_code}",
            f"Duration: {self.duration:.2f}s",
        ]
        if self.timed_out:
            lines.append("Timed Out: yes")
        lines.append("")
        lines.append(self.combined_output or "(No output captured)")
        return _collapse_blank_runs("\n".join(lines))


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(8192)
        if not chunk:
            break
        chunks.append(chunk)


async def collect(
    argv: Sequence[str],
    *,
    timeout: float,
    cwd: Path | str | None = None,
) -> BootstrapExecutionResult:
    """Run *argv* to completion and capture everything it printed.

    Raises FileNotFoundError when the executable does not exist. On timeout
    the child is killed and the partial output is returned with
    ``timed_out=True`` and exit code -1. Cancellation kills the child and
    propagates.
    """
    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd is not None else None,
    )

    out_chunks: list[bytes] = []
    err_chunks: list[bytes] = []
    drains = asyncio.gather(_drain(proc.stdout, out_chunks), _drain(proc.stderr, err_chunks))
    timed_out = False
    try:
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except TimeoutError:
            timed_out = True
            logger.warning("Process timed out, killing", cmd=argv[0], timeout=timeout)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
        try:
            await asyncio.wait_for(asyncio.shield(drains), timeout=_DRAIN_GRACE_SECS)
        except TimeoutError:
            logger.warning("Process output pipes stayed open after exit", cmd=argv[0])
            drains.cancel()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        drains.cancel()
        raise

    duration = time.monotonic() - start
    exit_code = -1 if timed_out else (proc.returncode if proc.returncode is not None else -1)
    return BootstrapExecutionResult(
        exit_code=exit_code,
        stdout=b"".join(out_chunks).decode(errors="replace"),
        stderr=b"".join(err_chunks).decode(errors="replace"),
        duration=duration,
        timed_out=timed_out,
    )
