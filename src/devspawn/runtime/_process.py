"""Default :class:`ProcessRunner` backed by asyncio subprocesses."""

from __future__ import annotations

import time
from collections.abc import Sequence
from pathlib import Path

from devspawn.diagnostics import BootstrapExecutionResult, collect
from devspawn.logger import logger


class SubprocessRunner:
    """Runs programs on the local host via :func:`devspawn.diagnostics.collect`."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float,
        cwd: Path | str | None = None,
    ) -> BootstrapExecutionResult:
        start = time.monotonic()
        result = await collect(argv, timeout=timeout, cwd=cwd)
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(
            "Process finished",
            cmd=argv[0],
            args=len(argv) - 1,
            exit_code=result.exit_code,
            elapsed_ms=round(elapsed_ms),
        )
        return result
