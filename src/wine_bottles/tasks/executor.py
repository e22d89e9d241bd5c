"""Blocking one-shot command execution for short probes."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from wine_bottles.errors import ExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Fully buffered outcome of a finished command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def merged_environment(overlay: Mapping[str, str] | None) -> dict[str, str]:
    """Inherited process environment overlaid with ``overlay`` keys."""

    env = os.environ.copy()
    if overlay:
        env.update(overlay)
    return env


class ProcessExecutor:
    """Run a command to completion and capture its decoded output.

    Only suitable for fast, non-interactive commands such as version checks,
    path lookups, and archive extraction. Long-running work goes through
    :class:`wine_bottles.tasks.runner.TaskRunner`.
    """

    def run(
        self,
        path: str,
        args: list[str] | tuple[str, ...] = (),
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> ProcessResult:
        argv = [path, *args]
        if cwd is not None and not cwd.is_dir():
            raise ExecutionError(f"Working directory not found: {cwd}", path=path)
        logger.debug("Executing %s", argv)
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                env=merged_environment(env),
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                check=False,
            )
        except FileNotFoundError as error:
            raise ExecutionError(f"Executable not found: {path}", path=path) from error
        except PermissionError as error:
            raise ExecutionError(f"Executable is not runnable: {path}", path=path) from error
        except OSError as error:
            raise ExecutionError(f"Failed to start {path}: {error}", path=path) from error

        return ProcessResult(
            exit_code=completed.returncode,
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
        )
