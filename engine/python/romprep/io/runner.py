"""Deterministic subprocess runner."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess, run


logger = logging.getLogger(__name__)


class RunnerError(RuntimeError):
    """Raised when command execution fails."""


@dataclass(frozen=True)
class RunResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stderr/stdout, trimmed, for messages."""
        return (self.stderr.strip() + "\n" + self.stdout.strip()).strip()


def run_argv(
    argv: list[str],
    cwd: Path | None = None,
    check: bool = False,
    env: dict[str, str] | None = None,
) -> RunResult:
    if not argv:
        raise RunnerError("Empty argv")
    logger.debug("$ %s", " ".join(argv))
    try:
        process: CompletedProcess[str] = run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            errors="replace",
            env=env,
            check=False,
        )
    except FileNotFoundError as exc:
        # Missing executable or cwd: surface as a failed command, not a crash.
        result = RunResult(argv=argv, returncode=127, stdout="", stderr=str(exc))
    else:
        result = RunResult(
            argv=argv,
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )
    if check and result.returncode != 0:
        raise RunnerError(f"Command failed ({result.returncode}): {' '.join(argv)}\n{result.stderr}")
    return result
