"""Blocking execution of external tools (md5sum, gpg, git)."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from .logging import get_logger

_COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined stdout/stderr of one command."""

    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandExecutor:
    """Runs an argument vector and captures its combined output.

    Non-zero exits are returned, not raised. A tool that cannot be spawned is
    reported with exit code 127 so callers treat it like any other failure.
    """

    def __init__(self) -> None:
        self.logger = get_logger("executor")

    def run(
        self,
        args: Iterable[str],
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv = [str(arg) for arg in args]
        self.logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd or ".")
        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            program = argv[0] if argv else ""
            self.logger.debug("Failed to spawn %s: %s", program, exc)
            return CommandResult(exit_code=_COMMAND_NOT_FOUND, output=f"{program}: {exc}\n")
        self.logger.debug("%s exited with %d", argv[0], completed.returncode)
        return CommandResult(exit_code=completed.returncode, output=completed.stdout or "")


__all__ = ["CommandExecutor", "CommandResult"]
