"""Git publishing utilities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from ..errors import VersionControlError
from ..executor import CommandExecutor, CommandResult
from ..logging import get_logger
from ..models import Repository

DEFAULT_COMMIT_MESSAGE = "Add signed hash manifest"


@dataclass
class PublishOutcome:
    """What the publisher did for one repository."""

    repository: Repository
    committed: bool
    pushed: bool
    output: str = ""

    def describe(self) -> str:
        if not self.committed:
            return f"Nothing to commit in {self.repository}"
        if self.pushed:
            return f"Push OK for {self.repository}"
        return f"Committed in {self.repository} (push disabled)"


class VersionControlPublisher:
    """Stages, commits and pushes the manifest and signature files."""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
        push: bool = True,
        marker: str = ".git",
    ) -> None:
        self.executor = executor or CommandExecutor()
        self.commit_message = commit_message
        self.push = push
        self.marker = marker
        self.logger = get_logger("git")

    def publish(self, repository: Repository, files: Sequence[Path | str]) -> PublishOutcome:
        """Stage ``files`` and commit/push them when they changed.

        An unchanged manifest and signature is a successful no-op. Any failing
        git step raises ``VersionControlError`` and the remaining steps are
        skipped.
        """
        repo = repository.path
        if not (repo / self.marker).exists():
            raise VersionControlError(f"{repo} is not a git repository", step="check")

        relative_files = [self._to_relative(repo, Path(file)) for file in files]
        transcript: List[str] = []

        self._run(["git", "add", "--", *relative_files], repo, "add", transcript)
        status = self._run(
            ["git", "status", "--porcelain", "--", *relative_files], repo, "status", transcript
        )
        if not status.output.strip():
            self.logger.debug("No manifest changes to commit in %s", repo)
            return PublishOutcome(
                repository=repository, committed=False, pushed=False, output="".join(transcript)
            )

        self._run(
            ["git", "commit", "-m", self.commit_message, "--", *relative_files],
            repo,
            "commit",
            transcript,
        )
        if not self.push:
            return PublishOutcome(
                repository=repository, committed=True, pushed=False, output="".join(transcript)
            )
        self._run(["git", "push"], repo, "push", transcript)
        return PublishOutcome(
            repository=repository, committed=True, pushed=True, output="".join(transcript)
        )

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _to_relative(repo: Path, file_path: Path) -> str:
        try:
            return file_path.relative_to(repo).as_posix()
        except ValueError:
            return file_path.as_posix()

    def _run(
        self, args: Iterable[str], cwd: Path, step: str, transcript: List[str]
    ) -> CommandResult:
        argv = list(args)
        result = self.executor.run(argv, cwd=cwd)
        if not result.ok:
            transcript.append(result.output)
            raise VersionControlError(
                f"git {step} failed (rc={result.exit_code}) in {cwd}",
                output="".join(transcript),
                step=step,
            )
        # Porcelain status is only inspected, not reported.
        if step != "status":
            transcript.append(result.output)
        return result


__all__ = ["DEFAULT_COMMIT_MESSAGE", "PublishOutcome", "VersionControlPublisher"]
