"""Re-checking manifest hashes against the files on disk."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .errors import IntegrityMismatch
from .hashing import Hasher, LibraryHasher
from .logging import get_logger
from .manifest import DEFAULT_MANIFEST_NAME, read_manifest
from .models import FileCheck, Repository


@dataclass
class IntegrityReport:
    """Per-file verdicts for one repository's manifest."""

    repository: Repository
    manifest_path: Path
    checks: List[FileCheck] = field(default_factory=list)
    output: str = ""

    @property
    def ok(self) -> bool:
        return all(check.ok for check in self.checks)

    @property
    def failures(self) -> List[FileCheck]:
        return [check for check in self.checks if not check.ok]

    def describe(self) -> str:
        if self.ok:
            return f"Integrity OK in {self.repository} ({len(self.checks)} files)"
        return (
            f"Integrity FAILED in {self.repository}: "
            f"{len(self.failures)} of {len(self.checks)} files do not match"
        )

    def raise_for_status(self) -> None:
        if not self.ok:
            raise IntegrityMismatch(
                self.describe(),
                output=self.output,
                paths=tuple(check.path for check in self.failures),
            )


class IntegrityVerifier:
    """Recomputes the hash of every manifest entry and compares it."""

    def __init__(
        self, hasher: Hasher | None = None, *, manifest_name: str = DEFAULT_MANIFEST_NAME
    ) -> None:
        self.hasher = hasher or LibraryHasher()
        self.manifest_name = manifest_name
        self.logger = get_logger("integrity")

    def verify(self, repository: Repository) -> IntegrityReport:
        """Return the per-file report; a missing or unreadable manifest raises."""
        manifest_path = repository.path / self.manifest_name
        if not manifest_path.is_file():
            raise IntegrityMismatch(f"Manifest not found: {manifest_path}")
        try:
            manifest = read_manifest(manifest_path)
        except (OSError, ValueError) as exc:
            raise IntegrityMismatch(f"Cannot read manifest {manifest_path}: {exc}") from exc

        checks, output = self.hasher.check(manifest, repository.path)
        report = IntegrityReport(
            repository=repository,
            manifest_path=manifest_path,
            checks=checks,
            output=output,
        )
        self.logger.debug(
            "%s: %d checked, %d failed", repository, len(checks), len(report.failures)
        )
        return report


__all__ = ["IntegrityReport", "IntegrityVerifier"]
