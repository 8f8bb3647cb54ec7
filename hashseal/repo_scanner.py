"""Discovery of repositories under a root directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import DiscoveryError
from .logging import get_logger
from .models import Repository


@dataclass
class ScanResult:
    """Repositories found under ``root`` and the cause when listing failed."""

    root: Path
    repositories: List[Repository] = field(default_factory=list)
    error: Optional[DiscoveryError] = None


class RepositoryScanner:
    """Finds immediate subdirectories that carry the version-control marker."""

    def __init__(self, marker: str = ".git") -> None:
        self.marker = marker
        self.logger = get_logger("scanner")

    def scan(self, root: str | Path) -> ScanResult:
        """Return the repositories directly below ``root``, sorted by name.

        A missing or unreadable root is not fatal: the result is empty and
        ``error`` explains why.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            return self._failed(root_path, f"Root path not found: {root_path}")
        if not root_path.is_dir():
            return self._failed(root_path, f"Root path is not a directory: {root_path}")

        try:
            children = sorted(root_path.iterdir(), key=lambda child: child.name)
        except OSError as exc:
            return self._failed(root_path, f"Cannot list {root_path}: {exc}")

        repositories: List[Repository] = []
        for child in children:
            try:
                if child.is_dir() and (child / self.marker).exists():
                    repositories.append(Repository(path=child))
            except OSError as exc:
                self.logger.debug("Skipping %s: %s", child, exc)
        self.logger.debug("Discovered %d repositories under %s", len(repositories), root_path)
        return ScanResult(root=root_path, repositories=repositories)

    def is_repository(self, path: str | Path) -> bool:
        candidate = Path(path)
        return candidate.is_dir() and (candidate / self.marker).exists()

    def _failed(self, root: Path, message: str) -> ScanResult:
        self.logger.warning(message)
        return ScanResult(root=root, error=DiscoveryError(message))


__all__ = ["RepositoryScanner", "ScanResult"]
