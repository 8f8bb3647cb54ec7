"""Core data models shared across hashseal components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .errors import HashSealError

_ESCAPES = (("\\", "\\\\"), ("\n", "\\n"), ("\r", "\\r"))


@dataclass(frozen=True)
class Repository:
    """A directory tree containing a version-control marker."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class ManifestEntry:
    """One ``<digest>  ./<relative path>`` line of a manifest."""

    digest: str
    path: str

    def to_line(self) -> str:
        """Render the entry using the checksum-list convention."""
        if needs_escape(self.path):
            return f"\\{self.digest}  {escape_path(self.path)}\n"
        return f"{self.digest}  {self.path}\n"

    @classmethod
    def from_line(cls, line: str) -> "ManifestEntry":
        """Parse a single manifest line; raises ``ValueError`` when malformed."""
        text = line.rstrip("\n")
        escaped = text.startswith("\\")
        if escaped:
            text = text[1:]
        digest, sep, rest = text.partition(" ")
        if not sep or not digest or not rest or rest[0] not in (" ", "*"):
            raise ValueError(f"Malformed manifest line: {line!r}")
        path = rest[1:]
        if not path:
            raise ValueError(f"Manifest line has no path: {line!r}")
        if escaped:
            path = unescape_path(path)
        return cls(digest=digest.lower(), path=path)


def needs_escape(path: str) -> bool:
    """Return True when ``path`` must use the backslash escape form."""
    return any(char in path for char, _ in _ESCAPES)


def escape_path(path: str) -> str:
    for char, replacement in _ESCAPES:
        path = path.replace(char, replacement)
    return path


def unescape_path(value: str) -> str:
    result: List[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == "\\" and index + 1 < len(value):
            nxt = value[index + 1]
            result.append({"n": "\n", "r": "\r", "\\": "\\"}.get(nxt, nxt))
            index += 2
            continue
        result.append(char)
        index += 1
    return "".join(result)


@dataclass
class Manifest:
    """Ordered manifest entries and the file they live in."""

    entries: List[ManifestEntry] = field(default_factory=list)
    path: Optional[Path] = None

    def render(self) -> str:
        return "".join(entry.to_line() for entry in self.entries)

    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


class CheckStatus(str, Enum):
    """Per-file integrity verdict."""

    OK = "OK"
    MISMATCH = "FAILED"
    UNREADABLE = "FAILED open or read"
    UNCHECKED = "NOT CHECKED"


@dataclass(frozen=True)
class FileCheck:
    """Integrity verdict for one manifest entry."""

    path: str
    status: CheckStatus

    @property
    def ok(self) -> bool:
        return self.status is CheckStatus.OK


class Stage(str, Enum):
    """Discrete pipeline steps."""

    GENERATE = "generate"
    SIGN = "sign"
    PUBLISH = "publish"
    VERIFY_SIGNATURE = "signature"
    VERIFY_INTEGRITY = "integrity"


@dataclass
class StageResult:
    """Outcome of one stage for one repository."""

    stage: Stage
    ok: bool
    detail: str = ""
    output: str = ""
    error: Optional[HashSealError] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "stage": self.stage.value,
            "ok": self.ok,
            "detail": self.detail,
        }
        if self.error is not None:
            payload["error"] = type(self.error).__name__
        return payload


@dataclass
class RepositoryOutcome:
    """Ordered stage results for a single repository."""

    repository: Repository
    stages: List[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.stages)

    def result(self, stage: Stage) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage is stage:
                return result
        return None

    def status(self, stage: Stage) -> str:
        """Return ``OK``, ``FAIL`` or ``SKIP`` for the given stage."""
        result = self.result(stage)
        if result is None:
            return "SKIP"
        return "OK" if result.ok else "FAIL"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": str(self.repository.path),
            "ok": self.ok,
            "stages": [result.to_dict() for result in self.stages],
        }


@dataclass
class RunReport:
    """Result of a Publish-All or Verify-All run."""

    operation: str
    root: Optional[Path] = None
    outcomes: List[RepositoryOutcome] = field(default_factory=list)
    discovery_error: Optional[str] = None
    log: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.discovery_error is None and all(outcome.ok for outcome in self.outcomes)

    def failed(self) -> Sequence[RepositoryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "root": str(self.root) if self.root is not None else None,
            "ok": self.ok,
            "discovery_error": self.discovery_error,
            "repositories": [outcome.to_dict() for outcome in self.outcomes],
        }


__all__ = [
    "CheckStatus",
    "FileCheck",
    "Manifest",
    "ManifestEntry",
    "Repository",
    "RepositoryOutcome",
    "RunReport",
    "Stage",
    "StageResult",
]
