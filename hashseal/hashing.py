"""File digest backends: an external ``<algo>sum`` tool or in-process hashlib."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path
from typing import List, Tuple

from .config import HashingConfig
from .errors import HashToolError
from .executor import CommandExecutor
from .logging import get_logger
from .models import CheckStatus, FileCheck, Manifest, escape_path, needs_escape, unescape_path

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]+$")
_CHECK_LINE = re.compile(
    r"^(?P<escaped>\\)?(?P<path>.+): (?P<status>OK|FAILED open or read|FAILED)$"
)
_CHUNK_SIZE = 1024 * 1024


class Hasher:
    """Computes file digests and re-checks a manifest against the disk."""

    name = "hasher"

    def hash_file(self, path: Path) -> str:
        raise NotImplementedError

    def check(self, manifest: Manifest, repo: Path) -> Tuple[List[FileCheck], str]:
        """Recompute every entry of ``manifest`` relative to ``repo``.

        Returns one ``FileCheck`` per entry, in manifest order, plus
        diagnostics in the ``<path>: OK|FAILED`` checksum-tool format.
        """
        checks: List[FileCheck] = []
        lines: List[str] = []
        mismatched = 0
        unreadable = 0
        root = Path(os.path.abspath(repo))
        for entry in manifest.entries:
            # Lexical containment: symlinks inside the tree are hashed through.
            target = Path(os.path.normpath(root / entry.path))
            if not target.is_relative_to(root):
                lines.append(f"{self.name}: {entry.path}: outside of repository")
                status = CheckStatus.UNREADABLE
            else:
                try:
                    digest = self.hash_file(target)
                except HashToolError as exc:
                    lines.append(f"{self.name}: {entry.path}: {exc}")
                    status = CheckStatus.UNREADABLE
                else:
                    status = CheckStatus.OK if digest == entry.digest else CheckStatus.MISMATCH
            if status is CheckStatus.MISMATCH:
                mismatched += 1
            elif status is CheckStatus.UNREADABLE:
                unreadable += 1
            checks.append(FileCheck(path=entry.path, status=status))
            lines.append(_format_check_line(entry.path, status))
        if unreadable:
            noun = "file" if unreadable == 1 else "files"
            lines.append(f"{self.name}: WARNING: {unreadable} listed {noun} could not be read")
        if mismatched:
            noun = "checksum" if mismatched == 1 else "checksums"
            lines.append(f"{self.name}: WARNING: {mismatched} computed {noun} did NOT match")
        return checks, "\n".join(lines) + ("\n" if lines else "")


class LibraryHasher(Hasher):
    """Digests files in-process with :mod:`hashlib`."""

    name = "hashseal"

    def __init__(self, algorithm: str = "md5") -> None:
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm

    def hash_file(self, path: Path) -> str:
        digest = hashlib.new(self.algorithm)
        try:
            with path.open("rb") as handle:
                for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                    digest.update(chunk)
        except OSError as exc:
            raise HashToolError(f"Cannot read {path}: {exc.strerror or exc}") from exc
        return digest.hexdigest()


class ToolHasher(Hasher):
    """Delegates hashing to a checksum tool such as ``md5sum``."""

    def __init__(self, executor: CommandExecutor | None = None, tool: str = "md5sum") -> None:
        self.executor = executor or CommandExecutor()
        self.tool = tool
        self.name = tool
        self.logger = get_logger("hashing")

    def hash_file(self, path: Path) -> str:
        result = self.executor.run([self.tool, "--", str(path)])
        if not result.ok:
            raise HashToolError(
                f"{self.tool} failed for {path} (exit {result.exit_code})",
                output=result.output,
            )
        token = result.output.split(maxsplit=1)[0] if result.output.strip() else ""
        digest = token[1:] if token.startswith("\\") else token
        if not _HEX_DIGEST.match(digest):
            raise HashToolError(
                f"{self.tool} produced no digest for {path}", output=result.output
            )
        return digest.lower()

    def check(self, manifest: Manifest, repo: Path) -> Tuple[List[FileCheck], str]:
        if manifest.path is None:
            return super().check(manifest, repo)
        result = self.executor.run([self.tool, "-c", str(manifest.path)], cwd=repo)
        reported = {}
        for line in result.output.splitlines():
            match = _CHECK_LINE.match(line)
            if match is None:
                continue
            path = match.group("path")
            if match.group("escaped"):
                path = unescape_path(path)
            reported[path] = CheckStatus(match.group("status"))
        checks = [
            FileCheck(path=entry.path, status=reported.get(entry.path, CheckStatus.UNCHECKED))
            for entry in manifest.entries
        ]
        if result.ok and not all(check.ok for check in checks):
            self.logger.warning(
                "%s -c exited 0 but did not confirm every entry of %s", self.tool, manifest.path
            )
        if not result.ok and all(check.ok for check in checks):
            # The tool rejected the manifest without naming a file.
            checks = [FileCheck(path=check.path, status=CheckStatus.UNCHECKED) for check in checks]
        if not result.ok and not checks:
            # Nothing listed, but the tool still failed (missing binary, unreadable manifest).
            checks = [FileCheck(path=manifest.path.name, status=CheckStatus.UNCHECKED)]
        return checks, result.output


def build_hasher(config: HashingConfig, executor: CommandExecutor | None = None) -> Hasher:
    """Return the hasher selected by ``hashing.backend``."""
    if config.backend == "library":
        return LibraryHasher(config.algorithm)
    return ToolHasher(executor, tool=config.tool_name)


def _format_check_line(path: str, status: CheckStatus) -> str:
    if needs_escape(path):
        return f"\\{escape_path(path)}: {status.value}"
    return f"{path}: {status.value}"


__all__ = ["Hasher", "LibraryHasher", "ToolHasher", "build_hasher"]
