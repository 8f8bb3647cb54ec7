"""Manifest generation, parsing and atomic persistence."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, List

from .errors import HashToolError, ManifestWriteError
from .hashing import Hasher, LibraryHasher
from .logging import get_logger
from .models import Manifest, ManifestEntry, Repository

DEFAULT_MANIFEST_NAME = "hashes.md5"
DEFAULT_SIGNATURE_NAME = "hashes.md5.asc"
_TEMP_SUFFIX = ".tmp"


def render_manifest(entries: Iterable[ManifestEntry]) -> str:
    return "".join(entry.to_line() for entry in entries)


def parse_manifest(text: str) -> List[ManifestEntry]:
    """Parse manifest text, skipping blank lines.

    Raises ``ValueError`` on the first malformed line.
    """
    entries: List[ManifestEntry] = []
    for number, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            entries.append(ManifestEntry.from_line(line))
        except ValueError as exc:
            raise ValueError(f"line {number}: {exc}") from exc
    return entries


def read_manifest(path: Path) -> Manifest:
    text = path.read_text(encoding="utf-8", errors="surrogateescape")
    return Manifest(entries=parse_manifest(text), path=path)


def write_manifest_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temporary file and ``os.replace``.

    Readers only ever observe the previous manifest or the complete new one.
    """
    try:
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=_TEMP_SUFFIX, dir=path.parent)
    except OSError as exc:
        raise ManifestWriteError(f"Cannot create {path}: {exc}") from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp, _manifest_mode(path))
        os.replace(tmp, path)
    except OSError as exc:
        raise ManifestWriteError(f"Cannot write {path}: {exc}") from exc
    finally:
        Path(tmp).unlink(missing_ok=True)


def _manifest_mode(path: Path) -> int:
    """Mode of the manifest being replaced, else the umask default for new files."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


class ManifestGenerator:
    """Builds the ``<digest>  ./<path>`` manifest for a repository."""

    def __init__(
        self,
        hasher: Hasher | None = None,
        *,
        marker: str = ".git",
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        signature_name: str = DEFAULT_SIGNATURE_NAME,
    ) -> None:
        self.hasher = hasher or LibraryHasher()
        self.marker = marker
        self.manifest_name = manifest_name
        self.signature_name = signature_name
        self.logger = get_logger("manifest")

    def manifest_path(self, repository: Repository) -> Path:
        return repository.path / self.manifest_name

    def signature_path(self, repository: Repository) -> Path:
        return repository.path / self.signature_name

    def is_excluded(self, rel_path: str) -> bool:
        """Return True for paths that must never appear in the manifest.

        ``rel_path`` is root relative without the ``./`` prefix.
        """
        if rel_path.startswith(self.marker):
            return True
        if rel_path in (self.manifest_name, self.signature_name):
            return True
        return (
            "/" not in rel_path
            and rel_path.startswith(f".{self.manifest_name}.")
            and rel_path.endswith(_TEMP_SUFFIX)
        )

    def collect(self, repository: Repository) -> List[str]:
        """Return sorted ``./``-prefixed relative paths of every tracked file."""
        return sorted(f"./{rel}" for rel in self._iter_files(repository.path))

    def generate(self, repository: Repository) -> Manifest:
        """Hash every tracked file and replace the manifest on disk.

        Raises ``HashToolError`` on the first file that cannot be hashed, in
        which case the existing manifest is left as it was.
        """
        root = repository.path
        entries: List[ManifestEntry] = []
        for rel_path in self.collect(repository):
            try:
                digest = self.hasher.hash_file(root / rel_path[2:])
            except HashToolError as exc:
                self.logger.warning(
                    "Hashing failed for %s after %d entries: %s", rel_path, len(entries), exc
                )
                raise HashToolError(
                    f"Hashing {rel_path} failed: {exc}", output=exc.output
                ) from exc
            entries.append(ManifestEntry(digest=digest, path=rel_path))

        manifest_path = self.manifest_path(repository)
        write_manifest_atomic(manifest_path, render_manifest(entries))
        self.logger.debug("Wrote %d entries to %s", len(entries), manifest_path)
        return Manifest(entries=entries, path=manifest_path)

    def _iter_files(self, root: Path) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            kept = []
            for name in dirnames:
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if not rel.startswith(self.marker):
                    kept.append(name)
            dirnames[:] = kept

            for filename in filenames:
                rel = f"{rel_dir}/{filename}" if rel_dir else filename
                if self.is_excluded(rel):
                    continue
                if not (current_dir / filename).is_file():
                    continue
                yield rel


__all__ = [
    "DEFAULT_MANIFEST_NAME",
    "DEFAULT_SIGNATURE_NAME",
    "ManifestGenerator",
    "parse_manifest",
    "read_manifest",
    "render_manifest",
    "write_manifest_atomic",
]
