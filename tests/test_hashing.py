"""Tests for the hashing backends."""

from __future__ import annotations

import hashlib
import shutil
from pathlib import Path

import pytest

from hashseal.config import HashingConfig
from hashseal.errors import HashToolError
from hashseal.executor import CommandExecutor, CommandResult
from hashseal.hashing import LibraryHasher, ToolHasher, build_hasher
from hashseal.models import CheckStatus, Manifest, ManifestEntry
from tests._fixtures.fakes import FakeExecutor, FakeMd5sum


class _ScriptedExecutor:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.calls: list[tuple[list[str], object]] = []

    def run(self, args, *, cwd=None, env=None) -> CommandResult:  # type: ignore[no-untyped-def]
        self.calls.append((list(args), cwd))
        return self.result


def test_library_hasher_matches_hashlib(tmp_path: Path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"\x00\x01payload" * 1000)

    assert LibraryHasher().hash_file(target) == hashlib.md5(target.read_bytes()).hexdigest()
    assert LibraryHasher("sha256").hash_file(target) == hashlib.sha256(target.read_bytes()).hexdigest()


def test_library_hasher_wraps_os_errors(tmp_path: Path) -> None:
    with pytest.raises(HashToolError, match="Cannot read"):
        LibraryHasher().hash_file(tmp_path / "missing")


def test_library_hasher_rejects_unknown_algorithm() -> None:
    with pytest.raises(ValueError):
        LibraryHasher("not-a-hash")


def test_tool_hasher_runs_tool_and_takes_first_token(tmp_path: Path) -> None:
    executor = _ScriptedExecutor(
        CommandResult(0, "D41D8CD98F00B204E9800998ECF8427E  /abs/empty.txt\n")
    )
    hasher = ToolHasher(executor, tool="md5sum")

    digest = hasher.hash_file(tmp_path / "empty.txt")

    assert digest == "d41d8cd98f00b204e9800998ecf8427e"
    assert executor.calls[0][0] == ["md5sum", "--", str(tmp_path / "empty.txt")]


def test_tool_hasher_strips_escape_prefix(tmp_path: Path) -> None:
    executor = _ScriptedExecutor(
        CommandResult(0, "\\d41d8cd98f00b204e9800998ecf8427e  /abs/odd\\\\name\n")
    )

    assert ToolHasher(executor).hash_file(tmp_path / "odd\\name") == (
        "d41d8cd98f00b204e9800998ecf8427e"
    )


def test_tool_hasher_raises_with_tool_output(tmp_path: Path) -> None:
    executor = _ScriptedExecutor(CommandResult(1, "md5sum: x: Permission denied\n"))

    with pytest.raises(HashToolError) as excinfo:
        ToolHasher(executor).hash_file(tmp_path / "x")

    assert "Permission denied" in excinfo.value.output


def test_tool_hasher_rejects_garbage_output(tmp_path: Path) -> None:
    executor = _ScriptedExecutor(CommandResult(0, "not a digest\n"))

    with pytest.raises(HashToolError, match="no digest"):
        ToolHasher(executor).hash_file(tmp_path / "x")


def test_missing_tool_surfaces_as_hash_error(tmp_path: Path) -> None:
    target = tmp_path / "a.txt"
    target.write_text("a", encoding="utf-8")
    hasher = ToolHasher(CommandExecutor(), tool="definitely-not-installed-sum")

    with pytest.raises(HashToolError, match="exit 127"):
        hasher.hash_file(target)


def test_tool_check_parses_per_file_status(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b\n", encoding="utf-8")
    manifest_path = tmp_path / "hashes.md5"
    entries = [
        ManifestEntry(hashlib.md5(b"a\n").hexdigest(), "./a.txt"),
        ManifestEntry("0" * 32, "./b.txt"),
        ManifestEntry("1" * 32, "./gone.txt"),
    ]
    manifest = Manifest(entries=entries, path=manifest_path)
    manifest_path.write_text(manifest.render(), encoding="utf-8")
    executor = FakeExecutor(md5sum=FakeMd5sum())

    checks, output = ToolHasher(executor).check(manifest, tmp_path)

    assert [(check.path, check.status) for check in checks] == [
        ("./a.txt", CheckStatus.OK),
        ("./b.txt", CheckStatus.MISMATCH),
        ("./gone.txt", CheckStatus.UNREADABLE),
    ]
    assert "./b.txt: FAILED" in output
    assert executor.calls[0] == (["md5sum", "-c", str(manifest_path)], tmp_path)


def test_tool_check_marks_unreported_entries_unchecked(tmp_path: Path) -> None:
    manifest = Manifest(
        entries=[ManifestEntry("0" * 32, "./a.txt")], path=tmp_path / "hashes.md5"
    )
    executor = _ScriptedExecutor(CommandResult(127, "md5sum: command not found\n"))

    checks, output = ToolHasher(executor).check(manifest, tmp_path)

    assert [check.status for check in checks] == [CheckStatus.UNCHECKED]
    assert "command not found" in output


def test_tool_check_failure_with_empty_manifest_is_reported(tmp_path: Path) -> None:
    manifest = Manifest(entries=[], path=tmp_path / "hashes.md5")
    executor = _ScriptedExecutor(CommandResult(127, "md5sum: command not found\n"))

    checks, _ = ToolHasher(executor).check(manifest, tmp_path)

    assert [(check.path, check.status) for check in checks] == [
        ("hashes.md5", CheckStatus.UNCHECKED)
    ]


def test_tool_check_success_with_empty_manifest(tmp_path: Path) -> None:
    manifest = Manifest(entries=[], path=tmp_path / "hashes.md5")

    checks, _ = ToolHasher(_ScriptedExecutor(CommandResult(0, ""))).check(manifest, tmp_path)

    assert checks == []

def test_library_check_reports_in_checksum_tool_format(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b\n", encoding="utf-8")
    manifest = Manifest(
        entries=[
            ManifestEntry(hashlib.md5(b"a\n").hexdigest(), "./a.txt"),
            ManifestEntry("0" * 32, "./b.txt"),
            ManifestEntry("0" * 32, "./missing.txt"),
            ManifestEntry("0" * 32, "./../outside.txt"),
        ]
    )

    checks, output = LibraryHasher().check(manifest, tmp_path)

    assert [check.status for check in checks] == [
        CheckStatus.OK,
        CheckStatus.MISMATCH,
        CheckStatus.UNREADABLE,
        CheckStatus.UNREADABLE,
    ]
    lines = output.splitlines()
    assert "./a.txt: OK" in lines
    assert "./b.txt: FAILED" in lines
    assert "./missing.txt: FAILED open or read" in lines
    assert lines[-2] == "hashseal: WARNING: 2 listed files could not be read"
    assert lines[-1] == "hashseal: WARNING: 1 computed checksum did NOT match"


def test_build_hasher_follows_backend() -> None:
    assert isinstance(build_hasher(HashingConfig(backend="library")), LibraryHasher)
    tool = build_hasher(HashingConfig(backend="tool", algorithm="sha256"))
    assert isinstance(tool, ToolHasher)
    assert tool.tool == "sha256sum"


@pytest.mark.skipif(shutil.which("md5sum") is None, reason="md5sum not installed")
def test_real_md5sum_agrees_with_library(tmp_path: Path) -> None:
    target = tmp_path / "file with spaces.txt"
    target.write_text("content\n", encoding="utf-8")

    assert ToolHasher(CommandExecutor()).hash_file(target) == LibraryHasher().hash_file(target)
