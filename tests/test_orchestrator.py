"""Tests for hashseal.orchestrator."""

from __future__ import annotations

import threading
from pathlib import Path

from hashseal.config import HashSealConfig
from hashseal.models import RunReport, Stage
from hashseal.orchestrator import Orchestrator
from tests._fixtures.fakes import FakeExecutor, FakeGit, FakeMd5sum
from tests._fixtures.repo_builder import WorkspaceBuilder


def _stage_names(outcome) -> list[str]:  # type: ignore[no-untyped-def]
    return [result.stage.value for result in outcome.stages]


def test_discover_logs_repositories(workspace: WorkspaceBuilder, orchestrator: Orchestrator) -> None:
    alpha = workspace.repo("alpha")
    beta = workspace.repo("beta")
    workspace.repo("plain", marker=False)

    scan = orchestrator.discover()

    assert scan.repositories == [alpha, beta]
    assert orchestrator.log.lines == (
        f"Repositories found in {workspace.root.resolve()}:",
        f"  - {alpha}",
        f"  - {beta}",
    )


def test_discover_reports_empty_root(workspace: WorkspaceBuilder, orchestrator: Orchestrator) -> None:
    scan = orchestrator.discover()

    assert scan.repositories == []
    assert orchestrator.log.lines[-1].startswith("No repositories (directories containing .git)")


def test_publish_then_verify_round_trip(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator, executor: FakeExecutor
) -> None:
    alpha = workspace.repo("alpha", {"README.md": "# alpha\n", "src/app.py": "print('hi')\n"})
    beta = workspace.repo("beta")

    published = orchestrator.publish_all()

    assert published.ok
    assert [outcome.repository for outcome in published.outcomes] == [alpha, beta]
    for outcome in published.outcomes:
        assert _stage_names(outcome) == ["generate", "sign", "publish"]
        state = executor.git.state(outcome.repository.path)
        assert state.commits == 1
        assert state.pushes == 1
        assert set(state.committed) == {"hashes.md5", "hashes.md5.asc"}
    manifest = (alpha.path / "hashes.md5").read_text(encoding="utf-8")
    assert [line.split("  ", 1)[1] for line in manifest.splitlines()] == [
        "./README.md",
        "./src/app.py",
    ]

    verified = orchestrator.verify_all()

    assert verified.ok
    for outcome in verified.outcomes:
        assert outcome.status(Stage.VERIFY_SIGNATURE) == "OK"
        assert outcome.status(Stage.VERIFY_INTEGRITY) == "OK"
    assert f"Result {alpha}: signature=OK, integrity=OK" in orchestrator.log.lines


def test_publish_log_sequence(workspace: WorkspaceBuilder, orchestrator: Orchestrator) -> None:
    repo = workspace.repo("alpha")

    orchestrator.publish_all()

    lines = orchestrator.log.lines
    expected_in_order = [
        "=== Generate & Sign ===",
        f"Processing: {repo}",
        f"Generated: {repo.path / 'hashes.md5'} (1 entries)",
        f"Signed: {repo.path / 'hashes.md5.asc'}",
        f"Push OK for {repo}",
        "=== Done ===",
    ]
    positions = [lines.index(line) for line in expected_in_order]
    assert positions == sorted(positions)
    assert "To origin" in lines


def test_second_publish_without_changes_is_a_noop(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator, executor: FakeExecutor
) -> None:
    repo = workspace.repo("alpha")
    orchestrator.publish_all()
    first_manifest = (repo.path / "hashes.md5").read_bytes()
    first_signature = (repo.path / "hashes.md5.asc").read_bytes()

    second = orchestrator.publish_all()

    assert second.ok
    assert (repo.path / "hashes.md5").read_bytes() == first_manifest
    assert (repo.path / "hashes.md5.asc").read_bytes() == first_signature
    assert executor.gpg.signed == 1
    state = executor.git.state(repo.path)
    assert state.commits == 1
    assert state.pushes == 1
    assert f"Signature still valid: {repo.path / 'hashes.md5.asc'}" in second.log
    assert f"Nothing to commit in {repo}" in second.log


def test_changed_file_is_resigned_and_committed(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator, executor: FakeExecutor
) -> None:
    repo = workspace.repo("alpha")
    orchestrator.publish_all()
    (repo.path / "README.md").write_text("# alpha, revised\n", encoding="utf-8")

    second = orchestrator.publish_all()

    assert second.ok
    assert executor.gpg.signed == 2
    assert executor.git.state(repo.path).commits == 2
    assert f"Signed: {repo.path / 'hashes.md5.asc'}" in second.log
    assert orchestrator.verify_all().ok


def test_signature_from_another_key_is_replaced(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator, executor: FakeExecutor
) -> None:
    repo = workspace.repo("alpha")
    orchestrator.publish_all()

    second = orchestrator.publish_all(key_id="AAAAAAAAAAAAAAAA")

    assert executor.gpg.signed == 2
    assert f"Signed: {repo.path / 'hashes.md5.asc'}" in second.log


def test_standalone_sign_always_resigns(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator, executor: FakeExecutor
) -> None:
    repo = workspace.repo("alpha")
    orchestrator.publish_all()

    result = orchestrator.sign(repo)

    assert result.ok
    assert executor.gpg.signed == 2


def test_concurrent_runs_report_only_their_own_log(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator
) -> None:
    workspace.repo("alpha")
    workspace.repo("beta")
    reports: list[RunReport] = []
    barrier = threading.Barrier(2)

    def run() -> None:
        barrier.wait()
        reports.append(orchestrator.publish_all())

    threads = [threading.Thread(target=run) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(reports) == 2
    for report in reports:
        assert report.log[0].startswith("Repositories found in")
        assert report.log.count("=== Generate & Sign ===") == 1
        assert report.log[-1] == "=== Done ==="
    assert len(reports[0].log) + len(reports[1].log) == len(orchestrator.log)


def test_modified_file_fails_only_integrity(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator
) -> None:
    repo = workspace.repo("alpha", {"a.txt": "alpha\n", "b.txt": "bravo\n"})
    orchestrator.publish_all()
    (repo.path / "b.txt").write_text("tampered\n", encoding="utf-8")

    report = orchestrator.verify_all()

    outcome = report.outcomes[0]
    assert not report.ok
    assert outcome.status(Stage.VERIFY_SIGNATURE) == "OK"
    assert outcome.status(Stage.VERIFY_INTEGRITY) == "FAIL"
    assert "./b.txt: FAILED" in orchestrator.log.lines
    assert f"Result {repo}: signature=OK, integrity=FAIL" in orchestrator.log.lines


def test_modified_manifest_fails_signature(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator
) -> None:
    repo = workspace.repo("alpha")
    orchestrator.publish_all()
    manifest = repo.path / "hashes.md5"
    original = manifest.read_text(encoding="utf-8")
    manifest.write_text(original.replace("README.md", "README.txt"), encoding="utf-8")

    report = orchestrator.verify_all()

    outcome = report.outcomes[0]
    assert outcome.status(Stage.VERIFY_SIGNATURE) == "FAIL"
    assert outcome.result(Stage.VERIFY_SIGNATURE).error is not None
    assert any(line.startswith(f"ERROR signature in {repo}") for line in orchestrator.log.lines)


def test_verify_failure_is_isolated_per_repository(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator
) -> None:
    good = workspace.repo("alpha")
    orchestrator.publish_all()
    bare = workspace.repo("beta")

    report = orchestrator.verify_all()

    statuses = {
        outcome.repository: (
            outcome.status(Stage.VERIFY_SIGNATURE),
            outcome.status(Stage.VERIFY_INTEGRITY),
        )
        for outcome in report.outcomes
    }
    assert statuses == {good: ("OK", "OK"), bare: ("FAIL", "FAIL")}
    assert [outcome.repository for outcome in report.failed()] == [bare]


def test_hash_failure_does_not_stop_other_repositories(workspace: WorkspaceBuilder) -> None:
    broken = workspace.repo("alpha", {"secret.txt": "x\n", "README.md": "# a\n"})
    healthy = workspace.repo("beta")
    executor = FakeExecutor(md5sum=FakeMd5sum(fail_for={"secret.txt"}))
    orchestrator = Orchestrator(HashSealConfig(root=workspace.root), executor=executor)

    report = orchestrator.publish_all()

    by_repo = {outcome.repository: outcome for outcome in report.outcomes}
    assert _stage_names(by_repo[broken]) == ["generate"]
    assert not by_repo[broken].ok
    assert _stage_names(by_repo[healthy]) == ["generate", "sign", "publish"]
    assert by_repo[healthy].ok
    assert not (broken.path / "hashes.md5").exists()
    signed = [argv[-1] for argv in executor.commands("gpg")]
    assert signed == [str(healthy.path / "hashes.md5")]
    assert any(
        line.startswith(f"ERROR generate in {broken}: Hashing ./secret.txt failed")
        for line in orchestrator.log.lines
    )


def test_git_failure_is_reported_with_output(workspace: WorkspaceBuilder) -> None:
    workspace.repo("alpha")
    executor = FakeExecutor(git=FakeGit(fail_on={"push"}))
    orchestrator = Orchestrator(HashSealConfig(root=workspace.root), executor=executor)

    report = orchestrator.publish_all()

    outcome = report.outcomes[0]
    assert outcome.status(Stage.PUBLISH) == "FAIL"
    assert outcome.result(Stage.PUBLISH).error.step == "push"
    assert "fatal: simulated push failure" in orchestrator.log.lines


def test_push_can_be_disabled(workspace: WorkspaceBuilder, executor: FakeExecutor) -> None:
    repo = workspace.repo("alpha")
    config = HashSealConfig(root=workspace.root)
    config.git.push = False

    report = Orchestrator(config, executor=executor).publish_all()

    assert report.ok
    assert executor.git.state(repo.path).pushes == 0
    assert all(argv[1] != "push" for argv in executor.commands("git"))


def test_discovery_failure_is_reported(tmp_path: Path, executor: FakeExecutor) -> None:
    orchestrator = Orchestrator(HashSealConfig(root=tmp_path / "missing"), executor=executor)

    report = orchestrator.publish_all()

    assert not report.ok
    assert report.outcomes == []
    assert report.discovery_error is not None
    assert orchestrator.log.lines[0].startswith("Discovery failed: Root path not found")
    assert executor.calls == []


def test_explicit_repositories_skip_discovery(
    workspace: WorkspaceBuilder, orchestrator: Orchestrator
) -> None:
    workspace.repo("alpha")
    beta = workspace.repo("beta")

    report = orchestrator.publish_all(repositories=[beta])

    assert [outcome.repository for outcome in report.outcomes] == [beta]
    assert not any(line.startswith("Repositories found") for line in orchestrator.log.lines)


def test_log_accumulates_across_runs(workspace: WorkspaceBuilder, orchestrator: Orchestrator) -> None:
    workspace.repo("alpha")

    orchestrator.publish_all()
    after_publish = len(orchestrator.log)
    orchestrator.verify_all()

    assert orchestrator.log.lines[after_publish - 1] == "=== Done ==="
    assert orchestrator.log.lines[-1] == "=== Verification done ==="


def test_library_backend_needs_no_checksum_tool(workspace: WorkspaceBuilder, executor: FakeExecutor) -> None:
    workspace.repo("alpha")
    config = HashSealConfig(root=workspace.root)
    config.hashing.backend = "library"
    orchestrator = Orchestrator(config, executor=executor)

    assert orchestrator.publish_all().ok
    assert orchestrator.verify_all().ok
    assert executor.commands("md5sum") == []
