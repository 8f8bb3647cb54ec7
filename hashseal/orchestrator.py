"""Pipeline orchestration for the publish and verify flows."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .config import HashSealConfig
from .errors import HashSealError
from .executor import CommandExecutor
from .git.publisher import VersionControlPublisher
from .gpg.signature import SignatureManager
from .hashing import build_hasher
from .integrity import IntegrityVerifier
from .logging import get_logger
from .manifest import ManifestGenerator
from .models import Repository, RepositoryOutcome, RunReport, Stage, StageResult
from .oplog import OperationLog
from .repo_scanner import RepositoryScanner, ScanResult

StageAction = Callable[[], Tuple[str, str]]


class Orchestrator:
    """Runs Publish-All and Verify-All over the repositories below a root.

    Every stage appends its tool output verbatim to ``self.log``. A failing
    stage only affects the repository being processed.
    """

    def __init__(
        self,
        config: HashSealConfig | None = None,
        *,
        executor: CommandExecutor | None = None,
        scanner: RepositoryScanner | None = None,
        generator: ManifestGenerator | None = None,
        signer: SignatureManager | None = None,
        verifier: IntegrityVerifier | None = None,
        publisher: VersionControlPublisher | None = None,
        log: OperationLog | None = None,
    ) -> None:
        self.config = config or HashSealConfig(root=Path.cwd())
        executor = executor or CommandExecutor()
        hasher = build_hasher(self.config.hashing, executor)
        manifest_cfg = self.config.manifest

        self.scanner = scanner or RepositoryScanner(marker=self.config.marker)
        self.generator = generator or ManifestGenerator(
            hasher,
            marker=self.config.marker,
            manifest_name=manifest_cfg.filename,
            signature_name=manifest_cfg.signature_filename,
        )
        self.signer = signer or SignatureManager(
            executor,
            gpg_binary=self.config.signing.gpg_binary,
            key_id=self.config.signing.key_id,
            pin_key_on_verify=self.config.signing.pin_key_on_verify,
        )
        self.verifier = verifier or IntegrityVerifier(hasher, manifest_name=manifest_cfg.filename)
        self.publisher = publisher or VersionControlPublisher(
            executor,
            commit_message=self.config.git.commit_message,
            push=self.config.git.push,
            marker=self.config.marker,
        )
        self.log = log or OperationLog()
        self.logger = get_logger("orchestrator")
        self._run_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Discovery

    def discover(self, root: str | Path | None = None) -> ScanResult:
        """Scan ``root`` (default: the configured root) and log the result."""
        scan = self.scanner.scan(root if root is not None else self.config.root)
        if scan.error is not None:
            self.log.append(f"Discovery failed: {scan.error}")
        elif not scan.repositories:
            self.log.append(
                f"No repositories (directories containing {self.config.marker}) found in {scan.root}"
            )
        else:
            self.log.append(f"Repositories found in {scan.root}:")
            for repository in scan.repositories:
                self.log.append(f"  - {repository}")
        return scan

    # ------------------------------------------------------------------
    # Bulk operations

    def publish_all(
        self,
        root: str | Path | None = None,
        *,
        repositories: Optional[Iterable[Repository]] = None,
        key_id: str | None = None,
    ) -> RunReport:
        """Generate, sign and publish every repository in turn."""
        with self._run_lock:
            start = len(self.log)
            report, snapshot = self._start("publish", root, repositories)
            self.log.append("=== Generate & Sign ===")
            for repository in snapshot:
                report.outcomes.append(self.publish_repository(repository, key_id=key_id))
            self.log.append("=== Done ===")
            report.log = list(self.log.tail(start))
        self._log_summary(report)
        return report

    def verify_all(
        self,
        root: str | Path | None = None,
        *,
        repositories: Optional[Iterable[Repository]] = None,
        key_id: str | None = None,
    ) -> RunReport:
        """Check signature and integrity of every repository in turn."""
        with self._run_lock:
            start = len(self.log)
            report, snapshot = self._start("verify", root, repositories)
            self.log.append("=== Verify ===")
            for repository in snapshot:
                report.outcomes.append(self.verify_repository(repository, key_id=key_id))
            self.log.append("=== Verification done ===")
            report.log = list(self.log.tail(start))
        self._log_summary(report)
        return report

    # ------------------------------------------------------------------
    # Per-repository pipelines

    def publish_repository(
        self, repository: Repository, *, key_id: str | None = None
    ) -> RepositoryOutcome:
        """Generate → Sign → Publish, stopping at the first failed stage."""
        outcome = RepositoryOutcome(repository=repository)
        self.log.append(f"Processing: {repository}")
        steps: Sequence[Callable[[], StageResult]] = (
            lambda: self.generate(repository),
            lambda: self.sign(repository, key_id=key_id, keep_current=True),
            lambda: self.publish(repository),
        )
        for step in steps:
            result = step()
            outcome.stages.append(result)
            if not result.ok:
                break
        return outcome

    def verify_repository(
        self, repository: Repository, *, key_id: str | None = None
    ) -> RepositoryOutcome:
        """Run both checks; a bad signature does not skip the integrity check."""
        outcome = RepositoryOutcome(repository=repository)
        self.log.append(f"Verifying: {repository}")
        outcome.stages.append(self.verify_signature(repository, key_id=key_id))
        outcome.stages.append(self.verify_integrity(repository))
        self.log.append(
            f"Result {repository}: "
            f"signature={outcome.status(Stage.VERIFY_SIGNATURE)}, "
            f"integrity={outcome.status(Stage.VERIFY_INTEGRITY)}"
        )
        return outcome

    # ------------------------------------------------------------------
    # Single stages

    def generate(self, repository: Repository) -> StageResult:
        def action() -> Tuple[str, str]:
            manifest = self.generator.generate(repository)
            return f"Generated: {manifest.path} ({len(manifest)} entries)", ""

        return self._run_stage(Stage.GENERATE, repository, action)

    def sign(
        self,
        repository: Repository,
        *,
        key_id: str | None = None,
        keep_current: bool = False,
    ) -> StageResult:
        """Sign the manifest.

        With ``keep_current`` a signature that still verifies over the
        manifest bytes is left untouched.
        """

        def action() -> Tuple[str, str]:
            manifest = self.generator.manifest_path(repository)
            target = self.generator.signature_path(repository)
            if keep_current and self.signer.is_current(
                manifest, signature_path=target, key_id=key_id
            ):
                return f"Signature still valid: {target}", ""
            signature = self.signer.sign(manifest, signature_path=target, key_id=key_id)
            return f"Signed: {signature}", ""

        return self._run_stage(Stage.SIGN, repository, action)

    def publish(self, repository: Repository) -> StageResult:
        def action() -> Tuple[str, str]:
            outcome = self.publisher.publish(
                repository,
                [
                    self.generator.manifest_path(repository),
                    self.generator.signature_path(repository),
                ],
            )
            return outcome.describe(), outcome.output

        return self._run_stage(Stage.PUBLISH, repository, action)

    def verify_signature(
        self, repository: Repository, *, key_id: str | None = None
    ) -> StageResult:
        def action() -> Tuple[str, str]:
            verification = self.signer.verify(
                self.generator.manifest_path(repository),
                signature_path=self.generator.signature_path(repository),
                key_id=key_id,
            )
            verification.raise_for_status()
            return verification.describe(), verification.output

        return self._run_stage(Stage.VERIFY_SIGNATURE, repository, action)

    def verify_integrity(self, repository: Repository) -> StageResult:
        def action() -> Tuple[str, str]:
            report = self.verifier.verify(repository)
            report.raise_for_status()
            return report.describe(), report.output

        return self._run_stage(Stage.VERIFY_INTEGRITY, repository, action)

    # ------------------------------------------------------------------
    # Internals

    def _start(
        self,
        operation: str,
        root: str | Path | None,
        repositories: Optional[Iterable[Repository]],
    ) -> Tuple[RunReport, list[Repository]]:
        if repositories is not None:
            snapshot = list(repositories)
            return RunReport(operation=operation, root=Path(root) if root else None), snapshot
        scan = self.discover(root)
        report = RunReport(
            operation=operation,
            root=scan.root,
            discovery_error=str(scan.error) if scan.error is not None else None,
        )
        return report, list(scan.repositories)

    def _run_stage(
        self, stage: Stage, repository: Repository, action: StageAction
    ) -> StageResult:
        try:
            detail, output = action()
        except HashSealError as exc:
            self.logger.warning("%s failed for %s: %s", stage.value, repository, exc)
            self.log.append(f"ERROR {stage.value} in {repository}: {exc}")
            self.log.extend(exc.output)
            return StageResult(
                stage=stage, ok=False, detail=str(exc), output=exc.output, error=exc
            )
        self.logger.debug("%s succeeded for %s", stage.value, repository)
        self.log.extend(output)
        self.log.append(detail)
        return StageResult(stage=stage, ok=True, detail=detail, output=output)

    def _log_summary(self, report: RunReport) -> None:
        failed = report.failed()
        self.logger.info(
            "%s finished: %d repositories, %d failed",
            report.operation,
            len(report.outcomes),
            len(failed),
        )


__all__ = ["Orchestrator"]
