"""Detached GnuPG signatures over manifest files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..errors import SignError, VerifyError
from ..executor import CommandExecutor
from ..logging import get_logger
from .status import SignatureStatus, SignatureVerdict, classify


@dataclass
class SignatureVerification:
    """Verdict plus the raw ``gpg --verify`` output for one manifest."""

    manifest_path: Path
    signature_path: Path
    verdict: SignatureVerdict
    output: str = ""
    exit_code: Optional[int] = None

    @property
    def valid(self) -> bool:
        return self.verdict.valid

    @property
    def status(self) -> SignatureStatus:
        return self.verdict.status

    def describe(self) -> str:
        if self.valid:
            signer = self.verdict.fingerprint or self.verdict.key_id
            suffix = f" (key {signer})" if signer else ""
            return f"Valid signature on {self.manifest_path}{suffix}"
        if self.status is SignatureStatus.MISSING:
            return f"Missing signature or manifest next to {self.manifest_path}"
        return f"Signature not valid or not verifiable on {self.manifest_path}: {self.status.value}"

    def raise_for_status(self) -> None:
        if not self.valid:
            raise VerifyError(self.describe(), output=self.output)


class SignatureManager:
    """Signs manifests and verifies their detached signatures with ``gpg``."""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        gpg_binary: str = "gpg",
        key_id: str | None = None,
        pin_key_on_verify: bool = False,
    ) -> None:
        self.executor = executor or CommandExecutor()
        self.gpg_binary = gpg_binary
        self.key_id = key_id
        self.pin_key_on_verify = pin_key_on_verify
        self.logger = get_logger("gpg")

    @staticmethod
    def signature_path_for(manifest_path: Path) -> Path:
        return manifest_path.with_name(f"{manifest_path.name}.asc")

    def sign(
        self,
        manifest_path: Path,
        *,
        signature_path: Path | None = None,
        key_id: str | None = None,
    ) -> Path:
        """Write a detached armored signature for ``manifest_path``.

        On failure any file at the signature path is removed and
        ``SignError`` is raised.
        """
        target = signature_path or self.signature_path_for(manifest_path)
        key = key_id if key_id is not None else self.key_id
        if not manifest_path.is_file():
            self._discard(target)
            raise SignError(f"Manifest not found: {manifest_path}")

        args: List[str] = [self.gpg_binary, "--batch", "--yes", "--armor", "--detach-sign"]
        if key:
            args.extend(["--local-user", key])
        args.extend(["--output", str(target), str(manifest_path)])

        result = self.executor.run(args, cwd=manifest_path.parent)
        if not result.ok:
            self._discard(target)
            raise SignError(
                f"gpg sign failed (rc={result.exit_code}) for {manifest_path}",
                output=result.output,
            )
        if not target.is_file():
            raise SignError(
                f"gpg reported success but produced no signature at {target}",
                output=result.output,
            )
        self.logger.debug("Signed %s -> %s", manifest_path, target)
        return target

    def verify(
        self,
        manifest_path: Path,
        *,
        signature_path: Path | None = None,
        key_id: str | None = None,
    ) -> SignatureVerification:
        """Verify the detached signature over ``manifest_path``.

        ``key_id`` only changes how gpg formats key ids unless key pinning is
        enabled, in which case a good signature from another key is reported
        as ``UNTRUSTED_KEY``.
        """
        key = key_id if key_id is not None else self.key_id
        pinned = key if self.pin_key_on_verify else None
        return self._verify(manifest_path, signature_path, key, pinned)

    def is_current(
        self,
        manifest_path: Path,
        *,
        signature_path: Path | None = None,
        key_id: str | None = None,
    ) -> bool:
        """Return True when the existing signature is valid for the manifest as it is now.

        When a key is given the signature must also have been made by it.
        """
        key = key_id if key_id is not None else self.key_id
        verification = self._verify(manifest_path, signature_path, key, key)
        return verification.valid

    def _verify(
        self,
        manifest_path: Path,
        signature_path: Path | None,
        key: str | None,
        pinned: str | None,
    ) -> SignatureVerification:
        signature = signature_path or self.signature_path_for(manifest_path)
        if not manifest_path.is_file() or not signature.is_file():
            return SignatureVerification(
                manifest_path=manifest_path,
                signature_path=signature,
                verdict=SignatureVerdict(status=SignatureStatus.MISSING),
            )

        args: List[str] = [self.gpg_binary, "--batch", "--status-fd", "1"]
        if key:
            args.extend(["--keyid-format", "LONG"])
        args.extend(["--verify", str(signature), str(manifest_path)])

        result = self.executor.run(args, cwd=manifest_path.parent)
        verdict = classify(result.exit_code, result.output, pinned_key=pinned)
        if verdict.heuristic:
            self.logger.debug("gpg emitted no status lines; used text heuristic for %s", signature)
        return SignatureVerification(
            manifest_path=manifest_path,
            signature_path=signature,
            verdict=verdict,
            output=result.output,
            exit_code=result.exit_code,
        )

    def _discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            self.logger.warning("Could not remove stale signature %s: %s", path, exc)
            return
        self.logger.debug("Removed stale signature %s", path)


__all__ = ["SignatureManager", "SignatureVerification"]
