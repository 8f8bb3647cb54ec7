"""Typed failures raised by the individual pipeline stages."""

from __future__ import annotations


class HashSealError(RuntimeError):
    """Base class for stage failures; ``output`` holds the tool diagnostics."""

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class DiscoveryError(HashSealError):
    """Raised when the repository root cannot be listed."""


class ManifestWriteError(HashSealError):
    """Raised when the manifest file cannot be created or replaced."""


class HashToolError(HashSealError):
    """Raised when hashing a single file fails."""


class SignError(HashSealError):
    """Raised when the manifest cannot be signed."""


class VerifyError(HashSealError):
    """Raised when a signature is invalid or cannot be verified."""


class IntegrityMismatch(HashSealError):
    """Raised when recorded hashes no longer match the files on disk."""

    def __init__(
        self, message: str, *, output: str = "", paths: tuple[str, ...] = ()
    ) -> None:
        super().__init__(message, output=output)
        self.paths = paths


class VersionControlError(HashSealError):
    """Raised when staging, committing or pushing fails."""

    def __init__(self, message: str, *, output: str = "", step: str = "") -> None:
        super().__init__(message, output=output)
        self.step = step


__all__ = [
    "DiscoveryError",
    "HashSealError",
    "HashToolError",
    "IntegrityMismatch",
    "ManifestWriteError",
    "SignError",
    "VerifyError",
    "VersionControlError",
]
