"""Git publishing of manifests and signatures."""

from .publisher import PublishOutcome, VersionControlPublisher

__all__ = ["PublishOutcome", "VersionControlPublisher"]
