"""GnuPG signing and verification."""

from .signature import SignatureManager, SignatureVerification
from .status import SignatureStatus, SignatureVerdict, classify

__all__ = [
    "SignatureManager",
    "SignatureStatus",
    "SignatureVerdict",
    "SignatureVerification",
    "classify",
]
