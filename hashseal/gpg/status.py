"""Classification of ``gpg --verify`` results.

GnuPG prints machine-readable ``[GNUPG:] KEYWORD args...`` lines on the file
descriptor given to ``--status-fd``. Verdicts are derived from those lines.
Only when a run produced none of them (an old or wrapped binary) is the human
readable "Good signature" text consulted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

STATUS_PREFIX = "[GNUPG:] "
GOOD_SIGNATURE_MARKER = "Good signature"

_HEX_KEY = re.compile(r"^[0-9A-F]{8,40}$")


class SignatureStatus(str, Enum):
    VALID = "valid"
    BAD = "bad"
    NO_PUBLIC_KEY = "no-public-key"
    EXPIRED = "expired"
    REVOKED = "revoked"
    UNTRUSTED_KEY = "untrusted-key"
    MISSING = "missing"
    ERROR = "error"


@dataclass(frozen=True)
class StatusLine:
    keyword: str
    args: Tuple[str, ...]


@dataclass(frozen=True)
class SignatureVerdict:
    """Classified outcome of one verification."""

    status: SignatureStatus
    key_id: Optional[str] = None
    fingerprint: Optional[str] = None
    primary_fingerprint: Optional[str] = None
    user_id: Optional[str] = None
    heuristic: bool = False

    @property
    def valid(self) -> bool:
        return self.status is SignatureStatus.VALID


def parse_status_lines(output: str) -> List[StatusLine]:
    lines: List[StatusLine] = []
    for raw in output.splitlines():
        if not raw.startswith(STATUS_PREFIX):
            continue
        parts = raw[len(STATUS_PREFIX):].split(" ")
        if not parts or not parts[0]:
            continue
        lines.append(StatusLine(keyword=parts[0], args=tuple(parts[1:])))
    return lines


def classify(exit_code: int, output: str, *, pinned_key: str | None = None) -> SignatureVerdict:
    """Turn a verification run into a verdict.

    ``pinned_key`` restricts VALID to signatures made by that key (fingerprint,
    long/short key id suffix, or a user id substring).
    """
    status_lines = parse_status_lines(output)
    if not status_lines:
        return _classify_text(exit_code, output, pinned_key)

    by_keyword = {line.keyword: line for line in status_lines}
    key_id = fingerprint = primary = user_id = None

    for keyword in ("GOODSIG", "BADSIG", "EXPSIG", "EXPKEYSIG", "REVKEYSIG", "ERRSIG"):
        line = by_keyword.get(keyword)
        if line is not None and line.args:
            key_id = line.args[0]
            if keyword != "ERRSIG" and len(line.args) > 1:
                user_id = " ".join(line.args[1:])
            break
    validsig = by_keyword.get("VALIDSIG")
    if validsig is not None and validsig.args:
        fingerprint = validsig.args[0]
        primary = validsig.args[-1] if len(validsig.args) >= 10 else None

    def verdict(status: SignatureStatus) -> SignatureVerdict:
        return SignatureVerdict(
            status=status,
            key_id=key_id,
            fingerprint=fingerprint,
            primary_fingerprint=primary,
            user_id=user_id,
        )

    if "BADSIG" in by_keyword:
        return verdict(SignatureStatus.BAD)
    if "REVKEYSIG" in by_keyword:
        return verdict(SignatureStatus.REVOKED)
    if "EXPSIG" in by_keyword or "EXPKEYSIG" in by_keyword:
        return verdict(SignatureStatus.EXPIRED)
    if "ERRSIG" in by_keyword or "NO_PUBKEY" in by_keyword:
        return verdict(SignatureStatus.NO_PUBLIC_KEY)
    if "GOODSIG" in by_keyword and exit_code == 0:
        result = verdict(SignatureStatus.VALID)
        if pinned_key and not key_matches(pinned_key, result):
            return verdict(SignatureStatus.UNTRUSTED_KEY)
        return result
    return verdict(SignatureStatus.ERROR)


def key_matches(pinned_key: str, verdict: SignatureVerdict) -> bool:
    """Return True when the signer identified in ``verdict`` is ``pinned_key``."""
    normalized = normalize_key_id(pinned_key)
    if _HEX_KEY.match(normalized):
        candidates: Sequence[Optional[str]] = (
            verdict.fingerprint,
            verdict.primary_fingerprint,
            verdict.key_id,
        )
        return any(
            candidate is not None and candidate.upper().endswith(normalized)
            for candidate in candidates
        )
    return verdict.user_id is not None and pinned_key.strip().lower() in verdict.user_id.lower()


def normalize_key_id(key_id: str) -> str:
    value = key_id.strip().replace(" ", "").upper()
    return value[2:] if value.startswith("0X") else value


def _classify_text(exit_code: int, output: str, pinned_key: str | None) -> SignatureVerdict:
    if exit_code != 0 or GOOD_SIGNATURE_MARKER not in output:
        return SignatureVerdict(status=SignatureStatus.ERROR, heuristic=True)
    if pinned_key:
        compact = output.replace(" ", "").upper()
        normalized = normalize_key_id(pinned_key)
        if normalized not in compact and pinned_key.strip().lower() not in output.lower():
            return SignatureVerdict(status=SignatureStatus.UNTRUSTED_KEY, heuristic=True)
    return SignatureVerdict(status=SignatureStatus.VALID, heuristic=True)


__all__ = [
    "GOOD_SIGNATURE_MARKER",
    "SignatureStatus",
    "SignatureVerdict",
    "StatusLine",
    "classify",
    "key_matches",
    "normalize_key_id",
    "parse_status_lines",
]
