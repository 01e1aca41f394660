"""
Signature matching.

A file is considered malicious when at least ``min_hits`` distinct
signatures occur in it as plain substrings. No regex, no decoding.
"""

from typing import Iterable, List, Optional

DEFAULT_MIN_HITS = 2


def _encode(signatures: Iterable[Optional[str]]) -> List[bytes]:
    """Drop empty entries and duplicates, keep first-seen order."""
    seen = set()
    encoded: List[bytes] = []
    for sig in signatures or ():
        if not sig:
            continue
        raw = sig.encode("utf-8") if isinstance(sig, str) else bytes(sig)
        if raw not in seen:
            seen.add(raw)
            encoded.append(raw)
    return encoded


def count_hits(content: bytes, signatures: Iterable[Optional[str]]) -> int:
    """Number of distinct signatures present in content."""
    if not content:
        return 0
    return sum(1 for sig in _encode(signatures) if sig in content)


def matches(
    content: bytes,
    signatures: Iterable[Optional[str]],
    min_hits: int = DEFAULT_MIN_HITS,
) -> bool:
    """
    Decide whether content carries enough signatures to be malware.

    Stops scanning as soon as ``min_hits`` distinct signatures have been
    seen. Empty content and empty signature sets never match.
    """
    if not content:
        return False

    needles = _encode(signatures)
    if not needles:
        return False

    hits = 0
    for sig in needles:
        if sig in content:
            hits += 1
            if hits >= min_hits:
                return True
    return False


class SignatureMatcher:
    """Matcher bound to a configured hit threshold."""

    def __init__(self, min_hits: int = DEFAULT_MIN_HITS):
        if min_hits < 1:
            raise ValueError("min_hits must be at least 1")
        self.min_hits = min_hits

    def matches(self, content: bytes, signatures: Iterable[Optional[str]]) -> bool:
        return matches(content, signatures, self.min_hits)
