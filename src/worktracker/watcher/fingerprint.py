"""Content fingerprints for detecting unchanged screens."""

from __future__ import annotations

import hashlib


def fingerprint(data: bytes | None) -> str | None:
    """MD5 hex digest of encoded image bytes.

    Returns None when there is nothing to hash, meaning no dedup check is
    possible for the sample.
    """
    if not data:
        return None
    return hashlib.md5(data, usedforsecurity=False).hexdigest()
