from __future__ import annotations

import hashlib
import hmac
import logging
import re
from pathlib import Path
from typing import Optional

from contract_engine.core.errors import IntegrityError

log = logging.getLogger("cengine.integrity")

MODE_ENFORCE = "enforce"
MODE_WARN = "warn"

_HEX_DIGEST = re.compile(r"[0-9a-f]{64}")


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def normalize_digest(expected: Optional[str]) -> str:
    """'SHA256:ABC…  ' -> 'abc…'"""
    d = (expected or "").strip().lower()
    if d.startswith("sha256:"):
        d = d[len("sha256:"):]
    return d


def is_hex_digest(digest: str) -> bool:
    return bool(_HEX_DIGEST.fullmatch(digest))


def verify_bytes(data: bytes, expected: Optional[str]) -> bool:
    digest = normalize_digest(expected)
    # anything that is not a well-formed digest is a mismatch
    if not is_hex_digest(digest):
        return False
    return hmac.compare_digest(sha256_bytes(data).encode("ascii"), digest.encode("ascii"))


def ensure_integrity(key: str, data: bytes, expected: Optional[str], mode: str = MODE_ENFORCE) -> str:
    """
    Check resolved source bytes against the declared digest.

    Returns the actual digest. In enforce mode a mismatch (or a missing
    declared digest) raises IntegrityError; in warn mode it is logged.
    """
    actual = sha256_bytes(data)
    if verify_bytes(data, expected):
        return actual

    if mode == MODE_WARN:
        log.warning(
            "Integrity mismatch tolerated key=%s expected=%s actual=%s",
            key,
            normalize_digest(expected) or None,
            actual,
        )
        return actual

    raise IntegrityError(key, normalize_digest(expected) or None, actual)
