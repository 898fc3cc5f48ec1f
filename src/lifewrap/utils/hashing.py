"""Content fingerprints used to decide whether a summary must be regenerated."""

from __future__ import annotations

import hashlib
import json
from typing import Iterable, Sequence

HASH_DELIMITER = "\x1e"
HASH_HEX_LENGTH = 16


def compute_input_hash(texts: Sequence[str]) -> str:
    """Return a short, order-sensitive SHA-256 fingerprint of ``texts``.

    The texts are joined with a fixed record separator before hashing, so identical ordered
    input always produces the same 16-character hex digest across processes.
    """

    payload = HASH_DELIMITER.join(texts).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:HASH_HEX_LENGTH]


def source_ids_to_json(ids: Iterable[object]) -> str:
    """Serialise child identifiers, preserving order, for provenance tracking."""

    try:
        return json.dumps([str(identifier) for identifier in ids])
    except (TypeError, ValueError):
        return "[]"


def source_ids_from_json(payload: str | None) -> list[str]:
    """Inverse of :func:`source_ids_to_json`; malformed payloads yield an empty list."""

    if not payload:
        return []
    try:
        decoded = json.loads(payload)
    except ValueError:
        return []
    if not isinstance(decoded, list):
        return []
    return [str(item) for item in decoded]


__all__ = ["HASH_HEX_LENGTH", "compute_input_hash", "source_ids_from_json", "source_ids_to_json"]
