"""Stable fingerprints of a layout's persistable content."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable, List

PERSISTED_KEYS = ("block_type", "field_id", "related_list_id", "label", "section", "display_order", "width")


class LayoutFingerprintError(TypeError):
    """Raised when a block carries a value that has no JSON form."""


def _scalar(value: Any, path: str) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float) and value == value and value not in (float("inf"), float("-inf")):
        return value
    raise LayoutFingerprintError(f"Unsupported value at {path}: {type(value).__name__}")


def canonical_layout(blocks: Iterable[dict]) -> List[dict]:
    """Project blocks onto their persisted keys, sorted by section then order.

    Block ids are left out: a temporary id and the durable id the server
    assigns for it describe the same placement.
    """
    rows = []
    for idx, block in enumerate(blocks or []):
        rows.append({key: _scalar(block.get(key), f"$[{idx}].{key}") for key in PERSISTED_KEYS})
    rows.sort(key=lambda r: (str(r.get("section") or ""), r.get("display_order") or 0))
    return rows


def layout_fingerprint(blocks: Iterable[dict]) -> str:
    data = json.dumps(
        canonical_layout(blocks),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(data).hexdigest()}"
