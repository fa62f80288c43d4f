"""layoutdesk kernel utilities."""

from .fingerprint import LayoutFingerprintError, canonical_layout, layout_fingerprint

__all__ = [
    "LayoutFingerprintError",
    "canonical_layout",
    "layout_fingerprint",
]
