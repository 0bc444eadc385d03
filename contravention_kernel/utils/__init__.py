"""Utility modules for the contravention kernel."""

from contravention_kernel.utils.hashing import (
    canonical_json,
    json_column_value,
    link_digest,
    payload_digest,
)

__all__ = [
    "canonical_json",
    "json_column_value",
    "link_digest",
    "payload_digest",
]
