"""
Canonical JSON and SHA-256 digests for the audit chain.

A payload is rendered with sorted keys and no whitespace, with Decimal,
datetime, UUID, Enum and collection values in a fixed form.  The same
logical payload therefore always yields the same digest, whichever
process wrote it.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS = "GENESIS"


def _canonical_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if isinstance(obj, tuple):
        return list(obj)
    raise TypeError(f"Cannot canonicalise {type(obj).__name__}")


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_canonical_value)


def json_column_value(data: dict[str, Any]) -> dict[str, Any]:
    """Plain-JSON copy of *data*, suitable for a JSON column and stable to re-hash."""
    return json.loads(canonical_json(data))


def payload_digest(payload: dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def link_digest(
    *,
    seq: int,
    entity_type: str,
    entity_id: UUID | str,
    action: str,
    actor_id: UUID | str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Digest of one audit link; the first link chains from ``GENESIS``."""
    parts = (
        str(seq),
        entity_type,
        str(entity_id),
        action,
        str(actor_id),
        payload_hash,
        prev_hash or GENESIS,
    )
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
