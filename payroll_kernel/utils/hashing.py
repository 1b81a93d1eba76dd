"""
Deterministic hashing for rule-set checksums and payroll run fingerprints.

Both hashes are SHA-256 over one canonical JSON text: sorted keys, no
whitespace, Decimals normalized (``1.50`` and ``1.5`` hash alike), dates
and datetimes in ISO form, Enums by value.  A recomputed Draft run is
compared with its previous computation by fingerprint alone, so nothing
time- or identity-dependent may reach ``hash_payroll_run``.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _encode(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, date):  # datetime included
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonicalize_json(data: Any) -> str:
    """Canonical JSON text of ``data``; raises TypeError for unknown types."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def hash_payload(payload: dict) -> str:
    """Hex SHA-256 of the canonical JSON of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_payroll_run(ledgers: list[dict], totals: dict) -> str:
    """
    Fingerprint of a computed run.

    Ledger order is significant (employees are in canonical order); run id,
    status and timestamps are not part of the input.
    """
    return hash_payload({"ledgers": ledgers, "totals": totals})
