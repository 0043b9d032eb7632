"""Deterministic hashing for evidence, claims and the stage chain."""

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

HASH_PREFIX = "sha256:"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not serializable")


def canonical_json(payload: Any) -> str:
    """Serialize a payload with sorted keys and no insignificant whitespace."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def compute_hash(data: Union[str, bytes]) -> str:
    """Hash raw data, returning ``sha256:<hex>``."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def strip_hash_prefix(value: str) -> str:
    """Bare lowercase hex digest of a recorded hash, prefix optional."""
    value = value.strip().lower()
    if value.startswith(HASH_PREFIX):
        value = value[len(HASH_PREFIX):]
    return value


def hashes_equal(recorded: Optional[str], computed: Optional[str]) -> bool:
    if not recorded or not computed:
        return False
    return strip_hash_prefix(recorded) == strip_hash_prefix(computed)


def claim_content_hash(text: str, source_id: str) -> str:
    """Deduplication hash over lower-cased, whitespace-collapsed text and the source id."""
    collapsed = " ".join(text.lower().split())
    return hashlib.sha256(f"{collapsed}:{source_id}".encode("utf-8")).hexdigest()[:16]


def stage_hash(stage: str, inputs: Any, outputs: Any, previous_hash: Optional[str]) -> str:
    """Hash one stage over its name, inputs, outputs and the previous stage hash."""
    return compute_hash(canonical_json({
        "stage": stage,
        "inputs": inputs,
        "outputs": outputs,
        "previous_hash": previous_hash,
    }))


def chain_hash(stage_hashes: Iterable[str]) -> str:
    """Hash the ordered list of stage hashes."""
    return compute_hash("|".join(stage_hashes))
