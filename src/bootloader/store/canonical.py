"""Fingerprints for artifact bytes and plan inputs.

Artifact fingerprints are sha256 over the exact bytes on disk. Plan input
hashes go through canonical JSON first so dict ordering never changes them.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TypeAlias

from pydantic import BaseModel

PlanInput: TypeAlias = (
    BaseModel
    | Mapping[str, "PlanInput"]
    | Sequence["PlanInput"]
    | str
    | int
    | float
    | bool
    | None
)

_CHUNK = 65536


def canonical_json_bytes(obj: PlanInput) -> bytes:
    """Serialize obj as sorted, compact UTF-8 JSON.

    Raises:
        TypeError: If obj holds a value JSON cannot represent.
    """
    data = obj.model_dump(mode="json") if isinstance(obj, BaseModel) else obj
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_payload(payload: bytes | PlanInput) -> str:
    """sha256 of raw bytes, or of the canonical JSON of anything else."""
    if isinstance(payload, bytes):
        return sha256_bytes(payload)
    return sha256_bytes(canonical_json_bytes(payload))


def sha256_file(path: Path) -> str:
    """Fingerprint of the file currently at path."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while chunk := handle.read(_CHUNK):
            digest.update(chunk)
    return digest.hexdigest()
