"""Artifact model and the per-artifact ownership state machine.

An artifact starts GENERATED: the generator owns its bytes and may rewrite
them. Once the bytes on disk stop matching the recorded fingerprint the
artifact becomes USER owned and stays that way until an explicit reset.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel

from bootloader.store.canonical import sha256_bytes, sha256_file
from bootloader.store.paths import resolve_store_path


class ArtifactKind(StrEnum):
    """Kinds of generated content in the Artifact Store."""

    CREATE_SCRIPT = "create_script"
    DELETE_SCRIPT = "delete_script"
    INFRA_TEMPLATE = "infra_template"
    VARS_STORE = "vars_store"
    MANIFEST = "manifest"


class ArtifactOwner(StrEnum):
    """Who owns an artifact's bytes. GENERATED -> USER only."""

    GENERATED = "generated"
    USER = "user"


EXECUTABLE_KINDS = frozenset({ArtifactKind.CREATE_SCRIPT, ArtifactKind.DELETE_SCRIPT})


class ArtifactRecord(BaseModel):
    """Persisted bookkeeping for one artifact, stored in the Environment Record."""

    name: str
    kind: ArtifactKind
    rel_path: str
    fingerprint: str
    inputs_hash: str = ""
    owner: ArtifactOwner = ArtifactOwner.GENERATED
    write_once: bool = False
    generated_at: str = ""


class Artifact(BaseModel):
    """A named unit of desired content, as computed by the generator."""

    name: str
    kind: ArtifactKind
    rel_path: str
    content: bytes
    inputs_hash: str = ""
    write_once: bool = False
    sensitive: bool = False

    @property
    def fingerprint(self) -> str:
        """Content hash of the desired bytes."""
        return sha256_bytes(self.content)

    @property
    def mode(self) -> int:
        """File permission bits for this artifact. Credentials are owner-only."""
        if self.kind in EXECUTABLE_KINDS:
            return 0o755
        if self.sensitive or self.kind == ArtifactKind.VARS_STORE:
            return 0o600
        return 0o644


class ArtifactStatus(BaseModel):
    """Observed status of an artifact on disk."""

    name: str
    kind: ArtifactKind
    rel_path: str
    owner: ArtifactOwner
    exists: bool
    touched: bool


def on_disk_fingerprint(state_dir: Path, rel_path: str) -> str | None:
    """Return sha256 of the file at rel_path, or None when it does not exist."""
    path = resolve_store_path(state_dir, rel_path)
    if not path.is_file():
        return None
    return sha256_file(path)


def is_user_modified(state_dir: Path, record: ArtifactRecord) -> bool:
    """True when the artifact is owned by the operator.

    Ownership transfers the first time the on-disk bytes diverge from the
    recorded fingerprint. A deleted file is not a modification.
    """
    if record.owner == ArtifactOwner.USER:
        return True
    current = on_disk_fingerprint(state_dir, record.rel_path)
    return current is not None and current != record.fingerprint


def inspect_artifacts(
    state_dir: Path, records: dict[str, ArtifactRecord]
) -> list[ArtifactStatus]:
    """Describe every recorded artifact as it currently exists on disk."""
    statuses: list[ArtifactStatus] = []
    for name in sorted(records):
        record = records[name]
        current = on_disk_fingerprint(state_dir, record.rel_path)
        touched = current is not None and current != record.fingerprint
        owner = (
            ArtifactOwner.USER
            if record.owner == ArtifactOwner.USER or touched
            else ArtifactOwner.GENERATED
        )
        statuses.append(
            ArtifactStatus(
                name=name,
                kind=record.kind,
                rel_path=record.rel_path,
                owner=owner,
                exists=current is not None,
                touched=touched,
            )
        )
    return statuses
