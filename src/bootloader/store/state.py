"""Environment Record model and atomic persistence."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic.types import JsonValue

from bootloader.errors import StateDecodeError, StoreUnwritable
from bootloader.store.artifacts import ArtifactRecord
from bootloader.store.atomic_write import atomic_write_json
from bootloader.store.paths import VARS_DIR, get_state_path

STATE_SCHEMA_VERSION = 1


class IaaS(StrEnum):
    """Supported infrastructure providers."""

    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class Phase(StrEnum):
    """Environment lifecycle phase."""

    UNPLANNED = "unplanned"
    PLANNED = "planned"
    UP = "up"
    DESTROYED = "destroyed"


_PHASE_RANK = {Phase.UNPLANNED: 0, Phase.PLANNED: 1, Phase.UP: 2}


class LoadBalancerType(StrEnum):
    """Load balancer classes that can be requested at plan time."""

    CF = "cf"
    CONCOURSE = "concourse"


class LoadBalancerDeclaration(BaseModel):
    """Requested load balancer. Cert and key are store-relative once planned."""

    type: LoadBalancerType
    cert_path: str | None = None
    key_path: str | None = None
    domain: str | None = None


class StepStatus(StrEnum):
    """Pipeline step checkpoint status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepCheckpoint(BaseModel):
    """Per-step execution record, persisted after every step."""

    step: str
    status: StepStatus = StepStatus.PENDING
    attempts: int = 0
    started_at: str | None = None
    finished_at: str | None = None
    last_error: str | None = None
    log_paths: dict[str, str] = Field(default_factory=dict)


class FailureRecord(BaseModel):
    """The most recent pipeline failure, kept until the phase next succeeds."""

    phase: str
    step: str
    message: str
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    occurred_at: str = ""


class JumpboxInfo(BaseModel):
    """Jumpbox addressing, known after the jumpbox step."""

    url: str | None = None
    private_key_ref: str | None = None


class DirectorInfo(BaseModel):
    """Director addressing and credentials, known after the director step."""

    address: str | None = None
    username: str = "admin"
    password: str | None = None
    ca_cert: str | None = None


class ReconciliationRecord(BaseModel):
    """Outcome of the last cloud configuration reconciliation."""

    extension_names: list[str] = Field(default_factory=list)
    changed: bool = False
    uploaded: bool = False
    error: str | None = None
    reconciled_at: str = ""


class EnvironmentRecord(BaseModel):
    """One bootstrapped environment. Stored at <state-dir>/state.json."""

    schema_version: int = STATE_SCHEMA_VERSION
    env_id: str
    iaas: IaaS
    region: str
    phase: Phase = Phase.UNPLANNED
    load_balancers: list[LoadBalancerDeclaration] = Field(default_factory=list)
    vars_dir: str = VARS_DIR
    outputs: dict[str, JsonValue] = Field(default_factory=dict)
    jumpbox: JumpboxInfo = Field(default_factory=JumpboxInfo)
    director: DirectorInfo = Field(default_factory=DirectorInfo)
    artifacts: dict[str, ArtifactRecord] = Field(default_factory=dict)
    steps: dict[str, StepCheckpoint] = Field(default_factory=dict)
    last_failure: FailureRecord | None = None
    cloud_config: ReconciliationRecord | None = None
    created_at: str = ""
    updated_at: str = ""

    def lb_types(self) -> list[LoadBalancerType]:
        """Declared load balancer types, in declaration order."""
        return [lb.type for lb in self.load_balancers]

    def advance_phase(self, target: Phase) -> None:
        """Move forward to target. Never moves backward; DESTROYED is set by down."""
        if target == Phase.DESTROYED:
            self.phase = Phase.DESTROYED
            return
        current_rank = _PHASE_RANK.get(self.phase, -1)
        if _PHASE_RANK[target] > current_rank:
            self.phase = target

    def checkpoint(self, step: str) -> StepCheckpoint:
        """Return the checkpoint for step, creating it when missing."""
        if step not in self.steps:
            self.steps[step] = StepCheckpoint(step=step)
        return self.steps[step]

    def touch(self) -> None:
        """Stamp updated_at."""
        self.updated_at = now_iso()

    def to_file_dict(self) -> dict[str, Any]:
        """Serialize for JSON file."""
        return self.model_dump(mode="json")

    @classmethod
    def from_file_dict(cls, d: dict[str, Any]) -> EnvironmentRecord:
        """Deserialize from JSON file."""
        return cls.model_validate(d)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def new_environment_record(env_id: str, iaas: IaaS, region: str) -> EnvironmentRecord:
    """Create an UNPLANNED record for a first plan invocation."""
    now = now_iso()
    return EnvironmentRecord(
        env_id=env_id,
        iaas=iaas,
        region=region,
        phase=Phase.UNPLANNED,
        created_at=now,
        updated_at=now,
    )


def load_state(state_dir: Path) -> EnvironmentRecord | None:
    """Load the Environment Record. Returns None if the file does not exist.

    Raises:
        StateDecodeError: If the file exists but cannot be decoded or validated.
    """
    path = get_state_path(state_dir)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise StateDecodeError(f"Invalid state JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise StateDecodeError(f"Invalid state in {path}: root must be an object")
    try:
        return EnvironmentRecord.from_file_dict(data)
    except ValidationError as exc:
        raise StateDecodeError(f"Invalid state in {path}: {exc}") from exc


def save_state_atomic(state_dir: Path, record: EnvironmentRecord) -> None:
    """Write the Environment Record atomically: temp -> fsync -> rename.

    Raises:
        StoreUnwritable: If the state directory cannot be written.
    """
    record.touch()
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_json(get_state_path(state_dir), record.to_file_dict(), "state")
    except OSError as exc:
        raise StoreUnwritable(
            f"Cannot write state to {state_dir}: {exc}",
            data={"state_dir": str(state_dir)},
        ) from exc
