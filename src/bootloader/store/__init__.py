"""Artifact Store: layout, fingerprints, atomic writes and the Environment Record."""

from bootloader.store.artifacts import (
    Artifact,
    ArtifactKind,
    ArtifactOwner,
    ArtifactRecord,
    ArtifactStatus,
    inspect_artifacts,
    is_user_modified,
)
from bootloader.store.lock import store_lock
from bootloader.store.state import (
    EnvironmentRecord,
    IaaS,
    LoadBalancerDeclaration,
    LoadBalancerType,
    Phase,
    StepStatus,
    load_state,
    new_environment_record,
    save_state_atomic,
)

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactOwner",
    "ArtifactRecord",
    "ArtifactStatus",
    "EnvironmentRecord",
    "IaaS",
    "LoadBalancerDeclaration",
    "LoadBalancerType",
    "Phase",
    "StepStatus",
    "inspect_artifacts",
    "is_user_modified",
    "load_state",
    "new_environment_record",
    "save_state_atomic",
    "store_lock",
]
