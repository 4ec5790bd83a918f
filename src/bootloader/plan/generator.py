"""Plan generator: write the artifact set, preserving operator edits.

For each desired artifact:

1. no file on disk -> write it and record its fingerprint;
2. file matches the recorded fingerprint -> generator still owns it, so
   rewrite it with the newly computed content;
3. file diverges from the recorded fingerprint -> the operator owns it;
   leave it alone and keep the old fingerprint.

All writes are staged to temp files beside their targets first. Nothing is
renamed into place, and the Environment Record is not touched, unless every
staged write succeeded.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from bootloader.config import BootloaderConfig
from bootloader.errors import InvalidDeclaration, InvalidPhase, StoreUnwritable
from bootloader.plan.load_balancers import resolve_declarations, stored_declaration
from bootloader.plan.templates import PlanContext, render_artifacts
from bootloader.store.artifacts import (
    Artifact,
    ArtifactOwner,
    ArtifactRecord,
    is_user_modified,
    on_disk_fingerprint,
)
from bootloader.store.atomic_write import fsync_dir, temp_path_for, write_temp
from bootloader.store.paths import resolve_store_path
from bootloader.store.state import (
    EnvironmentRecord,
    IaaS,
    LoadBalancerDeclaration,
    Phase,
    load_state,
    new_environment_record,
    now_iso,
    save_state_atomic,
)

_LOGGER = logging.getLogger(__name__)


class PlanAction(StrEnum):
    """What the generator did with one artifact."""

    CREATED = "created"
    REGENERATED = "regenerated"
    UNCHANGED = "unchanged"
    PRESERVED = "preserved"
    RESET = "reset"


@dataclass(frozen=True)
class PlanRequest:
    """Declared inputs for one plan invocation.

    ``load_balancers=None`` keeps the declarations already on record.
    """

    env_id: str | None = None
    iaas: IaaS | None = None
    region: str | None = None
    load_balancers: list[LoadBalancerDeclaration] | None = None
    resets: frozenset[str] = field(default_factory=frozenset)
    reset_all: bool = False


@dataclass
class PlanResult:
    """Outcome of a plan invocation."""

    record: EnvironmentRecord
    actions: dict[str, PlanAction]

    def preserved(self) -> list[str]:
        return [n for n, a in self.actions.items() if a == PlanAction.PRESERVED]


@dataclass
class _StagedWrite:
    artifact: Artifact
    final_path: Path
    temp_path: Path


class PlanGenerator:
    """Compute the desired artifact set and apply the preserve policy."""

    def __init__(self, state_dir: Path, config: BootloaderConfig) -> None:
        self._state_dir = state_dir
        self._config = config

    def plan(self, request: PlanRequest) -> PlanResult:
        """Write the artifact set for request into the store.

        Args:
            request: Declared inputs.

        Returns:
            PlanResult with the persisted record and per-artifact actions.

        Raises:
            InvalidDeclaration: Inputs are invalid; nothing was written.
            StoreUnwritable: Store could not be written. Files already renamed
                into place stay recorded as generated.
        """
        existing = load_state(self._state_dir)
        record = self._working_record(existing, request)
        declarations = (
            request.load_balancers
            if request.load_balancers is not None
            else record.load_balancers
        )
        resolved = resolve_declarations(self._state_dir, declarations)
        ctx = PlanContext(
            env_id=record.env_id,
            iaas=record.iaas,
            region=record.region,
            internal_cidr=self._config.defaults.internal_cidr,
            bosh_binary=self._config.binaries.bosh,
            load_balancers=tuple(resolved),
        )
        desired = render_artifacts(ctx)
        resets = self._resets_for(request, desired, record)

        actions: dict[str, PlanAction] = {}
        pending: list[Artifact] = []
        for artifact in desired:
            action = self._decide(record, artifact, resets)
            actions[artifact.name] = action
            if action in (PlanAction.CREATED, PlanAction.REGENERATED, PlanAction.RESET):
                pending.append(artifact)
            elif action == PlanAction.PRESERVED:
                self._mark_user_owned(record, artifact)

        staged = self._stage(pending)
        self._commit(staged, record)

        record.load_balancers = [stored_declaration(lb) for lb in resolved]
        record.advance_phase(Phase.PLANNED)
        save_state_atomic(self._state_dir, record)
        for name, action in actions.items():
            if action == PlanAction.PRESERVED:
                _LOGGER.warning("Preserving modified artifact %s", name)
            else:
                _LOGGER.debug("Artifact %s: %s", name, action)
        return PlanResult(record=record, actions=actions)

    def _working_record(
        self, existing: EnvironmentRecord | None, request: PlanRequest
    ) -> EnvironmentRecord:
        """Return a copy of the record to mutate, or a fresh one."""
        if existing is not None and existing.phase != Phase.DESTROYED:
            if request.env_id and request.env_id != existing.env_id:
                raise InvalidDeclaration(
                    f"state dir already holds environment {existing.env_id!r}",
                    data={"env_id": existing.env_id, "requested": request.env_id},
                )
            if request.iaas and request.iaas != existing.iaas:
                raise InvalidDeclaration(
                    f"environment {existing.env_id!r} is on {existing.iaas}, "
                    f"not {request.iaas}",
                    data={"iaas": existing.iaas.value},
                )
            record = existing.model_copy(deep=True)
            if request.region and request.region != record.region:
                if record.phase == Phase.UP:
                    raise InvalidPhase(
                        "cannot change region of an environment that is up",
                        data={"region": record.region},
                    )
                record.region = request.region
            return record

        iaas = request.iaas or (existing.iaas if existing else None)
        if iaas is None:
            raise InvalidDeclaration("--iaas is required for the first plan")
        env_id = request.env_id or (existing.env_id if existing else None)
        if not env_id:
            raise InvalidDeclaration("--name is required for the first plan")
        region = request.region or self._config.defaults.regions.get(iaas.value)
        if not region:
            raise InvalidDeclaration(
                f"--region is required for {iaas}",
                data={"iaas": iaas.value},
            )
        record = new_environment_record(env_id, iaas, region)
        if existing is not None:
            # A destroyed environment starts a new lifecycle but keeps artifact
            # ownership, so operator edits still survive.
            record.artifacts = {
                name: rec.model_copy() for name, rec in existing.artifacts.items()
            }
        return record

    def _resets_for(
        self,
        request: PlanRequest,
        desired: list[Artifact],
        record: EnvironmentRecord,
    ) -> set[str]:
        known = {a.name for a in desired}
        unknown = sorted(set(request.resets) - known)
        if unknown:
            raise InvalidDeclaration(
                f"unknown artifact(s) to reset: {', '.join(unknown)}",
                data={"unknown": unknown, "known": sorted(known)},
            )
        resets = set(request.resets)
        if request.reset_all:
            resets |= {
                a.name for a in desired if not a.write_once and a.name in record.artifacts
            }
        return resets

    def _decide(
        self, record: EnvironmentRecord, artifact: Artifact, resets: set[str]
    ) -> PlanAction:
        current = on_disk_fingerprint(self._state_dir, artifact.rel_path)
        if current is None:
            return PlanAction.CREATED
        if artifact.name in resets:
            return PlanAction.RESET
        prior = record.artifacts.get(artifact.name)
        if artifact.write_once:
            return PlanAction.UNCHANGED if prior is not None else PlanAction.PRESERVED
        if prior is None or is_user_modified(self._state_dir, prior):
            return PlanAction.PRESERVED
        if current == artifact.fingerprint:
            return PlanAction.UNCHANGED
        return PlanAction.REGENERATED

    def _mark_user_owned(self, record: EnvironmentRecord, artifact: Artifact) -> None:
        prior = record.artifacts.get(artifact.name)
        if prior is not None:
            prior.owner = ArtifactOwner.USER
            return
        # File predates any plan: adopt it as operator-owned.
        current = on_disk_fingerprint(self._state_dir, artifact.rel_path) or ""
        record.artifacts[artifact.name] = ArtifactRecord(
            name=artifact.name,
            kind=artifact.kind,
            rel_path=artifact.rel_path,
            fingerprint=current,
            inputs_hash=artifact.inputs_hash,
            owner=ArtifactOwner.USER,
            write_once=artifact.write_once,
            generated_at="",
        )

    def _stage(self, pending: list[Artifact]) -> list[_StagedWrite]:
        """Write every pending artifact to a temp file beside its target."""
        staged: list[_StagedWrite] = []
        try:
            for artifact in pending:
                final_path = resolve_store_path(self._state_dir, artifact.rel_path)
                final_path.parent.mkdir(parents=True, exist_ok=True)
                temp_path = temp_path_for(final_path, "artifact")
                staged.append(_StagedWrite(artifact, final_path, temp_path))
                write_temp(temp_path, artifact.content, artifact.mode)
        except OSError as exc:
            self._discard(staged)
            raise StoreUnwritable(
                f"Cannot write artifacts under {self._state_dir}: {exc}",
                data={"state_dir": str(self._state_dir)},
            ) from exc
        return staged

    def _commit(self, staged: list[_StagedWrite], record: EnvironmentRecord) -> None:
        """Rename staged files into place and record their fingerprints.

        A file is recorded as soon as it is renamed. If a later rename fails
        the files already in place are saved to the state record before the
        error propagates, so a re-plan still sees them as generated.
        """
        generated_at = now_iso()
        try:
            for write in staged:
                os.replace(write.temp_path, write.final_path)
                artifact = write.artifact
                record.artifacts[artifact.name] = ArtifactRecord(
                    name=artifact.name,
                    kind=artifact.kind,
                    rel_path=artifact.rel_path,
                    fingerprint=artifact.fingerprint,
                    inputs_hash=artifact.inputs_hash,
                    owner=ArtifactOwner.GENERATED,
                    write_once=artifact.write_once,
                    generated_at=generated_at,
                )
                fsync_dir(write.final_path.parent)
        except OSError as exc:
            save_state_atomic(self._state_dir, record)
            raise StoreUnwritable(
                f"Cannot commit artifacts under {self._state_dir}: {exc}",
                data={"state_dir": str(self._state_dir)},
            ) from exc
        finally:
            self._discard(staged)

    @staticmethod
    def _discard(staged: list[_StagedWrite]) -> None:
        for write in staged:
            write.temp_path.unlink(missing_ok=True)
