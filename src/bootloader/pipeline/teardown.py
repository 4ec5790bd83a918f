"""Teardown pipeline: delete director, delete jumpbox, destroy infrastructure."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from bootloader.config import BootloaderConfig, StoreRetention
from bootloader.errors import StoreUnwritable
from bootloader.pipeline.apply import require_phase
from bootloader.pipeline.steps import Step, pipeline_env, run_steps, script_step
from bootloader.pipeline.terraform import InfraProvisioner, TerraformCli
from bootloader.store import paths
from bootloader.store.state import (
    DirectorInfo,
    EnvironmentRecord,
    JumpboxInfo,
    Phase,
    load_state,
    save_state_atomic,
)

_LOGGER = logging.getLogger(__name__)

DELETE_DIRECTOR_STEP = "delete_director"
DELETE_JUMPBOX_STEP = "delete_jumpbox"
DESTROY_STEP = "destroy_infrastructure"

TEARDOWN_STEPS = (DELETE_DIRECTOR_STEP, DELETE_JUMPBOX_STEP, DESTROY_STEP)

# Top-level store entries owned by bbl; anything else in the directory is left.
STORE_ENTRIES = (
    paths.STATE_FILENAME,
    paths.LOCK_FILENAME,
    paths.CREATE_JUMPBOX_SCRIPT,
    paths.CREATE_DIRECTOR_SCRIPT,
    paths.DELETE_JUMPBOX_SCRIPT,
    paths.DELETE_DIRECTOR_SCRIPT,
    paths.TERRAFORM_DIR,
    paths.VARS_DIR,
    paths.LOGS_DIR,
    paths.CLOUD_CONFIG_DIR,
    paths.LB_CERTS_DIR,
    paths.JUMPBOX_MANIFEST.split("/")[0],
    paths.DIRECTOR_MANIFEST.split("/")[0],
)


@dataclass
class TeardownResult:
    """Outcome of a successful teardown."""

    record: EnvironmentRecord
    retention: StoreRetention
    archive_dir: Path | None = None


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def remove_store(state_dir: Path) -> None:
    """Delete bbl's entries from state_dir, then the directory if empty."""
    for name in STORE_ENTRIES:
        _remove_entry(state_dir / name)
    try:
        state_dir.rmdir()
    except OSError:
        _LOGGER.debug("Leaving %s in place; it holds other files", state_dir)


def archive_store(state_dir: Path) -> Path:
    """Move bbl's entries into a sibling <dir>.destroyed-<timestamp> directory."""
    resolved = state_dir.resolve()
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    archive_dir = resolved.parent / f"{resolved.name}.destroyed-{stamp}"
    archive_dir.mkdir(parents=True, exist_ok=False)
    for name in STORE_ENTRIES:
        source = resolved / name
        if source.exists() and name != paths.LOCK_FILENAME:
            shutil.move(str(source), str(archive_dir / name))
    return archive_dir


class TeardownPipeline:
    """Remove live infrastructure using the artifacts in the store."""

    def __init__(
        self,
        state_dir: Path,
        config: BootloaderConfig,
        *,
        provisioner: InfraProvisioner | None = None,
    ) -> None:
        self._state_dir = state_dir
        self._config = config
        self._provisioner = provisioner

    def run(self) -> TeardownResult:
        """Run every teardown step, mark DESTROYED and apply store retention.

        Raises:
            InvalidPhase: The store holds no PLANNED or UP environment.
            BootloaderError: A step failed; the record keeps its phase.
            StoreUnwritable: The store could not be removed or archived.
        """
        record = require_phase(
            load_state(self._state_dir), (Phase.PLANNED, Phase.UP), "destroy"
        )
        steps = [
            script_step(
                DELETE_DIRECTOR_STEP,
                paths.DELETE_DIRECTOR_SCRIPT,
                state_dir=self._state_dir,
                config=self._config,
            ),
            script_step(
                DELETE_JUMPBOX_STEP,
                paths.DELETE_JUMPBOX_SCRIPT,
                state_dir=self._state_dir,
                config=self._config,
            ),
            Step(DESTROY_STEP, self._destroy),
        ]
        run_steps(self._state_dir, record, steps, phase="down")

        record.advance_phase(Phase.DESTROYED)
        record.last_failure = None
        record.outputs = {}
        record.jumpbox = JumpboxInfo()
        record.director = DirectorInfo()
        save_state_atomic(self._state_dir, record)
        _LOGGER.info("Environment %s destroyed", record.env_id)

        retention = self._config.teardown.store_retention
        archive_dir: Path | None = None
        try:
            if retention == StoreRetention.REMOVE:
                remove_store(self._state_dir)
            elif retention == StoreRetention.ARCHIVE:
                archive_dir = archive_store(self._state_dir)
                _LOGGER.info("Archived state to %s", archive_dir)
        except OSError as exc:
            raise StoreUnwritable(
                f"Cannot {retention} state dir {self._state_dir}: {exc}",
                data={"state_dir": str(self._state_dir)},
            ) from exc
        return TeardownResult(record=record, retention=retention, archive_dir=archive_dir)

    def _destroy(self, record: EnvironmentRecord, attempt: int) -> None:
        del attempt
        provisioner = self._provisioner or TerraformCli(
            binary=self._config.binaries.terraform,
            env=pipeline_env(self._state_dir, record, self._config),
            timeout_s=self._config.execution.step_timeout_s,
            destroy_step=DESTROY_STEP,
        )
        provisioner.destroy(self._state_dir)
