"""Sequential step runner with a persisted checkpoint after every step."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from bootloader.config import BootloaderConfig
from bootloader.errors import BootloaderError, StepExecutionFailed
from bootloader.pipeline.executor import run_script
from bootloader.pipeline.run_cmd import build_env
from bootloader.store.state import (
    EnvironmentRecord,
    FailureRecord,
    StepStatus,
    now_iso,
    save_state_atomic,
)

_LOGGER = logging.getLogger(__name__)

# A step receives the working record and its attempt number.
StepAction: TypeAlias = Callable[[EnvironmentRecord, int], None]


@dataclass(frozen=True)
class Step:
    """One named unit of a pipeline."""

    name: str
    action: StepAction


def pipeline_env(
    state_dir: Path, record: EnvironmentRecord, config: BootloaderConfig
) -> dict[str, str]:
    """Environment for scripts and external tools run by a pipeline."""
    return build_env(
        config.execution.passthrough_env,
        extra={
            "BBL_STATE_DIR": str(state_dir.resolve()),
            "BBL_ENV_ID": record.env_id,
            "BBL_IAAS": record.iaas.value,
            "BBL_REGION": record.region,
        },
    )


def script_step(
    name: str,
    rel_path: str,
    *,
    state_dir: Path,
    config: BootloaderConfig,
) -> Step:
    """Step that runs the script currently at rel_path in the store."""

    def action(record: EnvironmentRecord, attempt: int) -> None:
        result = run_script(
            rel_path,
            state_dir=state_dir,
            step=name,
            attempt=attempt,
            shell=config.binaries.shell,
            env=pipeline_env(state_dir, record, config),
            timeout_s=config.execution.step_timeout_s,
        )
        record.checkpoint(name).log_paths = result.log_paths
        if not result.success:
            raise StepExecutionFailed(
                name,
                result.error_message or f"exit code {result.returncode}",
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                log_paths=result.log_paths,
            )

    return Step(name=name, action=action)


def recover_interrupted(record: EnvironmentRecord) -> None:
    """Mark steps left RUNNING by a killed process as failed."""
    for checkpoint in record.steps.values():
        if checkpoint.status == StepStatus.RUNNING:
            checkpoint.status = StepStatus.FAILED
            checkpoint.last_error = "interrupted"
            checkpoint.finished_at = now_iso()


def run_steps(
    state_dir: Path,
    record: EnvironmentRecord,
    steps: Sequence[Step],
    *,
    phase: str,
) -> None:
    """Run steps in order, stopping at the first failure.

    The record is saved before and after each step, so an interrupted or
    failed run leaves the completed steps visible in the store.

    Raises:
        BootloaderError: The first step failure, after it has been recorded
            as the record's last_failure.
    """
    recover_interrupted(record)
    for step in steps:
        checkpoint = record.checkpoint(step.name)
        checkpoint.attempts += 1
        checkpoint.status = StepStatus.RUNNING
        checkpoint.started_at = now_iso()
        checkpoint.finished_at = None
        checkpoint.last_error = None
        save_state_atomic(state_dir, record)
        _LOGGER.info("Running step %s", step.name)
        try:
            step.action(record, checkpoint.attempts)
        except BootloaderError as exc:
            checkpoint.status = StepStatus.FAILED
            checkpoint.finished_at = now_iso()
            checkpoint.last_error = str(exc)
            failure = FailureRecord(
                phase=phase,
                step=step.name,
                message=str(exc),
                occurred_at=checkpoint.finished_at,
            )
            if isinstance(exc, StepExecutionFailed):
                failure.returncode = exc.returncode
                failure.stdout = exc.stdout
                failure.stderr = exc.stderr
                if exc.log_paths:
                    checkpoint.log_paths = dict(exc.log_paths)
            record.last_failure = failure
            save_state_atomic(state_dir, record)
            _LOGGER.error("Step %s failed: %s", step.name, exc)
            raise
        checkpoint.status = StepStatus.SUCCEEDED
        checkpoint.finished_at = now_iso()
        save_state_atomic(state_dir, record)
        _LOGGER.info("Step %s succeeded", step.name)
