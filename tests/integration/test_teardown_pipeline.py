"""Teardown pipeline and store retention."""

from __future__ import annotations

from pathlib import Path

import pytest

from bootloader.config import BootloaderConfig
from bootloader.errors import InvalidPhase, StepExecutionFailed
from bootloader.pipeline import TeardownPipeline
from bootloader.plan.generator import PlanGenerator, PlanRequest
from bootloader.store import paths
from bootloader.store.state import IaaS, Phase, load_state


def _plan(state_dir: Path, config: BootloaderConfig) -> None:
    PlanGenerator(state_dir, config).plan(
        PlanRequest(env_id="test-env", iaas=IaaS.GCP, region="us-east1")
    )


def _delete_script(state_dir: Path, rel_path: str, marker: str, body: str = "") -> Path:
    log = state_dir.parent / "order.log"
    (state_dir / rel_path).write_text(
        f"#!/bin/bash\nset -eu\necho {marker} >> {log}\n{body}", encoding="utf-8"
    )
    return log


def _config(retention: str) -> BootloaderConfig:
    return BootloaderConfig.model_validate(
        {"teardown": {"store_retention": retention}}
    )


@pytest.mark.integration
def test_teardown_deletes_director_before_jumpbox(state_dir: Path, provisioner) -> None:
    config = _config("keep")
    _plan(state_dir, config)
    _delete_script(state_dir, paths.DELETE_DIRECTOR_SCRIPT, "director")
    log = _delete_script(state_dir, paths.DELETE_JUMPBOX_SCRIPT, "jumpbox")

    result = TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert log.read_text(encoding="utf-8") == "director\njumpbox\n"
    assert provisioner.destroyed == 1
    assert result.record.phase == Phase.DESTROYED
    saved = load_state(state_dir)
    assert saved is not None
    assert saved.phase == Phase.DESTROYED
    assert saved.outputs == {}
    assert saved.director.address is None


@pytest.mark.integration
def test_generated_delete_scripts_skip_missing_deployments(
    state_dir: Path, provisioner
) -> None:
    """Planned-but-never-applied environments tear down without bosh."""
    config = _config("keep")
    _plan(state_dir, config)

    result = TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert result.record.phase == Phase.DESTROYED
    stdout = Path(result.record.steps["delete_director"].log_paths["stdout"])
    assert "nothing to delete" in stdout.read_text(encoding="utf-8")


@pytest.mark.integration
def test_failed_delete_stops_before_destroy(state_dir: Path, provisioner) -> None:
    config = _config("keep")
    _plan(state_dir, config)
    _delete_script(state_dir, paths.DELETE_DIRECTOR_SCRIPT, "director")
    _delete_script(state_dir, paths.DELETE_JUMPBOX_SCRIPT, "jumpbox", body="exit 4\n")

    with pytest.raises(StepExecutionFailed):
        TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert provisioner.destroyed == 0
    saved = load_state(state_dir)
    assert saved is not None
    assert saved.phase == Phase.PLANNED
    assert saved.last_failure is not None
    assert saved.last_failure.phase == "down"
    assert saved.last_failure.step == "delete_jumpbox"
    assert saved.last_failure.returncode == 4


@pytest.mark.integration
def test_remove_retention_deletes_store(state_dir: Path, provisioner) -> None:
    config = _config("remove")
    _plan(state_dir, config)

    result = TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert result.archive_dir is None
    assert not state_dir.exists()


@pytest.mark.integration
def test_remove_retention_leaves_foreign_files(state_dir: Path, provisioner) -> None:
    config = _config("remove")
    _plan(state_dir, config)
    (state_dir / "notes.txt").write_text("mine", encoding="utf-8")

    TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert sorted(p.name for p in state_dir.iterdir()) == ["notes.txt"]


@pytest.mark.integration
def test_archive_retention_moves_store_aside(state_dir: Path, provisioner) -> None:
    config = _config("archive")
    _plan(state_dir, config)

    result = TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    assert result.archive_dir is not None
    assert result.archive_dir.name.startswith("env.destroyed-")
    archived = load_state(result.archive_dir)
    assert archived is not None
    assert archived.phase == Phase.DESTROYED
    assert (result.archive_dir / paths.CREATE_JUMPBOX_SCRIPT).is_file()
    assert not (state_dir / paths.STATE_FILENAME).exists()


@pytest.mark.integration
def test_teardown_of_destroyed_environment_is_refused(
    state_dir: Path, provisioner
) -> None:
    config = _config("keep")
    _plan(state_dir, config)
    TeardownPipeline(state_dir, config, provisioner=provisioner).run()

    with pytest.raises(InvalidPhase):
        TeardownPipeline(state_dir, config, provisioner=provisioner).run()
    assert provisioner.destroyed == 1


@pytest.mark.integration
def test_teardown_of_empty_store_is_refused(
    state_dir: Path, config: BootloaderConfig, provisioner
) -> None:
    with pytest.raises(InvalidPhase):
        TeardownPipeline(state_dir, config, provisioner=provisioner).run()
