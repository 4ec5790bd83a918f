"""Environment Record persistence and phase rules."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bootloader.errors import StateDecodeError, StoreUnwritable
from bootloader.store.state import (
    IaaS,
    LoadBalancerDeclaration,
    LoadBalancerType,
    Phase,
    StepStatus,
    load_state,
    new_environment_record,
    save_state_atomic,
)


@pytest.mark.unit
def test_save_then_load_round_trip(tmp_path: Path) -> None:
    """Saved record loads back with the same fields."""
    record = new_environment_record("env-1", IaaS.GCP, "us-central1")
    record.advance_phase(Phase.PLANNED)
    record.load_balancers = [LoadBalancerDeclaration(type=LoadBalancerType.CONCOURSE)]
    record.outputs = {"concourse_lb_ip": "35.0.0.1", "ports": [80, 443]}
    record.checkpoint("create_jumpbox").status = StepStatus.SUCCEEDED

    save_state_atomic(tmp_path, record)
    loaded = load_state(tmp_path)

    assert loaded is not None
    assert loaded.env_id == "env-1"
    assert loaded.iaas == IaaS.GCP
    assert loaded.phase == Phase.PLANNED
    assert loaded.lb_types() == [LoadBalancerType.CONCOURSE]
    assert loaded.outputs["ports"] == [80, 443]
    assert loaded.steps["create_jumpbox"].status == StepStatus.SUCCEEDED


@pytest.mark.unit
def test_load_missing_returns_none(tmp_path: Path) -> None:
    """No state.json means no environment."""
    assert load_state(tmp_path) is None


@pytest.mark.unit
def test_state_file_is_plain_json(tmp_path: Path) -> None:
    """state.json is a JSON object with the documented keys."""
    save_state_atomic(tmp_path, new_environment_record("e", IaaS.AWS, "us-east-1"))

    data = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))

    assert data["env_id"] == "e"
    assert data["iaas"] == "aws"
    assert data["phase"] == "unplanned"
    assert data["load_balancers"] == []
    assert data["outputs"] == {}
    assert not list(tmp_path.glob(".state.*.tmp")), "temp file must be renamed away"


@pytest.mark.unit
def test_corrupt_state_raises_decode_error(tmp_path: Path) -> None:
    """Undecodable state.json is reported, not silently replaced."""
    (tmp_path / "state.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StateDecodeError):
        load_state(tmp_path)


@pytest.mark.unit
def test_invalid_state_raises_decode_error(tmp_path: Path) -> None:
    """State that fails validation is reported."""
    (tmp_path / "state.json").write_text(
        json.dumps({"env_id": "e", "iaas": "openstack", "region": "r"}),
        encoding="utf-8",
    )

    with pytest.raises(StateDecodeError):
        load_state(tmp_path)


@pytest.mark.unit
def test_save_into_unwritable_location_raises(tmp_path: Path) -> None:
    """A state dir that is a regular file cannot be written."""
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    record = new_environment_record("e", IaaS.AWS, "us-east-1")

    with pytest.raises(StoreUnwritable):
        save_state_atomic(blocker, record)


@pytest.mark.unit
def test_advance_phase_never_moves_backward() -> None:
    """UP stays UP when plan asks for PLANNED."""
    record = new_environment_record("e", IaaS.AWS, "us-east-1")
    record.advance_phase(Phase.PLANNED)
    record.advance_phase(Phase.UP)
    record.advance_phase(Phase.PLANNED)

    assert record.phase == Phase.UP


@pytest.mark.unit
def test_destroyed_is_reachable_from_any_phase() -> None:
    """DESTROYED is set directly."""
    record = new_environment_record("e", IaaS.AWS, "us-east-1")
    record.advance_phase(Phase.PLANNED)
    record.advance_phase(Phase.DESTROYED)

    assert record.phase == Phase.DESTROYED


@pytest.mark.unit
def test_checkpoint_is_created_once() -> None:
    """checkpoint() returns the same object for the same step."""
    record = new_environment_record("e", IaaS.AWS, "us-east-1")

    first = record.checkpoint("provision_infrastructure")
    first.attempts = 3

    assert record.checkpoint("provision_infrastructure").attempts == 3
    assert first.status == StepStatus.PENDING
