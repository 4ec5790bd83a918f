"""End-to-end plan/up/down scenarios through the bbl CLI."""

from __future__ import annotations

import json

import pytest
import yaml

from bootloader.store import paths


@pytest.mark.e2e
def test_plan_edit_up_down_lifecycle(bbl_env, lb_cert_pair) -> None:
    """Operator edits made after plan are what up and down execute."""
    # Arrange - plan a cf environment and edit every script
    env = bbl_env
    cert, key = lb_cert_pair
    plan = env.bbl(
        "plan",
        "--name",
        "lifecycle",
        "--iaas",
        "aws",
        "--lb-type",
        "cf",
        "--lb-cert",
        str(cert),
        "--lb-key",
        str(key),
    )
    env.replace_script(paths.CREATE_JUMPBOX_SCRIPT, "create-jumpbox")
    env.replace_script(paths.CREATE_DIRECTOR_SCRIPT, "create-director")
    env.replace_script(paths.DELETE_DIRECTOR_SCRIPT, "delete-director")
    env.replace_script(paths.DELETE_JUMPBOX_SCRIPT, "delete-jumpbox")

    # Act - bring the environment up
    up = env.bbl("up")

    # Assert - edited scripts ran in order and the environment is queryable
    assert plan.exit_code == 0, plan.output
    assert up.exit_code == 0, up.output
    assert env.order() == "create-jumpbox\ncreate-director\n"
    assert env.bbl("env-id").output.strip() == "lifecycle"
    assert env.bbl("jumpbox-address").output.strip() == "34.1.2.3:22"
    assert env.bbl("director-address").output.strip() == "https://10.0.0.6:25555"
    lbs = env.bbl("lbs")
    assert lbs.exit_code == 0
    assert "CF Router LB: https://1.2.3.4" in lbs.output
    assert [line.split(":")[0] for line in lbs.output.splitlines()] == [
        "CF Router LB",
        "CF SSH Proxy LB",
        "CF TCP Router LB",
        "CF WebSocket LB",
    ]
    cloud_config = yaml.safe_load(env.bbl("cloud-config").output)
    names = {ext["name"] for ext in cloud_config["vm_extensions"]}
    assert {
        "cf-router-network-properties",
        "diego-ssh-proxy-network-properties",
        "cf-tcp-router-network-properties",
    } <= names

    # Act - a plan after the edits keeps them
    replan = env.bbl("plan")
    assert replan.exit_code == 0, replan.output
    assert "create-jumpbox" in (env.state_dir / paths.CREATE_JUMPBOX_SCRIPT).read_text(
        encoding="utf-8"
    )

    # Act - tear down
    down = env.bbl("down")

    # Assert - teardown ran director before jumpbox and removed the store
    assert down.exit_code == 0, down.output
    assert env.order().endswith("delete-director\ndelete-jumpbox\n")
    assert env.provisioner.destroyed == 1
    assert not (env.state_dir / paths.STATE_FILENAME).exists()


@pytest.mark.e2e
def test_failed_up_is_resumable(bbl_env) -> None:
    """A failing step exits 1 with its stderr; rerunning after a fix converges."""
    env = bbl_env
    assert env.bbl("plan", "--name", "resume", "--iaas", "gcp").exit_code == 0
    env.replace_script(paths.CREATE_JUMPBOX_SCRIPT, "create-jumpbox")
    env.replace_script(
        paths.CREATE_DIRECTOR_SCRIPT,
        "create-director",
        body="echo 'cannot reach director' >&2\nexit 7\n",
    )

    failed = env.bbl("up")

    assert failed.exit_code == 1
    assert "step_execution_failed" in failed.output
    assert "cannot reach director" in failed.output
    state = json.loads((env.state_dir / paths.STATE_FILENAME).read_text("utf-8"))
    assert state["phase"] == "planned"
    assert state["last_failure"]["step"] == "create_director"

    env.replace_script(paths.CREATE_DIRECTOR_SCRIPT, "create-director")
    retried = env.bbl("up")

    assert retried.exit_code == 0, retried.output
    state = json.loads((env.state_dir / paths.STATE_FILENAME).read_text("utf-8"))
    assert state["phase"] == "up"
    assert state["last_failure"] is None
    assert state["steps"]["create_director"]["attempts"] == 2


@pytest.mark.e2e
def test_up_plans_implicitly_on_empty_store(bbl_env) -> None:
    env = bbl_env
    env.use_noop_bosh()

    result = env.bbl("up", "--name", "implicit", "--iaas", "aws")

    assert result.exit_code == 0, result.output
    assert env.provisioner.applied == 1
    assert env.bbl("env-id").output.strip() == "implicit"


@pytest.mark.e2e
def test_up_with_unreachable_director_keeps_lb_extensions(
    bbl_env, lb_cert_pair
) -> None:
    """An unreachable director still leaves the LB extensions in cloud-config."""
    # Arrange - cf plan, edited create scripts, director that refuses every call
    env = bbl_env
    cert, key = lb_cert_pair
    planned = env.bbl(
        "plan",
        "--name",
        "offline",
        "--iaas",
        "aws",
        "--lb-type",
        "cf",
        "--lb-cert",
        str(cert),
        "--lb-key",
        str(key),
    )
    assert planned.exit_code == 0, planned.output
    env.replace_script(paths.CREATE_JUMPBOX_SCRIPT, "jumpbox")
    env.replace_script(paths.CREATE_DIRECTOR_SCRIPT, "director")
    env.director.unreachable = True

    # Act - bring it up and read the cloud config back
    up = env.bbl("up")
    cloud_config = env.bbl("cloud-config")

    # Assert - scripts ran in order and the reconciled document was kept
    assert up.exit_code == 0, up.output
    assert "cloud config upload failed" in up.output
    assert env.order() == "jumpbox\ndirector\n"
    assert cloud_config.exit_code == 0
    document = yaml.safe_load(cloud_config.output)
    names = {ext["name"] for ext in document["vm_extensions"]}
    assert {
        "cf-router-network-properties",
        "diego-ssh-proxy-network-properties",
        "cf-tcp-router-network-properties",
    } <= names
