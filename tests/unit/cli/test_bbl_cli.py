"""Unit tests for bbl CLI command entrypoints."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from _pytest.monkeypatch import MonkeyPatch
from typer.testing import CliRunner

from bootloader.cli import cli
from bootloader.cli.cli import app
from bootloader.pipeline.teardown import TeardownPipeline
from bootloader.store import paths

_RUNNER = CliRunner()


def _invoke(state_dir: Path, *args: str) -> object:
    return _RUNNER.invoke(
        app, [*args, "--state-dir", str(state_dir)], env={"COLUMNS": "200"}
    )


@pytest.mark.unit
def test_plan_writes_store_and_reports_artifacts(state_dir: Path) -> None:
    """`bbl plan` should write scripts and an environment record."""
    # Act - plan a fresh aws environment
    result = _invoke(state_dir, "plan", "--name", "unit-env", "--iaas", "aws")

    # Assert - artifacts on disk and listed
    assert result.exit_code == 0, result.output
    assert (state_dir / paths.STATE_FILENAME).is_file()
    assert (state_dir / paths.CREATE_JUMPBOX_SCRIPT).is_file()
    assert "create-jumpbox" in result.output
    assert "Planned" in result.output


@pytest.mark.unit
def test_plan_without_iaas_fails_with_error_code(state_dir: Path) -> None:
    """Invalid declarations render an error panel and exit 1."""
    result = _invoke(state_dir, "plan", "--name", "unit-env")

    assert result.exit_code == 1
    assert "invalid_declaration" in result.output
    assert not (state_dir / paths.STATE_FILENAME).exists()


@pytest.mark.unit
def test_plan_cf_without_certificate_fails(state_dir: Path) -> None:
    result = _invoke(
        state_dir, "plan", "--name", "unit-env", "--iaas", "aws", "--lb-type", "cf"
    )

    assert result.exit_code == 1
    assert "invalid_declaration" in result.output
    assert not (state_dir / paths.CREATE_JUMPBOX_SCRIPT).exists()


@pytest.mark.unit
def test_lb_cert_without_type_is_a_usage_error(
    state_dir: Path, lb_cert_pair: tuple[Path, Path]
) -> None:
    cert, _ = lb_cert_pair
    result = _invoke(
        state_dir, "plan", "--name", "e", "--iaas", "aws", "--lb-cert", str(cert)
    )

    assert result.exit_code == 2


@pytest.mark.unit
def test_artifacts_marks_edited_files_as_user_owned(state_dir: Path) -> None:
    assert _invoke(state_dir, "plan", "--name", "e", "--iaas", "gcp").exit_code == 0
    script = state_dir / paths.CREATE_DIRECTOR_SCRIPT
    script.write_text(script.read_text(encoding="utf-8") + "# edited\n", "utf-8")

    result = _invoke(state_dir, "artifacts")

    assert result.exit_code == 0, result.output
    director_row = next(
        line for line in result.output.splitlines() if "create-director.sh" in line
    )
    assert "user" in director_row
    assert "yes" in director_row
    assert result.output.count("user") == 1


@pytest.mark.unit
def test_plan_reset_restores_generated_script(state_dir: Path) -> None:
    assert _invoke(state_dir, "plan", "--name", "e", "--iaas", "gcp").exit_code == 0
    script = state_dir / paths.CREATE_DIRECTOR_SCRIPT
    original = script.read_text(encoding="utf-8")
    script.write_text("#!/bin/bash\nexit 0\n", encoding="utf-8")

    result = _invoke(state_dir, "plan", "--reset", "create-director")

    assert result.exit_code == 0, result.output
    assert script.read_text(encoding="utf-8") == original


@pytest.mark.unit
def test_queries_before_plan_fail_with_invalid_phase(state_dir: Path) -> None:
    for command in ("env-id", "lbs", "cloud-config", "artifacts"):
        result = _invoke(state_dir, command)
        assert result.exit_code == 1, command
        assert "invalid_phase" in result.output


@pytest.mark.unit
def test_addresses_unknown_before_up(state_dir: Path) -> None:
    assert _invoke(state_dir, "plan", "--name", "e", "--iaas", "aws").exit_code == 0

    for command in ("jumpbox-address", "director-address"):
        result = _invoke(state_dir, command)
        assert result.exit_code == 1
        assert "run up first" in result.output


@pytest.mark.unit
def test_lbs_without_declarations(state_dir: Path) -> None:
    assert _invoke(state_dir, "plan", "--name", "e", "--iaas", "aws").exit_code == 0

    result = _invoke(state_dir, "lbs")

    assert result.exit_code == 0
    assert "No load balancers declared." in result.output


@pytest.mark.unit
def test_lbs_before_outputs_is_unresolved(
    state_dir: Path, lb_cert_pair: tuple[Path, Path]
) -> None:
    """Declared but not yet provisioned load balancers cannot be reported."""
    cert, key = lb_cert_pair
    planned = _invoke(
        state_dir,
        "plan",
        "--name",
        "e",
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

    result = _invoke(state_dir, "lbs")

    assert result.exit_code == 1
    assert "endpoint_unresolved" in result.output


@pytest.mark.unit
def test_cloud_config_prints_planned_base(state_dir: Path) -> None:
    assert _invoke(state_dir, "plan", "--name", "e", "--iaas", "aws").exit_code == 0

    result = _invoke(state_dir, "cloud-config")

    assert result.exit_code == 0
    document = yaml.safe_load(result.output)
    assert "vm_types" in document


@pytest.mark.unit
def test_down_on_empty_store_is_refused(
    state_dir: Path, monkeypatch: MonkeyPatch, provisioner
) -> None:
    monkeypatch.setattr(
        cli,
        "TeardownPipeline",
        lambda s, c: TeardownPipeline(s, c, provisioner=provisioner),
    )

    result = _invoke(state_dir, "down")

    assert result.exit_code == 1
    assert "invalid_phase" in result.output
    assert provisioner.destroyed == 0


@pytest.mark.unit
def test_config_write_default_then_show(state_dir: Path) -> None:
    written = _invoke(state_dir, "config", "--write-default")
    again = _invoke(state_dir, "config", "--write-default")
    shown = _invoke(state_dir, "config")

    assert written.exit_code == 0
    assert (state_dir / "bbl.yml").is_file()
    assert "already exists" in again.output
    document = yaml.safe_load(shown.output)
    assert document["binaries"]["terraform"] == "terraform"


@pytest.mark.unit
def test_invalid_config_file_fails_with_error_code(state_dir: Path) -> None:
    (state_dir / "bbl.yml").write_text("binaries: [broken", encoding="utf-8")

    result = _invoke(state_dir, "plan", "--name", "e", "--iaas", "aws")

    assert result.exit_code == 1
    assert "config_invalid" in result.output
