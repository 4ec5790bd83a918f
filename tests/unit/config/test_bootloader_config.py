"""Unit tests for operator config loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from bootloader.config import (
    BootloaderConfig,
    StoreRetention,
    default_config_path,
    dump_config,
    dump_default_config,
    load_config,
)
from bootloader.errors import BootloaderErrorCode, ConfigError


@pytest.mark.unit
def test_load_config_defaults_when_missing(tmp_path: Path) -> None:
    """Missing config file should yield deterministic defaults."""
    config = load_config(tmp_path / "missing.yml")

    assert config.binaries.terraform == "terraform"
    assert config.binaries.bosh == "bosh"
    assert config.binaries.shell == "bash"
    assert config.execution.step_timeout_s is None
    assert "AWS_*" in config.execution.passthrough_env
    assert config.cloud_config.strict_upload is False
    assert config.teardown.store_retention == StoreRetention.REMOVE
    assert config.defaults.regions["gcp"] == "us-central1"
    assert config.defaults.internal_cidr == "10.0.0.0/24"


@pytest.mark.unit
def test_load_config_reads_yaml_overrides(tmp_path: Path) -> None:
    path = tmp_path / "bbl.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "binaries": {"terraform": "/opt/tf/terraform"},
                "teardown": {"store_retention": "archive"},
                "execution": {"step_timeout_s": 900},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.binaries.terraform == "/opt/tf/terraform"
    assert config.binaries.bosh == "bosh"
    assert config.teardown.store_retention == StoreRetention.ARCHIVE
    assert config.execution.step_timeout_s == 900


@pytest.mark.unit
def test_load_config_reads_json(tmp_path: Path) -> None:
    path = tmp_path / "bbl.json"
    path.write_text('{"cloud_config": {"strict_upload": true}}', encoding="utf-8")

    assert load_config(path).cloud_config.strict_upload is True


@pytest.mark.unit
def test_empty_yaml_is_default_config(tmp_path: Path) -> None:
    path = tmp_path / "bbl.yml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == BootloaderConfig()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("filename", "payload"),
    [
        ("bbl.json", "{not-json"),
        ("bbl.yml", "binaries: [unclosed"),
        ("bbl.yml", "- just\n- a list\n"),
        ("bbl.yml", "unknown_section: {}\n"),
        ("bbl.yml", "execution:\n  step_timeout_s: -5\n"),
        ("bbl.yml", "teardown:\n  store_retention: shred\n"),
    ],
)
def test_load_config_rejects_invalid_payloads(
    tmp_path: Path, filename: str, payload: str
) -> None:
    """Undecodable or invalid config raises a config_invalid error."""
    path = tmp_path / filename
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path)
    assert excinfo.value.code == BootloaderErrorCode.CONFIG_INVALID


@pytest.mark.unit
def test_default_config_path_is_inside_state_dir(tmp_path: Path) -> None:
    assert default_config_path(tmp_path) == tmp_path / "bbl.yml"


@pytest.mark.unit
def test_dumped_default_config_loads_back_unchanged(tmp_path: Path) -> None:
    path = tmp_path / "bbl.yml"
    path.write_text(dump_default_config(), encoding="utf-8")

    assert load_config(path) == BootloaderConfig()


@pytest.mark.unit
def test_dump_config_renders_enums_as_plain_values() -> None:
    config = BootloaderConfig.model_validate(
        {"teardown": {"store_retention": "keep"}}
    )

    document = yaml.safe_load(dump_config(config))

    assert document["teardown"] == {"store_retention": "keep"}
