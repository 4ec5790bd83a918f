"""Operator configuration models and loading helpers."""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bootloader.errors import ConfigError

CONFIG_FILENAME = "bbl.yml"

_DEFAULT_PASSTHROUGH_ENV = [
    "HOME",
    "USER",
    "TMPDIR",
    "AWS_*",
    "GOOGLE_*",
    "CLOUDSDK_*",
    "ARM_*",
    "BOSH_*",
    "TF_*",
]


class StoreRetention(StrEnum):
    """What a successful teardown does with the Artifact Store."""

    REMOVE = "remove"
    ARCHIVE = "archive"
    KEEP = "keep"


class BinarySettings(BaseModel):
    """External executables invoked by the pipelines."""

    model_config = ConfigDict(extra="forbid")

    terraform: str = "terraform"
    bosh: str = "bosh"
    shell: str = "bash"


class ExecutionSettings(BaseModel):
    """Subprocess execution settings shared by every pipeline step."""

    model_config = ConfigDict(extra="forbid")

    step_timeout_s: float | None = Field(default=None, gt=0)
    passthrough_env: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_PASSTHROUGH_ENV)
    )


class CloudConfigSettings(BaseModel):
    """Cloud configuration reconciliation settings."""

    model_config = ConfigDict(extra="forbid")

    strict_upload: bool = False


class TeardownSettings(BaseModel):
    """Teardown settings."""

    model_config = ConfigDict(extra="forbid")

    store_retention: StoreRetention = StoreRetention.REMOVE


class DefaultsSettings(BaseModel):
    """Defaults applied when plan inputs omit them."""

    model_config = ConfigDict(extra="forbid")

    regions: dict[str, str] = Field(
        default_factory=lambda: {
            "aws": "us-east-1",
            "gcp": "us-central1",
            "azure": "eastus",
        }
    )
    internal_cidr: str = "10.0.0.0/24"


class BootloaderConfig(BaseModel):
    """Root operator configuration model."""

    model_config = ConfigDict(extra="forbid")

    binaries: BinarySettings = BinarySettings()
    execution: ExecutionSettings = ExecutionSettings()
    cloud_config: CloudConfigSettings = CloudConfigSettings()
    teardown: TeardownSettings = TeardownSettings()
    defaults: DefaultsSettings = DefaultsSettings()


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode config payload from JSON or YAML.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload.

    Raises:
        ConfigError: If decode fails or payload is not an object.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid config JSON: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("Invalid config payload: root must be an object")
    return payload


def load_config(path: Path) -> BootloaderConfig:
    """Load operator config from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed config payload, or defaults when file does not exist.

    Raises:
        ConfigError: If payload decode or validation fails.
    """
    if not path.exists():
        return BootloaderConfig()
    payload = _decode_config_payload(path)
    try:
        return BootloaderConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config payload: {exc}") from exc


def default_config_path(state_dir: Path) -> Path:
    """Return the config file path inside a state directory."""
    return state_dir / CONFIG_FILENAME


def dump_config(config: BootloaderConfig) -> str:
    """Render config as YAML."""
    return yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)


def dump_default_config() -> str:
    """Render the default config as YAML."""
    return dump_config(BootloaderConfig())
