"""Apply pipeline: provision, jumpbox, director, cloud config, endpoints.

Every step runs whatever artifact is on disk at that moment, so operator
edits made after plan are what execute. The record is saved after each step;
a failure leaves the phase where it was and records the failing step.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic.types import JsonValue

from bootloader.cloud_config import CloudConfigReconciler
from bootloader.config import BootloaderConfig
from bootloader.endpoints import Endpoint, resolve_endpoints
from bootloader.errors import (
    EndpointUnresolved,
    InvalidPhase,
    ReconciliationUploadFailed,
    StepExecutionFailed,
    StoreUnwritable,
)
from bootloader.pipeline.director import BoshCli, DirectorClient
from bootloader.pipeline.steps import Step, pipeline_env, run_steps, script_step
from bootloader.pipeline.terraform import InfraProvisioner, TerraformCli
from bootloader.plan.load_balancers import required_extension_names
from bootloader.plan.templates import (
    JUMPBOX_SSH_KEY_VAR,
    director_address_for,
    director_internal_ip,
    internal_gateway,
    jumpbox_internal_ip,
)
from bootloader.store import paths
from bootloader.store.atomic_write import atomic_write_bytes
from bootloader.store.state import (
    EnvironmentRecord,
    IaaS,
    Phase,
    ReconciliationRecord,
    load_state,
    now_iso,
    save_state_atomic,
)

_LOGGER = logging.getLogger(__name__)

PROVISION_STEP = "provision_infrastructure"
CREATE_JUMPBOX_STEP = "create_jumpbox"
CREATE_DIRECTOR_STEP = "create_director"
RECONCILE_STEP = "reconcile_cloud_config"
REPORT_ENDPOINTS_STEP = "report_endpoints"

APPLY_STEPS = (
    PROVISION_STEP,
    CREATE_JUMPBOX_STEP,
    CREATE_DIRECTOR_STEP,
    RECONCILE_STEP,
    REPORT_ENDPOINTS_STEP,
)

_ZONE_SUFFIXES = ("a", "b", "c")


@dataclass
class ApplyResult:
    """Outcome of a successful apply."""

    record: EnvironmentRecord
    endpoints: list[Endpoint] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    reconciliation: ReconciliationRecord | None = None


def require_phase(
    record: EnvironmentRecord | None, allowed: tuple[Phase, ...], action: str
) -> EnvironmentRecord:
    """Return record if its phase allows action, else raise InvalidPhase."""
    if record is None:
        raise InvalidPhase(f"cannot {action}: no environment has been planned here")
    if record.phase not in allowed:
        raise InvalidPhase(
            f"cannot {action} environment {record.env_id!r} in phase {record.phase}",
            data={"phase": record.phase.value, "env_id": record.env_id},
        )
    return record


def _scalar_outputs(outputs: dict[str, JsonValue]) -> dict[str, JsonValue]:
    return {
        key: value
        for key, value in outputs.items()
        if isinstance(value, str | int | float | bool)
    }


def _zone_vars(iaas: IaaS, region: str) -> dict[str, str]:
    if iaas == IaaS.AWS:
        return {f"az{i}": f"{region}{s}" for i, s in enumerate(_ZONE_SUFFIXES, 1)}
    if iaas == IaaS.GCP:
        return {f"zone{i}": f"{region}-{s}" for i, s in enumerate(_ZONE_SUFFIXES, 1)}
    return {}


def deployment_vars(
    record: EnvironmentRecord, default_cidr: str
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Variables for the jumpbox and director deployments, from outputs."""
    outputs = record.outputs
    cidr = outputs.get("internal_cidr")
    if not isinstance(cidr, str) or not cidr:
        cidr = default_cidr
    common: dict[str, Any] = {
        "env_id": record.env_id,
        "region": record.region,
        **_zone_vars(record.iaas, record.region),
        **_scalar_outputs(outputs),
        "internal_cidr": cidr,
        "internal_gw": internal_gateway(cidr),
    }
    director_ip = outputs.get("director__internal_ip")
    if not isinstance(director_ip, str) or not director_ip:
        director_ip = director_internal_ip(cidr)
    jumpbox_vars = {**common, "internal_ip": jumpbox_internal_ip(cidr)}
    director_vars = {
        **common,
        "internal_ip": director_ip,
        "director_name": f"bosh-{record.env_id}",
    }
    return jumpbox_vars, director_vars


def _read_vars_store(state_dir: Path, rel_path: str, step: str) -> dict[str, Any]:
    path = state_dir / rel_path
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise StepExecutionFailed(step, f"cannot read {rel_path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


class ApplyPipeline:
    """Converge live infrastructure toward the artifacts in the store."""

    def __init__(
        self,
        state_dir: Path,
        config: BootloaderConfig,
        *,
        provisioner: InfraProvisioner | None = None,
        director: DirectorClient | None = None,
    ) -> None:
        self._state_dir = state_dir
        self._config = config
        self._provisioner = provisioner
        self._director = director
        self._result: ApplyResult | None = None

    def run(self) -> ApplyResult:
        """Run every apply step in order.

        Returns:
            ApplyResult with the UP record, endpoints and any warnings.

        Raises:
            InvalidPhase: The store holds no PLANNED or UP environment.
            BootloaderError: A step failed; the record keeps its phase and
                names the failing step in last_failure.
        """
        record = require_phase(
            load_state(self._state_dir), (Phase.PLANNED, Phase.UP), "apply"
        )
        self._result = ApplyResult(record=record)
        steps = [
            Step(PROVISION_STEP, self._provision),
            self._script_then(
                CREATE_JUMPBOX_STEP, paths.CREATE_JUMPBOX_SCRIPT, self._capture_jumpbox
            ),
            self._script_then(
                CREATE_DIRECTOR_STEP,
                paths.CREATE_DIRECTOR_SCRIPT,
                self._capture_director,
            ),
            Step(RECONCILE_STEP, self._reconcile),
            Step(REPORT_ENDPOINTS_STEP, self._report_endpoints),
        ]
        run_steps(self._state_dir, record, steps, phase="up")

        record.advance_phase(Phase.UP)
        record.last_failure = None
        save_state_atomic(self._state_dir, record)
        _LOGGER.info("Environment %s is up", record.env_id)
        return self._result

    def _script_then(
        self,
        name: str,
        rel_path: str,
        capture: Callable[[EnvironmentRecord], None],
    ) -> Step:
        script = script_step(
            name, rel_path, state_dir=self._state_dir, config=self._config
        )

        def action(record: EnvironmentRecord, attempt: int) -> None:
            script.action(record, attempt)
            capture(record)

        return Step(name, action)

    def _provisioner_for(self, record: EnvironmentRecord) -> InfraProvisioner:
        if self._provisioner is not None:
            return self._provisioner
        return TerraformCli(
            binary=self._config.binaries.terraform,
            env=pipeline_env(self._state_dir, record, self._config),
            timeout_s=self._config.execution.step_timeout_s,
            apply_step=PROVISION_STEP,
        )

    def _director_for(self, record: EnvironmentRecord) -> DirectorClient:
        if self._director is not None:
            return self._director
        return BoshCli(
            binary=self._config.binaries.bosh,
            env=pipeline_env(self._state_dir, record, self._config),
            timeout_s=self._config.execution.step_timeout_s,
        )

    def _provision(self, record: EnvironmentRecord, attempt: int) -> None:
        del attempt
        outputs = self._provisioner_for(record).apply(self._state_dir)
        record.outputs = dict(outputs)
        jumpbox_url = outputs.get("jumpbox_url")
        if isinstance(jumpbox_url, str) and jumpbox_url:
            record.jumpbox.url = jumpbox_url
        jumpbox_vars, director_vars = deployment_vars(
            record, self._config.defaults.internal_cidr
        )
        for rel_path, document in (
            (paths.JUMPBOX_VARS_FILE, jumpbox_vars),
            (paths.DIRECTOR_VARS_FILE, director_vars),
        ):
            target = self._state_dir / rel_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_bytes(
                    target,
                    yaml.safe_dump(document, sort_keys=False).encode("utf-8"),
                    "vars-file",
                    0o600,
                )
            except OSError as exc:
                raise StoreUnwritable(
                    f"Cannot write {rel_path}: {exc}",
                    data={"path": str(target)},
                ) from exc
        _LOGGER.info("Captured %d infrastructure output(s)", len(outputs))

    def _capture_jumpbox(self, record: EnvironmentRecord) -> None:
        store = _read_vars_store(
            self._state_dir, paths.JUMPBOX_VARS_STORE, CREATE_JUMPBOX_STEP
        )
        if JUMPBOX_SSH_KEY_VAR in store:
            record.jumpbox.private_key_ref = (
                f"{paths.JUMPBOX_VARS_STORE}#{JUMPBOX_SSH_KEY_VAR}.private_key"
            )
        if record.jumpbox.url is None:
            url = record.outputs.get("jumpbox_url")
            record.jumpbox.url = url if isinstance(url, str) else None

    def _capture_director(self, record: EnvironmentRecord) -> None:
        store = _read_vars_store(
            self._state_dir, paths.DIRECTOR_VARS_STORE, CREATE_DIRECTOR_STEP
        )
        address = record.outputs.get("director_address")
        if not isinstance(address, str) or not address:
            _, director_vars = deployment_vars(
                record, self._config.defaults.internal_cidr
            )
            address = director_address_for(director_vars["internal_ip"])
        record.director.address = address
        password = store.get("admin_password")
        record.director.password = password if isinstance(password, str) else None
        default_ca = store.get("default_ca")
        if isinstance(default_ca, dict) and isinstance(default_ca.get("ca"), str):
            record.director.ca_cert = default_ca["ca"]

    def _reconcile(self, record: EnvironmentRecord, attempt: int) -> None:
        del attempt
        assert self._result is not None
        reconciler = CloudConfigReconciler(self._state_dir, self._director_for(record))
        try:
            outcome = reconciler.reconcile(record)
        except ReconciliationUploadFailed as exc:
            record.cloud_config = ReconciliationRecord(
                extension_names=required_extension_names(record.lb_types()),
                error=str(exc),
                reconciled_at=now_iso(),
            )
            if self._config.cloud_config.strict_upload:
                raise
            message = f"cloud config upload failed: {exc}"
            _LOGGER.warning("%s", message)
            self._result.warnings.append(message)
            return
        record.cloud_config = outcome
        self._result.reconciliation = outcome

    def _report_endpoints(self, record: EnvironmentRecord, attempt: int) -> None:
        del attempt
        assert self._result is not None
        try:
            self._result.endpoints = resolve_endpoints(record)
        except EndpointUnresolved as exc:
            _LOGGER.warning("%s", exc)
            self._result.warnings.append(str(exc))
            return
        for endpoint in self._result.endpoints:
            _LOGGER.info("%s: %s", endpoint.label, endpoint.address)
