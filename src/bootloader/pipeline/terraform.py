"""Infrastructure provisioning collaborator backed by the terraform CLI."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError
from pydantic.types import JsonValue

from bootloader.errors import StepExecutionFailed
from bootloader.pipeline.run_cmd import (
    CompletedProcess,
    TimeoutExpired,
    minimal_env,
    run_subprocess,
)
from bootloader.store.paths import TERRAFORM_DIR, TERRAFORM_STATE, TERRAFORM_VARS

_LOGGER = logging.getLogger(__name__)


class InfraProvisioner(Protocol):
    """Idempotent create-or-update and destroy of the declared infrastructure."""

    def apply(self, state_dir: Path) -> dict[str, JsonValue]:
        """Apply the template in the store and return its outputs."""
        ...

    def destroy(self, state_dir: Path) -> None:
        """Destroy everything the template created. Absent state is success."""
        ...


class TerraformOutput(BaseModel):
    """One entry of `terraform output -json`."""

    sensitive: bool = False
    value: JsonValue = None
    type: JsonValue = None


def parse_outputs(raw: str) -> dict[str, JsonValue]:
    """Flatten `terraform output -json` into name -> value.

    Raises:
        ValueError: If raw is not a JSON object of output entries.
    """
    payload = json.loads(raw or "{}")
    if not isinstance(payload, dict):
        raise ValueError("terraform output root must be an object")
    outputs: dict[str, JsonValue] = {}
    for key, value in payload.items():
        try:
            outputs[key] = TerraformOutput.model_validate(value).value
        except ValidationError as exc:
            raise ValueError(f"invalid terraform output {key!r}: {exc}") from exc
    return outputs


class TerraformCli:
    """Run terraform against the template and vars in the Artifact Store."""

    def __init__(
        self,
        *,
        binary: str = "terraform",
        env: dict[str, str] | None = None,
        timeout_s: float | None = None,
        apply_step: str = "provision_infrastructure",
        destroy_step: str = "destroy_infrastructure",
    ) -> None:
        self._binary = binary
        self._env = dict(env) if env is not None else minimal_env()
        self._timeout_s = timeout_s
        self._apply_step = apply_step
        self._destroy_step = destroy_step

    def apply(self, state_dir: Path) -> dict[str, JsonValue]:
        """Init, apply and read outputs. Safe to re-run."""
        cwd, file_args = self._layout(state_dir)
        self._run(["init", "-input=false"], cwd, self._apply_step)
        self._run(
            ["apply", "-auto-approve", "-input=false", *file_args],
            cwd,
            self._apply_step,
        )
        return self.outputs(state_dir)

    def outputs(self, state_dir: Path) -> dict[str, JsonValue]:
        """Read outputs from the terraform state in the store."""
        cwd, _ = self._layout(state_dir)
        result = self._run(
            ["output", "-json", f"-state={state_dir.resolve() / TERRAFORM_STATE}"],
            cwd,
            self._apply_step,
        )
        try:
            return parse_outputs(result.stdout)
        except (ValueError, json.JSONDecodeError) as exc:
            raise StepExecutionFailed(
                self._apply_step,
                f"cannot parse terraform outputs: {exc}",
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            ) from exc

    def destroy(self, state_dir: Path) -> None:
        """Destroy infrastructure; no terraform state means nothing to destroy."""
        if not (state_dir / TERRAFORM_STATE).exists():
            _LOGGER.info("No terraform state in %s; nothing to destroy", state_dir)
            return
        cwd, file_args = self._layout(state_dir)
        self._run(["init", "-input=false"], cwd, self._destroy_step)
        self._run(
            ["destroy", "-auto-approve", "-input=false", *file_args],
            cwd,
            self._destroy_step,
        )

    def _layout(self, state_dir: Path) -> tuple[Path, list[str]]:
        root = state_dir.resolve()
        return root / TERRAFORM_DIR, [
            f"-state={root / TERRAFORM_STATE}",
            f"-var-file={root / TERRAFORM_VARS}",
        ]

    def _run(self, args: list[str], cwd: Path, step: str) -> CompletedProcess[str]:
        """Run a terraform command; raise StepExecutionFailed on failure."""
        cmd = [self._binary, *args]
        _LOGGER.debug("Running: %s in %s", " ".join(cmd), cwd)
        env = {**self._env, "TF_IN_AUTOMATION": "1"}
        try:
            result = run_subprocess(cmd, cwd=cwd, env=env, timeout=self._timeout_s)
        except FileNotFoundError as exc:
            raise StepExecutionFailed(
                step, f"{self._binary} command not found: {exc}"
            ) from exc
        except TimeoutExpired as exc:
            raise StepExecutionFailed(
                step, f"{self._binary} {args[0]} timed out after {exc.timeout}s"
            ) from exc
        if result.returncode != 0:
            raise StepExecutionFailed(
                step,
                f"{self._binary} {args[0]} exited with {result.returncode}",
                returncode=result.returncode,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
            )
        return result
