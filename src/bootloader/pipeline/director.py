"""Director collaborator: read and replace the director's cloud configuration."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Protocol

from bootloader.errors import ReconciliationUploadFailed
from bootloader.pipeline.run_cmd import (
    CompletedProcess,
    TimeoutExpired,
    minimal_env,
    run_subprocess,
)
from bootloader.store.state import DirectorInfo

_LOGGER = logging.getLogger(__name__)


class DirectorClient(Protocol):
    """Cloud configuration operations against a running director."""

    def get_cloud_config(self, director: DirectorInfo) -> str:
        """Return the current cloud config YAML, or "" when none is set."""
        ...

    def update_cloud_config(
        self, director: DirectorInfo, document: str, vars_file: Path | None
    ) -> None:
        """Replace the cloud config. Raises ReconciliationUploadFailed."""
        ...


class BoshCli:
    """DirectorClient backed by the bosh CLI."""

    def __init__(
        self,
        *,
        binary: str = "bosh",
        env: dict[str, str] | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._binary = binary
        self._env = dict(env) if env is not None else minimal_env()
        self._timeout_s = timeout_s

    def get_cloud_config(self, director: DirectorInfo) -> str:
        result = self._run(director, ["cloud-config"])
        if result.returncode != 0:
            # A fresh director has no cloud config yet.
            if "No cloud config" in (result.stderr or "") + (result.stdout or ""):
                return ""
            raise ReconciliationUploadFailed(
                f"cannot fetch cloud config: {result.stderr or result.stdout}",
                data={"returncode": result.returncode},
            )
        return result.stdout

    def update_cloud_config(
        self, director: DirectorInfo, document: str, vars_file: Path | None
    ) -> None:
        with tempfile.TemporaryDirectory(prefix="bbl-cloud-config-") as tmp:
            path = Path(tmp) / "cloud-config.yml"
            path.write_text(document, encoding="utf-8")
            args = ["update-cloud-config", str(path)]
            if vars_file is not None and vars_file.exists():
                args += ["--vars-file", str(vars_file)]
            result = self._run(director, args)
        if result.returncode != 0:
            raise ReconciliationUploadFailed(
                f"director rejected cloud config: {result.stderr or result.stdout}",
                data={"returncode": result.returncode},
            )

    def _run(self, director: DirectorInfo, args: list[str]) -> CompletedProcess[str]:
        if not director.address:
            raise ReconciliationUploadFailed("director address is not known yet")
        env = {
            **self._env,
            "BOSH_ENVIRONMENT": director.address,
            "BOSH_CLIENT": director.username,
            "BOSH_CLIENT_SECRET": director.password or "",
            "BOSH_NON_INTERACTIVE": "true",
        }
        if director.ca_cert:
            env["BOSH_CA_CERT"] = director.ca_cert
        cmd = [self._binary, *args]
        _LOGGER.debug("Running: %s", " ".join(cmd))
        try:
            return run_subprocess(cmd, env=env, timeout=self._timeout_s)
        except FileNotFoundError as exc:
            raise ReconciliationUploadFailed(
                f"{self._binary} command not found: {exc}"
            ) from exc
        except TimeoutExpired as exc:
            raise ReconciliationUploadFailed(
                f"{self._binary} {args[0]} timed out after {exc.timeout}s"
            ) from exc
