"""The one place bootloader starts subprocesses.

Scripts, terraform and bosh all go through run_subprocess: shell=False, list
args, and an environment built from PATH plus explicitly passed variables.
"""

from __future__ import annotations

import fnmatch
import os
import subprocess  # nosec B404 - shell=False, list args, controlled env
from collections.abc import Mapping, Sequence
from pathlib import Path

# Re-exported for callers that catch or annotate subprocess results.
TimeoutExpired = subprocess.TimeoutExpired
CompletedProcess = subprocess.CompletedProcess


def minimal_env() -> dict[str, str]:
    """Environment holding only the caller's PATH."""
    return {"PATH": os.environ.get("PATH", "")}


def build_env(
    passthrough: Sequence[str],
    extra: Mapping[str, str] | None = None,
    source: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """PATH, then passthrough variables from source, then extra.

    Args:
        passthrough: Variable names or fnmatch patterns such as ``AWS_*``.
        extra: Variables set unconditionally, applied last.
        source: Environment to copy from; defaults to os.environ.

    Returns:
        Environment dict for run_subprocess.
    """
    env = minimal_env()
    origin = os.environ if source is None else source
    for name, value in origin.items():
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in passthrough):
            env[name] = value
    if extra:
        env.update(extra)
    return env


def run_subprocess(
    argv: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run argv to completion and capture its text output.

    The return code is not checked; callers map it to their own errors.

    Raises:
        FileNotFoundError: argv[0] does not exist.
        TimeoutExpired: timeout elapsed; the child has been killed.
    """
    return subprocess.run(  # noqa: PLW1510  # nosec B603 - shell=False, list args, controlled env
        list(argv),
        cwd=str(cwd) if cwd is not None else None,
        env=env if env is not None else minimal_env(),
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
        shell=False,
    )
