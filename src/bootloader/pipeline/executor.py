"""Execute an on-disk script artifact, capturing stdout/stderr to store logs."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field

from bootloader.pipeline.run_cmd import TimeoutExpired, run_subprocess
from bootloader.store.paths import LOGS_DIR, resolve_store_path


def _decode_io(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode("utf-8", errors="replace")


class ExecResult(BaseModel):
    """Result of a single script execution."""

    success: bool
    returncode: int
    stdout: str = ""
    stderr: str = ""
    error_message: str | None = None
    log_paths: dict[str, str] = Field(default_factory=dict)


def step_log_dir(state_dir: Path, step: str, attempt: int) -> Path:
    """Return logs/<step>/<attempt>/ under the store, creating it."""
    log_dir = state_dir / LOGS_DIR / step / str(attempt)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def run_script(
    rel_path: str,
    *,
    state_dir: Path,
    step: str,
    attempt: int,
    shell: str,
    env: dict[str, str],
    timeout_s: float | None = None,
) -> ExecResult:
    """Run whatever script currently sits at rel_path in the store.

    The script is never regenerated here; an operator-edited script runs
    exactly as edited. Logs land in logs/<step>/<attempt>/.

    Args:
        rel_path: Store-relative script path.
        state_dir: Artifact Store root; also the working directory.
        step: Step name for log paths.
        attempt: Attempt number for log paths.
        shell: Interpreter used to run the script.
        env: Subprocess environment.
        timeout_s: Optional timeout in seconds.

    Returns:
        ExecResult with success, returncode, captured output and log paths.
    """
    log_dir = step_log_dir(state_dir, step, attempt)
    stdout_path = log_dir / "stdout.txt"
    stderr_path = log_dir / "stderr.txt"
    executor_json_path = log_dir / "executor.json"
    log_paths = {
        "stdout": str(stdout_path),
        "stderr": str(stderr_path),
        "executor.json": str(executor_json_path),
    }
    script_path = resolve_store_path(state_dir, rel_path)
    argv = [shell, str(script_path)]
    executor_json_path.write_text(
        json.dumps({"argv": argv, "cwd": str(state_dir), "timeout_s": timeout_s}, indent=2),
        encoding="utf-8",
    )
    if not script_path.is_file():
        message = f"script not found: {rel_path}; run plan to regenerate it"
        stderr_path.write_text(message, encoding="utf-8")
        return ExecResult(
            success=False,
            returncode=-1,
            stderr=message,
            error_message=message,
            log_paths=log_paths,
        )
    try:
        result = run_subprocess(argv, cwd=state_dir, env=env, timeout=timeout_s)
    except TimeoutExpired as e:
        stdout = _decode_io(e.stdout)
        stderr = _decode_io(e.stderr)
        stdout_path.write_text(stdout, encoding="utf-8")
        stderr_path.write_text(stderr, encoding="utf-8")
        return ExecResult(
            success=False,
            returncode=-1,
            stdout=stdout,
            stderr=stderr,
            error_message="timeout",
            log_paths=log_paths,
        )
    except FileNotFoundError as e:
        stderr_path.write_text(str(e), encoding="utf-8")
        return ExecResult(
            success=False,
            returncode=-1,
            stderr=str(e),
            error_message=f"command not found: {e}",
            log_paths=log_paths,
        )
    stdout_path.write_text(result.stdout or "", encoding="utf-8")
    stderr_path.write_text(result.stderr or "", encoding="utf-8")
    return ExecResult(
        success=result.returncode == 0,
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        error_message=None
        if result.returncode == 0
        else (result.stderr or f"exit code {result.returncode}"),
        log_paths=log_paths,
    )
