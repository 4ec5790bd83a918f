"""Deterministic error contracts for plan, up and down."""

from __future__ import annotations

from enum import StrEnum


class BootloaderErrorCode(StrEnum):
    """Stable error codes surfaced to the operator."""

    INVALID_DECLARATION = "invalid_declaration"
    STORE_UNWRITABLE = "store_unwritable"
    STEP_EXECUTION_FAILED = "step_execution_failed"
    ENDPOINT_UNRESOLVED = "endpoint_unresolved"
    RECONCILIATION_UPLOAD_FAILED = "reconciliation_upload_failed"
    INVALID_PHASE = "invalid_phase"
    STATE_DECODE_FAILED = "state_decode_failed"
    CONFIG_INVALID = "config_invalid"


class BootloaderError(RuntimeError):
    """Failure with a stable deterministic code."""

    code: BootloaderErrorCode = BootloaderErrorCode.STEP_EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        *,
        data: dict[str, object] | None = None,
    ) -> None:
        """Create failure.

        Args:
            message: Human-readable error message.
            data: Optional structured payload for diagnostics.
        """
        super().__init__(message)
        self.data = data or {}


class InvalidDeclaration(BootloaderError):
    """Plan inputs are invalid. Raised before any mutation."""

    code = BootloaderErrorCode.INVALID_DECLARATION


class StoreUnwritable(BootloaderError):
    """Artifact Store could not be created or written. Nothing was committed."""

    code = BootloaderErrorCode.STORE_UNWRITABLE


class StepExecutionFailed(BootloaderError):
    """A pipeline step's external process returned failure."""

    code = BootloaderErrorCode.STEP_EXECUTION_FAILED

    def __init__(
        self,
        step: str,
        message: str,
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        log_paths: dict[str, str] | None = None,
    ) -> None:
        """Create step failure.

        Args:
            step: Name of the failing pipeline step.
            message: Human-readable error message.
            returncode: Exit status of the underlying process, if it ran.
            stdout: Captured standard output, verbatim.
            stderr: Captured standard error, verbatim.
            log_paths: Paths of the persisted step logs.
        """
        super().__init__(
            f"step {step!r} failed: {message}",
            data={
                "step": step,
                "returncode": returncode,
                "log_paths": dict(log_paths or {}),
            },
        )
        self.step = step
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.log_paths = dict(log_paths or {})


class EndpointUnresolved(BootloaderError):
    """Provisioning outputs lack the key for a declared load balancer."""

    code = BootloaderErrorCode.ENDPOINT_UNRESOLVED

    def __init__(self, lb_type: str, keys: tuple[str, ...]) -> None:
        """Create endpoint lookup failure.

        Args:
            lb_type: Declared load balancer type.
            keys: Output keys that were tried, in order.
        """
        super().__init__(
            f"no endpoint for {lb_type!r} load balancer; "
            f"outputs are missing {', '.join(keys)}",
            data={"lb_type": lb_type, "keys": list(keys)},
        )
        self.lb_type = lb_type
        self.keys = keys


class ReconciliationUploadFailed(BootloaderError):
    """Director rejected the reconciled cloud configuration."""

    code = BootloaderErrorCode.RECONCILIATION_UPLOAD_FAILED


class InvalidPhase(BootloaderError):
    """Requested phase transition is not allowed from the current phase."""

    code = BootloaderErrorCode.INVALID_PHASE


class StateDecodeError(BootloaderError):
    """Persisted Environment Record cannot be decoded."""

    code = BootloaderErrorCode.STATE_DECODE_FAILED


class ConfigError(BootloaderError):
    """Operator configuration cannot be decoded or validated."""

    code = BootloaderErrorCode.CONFIG_INVALID
