"""Cloud configuration document and the reconciler that keeps it in sync.

Reconciliation is a union of vm extensions keyed by name: a required
extension replaces an existing one with the same name in place, new ones are
appended, and everything else in the document is left as fetched.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

import yaml
from pydantic.types import JsonValue

from bootloader.errors import ReconciliationUploadFailed
from bootloader.plan.load_balancers import required_extensions
from bootloader.store.atomic_write import atomic_write_bytes
from bootloader.store.paths import (
    CLOUD_CONFIG_BASE,
    CLOUD_CONFIG_RECONCILED,
    DIRECTOR_VARS_FILE,
)
from bootloader.store.state import EnvironmentRecord, ReconciliationRecord, now_iso

if TYPE_CHECKING:
    from bootloader.pipeline.director import DirectorClient

_LOGGER = logging.getLogger(__name__)

EXTENSIONS_KEY = "vm_extensions"

CloudConfigDocument: TypeAlias = dict[str, Any]


def parse_cloud_config(text: str) -> CloudConfigDocument:
    """Parse a cloud config YAML document. Empty text is an empty document.

    Raises:
        ValueError: If the text is not a YAML mapping.
    """
    try:
        data = yaml.safe_load(text) if text.strip() else {}
    except yaml.YAMLError as exc:
        raise ValueError(f"cloud config is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("cloud config root must be a mapping")
    return data


def dump_cloud_config(document: CloudConfigDocument) -> str:
    return yaml.safe_dump(document, sort_keys=False)


def extension_names(document: CloudConfigDocument) -> list[str]:
    """Names of the vm extensions in document, in order."""
    return [
        ext["name"]
        for ext in document.get(EXTENSIONS_KEY) or []
        if isinstance(ext, dict) and "name" in ext
    ]


def merge_extensions(
    existing: list[dict[str, Any]], required: list[dict[str, JsonValue]]
) -> list[dict[str, Any]]:
    """Union existing and required extensions by name.

    A required extension replaces the existing entry of the same name at that
    entry's position; unrelated entries keep their content and order; new
    names are appended. The result has unique names.
    """
    wanted = {str(ext["name"]): ext for ext in required}
    merged: list[dict[str, Any]] = []
    seen: set[str] = set()
    for ext in existing:
        name = ext.get("name") if isinstance(ext, dict) else None
        if name is None:
            merged.append(ext)
            continue
        if name in seen:
            continue
        seen.add(name)
        merged.append(copy.deepcopy(wanted.get(name, ext)))
    for name, ext in wanted.items():
        if name not in seen:
            seen.add(name)
            merged.append(copy.deepcopy(ext))
    return merged


def merge_cloud_config(
    document: CloudConfigDocument, required: list[dict[str, JsonValue]]
) -> CloudConfigDocument:
    """Return a copy of document with required extensions merged in."""
    merged = copy.deepcopy(document)
    merged[EXTENSIONS_KEY] = merge_extensions(
        list(document.get(EXTENSIONS_KEY) or []), required
    )
    return merged


def read_store_cloud_config(state_dir: Path) -> str | None:
    """Reconciled cloud config if up has run, else the planned base, else None."""
    for rel_path in (CLOUD_CONFIG_RECONCILED, CLOUD_CONFIG_BASE):
        path = state_dir / rel_path
        if path.is_file():
            return path.read_text(encoding="utf-8")
    return None


class CloudConfigReconciler:
    """Merge load balancer extensions into the director's cloud config."""

    def __init__(self, state_dir: Path, director: DirectorClient) -> None:
        self._state_dir = state_dir
        self._director = director

    def reconcile(self, record: EnvironmentRecord) -> ReconciliationRecord:
        """Fetch, merge, persist and upload if changed.

        When the director has no cloud config yet, or cannot be reached, the
        base document planned into the store (possibly operator edited) is the
        starting point. The merged document is persisted before any upload
        is attempted.

        Raises:
            ReconciliationUploadFailed: The fetch or the upload failed. The
                director's previous cloud config remains in effect.
        """
        fetch_error: ReconciliationUploadFailed | None = None
        try:
            fetched_text = self._director.get_cloud_config(record.director)
        except ReconciliationUploadFailed as exc:
            _LOGGER.warning("Cannot fetch cloud config; using planned base: %s", exc)
            fetch_error = exc
            fetched_text = ""
        try:
            fetched = parse_cloud_config(fetched_text)
            current = fetched or self._base_document()
        except ValueError as exc:
            raise ReconciliationUploadFailed(str(exc)) from exc

        required = required_extensions(
            record.iaas, record.env_id, record.lb_types(), record.outputs
        )
        merged = merge_cloud_config(current, required)
        text = dump_cloud_config(merged)
        reconciled_path = self._state_dir / CLOUD_CONFIG_RECONCILED
        try:
            reconciled_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_bytes(
                reconciled_path,
                text.encode("utf-8"),
                "cloud-config",
            )
        except OSError as exc:
            _LOGGER.warning("Cannot persist reconciled cloud config: %s", exc)

        changed = fetch_error is not None or merged != fetched
        if changed:
            vars_file = self._state_dir / DIRECTOR_VARS_FILE
            try:
                self._director.update_cloud_config(
                    record.director, text, vars_file if vars_file.is_file() else None
                )
            except ReconciliationUploadFailed as exc:
                if fetch_error is not None:
                    raise ReconciliationUploadFailed(
                        f"{fetch_error}; {exc}", data=exc.data
                    ) from exc
                raise
            _LOGGER.info("Uploaded cloud config with %d extension(s)", len(required))
        else:
            _LOGGER.info("Cloud config already up to date")
        return ReconciliationRecord(
            extension_names=extension_names(merged),
            changed=changed,
            uploaded=changed,
            reconciled_at=now_iso(),
        )

    def _base_document(self) -> CloudConfigDocument:
        path = self._state_dir / CLOUD_CONFIG_BASE
        if not path.is_file():
            return {}
        return parse_cloud_config(path.read_text(encoding="utf-8"))
