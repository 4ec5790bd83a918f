"""Artifact Store layout. Every path is relative to the state directory."""

from pathlib import Path

STATE_FILENAME = "state.json"
LOCK_FILENAME = ".bbl.lock"
LOGS_DIR = "logs"

CREATE_JUMPBOX_SCRIPT = "create-jumpbox.sh"
CREATE_DIRECTOR_SCRIPT = "create-director.sh"
DELETE_JUMPBOX_SCRIPT = "delete-jumpbox.sh"
DELETE_DIRECTOR_SCRIPT = "delete-director.sh"

TERRAFORM_DIR = "terraform"
TERRAFORM_TEMPLATE = f"{TERRAFORM_DIR}/template.tf"

VARS_DIR = "vars"
TERRAFORM_VARS = f"{VARS_DIR}/bbl.tfvars"
TERRAFORM_STATE = f"{VARS_DIR}/terraform.tfstate"
JUMPBOX_VARS_STORE = f"{VARS_DIR}/jumpbox-variables.yml"
DIRECTOR_VARS_STORE = f"{VARS_DIR}/director-variables.yml"
JUMPBOX_VARS_FILE = f"{VARS_DIR}/jumpbox-vars-file.yml"
DIRECTOR_VARS_FILE = f"{VARS_DIR}/director-vars-file.yml"
JUMPBOX_CREATE_ENV_STATE = f"{VARS_DIR}/jumpbox-state.json"
DIRECTOR_CREATE_ENV_STATE = f"{VARS_DIR}/bosh-state.json"

JUMPBOX_MANIFEST = "jumpbox-deployment/jumpbox.yml"
DIRECTOR_MANIFEST = "bosh-deployment/bosh.yml"

CLOUD_CONFIG_DIR = "cloud-config"
CLOUD_CONFIG_BASE = f"{CLOUD_CONFIG_DIR}/cloud-config.yml"
CLOUD_CONFIG_RECONCILED = f"{CLOUD_CONFIG_DIR}/reconciled.yml"

LB_CERTS_DIR = "lb-certs"


def get_state_path(state_dir: Path) -> Path:
    """Return path to the persisted Environment Record."""
    return state_dir / STATE_FILENAME


def get_lock_path(state_dir: Path) -> Path:
    """Return path to the store-scoped lock file."""
    return state_dir / LOCK_FILENAME


def lb_cert_path(lb_type: str) -> str:
    """Return store-relative path of a load balancer certificate copy."""
    return f"{LB_CERTS_DIR}/{lb_type}.crt"


def lb_key_path(lb_type: str) -> str:
    """Return store-relative path of a load balancer key copy."""
    return f"{LB_CERTS_DIR}/{lb_type}.key"


def resolve_store_path(state_dir: Path, rel_path: str) -> Path:
    """
    Resolve rel_path under state_dir. Raises ValueError if it escapes the store.
    All artifact paths must be confined to the state directory.
    """
    state_dir = state_dir.resolve()
    resolved = (state_dir / rel_path).resolve()
    try:
        resolved.relative_to(state_dir)
    except ValueError:
        raise ValueError(
            f"Artifact path escapes state dir: {rel_path!r} -> {resolved!s}"
        ) from None
    return resolved
