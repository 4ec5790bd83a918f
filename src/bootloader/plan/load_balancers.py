"""Load balancer declarations: validation, cloud-config extensions and endpoints.

Every load balancer type maps to a fixed set of cloud-config extension names
and a fixed set of infrastructure output keys. The plan generator, the cloud
config reconciler and the endpoint reporter all read from the tables here.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic.types import JsonValue

from bootloader.errors import InvalidDeclaration
from bootloader.store.paths import lb_cert_path, lb_key_path
from bootloader.store.state import IaaS, LoadBalancerDeclaration, LoadBalancerType

_PEM_MARKER = "-----BEGIN "


@dataclass(frozen=True)
class EndpointSpec:
    """One reportable endpoint of a load balancer type."""

    label: str
    key_prefix: str
    required: bool = True

    @property
    def keys(self) -> tuple[str, ...]:
        """Output keys tried in order: url first, then bare ip."""
        return (f"{self.key_prefix}_lb_url", f"{self.key_prefix}_lb_ip")


@dataclass(frozen=True)
class ExtensionSpec:
    """One cloud-config vm extension required by a load balancer type."""

    name: str
    role: str


LB_ENDPOINTS: dict[LoadBalancerType, tuple[EndpointSpec, ...]] = {
    LoadBalancerType.CF: (
        EndpointSpec("CF Router LB", "cf"),
        EndpointSpec("CF SSH Proxy LB", "cf_ssh", required=False),
        EndpointSpec("CF TCP Router LB", "cf_tcp", required=False),
        EndpointSpec("CF WebSocket LB", "cf_ws", required=False),
    ),
    LoadBalancerType.CONCOURSE: (EndpointSpec("Concourse LB", "concourse"),),
}

LB_EXTENSIONS: dict[LoadBalancerType, tuple[ExtensionSpec, ...]] = {
    LoadBalancerType.CF: (
        ExtensionSpec("cf-router-network-properties", "cf_router"),
        ExtensionSpec("diego-ssh-proxy-network-properties", "cf_ssh"),
        ExtensionSpec("cf-tcp-router-network-properties", "cf_tcp"),
    ),
    LoadBalancerType.CONCOURSE: (ExtensionSpec("lb", "concourse"),),
}

REQUIRES_CERTIFICATE = frozenset({LoadBalancerType.CF})

# role -> (property name, output key holding the provider resource name)
_AWS_PROPERTIES = {
    "cf_router": ("elbs", "cf_router_lb_name"),
    "cf_ssh": ("elbs", "cf_ssh_lb_name"),
    "cf_tcp": ("elbs", "cf_tcp_lb_name"),
    "concourse": ("elbs", "concourse_lb_name"),
}
_GCP_PROPERTIES = {
    "cf_router": ("backend_service", "router_backend_service"),
    "cf_ssh": ("target_pool", "ssh_proxy_target_pool"),
    "cf_tcp": ("target_pool", "tcp_router_target_pool"),
    "concourse": ("target_pool", "concourse_target_pool"),
}
_AZURE_PROPERTIES = {
    "cf_router": ("application_gateway", "cf_app_gateway_name"),
    "cf_ssh": ("load_balancer", "cf_ssh_lb_name"),
    "cf_tcp": ("load_balancer", "cf_tcp_lb_name"),
    "concourse": ("load_balancer", "concourse_lb_name"),
}


@dataclass(frozen=True)
class ResolvedLoadBalancer:
    """A validated declaration with its certificate material loaded."""

    declaration: LoadBalancerDeclaration
    cert_pem: str | None = None
    key_pem: str | None = None

    @property
    def type(self) -> LoadBalancerType:
        return self.declaration.type


def _read_material(state_dir: Path, ref: str, what: str, lb_type: str) -> str:
    path = Path(ref)
    if not path.is_absolute():
        path = state_dir / path
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InvalidDeclaration(
            f"{lb_type} load balancer {what} not found: {ref}",
            data={"lb_type": lb_type, what: ref},
        ) from None
    except OSError as exc:
        raise InvalidDeclaration(
            f"{lb_type} load balancer {what} unreadable: {ref}: {exc}",
            data={"lb_type": lb_type, what: ref},
        ) from exc
    if _PEM_MARKER not in text:
        raise InvalidDeclaration(
            f"{lb_type} load balancer {what} is not PEM encoded: {ref}",
            data={"lb_type": lb_type, what: ref},
        )
    return text


def resolve_declarations(
    state_dir: Path, declarations: list[LoadBalancerDeclaration]
) -> list[ResolvedLoadBalancer]:
    """Validate declarations and load their certificate material.

    Relative cert/key references resolve inside the state directory, so
    declarations already persisted by a previous plan keep working after the
    operator's original files are gone.

    Raises:
        InvalidDeclaration: On duplicates, missing or unreadable material.
    """
    seen: set[LoadBalancerType] = set()
    resolved: list[ResolvedLoadBalancer] = []
    for decl in declarations:
        lb_type = decl.type.value
        if decl.type in seen:
            raise InvalidDeclaration(
                f"{lb_type} load balancer declared more than once",
                data={"lb_type": lb_type},
            )
        seen.add(decl.type)
        if decl.type in REQUIRES_CERTIFICATE and not (decl.cert_path and decl.key_path):
            raise InvalidDeclaration(
                f"{lb_type} load balancer requires --lb-cert and --lb-key",
                data={"lb_type": lb_type},
            )
        if bool(decl.cert_path) != bool(decl.key_path):
            raise InvalidDeclaration(
                f"{lb_type} load balancer needs both a certificate and a key",
                data={"lb_type": lb_type},
            )
        cert_pem = key_pem = None
        if decl.cert_path and decl.key_path:
            cert_pem = _read_material(state_dir, decl.cert_path, "certificate", lb_type)
            key_pem = _read_material(state_dir, decl.key_path, "key", lb_type)
        resolved.append(
            ResolvedLoadBalancer(declaration=decl, cert_pem=cert_pem, key_pem=key_pem)
        )
    return resolved


def stored_declaration(lb: ResolvedLoadBalancer) -> LoadBalancerDeclaration:
    """Declaration as persisted: cert and key point at the store copies."""
    if lb.cert_pem is None:
        return lb.declaration.model_copy(update={"cert_path": None, "key_path": None})
    return lb.declaration.model_copy(
        update={
            "cert_path": lb_cert_path(lb.type.value),
            "key_path": lb_key_path(lb.type.value),
        }
    )


def required_extension_names(lb_types: list[LoadBalancerType]) -> list[str]:
    """Extension names the cloud config must contain for the declared types."""
    names: list[str] = []
    for lb_type in lb_types:
        names.extend(spec.name for spec in LB_EXTENSIONS.get(lb_type, ()))
    return names


def _resource_name(
    outputs: dict[str, JsonValue], output_key: str, env_id: str, role: str
) -> str:
    value = outputs.get(output_key)
    if isinstance(value, str) and value:
        return value
    return f"{env_id}-{role.replace('_', '-')}"


def extension_cloud_properties(
    iaas: IaaS, env_id: str, role: str, outputs: dict[str, JsonValue]
) -> dict[str, JsonValue]:
    """Provider-specific cloud properties wiring a vm extension to its LB.

    Resource names come from the infrastructure outputs when present, else
    from the env-id naming convention the generated templates use.
    """
    if iaas == IaaS.AWS:
        prop, key = _AWS_PROPERTIES[role]
        return {prop: [_resource_name(outputs, key, env_id, role)]}
    if iaas == IaaS.GCP:
        prop, key = _GCP_PROPERTIES[role]
        name = _resource_name(outputs, key, env_id, role)
        return {prop: name, "tags": [name]}
    prop, key = _AZURE_PROPERTIES[role]
    return {prop: _resource_name(outputs, key, env_id, role)}


def required_extensions(
    iaas: IaaS,
    env_id: str,
    lb_types: list[LoadBalancerType],
    outputs: dict[str, JsonValue],
) -> list[dict[str, JsonValue]]:
    """Compute the vm extension records for every declared load balancer."""
    records: list[dict[str, JsonValue]] = []
    for lb_type in lb_types:
        for spec in LB_EXTENSIONS.get(lb_type, ()):
            records.append(
                {
                    "name": spec.name,
                    "cloud_properties": extension_cloud_properties(
                        iaas, env_id, spec.role, outputs
                    ),
                }
            )
    return records
