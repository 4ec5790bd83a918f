"""Load balancer endpoint reporter."""

from __future__ import annotations

from dataclasses import dataclass

from bootloader.errors import EndpointUnresolved
from bootloader.plan.load_balancers import LB_ENDPOINTS
from bootloader.store.state import EnvironmentRecord, LoadBalancerType


@dataclass(frozen=True)
class Endpoint:
    """Resolved address of one load balancer endpoint."""

    lb_type: LoadBalancerType
    label: str
    key: str
    address: str


def resolve_endpoints(record: EnvironmentRecord) -> list[Endpoint]:
    """Read endpoint addresses for every declared LB from captured outputs.

    Each endpoint is looked up as ``<prefix>_lb_url`` then ``<prefix>_lb_ip``.
    Optional endpoints that are absent are reported with an empty address
    so every endpoint of a declared type is always listed.

    Raises:
        EndpointUnresolved: A required endpoint has no output key.
    """
    endpoints: list[Endpoint] = []
    for lb_type in record.lb_types():
        for spec in LB_ENDPOINTS.get(lb_type, ()):
            found = next(
                (
                    (key, value)
                    for key in spec.keys
                    if isinstance((value := record.outputs.get(key)), str) and value
                ),
                None,
            )
            if found is None:
                if spec.required:
                    raise EndpointUnresolved(lb_type.value, spec.keys)
                found = (spec.keys[0], "")
            key, address = found
            endpoints.append(Endpoint(lb_type, spec.label, key, address))
    return endpoints


def format_endpoints(endpoints: list[Endpoint]) -> str:
    return "\n".join(f"{ep.label}: {ep.address}".rstrip() for ep in endpoints)
