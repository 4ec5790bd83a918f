"""Desired content for every artifact in the store, per IaaS.

Rendering is pure: the same context always yields the same bytes, except for
vars stores, which hold freshly generated secrets and are written only once.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from ipaddress import ip_network

import yaml

from bootloader.plan.load_balancers import ResolvedLoadBalancer
from bootloader.store import paths
from bootloader.store.artifacts import Artifact, ArtifactKind
from bootloader.store.canonical import hash_payload
from bootloader.store.state import IaaS, LoadBalancerType

JUMPBOX_SSH_KEY_VAR = "jumpbox_ssh"
DIRECTOR_PORT = 25555

# Vars stores hold credentials; they are never regenerated in place.
WRITE_ONCE_ARTIFACTS = frozenset({"jumpbox-vars-store", "director-vars-store"})
# Embeds load balancer keys.
SENSITIVE_ARTIFACTS = frozenset({"terraform-vars"})


@dataclass(frozen=True)
class PlanContext:
    """Inputs every artifact is rendered from."""

    env_id: str
    iaas: IaaS
    region: str
    internal_cidr: str
    bosh_binary: str = "bosh"
    load_balancers: tuple[ResolvedLoadBalancer, ...] = field(default_factory=tuple)

    def inputs_hash(self) -> str:
        """Digest of the declared inputs; recorded next to each fingerprint."""
        return hash_payload(
            {
                "env_id": self.env_id,
                "iaas": self.iaas.value,
                "region": self.region,
                "internal_cidr": self.internal_cidr,
                "bosh": self.bosh_binary,
                "load_balancers": [
                    {
                        "type": lb.type.value,
                        "domain": lb.declaration.domain,
                        "cert": hash_payload((lb.cert_pem or "").encode("utf-8")),
                        "key": hash_payload((lb.key_pem or "").encode("utf-8")),
                    }
                    for lb in self.load_balancers
                ],
            }
        )


def internal_gateway(cidr: str) -> str:
    return str(ip_network(cidr)[1])


def director_internal_ip(cidr: str) -> str:
    return str(ip_network(cidr)[6])


def jumpbox_internal_ip(cidr: str) -> str:
    return str(ip_network(cidr)[5])


def director_address_for(internal_ip: str) -> str:
    return f"https://{internal_ip}:{DIRECTOR_PORT}"


# ---------------------------------------------------------------------------
# Scripts
# ---------------------------------------------------------------------------

_SCRIPT_HEADER = "#!/bin/bash\nset -eu\n\n"


def _create_env_args(manifest: str, state: str, vars_store: str, vars_file: str) -> str:
    return (
        f'  "${{BBL_STATE_DIR}}/{manifest}" \\\n'
        f'  --state "${{BBL_STATE_DIR}}/{state}" \\\n'
        f'  --vars-store "${{BBL_STATE_DIR}}/{vars_store}" \\\n'
        f'  --vars-file "${{BBL_STATE_DIR}}/{vars_file}"\n'
    )


def _create_script(
    ctx: PlanContext,
    manifest: str,
    state: str,
    vars_store: str,
    vars_file: str,
) -> str:
    return (
        _SCRIPT_HEADER
        + f"{ctx.bosh_binary} create-env \\\n"
        + _create_env_args(manifest, state, vars_store, vars_file)
    )


def _delete_script(
    ctx: PlanContext,
    what: str,
    manifest: str,
    state: str,
    vars_store: str,
    vars_file: str,
) -> str:
    return (
        _SCRIPT_HEADER
        + f'if [ ! -f "${{BBL_STATE_DIR}}/{state}" ]; then\n'
        + f'  echo "{what} state not found; nothing to delete"\n'
        + "  exit 0\n"
        + "fi\n\n"
        + f"{ctx.bosh_binary} delete-env \\\n"
        + _create_env_args(manifest, state, vars_store, vars_file)
    )


# ---------------------------------------------------------------------------
# Terraform
# ---------------------------------------------------------------------------

_COMMON_VARIABLES = """variable "env_id" {
  type = string
}

variable "region" {
  type = string
}

variable "internal_cidr" {
  type    = string
  default = "10.0.0.0/24"
}
"""

_CERT_VARIABLES = """
variable "{prefix}_ssl_certificate" {{
  type = string
}}

variable "{prefix}_ssl_certificate_private_key" {{
  type      = string
  sensitive = true
}}
"""

_AWS_BASE = """
provider "aws" {
  region = var.region
}

resource "aws_vpc" "vpc" {
  cidr_block           = var.internal_cidr
  enable_dns_hostnames = true

  tags = {
    Name = "${var.env_id}-vpc"
  }
}

resource "aws_internet_gateway" "ig" {
  vpc_id = aws_vpc.vpc.id
}

resource "aws_subnet" "bosh_subnet" {
  vpc_id     = aws_vpc.vpc.id
  cidr_block = var.internal_cidr

  tags = {
    Name = "${var.env_id}-bosh-subnet"
  }
}

resource "aws_security_group" "internal" {
  name   = "${var.env_id}-internal"
  vpc_id = aws_vpc.vpc.id

  ingress {
    from_port = 0
    to_port   = 0
    protocol  = "-1"
    self      = true
  }

  egress {
    from_port   = 0
    to_port     = 0
    protocol    = "-1"
    cidr_blocks = ["0.0.0.0/0"]
  }
}

resource "aws_eip" "jumpbox_eip" {
  domain = "vpc"
}

output "jumpbox_url" {
  value = "${aws_eip.jumpbox_eip.public_ip}:22"
}

output "network_name" {
  value = aws_subnet.bosh_subnet.id
}

output "internal_security_group" {
  value = aws_security_group.internal.id
}

output "internal_cidr" {
  value = var.internal_cidr
}

output "director__internal_ip" {
  value = cidrhost(var.internal_cidr, 6)
}
"""

_AWS_CF = """
resource "aws_iam_server_certificate" "cf_lb_cert" {
  name_prefix      = "${var.env_id}-cf"
  certificate_body = var.cf_ssl_certificate
  private_key      = var.cf_ssl_certificate_private_key
}

resource "aws_elb" "cf_router_lb" {
  name            = "${var.env_id}-cf-router"
  subnets         = [aws_subnet.bosh_subnet.id]
  security_groups = [aws_security_group.internal.id]

  listener {
    instance_port      = 80
    instance_protocol  = "http"
    lb_port            = 443
    lb_protocol        = "https"
    ssl_certificate_id = aws_iam_server_certificate.cf_lb_cert.arn
  }
}

resource "aws_elb" "cf_ssh_lb" {
  name            = "${var.env_id}-cf-ssh"
  subnets         = [aws_subnet.bosh_subnet.id]
  security_groups = [aws_security_group.internal.id]

  listener {
    instance_port     = 2222
    instance_protocol = "tcp"
    lb_port           = 2222
    lb_protocol       = "tcp"
  }
}

resource "aws_elb" "cf_tcp_lb" {
  name            = "${var.env_id}-cf-tcp"
  subnets         = [aws_subnet.bosh_subnet.id]
  security_groups = [aws_security_group.internal.id]

  listener {
    instance_port     = 1024
    instance_protocol = "tcp"
    lb_port           = 1024
    lb_protocol       = "tcp"
  }
}

resource "aws_elb" "cf_ws_lb" {
  name            = "${var.env_id}-cf-ws"
  subnets         = [aws_subnet.bosh_subnet.id]
  security_groups = [aws_security_group.internal.id]

  listener {
    instance_port      = 80
    instance_protocol  = "tcp"
    lb_port            = 4443
    lb_protocol        = "ssl"
    ssl_certificate_id = aws_iam_server_certificate.cf_lb_cert.arn
  }
}

output "cf_lb_url" {
  value = "https://${aws_elb.cf_router_lb.dns_name}"
}

output "cf_router_lb_name" {
  value = aws_elb.cf_router_lb.name
}

output "cf_ssh_lb_url" {
  value = aws_elb.cf_ssh_lb.dns_name
}

output "cf_ssh_lb_name" {
  value = aws_elb.cf_ssh_lb.name
}

output "cf_tcp_lb_url" {
  value = aws_elb.cf_tcp_lb.dns_name
}

output "cf_tcp_lb_name" {
  value = aws_elb.cf_tcp_lb.name
}

output "cf_ws_lb_url" {
  value = aws_elb.cf_ws_lb.dns_name
}
"""

_AWS_CONCOURSE = """
resource "aws_elb" "concourse_lb" {
  name            = "${var.env_id}-concourse"
  subnets         = [aws_subnet.bosh_subnet.id]
  security_groups = [aws_security_group.internal.id]

  listener {
    instance_port     = 443
    instance_protocol = "tcp"
    lb_port           = 443
    lb_protocol       = "tcp"
  }
}

output "concourse_lb_url" {
  value = aws_elb.concourse_lb.dns_name
}

output "concourse_lb_name" {
  value = aws_elb.concourse_lb.name
}
"""

_GCP_BASE = """
provider "google" {
  region = var.region
}

resource "google_compute_network" "bbl_network" {
  name                    = "${var.env_id}-network"
  auto_create_subnetworks = false
}

resource "google_compute_subnetwork" "bbl_subnet" {
  name          = "${var.env_id}-subnet"
  ip_cidr_range = var.internal_cidr
  network       = google_compute_network.bbl_network.self_link
}

resource "google_compute_firewall" "internal" {
  name    = "${var.env_id}-internal"
  network = google_compute_network.bbl_network.name

  allow {
    protocol = "all"
  }

  source_tags = ["${var.env_id}-internal"]
  target_tags = ["${var.env_id}-internal"]
}

resource "google_compute_address" "jumpbox_ip" {
  name = "${var.env_id}-jumpbox-ip"
}

output "jumpbox_url" {
  value = "${google_compute_address.jumpbox_ip.address}:22"
}

output "network_name" {
  value = google_compute_network.bbl_network.name
}

output "subnetwork_name" {
  value = google_compute_subnetwork.bbl_subnet.name
}

output "internal_cidr" {
  value = var.internal_cidr
}

output "director__internal_ip" {
  value = cidrhost(var.internal_cidr, 6)
}
"""

_GCP_CF = """
resource "google_compute_ssl_certificate" "cf_cert" {
  name_prefix = "${var.env_id}-cf"
  certificate = var.cf_ssl_certificate
  private_key = var.cf_ssl_certificate_private_key
}

resource "google_compute_global_address" "cf_address" {
  name = "${var.env_id}-cf"
}

resource "google_compute_instance_group" "router_lb" {
  name = "${var.env_id}-router-lb"
  zone = "${var.region}-a"
}

resource "google_compute_health_check" "cf_router" {
  name = "${var.env_id}-cf-router"

  http_health_check {
    port = 8080
  }
}

resource "google_compute_backend_service" "router_lb_backend_service" {
  name          = "${var.env_id}-router-lb"
  protocol      = "HTTP"
  health_checks = [google_compute_health_check.cf_router.id]

  backend {
    group = google_compute_instance_group.router_lb.self_link
  }
}

resource "google_compute_target_pool" "cf_ssh_proxy" {
  name = "${var.env_id}-cf-ssh-proxy"
}

resource "google_compute_address" "cf_ssh_proxy" {
  name = "${var.env_id}-cf-ssh-proxy"
}

resource "google_compute_target_pool" "cf_tcp_router" {
  name = "${var.env_id}-cf-tcp-router"
}

resource "google_compute_address" "cf_tcp_router" {
  name = "${var.env_id}-cf-tcp-router"
}

resource "google_compute_target_pool" "cf_ws" {
  name = "${var.env_id}-cf-ws"
}

resource "google_compute_address" "cf_ws" {
  name = "${var.env_id}-cf-ws"
}

output "cf_lb_ip" {
  value = google_compute_global_address.cf_address.address
}

output "router_backend_service" {
  value = google_compute_backend_service.router_lb_backend_service.name
}

output "cf_ssh_lb_ip" {
  value = google_compute_address.cf_ssh_proxy.address
}

output "ssh_proxy_target_pool" {
  value = google_compute_target_pool.cf_ssh_proxy.name
}

output "cf_tcp_lb_ip" {
  value = google_compute_address.cf_tcp_router.address
}

output "tcp_router_target_pool" {
  value = google_compute_target_pool.cf_tcp_router.name
}

output "cf_ws_lb_ip" {
  value = google_compute_address.cf_ws.address
}
"""

_GCP_CONCOURSE = """
resource "google_compute_target_pool" "concourse" {
  name = "${var.env_id}-concourse"
}

resource "google_compute_address" "concourse" {
  name = "${var.env_id}-concourse"
}

output "concourse_lb_ip" {
  value = google_compute_address.concourse.address
}

output "concourse_target_pool" {
  value = google_compute_target_pool.concourse.name
}
"""

_AZURE_BASE = """
provider "azurerm" {
  features {}
}

resource "azurerm_resource_group" "bosh" {
  name     = "${var.env_id}-bosh"
  location = var.region
}

resource "azurerm_virtual_network" "bosh" {
  name                = "${var.env_id}-bosh-vn"
  address_space       = [var.internal_cidr]
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
}

resource "azurerm_subnet" "bosh" {
  name                 = "${var.env_id}-bosh-sn"
  address_prefixes     = [var.internal_cidr]
  resource_group_name  = azurerm_resource_group.bosh.name
  virtual_network_name = azurerm_virtual_network.bosh.name
}

resource "azurerm_public_ip" "jumpbox" {
  name                = "${var.env_id}-jumpbox-ip"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
}

output "jumpbox_url" {
  value = "${azurerm_public_ip.jumpbox.ip_address}:22"
}

output "network_name" {
  value = azurerm_virtual_network.bosh.name
}

output "subnetwork_name" {
  value = azurerm_subnet.bosh.name
}

output "resource_group_name" {
  value = azurerm_resource_group.bosh.name
}

output "internal_cidr" {
  value = var.internal_cidr
}

output "director__internal_ip" {
  value = cidrhost(var.internal_cidr, 6)
}
"""

_AZURE_CF = """
resource "azurerm_public_ip" "cf_gateway" {
  name                = "${var.env_id}-cf-gateway-ip"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
  sku                 = "Standard"
}

resource "azurerm_application_gateway" "cf" {
  name                = "${var.env_id}-app-gateway"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name

  sku {
    name     = "Standard_v2"
    tier     = "Standard_v2"
    capacity = 2
  }

  ssl_certificate {
    name     = "ssl-cert"
    data     = base64encode(var.cf_ssl_certificate)
    password = ""
  }
}

resource "azurerm_public_ip" "cf_ssh" {
  name                = "${var.env_id}-cf-ssh-ip"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
  sku                 = "Standard"
}

resource "azurerm_lb" "cf_ssh" {
  name                = "${var.env_id}-cf-ssh-lb"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  sku                 = "Standard"

  frontend_ip_configuration {
    name                 = "cf-ssh"
    public_ip_address_id = azurerm_public_ip.cf_ssh.id
  }
}

resource "azurerm_public_ip" "cf_tcp" {
  name                = "${var.env_id}-cf-tcp-ip"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
  sku                 = "Standard"
}

resource "azurerm_lb" "cf_tcp" {
  name                = "${var.env_id}-cf-tcp-lb"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  sku                 = "Standard"

  frontend_ip_configuration {
    name                 = "cf-tcp"
    public_ip_address_id = azurerm_public_ip.cf_tcp.id
  }
}

output "cf_lb_ip" {
  value = azurerm_public_ip.cf_gateway.ip_address
}

output "cf_app_gateway_name" {
  value = azurerm_application_gateway.cf.name
}

output "cf_ssh_lb_ip" {
  value = azurerm_public_ip.cf_ssh.ip_address
}

output "cf_ssh_lb_name" {
  value = azurerm_lb.cf_ssh.name
}

output "cf_tcp_lb_ip" {
  value = azurerm_public_ip.cf_tcp.ip_address
}

output "cf_tcp_lb_name" {
  value = azurerm_lb.cf_tcp.name
}
"""

_AZURE_CONCOURSE = """
resource "azurerm_public_ip" "concourse" {
  name                = "${var.env_id}-concourse-ip"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  allocation_method   = "Static"
  sku                 = "Standard"
}

resource "azurerm_lb" "concourse" {
  name                = "${var.env_id}-concourse-lb"
  location            = var.region
  resource_group_name = azurerm_resource_group.bosh.name
  sku                 = "Standard"

  frontend_ip_configuration {
    name                 = "concourse"
    public_ip_address_id = azurerm_public_ip.concourse.id
  }
}

output "concourse_lb_ip" {
  value = azurerm_public_ip.concourse.ip_address
}

output "concourse_lb_name" {
  value = azurerm_lb.concourse.name
}
"""

_TERRAFORM_FRAGMENTS: dict[IaaS, tuple[str, dict[LoadBalancerType, str]]] = {
    IaaS.AWS: (
        _AWS_BASE,
        {LoadBalancerType.CF: _AWS_CF, LoadBalancerType.CONCOURSE: _AWS_CONCOURSE},
    ),
    IaaS.GCP: (
        _GCP_BASE,
        {LoadBalancerType.CF: _GCP_CF, LoadBalancerType.CONCOURSE: _GCP_CONCOURSE},
    ),
    IaaS.AZURE: (
        _AZURE_BASE,
        {LoadBalancerType.CF: _AZURE_CF, LoadBalancerType.CONCOURSE: _AZURE_CONCOURSE},
    ),
}


def render_terraform_template(ctx: PlanContext) -> str:
    """Infrastructure template: base network plus one fragment per LB type."""
    base, lb_fragments = _TERRAFORM_FRAGMENTS[ctx.iaas]
    parts = [_COMMON_VARIABLES]
    for lb in ctx.load_balancers:
        if lb.cert_pem is not None:
            parts.append(_CERT_VARIABLES.format(prefix=lb.type.value))
    parts.append(base)
    for lb in ctx.load_balancers:
        parts.append(lb_fragments[lb.type])
    return "".join(parts)


def _heredoc(value: str) -> str:
    body = value if value.endswith("\n") else value + "\n"
    return f"<<EOT\n{body}EOT"


def render_terraform_vars(ctx: PlanContext) -> str:
    """Terraform variable values derived from the declared inputs."""
    lines = [
        f'env_id = "{ctx.env_id}"',
        f'region = "{ctx.region}"',
        f'internal_cidr = "{ctx.internal_cidr}"',
    ]
    for lb in ctx.load_balancers:
        if lb.cert_pem is None or lb.key_pem is None:
            continue
        prefix = lb.type.value
        lines.append(f"{prefix}_ssl_certificate = {_heredoc(lb.cert_pem)}")
        lines.append(f"{prefix}_ssl_certificate_private_key = {_heredoc(lb.key_pem)}")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Manifests, vars stores, cloud config
# ---------------------------------------------------------------------------


def _dump(document: dict[str, object]) -> str:
    return yaml.safe_dump(document, sort_keys=False)


def render_jumpbox_manifest(ctx: PlanContext) -> str:
    manifest = {
        "name": "jumpbox",
        "releases": [{"name": "os-conf", "version": "latest"}],
        "resource_pools": [
            {
                "name": "vms",
                "network": "public",
                "env": {"bosh": {"mbus": {"cert": "((mbus_bootstrap_ssl))"}}},
            }
        ],
        "networks": [
            {
                "name": "public",
                "type": "manual",
                "subnets": [
                    {
                        "range": "((internal_cidr))",
                        "gateway": "((internal_gw))",
                        "static": ["((internal_ip))"],
                    }
                ],
            }
        ],
        "instance_groups": [
            {
                "name": "jumpbox",
                "instances": 1,
                "jobs": [
                    {
                        "name": "user_add",
                        "release": "os-conf",
                        "properties": {
                            "users": [
                                {
                                    "name": "jumpbox",
                                    "public_key": f"(({JUMPBOX_SSH_KEY_VAR}.public_key))",
                                }
                            ]
                        },
                    }
                ],
                "resource_pool": "vms",
                "networks": [{"name": "public", "static_ips": ["((internal_ip))"]}],
            }
        ],
        "variables": [
            {"name": JUMPBOX_SSH_KEY_VAR, "type": "ssh"},
            {
                "name": "mbus_bootstrap_ssl",
                "type": "certificate",
                "options": {"common_name": "((internal_ip))", "is_ca": False},
            },
        ],
        "tags": {"bbl-env-id": ctx.env_id, "iaas": ctx.iaas.value},
    }
    return _dump(manifest)


def render_director_manifest(ctx: PlanContext) -> str:
    manifest = {
        "name": "bosh",
        "releases": [{"name": "bosh", "version": "latest"}],
        "instance_groups": [
            {
                "name": "bosh",
                "instances": 1,
                "jobs": [
                    {"name": "nats", "release": "bosh"},
                    {"name": "blobstore", "release": "bosh"},
                    {"name": "director", "release": "bosh"},
                    {"name": "health_monitor", "release": "bosh"},
                ],
                "networks": [{"name": "default", "static_ips": ["((internal_ip))"]}],
                "properties": {
                    "director": {
                        "name": "((director_name))",
                        "uuid": "((director_uuid))",
                        "user_management": {
                            "provider": "local",
                            "local": {
                                "users": [
                                    {"name": "admin", "password": "((admin_password))"}
                                ]
                            },
                        },
                        "ssl": {
                            "cert": "((director_ssl.certificate))",
                            "key": "((director_ssl.private_key))",
                        },
                    },
                    "hm": {"director_account": {"password": "((hm_password))"}},
                    "nats": {"password": "((nats_password))"},
                    "blobstore": {"agent": {"password": "((blobstore_agent_password))"}},
                },
            }
        ],
        "variables": [
            {"name": "default_ca", "type": "certificate", "options": {"is_ca": True}},
            {
                "name": "director_ssl",
                "type": "certificate",
                "options": {"ca": "default_ca", "common_name": "((internal_ip))"},
            },
        ],
        "tags": {"bbl-env-id": ctx.env_id, "iaas": ctx.iaas.value},
    }
    return _dump(manifest)


def render_jumpbox_vars_store(ctx: PlanContext) -> str:
    del ctx
    # Populated by the deployment tool through --vars-store.
    return _dump({})


def render_director_vars_store(ctx: PlanContext) -> str:
    del ctx
    return _dump(
        {
            "admin_password": secrets.token_hex(16),
            "director_uuid": str(uuid.uuid4()),
            "hm_password": secrets.token_hex(16),
            "nats_password": secrets.token_hex(16),
            "blobstore_agent_password": secrets.token_hex(16),
        }
    )


_AZ_PROPERTIES: dict[IaaS, list[dict[str, object]]] = {
    IaaS.AWS: [
        {"name": f"z{i}", "cloud_properties": {"availability_zone": f"((az{i}))"}}
        for i in (1, 2, 3)
    ],
    IaaS.GCP: [
        {"name": f"z{i}", "cloud_properties": {"zone": f"((zone{i}))"}}
        for i in (1, 2, 3)
    ],
    IaaS.AZURE: [{"name": f"z{i}"} for i in (1, 2, 3)],
}

_VM_TYPES: dict[IaaS, dict[str, dict[str, object]]] = {
    IaaS.AWS: {
        "minimal": {"instance_type": "m5.large", "ephemeral_disk": {"size": 10240}},
        "default": {"instance_type": "m5.large", "ephemeral_disk": {"size": 10240}},
        "large": {"instance_type": "m5.xlarge", "ephemeral_disk": {"size": 51200}},
    },
    IaaS.GCP: {
        "minimal": {"machine_type": "n1-standard-1", "root_disk_size_gb": 10},
        "default": {"machine_type": "n1-standard-2", "root_disk_size_gb": 10},
        "large": {"machine_type": "n1-standard-4", "root_disk_size_gb": 50},
    },
    IaaS.AZURE: {
        "minimal": {"instance_type": "Standard_F1s"},
        "default": {"instance_type": "Standard_F2s"},
        "large": {"instance_type": "Standard_F4s"},
    },
}

_DISK_EXTENSION: dict[IaaS, dict[str, object]] = {
    IaaS.AWS: {"ephemeral_disk": {"size": 5120, "type": "gp3"}},
    IaaS.GCP: {"root_disk_size_gb": 5, "root_disk_type": "pd-ssd"},
    IaaS.AZURE: {"ephemeral_disk": {"size": 5120}},
}

_NETWORK_PROPERTIES: dict[IaaS, dict[str, object]] = {
    IaaS.AWS: {"subnet": "((network_name))", "security_groups": ["((internal_security_group))"]},
    IaaS.GCP: {
        "network_name": "((network_name))",
        "subnetwork_name": "((subnetwork_name))",
        "tags": ["((env_id))-internal"],
    },
    IaaS.AZURE: {
        "virtual_network_name": "((network_name))",
        "subnet_name": "((subnetwork_name))",
    },
}


def base_cloud_config(ctx: PlanContext) -> dict[str, object]:
    """Director cloud configuration before load balancer extensions."""
    cidr = ctx.internal_cidr
    return {
        "azs": _AZ_PROPERTIES[ctx.iaas],
        "compilation": {
            "workers": 5,
            "reuse_compilation_vms": True,
            "az": "z1",
            "vm_type": "default",
            "network": "default",
        },
        "disk_types": [
            {"name": "default", "disk_size": 3000},
            {"name": "10GB", "disk_size": 10240},
            {"name": "50GB", "disk_size": 51200},
        ],
        "networks": [
            {
                "name": "default",
                "type": "manual",
                "subnets": [
                    {
                        "azs": ["z1", "z2", "z3"],
                        "range": cidr,
                        "gateway": internal_gateway(cidr),
                        "reserved": [f"{internal_gateway(cidr)}-{jumpbox_internal_ip(cidr)}"],
                        "static": [director_internal_ip(cidr)],
                        "cloud_properties": _NETWORK_PROPERTIES[ctx.iaas],
                    }
                ],
            }
        ],
        "vm_types": [
            {"name": name, "cloud_properties": props}
            for name, props in _VM_TYPES[ctx.iaas].items()
        ],
        "vm_extensions": [
            {"name": "5GB_ephemeral_disk", "cloud_properties": _DISK_EXTENSION[ctx.iaas]},
        ],
    }


def render_cloud_config(ctx: PlanContext) -> str:
    return _dump(base_cloud_config(ctx))


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def render_artifacts(ctx: PlanContext) -> list[Artifact]:
    """Compute every artifact the store must contain for ctx, in write order."""
    inputs_hash = ctx.inputs_hash()

    def artifact(name: str, kind: ArtifactKind, rel_path: str, text: str) -> Artifact:
        return Artifact(
            name=name,
            kind=kind,
            rel_path=rel_path,
            content=text.encode("utf-8"),
            inputs_hash=inputs_hash,
            write_once=name in WRITE_ONCE_ARTIFACTS,
            sensitive=name in SENSITIVE_ARTIFACTS,
        )

    jumpbox_args = (
        paths.JUMPBOX_MANIFEST,
        paths.JUMPBOX_CREATE_ENV_STATE,
        paths.JUMPBOX_VARS_STORE,
        paths.JUMPBOX_VARS_FILE,
    )
    director_args = (
        paths.DIRECTOR_MANIFEST,
        paths.DIRECTOR_CREATE_ENV_STATE,
        paths.DIRECTOR_VARS_STORE,
        paths.DIRECTOR_VARS_FILE,
    )
    artifacts = [
        artifact(
            "jumpbox-vars-store",
            ArtifactKind.VARS_STORE,
            paths.JUMPBOX_VARS_STORE,
            render_jumpbox_vars_store(ctx),
        ),
        artifact(
            "director-vars-store",
            ArtifactKind.VARS_STORE,
            paths.DIRECTOR_VARS_STORE,
            render_director_vars_store(ctx),
        ),
    ]
    for lb in ctx.load_balancers:
        if lb.cert_pem is None or lb.key_pem is None:
            continue
        artifacts.append(
            artifact(
                f"{lb.type.value}-lb-cert",
                ArtifactKind.VARS_STORE,
                paths.lb_cert_path(lb.type.value),
                lb.cert_pem,
            )
        )
        artifacts.append(
            artifact(
                f"{lb.type.value}-lb-key",
                ArtifactKind.VARS_STORE,
                paths.lb_key_path(lb.type.value),
                lb.key_pem,
            )
        )
    artifacts.extend(
        [
            artifact(
                "terraform-template",
                ArtifactKind.INFRA_TEMPLATE,
                paths.TERRAFORM_TEMPLATE,
                render_terraform_template(ctx),
            ),
            artifact(
                "terraform-vars",
                ArtifactKind.INFRA_TEMPLATE,
                paths.TERRAFORM_VARS,
                render_terraform_vars(ctx),
            ),
            artifact(
                "jumpbox-manifest",
                ArtifactKind.MANIFEST,
                paths.JUMPBOX_MANIFEST,
                render_jumpbox_manifest(ctx),
            ),
            artifact(
                "director-manifest",
                ArtifactKind.MANIFEST,
                paths.DIRECTOR_MANIFEST,
                render_director_manifest(ctx),
            ),
            artifact(
                "cloud-config",
                ArtifactKind.MANIFEST,
                paths.CLOUD_CONFIG_BASE,
                render_cloud_config(ctx),
            ),
            artifact(
                "create-jumpbox",
                ArtifactKind.CREATE_SCRIPT,
                paths.CREATE_JUMPBOX_SCRIPT,
                _create_script(ctx, *jumpbox_args),
            ),
            artifact(
                "create-director",
                ArtifactKind.CREATE_SCRIPT,
                paths.CREATE_DIRECTOR_SCRIPT,
                _create_script(ctx, *director_args),
            ),
            artifact(
                "delete-director",
                ArtifactKind.DELETE_SCRIPT,
                paths.DELETE_DIRECTOR_SCRIPT,
                _delete_script(ctx, "director", *director_args),
            ),
            artifact(
                "delete-jumpbox",
                ArtifactKind.DELETE_SCRIPT,
                paths.DELETE_JUMPBOX_SCRIPT,
                _delete_script(ctx, "jumpbox", *jumpbox_args),
            ),
        ]
    )
    return artifacts
