"""YAML configuration loader for the DPU CNI agent."""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from dpu_cni_provisioner.config import (
    DEFAULT_NETPLAN_APPLY_COOLDOWN,
    ExternalIPAM,
    InternalIPAM,
    IPAMMode,
    ProvisionerConfig,
)
from dpu_net_utils.ovs import DEFAULT_OVSDB_CONNECTION, DEFAULT_OVSDB_TIMEOUT

NODE_NAME_ENV = "NODE_NAME"


@dataclass
class AgentSettings:
    interval: float = 30.0
    filesystem_root: Path = Path("/")
    ovsdb_connection: str = DEFAULT_OVSDB_CONNECTION
    ovsdb_timeout: int = DEFAULT_OVSDB_TIMEOUT
    kube_request_timeout: Optional[float] = 30.0


@dataclass
class AgentConfig:
    provisioner: ProvisionerConfig
    agent: AgentSettings = field(default_factory=AgentSettings)


def _require(section: Mapping, key: str, where: str):
    value = section.get(key)
    if value is None:
        raise ValueError(f"'{where}' section missing required key '{key}'")
    return value


def _parse_interface(value: str, key: str) -> ipaddress.IPv4Interface:
    value = str(value)
    if "/" not in value:
        raise ValueError(f"'{key}' must include a prefix length, got '{value}'")
    return ipaddress.IPv4Interface(value)


def _parse_network(value: str) -> ipaddress.IPv4Network:
    return ipaddress.IPv4Network(str(value), strict=False)


def _parse_ipam(section: Mapping) -> IPAMMode:
    mode = str(_require(section, "mode", "ipam")).lower()
    if mode == "internal":
        return InternalIPAM(
            vtep_ip=_parse_interface(_require(section, "vtep_ip", "ipam"), "vtep_ip"),
            gateway=ipaddress.IPv4Address(str(_require(section, "gateway", "ipam"))),
            pf_ip=_parse_interface(_require(section, "pf_ip", "ipam"), "pf_ip"),
        )
    if mode == "external":
        return ExternalIPAM(
            gateway_discovery_network=_parse_network(
                _require(section, "gateway_discovery_network", "ipam")
            ),
        )
    raise ValueError(f"Unsupported IPAM mode '{mode}'")


def _parse_agent(section: Mapping) -> AgentSettings:
    timeout = section.get("kube_request_timeout", 30.0)
    return AgentSettings(
        interval=float(section.get("interval", 30.0)),
        filesystem_root=Path(section.get("filesystem_root", "/")),
        ovsdb_connection=str(section.get("ovsdb_connection", DEFAULT_OVSDB_CONNECTION)),
        ovsdb_timeout=int(section.get("ovsdb_timeout", DEFAULT_OVSDB_TIMEOUT)),
        kube_request_timeout=None if timeout is None else float(timeout),
    )


def load_config(path: Path, environ: Optional[Mapping[str, str]] = None) -> AgentConfig:
    """Load the agent configuration from ``path``.

    ``node_name`` falls back to the ``NODE_NAME`` environment variable, which
    is how the DaemonSet passes ``spec.nodeName`` in.
    """

    environ = os.environ if environ is None else environ
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    ipam_section = data.get("ipam")
    if not isinstance(ipam_section, dict):
        raise ValueError("Configuration missing 'ipam' section")

    agent_section = data.get("agent", {})
    if not isinstance(agent_section, dict):
        raise ValueError("'agent' section must be a mapping")

    node_name = data.get("node_name") or environ.get(NODE_NAME_ENV)
    if not node_name:
        raise ValueError(
            f"node name must be set via 'node_name' or ${NODE_NAME_ENV}"
        )

    provisioner = ProvisionerConfig(
        ipam=_parse_ipam(ipam_section),
        vtep_cidr=_parse_interface(
            _require(data, "vtep_cidr", "top-level"), "vtep_cidr"
        ),
        host_cidr=_parse_network(_require(data, "host_cidr", "top-level")),
        node_name=str(node_name),
        mtu=int(data.get("mtu", 0)),
        netplan_apply_cooldown=float(
            data.get("netplan_apply_cooldown", DEFAULT_NETPLAN_APPLY_COOLDOWN)
        ),
    )

    return AgentConfig(provisioner=provisioner, agent=_parse_agent(agent_section))
