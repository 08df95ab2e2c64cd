"""Configuration data structures for the DPU CNI provisioner.

The IPAM mode is modelled as a closed set of two frozen dataclasses. Each
variant carries only the fields that mode needs, so a provisioner configured
for External IPAM simply has no VTEP IP or gateway to misuse.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Union

from .exceptions import ConfigurationError

# Interfaces on the DPU the provisioner manages or inspects.
BRIDGE_OVN = "br-ovn"
POD_NETWORK_LINK = "cni0"
OOB_LINK = "br-comm-ch"

# Policy routing: traffic sourced from the pod network or the out-of-band
# address is looked up in a dedicated table that reaches the VTEP CIDR through
# the out-of-band network instead of the overlay bridge.
POLICY_ROUTING_TABLE = 60
POD_NETWORK_RULE_PRIORITY = 31000
OOB_RULE_PRIORITY = 32000

# Host CIDR routes must lose against any more specific route.
HOST_CIDR_ROUTE_METRIC = 10000

# The host PF whose MAC is reserved in the DHCP responder.
HOST_PF_INDEX = "0"

# Added on top of the configured MTU before handing it to the host PF via
# DHCP, accounting for the Geneve encapsulation overhead.
DHCP_MTU_OVERHEAD = 60

# Label carrying the paired host node name on the DPU Node.
DPU_NODE_NAME_LABEL = "provisioning.dpu.nvidia.com/dpunode-name"
# Label server-side applied on the DPU Node so OVN places it in the host's zone.
ZONE_NAME_LABEL = "k8s.ovn.org/zone-name"
FIELD_MANAGER = "dpu-cni-provisioner"

DEFAULT_NETPLAN_APPLY_COOLDOWN = 120.0


@dataclass(frozen=True)
class InternalIPAM:
    """The provisioner assigns the VTEP address and serves DHCP to the host.

    Attributes
    ----------
    vtep_ip:
        Address (with its own prefix) configured on the overlay bridge.
    gateway:
        Next hop for the VTEP CIDR and host CIDR routes.
    pf_ip:
        Address reserved for the host physical function in the DHCP responder.
    """

    vtep_ip: ipaddress.IPv4Interface
    gateway: ipaddress.IPv4Address
    pf_ip: ipaddress.IPv4Interface

    @property
    def vtep_network(self) -> ipaddress.IPv4Network:
        """The VTEP IP's own natural network."""

        return self.vtep_ip.network


@dataclass(frozen=True)
class ExternalIPAM:
    """An external DHCP server addresses the overlay bridge.

    ``gateway_discovery_network`` is a destination the external DHCP server
    installs a route for; the gateway of that route becomes the overlay next
    hop.
    """

    gateway_discovery_network: ipaddress.IPv4Network


IPAMMode = Union[InternalIPAM, ExternalIPAM]


@dataclass(frozen=True)
class ProvisionerConfig:
    """Static configuration of one provisioner.

    ``vtep_cidr`` keeps the address part exactly as configured (for example
    ``192.168.1.0/23``) because that literal is advertised to the host over
    DHCP; routes use :attr:`vtep_cidr_network`.
    """

    ipam: IPAMMode
    vtep_cidr: ipaddress.IPv4Interface
    host_cidr: ipaddress.IPv4Network
    node_name: str
    mtu: int = 0
    netplan_apply_cooldown: float = DEFAULT_NETPLAN_APPLY_COOLDOWN

    def __post_init__(self) -> None:
        if not isinstance(self.ipam, (InternalIPAM, ExternalIPAM)):
            raise ConfigurationError(f"unsupported IPAM mode {self.ipam!r}")
        if not self.node_name:
            raise ConfigurationError("node name must not be empty")
        if self.netplan_apply_cooldown <= 0:
            raise ConfigurationError("netplan apply cooldown must be positive")
        if isinstance(self.ipam, InternalIPAM):
            if self.mtu <= 0:
                raise ConfigurationError("MTU is required in Internal IPAM mode")
            if self.ipam.pf_ip.ip not in self.ipam.vtep_network:
                raise ConfigurationError(
                    f"PF IP {self.ipam.pf_ip.ip} is outside VTEP network "
                    f"{self.ipam.vtep_network}"
                )

    @property
    def vtep_cidr_is_wider(self) -> bool:
        """Whether the VTEP CIDR spans more than the VTEP IP's own network.

        Only meaningful in Internal mode, where the VTEP IP is known up front.
        """

        if not isinstance(self.ipam, InternalIPAM):
            return False
        return self.vtep_cidr_network.prefixlen < self.ipam.vtep_network.prefixlen

    @property
    def vtep_cidr_network(self) -> ipaddress.IPv4Network:
        return self.vtep_cidr.network
