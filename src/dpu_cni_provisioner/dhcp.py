"""dnsmasq invocation for the host PF DHCP responder."""

from __future__ import annotations

from typing import List

from .config import BRIDGE_OVN, DHCP_MTU_OVERHEAD, InternalIPAM, ProvisionerConfig

DNSMASQ = "dnsmasq"


def build_dnsmasq_args(config: ProvisionerConfig, pf_mac: str) -> List[str]:
    """Return the dnsmasq arguments serving the host PF on the overlay bridge.

    dnsmasq runs DHCP only (``--port=0`` disables DNS) with a static range
    equal to the VTEP IP's own network and a single reservation for the host
    PF. The router option is sent empty so the host does not install a default
    route through the DPU. When the VTEP CIDR is wider than that network, the
    wider CIDR is advertised as a classless static route via the gateway.
    """

    ipam = config.ipam
    if not isinstance(ipam, InternalIPAM):
        raise TypeError("dnsmasq is only used in Internal IPAM mode")

    args = [
        "--keep-in-foreground",
        "--port=0",
        "--log-facility=-",
        f"--interface={BRIDGE_OVN}",
        "--dhcp-option=option:router",
        f"--dhcp-option=option:mtu,{config.mtu + DHCP_MTU_OVERHEAD}",
        f"--dhcp-range={ipam.vtep_network.network_address},static",
        f"--dhcp-host={pf_mac},{ipam.pf_ip.ip}",
    ]
    if config.vtep_cidr_is_wider:
        args.append(
            "--dhcp-option=option:classless-static-route,"
            f"{config.vtep_cidr.with_prefixlen},{ipam.gateway}"
        )
    return args
