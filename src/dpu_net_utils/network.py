"""Netlink-level network primitives.

:class:`IPRouteNetworkHelper` performs every query and mutation through a short
lived :class:`pyroute2.IPRoute` socket. Query methods only ever read state; the
matching mutation methods fail if the object already exists, so callers are
expected to check first.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import socket
from abc import ABC, abstractmethod
from typing import List, Optional

from pyroute2 import IPRoute

from .exceptions import GatewayNotFound, LinkNotFound, NetworkHelperError
from .executor import Executor, SubprocessExecutor

LOG = logging.getLogger(__name__)

# From /usr/include/linux/rtnetlink.h: RT_TABLE_MAIN = 254
RT_TABLE_MAIN = 254

# BlueField naming for the representor of host physical function N.
HOST_PF_REPRESENTOR = "pf{index}hpf"


class NetworkHelper(ABC):
    """Network primitives the provisioner converges with."""

    @abstractmethod
    def link_ip_address_exists(self, link: str, address: ipaddress.IPv4Interface) -> bool:
        """Return whether ``address`` (IP and prefix) is configured on ``link``."""

    @abstractmethod
    def set_link_ip_address(self, link: str, address: ipaddress.IPv4Interface) -> None:
        """Add ``address`` to ``link``."""

    @abstractmethod
    def set_link_up(self, link: str) -> None:
        """Bring ``link`` administratively up."""

    @abstractmethod
    def route_exists(
        self,
        dst: ipaddress.IPv4Network,
        gateway: ipaddress.IPv4Address,
        device: str,
        table: Optional[int] = None,
    ) -> bool:
        """Return whether a route to ``dst`` via ``gateway`` out of ``device`` exists.

        ``table`` defaults to the main routing table.
        """

    @abstractmethod
    def add_route(
        self,
        dst: ipaddress.IPv4Network,
        gateway: ipaddress.IPv4Address,
        device: str,
        metric: Optional[int] = None,
        table: Optional[int] = None,
    ) -> None:
        """Add a route to ``dst`` via ``gateway`` out of ``device``."""

    @abstractmethod
    def rule_exists(self, src: ipaddress.IPv4Network, table: int, priority: int) -> bool:
        """Return whether a ``from src lookup table`` rule exists at ``priority``."""

    @abstractmethod
    def add_rule(self, src: ipaddress.IPv4Network, table: int, priority: int) -> None:
        """Add a ``from src lookup table`` rule at ``priority``."""

    @abstractmethod
    def get_gateway(self, network: ipaddress.IPv4Network) -> ipaddress.IPv4Address:
        """Return the gateway of the preferred main table route to ``network``.

        Among several matching routes the one with the lowest metric wins.
        """

    @abstractmethod
    def get_link_ip_addresses(self, link: str) -> List[ipaddress.IPv4Interface]:
        """Return the IPv4 addresses configured on ``link``."""

    @abstractmethod
    def get_host_pf_mac_address_dpu(self, pf_index: str) -> str:
        """Return the MAC address of host physical function ``pf_index``, seen from the DPU."""


def _link_index(ipr: IPRoute, link: str) -> int:
    indexes = ipr.link_lookup(ifname=link)
    if not indexes:
        raise LinkNotFound(link)
    return indexes[0]


def _to_interface(msg) -> ipaddress.IPv4Interface:
    address = msg.get_attr("IFA_LOCAL") or msg.get_attr("IFA_ADDRESS")
    return ipaddress.IPv4Interface(f"{address}/{msg['prefixlen']}")


def _route_dst(msg) -> ipaddress.IPv4Network:
    # The default route carries no RTA_DST attribute.
    dst = msg.get_attr("RTA_DST") or "0.0.0.0"
    return ipaddress.IPv4Network(f"{dst}/{msg['dst_len']}")


def _route_table(msg) -> int:
    return msg.get_attr("RTA_TABLE") or msg["table"]


def _route_matches(
    msg,
    dst: ipaddress.IPv4Network,
    gateway: ipaddress.IPv4Address,
    oif: int,
    table: int,
) -> bool:
    return (
        _route_table(msg) == table
        and _route_dst(msg) == dst
        and msg.get_attr("RTA_GATEWAY") == str(gateway)
        and msg.get_attr("RTA_OIF") == oif
    )


def _rule_matches(msg, src: ipaddress.IPv4Network, table: int, priority: int) -> bool:
    rule_src = msg.get_attr("FRA_SRC") or "0.0.0.0"
    rule_table = msg.get_attr("FRA_TABLE") or msg["table"]
    return (
        msg["src_len"] == src.prefixlen
        and rule_src == str(src.network_address)
        and rule_table == table
        and msg.get_attr("FRA_PRIORITY") == priority
    )


class IPRouteNetworkHelper(NetworkHelper):
    """:class:`NetworkHelper` backed by pyroute2 netlink sockets.

    The host PF MAC address is not exposed through rtnetlink, so it is read
    from ``devlink`` port function attributes using ``executor``.
    """

    def __init__(self, executor: Optional[Executor] = None) -> None:
        self._executor = executor or SubprocessExecutor()

    def link_ip_address_exists(self, link: str, address: ipaddress.IPv4Interface) -> bool:
        return address in self.get_link_ip_addresses(link)

    def set_link_ip_address(self, link: str, address: ipaddress.IPv4Interface) -> None:
        with IPRoute() as ipr:
            index = _link_index(ipr, link)
            ipr.addr(
                "add",
                index=index,
                address=str(address.ip),
                prefixlen=address.network.prefixlen,
            )
        LOG.debug("Added address %s to %s", address, link)

    def set_link_up(self, link: str) -> None:
        with IPRoute() as ipr:
            ipr.link("set", index=_link_index(ipr, link), state="up")

    def route_exists(
        self,
        dst: ipaddress.IPv4Network,
        gateway: ipaddress.IPv4Address,
        device: str,
        table: Optional[int] = None,
    ) -> bool:
        wanted_table = RT_TABLE_MAIN if table is None else table
        with IPRoute() as ipr:
            oif = _link_index(ipr, device)
            return any(
                _route_matches(msg, dst, gateway, oif, wanted_table)
                for msg in ipr.get_routes(family=socket.AF_INET, table=wanted_table)
            )

    def add_route(
        self,
        dst: ipaddress.IPv4Network,
        gateway: ipaddress.IPv4Address,
        device: str,
        metric: Optional[int] = None,
        table: Optional[int] = None,
    ) -> None:
        with IPRoute() as ipr:
            kwargs = {
                "dst": str(dst.network_address),
                "dst_len": dst.prefixlen,
                "gateway": str(gateway),
                "oif": _link_index(ipr, device),
            }
            if metric is not None:
                kwargs["priority"] = metric
            if table is not None:
                kwargs["table"] = table
            ipr.route("add", **kwargs)

    def rule_exists(self, src: ipaddress.IPv4Network, table: int, priority: int) -> bool:
        with IPRoute() as ipr:
            return any(
                _rule_matches(msg, src, table, priority)
                for msg in ipr.get_rules(family=socket.AF_INET)
            )

    def add_rule(self, src: ipaddress.IPv4Network, table: int, priority: int) -> None:
        with IPRoute() as ipr:
            ipr.rule(
                "add",
                table=table,
                priority=priority,
                src=str(src.network_address),
                src_len=src.prefixlen,
            )

    def get_gateway(self, network: ipaddress.IPv4Network) -> ipaddress.IPv4Address:
        best = None
        with IPRoute() as ipr:
            for msg in ipr.get_routes(family=socket.AF_INET, table=RT_TABLE_MAIN):
                gateway = msg.get_attr("RTA_GATEWAY")
                if not gateway or _route_dst(msg) != network:
                    continue
                # The kernel prefers the lowest metric; no RTA_PRIORITY means 0.
                metric = msg.get_attr("RTA_PRIORITY") or 0
                if best is None or metric < best[0]:
                    best = (metric, gateway)
        if best is None:
            raise GatewayNotFound(str(network))
        return ipaddress.IPv4Address(best[1])

    def get_link_ip_addresses(self, link: str) -> List[ipaddress.IPv4Interface]:
        with IPRoute() as ipr:
            index = _link_index(ipr, link)
            return [
                _to_interface(msg)
                for msg in ipr.get_addr(family=socket.AF_INET, index=index)
            ]

    def get_host_pf_mac_address_dpu(self, pf_index: str) -> str:
        representor = HOST_PF_REPRESENTOR.format(index=pf_index)
        output = self._executor.run("devlink", ["-j", "port", "show"])
        try:
            ports = json.loads(output).get("port", {})
        except json.JSONDecodeError as exc:
            raise NetworkHelperError(f"unparseable devlink output: {exc}") from exc

        for port in ports.values():
            if port.get("netdev") != representor:
                continue
            hw_addr = port.get("function", {}).get("hw_addr")
            if hw_addr:
                return hw_addr.lower()
            break
        raise NetworkHelperError(
            f"no function hw_addr found for host PF representor {representor}"
        )
