"""DPU CNI provisioner.

This module hosts the reconciliation loop that prepares a DPU for OVN
Kubernetes. A pass labels the local Node and records the paired host name
in OVS, addresses the overlay bridge according to the IPAM mode, converges
the policy routing that keeps management traffic off the overlay and finally
programs the OVS encapsulation IP. Every mutation is guarded by a query of
the same state, so the agent can call :meth:`DPUCNIProvisioner.run_once` on
a fixed schedule and a failed pass is completed by the next one.
"""

from __future__ import annotations

import ipaddress
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from dpu_net_utils.clock import Clock
from dpu_net_utils.executor import Executor, ProcessHandle
from dpu_net_utils.kube import NodeClient
from dpu_net_utils.network import NetworkHelper
from dpu_net_utils.ovs import OVSClient

from .config import (
    BRIDGE_OVN,
    DPU_NODE_NAME_LABEL,
    HOST_CIDR_ROUTE_METRIC,
    HOST_PF_INDEX,
    OOB_LINK,
    OOB_RULE_PRIORITY,
    POD_NETWORK_LINK,
    POD_NETWORK_RULE_PRIORITY,
    POLICY_ROUTING_TABLE,
    ZONE_NAME_LABEL,
    ExternalIPAM,
    InternalIPAM,
    ProvisionerConfig,
)
from .dhcp import DNSMASQ, build_dnsmasq_args
from .exceptions import (
    AddressCountError,
    BridgeAddressPendingError,
    ConfigurationError,
    ExternalDependencyError,
    ProvisionerError,
)
from .renderer import ConfigRenderer
from .throttle import ApplyThrottle

LOG = logging.getLogger(__name__)

DEFAULT_ROUTE_NETWORK = ipaddress.IPv4Network("0.0.0.0/0")
NETPLAN = "netplan"


@contextmanager
def _step(name: str) -> Iterator[None]:
    """Re-raise collaborator failures as :class:`ExternalDependencyError`."""

    try:
        yield
    except ProvisionerError:
        raise
    except Exception as exc:
        raise ExternalDependencyError(name, exc) from exc


class DPUCNIProvisioner:
    """Converge DPU networking for OVN Kubernetes, one pass at a time.

    Instances are not thread safe; the caller serializes passes. The netplan
    apply throttle and the dnsmasq handle live on the instance and persist
    across passes.
    """

    def __init__(
        self,
        config: ProvisionerConfig,
        *,
        network: NetworkHelper,
        ovs: OVSClient,
        executor: Executor,
        clock: Clock,
        node_client: NodeClient,
        filesystem_root: Path = Path("/"),
    ) -> None:
        self._config = config
        self._network = network
        self._ovs = ovs
        self._executor = executor
        self._node_client = node_client
        self._renderer = ConfigRenderer(filesystem_root)
        self._netplan_throttle = ApplyThrottle(clock, config.netplan_apply_cooldown)
        self._dhcp_server: Optional[ProcessHandle] = None

    @property
    def config(self) -> ProvisionerConfig:
        return self._config

    @property
    def renderer(self) -> ConfigRenderer:
        return self._renderer

    def run_once(self) -> None:
        """Run a single convergence pass.

        Raises a :class:`~dpu_cni_provisioner.exceptions.ProvisionerError`
        subclass on the first failing step; work done by earlier steps is left
        in place.
        """

        with _step("node labelling"):
            host_name = self._configure_node_labels()

        with _step("OVS host identity"):
            self._ovs.set_kubernetes_host_node_name(host_name)
            self._ovs.set_host_name(host_name)

        ipam = self._config.ipam
        if isinstance(ipam, InternalIPAM):
            with _step("internal IPAM configuration"):
                encap_ip = self._configure_internal_ipam(ipam)
        elif isinstance(ipam, ExternalIPAM):
            with _step("external IPAM configuration"):
                encap_ip = self._configure_external_ipam(ipam)
        else:  # pragma: no cover - rejected by ProvisionerConfig
            raise ConfigurationError(f"unsupported IPAM mode {ipam!r}")

        with _step("policy routing"):
            self._configure_policy_routing()

        with _step("OVS encapsulation IP"):
            self._ovs.set_ovn_encap_ip(encap_ip)

        LOG.debug("Provisioning pass completed (encap_ip=%s, host=%s)", encap_ip, host_name)

    # ------------------------------------------------------------------
    # Node bookkeeping
    # ------------------------------------------------------------------
    def _configure_node_labels(self) -> str:
        """Label the DPU Node with its host's zone and return the host name."""

        node_name = self._config.node_name
        labels = self._node_client.get_node_labels(node_name)
        host_name = labels.get(DPU_NODE_NAME_LABEL)
        if not host_name:
            raise ConfigurationError(
                f"node {node_name} has no '{DPU_NODE_NAME_LABEL}' label"
            )

        self._node_client.apply_node_labels(node_name, {ZONE_NAME_LABEL: host_name})
        LOG.debug("Node %s labelled %s=%s", node_name, ZONE_NAME_LABEL, host_name)
        return host_name

    # ------------------------------------------------------------------
    # Internal IPAM
    # ------------------------------------------------------------------
    def _configure_internal_ipam(self, ipam: InternalIPAM) -> ipaddress.IPv4Address:
        if self._network.link_ip_address_exists(BRIDGE_OVN, ipam.vtep_ip):
            LOG.debug("%s already has address %s", BRIDGE_OVN, ipam.vtep_ip)
        else:
            LOG.info("Assigning %s to %s", ipam.vtep_ip, BRIDGE_OVN)
            self._network.set_link_ip_address(BRIDGE_OVN, ipam.vtep_ip)
        self._network.set_link_up(BRIDGE_OVN)

        # A VTEP CIDR equal to the VTEP network is covered by the connected route.
        if self._config.vtep_cidr_is_wider:
            self._ensure_route(self._config.vtep_cidr_network, ipam.gateway, BRIDGE_OVN)
        self._ensure_route(
            self._config.host_cidr,
            ipam.gateway,
            BRIDGE_OVN,
            metric=HOST_CIDR_ROUTE_METRIC,
        )

        self._ensure_dhcp_server()

        self._renderer.render_gateway_config(ipam.gateway, ipam.vtep_network)
        return ipam.vtep_ip.ip

    def _ensure_dhcp_server(self) -> None:
        if self._dhcp_server is not None:
            if not self._dhcp_server.is_alive():
                LOG.warning(
                    "%s (pid %s) is no longer running and will not be restarted",
                    DNSMASQ,
                    self._dhcp_server.pid,
                )
            return

        pf_mac = self._network.get_host_pf_mac_address_dpu(HOST_PF_INDEX)
        args = build_dnsmasq_args(self._config, pf_mac)
        LOG.info("Starting %s on %s for host PF %s", DNSMASQ, BRIDGE_OVN, pf_mac)
        self._dhcp_server = self._executor.start(DNSMASQ, args)

    # ------------------------------------------------------------------
    # External IPAM
    # ------------------------------------------------------------------
    def _configure_external_ipam(self, ipam: ExternalIPAM) -> ipaddress.IPv4Address:
        self._renderer.render_netplan_config()
        self._apply_netplan()

        addresses = self._network.get_link_ip_addresses(BRIDGE_OVN)
        if not addresses:
            raise BridgeAddressPendingError(BRIDGE_OVN)
        if len(addresses) > 1:
            raise AddressCountError(BRIDGE_OVN, addresses)
        bridge_address = addresses[0]

        gateway = self._network.get_gateway(ipam.gateway_discovery_network)
        self._ensure_route(
            self._config.host_cidr,
            gateway,
            BRIDGE_OVN,
            metric=HOST_CIDR_ROUTE_METRIC,
        )

        self._renderer.render_gateway_config(gateway, bridge_address.network)
        return bridge_address.ip

    def _apply_netplan(self) -> None:
        if not self._netplan_throttle.acquire():
            LOG.debug(
                "Skipping netplan apply, %.0fs of cooldown left",
                self._netplan_throttle.remaining(),
            )
            return
        LOG.info("Applying netplan configuration for %s", BRIDGE_OVN)
        self._executor.run(NETPLAN, ["apply"])

    # ------------------------------------------------------------------
    # Policy routing
    # ------------------------------------------------------------------
    def _configure_policy_routing(self) -> None:
        pod_address = self._single_address(POD_NETWORK_LINK)
        oob_address = self._single_address(OOB_LINK)

        self._ensure_rule(pod_address.network, POD_NETWORK_RULE_PRIORITY)
        self._ensure_rule(
            ipaddress.IPv4Network(f"{oob_address.ip}/32"), OOB_RULE_PRIORITY
        )

        default_gateway = self._network.get_gateway(DEFAULT_ROUTE_NETWORK)
        self._ensure_route(
            self._config.vtep_cidr_network,
            default_gateway,
            OOB_LINK,
            table=POLICY_ROUTING_TABLE,
        )

    def _single_address(self, link: str) -> ipaddress.IPv4Interface:
        addresses = self._network.get_link_ip_addresses(link)
        if len(addresses) != 1:
            raise AddressCountError(link, addresses)
        return addresses[0]

    # ------------------------------------------------------------------
    # Check-then-add helpers
    # ------------------------------------------------------------------
    def _ensure_route(
        self,
        dst: ipaddress.IPv4Network,
        gateway: ipaddress.IPv4Address,
        device: str,
        *,
        metric: Optional[int] = None,
        table: Optional[int] = None,
    ) -> None:
        if self._network.route_exists(dst, gateway, device, table):
            LOG.debug("Route %s via %s dev %s already present", dst, gateway, device)
            return
        LOG.info(
            "Adding route %s via %s dev %s (metric=%s, table=%s)",
            dst,
            gateway,
            device,
            metric,
            table,
        )
        self._network.add_route(dst, gateway, device, metric, table)

    def _ensure_rule(self, src: ipaddress.IPv4Network, priority: int) -> None:
        if self._network.rule_exists(src, POLICY_ROUTING_TABLE, priority):
            LOG.debug("Rule from %s lookup %s already present", src, POLICY_ROUTING_TABLE)
            return
        LOG.info(
            "Adding rule from %s lookup %s priority %s",
            src,
            POLICY_ROUTING_TABLE,
            priority,
        )
        self._network.add_rule(src, POLICY_ROUTING_TABLE, priority)
