"""Configuration files written by the provisioner."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from pathlib import Path

OVN_GATEWAY_CONFIG_PATH = Path("etc/openvswitch/ovn_k8s.conf")
NETPLAN_CONFIG_PATH = Path("etc/netplan/80-br-ovn.yaml")

# netplan warns about configuration files readable by other users.
NETPLAN_FILE_MODE = 0o600

NETPLAN_BR_OVN = """
network:
  renderer: networkd
  version: 2
  bridges:
    br-ovn:
      dhcp4: yes
      dhcp4-overrides:
        use-dns: no
      openvswitch: {}
"""


@dataclass
class RenderResult:
    """Result of a rendering operation."""

    config_text: str
    output_path: Path


class ConfigRenderer:
    """Render the OVN gateway stanza and the netplan bridge definition.

    All paths are resolved below ``root`` so tests can point the renderer at a
    temporary directory instead of the real filesystem.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def gateway_config_path(self) -> Path:
        return self._root / OVN_GATEWAY_CONFIG_PATH

    @property
    def netplan_config_path(self) -> Path:
        return self._root / NETPLAN_CONFIG_PATH

    def render_gateway_config(
        self,
        next_hop: ipaddress.IPv4Address,
        router_subnet: ipaddress.IPv4Network,
    ) -> RenderResult:
        body = "\n".join(
            [
                "[Gateway]",
                f"next-hop={next_hop}",
                f"router-subnet={router_subnet}",
                "",
            ]
        )
        return self._write(self.gateway_config_path, body)

    def render_netplan_config(self) -> RenderResult:
        result = self._write(self.netplan_config_path, NETPLAN_BR_OVN)
        result.output_path.chmod(NETPLAN_FILE_MODE)
        return result

    def _write(self, output_path: Path, body: str) -> RenderResult:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(body)
        return RenderResult(config_text=body, output_path=output_path)
