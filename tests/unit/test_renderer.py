import ipaddress
from pathlib import Path

from dpu_cni_provisioner.renderer import NETPLAN_BR_OVN, ConfigRenderer


def test_renderer_writes_gateway_stanza(tmp_path: Path):
    renderer = ConfigRenderer(tmp_path)

    result = renderer.render_gateway_config(
        ipaddress.IPv4Address("192.168.1.10"),
        ipaddress.IPv4Network("192.168.1.0/24"),
    )

    assert result.output_path == tmp_path / "etc/openvswitch/ovn_k8s.conf"
    assert result.output_path.read_text() == (
        "[Gateway]\nnext-hop=192.168.1.10\nrouter-subnet=192.168.1.0/24\n"
    )


def test_renderer_overwrites_existing_stanza(tmp_path: Path):
    renderer = ConfigRenderer(tmp_path)
    renderer.render_gateway_config(
        ipaddress.IPv4Address("192.168.1.10"), ipaddress.IPv4Network("192.168.1.0/24")
    )

    result = renderer.render_gateway_config(
        ipaddress.IPv4Address("192.168.1.254"), ipaddress.IPv4Network("192.168.0.0/23")
    )

    assert "next-hop=192.168.1.254" in result.output_path.read_text()
    assert "192.168.1.10" not in result.output_path.read_text()


def test_renderer_writes_netplan_file(tmp_path: Path):
    renderer = ConfigRenderer(tmp_path)

    result = renderer.render_netplan_config()

    assert result.output_path == tmp_path / "etc/netplan/80-br-ovn.yaml"
    assert result.config_text == NETPLAN_BR_OVN
    assert result.output_path.read_text().startswith("\nnetwork:\n")
    assert result.output_path.stat().st_mode & 0o777 == 0o600
