import ipaddress

import pytest

from dpu_cni_provisioner.config import ZONE_NAME_LABEL
from dpu_cni_provisioner.exceptions import ConfigurationError, ExternalDependencyError

from .fakes import (
    GATEWAY,
    HOST_CIDR,
    HOST_NAME,
    NODE_NAME,
    PF_MAC,
    VTEP_CIDR,
    VTEP_IP,
    build_internal_config,
)


def test_first_pass_configures_dpu(make_provisioner, network, ovs, executor, node_client):
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    assert network.addresses["br-ovn"] == [VTEP_IP]
    assert "br-ovn" in network.up_links
    assert network.routes[(VTEP_CIDR.network, GATEWAY, "br-ovn", None)] is None
    assert network.routes[(HOST_CIDR, GATEWAY, "br-ovn", None)] == 10000

    assert executor.started == [
        (
            "dnsmasq",
            [
                "--keep-in-foreground",
                "--port=0",
                "--log-facility=-",
                "--interface=br-ovn",
                "--dhcp-option=option:router",
                "--dhcp-option=option:mtu,9000",
                "--dhcp-range=192.168.1.0,static",
                f"--dhcp-host={PF_MAC},192.168.1.2",
                "--dhcp-option=option:classless-static-route,192.168.1.0/23,192.168.1.10",
            ],
        )
    ]

    assert provisioner.renderer.gateway_config_path.read_text() == (
        "[Gateway]\nnext-hop=192.168.1.10\nrouter-subnet=192.168.1.0/24\n"
    )
    assert ovs.external_ids == {
        "ovn-encap-ip": "192.168.1.1",
        "hostname": HOST_NAME,
        "host-k8s-nodename": HOST_NAME,
    }
    assert node_client.applied == [(NODE_NAME, {ZONE_NAME_LABEL: HOST_NAME})]


def test_vtep_cidr_equal_to_vtep_network_skips_wide_route(make_provisioner, network, executor):
    provisioner = make_provisioner(
        build_internal_config(vtep_cidr=ipaddress.IPv4Interface("192.168.1.0/24"), mtu=1440)
    )

    provisioner.run_once()

    overlay_routes = [key for key in network.routes if key[2] == "br-ovn"]
    assert overlay_routes == [(HOST_CIDR, GATEWAY, "br-ovn", None)]

    (command, args), = executor.started
    assert command == "dnsmasq"
    assert "--dhcp-option=option:mtu,1500" in args
    assert not any("classless-static-route" in arg for arg in args)


def test_second_pass_issues_no_mutations(make_provisioner, network, executor):
    provisioner = make_provisioner(build_internal_config())
    provisioner.run_once()
    first = len(network.mutations())

    provisioner.run_once()

    assert len(network.mutations()) == first
    assert len(executor.started) == 1


def test_host_pf_mac_read_only_when_spawning_dnsmasq(make_provisioner, network):
    provisioner = make_provisioner(build_internal_config())

    for _ in range(3):
        provisioner.run_once()

    lookups = [c for c in network.calls if c[0] == "get_host_pf_mac_address_dpu"]
    assert lookups == [("get_host_pf_mac_address_dpu", "0")]


def test_dead_dnsmasq_is_not_restarted(make_provisioner, executor, caplog):
    provisioner = make_provisioner(build_internal_config())
    provisioner.run_once()
    executor.processes[0].alive = False

    with caplog.at_level("WARNING"):
        provisioner.run_once()

    assert len(executor.started) == 1
    assert "will not be restarted" in caplog.text


def test_existing_bridge_address_is_kept(make_provisioner, network):
    network.addresses["br-ovn"] = [VTEP_IP]
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    assert not [c for c in network.calls if c[0] == "set_link_ip_address"]
    assert "br-ovn" in network.up_links


def test_missing_host_label_aborts_pass(make_provisioner, network, ovs, node_client):
    node_client.labels[NODE_NAME] = {}
    provisioner = make_provisioner(build_internal_config())

    with pytest.raises(ConfigurationError):
        provisioner.run_once()

    assert network.calls == []
    assert ovs.calls == []
    assert node_client.applied == []


def test_node_client_failure_is_wrapped(make_provisioner, network, node_client):
    failure = RuntimeError("apiserver unavailable")
    node_client.error = failure
    provisioner = make_provisioner(build_internal_config())

    with pytest.raises(ExternalDependencyError) as excinfo:
        provisioner.run_once()

    assert excinfo.value.step == "node labelling"
    assert excinfo.value.__cause__ is failure
    assert network.calls == []


def test_host_names_set_first_and_encap_ip_last(make_provisioner, network, ovs):
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    assert ovs.calls == [
        ("set_kubernetes_host_node_name", HOST_NAME),
        ("set_host_name", HOST_NAME),
        ("set_ovn_encap_ip", ipaddress.IPv4Address("192.168.1.1")),
    ]


def test_config_cidr_literal_advertised_but_route_normalized(
    make_provisioner, network, executor
):
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    (_, args), = executor.started
    assert args[-1] == (
        "--dhcp-option=option:classless-static-route,192.168.1.0/23,192.168.1.10"
    )
    assert (
        ipaddress.IPv4Network("192.168.0.0/23"), GATEWAY, "br-ovn", None
    ) in network.routes
