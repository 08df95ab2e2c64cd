import ipaddress

import pytest

from dpu_cni_provisioner.exceptions import AddressCountError

from .fakes import DEFAULT_GATEWAY, VTEP_CIDR, build_internal_config

EXTRA = ipaddress.IPv4Interface("10.9.9.9/24")


def test_rules_and_table_route(make_provisioner, network):
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    assert network.rules == {
        (ipaddress.IPv4Network("10.244.6.0/24"), 60, 31000),
        (ipaddress.IPv4Network("10.0.100.100/32"), 60, 32000),
    }
    assert network.routes[(VTEP_CIDR.network, DEFAULT_GATEWAY, "br-comm-ch", 60)] is None
    assert ("get_gateway", ipaddress.IPv4Network("0.0.0.0/0")) in network.calls


def test_existing_rules_are_not_added_again(make_provisioner, network):
    network.rules.add((ipaddress.IPv4Network("10.244.6.0/24"), 60, 31000))
    provisioner = make_provisioner(build_internal_config())

    provisioner.run_once()

    added = [c for c in network.calls if c[0] == "add_rule"]
    assert added == [("add_rule", ipaddress.IPv4Network("10.0.100.100/32"), 60, 32000)]


@pytest.mark.parametrize("link", ["cni0", "br-comm-ch"])
@pytest.mark.parametrize("count", [0, 2])
def test_unexpected_address_count_stops_pass(make_provisioner, network, ovs, link, count):
    addresses = network.addresses[link]
    network.addresses[link] = (addresses + [EXTRA]) if count == 2 else []
    provisioner = make_provisioner(build_internal_config())

    with pytest.raises(AddressCountError) as excinfo:
        provisioner.run_once()

    assert excinfo.value.link == link
    assert len(excinfo.value.addresses) == count
    assert not [c for c in network.calls if c[0] == "add_rule"]
    assert not [k for k in network.routes if k[3] == 60]
    assert "set_ovn_encap_ip" not in [name for name, _ in ovs.calls]
