from pathlib import Path

import pytest

from dpu_cni_provisioner.config import DPU_NODE_NAME_LABEL, ProvisionerConfig
from dpu_cni_provisioner.provisioner import DPUCNIProvisioner

from .fakes import (
    DEFAULT_GATEWAY,
    DEFAULT_ROUTE,
    DISCOVERED_GATEWAY,
    DISCOVERY_NETWORK,
    HOST_NAME,
    OOB_IP,
    POD_IP,
    FakeClock,
    FakeExecutor,
    FakeNetworkHelper,
    FakeNodeClient,
    FakeOVSClient,
)


@pytest.fixture
def network() -> FakeNetworkHelper:
    helper = FakeNetworkHelper()
    helper.addresses["cni0"] = [POD_IP]
    helper.addresses["br-comm-ch"] = [OOB_IP]
    helper.gateways[DEFAULT_ROUTE] = DEFAULT_GATEWAY
    helper.gateways[DISCOVERY_NETWORK] = DISCOVERED_GATEWAY
    return helper


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ovs() -> FakeOVSClient:
    return FakeOVSClient()


@pytest.fixture
def node_client() -> FakeNodeClient:
    return FakeNodeClient({DPU_NODE_NAME_LABEL: HOST_NAME})


@pytest.fixture
def make_provisioner(tmp_path: Path, network, ovs, executor, clock, node_client):
    def _make(config: ProvisionerConfig) -> DPUCNIProvisioner:
        return DPUCNIProvisioner(
            config,
            network=network,
            ovs=ovs,
            executor=executor,
            clock=clock,
            node_client=node_client,
            filesystem_root=tmp_path,
        )

    return _make
