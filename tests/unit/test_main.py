from unittest import mock

from dpu_cni_agent import main as main_mod
from dpu_cni_provisioner.exceptions import (
    AddressCountError,
    BridgeAddressPendingError,
    ExternalDependencyError,
)


def test_run_pass_success():
    provisioner = mock.Mock()

    assert main_mod.run_pass(provisioner) is True
    provisioner.run_once.assert_called_once_with()


def test_run_pass_pending_bridge_is_a_warning(caplog):
    provisioner = mock.Mock()
    provisioner.run_once.side_effect = BridgeAddressPendingError("br-ovn")

    with caplog.at_level("WARNING"):
        assert main_mod.run_pass(provisioner) is False

    assert caplog.records[-1].levelname == "WARNING"


def test_run_pass_logs_failures():
    for error in (
        AddressCountError("cni0", []),
        ExternalDependencyError("policy routing", OSError("netlink")),
    ):
        provisioner = mock.Mock()
        provisioner.run_once.side_effect = error
        assert main_mod.run_pass(provisioner) is False


def test_main_once(tmp_path):
    config = mock.Mock()
    with mock.patch.object(main_mod, "load_config", return_value=config) as load, mock.patch.object(
        main_mod, "build_provisioner"
    ) as build:
        rc = main_mod.main(["--config", str(tmp_path / "c.yaml"), "--once"])

    assert rc == 0
    load.assert_called_once_with(tmp_path / "c.yaml")
    build.return_value.run_once.assert_called_once_with()
