"""Entry point for the DPU CNI provisioning agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from dpu_cni_provisioner import (
    BridgeAddressPendingError,
    DPUCNIProvisioner,
    ProvisionerError,
)
from dpu_cni_provisioner.config import FIELD_MANAGER
from dpu_net_utils import (
    IPRouteNetworkHelper,
    KubernetesNodeClient,
    MonotonicClock,
    OvsdbOVSClient,
    SubprocessExecutor,
)

from .config import AgentConfig, load_config

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_provisioner(config: AgentConfig) -> DPUCNIProvisioner:
    """Wire the production collaborators around the provisioner core."""

    executor = SubprocessExecutor()
    return DPUCNIProvisioner(
        config.provisioner,
        network=IPRouteNetworkHelper(executor),
        ovs=OvsdbOVSClient(
            config.agent.ovsdb_connection, timeout=config.agent.ovsdb_timeout
        ),
        executor=executor,
        clock=MonotonicClock(),
        node_client=KubernetesNodeClient.from_environment(
            field_manager=FIELD_MANAGER,
            request_timeout=config.agent.kube_request_timeout,
        ),
        filesystem_root=config.agent.filesystem_root,
    )


def run_pass(provisioner: DPUCNIProvisioner) -> bool:
    """Run one pass, log its failure if any and report success."""

    try:
        provisioner.run_once()
    except BridgeAddressPendingError as exc:
        LOG.warning("provisioning incomplete: %s", exc)
        return False
    except ProvisionerError:
        LOG.exception("provisioning pass failed")
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the DPU CNI provisioner")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/dpu-cni-provisioner/config.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single provisioning pass and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    provisioner = build_provisioner(config)
    LOG.info(
        "DPU CNI provisioner starting for node %s (%s IPAM)",
        config.provisioner.node_name,
        type(config.provisioner.ipam).__name__,
    )

    if args.once:
        return 0 if run_pass(provisioner) else 1

    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    while not stop_event.is_set():
        run_pass(provisioner)
        stop_event.wait(config.agent.interval)

    LOG.info("DPU CNI provisioner stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
