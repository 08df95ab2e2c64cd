"""Host-facing capabilities consumed by the DPU CNI provisioner.

Each capability is exposed as a narrow abstract interface together with the
production implementation used on the DPU:

* :mod:`.network` talks netlink through ``pyroute2`` (plus ``devlink`` for the
  host PF representor);
* :mod:`.ovs` writes chassis identity into the local Open_vSwitch database via
  ``ovsdbapp``;
* :mod:`.executor` spawns external commands;
* :mod:`.clock` provides the time source used for rate limiting;
* :mod:`.kube` reads and server-side applies labels on the local Node.

Keeping these behind interfaces lets the reconciliation logic run against
fakes in unit tests without root privileges or a cluster.
"""

from .clock import Clock, MonotonicClock  # noqa: F401
from .exceptions import (  # noqa: F401
    CommandError,
    GatewayNotFound,
    LinkNotFound,
    NetworkHelperError,
)
from .executor import Executor, ProcessHandle, SubprocessExecutor  # noqa: F401
from .kube import KubernetesNodeClient, NodeClient  # noqa: F401
from .network import IPRouteNetworkHelper, NetworkHelper  # noqa: F401
from .ovs import OVSClient, OvsdbOVSClient  # noqa: F401

__all__ = [
    "Clock",
    "CommandError",
    "Executor",
    "GatewayNotFound",
    "IPRouteNetworkHelper",
    "KubernetesNodeClient",
    "LinkNotFound",
    "MonotonicClock",
    "NetworkHelper",
    "NetworkHelperError",
    "NodeClient",
    "OVSClient",
    "OvsdbOVSClient",
    "ProcessHandle",
    "SubprocessExecutor",
]
