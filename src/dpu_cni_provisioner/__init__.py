"""DPU CNI provisioner.

This package converges the networking a DPU needs before OVN Kubernetes can
run on it. :class:`~dpu_cni_provisioner.provisioner.DPUCNIProvisioner` is
called repeatedly by the agent; each pass:

* labels the local Node with the zone of the host it is paired with;
* addresses the overlay bridge, either directly with a dnsmasq responder for
  the host PF (Internal IPAM) or through a netplan-driven DHCP client
  (External IPAM);
* installs the policy routing that keeps pod and management traffic towards
  the VTEP CIDR on the out-of-band network; and
* writes the OVN gateway stanza and the OVS chassis identity.

All host interaction goes through the interfaces in :mod:`dpu_net_utils`, so
the package is pure Python and unit tests run without root or a cluster.
"""

from .config import ExternalIPAM, InternalIPAM, ProvisionerConfig  # noqa: F401
from .exceptions import (  # noqa: F401
    AddressCountError,
    BridgeAddressPendingError,
    ConfigurationError,
    ExternalDependencyError,
    ProvisionerError,
)
from .provisioner import DPUCNIProvisioner  # noqa: F401

__all__ = [
    "AddressCountError",
    "BridgeAddressPendingError",
    "ConfigurationError",
    "DPUCNIProvisioner",
    "ExternalDependencyError",
    "ExternalIPAM",
    "InternalIPAM",
    "ProvisionerConfig",
    "ProvisionerError",
]
