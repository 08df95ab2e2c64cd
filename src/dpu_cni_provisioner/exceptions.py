"""Errors raised by a provisioning pass."""

from __future__ import annotations

import ipaddress
from typing import Sequence


class ProvisionerError(Exception):
    """Base class for every error a pass can raise."""


class ConfigurationError(ProvisionerError):
    """Configuration or node state that the pass cannot work with."""


class AddressCountError(ConfigurationError):
    """A watched interface does not carry exactly one address."""

    def __init__(self, link: str, addresses: Sequence[ipaddress.IPv4Interface]) -> None:
        rendered = ", ".join(str(a) for a in addresses) or "none"
        super().__init__(
            f"expected exactly one IPv4 address on {link}, found {len(addresses)} ({rendered})"
        )
        self.link = link
        self.addresses = list(addresses)


class BridgeAddressPendingError(ProvisionerError):
    """The overlay bridge has not obtained its address from DHCP yet.

    Expected right after start-up in External IPAM mode; a later pass
    succeeds once the DHCP client has finished.
    """

    def __init__(self, link: str) -> None:
        super().__init__(f"{link} has no IPv4 address yet, waiting for DHCP")
        self.link = link


class ExternalDependencyError(ProvisionerError):
    """A collaborator (netlink, OVS, Kubernetes, a subprocess) failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"{step} failed: {cause}")
        self.step = step
