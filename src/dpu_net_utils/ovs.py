"""OVS chassis identity settings."""

from __future__ import annotations

import ipaddress
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ovsdbapp.backend.ovs_idl import connection
from ovsdbapp.schema.open_vswitch import impl_idl

LOG = logging.getLogger(__name__)

DEFAULT_OVSDB_CONNECTION = "unix:/var/run/openvswitch/db.sock"
DEFAULT_OVSDB_TIMEOUT = 180

OVN_ENCAP_IP_KEY = "ovn-encap-ip"
HOSTNAME_KEY = "hostname"
HOST_K8S_NODENAME_KEY = "host-k8s-nodename"


class OVSClient(ABC):
    @abstractmethod
    def set_ovn_encap_ip(self, ip: ipaddress.IPv4Address) -> None:
        """Set the tunnel endpoint OVN advertises for this chassis."""

    @abstractmethod
    def set_host_name(self, name: str) -> None:
        """Set the chassis hostname."""

    @abstractmethod
    def set_kubernetes_host_node_name(self, name: str) -> None:
        """Set the Kubernetes node name of the host this DPU serves."""


class OvsdbOVSClient(OVSClient):
    """Write ``external_ids`` on the Open_vSwitch root row through ovsdbapp.

    The IDL connection is opened lazily on first use and then reused for the
    lifetime of the client.
    """

    def __init__(
        self,
        connection_string: str = DEFAULT_OVSDB_CONNECTION,
        *,
        timeout: int = DEFAULT_OVSDB_TIMEOUT,
        api: Optional[impl_idl.OvsdbIdl] = None,
    ) -> None:
        self._connection_string = connection_string
        self._timeout = timeout
        self._api = api

    def _get_api(self) -> impl_idl.OvsdbIdl:
        if self._api is None:
            LOG.info("Connecting to OVSDB at %s", self._connection_string)
            idl = connection.OvsdbIdl.from_server(
                self._connection_string, "Open_vSwitch"
            )
            self._api = impl_idl.OvsdbIdl(connection.Connection(idl, self._timeout))
        return self._api

    def _set_external_id(self, key: str, value: str) -> None:
        api = self._get_api()
        LOG.debug("Setting Open_vSwitch external_ids:%s=%s", key, value)
        api.db_set(
            "Open_vSwitch",
            api._ovs.uuid,
            ("external_ids", {key: value}),
        ).execute(check_error=True)

    def set_ovn_encap_ip(self, ip: ipaddress.IPv4Address) -> None:
        self._set_external_id(OVN_ENCAP_IP_KEY, str(ip))

    def set_host_name(self, name: str) -> None:
        self._set_external_id(HOSTNAME_KEY, name)

    def set_kubernetes_host_node_name(self, name: str) -> None:
        self._set_external_id(HOST_K8S_NODENAME_KEY, name)
