"""Access to the local Kubernetes Node object."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from kubernetes import client, config

LOG = logging.getLogger(__name__)

APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"


class NodeClient(ABC):
    @abstractmethod
    def get_node_labels(self, name: str) -> Dict[str, str]:
        """Return the labels currently set on node ``name``."""

    @abstractmethod
    def apply_node_labels(self, name: str, labels: Mapping[str, str]) -> None:
        """Server-side apply ``labels`` on node ``name``."""


class KubernetesNodeClient(NodeClient):
    """:class:`NodeClient` implemented with the official kubernetes client.

    Labels are applied with server-side apply under a dedicated field manager
    so that repeated passes converge on the same managed fields instead of
    accumulating merge patches.
    """

    def __init__(
        self,
        api: client.CoreV1Api,
        *,
        field_manager: str,
        request_timeout: Optional[float] = None,
    ) -> None:
        self._api = api
        self._field_manager = field_manager
        self._request_timeout = request_timeout

    @classmethod
    def from_environment(
        cls, *, field_manager: str, request_timeout: Optional[float] = None
    ) -> "KubernetesNodeClient":
        """Build a client from in-cluster config, falling back to kubeconfig."""

        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
        return cls(
            client.CoreV1Api(),
            field_manager=field_manager,
            request_timeout=request_timeout,
        )

    def _call_kwargs(self) -> dict:
        if self._request_timeout is None:
            return {}
        return {"_request_timeout": self._request_timeout}

    def get_node_labels(self, name: str) -> Dict[str, str]:
        node = self._api.read_node(name, **self._call_kwargs())
        return dict(node.metadata.labels or {})

    def apply_node_labels(self, name: str, labels: Mapping[str, str]) -> None:
        body = {
            "apiVersion": "v1",
            "kind": "Node",
            "metadata": {"name": name, "labels": dict(labels)},
        }
        LOG.debug("Applying labels %s to node %s", dict(labels), name)
        self._api.patch_node(
            name,
            body,
            field_manager=self._field_manager,
            force=True,
            _content_type=APPLY_PATCH_CONTENT_TYPE,
            **self._call_kwargs(),
        )
