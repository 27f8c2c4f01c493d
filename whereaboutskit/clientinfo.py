"""High-level operations on the cluster used by the end-to-end scenarios.

:class:`ClientInfo` wraps an ``api`` object offering the read calls described in
:mod:`whereaboutskit.waiters` plus these write calls:

* ``create_net_attach_def(namespace, obj)`` and ``delete_net_attach_def(namespace, name)``;
* ``create_pod(namespace, pod)`` and ``delete_pod(namespace, name)``;
* ``create_replica_set(namespace, rs)``, ``update_replica_set(namespace, rs)``
  and ``delete_replica_set(namespace, name)``;
* ``create_stateful_set(namespace, ss)``, ``update_stateful_set(namespace, ss)``
  and ``delete_stateful_set(namespace, name, options)``.

Create and update calls return the object as stored by the cluster.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from whereaboutskit import entities, waiters
from whereaboutskit.waiters import ClusterApi, NotFoundError

CREATE_TIMEOUT = 10.0
DELETE_TIMEOUT = 2 * CREATE_TIMEOUT
RS_CREATE_TIMEOUT = 600.0
RS_DELETE_TIMEOUT = 2 * RS_CREATE_TIMEOUT
NODE_SLICE_CREATE_TIMEOUT = 5.0
POD_CREATE_TIMEOUT = 10.0
POD_DELETE_TIMEOUT = 20.0
STATEFUL_SET_CREATE_TIMEOUT = 60 * CREATE_TIMEOUT
STATEFUL_SET_DELETE_TIMEOUT = 6 * DELETE_TIMEOUT

Manifest = Mapping[str, Any]


def _foreground_delete_options() -> dict[str, Any]:
    """Delete right away and block until the dependent pods are gone."""
    return {"gracePeriodSeconds": 0, "propagationPolicy": "Foreground"}


class WorkloadApi(ClusterApi, Protocol):
    """The read and write calls :class:`ClientInfo` makes against the cluster."""

    def create_net_attach_def(self, namespace: str, obj: Manifest) -> Manifest: ...

    def delete_net_attach_def(self, namespace: str, name: str) -> None: ...

    def create_pod(self, namespace: str, pod: Manifest) -> Manifest: ...

    def delete_pod(self, namespace: str, name: str) -> None: ...

    def create_replica_set(self, namespace: str, rs: Manifest) -> Manifest: ...

    def update_replica_set(self, namespace: str, rs: Manifest) -> Manifest: ...

    def delete_replica_set(self, namespace: str, name: str) -> None: ...

    def create_stateful_set(self, namespace: str, ss: Manifest) -> Manifest: ...

    def update_stateful_set(self, namespace: str, ss: Manifest) -> Manifest: ...

    def delete_stateful_set(
        self, namespace: str, name: str, options: Mapping[str, Any]
    ) -> None: ...


def _meta(obj: Manifest) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def _namespace(obj: Manifest, default: str = "") -> str:
    return _meta(obj).get("namespace") or default


def _name(obj: Manifest) -> str:
    return _meta(obj).get("name", "")


@dataclass
class ClientInfo:
    """Cluster operations that create objects and wait for them to settle."""

    api: WorkloadApi

    def get_node_slice_pool(self, name: str, namespace: str) -> Manifest:
        """Wait for the node slice pool to exist and return it."""
        waiters.wait_for_node_slice_ready(
            self.api, namespace, name, NODE_SLICE_CREATE_TIMEOUT
        )
        return self.api.get_node_slice_pool(namespace, name)

    def add_net_attach_def(self, netattach: Manifest) -> Manifest:
        """Create a network attachment definition in its own namespace."""
        return self.api.create_net_attach_def(_namespace(netattach), netattach)

    def del_net_attach_def(self, netattach: Manifest) -> None:
        """Delete a network attachment definition."""
        self.api.delete_net_attach_def(_namespace(netattach), _name(netattach))

    def node_slice_deleted(self, name: str, namespace: str) -> None:
        """Raise unless the node slice pool is gone."""
        try:
            self.api.get_node_slice_pool(namespace, name)
        except NotFoundError:
            return
        except Exception as exc:
            raise RuntimeError("expected not found nodeslice") from exc
        raise RuntimeError("expected not found nodeslice")

    def provision_pod(
        self,
        pod_name: str,
        namespace: str,
        labels: Mapping[str, str] | None,
        annotations: Mapping[str, str] | None,
    ) -> Manifest:
        """Create a pod, wait for it to run and return its current state."""
        pod = entities.pod_object(pod_name, namespace, labels, annotations)
        created = self.api.create_pod(namespace, pod)
        created_namespace = _namespace(created, namespace)
        created_name = _name(created) or pod_name
        waiters.wait_for_pod_ready(
            self.api, created_namespace, created_name, POD_CREATE_TIMEOUT
        )
        return self.api.get_pod(created_namespace, created_name)

    def delete_pod(self, pod: Manifest) -> None:
        """Delete a pod and wait until it is gone."""
        namespace, name = _namespace(pod), _name(pod)
        self.api.delete_pod(namespace, name)
        waiters.wait_for_pod_to_disappear(self.api, namespace, name, POD_DELETE_TIMEOUT)

    def provision_replica_set(
        self,
        rs_name: str,
        namespace: str,
        replica_count: int,
        labels: Mapping[str, str] | None,
        annotations: Mapping[str, str] | None,
    ) -> Manifest:
        """Create a replica set, wait for its pods to run and return it."""
        created = self.api.create_replica_set(
            namespace,
            entities.replica_set_object(
                replica_count, rs_name, namespace, labels, annotations
            ),
        )
        waiters.wait_for_pod_by_selector(
            self.api, namespace, entities.replica_set_query(rs_name), RS_CREATE_TIMEOUT
        )
        return self.api.get_replica_set(namespace, _name(created) or rs_name)

    def update_replica_set(self, replica_set: Manifest) -> Manifest:
        """Replace a replica set and return the stored version."""
        return self.api.update_replica_set(_namespace(replica_set), replica_set)

    def delete_replica_set(self, replica_set: Manifest) -> None:
        """Delete a replica set and wait until it is gone."""
        namespace, name = _namespace(replica_set), _name(replica_set)
        self.api.delete_replica_set(namespace, name)
        waiters.wait_for_replica_set_to_disappear(
            self.api, namespace, name, RS_DELETE_TIMEOUT
        )

    def provision_stateful_set(
        self,
        stateful_set_name: str,
        namespace: str,
        service_name: str,
        replicas: int,
        *network_names: str,
    ) -> Manifest:
        """Create a stateful set attached to ``network_names`` and wait for it to be ready."""
        created = self.api.create_stateful_set(
            namespace,
            entities.stateful_set_spec(
                stateful_set_name,
                namespace,
                service_name,
                replicas,
                entities.pod_network_selection_elements(*network_names),
            ),
        )
        waiters.wait_for_stateful_set_condition(
            self.api,
            namespace,
            service_name,
            replicas,
            STATEFUL_SET_CREATE_TIMEOUT,
            waiters.is_stateful_set_ready,
        )
        return created

    def delete_stateful_set(
        self, namespace: str, service_name: str, label_selector: str
    ) -> None:
        """Delete a stateful set and wait until it and its pods are gone."""
        self.api.delete_stateful_set(
            namespace, service_name, _foreground_delete_options()
        )
        waiters.wait_for_stateful_set_gone(
            self.api,
            namespace,
            service_name,
            label_selector,
            STATEFUL_SET_DELETE_TIMEOUT,
        )

    def scale_stateful_set(
        self, stateful_set_name: str, namespace: str, delta_instance: int
    ) -> Manifest:
        """Change the stateful set's replica count by ``delta_instance``."""
        stateful_set = copy.deepcopy(
            dict(self.api.get_stateful_set(namespace, stateful_set_name))
        )
        spec = stateful_set.setdefault("spec", {})
        spec["replicas"] = spec.get("replicas", 0) + delta_instance
        return self.api.update_stateful_set(namespace, stateful_set)