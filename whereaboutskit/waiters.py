"""Polling helpers that wait for cluster objects to reach a wanted state.

The helpers talk to the cluster through an ``api`` object that offers:

* ``get_pod(namespace, name)``, ``get_replica_set(namespace, name)``,
  ``get_stateful_set(namespace, name)``, ``get_node_slice_pool(namespace, name)``,
  each returning a manifest dictionary or raising :class:`NotFoundError`;
* ``list_pods(namespace, selector)``, returning the pods matching a label selector;
* ``list_nodes()``, returning the node manifests of the cluster.

IP pools are read through a ``get_pool(ip_range, node_name)`` callable that
returns an object with an ``allocations()`` method, or raises
:class:`NotFoundError` when the pool has not been created yet.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from whereaboutskit.poolconsistency import IPPool

POLL_INTERVAL = 1.0

Manifest = Mapping[str, Any]
StatefulSetPredicate = Callable[[Manifest, int], bool]
PoolGetter = Callable[[str, str], IPPool]


class NotFoundError(LookupError):
    """Raised by an api or pool getter when the requested object does not exist."""


class WaitTimeout(TimeoutError):
    """Raised when a condition is still unmet after the timeout."""


class ClusterApi(Protocol):
    """The calls the waiters make against the cluster."""

    def get_pod(self, namespace: str, name: str) -> Manifest: ...

    def list_pods(self, namespace: str, selector: str) -> Sequence[Manifest]: ...

    def get_replica_set(self, namespace: str, name: str) -> Manifest: ...

    def get_stateful_set(self, namespace: str, name: str) -> Manifest: ...

    def get_node_slice_pool(self, namespace: str, name: str) -> Manifest: ...

    def list_nodes(self) -> Sequence[Manifest]: ...


def _section(obj: Manifest | None, key: str) -> Mapping[str, Any]:
    return (obj or {}).get(key) or {}


def _name(obj: Manifest) -> str:
    return _section(obj, "metadata").get("name", "")


def poll_until(
    condition: Callable[[], bool],
    timeout: float,
    interval: float = POLL_INTERVAL,
) -> None:
    """Call ``condition`` now and then every ``interval`` seconds until it is true.

    An exception raised by ``condition`` stops the polling and propagates.
    Raises :class:`WaitTimeout` when ``timeout`` seconds pass first.
    """
    deadline = time.monotonic() + timeout
    while True:
        if condition():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeout(f"condition not met within {timeout} seconds")
        time.sleep(min(interval, remaining))


# Pods


def list_pods(api: ClusterApi, namespace: str, selector: str) -> list[Manifest]:
    """Return the pods in ``namespace`` matching the label ``selector``."""
    return list(api.list_pods(namespace, selector))


def wait_for_pod_ready(
    api: ClusterApi, namespace: str, pod_name: str, timeout: float
) -> None:
    """Wait until the pod is running; a pod that failed or completed is an error."""

    def is_running() -> bool:
        pod = api.get_pod(namespace, pod_name)
        phase = _section(pod, "status").get("phase")
        if phase == "Running":
            return True
        if phase == "Failed":
            raise RuntimeError("pod failed")
        if phase == "Succeeded":
            raise RuntimeError("pod succeeded")
        return False

    poll_until(is_running, timeout)


def wait_for_pod_to_disappear(
    api: ClusterApi, namespace: str, pod_name: str, timeout: float
) -> None:
    """Wait until the pod no longer exists."""

    def is_gone() -> bool:
        try:
            api.get_pod(namespace, pod_name)
        except NotFoundError:
            return True
        return False

    poll_until(is_gone, timeout)


def wait_for_pod_by_selector(
    api: ClusterApi, namespace: str, selector: str, timeout: float
) -> None:
    """Wait for every pod matching ``selector`` to be running; no pods means done."""
    for pod in list_pods(api, namespace, selector):
        wait_for_pod_ready(api, namespace, _name(pod), timeout)


# Replica sets


def is_replica_set_synchronized(
    replica_set: Manifest, pods: Sequence[Manifest]
) -> bool:
    """True when both the ready replicas and the matching pods equal the desired count."""
    desired = _section(replica_set, "spec").get("replicas", 0)
    ready = _section(replica_set, "status").get("readyReplicas", 0)
    return ready == desired and len(pods) == desired


def wait_for_replica_set_steady_state(
    api: ClusterApi,
    namespace: str,
    label: str,
    replica_set: Manifest,
    timeout: float,
) -> None:
    """Wait until the replica set's pods match its desired replica count."""
    rs_name = _name(replica_set)

    def is_steady() -> bool:
        pods = list_pods(api, namespace, label)
        current = api.get_replica_set(namespace, rs_name)
        return is_replica_set_synchronized(current, pods)

    poll_until(is_steady, timeout)


def wait_for_replica_set_to_disappear(
    api: ClusterApi, namespace: str, rs_name: str, timeout: float
) -> None:
    """Wait until the replica set no longer exists."""

    def is_gone() -> bool:
        try:
            api.get_replica_set(namespace, rs_name)
        except NotFoundError:
            return True
        return False

    poll_until(is_gone, timeout)


# Stateful sets


def is_stateful_set_ready(stateful_set: Manifest, expected_replicas: int) -> bool:
    """True when exactly ``expected_replicas`` replicas are ready."""
    return _section(stateful_set, "status").get("readyReplicas", 0) == expected_replicas


def is_stateful_set_degraded(stateful_set: Manifest, expected_replicas: int) -> bool:
    """True when fewer than ``expected_replicas`` replicas are ready."""
    return _section(stateful_set, "status").get("readyReplicas", 0) < expected_replicas


def wait_for_stateful_set_gone(
    api: ClusterApi,
    namespace: str,
    service_name: str,
    label_selector: str,
    timeout: float,
) -> None:
    """Wait until the stateful set has no replicas and no labelled pods remain."""

    def is_gone() -> bool:
        try:
            stateful_set: Manifest = api.get_stateful_set(namespace, service_name)
        except NotFoundError:
            stateful_set = {}
        pods = list_pods(api, namespace, label_selector)
        empty = _section(stateful_set, "status").get("currentReplicas", 0) == 0
        return empty and not pods

    poll_until(is_gone, timeout)


def wait_for_stateful_set_condition(
    api: ClusterApi,
    namespace: str,
    service_name: str,
    expected_replicas: int,
    timeout: float,
    predicate: StatefulSetPredicate,
) -> None:
    """Wait until ``predicate(stateful_set, expected_replicas)`` holds."""

    def complies() -> bool:
        stateful_set = api.get_stateful_set(namespace, service_name)
        return predicate(stateful_set, expected_replicas)

    poll_until(complies, timeout)


# Node slice pools


def get_node_subnet(
    api: ClusterApi, node_name: str, slice_name: str, namespace: str
) -> str:
    """Return the slice range assigned to ``node_name`` in the node slice pool."""
    node_slice = api.get_node_slice_pool(namespace, slice_name)
    for allocation in _section(node_slice, "status").get("allocations") or []:
        if allocation.get("nodeName") == node_name:
            return allocation.get("sliceRange", "")
    raise LookupError("slice range not found for node")


def wait_for_node_slice_ready(
    api: ClusterApi, namespace: str, node_slice_name: str, timeout: float
) -> None:
    """Wait until the node slice pool exists."""

    def is_ready() -> bool:
        try:
            api.get_node_slice_pool(namespace, node_slice_name)
        except NotFoundError:
            return False
        return True

    poll_until(is_ready, timeout)


# IP pools


def wait_for_zero_ip_pool_allocations(
    get_pool: PoolGetter, ip_pool_cidr: str, timeout: float
) -> None:
    """Wait until the cluster-wide pool for ``ip_pool_cidr`` holds no allocations."""

    def is_empty() -> bool:
        try:
            pool = get_pool(ip_pool_cidr, "")
        except NotFoundError:
            return True
        return not pool.allocations()

    poll_until(is_empty, timeout)


def wait_for_zero_ip_pool_allocations_across_node_slices(
    api: ClusterApi, get_pool: PoolGetter, ip_pool_cidr: str, timeout: float
) -> None:
    """Wait until no node's pool for ``ip_pool_cidr`` holds allocations."""

    def all_empty() -> bool:
        for node in api.list_nodes():
            try:
                pool = get_pool(ip_pool_cidr, _name(node))
            except NotFoundError:
                continue
            if pool.allocations():
                return False
        return True

    poll_until(all_empty, timeout)