"""Helpers shared by the end-to-end scenarios."""

from __future__ import annotations

import ipaddress
import json
from collections.abc import Iterable, Mapping
from typing import Any

from whereaboutskit import entities, waiters
from whereaboutskit.clientinfo import ClientInfo
from whereaboutskit.waiters import PoolGetter

CREATE_POD_TIMEOUT = 10.0
EMPTY_REPLICA_SET = 0
RS_STEADY_TIMEOUT = 1200.0
ZERO_IP_POOL_TIMEOUT = 120.0

Manifest = dict[str, Any]


def allocation_for_pod_ref(
    pod_ref: str, ip_pool: Mapping[str, Any]
) -> Mapping[str, Any] | None:
    """Return the pool allocation held by ``pod_ref``, or None."""
    allocations = (ip_pool.get("spec") or {}).get("allocations") or {}
    return next(
        (a for a in allocations.values() if a.get("podRef") == pod_ref), None
    )


def pod_tier_label(pod_tier: str) -> dict[str, str]:
    """Return the ``tier`` label for a pod."""
    return {"tier": pod_tier}


def validate_node_slice_pool(
    node_slice_name: str,
    namespace: str,
    expected_subnets: int,
    client_info: ClientInfo,
) -> None:
    """Check the slice count, that slices and nodes are unique, and that every node has one.

    Raises ValueError describing the first problem found.
    """
    node_slice = client_info.get_node_slice_pool(node_slice_name, namespace)
    allocations = (node_slice.get("status") or {}).get("allocations") or []
    if len(allocations) != expected_subnets:
        raise ValueError(
            f"expected allocations {expected_subnets} "
            f"but got allocations {len(allocations)}"
        )

    slice_ranges: set[str] = set()
    node_names: set[str] = set()
    for allocation in allocations:
        slice_range = allocation.get("sliceRange", "")
        node_name = allocation.get("nodeName", "")
        if slice_range in slice_ranges:
            raise ValueError(f"error allocation has duplication in subnet {slice_range}")
        if node_name and node_name in node_names:
            raise ValueError(f"error allocation has duplication in nodes {node_name}")
        slice_ranges.add(slice_range)
        node_names.add(node_name)

    for node in client_info.api.list_nodes():
        name = (node.get("metadata") or {}).get("name", "")
        if name not in node_names:
            raise ValueError(f"node not assigned to slice {name}")


def check_zero_ip_pool_allocations_and_replicas(
    client_info: ClientInfo,
    get_pool: PoolGetter,
    rs_name: str,
    namespace: str,
    ip_pool_cidr: str,
    node_slice_size: str,
    *network_names: str,
) -> None:
    """Scale the replica set to zero, then wait for its IP pools to empty."""
    replica_set = client_info.update_replica_set(
        entities.replica_set_object(
            EMPTY_REPLICA_SET,
            rs_name,
            namespace,
            pod_tier_label(rs_name),
            entities.pod_network_selection_elements(*network_names),
        )
    )
    waiters.wait_for_replica_set_steady_state(
        client_info.api,
        namespace,
        entities.replica_set_query(rs_name),
        replica_set,
        RS_STEADY_TIMEOUT,
    )
    if not node_slice_size:
        waiters.wait_for_zero_ip_pool_allocations(
            get_pool, ip_pool_cidr, ZERO_IP_POOL_TIMEOUT
        )
    else:
        waiters.wait_for_zero_ip_pool_allocations_across_node_slices(
            client_info.api, get_pool, ip_pool_cidr, ZERO_IP_POOL_TIMEOUT
        )


def generate_net_attach_def_spec(name: str, namespace: str, config: str) -> Manifest:
    """Return a network attachment definition carrying ``config``."""
    return {
        "apiVersion": "v1",
        "kind": "NetworkAttachmentDefinition",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"config": config},
    }


def _macvlan_config(ipam: Mapping[str, Any]) -> str:
    config = {
        "cniVersion": "0.3.0",
        "disableCheck": True,
        "plugins": [
            {
                "type": "macvlan",
                "master": "eth0",
                "mode": "bridge",
                "ipam": dict(ipam),
            }
        ],
    }
    return json.dumps(config, indent=4)


def _ipam_base(ip_range: str) -> Manifest:
    return {
        "type": "whereabouts",
        "leader_lease_duration": 1500,
        "leader_renew_deadline": 1000,
        "leader_retry_period": 500,
        "range": ip_range,
    }


def macvlan_network_with_whereabouts_ipam_network(
    network_name: str,
    namespace_name: str,
    ip_range: str,
    ip_ranges: Iterable[str],
    pool_name: str,
    enable_overlapping_ranges: bool,
) -> Manifest:
    """Return a macvlan network definition using whereabouts IPAM."""
    ipam = _ipam_base(ip_range)
    ipam.update(
        {
            "ipRanges": json.loads(create_ip_ranges(ip_ranges)),
            "log_level": "debug",
            "log_file": "/tmp/wb",
            "network_name": pool_name,
            "enable_overlapping_ranges": bool(enable_overlapping_ranges),
        }
    )
    return generate_net_attach_def_spec(
        network_name, namespace_name, _macvlan_config(ipam)
    )


def macvlan_network_with_node_slice(
    network_name: str,
    namespace_name: str,
    ip_range: str,
    pool_name: str,
    slice_size: str,
) -> Manifest:
    """Return a macvlan network definition whose range is sliced per node."""
    ipam = _ipam_base(ip_range)
    ipam.update(
        {
            "log_level": "debug",
            "log_file": "/tmp/wb",
            "network_name": pool_name,
            "node_slice_size": slice_size,
        }
    )
    return generate_net_attach_def_spec(
        network_name, namespace_name, _macvlan_config(ipam)
    )


def in_node_range(
    client_info: ClientInfo, node_name: str, slice_name: str, namespace: str, ip: str
) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    """Check that ``ip`` lies in the slice assigned to ``node_name``; return that slice."""
    cidr = waiters.get_node_subnet(client_info.api, node_name, slice_name, namespace)
    return in_range(cidr, ip)


def in_range(cidr: str, ip: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    """Return the network ``cidr`` if it contains ``ip``; raise ValueError otherwise."""
    if "/" not in cidr:
        raise ValueError(f"invalid CIDR address: {cidr}")
    network = ipaddress.ip_network(cidr, strict=False)
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        address = None
    if address is not None and address.version == network.version and address in network:
        return network
    raise ValueError(f"ip [{ip}] is NOT in range {cidr}")


def create_ip_ranges(ranges: Iterable[str]) -> str:
    """Return the JSON list of ``{"range": ...}`` entries for ``ranges``."""
    return "[" + ",".join(f'{{"range": "{r}"}}' for r in ranges) + "]"