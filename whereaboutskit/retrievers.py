"""Reading the addresses a pod received on its secondary interfaces."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

NETWORK_STATUS_ANNOTATION = "k8s.v1.cni.cncf.io/network-status"


class RetrievalError(Exception):
    """Raised when a pod's secondary interface addresses cannot be read."""


def secondary_iface_ip_value(pod: Mapping[str, Any], if_name: str) -> list[str]:
    """Return the IPs reported for interface ``if_name`` in the pod's network status."""
    annotations = (pod.get("metadata") or {}).get("annotations") or {}
    raw_status = annotations.get(NETWORK_STATUS_ANNOTATION)
    if raw_status is None:
        raise RetrievalError("the pod must feature the `networks-status` annotation")

    try:
        statuses = json.loads(raw_status)
    except json.JSONDecodeError as exc:
        raise RetrievalError(f"invalid network status annotation: {exc}") from exc
    if statuses is None:
        statuses = []
    if not isinstance(statuses, list):
        raise RetrievalError("invalid network status annotation: expected a list")

    status = next(
        (
            entry
            for entry in statuses
            if isinstance(entry, Mapping) and entry.get("interface") == if_name
        ),
        None,
    )
    if status is None:
        raise RetrievalError("the pod does not have the requested secondary interface")

    ips = status.get("ips") or []
    if not ips:
        raise RetrievalError("the pod does not have IPs for its secondary interfaces")
    return list(ips)