"""Consistency checks between IP pool allocations and the addresses of live pods."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from whereaboutskit.retrievers import RetrievalError, secondary_iface_ip_value

SECONDARY_INTERFACE = "net1"

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass
class IPReservation:
    """One address reserved in an IP pool."""

    ip: IPAddress | str
    container_id: str = ""
    pod_ref: str = ""
    if_name: str = ""
    is_allocated: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.ip, str):
            self.ip = ipaddress.ip_address(self.ip)


class IPPool(Protocol):
    """Anything that can list its IP reservations."""

    def allocations(self) -> Sequence[IPReservation]: ...


Pod = Mapping[str, Any]


def _pod_ip(pod: Pod) -> str | None:
    """Return the last address of the pod's secondary interface, or None."""
    try:
        return secondary_iface_ip_value(pod, SECONDARY_INTERFACE)[-1]
    except RetrievalError:
        return None


def _missing(pools: Iterable[IPPool], pods: Iterable[Pod]) -> list[str]:
    reserved = {str(a.ip) for pool in pools for a in pool.allocations()}
    missing = []
    for pod in pods:
        pod_ip = _pod_ip(pod)
        if pod_ip is None:
            return []
        if pod_ip not in reserved:
            missing.append(pod_ip)
    return missing


def _stale(pools: Iterable[IPPool], pods: Iterable[Pod]) -> list[str]:
    live = {ip for ip in map(_pod_ip, pods) if ip is not None}
    return [
        str(allocation.ip)
        for pool in pools
        for allocation in pool.allocations()
        if str(allocation.ip) not in live
    ]


class Checker:
    """Compare one IP pool with a list of live pods."""

    def __init__(self, ip_pool: IPPool, pods: Iterable[Pod]) -> None:
        self.ip_pool = ip_pool
        self.pods = list(pods)

    def missing_ips(self) -> list[str]:
        """Pod addresses that have no reservation in the pool."""
        return _missing([self.ip_pool], self.pods)

    def stale_ips(self) -> list[str]:
        """Reserved addresses that no live pod holds."""
        return _stale([self.ip_pool], self.pods)


class NodeSliceChecker:
    """Compare the IP pools of all node slices with a list of live pods."""

    def __init__(self, ip_pools: Iterable[IPPool], pods: Iterable[Pod]) -> None:
        self.ip_pools = list(ip_pools)
        self.pods = list(pods)

    def missing_ips(self) -> list[str]:
        """Pod addresses that have no reservation in any pool."""
        return _missing(self.ip_pools, self.pods)

    def stale_ips(self) -> list[str]:
        """Reserved addresses, across all pools, that no live pod holds."""
        return _stale(self.ip_pools, self.pods)