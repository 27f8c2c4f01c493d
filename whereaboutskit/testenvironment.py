"""Test environment settings read from environment variables."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sized
from dataclasses import dataclass

MAX_PODS_PER_NODE = 110

_INTEGER = re.compile(r"[+-]?\d+")


def _parse_int(name: str, value: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise ValueError(f"invalid integer for {name}: {value!r}")
    return int(value)


def _truncated_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


@dataclass(frozen=True)
class Configuration:
    """Settings that size the end-to-end scenarios."""

    kubeconfig_path: str
    num_compute_nodes: int
    fill_percent_capacity: int
    number_of_iterations: int

    def max_replicas(self, all_pods: Sized) -> int:
        """Replica count that fills the configured share of the cluster's free pod slots."""
        free_slots = self.num_compute_nodes * MAX_PODS_PER_NODE - len(all_pods)
        return _truncated_div(free_slots * self.fill_percent_capacity, 100)


def new_config(environ: Mapping[str, str] | None = None) -> Configuration:
    """Build the configuration from ``environ`` (``os.environ`` by default)."""
    env = os.environ if environ is None else environ

    def integer(name: str, default: str) -> int:
        return _parse_int(name, env.get(name, default))

    return Configuration(
        kubeconfig_path=env.get("KUBECONFIG", "${HOME}/.kube/config"),
        num_compute_nodes=integer("NUMBER_OF_COMPUTE_NODES", "2"),
        fill_percent_capacity=integer("FILL_PERCENT_CAPACITY", "50"),
        number_of_iterations=integer("NUMBER_OF_THRASH_ITER", "1"),
    )