# whereaboutskit

Building blocks for end-to-end tests of a cluster-wide IP address
management (IPAM) plugin. Kubernetes objects are plain dictionaries
shaped like the JSON the API server accepts. The cluster API is any
object you pass in, so the helpers run just as well against an
in-memory fake as against an adapter for a real cluster.

## Install

```
pip install whereaboutskit
pip install "whereaboutskit[test]"   # adds pytest
```

The package has no runtime dependencies.

## Modules

### `whereaboutskit.entities`

Manifest builders:

- `pod_object(pod_name, namespace, labels, annotations)`
- `replica_set_object(replica_count, rs_name, namespace, labels, annotations)`
- `stateful_set_spec(stateful_set_name, namespace, service_name, replica_number, annotations)`

It also has two small helpers:

- `pod_network_selection_elements(*network_names)` returns the
  `k8s.v1.cni.cncf.io/networks` annotation.
- `replica_set_query(rs_name)` returns the label selector `tier=<rs_name>`.

### `whereaboutskit.retrievers`

`secondary_iface_ip_value(pod, if_name)` reads the pod's
`k8s.v1.cni.cncf.io/network-status` annotation and returns the IPs
listed for that interface. It raises `RetrievalError` in any of these
cases:

- the annotation is missing or is not valid JSON;
- the interface is not listed;
- the interface has no IPs.

### `whereaboutskit.poolconsistency`

`IPReservation` is a dataclass. Its `ip` field also accepts a string,
which is turned into an address.

`Checker(ip_pool, pods)` compares one pool with the live pods.
`NodeSliceChecker(ip_pools, pods)` compares several pools with them.
A pool is any object with an `allocations()` method that returns
reservations. Both checkers offer:

- `missing_ips()`: addresses on the pods' `net1` interface that no pool
  reserves.
- `stale_ips()`: reserved addresses that no pod holds.

### `whereaboutskit.testenvironment`

`new_config(environ=None)` builds a `Configuration` from these variables
(defaults in brackets):

- `KUBECONFIG` [`${HOME}/.kube/config`]
- `NUMBER_OF_COMPUTE_NODES` [2]
- `FILL_PERCENT_CAPACITY` [50]
- `NUMBER_OF_THRASH_ITER` [1]

A value that is not an integer raises `ValueError`.

`Configuration.max_replicas(all_pods)` returns the chosen percentage of
the free pod slots. Each node is counted as having 110 slots.

### `whereaboutskit.waiters`

`poll_until(condition, timeout, interval=1.0)` checks the condition once
straight away, then once every interval. It raises `WaitTimeout` if the
condition is still false when the timeout runs out.

The waiters below are built on it. They call methods on an `api` object:

- `get_pod`, `list_pods`
- `get_replica_set`
- `get_stateful_set`
- `get_node_slice_pool`
- `list_nodes`

A `get_*` method raises `NotFoundError` when the object does not exist.

Pods:

- `wait_for_pod_ready`: a pod that reaches the `Failed` or `Succeeded`
  phase raises `RuntimeError`.
- `wait_for_pod_to_disappear`
- `wait_for_pod_by_selector`
- `list_pods`

Replica sets:

- `wait_for_replica_set_steady_state`
- `wait_for_replica_set_to_disappear`
- `is_replica_set_synchronized`

Stateful sets:

- `wait_for_stateful_set_gone`
- `wait_for_stateful_set_condition`, used with the predicates
  `is_stateful_set_ready` and `is_stateful_set_degraded`.

Node slice pools:

- `wait_for_node_slice_ready`
- `get_node_subnet`

IP pools:

- `wait_for_zero_ip_pool_allocations`
- `wait_for_zero_ip_pool_allocations_across_node_slices`

Both IP pool waiters take a `get_pool(ip_range, node_name)` callable.

### `whereaboutskit.clientinfo`

`ClientInfo(api)` wraps an api that offers the read calls above and the
matching create, update and delete calls. Each of its operations calls
the api and then waits for the cluster to settle.

Pods:

- `provision_pod`
- `delete_pod`

Replica sets:

- `provision_replica_set`
- `update_replica_set`
- `delete_replica_set`

Stateful sets:

- `provision_stateful_set`
- `scale_stateful_set`
- `delete_stateful_set`: deletes in the foreground with a grace period
  of zero.

Network attachment definitions and node slice pools:

- `add_net_attach_def`
- `del_net_attach_def`
- `get_node_slice_pool`
- `node_slice_deleted`

### `whereaboutskit.util`

Network attachment definitions:

- `generate_net_attach_def_spec`
- `macvlan_network_with_whereabouts_ipam_network`
- `macvlan_network_with_node_slice`
- `create_ip_ranges`

Range checks:

- `in_range(cidr, ip)` returns the network if it contains the address
  and raises `ValueError` otherwise.
- `in_node_range` does the same check against the slice assigned to a
  node.

Other helpers:

- `allocation_for_pod_ref`
- `pod_tier_label`
- `validate_node_slice_pool` checks the slice count and that slices and
  nodes are unique. It raises `ValueError` on the first problem it finds.
- `check_zero_ip_pool_allocations_and_replicas` scales a replica set to
  zero, then waits for its pools to empty.

## Example

```python
import json

from whereaboutskit.poolconsistency import Checker, IPReservation
from whereaboutskit.retrievers import NETWORK_STATUS_ANNOTATION
from whereaboutskit.util import in_range


class Pool:
    def __init__(self, *reservations):
        self._reservations = list(reservations)

    def allocations(self):
        return self._reservations


status = [{"name": "net1", "interface": "net1", "ips": ["192.168.200.2"]}]
pod = {"metadata": {"annotations": {NETWORK_STATUS_ANNOTATION: json.dumps(status)}}}

checker = Checker(Pool(IPReservation(ip="192.168.200.2")), [pod])
assert checker.missing_ips() == []
assert checker.stale_ips() == []

in_range("10.10.0.0/16", "10.10.0.5")  # returns IPv4Network('10.10.0.0/16')
```

## What it does not do

The package does not talk to a cluster on its own. It has no HTTP client,
reads no kubeconfig and has no command-line entry point. You supply the
`api` object, for example an adapter over your Kubernetes client or an
in-memory fake for unit tests.

It does not allocate addresses, and it runs no controllers. It only
builds manifests, reads state through the api you give it, and checks
that state.