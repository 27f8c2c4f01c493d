import pytest

from whereaboutskit.poolconsistency import IPReservation
from whereaboutskit.waiters import (
    NotFoundError,
    WaitTimeout,
    get_node_subnet,
    is_replica_set_synchronized,
    is_stateful_set_degraded,
    is_stateful_set_ready,
    list_pods,
    poll_until,
    wait_for_node_slice_ready,
    wait_for_pod_by_selector,
    wait_for_pod_ready,
    wait_for_pod_to_disappear,
    wait_for_replica_set_steady_state,
    wait_for_replica_set_to_disappear,
    wait_for_stateful_set_condition,
    wait_for_stateful_set_gone,
    wait_for_zero_ip_pool_allocations,
    wait_for_zero_ip_pool_allocations_across_node_slices,
)

NS = "default"


def make_pod(name, phase="Running", labels=None):
    return {
        "metadata": {"name": name, "namespace": NS, "labels": labels or {}},
        "status": {"phase": phase},
    }


class FakeApi:
    def __init__(self, pods=(), replica_sets=None, stateful_sets=None,
                 node_slices=None, nodes=(), failure=None):
        self.pods = {p["metadata"]["name"]: p for p in pods}
        self.replica_sets = replica_sets or {}
        self.stateful_sets = stateful_sets or {}
        self.node_slices = node_slices or {}
        self.nodes = list(nodes)
        self.failure = failure
        self.calls = []

    def _lookup(self, kind, table, name):
        self.calls.append((kind, name))
        if self.failure is not None:
            raise self.failure
        if name not in table:
            raise NotFoundError(name)
        return table[name]

    def get_pod(self, namespace, name):
        return self._lookup("pod", self.pods, name)

    def list_pods(self, namespace, selector):
        self.calls.append(("list", selector))
        if not selector:
            return list(self.pods.values())
        key, value = selector.split("=", 1)
        return [p for p in self.pods.values()
                if p["metadata"]["labels"].get(key) == value]

    def get_replica_set(self, namespace, name):
        return self._lookup("rs", self.replica_sets, name)

    def get_stateful_set(self, namespace, name):
        return self._lookup("sts", self.stateful_sets, name)

    def get_node_slice_pool(self, namespace, name):
        return self._lookup("slice", self.node_slices, name)

    def list_nodes(self):
        return self.nodes


class FakePool:
    def __init__(self, *ips):
        self.reservations = [IPReservation(ip) for ip in ips]

    def allocations(self):
        return self.reservations


def pool_getter(pools):
    def get_pool(ip_range, node_name):
        key = (ip_range, node_name)
        if key not in pools:
            raise NotFoundError(key)
        return pools[key]
    return get_pool


# poll_until


def test_poll_until_checks_immediately():
    calls = []
    poll_until(lambda: calls.append(1) or True, timeout=0)
    assert calls == [1]


def test_poll_until_retries_until_true():
    calls = []
    poll_until(lambda: calls.append(1) or len(calls) >= 3,
               timeout=5, interval=0.001)
    assert calls == [1, 1, 1]


def test_poll_until_times_out():
    with pytest.raises(WaitTimeout):
        poll_until(lambda: False, timeout=0.01, interval=0.001)


def test_poll_until_stops_on_error():
    calls = []

    def condition():
        calls.append(1)
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        poll_until(condition, timeout=5, interval=0.001)
    assert len(calls) == 1


# pods


def test_pod_ready_when_running():
    api = FakeApi(pods=[make_pod("a")])
    wait_for_pod_ready(api, NS, "a", 0)
    assert api.calls == [("pod", "a")]


@pytest.mark.parametrize("phase,message", [("Failed", "pod failed"),
                                           ("Succeeded", "pod succeeded")])
def test_pod_ready_terminal_phase_is_error(phase, message):
    api = FakeApi(pods=[make_pod("a", phase)])
    with pytest.raises(RuntimeError, match=message):
        wait_for_pod_ready(api, NS, "a", 5)


def test_pod_ready_pending_times_out():
    api = FakeApi(pods=[make_pod("a", "Pending")])
    with pytest.raises(WaitTimeout):
        wait_for_pod_ready(api, NS, "a", 0)


def test_pod_ready_missing_pod_is_error():
    with pytest.raises(NotFoundError):
        wait_for_pod_ready(FakeApi(), NS, "a", 5)


def test_pod_disappear_when_missing():
    api = FakeApi()
    wait_for_pod_to_disappear(api, NS, "a", 0)
    assert api.calls == [("pod", "a")]


def test_pod_disappear_times_out_when_present():
    with pytest.raises(WaitTimeout):
        wait_for_pod_to_disappear(FakeApi(pods=[make_pod("a")]), NS, "a", 0)


def test_pod_disappear_other_error_propagates():
    api = FakeApi(failure=PermissionError("forbidden"))
    with pytest.raises(PermissionError):
        wait_for_pod_to_disappear(api, NS, "a", 5)


def test_pod_by_selector_without_pods_gets_nothing():
    api = FakeApi(pods=[make_pod("x", labels={"tier": "other"})])
    wait_for_pod_by_selector(api, NS, "tier=rs", 0)
    assert api.calls == [("list", "tier=rs")]


def test_pod_by_selector_waits_for_each_pod():
    api = FakeApi(pods=[make_pod("a", labels={"tier": "rs"}),
                        make_pod("b", labels={"tier": "rs"})])
    wait_for_pod_by_selector(api, NS, "tier=rs", 0)
    assert api.calls[1:] == [("pod", "a"), ("pod", "b")]


def test_pod_by_selector_pending_times_out():
    api = FakeApi(pods=[make_pod("a", "Pending", labels={"tier": "rs"})])
    with pytest.raises(WaitTimeout):
        wait_for_pod_by_selector(api, NS, "tier=rs", 0)


def test_list_pods_filters_by_selector():
    api = FakeApi(pods=[make_pod("a", labels={"tier": "rs"}),
                        make_pod("b", labels={"tier": "no"})])
    names = [p["metadata"]["name"] for p in list_pods(api, NS, "tier=rs")]
    assert names == ["a"]


# replica sets


def replica_set(desired, ready):
    return {"metadata": {"name": "rs"}, "spec": {"replicas": desired},
            "status": {"readyReplicas": ready}}


@pytest.mark.parametrize("desired,ready,pod_count,expected", [
    (2, 2, 2, True),
    (2, 1, 2, False),
    (2, 2, 3, False),
    (0, 0, 0, True),
    (0, 0, 1, False),
])
def test_replica_set_synchronized(desired, ready, pod_count, expected):
    pods = [make_pod(str(i)) for i in range(pod_count)]
    assert is_replica_set_synchronized(replica_set(desired, ready), pods) is expected


def test_replica_set_without_status_counts_zero_ready():
    rs = {"metadata": {"name": "rs"}, "spec": {"replicas": 0}}
    assert is_replica_set_synchronized(rs, [])


def test_replica_set_steady_state_reads_current_object():
    rs = replica_set(1, 1)
    api = FakeApi(pods=[make_pod("a", labels={"tier": "rs"})],
                  replica_sets={"rs": rs})
    stale = replica_set(5, 0)
    wait_for_replica_set_steady_state(api, NS, "tier=rs", stale, 0)
    assert ("rs", "rs") in api.calls


def test_replica_set_steady_state_times_out():
    api = FakeApi(replica_sets={"rs": replica_set(1, 0)})
    with pytest.raises(WaitTimeout):
        wait_for_replica_set_steady_state(api, NS, "tier=rs", replica_set(1, 0), 0)


def test_replica_set_disappear():
    api = FakeApi()
    wait_for_replica_set_to_disappear(api, NS, "rs", 0)
    assert api.calls == [("rs", "rs")]
    with pytest.raises(WaitTimeout):
        wait_for_replica_set_to_disappear(
            FakeApi(replica_sets={"rs": replica_set(1, 1)}), NS, "rs", 0)


# stateful sets


def stateful_set(ready=0, current=0):
    return {"metadata": {"name": "web"},
            "status": {"readyReplicas": ready, "currentReplicas": current}}


def test_stateful_set_gone_when_missing_and_no_pods():
    api = FakeApi()
    wait_for_stateful_set_gone(api, NS, "web", "app=web", 0)
    assert api.calls == [("sts", "web"), ("list", "app=web")]


def test_stateful_set_gone_times_out_with_replicas():
    api = FakeApi(stateful_sets={"web": stateful_set(current=2)})
    with pytest.raises(WaitTimeout):
        wait_for_stateful_set_gone(api, NS, "web", "app=web", 0)


def test_stateful_set_gone_times_out_with_leftover_pods():
    api = FakeApi(pods=[make_pod("web-0", labels={"app": "web"})])
    with pytest.raises(WaitTimeout):
        wait_for_stateful_set_gone(api, NS, "web", "app=web", 0)


def test_stateful_set_predicates():
    sts = stateful_set(ready=2)
    assert is_stateful_set_ready(sts, 2)
    assert not is_stateful_set_ready(sts, 3)
    assert is_stateful_set_degraded(sts, 3)
    assert not is_stateful_set_degraded(sts, 2)


def test_stateful_set_condition():
    api = FakeApi(stateful_sets={"web": stateful_set(ready=3)})
    wait_for_stateful_set_condition(api, NS, "web", 3, 0, is_stateful_set_ready)
    assert api.calls == [("sts", "web")]
    with pytest.raises(WaitTimeout):
        wait_for_stateful_set_condition(api, NS, "web", 4, 0, is_stateful_set_ready)


def test_stateful_set_condition_missing_is_error():
    with pytest.raises(NotFoundError):
        wait_for_stateful_set_condition(FakeApi(), NS, "web", 1, 5,
                                        is_stateful_set_ready)


# node slices


def node_slice():
    return {"status": {"allocations": [
        {"nodeName": "node-a", "sliceRange": "10.0.0.0/20"},
        {"nodeName": "node-b", "sliceRange": "10.0.16.0/20"},
    ]}}


def test_get_node_subnet():
    api = FakeApi(node_slices={"net1": node_slice()})
    assert get_node_subnet(api, "node-b", "net1", NS) == "10.0.16.0/20"


def test_get_node_subnet_unknown_node():
    api = FakeApi(node_slices={"net1": node_slice()})
    with pytest.raises(LookupError, match="slice range not found for node"):
        get_node_subnet(api, "node-z", "net1", NS)


def test_node_slice_ready():
    api = FakeApi(node_slices={"net1": node_slice()})
    wait_for_node_slice_ready(api, NS, "net1", 0)
    assert api.calls == [("slice", "net1")]
    with pytest.raises(WaitTimeout):
        wait_for_node_slice_ready(FakeApi(), NS, "net1", 0)


def test_node_slice_ready_other_error_propagates():
    with pytest.raises(PermissionError):
        wait_for_node_slice_ready(FakeApi(failure=PermissionError("no")), NS, "n", 5)


# ip pools

CIDR = "10.10.0.0/16"


def test_zero_allocations_with_empty_or_missing_pool():
    seen = []

    def get_pool(ip_range, node_name):
        seen.append((ip_range, node_name))
        return FakePool()

    wait_for_zero_ip_pool_allocations(get_pool, CIDR, 0)
    assert seen == [(CIDR, "")]
    wait_for_zero_ip_pool_allocations(pool_getter({}), CIDR, 0)


def test_zero_allocations_times_out():
    get_pool = pool_getter({(CIDR, ""): FakePool("10.10.0.1")})
    with pytest.raises(WaitTimeout):
        wait_for_zero_ip_pool_allocations(get_pool, CIDR, 0)


def test_zero_allocations_across_node_slices():
    nodes = [{"metadata": {"name": "node-a"}}, {"metadata": {"name": "node-b"}}]
    api = FakeApi(nodes=nodes)
    empty = pool_getter({(CIDR, "node-a"): FakePool()})
    wait_for_zero_ip_pool_allocations_across_node_slices(api, empty, CIDR, 0)

    busy = pool_getter({(CIDR, "node-a"): FakePool(),
                        (CIDR, "node-b"): FakePool("10.10.0.7")})
    with pytest.raises(WaitTimeout):
        wait_for_zero_ip_pool_allocations_across_node_slices(api, busy, CIDR, 0)


def test_zero_allocations_across_node_slices_other_error_propagates():
    api = FakeApi(nodes=[{"metadata": {"name": "node-a"}}])

    def get_pool(ip_range, node_name):
        raise PermissionError("denied")

    with pytest.raises(PermissionError):
        wait_for_zero_ip_pool_allocations_across_node_slices(api, get_pool, CIDR, 5)