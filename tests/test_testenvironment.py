import pytest

from whereaboutskit.testenvironment import Configuration, new_config


def test_defaults():
    config = new_config({})
    assert config.kubeconfig_path == "${HOME}/.kube/config"
    assert config.num_compute_nodes == 2
    assert config.fill_percent_capacity == 50
    assert config.number_of_iterations == 1


def test_reads_environment():
    config = new_config(
        {
            "KUBECONFIG": "/tmp/kubeconfig",
            "NUMBER_OF_COMPUTE_NODES": "4",
            "FILL_PERCENT_CAPACITY": "25",
            "NUMBER_OF_THRASH_ITER": "3",
        }
    )
    assert config == Configuration(
        kubeconfig_path="/tmp/kubeconfig",
        num_compute_nodes=4,
        fill_percent_capacity=25,
        number_of_iterations=3,
    )


@pytest.mark.parametrize(
    "name",
    ["NUMBER_OF_COMPUTE_NODES", "FILL_PERCENT_CAPACITY", "NUMBER_OF_THRASH_ITER"],
)
@pytest.mark.parametrize("value", ["", "two", "1.5", " 3"])
def test_invalid_integers_raise(name, value):
    with pytest.raises(ValueError):
        new_config({name: value})


def test_max_replicas_full_capacity_empty_cluster():
    config = Configuration("k", num_compute_nodes=1, fill_percent_capacity=100,
                           number_of_iterations=1)
    assert config.max_replicas([]) == 110


def test_max_replicas_decreases_with_running_pods():
    config = new_config({})
    empty = config.max_replicas([])
    busy = config.max_replicas([object()] * 40)
    assert busy < empty


def test_max_replicas_zero_fill():
    config = Configuration("k", num_compute_nodes=3, fill_percent_capacity=0,
                           number_of_iterations=1)
    assert config.max_replicas([object()] * 5) == 0


def test_max_replicas_truncates_toward_zero_when_overfull():
    config = Configuration("k", num_compute_nodes=1, fill_percent_capacity=50,
                           number_of_iterations=1)
    assert config.max_replicas([object()] * 111) == 0