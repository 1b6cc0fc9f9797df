import pytest

from conftest import coord_text
from tspsolver import DistanceModel, Instance, multi_start_nearest_neighbor, nearest_neighbor, parse_tsplib, tour_length


def test_square_nearest_neighbor_breaks_ties_by_index(square_model):
    # from node 0, nodes 1 and 3 are both 10 away
    assert nearest_neighbor(square_model, 0) == [0, 1, 2, 3]
    assert nearest_neighbor(square_model, 2) == [2, 1, 0, 3]


def test_tie_prefers_smallest_index():
    model = DistanceModel(parse_tsplib(coord_text([(0, 0), (5, 0), (-5, 0), (0, 5)])))
    assert nearest_neighbor(model, 0)[1] == 1


@pytest.mark.parametrize("n", [2, 3, 7, 40])
def test_every_node_exactly_once(n):
    model = DistanceModel(Instance.random_euclidean(n, seed=n))
    for start in range(n):
        tour = nearest_neighbor(model, start)
        assert sorted(tour) == list(range(n))
        assert tour[0] == start


def test_degenerate_sizes():
    empty = DistanceModel(Instance.random_euclidean(0))
    single = DistanceModel(Instance.random_euclidean(1))
    assert nearest_neighbor(empty) == []
    assert nearest_neighbor(single) == [0]


def test_start_out_of_range(square_model):
    with pytest.raises(ValueError):
        nearest_neighbor(square_model, 4)
    with pytest.raises(ValueError):
        nearest_neighbor(square_model, -1)


def test_multi_start_keeps_cheapest():
    model = DistanceModel(Instance.random_euclidean(30, seed=11))
    starts = list(range(10))
    tour, cost, start = multi_start_nearest_neighbor(model, starts)
    singles = [tour_length(nearest_neighbor(model, s), model) for s in starts]
    assert cost == min(singles)
    assert start == starts[singles.index(cost)]
    assert tour == nearest_neighbor(model, start)


def test_multi_start_in_worker_processes_matches_serial():
    model = DistanceModel(Instance.random_euclidean(25, seed=5))
    serial = multi_start_nearest_neighbor(model, range(6), workers=1)
    parallel = multi_start_nearest_neighbor(model, range(6), workers=2)
    assert parallel == serial


def test_multi_start_needs_a_start(square_model):
    with pytest.raises(ValueError):
        multi_start_nearest_neighbor(square_model, [])
