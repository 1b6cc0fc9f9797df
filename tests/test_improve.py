import logging
import random

import pytest

from tspsolver import DistanceModel, ImproveConfig, Instance, improve, nearest_neighbor, tour_length
from tspsolver.improve import _resync, or_opt_pass, relocate, two_opt_pass


def shuffled(n, seed):
    tour = list(range(n))
    random.Random(seed).shuffle(tour)
    return tour


def assert_local_optimum(tour, model):
    probe = list(tour)
    assert two_opt_pass(probe, model.distance) == (0, 0)
    assert or_opt_pass(probe, model.distance) == (0, 0)
    assert probe == list(tour)


def test_two_opt_pass_picks_the_crossing(square_model):
    tour = [0, 2, 1, 3]
    delta, moves = two_opt_pass(tour, square_model.distance)
    assert (delta, moves) == (-8, 1)
    assert tour == [0, 1, 2, 3]


def test_two_opt_pass_no_move_on_optimum(square_model):
    tour = [0, 1, 2, 3]
    assert two_opt_pass(tour, square_model.distance) == (0, 0)
    assert two_opt_pass(tour, square_model.distance, policy="first") == (0, 0)
    assert tour == [0, 1, 2, 3]


def test_relocate():
    tour = [0, 1, 2, 3, 4, 5]
    relocate(tour, 1, 2, 3)
    assert tour == [3, 1, 2, 4, 5, 0]
    tour = [0, 1, 2, 3, 4, 5]
    relocate(tour, 1, 2, 3, reverse=True)
    assert tour == [3, 2, 1, 4, 5, 0]
    tour = [0, 1, 2, 3, 4, 5]
    relocate(tour, 5, 2, 2)   # chain wraps around the end
    assert tour == [1, 2, 5, 0, 3, 4]


def test_or_opt_moves_a_stray_node_back(rectangle_model):
    tour = [0, 2, 3, 4, 5, 6, 1, 7]
    assert tour_length(tour, rectangle_model) == 94
    delta, moves = or_opt_pass(tour, rectangle_model.distance)
    assert (delta, moves) == (-14, 1)
    assert sorted(tour) == list(range(8))
    assert tour_length(tour, rectangle_model) == 80


def test_or_opt_first_policy_never_increases():
    model = DistanceModel(Instance.random_euclidean(30, seed=2))
    tour = shuffled(30, 2)
    before = tour_length(tour, model)
    delta, moves = or_opt_pass(tour, model.distance, policy="first")
    assert moves > 0
    assert tour_length(tour, model) == before + delta < before
    assert sorted(tour) == list(range(30))


def test_square_reaches_perimeter(square_model):
    for start in ([0, 2, 1, 3], [0, 1, 3, 2], [3, 1, 2, 0]):
        result = improve(start, square_model)
        assert result.cost == 40
        assert result.converged


@pytest.mark.parametrize("policy", ["best", "first"])
def test_cost_never_increases_and_matches_tour(policy):
    model = DistanceModel(Instance.random_euclidean(40, seed=8))
    start = shuffled(40, 8)
    result = improve(start, model, ImproveConfig(policy=policy))
    assert result.converged
    assert result.initial_cost == tour_length(start, model)
    assert result.cost <= result.initial_cost
    assert all(b <= a for a, b in zip(result.history, result.history[1:]))
    assert result.cost == tour_length(result.tour, model)
    assert sorted(result.tour) == list(range(40))
    assert result.two_opt_moves > 0
    assert_local_optimum(result.tour, model)


def test_idempotent_at_local_optimum():
    model = DistanceModel(Instance.random_euclidean(35, seed=4))
    first = improve(nearest_neighbor(model), model)
    again = improve(first.tour, model)
    assert again.tour == first.tour
    assert again.cost == first.cost
    assert again.two_opt_moves == again.or_opt_moves == 0
    assert again.passes == 2
    assert again.converged


def test_without_or_opt_stops_after_two_opt():
    model = DistanceModel(Instance.random_euclidean(30, seed=6))
    result = improve(shuffled(30, 6), model, ImproveConfig(or_opt=False))
    assert result.or_opt_moves == 0
    assert result.converged
    assert two_opt_pass(list(result.tour), model.distance) == (0, 0)


def test_deterministic():
    model = DistanceModel(Instance.random_euclidean(30, seed=9))
    start = shuffled(30, 9)
    a = improve(start, model)
    b = improve(start, model)
    assert a.tour == b.tour
    assert a.history == b.history


def test_pass_budget():
    model = DistanceModel(Instance.random_euclidean(30, seed=1))
    result = improve(shuffled(30, 1), model, ImproveConfig(max_passes=1))
    assert result.passes == 1
    assert result.two_opt_moves == 1
    assert not result.converged
    assert result.cost < result.initial_cost


def test_time_budget_zero_makes_no_pass():
    model = DistanceModel(Instance.random_euclidean(20, seed=1))
    start = shuffled(20, 1)
    result = improve(start, model, ImproveConfig(time_budget=0.0))
    assert result.passes == 0
    assert result.tour == start
    assert result.cost == result.initial_cost


def test_input_is_not_mutated(square_model):
    start = [0, 2, 1, 3]
    improve(start, square_model)
    assert start == [0, 2, 1, 3]


def test_small_tours_are_returned_unchanged(triangle_text):
    from tspsolver import parse_tsplib
    model = DistanceModel(parse_tsplib(triangle_text))
    result = improve([2, 0, 1], model)
    assert result.tour == [2, 0, 1]
    assert result.cost == 6
    assert result.passes == 0
    assert result.converged


def test_rejects_non_permutation(square_model):
    with pytest.raises(ValueError):
        improve([0, 1, 1, 2], square_model)


def test_rejects_unknown_policy(square_model):
    with pytest.raises(ValueError, match="policy"):
        improve([0, 1, 2, 3], square_model, ImproveConfig(policy="random"))


def test_record_tours(square_model):
    result = improve([0, 2, 1, 3], square_model, ImproveConfig(record_tours=True))
    assert len(result.history_tours) == len(result.history)
    assert result.history_tours[0] == [0, 2, 1, 3]
    assert result.history_tours[-1] == result.tour


def test_resync_logs_drift(square_model, caplog):
    with caplog.at_level(logging.WARNING, logger="tspsolver.improve"):
        assert _resync([0, 1, 2, 3], square_model, 45, 3) == 40
    assert "drifted" in caplog.text
