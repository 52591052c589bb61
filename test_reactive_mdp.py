"""Tests for state/action enumeration and the MDP tables."""

import numpy as np
import pytest

from conftest import random_connected_topology
from reactive_mdp import (
    Action,
    ActionType,
    ModelInconsistencyError,
    ReactiveMDP,
    State,
    enumerate_actions,
    enumerate_states,
)
from topology import Topology, TaskDistribution


class CorruptedDistribution(TaskDistribution):
    """Claims a 'no task' probability that does not complete the row"""

    def probability(self, origin, destination):
        if destination is None:
            return 0.5
        return super().probability(origin, destination)


# ============================================================
# State / Action Tests
# ============================================================

class TestStateAndAction:

    def test_state_equality(self, triangle):
        a, b, c = triangle.cities()
        assert State(a, None) == State(a)
        assert State(a, b) == State(a, b)
        assert State(a, None) != State(a, b)
        assert State(a, b) != State(a, c)
        assert hash(State(a, b)) == hash(State(a, b))
        assert not State(a).has_task and State(a, b).has_task

    def test_state_rejects_task_to_own_city(self, triangle):
        a = triangle.cities()[0]
        with pytest.raises(ValueError):
            State(a, a)

    def test_action_equality(self, triangle):
        a, b, _ = triangle.cities()
        assert Action.take() == Action(ActionType.TAKE)
        assert Action.move(a) == Action.move(a)
        assert Action.move(a) != Action.move(b)
        assert Action.take() != Action.move(a)

    def test_action_validation(self, triangle):
        a = triangle.cities()[0]
        with pytest.raises(ValueError):
            Action(ActionType.TAKE, a)
        with pytest.raises(ValueError):
            Action(ActionType.MOVE)


# ============================================================
# Enumeration Tests
# ============================================================

class TestEnumeration:

    @pytest.mark.parametrize("num_cities", [1, 2, 3, 6])
    def test_sizes(self, num_cities):
        topology = Topology.from_distances([f"c{i}" for i in range(num_cities)], [])
        states = enumerate_states(topology)
        actions = enumerate_actions(topology)
        assert len(states) == num_cities * num_cities
        assert len(set(states)) == len(states)
        assert len(actions) == num_cities + 1
        assert len(set(actions)) == len(actions)

    def test_order(self, triangle):
        a, b, c = triangle.cities()
        assert enumerate_states(triangle)[:3] == [State(a, b), State(a, c), State(a)]
        assert enumerate_actions(triangle) == [
            Action.take(), Action.move(a), Action.move(b), Action.move(c)
        ]

    def test_empty_topology_rejected(self):
        empty = Topology([], [])
        with pytest.raises(ValueError):
            enumerate_states(empty)
        with pytest.raises(ValueError):
            enumerate_actions(empty)


# ============================================================
# Model Builder Tests
# ============================================================

class TestRewards:

    def test_feasibility(self, scenario_mdp, triangle):
        a, b, c = triangle.cities()
        assert scenario_mdp.is_feasible(State(a, b), Action.take())
        assert not scenario_mdp.is_feasible(State(a), Action.take())
        assert scenario_mdp.is_feasible(State(a), Action.move(c))
        assert not scenario_mdp.is_feasible(State(a), Action.move(a))

    def test_reward_values(self, scenario_mdp, triangle):
        a, b, c = triangle.cities()
        assert scenario_mdp.reward(State(a, b), Action.take()) == pytest.approx(45.0)
        assert scenario_mdp.reward(State(a, c), Action.take()) == pytest.approx(-10.0)
        assert scenario_mdp.reward(State(a, b), Action.move(c)) == pytest.approx(-10.0)
        assert scenario_mdp.reward(State(b), Action.move(a)) == pytest.approx(-5.0)

    def test_infeasible_pairs_have_no_reward(self, scenario_mdp, triangle):
        a = triangle.cities()[0]
        assert scenario_mdp.reward(State(a), Action.take()) is None
        assert scenario_mdp.reward(State(a), Action.move(a)) is None
        assert np.all(np.isneginf(scenario_mdp.rewards[~scenario_mdp.feasible]))

    def test_move_reward_ignores_distribution(self, triangle, a_to_b_tasks):
        a, b, _ = triangle.cities()
        with_tasks = ReactiveMDP(triangle, a_to_b_tasks, cost_per_km=2.0).build()
        without = ReactiveMDP(triangle, TaskDistribution.no_tasks(triangle), cost_per_km=2.0).build()
        assert with_tasks.reward(State(a), Action.move(b)) == without.reward(State(a), Action.move(b))

    def test_negative_cost_rejected(self, triangle, a_to_b_tasks):
        with pytest.raises(ValueError):
            ReactiveMDP(triangle, a_to_b_tasks, cost_per_km=-1.0)


class TestTransitions:

    def test_next_state_starts_in_reached_city(self, scenario_mdp, triangle):
        a, b, c = triangle.cities()
        # Taking A -> B lands in B, where no task ever appears
        assert scenario_mdp.transition(State(a, b), Action.take(), State(b)) == 1.0
        assert scenario_mdp.transition(State(a, b), Action.take(), State(a, b)) == 0.0
        # Moving to A always finds the A -> B task
        assert scenario_mdp.transition(State(c), Action.move(a), State(a, b)) == 1.0
        assert scenario_mdp.transition(State(c), Action.move(a), State(a)) == 0.0

    def test_infeasible_pairs_have_no_transitions(self, scenario_mdp):
        assert np.all(scenario_mdp.transitions[~scenario_mdp.feasible] == 0.0)

    @pytest.mark.parametrize("seed", range(10))
    def test_rows_sum_to_one_on_random_topologies(self, seed):
        rng = np.random.default_rng(seed)
        topology = random_connected_topology(rng, int(rng.integers(2, 7)))
        distribution = TaskDistribution.random(topology, rng,
                                               no_task_share=float(rng.uniform(0.05, 0.9)))
        mdp = ReactiveMDP(topology, distribution, cost_per_km=float(rng.uniform(0, 10))).build()

        row_sums = mdp.transitions.sum(axis=2)[mdp.feasible]
        assert np.all(np.abs(row_sums - 1.0) < 1e-4)
        assert mdp.verify(mdp.transitions)

    def test_tables_are_read_only(self, scenario_mdp):
        with pytest.raises(ValueError):
            scenario_mdp.rewards[0, 0] = 1.0
        with pytest.raises(ValueError):
            scenario_mdp.transitions[0, 0, 0] = 1.0


class TestConsistency:

    def test_corrupted_distribution_is_fatal(self, triangle, a_to_b_tasks):
        corrupted = CorruptedDistribution(triangle, np.zeros((3, 3)), np.zeros((3, 3)))
        mdp = ReactiveMDP(triangle, corrupted)
        with pytest.raises(ModelInconsistencyError):
            mdp.build()
        assert not mdp.is_built

    def test_verify_detects_bad_rows(self, scenario_mdp):
        transitions = scenario_mdp.transitions.copy()
        s, a = np.argwhere(scenario_mdp.feasible)[0]
        transitions[s, a] *= 0.5
        assert not scenario_mdp.verify(transitions)
        with pytest.raises(AssertionError):
            scenario_mdp.check_consistency(transitions)

    def test_isolated_city_is_fatal(self):
        topology = Topology.from_distances(["A", "B", "C"], [("A", "B", 1.0)])
        mdp = ReactiveMDP(topology, TaskDistribution.no_tasks(topology))
        with pytest.raises(ModelInconsistencyError, match="no feasible action"):
            mdp.build()
