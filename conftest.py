"""Shared fixtures for the reactive agent tests."""

import numpy as np
import pytest

from reactive_mdp import ReactiveMDP
from topology import Topology, TaskDistribution


def random_connected_topology(rng: np.random.Generator, num_cities: int) -> Topology:
    """Chain through every city plus random shortcuts, random lengths"""
    names = [f"c{i}" for i in range(num_cities)]
    edges = [(names[i], names[i + 1], float(rng.integers(1, 20)))
             for i in range(num_cities - 1)]
    for i in range(num_cities):
        for j in range(i + 2, num_cities):
            if rng.random() < 0.4:
                edges.append((names[i], names[j], float(rng.integers(1, 20))))
    return Topology.from_distances(names, edges)


@pytest.fixture
def triangle():
    """A, B, C fully connected: A-B = 1, B-C = 1, A-C = 2"""
    return Topology.from_distances(
        ["A", "B", "C"],
        [("A", "B", 1.0), ("B", "C", 1.0), ("A", "C", 2.0)],
    )


@pytest.fixture
def a_to_b_tasks(triangle):
    """A task A -> B paying 50 is always on offer at A; nothing elsewhere"""
    probabilities = np.zeros((3, 3))
    rewards = np.zeros((3, 3))
    probabilities[0, 1] = 1.0
    rewards[0, 1] = 50.0
    return TaskDistribution(triangle, probabilities, rewards)


@pytest.fixture
def scenario_mdp(triangle, a_to_b_tasks):
    return ReactiveMDP(triangle, a_to_b_tasks, cost_per_km=5.0).build()


@pytest.fixture
def pair():
    """Two cities 3 apart"""
    return Topology.from_distances(["X", "Y"], [("X", "Y", 3.0)])
