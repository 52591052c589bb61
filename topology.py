"""
Topology and Task Distribution
Road network of cities and the probabilistic model of task arrivals.

The reactive MDP only ever queries these objects:
- Topology: which cities exist, which are adjacent, how far apart they are
- TaskDistribution: probability of a task from one city to another, and
  the expected reward for delivering it
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Dict, Tuple, Optional, Iterable


@dataclass(frozen=True, order=True)
class City:
    id: int
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Task:
    """Task observed by the vehicle at decision time"""
    pickup_city: City
    delivery_city: City
    reward: float


class Topology:
    """
    Undirected road network between cities

    Shortest-path distances between every pair of cities are precomputed
    once (Floyd-Warshall) so that distance queries are constant time.
    """

    def __init__(self, cities: List[City], roads: Iterable[Tuple[City, City, float]]):
        """
        Args:
            cities: Cities in canonical order (this order is reused for every
                    enumeration downstream)
            roads: (city_a, city_b, length) tuples, undirected
        """
        self._cities = list(cities)
        self._index: Dict[City, int] = {}

        names = set()
        for i, city in enumerate(self._cities):
            if city in self._index or city.name in names:
                raise ValueError(f"Duplicate city {city!r}")
            self._index[city] = i
            names.add(city.name)

        n = len(self._cities)
        self._adjacency = np.zeros((n, n), dtype=bool)
        self._distances = np.full((n, n), np.inf)
        np.fill_diagonal(self._distances, 0.0)

        for a, b, length in roads:
            if a not in self._index or b not in self._index:
                raise ValueError(f"Road ({a}, {b}) references an unknown city")
            if length < 0:
                raise ValueError(f"Road ({a}, {b}) has negative length {length}")
            if a == b:
                continue
            i, j = self._index[a], self._index[b]
            self._adjacency[i, j] = self._adjacency[j, i] = True
            shortest = min(self._distances[i, j], float(length))
            self._distances[i, j] = self._distances[j, i] = shortest

        self._shortest_paths()

    @classmethod
    def from_distances(cls, names: List[str], edges: Iterable[Tuple[str, str, float]]) -> "Topology":
        """Build a topology from city names and (name, name, length) edges"""
        cities = [City(id=i, name=name) for i, name in enumerate(names)]
        by_name = {city.name: city for city in cities}
        roads = []
        for a, b, length in edges:
            if a not in by_name or b not in by_name:
                raise ValueError(f"Edge ({a}, {b}) references an unknown city")
            roads.append((by_name[a], by_name[b], length))
        return cls(cities, roads)

    def _shortest_paths(self):
        """Floyd-Warshall over the road-length matrix"""
        dist = self._distances
        for k in range(len(self._cities)):
            dist = np.minimum(dist, dist[:, k:k + 1] + dist[k:k + 1, :])
        self._distances = dist
        self._distances.setflags(write=False)
        self._adjacency.setflags(write=False)

    def cities(self) -> List[City]:
        return list(self._cities)

    def __len__(self) -> int:
        return len(self._cities)

    def index(self, city: City) -> int:
        return self._index[city]

    def city(self, name: str) -> City:
        for city in self._cities:
            if city.name == name:
                return city
        raise KeyError(name)

    def has_neighbor(self, a: City, b: City) -> bool:
        return bool(self._adjacency[self._index[a], self._index[b]])

    def neighbors(self, a: City) -> List[City]:
        row = self._adjacency[self._index[a]]
        return [city for city, adjacent in zip(self._cities, row) if adjacent]

    def distance(self, a: City, b: City) -> float:
        """Shortest road distance between two cities (inf if disconnected)"""
        return float(self._distances[self._index[a], self._index[b]])

    @property
    def distance_matrix(self) -> np.ndarray:
        return self._distances


class TaskDistribution:
    """
    Probability of a task appearing at a city, and the reward it pays

    For a fixed origin, the probabilities of a task to every destination plus
    the probability of no task sum to 1.
    """

    TOLERANCE = 1e-9

    def __init__(self, topology: Topology, probabilities: np.ndarray, rewards: np.ndarray):
        """
        Args:
            topology: Topology the matrices are indexed by
            probabilities: (n, n) matrix, P(task from i to j)
            rewards: (n, n) matrix, expected reward of a task from i to j
        """
        n = len(topology)
        probabilities = np.array(probabilities, dtype=float)
        rewards = np.array(rewards, dtype=float)

        if probabilities.shape != (n, n) or rewards.shape != (n, n):
            raise ValueError(f"Expected ({n}, {n}) probability and reward matrices")
        if np.any(probabilities < 0) or np.any(probabilities > 1):
            raise ValueError("Task probabilities must lie in [0, 1]")
        if np.any(np.diag(probabilities) != 0):
            raise ValueError("A task cannot be delivered to its own pickup city")

        no_task = 1.0 - probabilities.sum(axis=1)
        if np.any(no_task < -self.TOLERANCE):
            worst = topology.cities()[int(np.argmin(no_task))]
            raise ValueError(f"Task probabilities from {worst} sum to more than 1")

        self.topology = topology
        self._probabilities = probabilities
        self._no_task = np.clip(no_task, 0.0, 1.0)
        self._rewards = rewards
        for array in (self._probabilities, self._no_task, self._rewards):
            array.setflags(write=False)

    # ========================================================================
    # CONSTRUCTORS
    # ========================================================================

    @classmethod
    def random(cls, topology: Topology, rng: np.random.Generator,
               no_task_share: float = 0.3,
               reward_per_km: float = 25.0,
               reward_noise: float = 0.2) -> "TaskDistribution":
        """
        Generate a random distribution

        Each (origin, destination) pair receives a random weight; weights are
        rescaled per origin so that `no_task_share` of the mass is left for
        "no task". Rewards grow with the shortest-path distance.

        Args:
            topology: Road network
            rng: numpy random generator (seeded by the caller)
            no_task_share: Probability of finding no task at any city
            reward_per_km: Reward per unit of shortest-path distance
            reward_noise: Relative noise applied to each reward
        """
        if not 0.0 <= no_task_share <= 1.0:
            raise ValueError("no_task_share must lie in [0, 1]")

        n = len(topology)
        weights = rng.random((n, n))
        np.fill_diagonal(weights, 0.0)
        row_sums = weights.sum(axis=1, keepdims=True)
        row_sums[row_sums == 0] = 1.0
        probabilities = weights / row_sums * (1.0 - no_task_share)

        distances = np.where(np.isfinite(topology.distance_matrix), topology.distance_matrix, 0.0)
        noise = 1.0 + reward_noise * (2.0 * rng.random((n, n)) - 1.0)
        rewards = np.round(distances * reward_per_km * noise, 2)
        np.fill_diagonal(rewards, 0.0)

        return cls(topology, probabilities, rewards)

    @classmethod
    def no_tasks(cls, topology: Topology) -> "TaskDistribution":
        """Distribution under which a task never appears"""
        n = len(topology)
        return cls(topology, np.zeros((n, n)), np.zeros((n, n)))

    # ========================================================================
    # ORACLE QUERIES
    # ========================================================================

    def probability(self, origin: City, destination: Optional[City]) -> float:
        """P(task from origin to destination); destination None means no task"""
        i = self.topology.index(origin)
        if destination is None:
            return float(self._no_task[i])
        return float(self._probabilities[i, self.topology.index(destination)])

    def reward(self, origin: City, destination: City) -> float:
        """Expected reward for delivering a task from origin to destination"""
        return float(self._rewards[self.topology.index(origin), self.topology.index(destination)])

    def sample(self, origin: City, rng: np.random.Generator) -> Optional[Task]:
        """Draw the task available at origin (None if there is none)"""
        i = self.topology.index(origin)
        outcomes = np.append(self._probabilities[i], self._no_task[i])
        choice = rng.choice(len(outcomes), p=outcomes / outcomes.sum())
        if choice == len(self.topology):
            return None
        destination = self.topology.cities()[choice]
        return Task(pickup_city=origin, delivery_city=destination,
                    reward=float(self._rewards[i, choice]))
