"""
Reactive Delivery MDP
States, actions, rewards and transitions for a single vehicle that reacts to
randomly appearing tasks.

A state is the vehicle's city plus the destination of the task on offer
there (or None when no task is available). An action either takes the task
or moves empty to a neighbouring city. Rewards and transitions are stored as
dense numpy arrays indexed by the position of each state/action in its
enumeration order.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Dict, Optional
from enum import Enum

from topology import City, Topology, TaskDistribution


CONSISTENCY_TOLERANCE = 1e-4


class ModelInconsistencyError(AssertionError):
    """Reward/transition tables violate an MDP invariant"""


class ActionType(Enum):
    TAKE = "take"
    MOVE = "move"


@dataclass(frozen=True)
class State:
    """MDP state: vehicle at from_city, task to to_city on offer (None = idle)"""
    from_city: City
    to_city: Optional[City] = None

    def __post_init__(self):
        if self.from_city == self.to_city:
            raise ValueError(f"Task destination equals its origin {self.from_city}")

    @property
    def has_task(self) -> bool:
        return self.to_city is not None

    def __str__(self) -> str:
        return f"State[{self.from_city}, {self.to_city}]"


@dataclass(frozen=True)
class Action:
    """MDP action: take the available task, or move empty to a destination"""
    action_type: ActionType
    destination: Optional[City] = None

    def __post_init__(self):
        if self.action_type == ActionType.TAKE and self.destination is not None:
            raise ValueError("A take action carries no destination")
        if self.action_type == ActionType.MOVE and self.destination is None:
            raise ValueError("A move action requires a destination")

    @classmethod
    def take(cls) -> "Action":
        return cls(ActionType.TAKE)

    @classmethod
    def move(cls, destination: City) -> "Action":
        return cls(ActionType.MOVE, destination)

    @property
    def is_take(self) -> bool:
        return self.action_type == ActionType.TAKE

    def __str__(self) -> str:
        if self.is_take:
            return "Action[take]"
        return f"Action[{self.destination}]"


# ============================================================================
# ENUMERATION
# ============================================================================

def enumerate_states(topology: Topology) -> List[State]:
    """
    All states of the MDP, |cities| * |cities| in total

    For each city: one state per possible task destination, then the idle
    state.
    """
    cities = topology.cities()
    if not cities:
        raise ValueError("Topology has no cities")

    states = []
    for from_city in cities:
        for to_city in cities:
            if from_city != to_city:
                states.append(State(from_city, to_city))
        states.append(State(from_city, None))
    return states


def enumerate_actions(topology: Topology) -> List[Action]:
    """Take, followed by one move per city (|cities| + 1 actions)"""
    cities = topology.cities()
    if not cities:
        raise ValueError("Topology has no cities")
    return [Action.take()] + [Action.move(city) for city in cities]


# ============================================================================
# MODEL
# ============================================================================

class ReactiveMDP:
    """
    MDP formulation of the reactive delivery agent

    Tables are built once by build() and are read-only afterwards:
    - rewards[s, a]: immediate reward, -inf when (s, a) is infeasible
    - feasible[s, a]: whether (s, a) is allowed
    - transitions[s, a, s']: P(s' | s, a), zero outside feasible pairs
    """

    def __init__(self,
                 topology: Topology,
                 task_distribution: TaskDistribution,
                 cost_per_km: float = 5.0):
        if cost_per_km < 0:
            raise ValueError(f"cost_per_km must be non-negative, got {cost_per_km}")

        self.topology = topology
        self.task_distribution = task_distribution
        self.cost_per_km = float(cost_per_km)

        self.states = enumerate_states(topology)
        self.actions = enumerate_actions(topology)
        self.state_index: Dict[State, int] = {s: i for i, s in enumerate(self.states)}
        self.action_index: Dict[Action, int] = {a: i for i, a in enumerate(self.actions)}

        self.rewards: Optional[np.ndarray] = None
        self.feasible: Optional[np.ndarray] = None
        self.transitions: Optional[np.ndarray] = None

    @property
    def num_states(self) -> int:
        return len(self.states)

    @property
    def num_actions(self) -> int:
        return len(self.actions)

    @property
    def is_built(self) -> bool:
        return self.transitions is not None

    def is_feasible(self, state: State, action: Action) -> bool:
        """
        Physical constraints on an action

        1. Taking requires a task to be on offer.
        2. Moving requires the destination to be a neighbour.
        """
        if action.is_take:
            return state.has_task
        return self.topology.has_neighbor(state.from_city, action.destination)

    def reached_city(self, state: State, action: Action) -> City:
        """City the vehicle ends up in after performing action"""
        return state.to_city if action.is_take else action.destination

    # ========================================================================
    # TABLE CONSTRUCTION
    # ========================================================================

    def build_rewards(self) -> np.ndarray:
        """
        Immediate reward of every (state, action) pair

        Taking pays the expected task reward minus the travel cost to the
        delivery city; moving only incurs the travel cost.
        """
        rewards = np.full((self.num_states, self.num_actions), -np.inf)
        feasible = np.zeros((self.num_states, self.num_actions), dtype=bool)

        for s, state in enumerate(self.states):
            for a, action in enumerate(self.actions):
                if not self.is_feasible(state, action):
                    continue

                if action.is_take:
                    travel = self.topology.distance(state.from_city, state.to_city)
                    payoff = self.task_distribution.reward(state.from_city, state.to_city)
                else:
                    travel = self.topology.distance(state.from_city, action.destination)
                    payoff = 0.0

                # Unreachable delivery city: allowed, but never worth it
                if np.isinf(travel):
                    rewards[s, a] = -np.inf
                else:
                    rewards[s, a] = payoff - self.cost_per_km * travel
                feasible[s, a] = True

        self.feasible = feasible
        return rewards

    def build_transitions(self) -> np.ndarray:
        """
        P(next | state, action) for every feasible pair

        The next state always starts in the city reached by the action; its
        task (or absence of one) is drawn from the task distribution there.
        """
        if self.feasible is None:
            self.build_rewards()

        transitions = np.zeros((self.num_states, self.num_actions, self.num_states))

        for s, state in enumerate(self.states):
            for a, action in enumerate(self.actions):
                if not self.feasible[s, a]:
                    continue

                reached = self.reached_city(state, action)
                for n, next_state in enumerate(self.states):
                    if next_state.from_city != reached:
                        continue
                    transitions[s, a, n] = self.task_distribution.probability(
                        reached, next_state.to_city
                    )

        return transitions

    def verify(self, transitions: np.ndarray) -> bool:
        """Every feasible (state, action) row of transitions sums to 1"""
        row_sums = transitions.sum(axis=2)[self.feasible]
        return bool(np.all(np.abs(row_sums - 1.0) < CONSISTENCY_TOLERANCE))

    def check_consistency(self, transitions: np.ndarray):
        """Raise ModelInconsistencyError if the model must not be solved"""
        if not self.verify(transitions):
            row_sums = transitions.sum(axis=2)
            bad = np.argwhere(self.feasible & (np.abs(row_sums - 1.0) >= CONSISTENCY_TOLERANCE))
            s, a = bad[0]
            raise ModelInconsistencyError(
                f"Transition probabilities for ({self.states[s]}, {self.actions[a]}) "
                f"sum to {row_sums[s, a]:.6f}, expected 1"
            )

        stuck = ~self.feasible.any(axis=1)
        if np.any(stuck):
            state = self.states[int(np.argmax(stuck))]
            raise ModelInconsistencyError(f"{state} has no feasible action "
                                          f"(does {state.from_city} have neighbours?)")

    def build(self) -> "ReactiveMDP":
        """Build, verify and freeze all tables"""
        rewards = self.build_rewards()
        transitions = self.build_transitions()
        self.check_consistency(transitions)

        for array in (rewards, self.feasible, transitions):
            array.setflags(write=False)
        self.rewards = rewards
        self.transitions = transitions
        return self

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    def reward(self, state: State, action: Action) -> Optional[float]:
        """Immediate reward, None for infeasible pairs"""
        s, a = self.state_index[state], self.action_index[action]
        if not self.feasible[s, a]:
            return None
        return float(self.rewards[s, a])

    def transition(self, state: State, action: Action, next_state: State) -> float:
        return float(self.transitions[self.state_index[state],
                                      self.action_index[action],
                                      self.state_index[next_state]])
