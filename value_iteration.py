"""
Value Iteration Solver
Computes the optimal stationary policy of a ReactiveMDP.

Every sweep applies the Bellman optimality operator to all states at once:

    Q(s, a) = R(s, a) + gamma * sum_s' P(s' | s, a) * V_prev(s')
    V_curr(s) = max_a Q(s, a)

V_prev and V_curr are separate snapshots, so every Q value of a sweep sees
the same previous value function (synchronous updates).
"""

import warnings
import numpy as np
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Tuple, Mapping

from config import (
    DEFAULT_DISCOUNT_FACTOR,
    DEFAULT_MIN_ITERATIONS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    validate_solver_parameters,
)
from reactive_mdp import ReactiveMDP, State, Action
from topology import City


class NonConvergenceWarning(RuntimeWarning):
    """Value iteration hit its iteration cap before converging"""


class UnknownStateError(LookupError):
    """Policy asked about a state outside its domain"""


@dataclass(frozen=True)
class SolverResult:
    """Frozen output of value iteration"""
    policy: Mapping[State, Action]
    values: Mapping[State, float]
    iterations: int
    converged: bool
    deltas: Tuple[float, ...]
    max_changes: Tuple[float, ...]
    discount_factor: float
    mdp: ReactiveMDP

    def best_action(self, state: State) -> Action:
        try:
            return self.policy[state]
        except KeyError:
            raise UnknownStateError(f"{state} is not in the policy domain") from None

    def value(self, state: State) -> float:
        try:
            return self.values[state]
        except KeyError:
            raise UnknownStateError(f"{state} is not in the policy domain") from None

    def preferred_idle_destinations(self) -> Dict[City, City]:
        """Where the vehicle heads from each city when no task is on offer"""
        return {
            state.from_city: action.destination
            for state, action in self.policy.items()
            if not state.has_task
        }

    def skipped_tasks(self) -> Dict[State, float]:
        """Task states the policy refuses, with the immediate reward refused"""
        return {
            state: self.mdp.reward(state, Action.take())
            for state, action in self.policy.items()
            if state.has_task and not action.is_take
        }

    def report(self):
        """Print operator diagnostics about the computed policy"""
        print("When no task, the preferred destinations are")
        idle = ", ".join(f"{origin} -> {dest}"
                         for origin, dest in self.preferred_idle_destinations().items())
        print(f"  [{idle}]")

        print("These tasks are always skipped because taking gives low rewards:")
        skipped = ", ".join(f"{state}: ${reward:.2f}"
                            for state, reward in self.skipped_tasks().items())
        print(f"  [{skipped}]")


class ValueIterationSolver:
    """
    Value iteration over the dense tables of a ReactiveMDP

    The solver runs at least `min_iterations` sweeps, then stops as soon as
    the total absolute change of the value function is within `tolerance`
    (relative to the total magnitude of the values, and never below
    `tolerance` itself).
    If `max_iterations` sweeps pass without convergence, the last policy is
    returned with a NonConvergenceWarning.
    """

    def __init__(self,
                 mdp: ReactiveMDP,
                 discount_factor: float = DEFAULT_DISCOUNT_FACTOR,
                 min_iterations: int = DEFAULT_MIN_ITERATIONS,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 tolerance: float = DEFAULT_TOLERANCE,
                 report_every: int = 10,
                 verbose: bool = True):
        """
        Args:
            mdp: Model to solve; built (and verified) here if not built yet
            discount_factor: gamma in [0, 1)
            min_iterations: Sweeps performed regardless of convergence
            max_iterations: Hard cap on sweeps
            tolerance: Convergence threshold on sum |V_curr - V_prev|, per unit
                       of sum |V_curr|
            report_every: Print progress every this many sweeps
            verbose: Print progress at all
        """
        validate_solver_parameters(discount_factor, min_iterations, max_iterations, tolerance)

        # Raises ModelInconsistencyError before any iteration
        if not mdp.is_built:
            mdp.build()

        self.mdp = mdp
        self.discount_factor = float(discount_factor)
        self.min_iterations = min_iterations
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.report_every = max(1, report_every)
        self.verbose = verbose

    def bellman_sweep(self, prev_values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        One synchronous Bellman update

        Args:
            prev_values: V_prev, shape (S,)

        Returns:
            (V_curr, best action index per state)
        """
        expected_next = self.mdp.transitions @ prev_values          # (S, A)
        q_values = self.mdp.rewards + self.discount_factor * expected_next
        # Infeasible pairs stay -inf; argmax keeps the first maximum
        best = np.argmax(q_values, axis=1)
        curr_values = q_values[np.arange(len(best)), best]
        return curr_values, best

    def threshold(self, values: np.ndarray) -> float:
        """Convergence threshold, scaled so rounding noise on large values cannot block it"""
        return self.tolerance * max(1.0, float(np.abs(values).sum()))

    def solve(self) -> SolverResult:
        """
        Run value iteration to convergence (or to the iteration cap)

        Returns:
            SolverResult with the frozen policy and value function
        """
        if self.verbose:
            print(f"Value iteration: {self.mdp.num_states} states, "
                  f"{self.mdp.num_actions} actions, discount {self.discount_factor}")

        prev_values = np.zeros(self.mdp.num_states)
        best = np.zeros(self.mdp.num_states, dtype=int)
        deltas = []
        max_changes = []
        converged = False

        iteration = 0
        while iteration < self.max_iterations:
            curr_values, best = self.bellman_sweep(prev_values)
            change = np.abs(curr_values - prev_values)
            delta = float(change.sum())
            deltas.append(delta)
            max_changes.append(float(change.max()))
            prev_values = curr_values
            iteration += 1

            if iteration >= self.min_iterations and delta <= self.threshold(curr_values):
                converged = True
                break

            if self.verbose and iteration % self.report_every == 0:
                print(f"  Iteration {iteration}. Value difference: {delta}")

        if converged:
            if self.verbose:
                print(f"  OK Converged after {iteration} iterations")
        else:
            warnings.warn(
                f"Value iteration did not converge within {self.max_iterations} iterations "
                f"(last value difference {deltas[-1]}); using the last policy",
                NonConvergenceWarning,
            )

        policy = {state: self.mdp.actions[a] for state, a in zip(self.mdp.states, best)}
        values = {state: float(v) for state, v in zip(self.mdp.states, prev_values)}

        return SolverResult(
            policy=MappingProxyType(policy),
            values=MappingProxyType(values),
            iterations=iteration,
            converged=converged,
            deltas=tuple(deltas),
            max_changes=tuple(max_changes),
            discount_factor=self.discount_factor,
            mdp=self.mdp,
        )
