"""
Reactive Agent
Executes a precomputed value-iteration policy at decision time.

At every decision the vehicle observes its city and, possibly, a task on
offer there. The agent turns that observation into an MDP state, looks up
the best action in the frozen policy and keeps running profit statistics.
"""

from typing import Dict, Optional, Tuple, Union

from config import AgentConfig
from reactive_mdp import ReactiveMDP, State, Action
from topology import City, Task, Topology, TaskDistribution
from value_iteration import ValueIterationSolver, SolverResult, UnknownStateError


class ReactiveAgent:
    """
    Policy executor for the reactive delivery vehicle

    The policy is computed once (see setup()) and only read afterwards.
    """

    def __init__(self, mdp: ReactiveMDP, result: SolverResult, verbose: bool = True):
        """
        Args:
            mdp: Built model the policy was computed for
            result: Output of ValueIterationSolver.solve()
            verbose: Print running profit after each decision
        """
        self.mdp = mdp
        self.result = result
        self.topology = mdp.topology
        self.cost_per_km = mdp.cost_per_km
        self.verbose = verbose

        # Statistics
        self.num_actions = 0
        self.tasks_taken = 0
        self.tasks_skipped = 0
        self.total_distance = 0.0
        self.total_profit = 0.0

    @classmethod
    def setup(cls,
              topology: Topology,
              task_distribution: TaskDistribution,
              config: Optional[AgentConfig] = None) -> "ReactiveAgent":
        """
        Build the MDP, solve it and return an agent ready to act

        Called once before the simulation starts.
        """
        config = (config or AgentConfig()).validate()

        mdp = ReactiveMDP(topology, task_distribution, cost_per_km=config.cost_per_km).build()
        if config.verbose:
            print(f"OK Built MDP: {mdp.num_states} states, {mdp.num_actions} actions, "
                  f"transition table verified")

        solver = ValueIterationSolver(
            mdp,
            discount_factor=config.discount_factor,
            min_iterations=config.min_iterations,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
            report_every=config.report_every,
            verbose=config.verbose,
        )
        result = solver.solve()
        if config.verbose:
            result.report()

        return cls(mdp, result, verbose=config.verbose)

    # ========================================================================
    # DECISION
    # ========================================================================

    def observe(self, current_city: City, available_task: Optional[Task] = None) -> State:
        """MDP state matching what the vehicle sees"""
        if available_task is None:
            return State(current_city, None)
        if available_task.pickup_city != current_city:
            raise UnknownStateError(
                f"Task from {available_task.pickup_city} offered to a vehicle in {current_city}"
            )
        return State(available_task.pickup_city, available_task.delivery_city)

    def act(self, current_city: City, available_task: Optional[Task] = None) -> Action:
        """
        Choose the action for the current situation

        Args:
            current_city: City the vehicle is in
            available_task: Task on offer there, if any

        Returns:
            Action.take() or Action.move(neighbour)
        """
        state = self.observe(current_city, available_task)
        action = self.result.best_action(state)

        if self.num_actions >= 1 and self.verbose:
            print(f"The total profit after {self.num_actions} actions is {self.total_profit:.2f} "
                  f"(average profit: {self.total_profit / self.num_actions:.2f})")

        self._record(state, action, available_task)
        return action

    def _record(self, state: State, action: Action, task: Optional[Task]):
        """Update running statistics with the profit of the chosen action"""
        destination = self.mdp.reached_city(state, action)
        distance = self.topology.distance(state.from_city, destination)
        profit = -self.cost_per_km * distance

        if action.is_take:
            profit += task.reward
            self.tasks_taken += 1
        elif state.has_task:
            self.tasks_skipped += 1

        self.num_actions += 1
        self.total_distance += distance
        self.total_profit += profit

    @staticmethod
    def translate(action: Action, task: Optional[Task]) -> Tuple[str, Union[Task, City]]:
        """Host-side representation: ('pickup', task) or ('move', city)"""
        if action.is_take:
            if task is None:
                raise ValueError("Cannot pick up: no task available")
            return 'pickup', task
        return 'move', action.destination

    # ========================================================================
    # REPORTING
    # ========================================================================

    def get_statistics(self) -> Dict:
        """
        Get decision statistics

        Returns:
            Dictionary with metrics
        """
        offered = self.tasks_taken + self.tasks_skipped
        if offered == 0:
            acceptance_rate = 0.0
        else:
            acceptance_rate = (self.tasks_taken / offered) * 100

        return {
            'num_actions': self.num_actions,
            'tasks_taken': self.tasks_taken,
            'tasks_skipped': self.tasks_skipped,
            'acceptance_rate': acceptance_rate,
            'total_distance': self.total_distance,
            'total_profit': self.total_profit,
            'average_profit': self.total_profit / self.num_actions if self.num_actions else 0.0,
        }
