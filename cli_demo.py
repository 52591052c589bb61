"""
CLI Demo: Reactive Delivery Agent

This script demonstrates the complete workflow:
1. Build a road topology and a random task distribution
2. Build and verify the reactive MDP
3. Solve it with value iteration
4. Simulate a session in which the agent reacts to tasks
5. Report final results and statistics
"""

import numpy as np
from typing import Dict

from config import AgentConfig
from reactive_agent import ReactiveAgent
from topology import Topology, TaskDistribution


def create_demo_scenario(seed: int = 42):
    """
    Create a demo problem instance

    Returns:
        (topology, task_distribution)
    """
    topology = Topology.from_distances(
        ["Geneve", "Lausanne", "Neuchatel", "Bern", "Fribourg", "Basel"],
        [
            ("Geneve", "Lausanne", 62.0),
            ("Lausanne", "Fribourg", 71.0),
            ("Lausanne", "Neuchatel", 73.0),
            ("Neuchatel", "Bern", 52.0),
            ("Fribourg", "Bern", 34.0),
            ("Bern", "Basel", 98.0),
            ("Neuchatel", "Basel", 127.0),
        ],
    )
    rng = np.random.default_rng(seed)
    distribution = TaskDistribution.random(topology, rng, no_task_share=0.3, reward_per_km=25.0)
    return topology, distribution


def simulate(agent: ReactiveAgent, distribution: TaskDistribution,
             num_steps: int, seed: int = 7) -> Dict:
    """
    Host loop: offer a task at the current city, apply the agent's decision

    Returns:
        Dictionary with decision counts per action kind
    """
    rng = np.random.default_rng(seed)
    city = agent.topology.cities()[0]
    counts = {'pickup': 0, 'move': 0}

    for _ in range(num_steps):
        task = distribution.sample(city, rng)
        action = agent.act(city, task)
        kind, target = agent.translate(action, task)
        counts[kind] += 1
        city = target.delivery_city if kind == 'pickup' else target

    counts['final_city'] = city
    return counts


def main(num_steps: int = 50):
    """Main demo workflow"""

    print("\n" + "="*80)
    print("REACTIVE DELIVERY AGENT DEMO")
    print("="*80)
    print("This demo shows:")
    print("1. MDP construction from a topology and task distribution")
    print("2. Offline policy computation with value iteration")
    print("3. Online decisions driven by the precomputed policy")
    print("="*80)

    # PHASE 1: SETUP
    print("\n" + "-"*80)
    print("PHASE 1: PROBLEM SETUP")
    print("-"*80)

    topology, distribution = create_demo_scenario()
    config = AgentConfig.from_properties({'discount-factor': '0.95', 'cost-per-km': '5'},
                                         verbose=False)
    print(f"OK Created topology with {len(topology)} cities")
    for city in topology.cities():
        neighbours = ", ".join(str(n) for n in topology.neighbors(city))
        print(f"   {city}: neighbours [{neighbours}], "
              f"P(no task) = {distribution.probability(city, None):.2f}")
    print(f"   Discount factor: {config.discount_factor}, cost per km: {config.cost_per_km}")

    # PHASE 2: OFFLINE POLICY
    print("\n" + "-"*80)
    print("PHASE 2: VALUE ITERATION")
    print("-"*80)

    agent = ReactiveAgent.setup(topology, distribution, config)
    result = agent.result
    print(f"OK Policy computed in {result.iterations} iterations "
          f"(converged: {result.converged})")
    result.report()

    # PHASE 3: ONLINE DECISIONS
    print("\n" + "-"*80)
    print(f"PHASE 3: SIMULATE {num_steps} DECISIONS")
    print("-"*80)

    counts = simulate(agent, distribution, num_steps)

    # PHASE 4: FINAL REPORT
    print("\n" + "-"*80)
    print("PHASE 4: FINAL RESULTS AND STATISTICS")
    print("-"*80)

    stats = agent.get_statistics()
    print(f"  Decisions: {stats['num_actions']} "
          f"({counts['pickup']} pickups, {counts['move']} empty moves)")
    print(f"  Tasks taken: {stats['tasks_taken']}, skipped: {stats['tasks_skipped']} "
          f"(acceptance rate {stats['acceptance_rate']:.1f}%)")
    print(f"  Distance travelled: {stats['total_distance']:.1f}")
    print(f"  TOTAL PROFIT: ${stats['total_profit']:.2f} "
          f"(average ${stats['average_profit']:.2f} per decision)")
    print(f"  Final city: {counts['final_city']}")

    print("\n" + "="*80)
    print("DEMO COMPLETE")
    print("="*80 + "\n")

    return {
        'result': result,
        'statistics': stats,
        'decisions': counts,
    }


if __name__ == "__main__":
    results = main()
