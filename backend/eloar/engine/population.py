from __future__ import annotations

import random

from eloar.engine.domain import Individual, OptimizationProblem
from eloar.schemas.optimization import OptimizerSettings

# Share of mutations allowed to target a full class, so the search can cross infeasible
# regions instead of stalling in a local optimum.
OVER_CAPACITY_EXPLORATION_RATE = 0.1


class PopulationManager:
    """Initialization and variation operators for one run.

    All randomness flows through the run-scoped ``rng``; identical seeds give identical populations.
    """

    def __init__(self, problem: OptimizationProblem, settings: OptimizerSettings, rng: random.Random) -> None:
        self.problem = problem
        self.settings = settings
        self.random = rng
        self.student_count = len(problem.students)
        self.slot_count = len(problem.slots)
        self.capacities = [slot.max_capacity for slot in problem.slots]
        self.current_counts = [slot.current_count for slot in problem.slots]

    def _sizes(self, genes) -> list[int]:
        sizes = list(self.current_counts)
        for slot_index in genes:
            sizes[slot_index] += 1
        return sizes

    def _round_robin_individual(self) -> Individual:
        student_order = list(range(self.student_count))
        self.random.shuffle(student_order)
        slot_order = list(range(self.slot_count))
        self.random.shuffle(slot_order)

        remaining = [max(0, capacity - count) for capacity, count in zip(self.capacities, self.current_counts)]
        sizes = list(self.current_counts)
        genes = [0] * self.student_count
        cursor = 0
        for student_index in student_order:
            chosen = None
            for offset in range(self.slot_count):
                candidate = slot_order[(cursor + offset) % self.slot_count]
                if remaining[candidate] > 0:
                    chosen = candidate
                    cursor = (cursor + offset + 1) % self.slot_count
                    break
            if chosen is None:
                # Only reachable when seats run out; the evaluator charges the overflow.
                chosen = min(range(self.slot_count), key=lambda index: (sizes[index] - self.capacities[index], index))
            genes[student_index] = chosen
            remaining[chosen] -= 1
            sizes[chosen] += 1
        return Individual(genes)

    def initialize(self) -> list[Individual]:
        return [self._round_robin_individual() for _ in range(self.settings.population_size)]

    def select(self, population: list[Individual]) -> Individual:
        size = min(self.settings.tournament_size, len(population))
        contenders = self.random.sample(range(len(population)), size)
        best_index = max(
            contenders,
            key=lambda idx: population[idx].fitness if population[idx].fitness is not None else float("-inf"),
        )
        return population[best_index]

    def crossover(self, parent_a: Individual, parent_b: Individual) -> Individual:
        """Two-point crossover: a contiguous block from ``parent_a``, the rest from ``parent_b``."""
        if self.student_count < 2:
            return parent_a.clone()
        start, end = sorted(self.random.sample(range(self.student_count + 1), 2))
        genes = list(parent_b.genes)
        genes[start:end] = parent_a.genes[start:end]
        child = Individual(genes)
        self.repair(child)
        return child

    def repair(self, individual: Individual) -> Individual:
        """Move overflow students of every over-capacity class to the least-full class with free seats."""
        sizes = self._sizes(individual.genes)
        members: list[list[int]] = [[] for _ in range(self.slot_count)]
        for student_index, slot_index in enumerate(individual.genes):
            members[slot_index].append(student_index)

        for slot_index in range(self.slot_count):
            while sizes[slot_index] > self.capacities[slot_index] and members[slot_index]:
                eligible = [
                    index
                    for index in range(self.slot_count)
                    if index != slot_index and sizes[index] < self.capacities[index]
                ]
                if not eligible:
                    return individual
                target = max(eligible, key=lambda index: (self.capacities[index] - sizes[index], -index))
                moved = members[slot_index].pop(self.random.randrange(len(members[slot_index])))
                members[target].append(moved)
                individual.assign(moved, target)
                sizes[slot_index] -= 1
                sizes[target] += 1
        return individual

    def mutate(self, individual: Individual, *, mutation_rate: float | None = None) -> bool:
        rate = mutation_rate if mutation_rate is not None else self.settings.mutation_rate
        if self.slot_count < 2 or self.student_count == 0 or self.random.random() >= rate:
            return False
        student_index = self.random.randrange(self.student_count)
        current = individual[student_index]
        others = [index for index in range(self.slot_count) if index != current]
        sizes = self._sizes(individual.genes)
        under_capacity = [index for index in others if sizes[index] < self.capacities[index]]
        if under_capacity and self.random.random() >= OVER_CAPACITY_EXPLORATION_RATE:
            target = self.random.choice(under_capacity)
        else:
            target = self.random.choice(others)
        individual.assign(student_index, target)
        return True

    def adaptive_mutation_rate(self, stagnant_generations: int) -> float:
        base = self.settings.mutation_rate
        limit = self.settings.stagnation_limit
        if stagnant_generations >= limit // 2 > 0:
            return min(0.5, max(base, base * 2.0))
        if stagnant_generations >= limit // 4 > 0:
            return min(0.35, max(base, base * 1.4))
        return base

    def next_generation(self, population: list[Individual], *, mutation_rate: float | None = None) -> list[Individual]:
        """Elites are carried over unchanged; the rest are bred by tournament, crossover and mutation."""
        ranked = sorted(
            population,
            key=lambda item: item.fitness if item.fitness is not None else float("-inf"),
            reverse=True,
        )
        next_population = [item.clone() for item in ranked[: self.settings.elite_count]]
        while len(next_population) < self.settings.population_size:
            parent_a = self.select(ranked)
            parent_b = self.select(ranked)
            if self.random.random() < self.settings.crossover_rate:
                child = self.crossover(parent_a, parent_b)
            else:
                child = parent_a.clone()
            self.mutate(child, mutation_rate=mutation_rate)
            next_population.append(child)
        return next_population
