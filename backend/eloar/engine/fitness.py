from __future__ import annotations

import logging
from dataclasses import dataclass

from eloar.core.exceptions import IndividualInvariantError
from eloar.engine.domain import Individual, OptimizationProblem, WeightConfiguration

logger = logging.getLogger(__name__)

# Charged per student above a class's max_capacity. Must dominate any realistic sum of the weighted
# soft terms so the search always prefers a feasible partition.
CAPACITY_OVERFLOW_PENALTY = 1_000_000.0


@dataclass(frozen=True)
class _PairEdge:
    a: int
    b: int
    separate: bool
    weight: float


@dataclass(frozen=True)
class _PreferenceEdge:
    source: int
    target: int
    cost: float


@dataclass(frozen=True)
class PenaltyBreakdown:
    critical: float = 0.0
    high: float = 0.0
    normal: float = 0.0
    behavioral: float = 0.0
    sibling: float = 0.0
    preference: float = 0.0
    academic: float = 0.0
    class_size: float = 0.0
    capacity: float = 0.0
    overflow_students: int = 0

    @property
    def total(self) -> float:
        # Fixed accumulation order keeps the score bit-for-bit reproducible.
        total = 0.0
        total += self.critical
        total += self.high
        total += self.normal
        total += self.behavioral
        total += self.sibling
        total += self.preference
        total += self.academic
        total += self.class_size
        total += self.capacity
        return total

    @property
    def fitness(self) -> float:
        return 0.0 - self.total


def _population_variance(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


class FitnessEvaluator:
    """Scores individuals of one problem. Stateless apart from lookup tables built once per run."""

    def __init__(self, problem: OptimizationProblem, weights: WeightConfiguration | None = None) -> None:
        self.problem = problem
        self.weights = weights or problem.weights
        self.student_count = len(problem.students)
        self.slot_count = len(problem.slots)
        self.index_by_student = {student.id: index for index, student in enumerate(problem.students)}
        self.capacities = [slot.max_capacity for slot in problem.slots]
        self.current_counts = [slot.current_count for slot in problem.slots]
        self.academic_scores = [student.academic_average for student in problem.students]

        self.critical_edges: list[_PairEdge] = []
        self.high_edges: list[_PairEdge] = []
        self.normal_edges: list[_PairEdge] = []
        self.behavioral_edges: list[_PairEdge] = []
        self.sibling_edges: list[_PairEdge] = []
        self.preference_edges: list[_PreferenceEdge] = []
        self._index_constraints()

    def _student_pair(self, a_id: int, b_id: int) -> tuple[int, int] | None:
        a = self.index_by_student.get(a_id)
        b = self.index_by_student.get(b_id)
        if a is None or b is None or a == b:
            return None
        return a, b

    def _index_constraints(self) -> None:
        weights = self.weights
        constraint_set = self.problem.constraint_set
        skipped = 0
        for item in constraint_set.constraints:
            pair = self._student_pair(item.student_a_id, item.student_b_id)
            if pair is None:
                skipped += 1
                continue
            separate = item.action == "SEPARATE"
            if item.severity == "critical":
                self.critical_edges.append(_PairEdge(*pair, separate, weights.critical_constraints))
            elif item.severity == "high":
                self.high_edges.append(_PairEdge(*pair, separate, weights.high_constraints))
            else:
                self.normal_edges.append(_PairEdge(*pair, separate, item.weight))
            if item.is_behavioral and separate:
                self.behavioral_edges.append(_PairEdge(*pair, True, weights.behavioral_separation))

        for rule in constraint_set.sibling_rules:
            if rule.rule_type == "NO_PREFERENCE":
                continue
            pair = self._student_pair(rule.student_a_id, rule.student_b_id)
            if pair is None:
                skipped += 1
                continue
            separate = rule.rule_type == "DIFFERENT_CLASS"
            self.sibling_edges.append(_PairEdge(*pair, separate, weights.sibling_rules))

        for preference in constraint_set.preferences:
            pair = self._student_pair(preference.student_id, preference.preferred_student_id)
            if pair is None:
                skipped += 1
                continue
            cost = weights.student_preferences * (4 - preference.priority) / 3
            self.preference_edges.append(_PreferenceEdge(pair[0], pair[1], cost))

        if skipped:
            logger.debug("Ignored %s edges referencing students outside the cohort", skipped)

    def check_invariants(self, individual: Individual) -> None:
        if len(individual) != self.student_count:
            raise IndividualInvariantError(
                f"Individual assigns {len(individual)} students, expected {self.student_count}",
            )
        for student_index, slot_index in enumerate(individual.genes):
            if not 0 <= slot_index < self.slot_count:
                raise IndividualInvariantError(
                    f"Student at position {student_index} assigned to unknown class index {slot_index}",
                )

    @staticmethod
    def _pair_penalty(edges: list[_PairEdge], genes: tuple[int, ...]) -> float:
        penalty = 0.0
        for edge in edges:
            together = genes[edge.a] == genes[edge.b]
            if together == edge.separate:
                penalty += edge.weight
        return penalty

    def breakdown(self, individual: Individual) -> PenaltyBreakdown:
        self.check_invariants(individual)
        genes = individual.genes
        weights = self.weights

        preference = 0.0
        for edge in self.preference_edges:
            if genes[edge.source] != genes[edge.target]:
                preference += edge.cost

        sizes = list(self.current_counts)
        score_sums = [0.0] * self.slot_count
        score_counts = [0] * self.slot_count
        for student_index, slot_index in enumerate(genes):
            sizes[slot_index] += 1
            score = self.academic_scores[student_index]
            if score is not None:
                score_sums[slot_index] += score
                score_counts[slot_index] += 1

        # Classes without any scored student are left out instead of counting as mean 0.
        class_means = [
            score_sums[index] / score_counts[index]
            for index in range(self.slot_count)
            if score_counts[index] > 0
        ]
        overflow = sum(max(0, size - capacity) for size, capacity in zip(sizes, self.capacities))

        return PenaltyBreakdown(
            critical=self._pair_penalty(self.critical_edges, genes),
            high=self._pair_penalty(self.high_edges, genes),
            normal=self._pair_penalty(self.normal_edges, genes),
            behavioral=self._pair_penalty(self.behavioral_edges, genes),
            sibling=self._pair_penalty(self.sibling_edges, genes),
            preference=preference,
            academic=weights.academic_balance * _population_variance(class_means),
            class_size=weights.class_size_balance * _population_variance([float(size) for size in sizes]),
            capacity=CAPACITY_OVERFLOW_PENALTY * overflow,
            overflow_students=overflow,
        )

    def evaluate(self, individual: Individual) -> float:
        if individual.fitness is None:
            individual.fitness = self.breakdown(individual).fitness
        return individual.fitness


def evaluate(individual: Individual, problem: OptimizationProblem, weights: WeightConfiguration | None = None) -> float:
    """One-shot scoring without the per-run lookup cache; higher is better."""
    return FitnessEvaluator(problem, weights).breakdown(individual).fitness
