from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Iterable, Literal, Mapping

logger = logging.getLogger(__name__)

Severity = Literal["critical", "high", "normal"]
ConstraintActionValue = Literal["SEPARATE", "GROUP"]
SiblingRuleValue = Literal["SAME_CLASS", "DIFFERENT_CLASS", "NO_PREFERENCE"]

SEVERITIES: tuple[str, ...] = ("critical", "high", "normal")


@dataclass(frozen=True)
class Student:
    id: int
    grade_level_id: int
    school_year_id: int
    gender: str | None = None
    academic_average: float | None = None
    behavioral_score: float | None = None
    has_special_needs: bool = False

    def __post_init__(self) -> None:
        for name in ("academic_average", "behavioral_score"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 10.0:
                raise ValueError(f"Student {self.id}: {name} must be within 0..10, got {value}")


@dataclass(frozen=True)
class ClassSlot:
    id: int
    max_capacity: int
    current_count: int = 0
    name: str | None = None

    def __post_init__(self) -> None:
        if self.max_capacity < 0:
            raise ValueError(f"Class {self.id}: max_capacity cannot be negative")
        if self.current_count < 0:
            raise ValueError(f"Class {self.id}: current_count cannot be negative")

    @property
    def free_seats(self) -> int:
        return max(0, self.max_capacity - self.current_count)


@dataclass(frozen=True)
class PairConstraint:
    """Pairwise SEPARATE/GROUP rule; the pair is unordered."""

    id: int
    student_a_id: int
    student_b_id: int
    action: ConstraintActionValue
    severity: Severity
    weight: float = 0.0
    is_behavioral: bool = False

    def __post_init__(self) -> None:
        if self.action not in ("SEPARATE", "GROUP"):
            raise ValueError(f"Constraint {self.id}: unknown action {self.action!r}")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Constraint {self.id}: unknown severity {self.severity!r}")

    @property
    def pair(self) -> tuple[int, int]:
        return (min(self.student_a_id, self.student_b_id), max(self.student_a_id, self.student_b_id))


@dataclass(frozen=True)
class SiblingRule:
    id: int
    student_a_id: int
    student_b_id: int
    rule_type: SiblingRuleValue


@dataclass(frozen=True)
class StudentPreference:
    student_id: int
    preferred_student_id: int
    priority: int

    def __post_init__(self) -> None:
        if self.priority not in (1, 2, 3):
            raise ValueError(
                f"Preference {self.student_id}->{self.preferred_student_id}: priority must be 1, 2 or 3"
            )


@dataclass(frozen=True)
class WeightConfiguration:
    critical_constraints: float = 1000.0
    high_constraints: float = 500.0
    behavioral_separation: float = 300.0
    sibling_rules: float = 200.0
    student_preferences: float = 100.0
    academic_balance: float = 50.0
    class_size_balance: float = 50.0

    def __post_init__(self) -> None:
        for item in fields(self):
            if getattr(self, item.name) < 0:
                raise ValueError(f"Weight {item.name} must be non-negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, float] | None) -> "WeightConfiguration":
        if not data:
            return cls()
        known = {item.name for item in fields(cls)}
        return cls(**{key: float(value) for key, value in data.items() if key in known})


@dataclass(frozen=True)
class ConstraintSet:
    constraints: tuple[PairConstraint, ...] = ()
    sibling_rules: tuple[SiblingRule, ...] = ()
    preferences: tuple[StudentPreference, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class OptimizationProblem:
    school_year_id: int
    grade_level_id: int
    students: tuple[Student, ...]
    slots: tuple[ClassSlot, ...]
    constraint_set: ConstraintSet = field(default_factory=ConstraintSet)
    weights: WeightConfiguration = field(default_factory=WeightConfiguration)

    @property
    def total_free_seats(self) -> int:
        return sum(slot.free_seats for slot in self.slots)


def resolve_constraints(
    constraints: Iterable[PairConstraint],
) -> tuple[tuple[PairConstraint, ...], tuple[str, ...]]:
    """Drop contradictory constraints, keeping the last defined one.

    Two constraints contradict when they cover the same pair with the same severity and
    opposite actions. Input is ordered by id first, so the outcome only depends on the data.
    """
    ordered = sorted(constraints, key=lambda item: item.id)
    latest: dict[tuple[tuple[int, int], str], PairConstraint] = {}
    dropped: set[int] = set()
    warnings: list[str] = []
    for item in ordered:
        key = (item.pair, item.severity)
        previous = latest.get(key)
        if previous is not None and previous.action != item.action:
            dropped.add(previous.id)
            message = (
                f"Contradictory {item.severity} constraints for students {item.pair[0]} and {item.pair[1]}: "
                f"constraint {item.id} ({item.action}) overrides constraint {previous.id} ({previous.action})"
            )
            logger.warning(message)
            warnings.append(message)
        latest[key] = item
    return tuple(item for item in ordered if item.id not in dropped), tuple(warnings)


class Individual:
    """A total assignment of students to classes.

    ``genes[i]`` is the index into ``problem.slots`` of the class holding ``problem.students[i]``.
    The fitness is cached after evaluation and cleared by every mutating method.
    """

    __slots__ = ("_genes", "_fitness")

    def __init__(self, genes: Iterable[int], fitness: float | None = None) -> None:
        self._genes = list(genes)
        self._fitness = fitness

    @property
    def genes(self) -> tuple[int, ...]:
        return tuple(self._genes)

    @property
    def fitness(self) -> float | None:
        return self._fitness

    @fitness.setter
    def fitness(self, value: float) -> None:
        self._fitness = value

    @property
    def is_evaluated(self) -> bool:
        return self._fitness is not None

    def __len__(self) -> int:
        return len(self._genes)

    def __getitem__(self, index: int) -> int:
        return self._genes[index]

    def assign(self, student_index: int, slot_index: int) -> None:
        if self._genes[student_index] != slot_index:
            self._genes[student_index] = slot_index
            self._fitness = None

    def clone(self) -> "Individual":
        return Individual(self._genes, self._fitness)

    def class_sizes(self, slot_count: int) -> list[int]:
        sizes = [0] * slot_count
        for slot_index in self._genes:
            sizes[slot_index] += 1
        return sizes

    def to_assignment(self, problem: OptimizationProblem) -> dict[int, int]:
        return {
            student.id: problem.slots[slot_index].id
            for student, slot_index in zip(problem.students, self._genes)
        }

    def __repr__(self) -> str:
        return f"Individual(genes={self._genes!r}, fitness={self._fitness!r})"
