import pytest

from eloar.core.exceptions import IndividualInvariantError
from eloar.engine.domain import (
    ClassSlot,
    ConstraintSet,
    Individual,
    OptimizationProblem,
    PairConstraint,
    SiblingRule,
    Student,
    StudentPreference,
    WeightConfiguration,
)
from eloar.engine.fitness import CAPACITY_OVERFLOW_PENALTY, FitnessEvaluator, PenaltyBreakdown, evaluate


def build_problem(
    student_count: int,
    capacities: list[int],
    *,
    constraint_set: ConstraintSet | None = None,
    weights: WeightConfiguration | None = None,
    scores: list[float | None] | None = None,
    current_counts: list[int] | None = None,
) -> OptimizationProblem:
    scores = scores or [None] * student_count
    current_counts = current_counts or [0] * len(capacities)
    return OptimizationProblem(
        school_year_id=1,
        grade_level_id=1,
        students=tuple(
            Student(id=100 + index, grade_level_id=1, school_year_id=1, academic_average=scores[index])
            for index in range(student_count)
        ),
        slots=tuple(
            ClassSlot(id=10 + index, max_capacity=capacity, current_count=current_counts[index])
            for index, capacity in enumerate(capacities)
        ),
        constraint_set=constraint_set or ConstraintSet(),
        weights=weights or WeightConfiguration(),
    )


def critical_separate(a: int = 100, b: int = 101, *, behavioral: bool = False) -> PairConstraint:
    return PairConstraint(
        id=1,
        student_a_id=a,
        student_b_id=b,
        action="SEPARATE",
        severity="critical",
        is_behavioral=behavioral,
    )


def test_critical_separate_violation_costs_exactly_the_critical_weight():
    problem = build_problem(2, [2], constraint_set=ConstraintSet(constraints=(critical_separate(),)))

    breakdown = FitnessEvaluator(problem).breakdown(Individual([0, 0]))

    assert breakdown.critical == 1000.0
    assert breakdown.total == 1000.0
    assert breakdown.fitness == -1000.0


def test_group_constraint_is_violated_when_students_are_apart():
    group = PairConstraint(id=1, student_a_id=100, student_b_id=101, action="GROUP", severity="high")
    problem = build_problem(2, [1, 1], constraint_set=ConstraintSet(constraints=(group,)))
    evaluator = FitnessEvaluator(problem)

    assert evaluator.breakdown(Individual([0, 1])).high == 500.0


def test_behavioral_critical_violation_pays_both_terms():
    problem = build_problem(
        2,
        [2],
        constraint_set=ConstraintSet(constraints=(critical_separate(behavioral=True),)),
    )

    breakdown = FitnessEvaluator(problem).breakdown(Individual([0, 0]))

    assert breakdown.critical == 1000.0
    assert breakdown.behavioral == 300.0
    assert breakdown.total == 1300.0


def test_normal_severity_uses_constraint_type_weight():
    normal = PairConstraint(
        id=1, student_a_id=100, student_b_id=101, action="SEPARATE", severity="normal", weight=42.0
    )
    problem = build_problem(2, [2], constraint_set=ConstraintSet(constraints=(normal,)))

    assert FitnessEvaluator(problem).breakdown(Individual([0, 0])).normal == 42.0


@pytest.mark.parametrize(
    ("genes", "expected"),
    [([0, 0], 0.0), ([0, 1], 100.0)],
)
def test_priority_one_preference(genes, expected):
    preference = StudentPreference(student_id=100, preferred_student_id=101, priority=1)
    problem = build_problem(
        2,
        [2, 2],
        constraint_set=ConstraintSet(preferences=(preference,)),
        weights=WeightConfiguration(class_size_balance=0.0),
    )

    breakdown = FitnessEvaluator(problem).breakdown(Individual(genes))

    assert breakdown.preference == expected
    assert breakdown.total == expected


def test_lower_priority_preference_costs_less():
    preference = StudentPreference(student_id=100, preferred_student_id=101, priority=3)
    problem = build_problem(2, [1, 1], constraint_set=ConstraintSet(preferences=(preference,)))

    assert FitnessEvaluator(problem).breakdown(Individual([0, 1])).preference == pytest.approx(100.0 / 3)


def test_sibling_rules():
    rules = (
        SiblingRule(id=1, student_a_id=100, student_b_id=101, rule_type="SAME_CLASS"),
        SiblingRule(id=2, student_a_id=102, student_b_id=103, rule_type="DIFFERENT_CLASS"),
        SiblingRule(id=3, student_a_id=100, student_b_id=102, rule_type="NO_PREFERENCE"),
    )
    problem = build_problem(4, [2, 2], constraint_set=ConstraintSet(sibling_rules=rules))
    evaluator = FitnessEvaluator(problem)

    assert evaluator.breakdown(Individual([0, 0, 1, 1])).sibling == 200.0
    assert evaluator.breakdown(Individual([0, 1, 0, 1])).sibling == 200.0
    assert evaluator.breakdown(Individual([0, 0, 0, 1])).sibling == 0.0


def test_academic_balance_ignores_classes_without_scores():
    problem = build_problem(3, [3, 3], scores=[8.0, 6.0, None])

    breakdown = FitnessEvaluator(problem).breakdown(Individual([0, 0, 1]))

    assert breakdown.academic == 0.0


def test_academic_balance_uses_population_variance_of_class_means():
    problem = build_problem(2, [1, 1], scores=[8.0, 6.0])

    # Means 8 and 6: variance 1.
    assert FitnessEvaluator(problem).breakdown(Individual([0, 1])).academic == 50.0


def test_class_size_balance_counts_existing_occupants():
    problem = build_problem(2, [5, 5], current_counts=[2, 0])

    # Sizes 3 and 1: variance 1.
    assert FitnessEvaluator(problem).breakdown(Individual([0, 1])).class_size == 50.0


def test_capacity_overflow_is_charged_per_excess_student():
    problem = build_problem(4, [2, 2], weights=WeightConfiguration(class_size_balance=0.0))

    breakdown = FitnessEvaluator(problem).breakdown(Individual([0, 0, 0, 0]))

    assert breakdown.overflow_students == 2
    assert breakdown.capacity == 2 * CAPACITY_OVERFLOW_PENALTY


def test_overflow_dominates_soft_terms():
    constraint = critical_separate()
    problem = build_problem(2, [1, 1], constraint_set=ConstraintSet(constraints=(constraint,)))
    evaluator = FitnessEvaluator(problem)

    assert evaluator.breakdown(Individual([0, 1])).fitness > evaluator.breakdown(Individual([0, 0])).fitness


def test_edges_to_unknown_students_are_skipped():
    problem = build_problem(2, [2], constraint_set=ConstraintSet(constraints=(critical_separate(100, 999),)))

    assert FitnessEvaluator(problem).breakdown(Individual([0, 0])).critical == 0.0


def test_invariant_violations_raise():
    evaluator = FitnessEvaluator(build_problem(2, [2]))

    with pytest.raises(IndividualInvariantError):
        evaluator.breakdown(Individual([0]))
    with pytest.raises(IndividualInvariantError):
        evaluator.breakdown(Individual([0, 3]))


def test_evaluate_caches_until_the_individual_changes():
    problem = build_problem(2, [1, 1], constraint_set=ConstraintSet(constraints=(critical_separate(),)))
    evaluator = FitnessEvaluator(problem)
    individual = Individual([0, 0])

    first = evaluator.evaluate(individual)
    assert individual.fitness == first
    individual.assign(1, 1)
    assert individual.fitness is None
    assert evaluator.evaluate(individual) > first


def test_module_level_evaluate_accepts_weight_override():
    problem = build_problem(2, [2], constraint_set=ConstraintSet(constraints=(critical_separate(),)))

    assert evaluate(Individual([0, 0]), problem, WeightConfiguration(critical_constraints=10.0)) == -10.0


def test_breakdown_total_sums_every_term():
    breakdown = PenaltyBreakdown(critical=1, high=2, normal=3, behavioral=4, sibling=5, preference=6, academic=7, class_size=8, capacity=9)

    assert breakdown.total == 45.0
    assert breakdown.fitness == -45.0
