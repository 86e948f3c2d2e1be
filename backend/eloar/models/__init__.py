from eloar.models.configuration import Configuration, OptimizerSettingsRecord  # noqa: F401
from eloar.models.constraint import (  # noqa: F401
    ConstraintAction,
    ConstraintSeverity,
    ConstraintType,
    StudentConstraint,
)
from eloar.models.distribution import Distribution, DistributionAssignment, DistributionStatus  # noqa: F401
from eloar.models.school import GradeLevel, SchoolClass, SchoolYear  # noqa: F401
from eloar.models.student import (  # noqa: F401
    Gender,
    SiblingRule,
    SiblingRuleType,
    Student,
    StudentPreference,
)
