"""create distribution schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    student_gender = sa.Enum("male", "female", "other", name="student_gender")
    sibling_rule_type = sa.Enum("same_class", "different_class", "no_preference", name="sibling_rule_type")
    constraint_severity = sa.Enum("critical", "high", "normal", name="constraint_severity")
    constraint_action = sa.Enum("separate", "group", name="constraint_action")
    distribution_status = sa.Enum("draft", "optimizing", "completed", "failed", name="distribution_status")

    op.create_table(
        "school_years",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_school_years_year", "school_years", ["year"], unique=True)

    op.create_table(
        "grade_levels",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("number_of_classes", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("students_per_class", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_grade_levels_code", "grade_levels", ["code"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("school_year_id", sa.Integer(), sa.ForeignKey("school_years.id"), nullable=False),
        sa.Column("grade_level_id", sa.Integer(), sa.ForeignKey("grade_levels.id"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("current_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("room_number", sa.String(length=20), nullable=True),
        sa.Column("teacher_name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("school_year_id", "grade_level_id", "name", name="uq_classes_year_grade_name"),
    )
    op.create_index("ix_classes_school_year_id", "classes", ["school_year_id"])
    op.create_index("ix_classes_grade_level_id", "classes", ["grade_level_id"])

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("school_year_id", sa.Integer(), sa.ForeignKey("school_years.id"), nullable=False),
        sa.Column("grade_level_id", sa.Integer(), sa.ForeignKey("grade_levels.id"), nullable=False),
        sa.Column("external_id", sa.String(length=50), nullable=True),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("gender", student_gender, nullable=True),
        sa.Column("academic_average", sa.Float(), nullable=True),
        sa.Column("behavioral_score", sa.Float(), nullable=True),
        sa.Column("has_special_needs", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_students_school_year_id", "students", ["school_year_id"])
    op.create_index("ix_students_grade_level_id", "students", ["grade_level_id"])

    op.create_table(
        "student_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("preferred_student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "preferred_student_id", name="uq_student_preferences_edge"),
    )
    op.create_index("ix_student_preferences_student_id", "student_preferences", ["student_id"])

    op.create_table(
        "sibling_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("school_year_id", sa.Integer(), sa.ForeignKey("school_years.id"), nullable=False),
        sa.Column("student_a_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("student_b_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("rule_type", sibling_rule_type, nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_sibling_rules_school_year_id", "sibling_rules", ["school_year_id"])

    op.create_table(
        "constraint_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False, server_default="0"),
        sa.Column("severity", constraint_severity, nullable=False),
        sa.Column("is_behavioral", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_constraint_types_code", "constraint_types", ["code"], unique=True)

    op.create_table(
        "student_constraints",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("school_year_id", sa.Integer(), sa.ForeignKey("school_years.id"), nullable=False),
        sa.Column("student_a_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("student_b_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("constraint_type_id", sa.Integer(), sa.ForeignKey("constraint_types.id"), nullable=False),
        sa.Column("action", constraint_action, nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("created_by", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_student_constraints_school_year_id", "student_constraints", ["school_year_id"])

    op.create_table(
        "configurations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("weights", sa.JSON(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_configurations_is_default", "configurations", ["is_default"])

    op.create_table(
        "optimizer_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("population_size", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("total_generations", sa.Integer(), nullable=False, server_default="150"),
        sa.Column("mutation_rate", sa.Float(), nullable=False, server_default="0.15"),
        sa.Column("crossover_rate", sa.Float(), nullable=False, server_default="0.85"),
        sa.Column("elite_count", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("tournament_size", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("stagnation_limit", sa.Integer(), nullable=False, server_default="40"),
        sa.Column("random_seed", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "distributions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("school_year_id", sa.Integer(), sa.ForeignKey("school_years.id"), nullable=False),
        sa.Column("grade_level_id", sa.Integer(), sa.ForeignKey("grade_levels.id"), nullable=False),
        sa.Column("configuration_id", sa.Integer(), sa.ForeignKey("configurations.id"), nullable=True),
        sa.Column("run_id", sa.String(length=36), nullable=True, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("fitness_score", sa.Float(), nullable=True),
        sa.Column("generation_count", sa.Integer(), nullable=True),
        sa.Column("execution_time", sa.Float(), nullable=True),
        sa.Column("random_seed", sa.Integer(), nullable=True),
        sa.Column("status", distribution_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_distributions_school_year_id", "distributions", ["school_year_id"])
    op.create_index("ix_distributions_grade_level_id", "distributions", ["grade_level_id"])

    op.create_table(
        "distribution_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "distribution_id",
            sa.Integer(),
            sa.ForeignKey("distributions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id"), nullable=False),
        sa.Column("is_manual_override", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("distribution_id", "student_id", name="uq_distribution_assignments_student"),
    )
    op.create_index(
        "ix_distribution_assignments_distribution_id",
        "distribution_assignments",
        ["distribution_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_distribution_assignments_distribution_id", table_name="distribution_assignments")
    op.drop_table("distribution_assignments")
    op.drop_index("ix_distributions_grade_level_id", table_name="distributions")
    op.drop_index("ix_distributions_school_year_id", table_name="distributions")
    op.drop_table("distributions")
    op.drop_table("optimizer_settings")
    op.drop_index("ix_configurations_is_default", table_name="configurations")
    op.drop_table("configurations")
    op.drop_index("ix_student_constraints_school_year_id", table_name="student_constraints")
    op.drop_table("student_constraints")
    op.drop_index("ix_constraint_types_code", table_name="constraint_types")
    op.drop_table("constraint_types")
    op.drop_index("ix_sibling_rules_school_year_id", table_name="sibling_rules")
    op.drop_table("sibling_rules")
    op.drop_index("ix_student_preferences_student_id", table_name="student_preferences")
    op.drop_table("student_preferences")
    op.drop_index("ix_students_grade_level_id", table_name="students")
    op.drop_index("ix_students_school_year_id", table_name="students")
    op.drop_table("students")
    op.drop_index("ix_classes_grade_level_id", table_name="classes")
    op.drop_index("ix_classes_school_year_id", table_name="classes")
    op.drop_table("classes")
    op.drop_index("ix_grade_levels_code", table_name="grade_levels")
    op.drop_table("grade_levels")
    op.drop_index("ix_school_years_year", table_name="school_years")
    op.drop_table("school_years")

    bind = op.get_bind()
    for name in (
        "distribution_status",
        "constraint_action",
        "constraint_severity",
        "sibling_rule_type",
        "student_gender",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
