"""adaptive assessment tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("choices_json", sa.JSON(), nullable=True),
        sa.Column("answer", sa.String(length=255), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("quiz_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("subject", sa.String(length=64), nullable=False, server_default="General"),
        sa.Column("topic", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("grade", sa.String(length=64), nullable=False, server_default="Primary 1"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        _created_at(),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_questions_difficulty", "questions", ["difficulty"])
    op.create_index("ix_questions_quiz_level", "questions", ["quiz_level"])
    op.create_index("ix_questions_is_active", "questions", ["is_active"])

    op.create_table(
        "quizzes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("quiz_level", sa.Integer(), nullable=False),
        sa.Column("trigger_type", sa.String(length=32), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=True),
        sa.Column("difficulty_plan_json", sa.JSON(), nullable=True),
        sa.Column("progression", sa.String(length=32), nullable=False, server_default="gradual"),
        sa.Column("starting_difficulty", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("target_correct_answers", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("freshness_score", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quizzes_quiz_level", "quizzes", ["quiz_level"])
    op.create_index("ix_quizzes_student_id", "quizzes", ["student_id"])

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quiz_id", sa.Integer(), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_id", sa.Integer(), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("choices_json", sa.JSON(), nullable=True),
        sa.Column("answer", sa.String(length=255), nullable=False),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quiz_id", sa.Integer(), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("strategy", sa.String(length=32), nullable=False),
        sa.Column("current_difficulty", sa.Integer(), nullable=False),
        sa.Column("history_json", sa.JSON(), nullable=True),
        sa.Column("correct_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_answered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skill_points", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "started_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"])
    op.create_index("ix_quiz_attempts_student_id", "quiz_attempts", ["student_id"])

    op.create_table(
        "attempt_answers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("attempt_id", sa.Integer(), sa.ForeignKey("quiz_attempts.id"), nullable=False),
        sa.Column("quiz_question_id", sa.Integer(), sa.ForeignKey("quiz_questions.id"), nullable=False),
        sa.Column("difficulty", sa.Integer(), nullable=False),
        sa.Column("user_answer", sa.String(length=255), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("skill_delta", sa.Float(), nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint("attempt_id", "quiz_question_id", name="uq_attempt_answers_attempt_question"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_attempt_answers_attempt_id", "attempt_answers", ["attempt_id"])

    op.create_table(
        "quiz_generation_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quiz_id", sa.Integer(), sa.ForeignKey("quizzes.id"), nullable=True),
        sa.Column("quiz_level", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=True),
        sa.Column("trigger_type", sa.String(length=32), nullable=False),
        sa.Column("trigger_details", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("questions_selected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("freshness_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("difficulty_distribution_json", sa.JSON(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("generated_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_quiz_generation_logs_quiz_level", "quiz_generation_logs", ["quiz_level"])
    op.create_index("ix_quiz_generation_logs_student_id", "quiz_generation_logs", ["student_id"])
    op.create_index("ix_quiz_generation_logs_trigger_type", "quiz_generation_logs", ["trigger_type"])

    op.create_table(
        "skill_points_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, unique=True),
        sa.Column("points_json", sa.JSON(), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        _created_at(),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "engagement_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_quiz_date", sa.DateTime(), nullable=True),
        sa.Column("total_skill_points", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "last_updated",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_engagement_profiles_student_id", "engagement_profiles", ["student_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_engagement_profiles_student_id", table_name="engagement_profiles")
    op.drop_table("engagement_profiles")
    op.drop_table("skill_points_configs")
    op.drop_index("ix_quiz_generation_logs_trigger_type", table_name="quiz_generation_logs")
    op.drop_index("ix_quiz_generation_logs_student_id", table_name="quiz_generation_logs")
    op.drop_index("ix_quiz_generation_logs_quiz_level", table_name="quiz_generation_logs")
    op.drop_table("quiz_generation_logs")
    op.drop_index("ix_attempt_answers_attempt_id", table_name="attempt_answers")
    op.drop_table("attempt_answers")
    op.drop_index("ix_quiz_attempts_student_id", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_quiz_id", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_index("ix_quiz_questions_quiz_id", table_name="quiz_questions")
    op.drop_table("quiz_questions")
    op.drop_index("ix_quizzes_student_id", table_name="quizzes")
    op.drop_index("ix_quizzes_quiz_level", table_name="quizzes")
    op.drop_table("quizzes")
    op.drop_index("ix_questions_is_active", table_name="questions")
    op.drop_index("ix_questions_quiz_level", table_name="questions")
    op.drop_index("ix_questions_difficulty", table_name="questions")
    op.drop_table("questions")
