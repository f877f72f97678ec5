from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True)
    text = Column(Text, nullable=False)
    choices_json = Column(JSON, nullable=True)
    answer = Column(String(255), nullable=False)
    difficulty = Column(Integer, nullable=False, default=3, index=True)
    quiz_level = Column(Integer, nullable=False, default=1, index=True)
    subject = Column(String(64), nullable=False, default="General")
    topic = Column(String(255), nullable=False, default="")
    grade = Column(String(64), nullable=False, default="Primary 1")
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    quiz_level = Column(Integer, nullable=False, index=True)
    trigger_type = Column(String(32), nullable=False)
    student_id = Column(String(64), nullable=True, index=True)
    difficulty_plan_json = Column(JSON, nullable=True)
    progression = Column(String(32), nullable=False, default="gradual")
    starting_difficulty = Column(Integer, nullable=False, default=1)
    target_correct_answers = Column(Integer, nullable=False, default=10)
    freshness_score = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )
    attempts = relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False)
    difficulty = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    choices_json = Column(JSON, nullable=True)
    answer = Column(String(255), nullable=False)

    quiz = relationship("Quiz", back_populates="questions")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    strategy = Column(String(32), nullable=False)
    current_difficulty = Column(Integer, nullable=False)
    history_json = Column(JSON, nullable=True)
    correct_count = Column(Integer, nullable=False, default=0)
    total_answered = Column(Integer, nullable=False, default=0)
    skill_points = Column(Float, nullable=False, default=0.0)
    is_completed = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, server_default=func.now(), nullable=False)
    completed_at = Column(DateTime, nullable=True)

    quiz = relationship("Quiz", back_populates="attempts")
    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.id",
    )


class AttemptAnswer(Base):
    __tablename__ = "attempt_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "quiz_question_id", name="uq_attempt_answers_attempt_question"),
    )

    id = Column(Integer, primary_key=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id"), nullable=False, index=True)
    quiz_question_id = Column(Integer, ForeignKey("quiz_questions.id"), nullable=False)
    difficulty = Column(Integer, nullable=False)
    user_answer = Column(String(255), nullable=True)
    is_correct = Column(Boolean, nullable=False)
    skill_delta = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    attempt = relationship("QuizAttempt", back_populates="answers")


class QuizGenerationLog(Base):
    __tablename__ = "quiz_generation_logs"

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=True)
    quiz_level = Column(Integer, nullable=False, index=True)
    student_id = Column(String(64), nullable=True, index=True)
    trigger_type = Column(String(32), nullable=False, index=True)
    trigger_details = Column(String(255), nullable=False, default="")
    questions_selected = Column(Integer, nullable=False, default=0)
    freshness_score = Column(Float, nullable=False, default=0.0)
    difficulty_distribution_json = Column(JSON, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=False, default="")
    generated_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False)


class SkillPointsConfig(Base):
    __tablename__ = "skill_points_configs"

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False, unique=True)
    points_json = Column(JSON, nullable=False)
    updated_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class EngagementProfile(Base):
    __tablename__ = "engagement_profiles"

    id = Column(Integer, primary_key=True)
    student_id = Column(String(64), nullable=False, unique=True, index=True)
    streak = Column(Integer, nullable=False, default=0)
    last_quiz_date = Column(DateTime, nullable=True)
    total_skill_points = Column(Float, nullable=False, default=0.0)
    last_updated = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
