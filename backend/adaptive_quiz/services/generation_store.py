import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from adaptive_quiz.db import models
from adaptive_quiz.services.clock import to_storage
from adaptive_quiz.services.question_pool import QuestionRecord

TRIGGER_TYPES = (
    "new_enrollment",
    "completion",
    "time_based",
    "question_pool_refresh",
    "admin_trigger",
)


@dataclass(frozen=True)
class AdaptiveConfig:
    progression: str = "gradual"
    starting_difficulty: int = 1
    target_correct_answers: int = 10


@dataclass(frozen=True)
class QuizDefinition:
    title: str
    quiz_level: int
    trigger_type: str
    questions: List[QuestionRecord]
    requested_distribution: Dict[int, int]
    freshness_score: float
    adaptive: AdaptiveConfig = field(default_factory=AdaptiveConfig)
    student_id: Optional[str] = None


@dataclass(frozen=True)
class GenerationLogEntry:
    quiz_level: int
    trigger_type: str
    success: bool
    created_at: datetime
    quiz_id: Optional[int] = None
    student_id: Optional[str] = None
    trigger_details: str = ""
    questions_selected: int = 0
    freshness_score: float = 0.0
    difficulty_distribution: Dict[int, int] = field(default_factory=dict)
    error_message: str = ""
    generated_by: Optional[str] = None


class QuizStore(Protocol):
    def create_quiz(self, definition: QuizDefinition) -> int:
        ...


class GenerationLogSink(Protocol):
    def append_generation_log(self, entry: GenerationLogEntry) -> None:
        ...


class SqlQuizStore:
    def __init__(self, db: Session):
        self.db = db

    def create_quiz(self, definition: QuizDefinition) -> int:
        quiz = models.Quiz(
            title=definition.title,
            quiz_level=definition.quiz_level,
            trigger_type=definition.trigger_type,
            student_id=definition.student_id,
            difficulty_plan_json={str(k): v for k, v in definition.requested_distribution.items()},
            progression=definition.adaptive.progression,
            starting_difficulty=definition.adaptive.starting_difficulty,
            target_correct_answers=definition.adaptive.target_correct_answers,
            freshness_score=definition.freshness_score,
        )
        self.db.add(quiz)
        self.db.flush()
        for position, question in enumerate(definition.questions, start=1):
            self.db.add(
                models.QuizQuestion(
                    quiz_id=quiz.id,
                    question_id=question.id,
                    position=position,
                    difficulty=question.difficulty,
                    text=question.text,
                    choices_json=list(question.choices),
                    answer=question.answer,
                )
            )
        self.db.flush()
        return quiz.id


class SqlGenerationLogSink:
    def __init__(self, db: Session):
        self.db = db

    def append_generation_log(self, entry: GenerationLogEntry) -> None:
        self.db.add(
            models.QuizGenerationLog(
                quiz_id=entry.quiz_id,
                quiz_level=entry.quiz_level,
                student_id=entry.student_id,
                trigger_type=entry.trigger_type,
                trigger_details=entry.trigger_details,
                questions_selected=entry.questions_selected,
                freshness_score=entry.freshness_score,
                difficulty_distribution_json={str(k): v for k, v in entry.difficulty_distribution.items()},
                success=entry.success,
                error_message=entry.error_message,
                generated_by=entry.generated_by,
                created_at=to_storage(entry.created_at),
            )
        )
        self.db.flush()


def list_generation_logs(
    db: Session,
    quiz_level: Optional[int] = None,
    limit: int = 50,
) -> List[models.QuizGenerationLog]:
    query = db.query(models.QuizGenerationLog)
    if quiz_level is not None:
        query = query.filter(models.QuizGenerationLog.quiz_level == quiz_level)
    return (
        query.order_by(models.QuizGenerationLog.created_at.desc(), models.QuizGenerationLog.id.desc())
        .limit(limit)
        .all()
    )


class InMemoryQuizStore:
    def __init__(self):
        self.quizzes: Dict[int, QuizDefinition] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create_quiz(self, definition: QuizDefinition) -> int:
        with self._lock:
            quiz_id = self._next_id
            self._next_id += 1
            self.quizzes[quiz_id] = definition
        return quiz_id


class InMemoryGenerationLogSink:
    def __init__(self):
        self._entries: List[GenerationLogEntry] = []
        self._lock = threading.Lock()

    def append_generation_log(self, entry: GenerationLogEntry) -> None:
        with self._lock:
            self._entries.append(replace(entry))

    @property
    def entries(self) -> List[GenerationLogEntry]:
        with self._lock:
            return list(self._entries)
