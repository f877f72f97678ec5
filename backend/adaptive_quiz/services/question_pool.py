"""Question pool access for quiz generation.

The generator only needs three operations from the question bank: counting
active questions at a difficulty, fetching the freshest candidates at a
difficulty, and recording that a set of questions was used. Both the
SQLAlchemy repository and the in-memory one honour the same ordering so
that selection is reproducible regardless of backend.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from adaptive_quiz.db import models
from adaptive_quiz.services.clock import as_utc, to_storage
from adaptive_quiz.services.errors import ConcurrencyConflict

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
DIFFICULTIES = tuple(range(MIN_DIFFICULTY, MAX_DIFFICULTY + 1))


@dataclass(frozen=True)
class QuestionRecord:
    id: int
    text: str
    answer: str
    difficulty: int
    choices: List[str] = field(default_factory=list)
    subject: str = "General"
    topic: str = ""
    grade: str = "Primary 1"
    quiz_level: int = 1
    active: bool = True
    usage_count: int = 0
    last_used_at: Optional[datetime] = None

    @property
    def freshness(self) -> float:
        return 1.0 / (1 + max(self.usage_count, 0))


def candidate_sort_key(question: QuestionRecord):
    # never-used questions sort before any timestamp
    if question.last_used_at is None:
        return (question.usage_count, 0, 0.0, question.id)
    return (question.usage_count, 1, as_utc(question.last_used_at).timestamp(), question.id)


class QuestionRepository(Protocol):
    def count_active(self, difficulty: int) -> int:
        ...

    def select_candidates(self, difficulty: int, limit: int) -> List[QuestionRecord]:
        ...

    def increment_usage(self, question_ids: Sequence[int], used_at: datetime) -> None:
        ...


@dataclass(frozen=True)
class PoolScope:
    quiz_level: Optional[int] = None
    subject: Optional[str] = None
    grade: Optional[str] = None
    topic: Optional[str] = None

    def matches(self, question: QuestionRecord) -> bool:
        if self.quiz_level is not None and question.quiz_level != self.quiz_level:
            return False
        if self.subject and question.subject != self.subject:
            return False
        if self.grade and question.grade != self.grade:
            return False
        if self.topic and question.topic != self.topic:
            return False
        return True


def _to_record(row: models.Question) -> QuestionRecord:
    return QuestionRecord(
        id=row.id,
        text=row.text,
        answer=row.answer,
        difficulty=row.difficulty,
        choices=list(row.choices_json or []),
        subject=row.subject,
        topic=row.topic or "",
        grade=row.grade,
        quiz_level=row.quiz_level,
        active=bool(row.is_active),
        usage_count=row.usage_count or 0,
        last_used_at=row.last_used_at,
    )


class SqlQuestionRepository:
    """Question bank backed by the ``questions`` table.

    Reads and the usage update run inside the caller's transaction. Every
    read locks the rows it returns, so a retry inside the same transaction
    sees the latest committed rows rather than its first read's snapshot.
    """

    def __init__(self, db: Session, scope: Optional[PoolScope] = None):
        self.db = db
        self.scope = scope or PoolScope()

    def _active_query(self, difficulty: int):
        query = self.db.query(models.Question).filter(
            models.Question.is_active.is_(True),
            models.Question.difficulty == difficulty,
        )
        if self.scope.quiz_level is not None:
            query = query.filter(models.Question.quiz_level == self.scope.quiz_level)
        if self.scope.subject:
            query = query.filter(models.Question.subject == self.scope.subject)
        if self.scope.grade:
            query = query.filter(models.Question.grade == self.scope.grade)
        if self.scope.topic:
            query = query.filter(models.Question.topic == self.scope.topic)
        return query

    def count_active(self, difficulty: int) -> int:
        ids = self._active_query(difficulty).with_entities(models.Question.id).with_for_update().all()
        return len(ids)

    def select_candidates(self, difficulty: int, limit: int) -> List[QuestionRecord]:
        rows = (
            self._active_query(difficulty)
            # usage updates bypass the session, so reload cached rows
            .populate_existing()
            .with_for_update()
            .order_by(
                models.Question.usage_count.asc(),
                # NULLs first on every backend
                models.Question.last_used_at.isnot(None),
                models.Question.last_used_at.asc(),
                models.Question.id.asc(),
            )
            .limit(limit)
            .all()
        )
        return [_to_record(row) for row in rows]

    def increment_usage(self, question_ids: Sequence[int], used_at: datetime) -> None:
        ids = sorted(set(question_ids))
        if not ids:
            return
        locked = (
            self.db.query(models.Question.id)
            .filter(models.Question.id.in_(ids), models.Question.is_active.is_(True))
            .with_for_update()
            .all()
        )
        if len(locked) != len(ids):
            found = {row.id for row in locked}
            raise ConcurrencyConflict(
                "Selected questions changed during generation",
                {"missing_question_ids": [qid for qid in ids if qid not in found]},
            )
        self.db.execute(
            update(models.Question)
            .where(models.Question.id.in_(ids))
            .values(usage_count=models.Question.usage_count + 1, last_used_at=to_storage(used_at))
            .execution_options(synchronize_session=False)
        )

    def availability(self) -> Dict[int, int]:
        query = self.db.query(models.Question.difficulty, func.count(models.Question.id)).filter(
            models.Question.is_active.is_(True)
        )
        if self.scope.quiz_level is not None:
            query = query.filter(models.Question.quiz_level == self.scope.quiz_level)
        if self.scope.subject:
            query = query.filter(models.Question.subject == self.scope.subject)
        if self.scope.grade:
            query = query.filter(models.Question.grade == self.scope.grade)
        if self.scope.topic:
            query = query.filter(models.Question.topic == self.scope.topic)
        counts = dict(query.group_by(models.Question.difficulty).all())
        return {difficulty: int(counts.get(difficulty, 0)) for difficulty in DIFFICULTIES}


class InMemoryQuestionRepository:
    def __init__(self, questions: Iterable[QuestionRecord] = (), scope: Optional[PoolScope] = None):
        self._questions: Dict[int, QuestionRecord] = {q.id: q for q in questions}
        self.scope = scope or PoolScope()
        self._lock = threading.Lock()

    def add(self, question: QuestionRecord) -> None:
        with self._lock:
            self._questions[question.id] = question

    def deactivate(self, question_id: int) -> None:
        with self._lock:
            current = self._questions[question_id]
            self._questions[question_id] = replace(current, active=False)

    def get(self, question_id: int) -> QuestionRecord:
        return self._questions[question_id]

    def _active(self, difficulty: int) -> List[QuestionRecord]:
        return [
            q
            for q in self._questions.values()
            if q.active and q.difficulty == difficulty and self.scope.matches(q)
        ]

    def count_active(self, difficulty: int) -> int:
        with self._lock:
            return len(self._active(difficulty))

    def select_candidates(self, difficulty: int, limit: int) -> List[QuestionRecord]:
        with self._lock:
            ordered = sorted(self._active(difficulty), key=candidate_sort_key)
        return ordered[:limit]

    def increment_usage(self, question_ids: Sequence[int], used_at: datetime) -> None:
        ids = sorted(set(question_ids))
        with self._lock:
            missing = [qid for qid in ids if qid not in self._questions or not self._questions[qid].active]
            if missing:
                raise ConcurrencyConflict(
                    "Selected questions changed during generation",
                    {"missing_question_ids": missing},
                )
            for qid in ids:
                current = self._questions[qid]
                self._questions[qid] = replace(
                    current,
                    usage_count=current.usage_count + 1,
                    last_used_at=used_at,
                )

    def availability(self) -> Dict[int, int]:
        return {difficulty: self.count_active(difficulty) for difficulty in DIFFICULTIES}
