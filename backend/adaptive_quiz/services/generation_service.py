"""Quiz generation: validate, select, persist, log.

Each call moves through Requested -> Selecting -> Committed | Rejected.
Malformed input is rejected before the pool is touched and leaves no log
row. A shortfall writes exactly one failure log row and nothing else. A
committed generation writes the quiz and one success log row.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from adaptive_quiz.core.config import Settings
from adaptive_quiz.services.clock import Clock, SystemClock
from adaptive_quiz.services.errors import ConcurrencyConflict, InvalidRequest
from adaptive_quiz.services.generation_store import (
    TRIGGER_TYPES,
    AdaptiveConfig,
    GenerationLogEntry,
    GenerationLogSink,
    QuizDefinition,
    QuizStore,
    SqlGenerationLogSink,
    SqlQuizStore,
)
from adaptive_quiz.services.pool_selector import (
    DEFAULT_CANDIDATE_WINDOW,
    DifficultyShortfall,
    Selection,
    SelectionResult,
    Shortfall,
    normalize_distribution,
    select_questions,
)
from adaptive_quiz.services.progression import clamp_difficulty, resolve_strategy_name
from adaptive_quiz.services.question_pool import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    PoolScope,
    QuestionRecord,
    QuestionRepository,
    SqlQuestionRepository,
)

logger = logging.getLogger(__name__)

MIN_QUIZ_LEVEL = 1
MAX_QUIZ_LEVEL = 10
DEFAULT_QUIZ_SIZE = 20
DEFAULT_MAX_RETRIES = 3
LEVEL_SPREAD = {0: 0.4, -1: 0.2, 1: 0.2, -2: 0.1, 2: 0.1}


@dataclass(frozen=True)
class GenerationOk:
    quiz_id: int
    selected_questions: List[QuestionRecord]
    freshness_score: float
    requested_distribution: Dict[int, int] = field(default_factory=dict)
    status: str = "committed"


@dataclass(frozen=True)
class GenerationShortfall:
    per_difficulty: List[DifficultyShortfall]
    message: str
    requested_distribution: Dict[int, int] = field(default_factory=dict)
    status: str = "rejected"


GenerationResult = Union[GenerationOk, GenerationShortfall]


def default_distribution(quiz_level: int, size: int = DEFAULT_QUIZ_SIZE) -> Dict[int, int]:
    """Spread ``size`` questions around the difficulty matching ``quiz_level``.

    Levels 1-10 map onto difficulties 1-5 (two levels per difficulty). Shares
    that would land outside 1..5 fold into the nearest edge, and rounding
    leftovers go to the centre difficulty.
    """
    centre = min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, math.ceil(quiz_level / 2)))
    plan: Dict[int, int] = {}
    for offset, share in LEVEL_SPREAD.items():
        difficulty = clamp_difficulty(centre + offset)
        plan[difficulty] = plan.get(difficulty, 0) + int(size * share)
    allocated = sum(plan.values())
    if allocated < size:
        plan[centre] = plan.get(centre, 0) + (size - allocated)
    return dict(sorted(plan.items()))


class GenerationOrchestrator:
    def __init__(
        self,
        repository: QuestionRepository,
        quiz_store: QuizStore,
        log_sink: GenerationLogSink,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        candidate_window: int = DEFAULT_CANDIDATE_WINDOW,
        default_quiz_size: int = DEFAULT_QUIZ_SIZE,
        adaptive_defaults: Optional[AdaptiveConfig] = None,
    ):
        self.repository = repository
        self.quiz_store = quiz_store
        self.log_sink = log_sink
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.max_retries = max(max_retries, 1)
        self.candidate_window = candidate_window
        self.default_quiz_size = default_quiz_size
        self.adaptive_defaults = adaptive_defaults or AdaptiveConfig()

    def generate_quiz(
        self,
        trigger_type: str,
        quiz_level: int,
        distribution: Optional[Mapping[object, object]] = None,
        student_id: Optional[str] = None,
        generated_by: Optional[str] = None,
        trigger_details: str = "",
        adaptive: Optional[AdaptiveConfig] = None,
    ) -> GenerationResult:
        request, adaptive_config = self._validate(trigger_type, quiz_level, distribution, adaptive)
        logger.info(
            "Quiz generation requested: level=%s trigger=%s distribution=%s",
            quiz_level,
            trigger_type,
            request,
        )

        now = self.clock.now()
        outcome = self._select_with_retry(request, quiz_level)

        if isinstance(outcome, Shortfall):
            message = outcome.message
            self.log_sink.append_generation_log(
                GenerationLogEntry(
                    quiz_level=quiz_level,
                    trigger_type=trigger_type,
                    success=False,
                    created_at=now,
                    student_id=student_id,
                    trigger_details=trigger_details,
                    difficulty_distribution=dict(request),
                    error_message=message,
                    generated_by=generated_by,
                )
            )
            logger.info("Quiz generation rejected for level %s: %s", quiz_level, message)
            return GenerationShortfall(
                per_difficulty=list(outcome.per_difficulty),
                message=message,
                requested_distribution=dict(request),
            )

        definition = QuizDefinition(
            title=f"Quiz Level {quiz_level} - {now.date().isoformat()}",
            quiz_level=quiz_level,
            trigger_type=trigger_type,
            questions=list(outcome.questions),
            requested_distribution=dict(request),
            freshness_score=outcome.freshness_score,
            adaptive=adaptive_config,
            student_id=student_id,
        )
        quiz_id = self.quiz_store.create_quiz(definition)
        self.log_sink.append_generation_log(
            GenerationLogEntry(
                quiz_level=quiz_level,
                trigger_type=trigger_type,
                success=True,
                created_at=now,
                quiz_id=quiz_id,
                student_id=student_id,
                trigger_details=trigger_details,
                questions_selected=len(outcome.questions),
                freshness_score=outcome.freshness_score,
                difficulty_distribution=dict(request),
                generated_by=generated_by,
            )
        )
        logger.info(
            "Quiz %s committed for level %s (%s questions, freshness=%s)",
            quiz_id,
            quiz_level,
            len(outcome.questions),
            outcome.freshness_score,
        )
        return GenerationOk(
            quiz_id=quiz_id,
            selected_questions=list(outcome.questions),
            freshness_score=outcome.freshness_score,
            requested_distribution=dict(request),
        )

    def _validate(
        self,
        trigger_type: str,
        quiz_level: int,
        distribution: Optional[Mapping[object, object]],
        adaptive: Optional[AdaptiveConfig],
    ):
        if trigger_type not in TRIGGER_TYPES:
            raise InvalidRequest(
                "Unknown trigger type",
                {"trigger_type": trigger_type, "allowed": list(TRIGGER_TYPES)},
            )
        if isinstance(quiz_level, bool) or not isinstance(quiz_level, int) or not (
            MIN_QUIZ_LEVEL <= quiz_level <= MAX_QUIZ_LEVEL
        ):
            raise InvalidRequest(
                f"Quiz level must be between {MIN_QUIZ_LEVEL} and {MAX_QUIZ_LEVEL}",
                {"quiz_level": quiz_level},
            )
        if distribution is None:
            distribution = default_distribution(quiz_level, self.default_quiz_size)
        request = normalize_distribution(distribution)

        config = adaptive or self.adaptive_defaults
        if config.starting_difficulty not in range(MIN_DIFFICULTY, MAX_DIFFICULTY + 1):
            raise InvalidRequest(
                "Starting difficulty must be between 1 and 5",
                {"starting_difficulty": config.starting_difficulty},
            )
        if config.target_correct_answers < 1:
            raise InvalidRequest(
                "Target correct answers must be at least 1",
                {"target_correct_answers": config.target_correct_answers},
            )
        config = AdaptiveConfig(
            progression=resolve_strategy_name(config.progression),
            starting_difficulty=config.starting_difficulty,
            target_correct_answers=config.target_correct_answers,
        )
        return request, config

    def _select_with_retry(self, request: Dict[int, int], quiz_level: int) -> SelectionResult:
        last_conflict: Optional[ConcurrencyConflict] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return select_questions(
                    request,
                    self.repository,
                    now=self.clock.now(),
                    rng=self.rng,
                    candidate_window=self.candidate_window,
                )
            except ConcurrencyConflict as exc:
                last_conflict = exc
                logger.warning(
                    "Selection conflict for level %s (attempt %s/%s): %s",
                    quiz_level,
                    attempt,
                    self.max_retries,
                    exc.message,
                )
        details: Dict[str, object] = {"attempts": self.max_retries}
        if last_conflict and last_conflict.details:
            details.update(last_conflict.details)
        raise ConcurrencyConflict("Question pool changed repeatedly during generation; please retry", details)


def build_sql_orchestrator(
    db: Session,
    settings: Settings,
    quiz_level: Optional[int] = None,
    clock: Optional[Clock] = None,
    rng: Optional[random.Random] = None,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        repository=SqlQuestionRepository(db, PoolScope(quiz_level=quiz_level)),
        quiz_store=SqlQuizStore(db),
        log_sink=SqlGenerationLogSink(db),
        clock=clock,
        rng=rng or random.Random(settings.generation_seed),
        max_retries=settings.generation_max_retries,
        candidate_window=settings.candidate_window,
        default_quiz_size=settings.default_quiz_size,
        adaptive_defaults=AdaptiveConfig(
            progression=settings.default_progression,
            starting_difficulty=settings.default_starting_difficulty,
            target_correct_answers=settings.default_target_correct,
        ),
    )


def check_generation_availability(availability: Mapping[int, int], distribution: Mapping[int, int]) -> Dict[str, object]:
    shortfalls = [
        DifficultyShortfall(difficulty=d, needed=n, available=int(availability.get(d, 0)))
        for d, n in sorted(distribution.items())
        if n > int(availability.get(d, 0))
    ]
    return {
        "available": not shortfalls,
        "question_count": sum(int(v) for v in availability.values()),
        "required": sum(distribution.values()),
        "per_difficulty": {str(d): int(availability.get(d, 0)) for d in sorted(availability)},
        "shortfall": [item.as_dict() for item in shortfalls],
    }


__all__ = [
    "GenerationOk",
    "GenerationOrchestrator",
    "GenerationResult",
    "GenerationShortfall",
    "Selection",
    "build_sql_orchestrator",
    "check_generation_availability",
    "default_distribution",
]
