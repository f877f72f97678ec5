"""Freshness-weighted question selection against a per-difficulty request.

Selection is all-or-nothing: availability is checked for every requested
difficulty first, and usage counters are only touched once every slot has
been filled.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Union

from adaptive_quiz.services.errors import ConcurrencyConflict, InvalidRequest
from adaptive_quiz.services.question_pool import (
    DIFFICULTIES,
    QuestionRecord,
    QuestionRepository,
    candidate_sort_key,
)

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATE_WINDOW = 5


@dataclass(frozen=True)
class DifficultyShortfall:
    difficulty: int
    needed: int
    available: int

    @property
    def missing(self) -> int:
        return self.needed - self.available

    def as_dict(self) -> Dict[str, int]:
        return {
            "difficulty": self.difficulty,
            "needed": self.needed,
            "available": self.available,
            "missing": self.missing,
        }


@dataclass(frozen=True)
class Selection:
    questions: List[QuestionRecord]
    freshness_score: float


@dataclass(frozen=True)
class Shortfall:
    per_difficulty: List[DifficultyShortfall] = field(default_factory=list)

    @property
    def message(self) -> str:
        return format_shortfall_message(self.per_difficulty)


SelectionResult = Union[Selection, Shortfall]


def normalize_distribution(distribution: Mapping[object, object]) -> Dict[int, int]:
    """Validate a requested distribution and return it with int keys.

    Raises InvalidRequest for keys outside 1..5, negative or non-integer
    counts, or a zero total.
    """
    if not distribution:
        raise InvalidRequest("Difficulty distribution is required", {"distribution": {}})

    normalized: Dict[int, int] = {}
    for raw_key, raw_count in distribution.items():
        try:
            difficulty = int(raw_key)
        except (TypeError, ValueError):
            raise InvalidRequest("Difficulty must be an integer", {"difficulty": raw_key}) from None
        if difficulty not in DIFFICULTIES:
            raise InvalidRequest(
                "Difficulty must be between 1 and 5",
                {"difficulty": difficulty},
            )
        if isinstance(raw_count, bool) or not isinstance(raw_count, int):
            raise InvalidRequest(
                "Question count must be an integer",
                {"difficulty": difficulty, "count": raw_count},
            )
        if raw_count < 0:
            raise InvalidRequest(
                "Question count must not be negative",
                {"difficulty": difficulty, "count": raw_count},
            )
        normalized[difficulty] = normalized.get(difficulty, 0) + raw_count

    if sum(normalized.values()) <= 0:
        raise InvalidRequest("Distribution must request at least one question", {"distribution": normalized})
    return dict(sorted(normalized.items()))


def format_shortfall_message(items: Sequence[DifficultyShortfall]) -> str:
    details = "; ".join(
        f"Difficulty {item.difficulty}: need {item.needed}, have {item.available} (missing {item.missing})"
        for item in items
    )
    return (
        f"Not enough active questions in question bank. {details}. "
        "Please add more questions or adjust your quiz configuration."
    )


def find_shortfalls(request: Mapping[int, int], repository: QuestionRepository) -> List[DifficultyShortfall]:
    shortfalls: List[DifficultyShortfall] = []
    for difficulty, needed in sorted(request.items()):
        if needed <= 0:
            continue
        available = repository.count_active(difficulty)
        if needed > available:
            shortfalls.append(DifficultyShortfall(difficulty=difficulty, needed=needed, available=available))
    return shortfalls


def weighted_sample(
    candidates: Sequence[QuestionRecord],
    count: int,
    rng: random.Random,
) -> List[QuestionRecord]:
    """Draw ``count`` questions without replacement, weighted by freshness.

    Candidates are put in a stable order first (usage count, oldest use,
    id) so the same seed always yields the same draw.
    """
    pool = sorted(candidates, key=candidate_sort_key)
    picked: List[QuestionRecord] = []
    while pool and len(picked) < count:
        total = sum(q.freshness for q in pool)
        target = rng.random() * total
        index = len(pool) - 1
        for position, question in enumerate(pool):
            target -= question.freshness
            if target <= 0:
                index = position
                break
        picked.append(pool.pop(index))
    return picked


def select_questions(
    request: Mapping[int, int],
    repository: QuestionRepository,
    now: datetime,
    rng: Optional[random.Random] = None,
    candidate_window: int = DEFAULT_CANDIDATE_WINDOW,
) -> SelectionResult:
    """Select a concrete question set for ``request``.

    Returns Shortfall listing every deficient difficulty, or Selection with
    the chosen questions (grouped by ascending difficulty) and their mean
    freshness before this use. Raises ConcurrencyConflict if the pool changed
    between the availability check and the usage update.
    """
    rng = rng or random.Random()
    shortfalls = find_shortfalls(request, repository)
    if shortfalls:
        return Shortfall(per_difficulty=shortfalls)

    selected: List[QuestionRecord] = []
    for difficulty, needed in sorted(request.items()):
        if needed <= 0:
            continue
        limit = max(needed * candidate_window, needed)
        candidates = repository.select_candidates(difficulty, limit)
        if len(candidates) < needed:
            raise ConcurrencyConflict(
                "Question availability changed during selection",
                {"difficulty": difficulty, "needed": needed, "available": len(candidates)},
            )
        selected.extend(weighted_sample(candidates, needed, rng))

    freshness_score = round(sum(q.freshness for q in selected) / len(selected), 4)
    repository.increment_usage([q.id for q in selected], now)
    logger.debug("Selected %s questions (freshness=%s)", len(selected), freshness_score)
    return Selection(questions=selected, freshness_score=freshness_score)
