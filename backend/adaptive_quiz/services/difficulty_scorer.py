import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping

from adaptive_quiz.services.errors import InvalidRequest
from adaptive_quiz.services.question_pool import DIFFICULTIES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointsEntry:
    correct: float
    wrong: float

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.correct)
            and math.isfinite(self.wrong)
            and self.correct >= 0
            and self.wrong <= 0
        )


DEFAULT_DIFFICULTY_POINTS: Dict[int, PointsEntry] = {
    1: PointsEntry(correct=1.0, wrong=-2.5),
    2: PointsEntry(correct=2.0, wrong=-2.0),
    3: PointsEntry(correct=3.0, wrong=-1.5),
    4: PointsEntry(correct=4.0, wrong=-1.0),
    5: PointsEntry(correct=5.0, wrong=-0.5),
}


@dataclass(frozen=True)
class SkillPointsConfig:
    version: int
    points: Mapping[int, PointsEntry] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_DIFFICULTY_POINTS)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "points": {
                str(difficulty): {"correct": entry.correct, "wrong": entry.wrong}
                for difficulty, entry in sorted(self.points.items())
            },
        }


def default_config() -> SkillPointsConfig:
    return SkillPointsConfig(version=0, points=MappingProxyType(dict(DEFAULT_DIFFICULTY_POINTS)))


def parse_points(raw: Mapping[Any, Any], strict: bool = True) -> Dict[int, PointsEntry]:
    """Build a difficulty -> PointsEntry table from stored or submitted JSON.

    With ``strict`` every entry must be present and valid (admin updates).
    Without it, unreadable entries are dropped so scoring can fail closed.
    """
    points: Dict[int, PointsEntry] = {}
    for raw_key, raw_entry in (raw or {}).items():
        try:
            difficulty = int(raw_key)
            entry = PointsEntry(correct=float(raw_entry["correct"]), wrong=float(raw_entry["wrong"]))
        except (TypeError, ValueError, KeyError):
            if strict:
                raise InvalidRequest("Invalid skill points entry", {"difficulty": raw_key}) from None
            continue
        if difficulty not in DIFFICULTIES or not entry.is_valid:
            if strict:
                raise InvalidRequest(
                    "Skill points need correct >= 0 and wrong <= 0 for difficulties 1-5",
                    {"difficulty": raw_key, "correct": entry.correct, "wrong": entry.wrong},
                )
            continue
        points[difficulty] = entry
    if strict:
        missing = [d for d in DIFFICULTIES if d not in points]
        if missing:
            raise InvalidRequest("Skill points are required for every difficulty", {"missing": missing})
    return points


def score_answer(difficulty: int, correct: bool, config: SkillPointsConfig) -> float:
    entry = config.points.get(difficulty)
    if entry is None or not entry.is_valid:
        logger.warning(
            "Skill points configuration error: no valid entry for difficulty %s (config version %s)",
            difficulty,
            config.version,
        )
        return 0.0
    return entry.correct if correct else entry.wrong


def accumulate(total: float, delta: float) -> float:
    return max(0.0, total + delta)
