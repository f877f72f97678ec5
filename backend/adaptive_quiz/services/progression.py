"""Turn-by-turn difficulty adaptation for an in-progress attempt."""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional, Tuple

from adaptive_quiz.services.errors import InvalidRequest
from adaptive_quiz.services.question_pool import MAX_DIFFICULTY, MIN_DIFFICULTY

HISTORY_SIZE = 3
HIGH_ACCURACY = 0.75
LOW_ACCURACY = 0.4

GRADUAL = "gradual"
IMMEDIATE = "immediate"
ACCURACY_THRESHOLD = "accuracy_threshold"

STRATEGY_ALIASES = {
    "ml-based": ACCURACY_THRESHOLD,
    "ml_based": ACCURACY_THRESHOLD,
}


def clamp_difficulty(value: int) -> int:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


@dataclass
class AttemptState:
    strategy: str
    current_difficulty: int
    history: Deque[Tuple[int, bool]] = field(default_factory=lambda: deque(maxlen=HISTORY_SIZE))
    overall_correct: int = 0
    overall_total: int = 0
    skill_points: float = 0.0

    @classmethod
    def start(cls, strategy: str, starting_difficulty: int = MIN_DIFFICULTY) -> "AttemptState":
        return cls(
            strategy=resolve_strategy_name(strategy),
            current_difficulty=clamp_difficulty(starting_difficulty),
        )

    @property
    def accuracy(self) -> float:
        if self.overall_total <= 0:
            return 0.0
        return self.overall_correct / self.overall_total

    def record(self, correct: bool, difficulty: Optional[int] = None) -> None:
        answered_at = self.current_difficulty if difficulty is None else difficulty
        self.history.append((answered_at, bool(correct)))
        self.overall_total += 1
        if correct:
            self.overall_correct += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "current_difficulty": self.current_difficulty,
            "history": [[difficulty, correct] for difficulty, correct in self.history],
            "overall_correct": self.overall_correct,
            "overall_total": self.overall_total,
            "skill_points": self.skill_points,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AttemptState":
        history: Deque[Tuple[int, bool]] = deque(maxlen=HISTORY_SIZE)
        for difficulty, correct in payload.get("history") or []:
            history.append((int(difficulty), bool(correct)))
        return cls(
            strategy=resolve_strategy_name(payload.get("strategy") or GRADUAL),
            current_difficulty=clamp_difficulty(int(payload.get("current_difficulty") or MIN_DIFFICULTY)),
            history=history,
            overall_correct=int(payload.get("overall_correct") or 0),
            overall_total=int(payload.get("overall_total") or 0),
            skill_points=float(payload.get("skill_points") or 0.0),
        )


class ProgressionStrategy:
    name = ""

    def adjust(self, state: AttemptState, correct: bool) -> int:
        raise NotImplementedError


class GradualStrategy(ProgressionStrategy):
    """Moves one step only after a full window of agreeing answers.

    The window holds answers given at the current difficulty; it is cleared
    whenever the difficulty changes so that one streak of three answers can
    never move the level more than once.
    """

    name = GRADUAL

    def adjust(self, state: AttemptState, correct: bool) -> int:
        if len(state.history) < HISTORY_SIZE:
            return state.current_difficulty
        outcomes = [item[1] for item in state.history]
        if all(outcomes):
            return clamp_difficulty(state.current_difficulty + 1)
        if not any(outcomes):
            return clamp_difficulty(state.current_difficulty - 1)
        return state.current_difficulty


class ImmediateStrategy(ProgressionStrategy):
    name = IMMEDIATE

    def adjust(self, state: AttemptState, correct: bool) -> int:
        step = 1 if correct else -1
        return clamp_difficulty(state.current_difficulty + step)


class AccuracyThresholdStrategy(ProgressionStrategy):
    """Steps toward 5 above 75% running accuracy and toward 1 below 40%."""

    name = ACCURACY_THRESHOLD

    def __init__(self, high: float = HIGH_ACCURACY, low: float = LOW_ACCURACY):
        self.high = high
        self.low = low

    def adjust(self, state: AttemptState, correct: bool) -> int:
        accuracy = state.accuracy
        if accuracy > self.high:
            return clamp_difficulty(state.current_difficulty + 1)
        if accuracy < self.low:
            return clamp_difficulty(state.current_difficulty - 1)
        return state.current_difficulty


STRATEGIES: Dict[str, ProgressionStrategy] = {
    GRADUAL: GradualStrategy(),
    IMMEDIATE: ImmediateStrategy(),
    ACCURACY_THRESHOLD: AccuracyThresholdStrategy(),
}


def resolve_strategy_name(name: Optional[str]) -> str:
    key = (name or "").strip().lower()
    key = STRATEGY_ALIASES.get(key, key)
    if key not in STRATEGIES:
        raise InvalidRequest(
            "Unknown progression strategy",
            {"strategy": name, "allowed": sorted(STRATEGIES)},
        )
    return key


def get_strategy(name: str) -> ProgressionStrategy:
    return STRATEGIES[resolve_strategy_name(name)]


def next_difficulty(
    state: AttemptState,
    last_answer_correct: Optional[bool],
    answered_difficulty: Optional[int] = None,
) -> int:
    """Record the last answer and return the difficulty to serve next.

    ``None`` means nothing has been answered yet, which holds the attempt at
    its starting difficulty. ``answered_difficulty`` is the difficulty of the
    question actually answered; it defaults to the current difficulty.
    """
    if last_answer_correct is None:
        return state.current_difficulty

    state.record(last_answer_correct, answered_difficulty)
    new_difficulty = get_strategy(state.strategy).adjust(state, last_answer_correct)
    if new_difficulty != state.current_difficulty:
        state.history.clear()
        state.current_difficulty = new_difficulty
    return state.current_difficulty
