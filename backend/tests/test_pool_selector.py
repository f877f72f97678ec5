import random
from datetime import datetime, timedelta, timezone

import pytest

from adaptive_quiz.services.errors import ConcurrencyConflict, InvalidRequest
from adaptive_quiz.services.pool_selector import (
    Selection,
    Shortfall,
    normalize_distribution,
    select_questions,
    weighted_sample,
)
from adaptive_quiz.services.question_pool import InMemoryQuestionRepository, QuestionRecord

NOW = datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc)


def build_repo(counts, usage=None):
    questions = []
    next_id = 1
    for difficulty, count in counts.items():
        for _ in range(count):
            questions.append(
                QuestionRecord(
                    id=next_id,
                    text=f"q{next_id}",
                    answer="a",
                    difficulty=difficulty,
                    usage_count=(usage or {}).get(next_id, 0),
                )
            )
            next_id += 1
    return InMemoryQuestionRepository(questions)


def test_shortfall_lists_every_deficient_difficulty():
    repo = build_repo({1: 10, 2: 5, 3: 0, 4: 2, 5: 0})
    result = select_questions({1: 10, 2: 10, 3: 10, 4: 5}, repo, NOW, rng=random.Random(1))

    assert isinstance(result, Shortfall)
    listed = {item.difficulty: item.missing for item in result.per_difficulty}
    assert listed == {2: 5, 3: 10, 4: 3}
    assert "Difficulty 1" not in result.message
    assert "Difficulty 2: need 10, have 5 (missing 5)" in result.message
    assert "Difficulty 3: need 10, have 0 (missing 10)" in result.message
    assert "Difficulty 4: need 5, have 2 (missing 3)" in result.message


def test_shortfall_does_not_touch_usage():
    repo = build_repo({1: 3, 2: 1})
    result = select_questions({1: 2, 2: 2}, repo, NOW, rng=random.Random(1))

    assert isinstance(result, Shortfall)
    assert all(repo.get(qid).usage_count == 0 for qid in range(1, 5))


def test_selection_fills_every_slot_and_increments_usage():
    repo = build_repo({1: 6, 2: 6, 3: 6})
    result = select_questions({1: 2, 2: 3, 3: 1}, repo, NOW, rng=random.Random(7))

    assert isinstance(result, Selection)
    assert len(result.questions) == 6
    by_difficulty = {}
    for question in result.questions:
        by_difficulty[question.difficulty] = by_difficulty.get(question.difficulty, 0) + 1
    assert by_difficulty == {1: 2, 2: 3, 3: 1}
    assert len({q.id for q in result.questions}) == 6
    assert result.freshness_score == 1.0
    for question in result.questions:
        stored = repo.get(question.id)
        assert stored.usage_count == 1
        assert stored.last_used_at == NOW


def test_zero_count_difficulty_is_skipped():
    repo = build_repo({1: 2})
    result = select_questions({1: 2, 5: 0}, repo, NOW, rng=random.Random(3))

    assert isinstance(result, Selection)
    assert [q.difficulty for q in result.questions] == [1, 1]


def test_freshness_score_is_mean_before_use():
    repo = build_repo({1: 2}, usage={1: 1, 2: 3})
    result = select_questions({1: 2}, repo, NOW, rng=random.Random(0))

    assert result.freshness_score == pytest.approx((0.5 + 0.25) / 2, abs=1e-4)


def test_same_seed_gives_same_draw():
    candidates = [QuestionRecord(id=i, text="", answer="", difficulty=1, usage_count=i % 3) for i in range(1, 21)]
    first = weighted_sample(candidates, 5, random.Random(42))
    second = weighted_sample(list(reversed(candidates)), 5, random.Random(42))

    assert [q.id for q in first] == [q.id for q in second]


def test_fresh_questions_are_drawn_more_often():
    fresh = QuestionRecord(id=1, text="", answer="", difficulty=1, usage_count=0)
    stale = QuestionRecord(
        id=2,
        text="",
        answer="",
        difficulty=1,
        usage_count=9,
        last_used_at=NOW - timedelta(days=1),
    )
    rng = random.Random(5)
    picks = [weighted_sample([fresh, stale], 1, rng)[0].id for _ in range(500)]

    assert picks.count(1) > picks.count(2) * 4


def test_candidates_prefer_never_used_then_oldest():
    repo = InMemoryQuestionRepository(
        [
            QuestionRecord(id=1, text="", answer="", difficulty=2, usage_count=1, last_used_at=NOW),
            QuestionRecord(id=2, text="", answer="", difficulty=2, usage_count=1, last_used_at=None),
            QuestionRecord(
                id=3,
                text="",
                answer="",
                difficulty=2,
                usage_count=1,
                last_used_at=NOW - timedelta(days=2),
            ),
            QuestionRecord(id=4, text="", answer="", difficulty=2, usage_count=0),
        ]
    )

    assert [q.id for q in repo.select_candidates(2, 10)] == [4, 2, 3, 1]


def test_inactive_questions_are_not_counted():
    repo = build_repo({3: 4})
    repo.deactivate(1)

    assert repo.count_active(3) == 3


def test_conflict_when_pool_changes_before_usage_update():
    class ShrinkingRepository(InMemoryQuestionRepository):
        def increment_usage(self, question_ids, used_at):
            self.deactivate(sorted(question_ids)[0])
            super().increment_usage(question_ids, used_at)

    repo = ShrinkingRepository(build_repo({1: 2}).select_candidates(1, 10))

    with pytest.raises(ConcurrencyConflict) as excinfo:
        select_questions({1: 2}, repo, NOW, rng=random.Random(0))
    assert excinfo.value.status_code == 503
    assert repo.get(2).usage_count == 0


@pytest.mark.parametrize(
    "distribution",
    [
        {},
        {1: 0, 2: 0},
        {1: -1, 2: 3},
        {6: 1},
        {0: 2},
        {"x": 1},
        {1: 1.5},
        {1: True},
    ],
)
def test_malformed_distribution_is_rejected(distribution):
    with pytest.raises(InvalidRequest):
        normalize_distribution(distribution)


def test_distribution_accepts_string_keys():
    assert normalize_distribution({"3": 2, "1": 4}) == {1: 4, 3: 2}
