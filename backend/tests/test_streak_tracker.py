from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from adaptive_quiz.services.streak_tracker import (
    EngagementState,
    compute_effective,
    day_difference,
    update_on_completion,
)

SGT = ZoneInfo("Asia/Singapore")


def sgt(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=SGT)


def test_first_completion_starts_streak():
    state = EngagementState()
    assert update_on_completion(state, sgt(2026, 3, 10, 9), SGT) == 1
    assert state.last_quiz_date == sgt(2026, 3, 10, 9)


def test_next_day_extends_streak():
    state = EngagementState(streak=5, last_quiz_date=sgt(2026, 3, 9))
    assert update_on_completion(state, sgt(2026, 3, 10, 8), SGT) == 6


def test_second_completion_same_day_is_idempotent():
    now = sgt(2026, 3, 10, 8)
    state = EngagementState(streak=2, last_quiz_date=sgt(2026, 3, 9, 20))
    assert update_on_completion(state, now, SGT) == 3
    assert update_on_completion(state, now, SGT) == 3
    assert update_on_completion(state, sgt(2026, 3, 10, 23, 59), SGT) == 3


def test_gap_resets_to_one():
    state = EngagementState(streak=9, last_quiz_date=sgt(2026, 3, 7, 12))
    assert update_on_completion(state, sgt(2026, 3, 10, 12), SGT) == 1


def test_day_boundary_is_configured_zone_midnight():
    # 15:59 UTC and 16:01 UTC fall on different SGT days
    before = datetime(2026, 3, 9, 15, 59, tzinfo=timezone.utc)
    after = datetime(2026, 3, 9, 16, 1, tzinfo=timezone.utc)
    assert day_difference(before, after, SGT) == 1
    assert day_difference(before, after, timezone.utc) == 0


def test_naive_timestamps_are_read_as_utc():
    last = datetime(2026, 3, 9, 15, 0)
    now = datetime(2026, 3, 9, 17, 0, tzinfo=timezone.utc)
    assert day_difference(last, now, SGT) == 1


def test_effective_streak_alive_through_yesterday():
    state = EngagementState(streak=4, last_quiz_date=sgt(2026, 3, 9, 7))
    view = compute_effective(state, sgt(2026, 3, 10, 22), SGT)
    assert view.effective == 4
    assert view.should_reset is False


def test_effective_streak_lapsed_signals_reset_without_mutating():
    last = sgt(2026, 3, 10) - timedelta(days=5)
    state = EngagementState(streak=7, last_quiz_date=last)
    view = compute_effective(state, sgt(2026, 3, 10, 9), SGT)
    assert view.effective == 0
    assert view.should_reset is True
    assert state.streak == 7
    assert state.last_quiz_date == last


def test_effective_streak_without_history():
    assert compute_effective(None, sgt(2026, 3, 10), SGT).effective == 0
    view = compute_effective(EngagementState(streak=0), sgt(2026, 3, 10), SGT)
    assert view.effective == 0
    assert view.should_reset is False
