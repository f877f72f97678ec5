import pytest

from adaptive_quiz.services.errors import InvalidRequest
from adaptive_quiz.services.progression import (
    ACCURACY_THRESHOLD,
    GRADUAL,
    IMMEDIATE,
    AttemptState,
    next_difficulty,
    resolve_strategy_name,
)


def play(state, answers):
    return [next_difficulty(state, correct) for correct in answers]


def test_first_call_holds_starting_difficulty():
    for strategy in (GRADUAL, IMMEDIATE, ACCURACY_THRESHOLD):
        state = AttemptState.start(strategy, starting_difficulty=2)
        assert next_difficulty(state, None) == 2
        assert state.overall_total == 0


@pytest.mark.parametrize(
    "start, correct, expected",
    [(3, True, 4), (3, False, 2), (5, True, 5), (1, False, 1)],
)
def test_immediate_steps_and_clamps(start, correct, expected):
    state = AttemptState.start(IMMEDIATE, starting_difficulty=start)
    assert next_difficulty(state, correct) == expected


def test_gradual_three_correct_moves_up_exactly_one():
    state = AttemptState.start(GRADUAL, starting_difficulty=2)
    assert play(state, [True, True, True]) == [2, 2, 3]


def test_gradual_mixed_answers_hold():
    state = AttemptState.start(GRADUAL, starting_difficulty=3)
    assert play(state, [True, False, True]) == [3, 3, 3]
    assert play(state, [True]) == [3]


def test_gradual_three_wrong_moves_down():
    state = AttemptState.start(GRADUAL, starting_difficulty=3)
    assert play(state, [False, False, False]) == [3, 3, 2]


def test_gradual_window_restarts_after_change():
    state = AttemptState.start(GRADUAL, starting_difficulty=1)
    assert play(state, [True] * 6) == [1, 1, 2, 2, 2, 3]
    assert len(state.history) == 0


def test_gradual_respects_bounds():
    state = AttemptState.start(GRADUAL, starting_difficulty=5)
    assert play(state, [True, True, True]) == [5, 5, 5]


def test_accuracy_threshold_moves_one_step_at_a_time():
    state = AttemptState.start(ACCURACY_THRESHOLD, starting_difficulty=1)
    assert play(state, [True, True, True, True]) == [2, 3, 4, 5]


def test_accuracy_threshold_holds_between_bounds():
    state = AttemptState.start(ACCURACY_THRESHOLD, starting_difficulty=3)
    # 0/1 drops a step; 1/2, 2/3 and 2/4 all sit inside [0.4, 0.75]
    assert play(state, [False, True])[-1] == 2
    assert play(state, [True, False]) == [2, 2]


def test_accuracy_threshold_drops_on_low_accuracy():
    state = AttemptState.start(ACCURACY_THRESHOLD, starting_difficulty=4)
    assert play(state, [False, False]) == [3, 2]


def test_legacy_ml_based_name_maps_to_accuracy_threshold():
    assert resolve_strategy_name("ml-based") == ACCURACY_THRESHOLD
    assert resolve_strategy_name(" Gradual ") == GRADUAL


def test_unknown_strategy_is_rejected():
    with pytest.raises(InvalidRequest):
        resolve_strategy_name("random")


def test_state_round_trips_through_json_payload():
    state = AttemptState.start(GRADUAL, starting_difficulty=2)
    play(state, [True, False])
    state.skill_points = 3.5

    restored = AttemptState.from_dict(state.to_dict())

    assert restored == state
    assert restored.history.maxlen == 3
