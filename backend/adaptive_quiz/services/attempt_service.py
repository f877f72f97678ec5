import logging
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from adaptive_quiz.db import models
from adaptive_quiz.services.clock import as_utc, to_storage
from adaptive_quiz.services.difficulty_scorer import SkillPointsConfig, accumulate, score_answer
from adaptive_quiz.services.errors import AttemptStateError, InvalidRequest, NotFoundError
from adaptive_quiz.services.profile_service import normalize_student_id, record_quiz_completion
from adaptive_quiz.services.progression import AttemptState, clamp_difficulty, next_difficulty

logger = logging.getLogger(__name__)


def answers_match(user_answer: Optional[str], expected: Optional[str]) -> bool:
    if user_answer is None or expected is None:
        return False
    return str(user_answer).strip().lower() == str(expected).strip().lower()


def _load_state(attempt: models.QuizAttempt) -> AttemptState:
    payload = dict(attempt.history_json or {})
    payload.setdefault("strategy", attempt.strategy)
    payload.setdefault("current_difficulty", attempt.current_difficulty)
    return AttemptState.from_dict(payload)


def _store_state(attempt: models.QuizAttempt, state: AttemptState) -> None:
    attempt.history_json = state.to_dict()
    attempt.current_difficulty = state.current_difficulty
    attempt.correct_count = state.overall_correct
    attempt.total_answered = state.overall_total
    attempt.skill_points = state.skill_points


def _get_quiz(db: Session, quiz_id: int) -> models.Quiz:
    quiz = db.query(models.Quiz).filter(models.Quiz.id == quiz_id).first()
    if not quiz or not quiz.is_active:
        raise NotFoundError("Quiz not found", {"quiz_id": quiz_id})
    return quiz


def _get_attempt(db: Session, attempt_id: int, student_id: str) -> models.QuizAttempt:
    attempt = (
        db.query(models.QuizAttempt)
        .filter(
            models.QuizAttempt.id == attempt_id,
            models.QuizAttempt.student_id == student_id,
        )
        .first()
    )
    if not attempt:
        raise NotFoundError("Quiz attempt not found", {"attempt_id": attempt_id})
    return attempt


def _progress(attempt: models.QuizAttempt) -> Dict[str, Any]:
    return {
        "correct_count": attempt.correct_count or 0,
        "total_answered": attempt.total_answered or 0,
        "target_correct_answers": attempt.quiz.target_correct_answers,
        "current_difficulty": attempt.current_difficulty,
        "skill_points": round(attempt.skill_points or 0.0, 2),
    }


def start_attempt(db: Session, quiz_id: int, student_id: Optional[str]) -> Dict[str, Any]:
    student = normalize_student_id(student_id)
    quiz = _get_quiz(db, quiz_id)
    existing = (
        db.query(models.QuizAttempt)
        .filter(
            models.QuizAttempt.quiz_id == quiz.id,
            models.QuizAttempt.student_id == student,
            models.QuizAttempt.is_completed.is_(False),
        )
        .first()
    )
    if existing:
        raise AttemptStateError(
            "You have an incomplete attempt for this quiz",
            {"attempt_id": existing.id, "quiz_id": quiz.id},
        )

    state = AttemptState.start(quiz.progression, quiz.starting_difficulty)
    attempt = models.QuizAttempt(
        quiz_id=quiz.id,
        student_id=student,
        strategy=state.strategy,
        current_difficulty=state.current_difficulty,
        history_json=state.to_dict(),
        correct_count=0,
        total_answered=0,
        skill_points=0.0,
        is_completed=False,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    logger.info("Attempt %s started on quiz %s by %s", attempt.id, quiz.id, student)
    return {
        "attempt_id": attempt.id,
        "quiz_id": quiz.id,
        "quiz_title": quiz.title,
        "progress": _progress(attempt),
    }


def _complete(
    db: Session,
    attempt: models.QuizAttempt,
    now: datetime,
    tz: tzinfo,
) -> None:
    attempt.is_completed = True
    attempt.completed_at = to_storage(now)
    record_quiz_completion(db, attempt.student_id, now, tz, skill_delta=attempt.skill_points or 0.0)
    logger.info(
        "Attempt %s completed: %s/%s correct, %s skill points",
        attempt.id,
        attempt.correct_count,
        attempt.total_answered,
        attempt.skill_points,
    )


def _pick_question(attempt: models.QuizAttempt) -> Optional[models.QuizQuestion]:
    answered = {answer.quiz_question_id for answer in attempt.answers}
    remaining = [q for q in attempt.quiz.questions if q.id not in answered]
    current = attempt.current_difficulty
    for difficulty in (current, current + 1, current - 1):
        if difficulty != clamp_difficulty(difficulty):
            continue
        for question in remaining:
            if question.difficulty == difficulty:
                return question
    return None


def next_question(
    db: Session,
    attempt_id: int,
    student_id: Optional[str],
    now: datetime,
    tz: tzinfo,
) -> Dict[str, Any]:
    student = normalize_student_id(student_id)
    attempt = _get_attempt(db, attempt_id, student)
    if attempt.is_completed:
        raise AttemptStateError("Quiz attempt already completed", {"attempt_id": attempt.id})

    question = None
    if (attempt.correct_count or 0) < attempt.quiz.target_correct_answers:
        question = _pick_question(attempt)

    if question is None:
        _complete(db, attempt, now, tz)
        db.commit()
        return {"attempt_id": attempt.id, "completed": True, "question": None, "progress": _progress(attempt)}

    return {
        "attempt_id": attempt.id,
        "completed": False,
        "question": {
            "quiz_question_id": question.id,
            "text": question.text,
            "choices": list(question.choices_json or []),
            "difficulty": question.difficulty,
        },
        "progress": _progress(attempt),
    }


def submit_answer(
    db: Session,
    attempt_id: int,
    student_id: Optional[str],
    quiz_question_id: int,
    user_answer: Optional[str],
    skill_config: SkillPointsConfig,
    now: datetime,
    tz: tzinfo,
) -> Dict[str, Any]:
    student = normalize_student_id(student_id)
    attempt = _get_attempt(db, attempt_id, student)
    if attempt.is_completed:
        raise AttemptStateError("Quiz attempt already completed", {"attempt_id": attempt.id})

    question = next((q for q in attempt.quiz.questions if q.id == quiz_question_id), None)
    if question is None:
        raise InvalidRequest(
            "Question does not belong to this quiz",
            {"quiz_question_id": quiz_question_id, "quiz_id": attempt.quiz_id},
        )
    if any(answer.quiz_question_id == question.id for answer in attempt.answers):
        raise AttemptStateError("Question already answered", {"quiz_question_id": question.id})
    served = _pick_question(attempt)
    if served is None or served.id != question.id:
        raise AttemptStateError(
            "Only the question served by next-question can be answered",
            {
                "quiz_question_id": question.id,
                "expected_quiz_question_id": served.id if served else None,
                "current_difficulty": attempt.current_difficulty,
            },
        )

    correct = answers_match(user_answer, question.answer)
    delta = score_answer(question.difficulty, correct, skill_config)

    state = _load_state(attempt)
    previous_difficulty = state.current_difficulty
    state.skill_points = accumulate(state.skill_points, delta)
    next_difficulty(state, correct, question.difficulty)
    _store_state(attempt, state)

    attempt.answers.append(
        models.AttemptAnswer(
            quiz_question_id=question.id,
            difficulty=question.difficulty,
            user_answer=user_answer,
            is_correct=correct,
            skill_delta=delta,
        )
    )
    db.flush()

    completed = False
    if state.overall_correct >= attempt.quiz.target_correct_answers or _pick_question(attempt) is None:
        _complete(db, attempt, now, tz)
        completed = True
    db.commit()

    logger.debug(
        "Attempt %s answer on %s: correct=%s difficulty %s -> %s",
        attempt.id,
        question.id,
        correct,
        previous_difficulty,
        state.current_difficulty,
    )
    return {
        "attempt_id": attempt.id,
        "is_correct": correct,
        "correct_answer": question.answer,
        "skill_delta": delta,
        "new_difficulty": state.current_difficulty,
        "completed": completed,
        "progress": _progress(attempt),
    }


def get_results(db: Session, attempt_id: int, student_id: Optional[str]) -> Dict[str, Any]:
    student = normalize_student_id(student_id)
    attempt = _get_attempt(db, attempt_id, student)
    total = attempt.total_answered or 0
    accuracy = round((attempt.correct_count or 0) * 100 / total) if total > 0 else 0
    progression: List[Dict[str, Any]] = [
        {
            "question_number": index,
            "quiz_question_id": answer.quiz_question_id,
            "difficulty": answer.difficulty,
            "is_correct": answer.is_correct,
            "skill_delta": answer.skill_delta,
        }
        for index, answer in enumerate(attempt.answers, start=1)
    ]
    return {
        "attempt_id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "quiz_title": attempt.quiz.title,
        "correct_count": attempt.correct_count or 0,
        "total_answered": total,
        "target_correct_answers": attempt.quiz.target_correct_answers,
        "accuracy": accuracy,
        "skill_points": round(attempt.skill_points or 0.0, 2),
        "is_completed": bool(attempt.is_completed),
        "difficulty_progression": progression,
        "started_at": as_utc(attempt.started_at) if attempt.started_at else None,
        "completed_at": as_utc(attempt.completed_at) if attempt.completed_at else None,
    }
