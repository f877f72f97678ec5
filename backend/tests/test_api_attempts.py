from datetime import datetime

from adaptive_quiz.db import models

STUDENT = {"X-Student-Id": "student-1"}


def create_quiz(client, seed_questions, progression="immediate", target=2):
    seed_questions(1, 3)
    seed_questions(2, 3)
    response = client.post(
        "/quiz/generate",
        json={
            "quiz_level": 1,
            "trigger_type": "new_enrollment",
            "distribution": {"1": 3, "2": 3},
            "adaptive": {"progression": progression, "starting_difficulty": 1, "target_correct_answers": target},
        },
    )
    assert response.status_code == 200
    return response.json()["quiz_id"]


def answer_current(client, attempt_id, correct=True):
    step = client.get(f"/attempts/{attempt_id}/next-question", headers=STUDENT).json()
    question = step["question"]
    answer = f"  ANSWER-{question['difficulty']} " if correct else "nope"
    response = client.post(
        f"/attempts/{attempt_id}/answers",
        json={"quiz_question_id": question["quiz_question_id"], "answer": answer},
        headers=STUDENT,
    )
    assert response.status_code == 200
    return question, response.json()


def test_full_attempt_updates_streak_and_skill_points(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions)

    started = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT)
    assert started.status_code == 201
    attempt_id = started.json()["attempt_id"]
    assert started.json()["progress"]["current_difficulty"] == 1

    question, first = answer_current(client, attempt_id)
    assert question["difficulty"] == 1
    assert first["is_correct"] is True
    assert first["skill_delta"] == 1.0
    assert first["new_difficulty"] == 2
    assert first["completed"] is False

    question, second = answer_current(client, attempt_id)
    assert question["difficulty"] == 2
    assert second["completed"] is True
    assert second["progress"]["skill_points"] == 3.0

    results = client.get(f"/attempts/{attempt_id}/results", headers=STUDENT).json()
    assert results["is_completed"] is True
    assert results["accuracy"] == 100
    assert [item["difficulty"] for item in results["difficulty_progression"]] == [1, 2]

    streak = client.get("/profile/streak", headers=STUDENT).json()
    assert streak["streak"] == 1
    assert streak["total_skill_points"] == 3.0
    assert streak["timezone"] == "Asia/Singapore"


def test_wrong_answers_floor_skill_points_at_zero(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions, progression="gradual", target=5)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    _, result = answer_current(client, attempt_id, correct=False)

    assert result["is_correct"] is False
    assert result["skill_delta"] == -2.5
    assert result["progress"]["skill_points"] == 0.0
    assert result["new_difficulty"] == 1


def test_incomplete_attempt_blocks_new_start(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions)
    first = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT)

    second = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT)

    assert second.status_code == 409
    assert second.json()["details"]["attempt_id"] == first.json()["attempt_id"]


def test_question_cannot_be_answered_twice(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions, target=5)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]
    question, _ = answer_current(client, attempt_id)

    again = client.post(
        f"/attempts/{attempt_id}/answers",
        json={"quiz_question_id": question["quiz_question_id"], "answer": "answer-1"},
        headers=STUDENT,
    )

    assert again.status_code == 409
    assert again.json()["code"] == "ATTEMPT_STATE"


def test_attempt_belongs_to_student(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    response = client.get(f"/attempts/{attempt_id}/next-question", headers={"X-Student-Id": "someone-else"})

    assert response.status_code == 404


def test_attempt_completes_when_questions_run_out(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions, target=10)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    served = []
    last = None
    for _ in range(6):
        question, last = answer_current(client, attempt_id, correct=False)
        served.append(question["difficulty"])
    assert served == [1, 1, 1, 2, 2, 2]
    assert last["completed"] is True
    assert last["progress"]["total_answered"] == 6

    response = client.get(f"/attempts/{attempt_id}/next-question", headers=STUDENT)
    assert response.status_code == 409


def test_missing_student_header_is_rejected(client):
    response = client.get("/profile/streak")
    assert response.status_code == 422
    assert response.json()["details"] == {"header": "X-Student-Id"}


def test_lapsed_streak_reads_zero_and_persists_reset(client, db_session):
    db_session.add(
        models.EngagementProfile(
            student_id="student-1",
            streak=6,
            last_quiz_date=datetime(2026, 3, 4, 2, 0),
        )
    )
    db_session.commit()

    body = client.get("/profile/streak", headers=STUDENT).json()

    assert body["streak"] == 0
    db_session.expire_all()
    stored = db_session.query(models.EngagementProfile).filter_by(student_id="student-1").one()
    assert stored.streak == 0
    assert stored.last_quiz_date == datetime(2026, 3, 4, 2, 0)


def test_completion_the_next_day_extends_streak(client, seed_questions, db_session):
    db_session.add(
        models.EngagementProfile(
            student_id="student-1",
            streak=5,
            # 2026-03-09 00:00 in Singapore
            last_quiz_date=datetime(2026, 3, 8, 16, 0),
        )
    )
    db_session.commit()
    quiz_id = create_quiz(client, seed_questions)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    answer_current(client, attempt_id)
    answer_current(client, attempt_id)

    assert client.get("/profile/streak", headers=STUDENT).json()["streak"] == 6


def test_attempt_completes_when_no_question_is_within_one_step(client, seed_questions):
    quiz_id = create_quiz(client, seed_questions, target=10)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    served = []
    last = None
    for _ in range(3):
        question, last = answer_current(client, attempt_id)
        served.append(question["difficulty"])

    # nothing is left at 3, 4 or 5 once difficulty reaches 4
    assert served == [1, 2, 2]
    assert last["new_difficulty"] == 4
    assert last["completed"] is True


def test_only_the_served_question_can_be_answered(client, seed_questions, db_session):
    quiz_id = create_quiz(client, seed_questions, target=5)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]
    served = client.get(f"/attempts/{attempt_id}/next-question", headers=STUDENT).json()["question"]
    harder = (
        db_session.query(models.QuizQuestion)
        .filter(models.QuizQuestion.quiz_id == quiz_id, models.QuizQuestion.difficulty == 2)
        .first()
    )

    response = client.post(
        f"/attempts/{attempt_id}/answers",
        json={"quiz_question_id": harder.id, "answer": "answer-2"},
        headers=STUDENT,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "ATTEMPT_STATE"
    assert body["details"]["expected_quiz_question_id"] == served["quiz_question_id"]
    results = client.get(f"/attempts/{attempt_id}/results", headers=STUDENT).json()
    assert results["total_answered"] == 0
    assert results["skill_points"] == 0.0


def test_history_records_difficulty_of_answered_question(client, seed_questions, db_session):
    quiz_id = create_quiz(client, seed_questions, progression="gradual", target=5)
    attempt_id = client.post(f"/quizzes/{quiz_id}/attempts", headers=STUDENT).json()["attempt_id"]

    for _ in range(3):
        answer_current(client, attempt_id, correct=False)
    # difficulty 1 is exhausted, so the fourth question comes from one step up
    question, _ = answer_current(client, attempt_id, correct=True)

    assert question["difficulty"] == 2
    attempt = db_session.query(models.QuizAttempt).filter(models.QuizAttempt.id == attempt_id).one()
    assert attempt.current_difficulty == 1
    assert attempt.history_json["history"][-1] == [2, True]
    (stored,) = [a for a in attempt.answers if a.quiz_question_id == question["quiz_question_id"]]
    assert stored.difficulty == 2
