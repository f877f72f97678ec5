import logging
import random

from fastapi import Depends, FastAPI, Header, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from adaptive_quiz.core.config import load_settings
from adaptive_quiz.db.session import get_db
from adaptive_quiz.schemas.attempt import (
    AnswerSubmitRequest,
    AnswerSubmitResponse,
    AttemptResultsResponse,
    AttemptStartResponse,
    NextQuestionResponse,
)
from adaptive_quiz.schemas.generation_log import GenerationLogListResponse
from adaptive_quiz.schemas.profile import StreakResponse
from adaptive_quiz.schemas.quiz_generate import (
    AvailabilityResponse,
    QuizGenerateRequest,
    QuizGenerateResponse,
)
from adaptive_quiz.schemas.skill_points import SkillPointsResponse, SkillPointsUpdateRequest
from adaptive_quiz.services import attempt_service
from adaptive_quiz.services.clock import Clock, SystemClock, as_utc
from adaptive_quiz.services.errors import EngineError, InvalidRequest, ShortfallError
from adaptive_quiz.services.generation_service import (
    GenerationOrchestrator,
    GenerationShortfall,
    build_sql_orchestrator,
    check_generation_availability,
    default_distribution,
)
from adaptive_quiz.services.generation_store import AdaptiveConfig, list_generation_logs
from adaptive_quiz.services.profile_service import build_streak_response, normalize_student_id
from adaptive_quiz.services.question_pool import PoolScope, SqlQuestionRepository
from adaptive_quiz.services.skill_points_service import SqlSkillPointsProvider

settings = load_settings()
logger = logging.getLogger(__name__)


def _load_cors_origins() -> list[str]:
    raw = settings.cors_origins
    if raw:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return ["http://localhost:5173", "http://127.0.0.1:5173"]


app = FastAPI(docs_url="/api-docs", redoc_url="/api-redoc")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_load_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
system_clock = SystemClock()
selection_rng = random.Random(settings.generation_seed)


def get_clock() -> Clock:
    return system_clock


def get_student_id(x_student_id: str | None = Header(default=None)) -> str | None:
    return x_student_id


def _error_response(status: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"code": code, "message": message, "details": details or {}},
    )


def _engine_error(exc: EngineError) -> JSONResponse:
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
def request_validation_error(_request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        422,
        InvalidRequest.code,
        "Request validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )


def _or_default(value, default):
    return default if value is None else value


def build_orchestrator(db: Session, quiz_level: int, clock: Clock) -> GenerationOrchestrator:
    return build_sql_orchestrator(db, settings, quiz_level=quiz_level, clock=clock, rng=selection_rng)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/questions/availability", response_model=AvailabilityResponse)
def questions_availability(
    quiz_level: int = Query(..., ge=1, le=10),
    db: Session = Depends(get_db),
):
    repository = SqlQuestionRepository(db, PoolScope(quiz_level=quiz_level))
    return check_generation_availability(
        repository.availability(),
        default_distribution(quiz_level, settings.default_quiz_size),
    )


@app.post("/quiz/generate", response_model=QuizGenerateResponse)
def quiz_generate(
    request: QuizGenerateRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    adaptive = None
    if request.adaptive:
        adaptive = AdaptiveConfig(
            progression=_or_default(request.adaptive.progression, settings.default_progression),
            starting_difficulty=_or_default(request.adaptive.starting_difficulty, settings.default_starting_difficulty),
            target_correct_answers=_or_default(request.adaptive.target_correct_answers, settings.default_target_correct),
        )
    orchestrator = build_orchestrator(db, request.quiz_level, clock)
    try:
        result = orchestrator.generate_quiz(
            trigger_type=request.trigger_type,
            quiz_level=request.quiz_level,
            distribution=request.distribution,
            student_id=request.student_id,
            generated_by=request.generated_by,
            trigger_details=request.trigger_details,
            adaptive=adaptive,
        )
    except EngineError as exc:
        db.rollback()
        if exc.status_code >= 500:
            logger.warning("Quiz generation for level %s failed: %s", request.quiz_level, exc.message)
        return _engine_error(exc)

    db.commit()
    if isinstance(result, GenerationShortfall):
        shortfall = ShortfallError(
            result.message,
            {
                "shortfall": [item.as_dict() for item in result.per_difficulty],
                "requested": {str(k): v for k, v in result.requested_distribution.items()},
            },
        )
        return _engine_error(shortfall)

    return {
        "status": result.status,
        "quiz_id": result.quiz_id,
        "freshness_score": result.freshness_score,
        "difficulty_plan": {str(k): v for k, v in result.requested_distribution.items()},
        "questions": [
            {
                "question_id": question.id,
                "difficulty": question.difficulty,
                "text": question.text,
                "choices": list(question.choices),
                "usage_count": question.usage_count,
            }
            for question in result.selected_questions
        ],
    }


@app.get("/generation-logs", response_model=GenerationLogListResponse)
def generation_logs(
    quiz_level: int | None = Query(None, ge=1, le=10),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows = list_generation_logs(db, quiz_level=quiz_level, limit=limit)
    return {
        "items": [
            {
                "log_id": row.id,
                "quiz_id": row.quiz_id,
                "quiz_level": row.quiz_level,
                "student_id": row.student_id,
                "trigger_type": row.trigger_type,
                "trigger_details": row.trigger_details or "",
                "questions_selected": row.questions_selected or 0,
                "freshness_score": row.freshness_score or 0.0,
                "difficulty_distribution": row.difficulty_distribution_json or {},
                "success": bool(row.success),
                "error_message": row.error_message or "",
                "generated_by": row.generated_by,
                "created_at": as_utc(row.created_at) if row.created_at else None,
            }
            for row in rows
        ]
    }


@app.post("/quizzes/{quiz_id}/attempts", response_model=AttemptStartResponse, status_code=201)
def start_quiz_attempt(
    quiz_id: int,
    db: Session = Depends(get_db),
    student_id: str | None = Depends(get_student_id),
):
    try:
        return attempt_service.start_attempt(db, quiz_id, student_id)
    except EngineError as exc:
        db.rollback()
        return _engine_error(exc)


@app.get("/attempts/{attempt_id}/next-question", response_model=NextQuestionResponse)
def attempt_next_question(
    attempt_id: int,
    db: Session = Depends(get_db),
    student_id: str | None = Depends(get_student_id),
    clock: Clock = Depends(get_clock),
):
    try:
        return attempt_service.next_question(db, attempt_id, student_id, clock.now(), settings.tz)
    except EngineError as exc:
        db.rollback()
        return _engine_error(exc)


@app.post("/attempts/{attempt_id}/answers", response_model=AnswerSubmitResponse)
def attempt_submit_answer(
    attempt_id: int,
    request: AnswerSubmitRequest,
    db: Session = Depends(get_db),
    student_id: str | None = Depends(get_student_id),
    clock: Clock = Depends(get_clock),
):
    try:
        return attempt_service.submit_answer(
            db,
            attempt_id=attempt_id,
            student_id=student_id,
            quiz_question_id=request.quiz_question_id,
            user_answer=request.answer,
            skill_config=SqlSkillPointsProvider(db).get_config(),
            now=clock.now(),
            tz=settings.tz,
        )
    except EngineError as exc:
        db.rollback()
        return _engine_error(exc)


@app.get("/attempts/{attempt_id}/results", response_model=AttemptResultsResponse)
def attempt_results(
    attempt_id: int,
    db: Session = Depends(get_db),
    student_id: str | None = Depends(get_student_id),
):
    try:
        return attempt_service.get_results(db, attempt_id, student_id)
    except EngineError as exc:
        return _engine_error(exc)


@app.get("/profile/streak", response_model=StreakResponse)
def profile_streak(
    db: Session = Depends(get_db),
    student_id: str | None = Depends(get_student_id),
    clock: Clock = Depends(get_clock),
):
    try:
        student = normalize_student_id(student_id)
        return build_streak_response(db, student, clock.now(), settings.tz)
    except EngineError as exc:
        return _engine_error(exc)


@app.get("/admin/skill-points", response_model=SkillPointsResponse)
def get_skill_points(db: Session = Depends(get_db)):
    return SqlSkillPointsProvider(db).get_config().to_dict()


@app.put("/admin/skill-points", response_model=SkillPointsResponse)
def update_skill_points(
    request: SkillPointsUpdateRequest,
    db: Session = Depends(get_db),
):
    points = {key: entry.model_dump() for key, entry in request.points.items()}
    try:
        config = SqlSkillPointsProvider(db).update_config(points, updated_by=request.updated_by)
    except EngineError as exc:
        db.rollback()
        return _engine_error(exc)
    return config.to_dict()


