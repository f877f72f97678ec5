import logging
from datetime import datetime, tzinfo
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from adaptive_quiz.db import models
from adaptive_quiz.services.clock import as_utc, to_storage
from adaptive_quiz.services.errors import InvalidRequest
from adaptive_quiz.services.streak_tracker import (
    EngagementState,
    compute_effective,
    update_on_completion,
)

logger = logging.getLogger(__name__)


def normalize_student_id(student_id: Optional[str]) -> str:
    value = (student_id or "").strip()
    if not value:
        raise InvalidRequest("X-Student-Id is required", {"header": "X-Student-Id"})
    return value


def find_profile(db: Session, student_id: str) -> Optional[models.EngagementProfile]:
    return (
        db.query(models.EngagementProfile)
        .filter(models.EngagementProfile.student_id == student_id)
        .first()
    )


def get_or_create_profile(db: Session, student_id: str) -> models.EngagementProfile:
    profile = find_profile(db, student_id)
    if profile:
        return profile

    profile = models.EngagementProfile(student_id=student_id, streak=0, total_skill_points=0.0)
    db.add(profile)
    db.flush()
    return profile


def _state_of(profile: models.EngagementProfile) -> EngagementState:
    last = profile.last_quiz_date
    return EngagementState(streak=profile.streak or 0, last_quiz_date=as_utc(last) if last else None)


def record_quiz_completion(
    db: Session,
    student_id: str,
    now: datetime,
    tz: tzinfo,
    skill_delta: float = 0.0,
) -> models.EngagementProfile:
    """Advance the daily streak and bank earned skill points. Caller commits."""
    profile = get_or_create_profile(db, student_id)
    state = _state_of(profile)
    previous = state.streak
    update_on_completion(state, now, tz)
    profile.streak = state.streak
    profile.last_quiz_date = to_storage(state.last_quiz_date)
    profile.total_skill_points = max(0.0, (profile.total_skill_points or 0.0) + skill_delta)
    logger.info("Streak for %s: %s -> %s", student_id, previous, state.streak)
    return profile


def build_streak_response(db: Session, student_id: str, now: datetime, tz: tzinfo) -> Dict[str, Any]:
    """Read the streak as of ``now``; a lapsed stored streak is reset to 0 on read."""
    profile = find_profile(db, student_id)
    state = _state_of(profile) if profile else None
    view = compute_effective(state, now, tz)
    if profile and view.should_reset:
        profile.streak = 0
        db.commit()
        logger.info("Streak for %s lapsed, reset persisted", student_id)

    return {
        "student_id": student_id,
        "streak": view.effective,
        "last_quiz_date": as_utc(profile.last_quiz_date) if profile and profile.last_quiz_date else None,
        "total_skill_points": round(profile.total_skill_points or 0.0, 2) if profile else 0.0,
        "timezone": getattr(tz, "key", str(tz)),
    }
