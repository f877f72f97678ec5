from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StreakResponse(BaseModel):
    student_id: str
    streak: int = 0
    last_quiz_date: Optional[datetime] = None
    total_skill_points: float = 0.0
    timezone: str
