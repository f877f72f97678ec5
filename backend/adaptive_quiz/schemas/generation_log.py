from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class GenerationLogItem(BaseModel):
    log_id: int
    quiz_id: Optional[int] = None
    quiz_level: int
    student_id: Optional[str] = None
    trigger_type: str
    trigger_details: str = ""
    questions_selected: int = 0
    freshness_score: float = 0.0
    difficulty_distribution: Dict[str, int] = {}
    success: bool
    error_message: str = ""
    generated_by: Optional[str] = None
    created_at: Optional[datetime] = None


class GenerationLogListResponse(BaseModel):
    items: List[GenerationLogItem]
