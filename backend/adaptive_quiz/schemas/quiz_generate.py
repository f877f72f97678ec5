from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AdaptiveConfigRequest(BaseModel):
    progression: Optional[str] = None
    starting_difficulty: Optional[int] = None
    target_correct_answers: Optional[int] = None


class QuizGenerateRequest(BaseModel):
    quiz_level: int
    # checked against the known trigger types by the generator
    trigger_type: str = "admin_trigger"
    # difficulty -> count; keys arrive as strings from JSON
    distribution: Optional[Dict[str, Any]] = None
    student_id: Optional[str] = Field(None, max_length=64)
    trigger_details: str = Field("", max_length=255)
    generated_by: Optional[str] = Field(None, max_length=64)
    adaptive: Optional[AdaptiveConfigRequest] = None


class SelectedQuestionResponse(BaseModel):
    question_id: int
    difficulty: int
    text: str
    choices: List[str] = Field(default_factory=list)
    usage_count: int


class QuizGenerateResponse(BaseModel):
    status: str
    quiz_id: int
    freshness_score: float
    difficulty_plan: Dict[str, int]
    questions: List[SelectedQuestionResponse]


class AvailabilityResponse(BaseModel):
    available: bool
    question_count: int
    required: int
    per_difficulty: Dict[str, int]
    shortfall: List[Dict[str, int]] = Field(default_factory=list)
