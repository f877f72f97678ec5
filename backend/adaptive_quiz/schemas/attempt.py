from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AttemptProgress(BaseModel):
    correct_count: int
    total_answered: int
    target_correct_answers: int
    current_difficulty: int
    skill_points: float


class AttemptStartResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    progress: AttemptProgress


class AttemptQuestion(BaseModel):
    quiz_question_id: int
    text: str
    choices: List[str] = Field(default_factory=list)
    difficulty: int


class NextQuestionResponse(BaseModel):
    attempt_id: int
    completed: bool
    question: Optional[AttemptQuestion] = None
    progress: AttemptProgress


class AnswerSubmitRequest(BaseModel):
    quiz_question_id: int = Field(..., ge=1)
    answer: Optional[str] = None


class AnswerSubmitResponse(BaseModel):
    attempt_id: int
    is_correct: bool
    correct_answer: str
    skill_delta: float
    new_difficulty: int
    completed: bool
    progress: AttemptProgress


class AnswerProgressItem(BaseModel):
    question_number: int
    quiz_question_id: int
    difficulty: int
    is_correct: bool
    skill_delta: float


class AttemptResultsResponse(BaseModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    correct_count: int
    total_answered: int
    target_correct_answers: int
    accuracy: int
    skill_points: float
    is_completed: bool
    difficulty_progression: List[AnswerProgressItem]
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
