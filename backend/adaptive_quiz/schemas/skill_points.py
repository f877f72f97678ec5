from typing import Dict, Optional

from pydantic import BaseModel, Field


class PointsEntryModel(BaseModel):
    correct: float
    wrong: float


class SkillPointsResponse(BaseModel):
    version: int
    points: Dict[str, PointsEntryModel]


class SkillPointsUpdateRequest(BaseModel):
    points: Dict[str, PointsEntryModel]
    updated_by: Optional[str] = Field(None, max_length=64)
