import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from sqlalchemy.orm import Session

from adaptive_quiz.db import models
from adaptive_quiz.services.difficulty_scorer import (
    SkillPointsConfig,
    default_config,
    parse_points,
)

logger = logging.getLogger(__name__)


class SkillPointsProvider(Protocol):
    def get_config(self) -> SkillPointsConfig:
        ...


class StaticSkillPointsProvider:
    def __init__(self, config: Optional[SkillPointsConfig] = None):
        self.config = config or default_config()

    def get_config(self) -> SkillPointsConfig:
        return self.config


def _from_row(row: models.SkillPointsConfig) -> SkillPointsConfig:
    points = parse_points(row.points_json or {}, strict=False)
    return SkillPointsConfig(version=row.version, points=MappingProxyType(points))


class SqlSkillPointsProvider:
    """Versioned skill-points table; every admin update appends a row."""

    def __init__(self, db: Session):
        self.db = db

    def _latest(self) -> Optional[models.SkillPointsConfig]:
        return (
            self.db.query(models.SkillPointsConfig)
            .order_by(models.SkillPointsConfig.version.desc())
            .first()
        )

    def get_config(self) -> SkillPointsConfig:
        row = self._latest()
        if not row:
            return default_config()
        return _from_row(row)

    def update_config(self, points: Mapping[Any, Any], updated_by: Optional[str] = None) -> SkillPointsConfig:
        parsed = parse_points(points, strict=True)
        latest = self._latest()
        version = (latest.version if latest else 0) + 1
        row = models.SkillPointsConfig(
            version=version,
            points_json={
                str(difficulty): {"correct": entry.correct, "wrong": entry.wrong}
                for difficulty, entry in sorted(parsed.items())
            },
            updated_by=updated_by,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Skill points config updated to version %s by %s", version, updated_by or "unknown")
        return _from_row(row)
