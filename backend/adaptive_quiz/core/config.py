import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class Settings:
    mysql_host: str
    mysql_port: int
    mysql_user: str
    mysql_password: str
    mysql_database: str
    database_url: str
    streak_timezone: str
    default_quiz_size: int
    default_starting_difficulty: int
    default_target_correct: int
    default_progression: str
    generation_max_retries: int
    candidate_window: int
    generation_seed: Optional[int]
    cors_origins: str

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.streak_timezone)


def _build_database_url(
    mysql_host: str,
    mysql_port: int,
    mysql_user: str,
    mysql_password: str,
    mysql_database: str,
) -> str:
    password = quote_plus(mysql_password)
    return (
        "mysql+pymysql://"
        f"{mysql_user}:{password}@{mysql_host}:{mysql_port}/{mysql_database}"
        "?charset=utf8mb4"
    )


def _validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"STREAK_TIMEZONE={name!r} is not a known IANA timezone") from exc
    return name


def load_settings() -> Settings:
    mysql_host = os.getenv("MYSQL_HOST", "localhost")
    mysql_port = int(os.getenv("MYSQL_PORT", "3306"))
    mysql_user = os.getenv("MYSQL_USER", "app_user")
    mysql_password = os.getenv("MYSQL_PASSWORD", "app_pass")
    mysql_database = os.getenv("MYSQL_DATABASE", "app_db")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        database_url = _build_database_url(
            mysql_host=mysql_host,
            mysql_port=mysql_port,
            mysql_user=mysql_user,
            mysql_password=mysql_password,
            mysql_database=mysql_database,
        )

    streak_timezone = _validate_timezone(os.getenv("STREAK_TIMEZONE", "Asia/Singapore").strip())
    default_quiz_size = int(os.getenv("DEFAULT_QUIZ_SIZE", "20"))
    if default_quiz_size < 1:
        raise ValueError(f"DEFAULT_QUIZ_SIZE={default_quiz_size} must be at least 1")
    default_starting_difficulty = int(os.getenv("DEFAULT_STARTING_DIFFICULTY", "1"))
    default_target_correct = int(os.getenv("DEFAULT_TARGET_CORRECT", "10"))
    default_progression = os.getenv("DEFAULT_PROGRESSION", "gradual").strip().lower()
    generation_max_retries = int(os.getenv("GENERATION_MAX_RETRIES", "3"))
    candidate_window = int(os.getenv("CANDIDATE_WINDOW", "5"))
    seed_raw = os.getenv("GENERATION_SEED", "").strip()
    generation_seed = int(seed_raw) if seed_raw else None
    cors_origins = os.getenv("CORS_ORIGINS", "")

    return Settings(
        mysql_host=mysql_host,
        mysql_port=mysql_port,
        mysql_user=mysql_user,
        mysql_password=mysql_password,
        mysql_database=mysql_database,
        database_url=database_url,
        streak_timezone=streak_timezone,
        default_quiz_size=default_quiz_size,
        default_starting_difficulty=default_starting_difficulty,
        default_target_correct=default_target_correct,
        default_progression=default_progression,
        generation_max_retries=max(generation_max_retries, 1),
        candidate_window=max(candidate_window, 1),
        generation_seed=generation_seed,
        cors_origins=cors_origins,
    )
