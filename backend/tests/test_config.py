import pytest

from adaptive_quiz.core.config import load_settings


def test_defaults(monkeypatch):
    for name in ("DATABASE_URL", "STREAK_TIMEZONE", "GENERATION_SEED", "GENERATION_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MYSQL_PASSWORD", "p@ss word")

    settings = load_settings()

    assert settings.streak_timezone == "Asia/Singapore"
    assert settings.tz.key == "Asia/Singapore"
    assert settings.default_quiz_size == 20
    assert settings.generation_max_retries == 3
    assert settings.generation_seed is None
    assert settings.database_url.startswith("mysql+pymysql://")
    assert "p%40ss+word" in settings.database_url


def test_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("STREAK_TIMEZONE", "Europe/London")
    monkeypatch.setenv("GENERATION_SEED", "12")
    monkeypatch.setenv("GENERATION_MAX_RETRIES", "0")

    settings = load_settings()

    assert settings.database_url == "sqlite://"
    assert settings.streak_timezone == "Europe/London"
    assert settings.generation_seed == 12
    assert settings.generation_max_retries == 1


def test_unknown_timezone_fails_fast(monkeypatch):
    monkeypatch.setenv("STREAK_TIMEZONE", "Mars/Olympus")
    with pytest.raises(ValueError):
        load_settings()


@pytest.mark.parametrize("size", ["0", "-4"])
def test_non_positive_quiz_size_fails_fast(monkeypatch, size):
    monkeypatch.delenv("STREAK_TIMEZONE", raising=False)
    monkeypatch.setenv("DEFAULT_QUIZ_SIZE", size)
    with pytest.raises(ValueError, match="DEFAULT_QUIZ_SIZE"):
        load_settings()
