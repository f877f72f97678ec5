from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adaptive_quiz.db import models
from adaptive_quiz.db.session import Base, get_db
from adaptive_quiz.main import app, get_clock
from adaptive_quiz.services.clock import FixedClock


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def clock():
    # 09:30 in Singapore
    return FixedClock(datetime(2026, 3, 10, 1, 30, tzinfo=timezone.utc))


@pytest.fixture()
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def seed_questions(db_session):
    def _seed(difficulty, count, quiz_level=1, is_active=True):
        rows = [
            models.Question(
                text=f"Level {quiz_level} difficulty {difficulty} question {index}",
                choices_json=[f"answer-{difficulty}", "other"],
                answer=f"answer-{difficulty}",
                difficulty=difficulty,
                quiz_level=quiz_level,
                is_active=is_active,
            )
            for index in range(count)
        ]
        db_session.add_all(rows)
        db_session.commit()
        return [row.id for row in rows]

    return _seed
