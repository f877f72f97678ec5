import argparse
import logging
import os
import sys

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from adaptive_quiz.db.session import SessionLocal, settings
from adaptive_quiz.services.errors import EngineError
from adaptive_quiz.services.generation_service import GenerationShortfall, build_sql_orchestrator

logger = logging.getLogger("regenerate_quizzes")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Regenerate adaptive quizzes for a range of levels.")
    parser.add_argument("--from-level", type=int, default=1)
    parser.add_argument("--to-level", type=int, default=10)
    parser.add_argument("--generated-by", default="scheduler")
    return parser.parse_args(argv)


def regenerate_level(quiz_level: int, generated_by: str) -> str:
    db = SessionLocal()
    try:
        orchestrator = build_sql_orchestrator(db, settings, quiz_level=quiz_level)
        result = orchestrator.generate_quiz(
            trigger_type="time_based",
            quiz_level=quiz_level,
            generated_by=generated_by,
            trigger_details="scheduled regeneration",
        )
        db.commit()
    except EngineError as exc:
        db.rollback()
        logger.warning("Level %s skipped: %s", quiz_level, exc.message)
        return f"level={quiz_level} error={exc.code}"
    finally:
        db.close()

    if isinstance(result, GenerationShortfall):
        return f"level={quiz_level} shortfall"
    return f"level={quiz_level} quiz_id={result.quiz_id} freshness={result.freshness_score}"


def main(argv=None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    for quiz_level in range(args.from_level, args.to_level + 1):
        print(regenerate_level(quiz_level, args.generated_by))


if __name__ == "__main__":
    main()
