from dataclasses import dataclass
from typing import ClassVar, Dict, Optional


@dataclass
class EngineError(Exception):
    status_code: int
    message: str
    details: Optional[Dict[str, object]] = None

    code: ClassVar[str] = "ENGINE_ERROR"

    def __str__(self) -> str:
        return self.message


class InvalidRequest(EngineError):
    code = "INVALID_REQUEST"

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(422, message, details)


class ShortfallError(EngineError):
    code = "QUESTION_POOL_SHORTFALL"

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(409, message, details)


class ConcurrencyConflict(EngineError):
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(503, message, details)


class NotFoundError(EngineError):
    code = "NOT_FOUND"

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(404, message, details)


class AttemptStateError(EngineError):
    code = "ATTEMPT_STATE"

    def __init__(self, message: str, details: Optional[Dict[str, object]] = None) -> None:
        super().__init__(409, message, details)
