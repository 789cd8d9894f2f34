from typing import Any, Dict


class TranscriptError(Exception):
    """
    Базовая ошибка расчёта ведомости.

    Несёт машиночитаемый код и метаданные для сообщения воркера.
    """
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, **metadata: Any):
        super().__init__(message)
        self.message = message
        self.metadata: Dict[str, Any] = metadata

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "metadata": self.metadata}


class NotFoundError(TranscriptError):
    code = "NOT_FOUND"


class InvalidIdError(TranscriptError):
    code = "BAD_USER_INPUT"


class DataIntegrityError(TranscriptError):
    code = "DATA_INTEGRITY_ERROR"


class InvalidCriteriaError(DataIntegrityError):
    code = "INVALID_CRITERIA"


class InvalidOperatorError(InvalidCriteriaError):
    code = "INVALID_OPERATOR"


class MissingTestDataError(DataIntegrityError):
    code = "MISSING_TEST_DATA"


class WorkerSpawnError(TranscriptError):
    code = "WORKER_NOT_STARTED"
