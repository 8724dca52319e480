from typing import Any, Optional


class ContinuumError(Exception):
    """Базовая ошибка домена с видом (kind) и HTTP-статусом"""

    kind = "StorageFailure"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error = {"kind": self.kind, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


class ValidationError(ContinuumError):
    """Некорректные входные данные, состояние не изменяется"""

    kind = "ValidationError"
    status_code = 400


class NotFoundError(ContinuumError):
    kind = "NotFound"
    status_code = 404


class ConflictError(ContinuumError):
    """Попытка нарушить инвариант (например, правка исторической карточки)"""

    kind = "Conflict"
    status_code = 409


class StorageFailure(ContinuumError):
    kind = "StorageFailure"
    status_code = 500


ERROR_KINDS = {
    cls.kind: cls for cls in (ValidationError, NotFoundError, ConflictError, StorageFailure)
}


def error_from_payload(payload: dict, fallback_message: str = "Request failed") -> ContinuumError:
    """Восстановление ошибки из ответа API (используется клиентом)"""
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return StorageFailure(fallback_message)
    error_cls = ERROR_KINDS.get(error.get("kind"), StorageFailure)
    return error_cls(error.get("message") or fallback_message, error.get("details"))
