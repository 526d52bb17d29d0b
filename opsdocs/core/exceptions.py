from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class FieldError:
    """Ошибка валидации отдельного поля"""
    field: str
    message: str
    code: str = "INVALID_VALUE"


class ApplicationError(Exception):
    """Базовая ошибка прикладного слоя"""

    code = "APPLICATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailedError(ApplicationError):
    code = "VALIDATION_FAILED"

    def __init__(self, errors: List[FieldError]):
        fields = ", ".join(e.field for e in errors)
        super().__init__(f"validation failed: {fields}")
        self.errors = list(errors)

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class NotFoundError(ApplicationError):
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} not found: {resource_id}")
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ApplicationError):
    code = "RESOURCE_CONFLICT"

    def __init__(self, resource_type: str, identifier: str, reason: str):
        super().__init__(f"{resource_type} {identifier}: {reason}")
        self.resource_type = resource_type
        self.identifier = identifier
        self.reason = reason


class InternalError(ApplicationError):
    """Непредвиденная ошибка (как правило, сбой хранилища)"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
