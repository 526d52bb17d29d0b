from typing import Optional


class DomainError(Exception):
    """Базовая ошибка домена Documents"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DomainValidationError(DomainError, ValueError):
    """Нарушение правил валидации значения или сущности"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class DocumentNotPublishedError(DomainError):
    def __init__(self, message: str = "document is not published"):
        super().__init__(message)


class DocumentAlreadyPublishedError(DomainError):
    def __init__(self, message: str = "document is already published"):
        super().__init__(message)


class VersionNotFoundError(DomainError):
    def __init__(self, version_number: Optional[int] = None):
        super().__init__("version not found")
        self.version_number = version_number


class VersionNotPublishedError(DomainError):
    def __init__(self, message: str = "cannot rollback to unpublished version"):
        super().__init__(message)


class VersionAlreadyUnpublishedError(DomainError):
    def __init__(self, message: str = "version is already unpublished"):
        super().__init__(message)


class VersionMismatchError(DomainError):
    def __init__(self, message: str = "version does not belong to this document"):
        super().__init__(message)


class RepositoryError(Exception):
    """Сбой хранилища документов"""


class ConcurrentUpdateError(RepositoryError):
    """Документ был изменен параллельно (ревизия не совпадает)"""

    def __init__(self, document_id: str, expected_revision: int):
        super().__init__(
            f"document {document_id} was modified concurrently "
            f"(expected revision {expected_revision})"
        )
        self.document_id = document_id
        self.expected_revision = expected_revision


class DocumentNotFoundError(RepositoryError):
    """Обновляемый документ отсутствует в хранилище"""

    def __init__(self, document_id: str):
        super().__init__(f"document {document_id} not found")
        self.document_id = document_id
