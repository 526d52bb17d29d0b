from opsdocs.domains.documents.entities import Document, DocumentVersion
from opsdocs.domains.documents.errors import (
    ConcurrentUpdateError,
    DocumentNotFoundError,
    DocumentAlreadyPublishedError,
    DocumentNotPublishedError,
    DomainError,
    DomainValidationError,
    RepositoryError,
    VersionAlreadyUnpublishedError,
    VersionMismatchError,
    VersionNotFoundError,
    VersionNotPublishedError,
)
from opsdocs.domains.documents.repository import DocumentFilter, DocumentRepository

__all__ = [
    "Document",
    "DocumentVersion",
    "DocumentRepository",
    "DocumentFilter",
    "DomainError",
    "DomainValidationError",
    "DocumentNotPublishedError",
    "DocumentAlreadyPublishedError",
    "VersionNotFoundError",
    "VersionNotPublishedError",
    "VersionAlreadyUnpublishedError",
    "VersionMismatchError",
    "RepositoryError",
    "ConcurrentUpdateError",
    "DocumentNotFoundError",
]
