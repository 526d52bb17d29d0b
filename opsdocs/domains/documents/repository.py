from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from opsdocs.domains.documents.entities import Document, DocumentVersion
from opsdocs.domains.documents.value_objects import (
    AccessScope,
    DocumentID,
    RepositoryID,
    VersionNumber,
)


@dataclass(frozen=True)
class DocumentFilter:
    """Фильтр для выборки опубликованных документов"""
    access_scope: Optional[AccessScope] = None
    owner: Optional[str] = None

    def matches(self, document: Document) -> bool:
        if self.access_scope is not None and document.access_scope != self.access_scope:
            return False
        if self.owner is not None and document.owner != self.owner:
            return False
        return True


class DocumentRepository(ABC):
    """
    Порт хранилища документов.

    save/update сохраняют агрегат целиком (вместе с новыми версиями) атомарно.
    update сверяет document.revision с сохраненной ревизией и при
    расхождении выбрасывает ConcurrentUpdateError, а если документа уже
    нет - DocumentNotFoundError; при успехе ревизия
    увеличивается и у переданного агрегата. Ошибки хранилища выбрасываются
    как RepositoryError.
    """

    @abstractmethod
    async def save(self, document: Document) -> None:
        ...

    @abstractmethod
    async def update(self, document: Document) -> None:
        ...

    @abstractmethod
    async def find_by_id(self, document_id: DocumentID) -> Optional[Document]:
        ...

    @abstractmethod
    async def find_by_repository_id(
        self,
        repository_id: RepositoryID,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def find_published(
        self,
        filters: Optional[DocumentFilter] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def find_versions_by_document_id(self, document_id: DocumentID) -> List[DocumentVersion]:
        ...

    @abstractmethod
    async def find_version_by_number(
        self,
        document_id: DocumentID,
        version_number: VersionNumber,
    ) -> Optional[DocumentVersion]:
        ...
