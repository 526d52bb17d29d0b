import asyncio
import copy
from typing import Dict, List, Optional

from opsdocs.domains.documents.entities import Document, DocumentVersion
from opsdocs.domains.documents.errors import (
    ConcurrentUpdateError,
    DocumentNotFoundError,
    RepositoryError,
)
from opsdocs.domains.documents.repository import DocumentFilter, DocumentRepository
from opsdocs.domains.documents.value_objects import DocumentID, RepositoryID, VersionNumber


class InMemoryDocumentRepository(DocumentRepository):
    """
    Хранилище документов в памяти (для разработки и тестов).

    Хранит и отдает копии агрегатов, чтобы изменения вне save/update
    не попадали в хранилище.
    """

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        # создается внутри работающего цикла событий
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def save(self, document: Document) -> None:
        async with self._get_lock():
            key = str(document.id)
            if key in self._documents:
                raise RepositoryError(f"document {key} already exists")
            self._documents[key] = copy.deepcopy(document)

    async def update(self, document: Document) -> None:
        async with self._get_lock():
            key = str(document.id)
            stored = self._documents.get(key)
            if stored is None:
                raise DocumentNotFoundError(key)
            if stored.revision != document.revision:
                raise ConcurrentUpdateError(key, document.revision)

            document.revision += 1
            self._documents[key] = copy.deepcopy(document)

    async def find_by_id(self, document_id: DocumentID) -> Optional[Document]:
        stored = self._documents.get(str(document_id))
        return copy.deepcopy(stored) if stored is not None else None

    async def find_by_repository_id(
        self,
        repository_id: RepositoryID,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        documents = [d for d in self._documents.values() if d.repository_id == repository_id]
        return self._page(documents, limit, offset)

    async def find_published(
        self,
        filters: Optional[DocumentFilter] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        documents = [
            d for d in self._documents.values()
            if d.is_published and (filters is None or filters.matches(d))
        ]
        return self._page(documents, limit, offset)

    async def find_versions_by_document_id(self, document_id: DocumentID) -> List[DocumentVersion]:
        stored = self._documents.get(str(document_id))
        if stored is None:
            return []
        versions = sorted(stored.versions, key=lambda v: v.version_number)
        return copy.deepcopy(versions)

    async def find_version_by_number(
        self,
        document_id: DocumentID,
        version_number: VersionNumber,
    ) -> Optional[DocumentVersion]:
        stored = self._documents.get(str(document_id))
        if stored is None:
            return None
        version = stored.get_version(version_number)
        return copy.deepcopy(version) if version is not None else None

    @staticmethod
    def _page(documents: List[Document], limit: int, offset: int) -> List[Document]:
        documents = sorted(documents, key=lambda d: d.updated_at, reverse=True)
        return [copy.deepcopy(d) for d in documents[offset:offset + limit]]
