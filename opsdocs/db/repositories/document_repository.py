import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from opsdocs.db.models.document import DocumentModel, DocumentVersionModel
from opsdocs.domains.documents.entities import Document, DocumentVersion
from opsdocs.domains.documents.errors import (
    ConcurrentUpdateError,
    DocumentNotFoundError,
    RepositoryError,
)
from opsdocs.domains.documents.repository import DocumentFilter, DocumentRepository
from opsdocs.domains.documents.value_objects import (
    AccessScope,
    Category,
    CommitHash,
    DocumentID,
    DocumentSource,
    DocumentType,
    FilePath,
    RepositoryID,
    Tag,
    VariableDefinition,
    VariableType,
    VersionID,
    VersionNumber,
)

logger = logging.getLogger(__name__)


class SqlAlchemyDocumentRepository(DocumentRepository):
    """Репозиторий документов поверх асинхронной сессии SQLAlchemy"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, document: Document) -> None:
        """Сохранение нового документа вместе со всеми версиями"""
        db_document = DocumentModel(
            id=str(document.id),
            repository_id=str(document.repository_id),
            owner=document.owner,
            is_published=document.is_published,
            is_auto_update=document.is_auto_update,
            access_scope=document.access_scope.value,
            current_version_number=_number_or_none(document.current_version_number),
            revision=document.revision,
            created_at=document.created_at,
            updated_at=document.updated_at,
            versions=[_version_to_model(v) for v in document.versions],
        )
        self.session.add(db_document)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise RepositoryError(f"document {document.id} already exists") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise RepositoryError(str(e)) from e

    async def update(self, document: Document) -> None:
        """
        Обновление документа с проверкой ревизии.

        Существующие строки версий не переписываются, кроме полей
        публикации; новые версии добавляются.
        """
        document_id = str(document.id)
        try:
            result = await self.session.execute(
                update(DocumentModel)
                .where(
                    DocumentModel.id == document_id,
                    DocumentModel.revision == document.revision,
                )
                .values(
                    owner=document.owner,
                    is_published=document.is_published,
                    is_auto_update=document.is_auto_update,
                    access_scope=document.access_scope.value,
                    current_version_number=_number_or_none(document.current_version_number),
                    revision=DocumentModel.revision + 1,
                    updated_at=document.updated_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                exists = await self.session.scalar(
                    select(DocumentModel.id).where(DocumentModel.id == document_id)
                )
                await self.session.rollback()
                if exists is None:
                    raise DocumentNotFoundError(document_id)
                logger.warning(
                    f"Revision mismatch for document {document_id} (revision {document.revision})"
                )
                raise ConcurrentUpdateError(document_id, document.revision)

            db_document = (
                await self.session.execute(
                    select(DocumentModel)
                    .options(selectinload(DocumentModel.versions))
                    .where(DocumentModel.id == document_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            existing = {db_version.id: db_version for db_version in db_document.versions}

            for version in document.versions:
                db_version = existing.get(str(version.id))
                if db_version is None:
                    db_document.versions.append(_version_to_model(version))
                else:
                    db_version.published_at = version.published_at
                    db_version.unpublished_at = version.unpublished_at

            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise RepositoryError(f"failed to write versions of document {document_id}") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise RepositoryError(str(e)) from e

        document.revision += 1

    async def find_by_id(self, document_id: DocumentID) -> Optional[Document]:
        """Получение документа по ID (None, если не найден)"""
        stmt = (
            select(DocumentModel)
            .options(selectinload(DocumentModel.versions))
            .where(DocumentModel.id == str(document_id))
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

        db_document = result.scalar_one_or_none()
        return _to_domain(db_document) if db_document else None

    async def find_by_repository_id(
        self,
        repository_id: RepositoryID,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        """Получение документов репозитория"""
        stmt = (
            select(DocumentModel)
            .options(selectinload(DocumentModel.versions))
            .where(DocumentModel.repository_id == str(repository_id))
            .order_by(DocumentModel.updated_at.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return await self._fetch_documents(stmt)

    async def find_published(
        self,
        filters: Optional[DocumentFilter] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Document]:
        """Получение опубликованных документов"""
        stmt = (
            select(DocumentModel)
            .options(selectinload(DocumentModel.versions))
            .where(DocumentModel.is_published.is_(True))
        )
        if filters is not None:
            if filters.access_scope is not None:
                stmt = stmt.where(DocumentModel.access_scope == filters.access_scope.value)
            if filters.owner is not None:
                stmt = stmt.where(DocumentModel.owner == filters.owner)

        stmt = (
            stmt.order_by(DocumentModel.updated_at.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return await self._fetch_documents(stmt)

    async def find_versions_by_document_id(self, document_id: DocumentID) -> List[DocumentVersion]:
        """Получение всех версий документа по возрастанию номера"""
        stmt = (
            select(DocumentVersionModel, DocumentModel.current_version_number)
            .join(DocumentModel, DocumentModel.id == DocumentVersionModel.document_id)
            .where(DocumentVersionModel.document_id == str(document_id))
            .order_by(DocumentVersionModel.version_number)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

        return [
            _version_to_domain(db_version, db_version.version_number == current_number)
            for db_version, current_number in result.all()
        ]

    async def find_version_by_number(
        self,
        document_id: DocumentID,
        version_number: VersionNumber,
    ) -> Optional[DocumentVersion]:
        """Получение версии по номеру"""
        stmt = (
            select(DocumentVersionModel, DocumentModel.current_version_number)
            .join(DocumentModel, DocumentModel.id == DocumentVersionModel.document_id)
            .where(
                DocumentVersionModel.document_id == str(document_id),
                DocumentVersionModel.version_number == version_number.value,
            )
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

        row = result.one_or_none()
        if row is None:
            return None
        db_version, current_number = row
        return _version_to_domain(db_version, db_version.version_number == current_number)

    async def _fetch_documents(self, stmt) -> List[Document]:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e
        return [_to_domain(db_document) for db_document in result.scalars().all()]


def _number_or_none(number: Optional[VersionNumber]) -> Optional[int]:
    return number.value if number is not None else None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite возвращает naive datetime
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _variable_to_dict(variable: VariableDefinition) -> Dict[str, Any]:
    return {
        "name": variable.name,
        "label": variable.label,
        "description": variable.description,
        "type": variable.type.value,
        "required": variable.required,
        "default_value": variable.default_value,
    }


def _variable_from_dict(data: Dict[str, Any]) -> VariableDefinition:
    return VariableDefinition(
        name=data["name"],
        label=data["label"],
        type=VariableType(data["type"]),
        required=data.get("required", False),
        description=data.get("description", ""),
        default_value=data.get("default_value"),
    )


def _version_to_model(version: DocumentVersion) -> DocumentVersionModel:
    return DocumentVersionModel(
        id=str(version.id),
        document_id=str(version.document_id),
        version_number=version.version_number.value,
        file_path=str(version.source.file_path),
        commit_hash=str(version.source.commit_hash),
        title=version.title,
        doc_type=version.doc_type.value,
        category=version.category.name if version.category else None,
        tags=[tag.name for tag in version.tags],
        variables=[_variable_to_dict(v) for v in version.variables],
        content=version.content,
        published_at=version.published_at,
        unpublished_at=version.unpublished_at,
    )


def _version_to_domain(db_version: DocumentVersionModel, is_current: bool) -> DocumentVersion:
    return DocumentVersion.reconstruct(
        id=VersionID(db_version.id),
        document_id=DocumentID(db_version.document_id),
        version_number=VersionNumber(db_version.version_number),
        source=DocumentSource(FilePath(db_version.file_path), CommitHash(db_version.commit_hash)),
        title=db_version.title,
        doc_type=DocumentType(db_version.doc_type),
        tags=[Tag(name) for name in (db_version.tags or [])],
        variables=[_variable_from_dict(v) for v in (db_version.variables or [])],
        content=db_version.content,
        published_at=_as_utc(db_version.published_at),
        unpublished_at=_as_utc(db_version.unpublished_at),
        is_current_version=is_current,
        category=Category(db_version.category) if db_version.category else None,
    )


def _to_domain(db_document: DocumentModel) -> Document:
    """Преобразование модели БД в агрегат"""
    document = Document.reconstruct(
        id=DocumentID(db_document.id),
        repository_id=RepositoryID(db_document.repository_id),
        owner=db_document.owner,
        access_scope=AccessScope(db_document.access_scope),
        is_published=db_document.is_published,
        is_auto_update=db_document.is_auto_update,
        created_at=_as_utc(db_document.created_at),
        updated_at=_as_utc(db_document.updated_at),
        revision=db_document.revision,
    )
    for db_version in sorted(db_document.versions, key=lambda v: v.version_number):
        document.add_version(
            _version_to_domain(
                db_version,
                db_version.version_number == db_document.current_version_number,
            )
        )
    return document
