from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from opsdocs.core.config import settings
from opsdocs.core.exceptions import FieldError, ValidationFailedError
from opsdocs.core.db import get_db
from opsdocs.db.repositories import SqlAlchemyDocumentRepository
from opsdocs.domains.documents.schemas import (
    CreateDocumentRequest,
    DocumentListItemResponse,
    DocumentResponse,
    DocumentVersionResponse,
    UpdateDocumentMetadataRequest,
    UpdateDocumentRequest,
    VersionHistoryResponse,
)
from opsdocs.domains.documents.services import DocumentService

router = APIRouter(prefix="/documents", tags=["documents"])


def get_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(SqlAlchemyDocumentRepository(db))


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: CreateDocumentRequest,
    service: DocumentService = Depends(get_document_service),
):
    """Создание документа с первой опубликованной версией"""
    return await service.create_document(request)


@router.get("", response_model=List[DocumentListItemResponse])
async def list_documents(
    repository_id: Optional[str] = Query(None),
    access_scope: Optional[str] = Query(None),
    owner: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: DocumentService = Depends(get_document_service),
):
    """
    Список документов.

    С repository_id - все документы репозитория (фильтры access_scope и owner
    с ним не сочетаются), иначе только опубликованные с этими фильтрами.
    """
    if repository_id is not None and (access_scope is not None or owner is not None):
        raise ValidationFailedError([
            FieldError(
                field="repository_id",
                message="repository_id cannot be combined with access_scope or owner",
            )
        ])

    offset = (page - 1) * per_page
    if repository_id is not None:
        return await service.list_documents_by_repository(repository_id, limit=per_page, offset=offset)
    return await service.list_documents(
        access_scope=access_scope,
        owner=owner,
        limit=per_page,
        offset=offset,
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
):
    return await service.get_document(document_id)


@router.put("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: str,
    request: UpdateDocumentRequest,
    service: DocumentService = Depends(get_document_service),
):
    """Публикация новой версии документа"""
    return await service.update_document(document_id, request)


@router.get("/{document_id}/versions", response_model=VersionHistoryResponse)
async def get_document_versions(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
):
    return await service.get_document_versions(document_id)


@router.get("/{document_id}/versions/{version_number}", response_model=DocumentVersionResponse)
async def get_document_version(
    document_id: str,
    version_number: int,
    service: DocumentService = Depends(get_document_service),
):
    return await service.get_document_version(document_id, version_number)


@router.post("/{document_id}/versions/{version_number}/publish", response_model=DocumentResponse)
async def publish_document_version(
    document_id: str,
    version_number: int,
    service: DocumentService = Depends(get_document_service),
):
    """Публикация существующей версии"""
    return await service.publish_document_version(document_id, version_number)


@router.post("/{document_id}/versions/{version_number}/rollback", response_model=DocumentResponse)
async def rollback_document_version(
    document_id: str,
    version_number: int,
    service: DocumentService = Depends(get_document_service),
):
    """Откат на предыдущую версию"""
    return await service.rollback_document_version(document_id, version_number)


@router.post("/{document_id}/unpublish", response_model=DocumentResponse)
async def unpublish_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
):
    return await service.unpublish_document(document_id)


@router.patch("/{document_id}/metadata", response_model=DocumentResponse)
async def update_document_metadata(
    document_id: str,
    request: UpdateDocumentMetadataRequest,
    service: DocumentService = Depends(get_document_service),
):
    """Изменение области видимости и автообновления"""
    return await service.update_document_metadata(document_id, request)
