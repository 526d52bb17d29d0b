from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from opsdocs.domains.documents.entities import Document, DocumentVersion


class VariableDefinitionSchema(BaseModel):
    """Схема определения переменной документа"""
    name: str
    label: str
    description: str = ""
    type: str = "string"
    required: bool = False
    default_value: Optional[Any] = None


class CreateDocumentRequest(BaseModel):
    """Схема для создания документа"""
    repository_id: str
    file_path: str
    commit_hash: str
    title: str
    doc_type: str = Field(..., description="procedure | knowledge")
    owner: str
    tags: List[str] = Field(default_factory=list)
    variables: List[VariableDefinitionSchema] = Field(default_factory=list)
    content: str
    category: Optional[str] = None
    access_scope: str = Field(..., description="public | private")
    is_auto_update: bool = False


class UpdateDocumentRequest(BaseModel):
    """Схема для обновления документа (новая версия)"""
    file_path: str
    commit_hash: str
    title: str
    doc_type: str
    tags: List[str] = Field(default_factory=list)
    variables: List[VariableDefinitionSchema] = Field(default_factory=list)
    content: str
    category: Optional[str] = None


class UpdateDocumentMetadataRequest(BaseModel):
    """Частичное обновление метаданных; отсутствующие поля не меняются"""
    access_scope: Optional[str] = None
    is_auto_update: Optional[bool] = None


class DocumentVersionResponse(BaseModel):
    id: str
    document_id: str
    version_number: int
    file_path: str
    commit_hash: str
    title: str
    doc_type: str
    category: Optional[str] = None
    tags: List[str]
    variables: List[VariableDefinitionSchema]
    content: str
    published_at: datetime
    unpublished_at: Optional[datetime] = None
    is_current: bool

    model_config = ConfigDict(frozen=True)


class DocumentResponse(BaseModel):
    id: str
    repository_id: str
    owner: str
    is_published: bool
    is_auto_update: bool
    access_scope: str
    current_version: Optional[DocumentVersionResponse] = None
    version_count: int
    revision: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


class DocumentListItemResponse(BaseModel):
    id: str
    repository_id: str
    title: str = ""
    owner: str
    doc_type: str = ""
    tags: List[str] = Field(default_factory=list)
    is_published: bool
    access_scope: str
    version_count: int
    created_at: datetime
    updated_at: datetime


class VersionHistoryResponse(BaseModel):
    document_id: str
    versions: List[DocumentVersionResponse]


def to_document_version_response(version: DocumentVersion) -> DocumentVersionResponse:
    """Проекция версии документа"""
    return DocumentVersionResponse(
        id=str(version.id),
        document_id=str(version.document_id),
        version_number=version.version_number.value,
        file_path=str(version.source.file_path),
        commit_hash=str(version.source.commit_hash),
        title=version.title,
        doc_type=version.doc_type.value,
        category=version.category.name if version.category else None,
        tags=[tag.name for tag in version.tags],
        variables=[
            VariableDefinitionSchema(
                name=v.name,
                label=v.label,
                description=v.description,
                type=v.type.value,
                required=v.required,
                default_value=v.default_value,
            )
            for v in version.variables
        ],
        content=version.content,
        published_at=version.published_at,
        unpublished_at=version.unpublished_at,
        is_current=version.is_current_version,
    )


def to_document_response(document: Document) -> DocumentResponse:
    """Проекция документа с текущей версией"""
    current = document.current_version
    return DocumentResponse(
        id=str(document.id),
        repository_id=str(document.repository_id),
        owner=document.owner,
        is_published=document.is_published,
        is_auto_update=document.is_auto_update,
        access_scope=document.access_scope.value,
        current_version=to_document_version_response(current) if current else None,
        version_count=len(document.versions),
        revision=document.revision,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def to_document_list_item(document: Document) -> DocumentListItemResponse:
    current = document.current_version
    return DocumentListItemResponse(
        id=str(document.id),
        repository_id=str(document.repository_id),
        title=current.title if current else "",
        owner=document.owner,
        doc_type=current.doc_type.value if current else "",
        tags=[tag.name for tag in current.tags] if current else [],
        is_published=document.is_published,
        access_scope=document.access_scope.value,
        version_count=len(document.versions),
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def to_version_history(document_id: str, versions: List[DocumentVersion]) -> VersionHistoryResponse:
    return VersionHistoryResponse(
        document_id=document_id,
        versions=[to_document_version_response(v) for v in versions],
    )
