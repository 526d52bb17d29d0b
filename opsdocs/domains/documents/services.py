import logging
from typing import Any, Callable, List, Optional, TypeVar

from opsdocs.core.exceptions import (
    ApplicationError,
    ConflictError,
    FieldError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)
from opsdocs.domains.documents.entities import OWNER_MAX_LENGTH, TITLE_MAX_LENGTH, Document
from opsdocs.domains.documents.errors import (
    ConcurrentUpdateError,
    DocumentNotFoundError,
    DomainError,
    DomainValidationError,
    RepositoryError,
    VersionNotFoundError,
)
from opsdocs.domains.documents.repository import DocumentFilter, DocumentRepository
from opsdocs.domains.documents.schemas import (
    CreateDocumentRequest,
    DocumentListItemResponse,
    DocumentResponse,
    DocumentVersionResponse,
    UpdateDocumentMetadataRequest,
    UpdateDocumentRequest,
    VariableDefinitionSchema,
    VersionHistoryResponse,
    to_document_list_item,
    to_document_response,
    to_document_version_response,
    to_version_history,
)
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
    VersionNumber,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _FieldErrors:
    """Накопитель ошибок валидации по полям"""

    def __init__(self):
        self.errors: List[FieldError] = []

    def collect(self, field: str, factory: Callable[..., T], *args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return factory(*args, **kwargs)
        except DomainValidationError as e:
            self.errors.append(FieldError(field=field, message=e.message))
            return None

    def add(self, field: str, message: str) -> None:
        self.errors.append(FieldError(field=field, message=message))

    def raise_if_any(self) -> None:
        if self.errors:
            raise ValidationFailedError(self.errors)


class DocumentService:
    """
    Сценарии работы с документами.

    Каждая операция: валидация входа -> загрузка агрегата (кроме создания) ->
    одна операция агрегата -> сохранение -> проекция ответа.
    """

    def __init__(self, repository: DocumentRepository):
        self.repository = repository

    async def create_document(self, request: CreateDocumentRequest) -> DocumentResponse:
        """Создание документа с первой версией"""
        errors = _FieldErrors()
        repository_id = errors.collect("repository_id", RepositoryID, request.repository_id)
        source = _collect_source(errors, request.file_path, request.commit_hash)
        _check_title(errors, request.title)
        doc_type = errors.collect("doc_type", DocumentType.parse, request.doc_type)
        _check_owner(errors, request.owner)
        tags = _collect_tags(errors, request.tags)
        variables = _collect_variables(errors, request.variables)
        _check_content(errors, request.content)
        category = _collect_category(errors, request.category)
        access_scope = errors.collect("access_scope", AccessScope.parse, request.access_scope)
        errors.raise_if_any()

        document_id = DocumentID.generate()
        try:
            document = Document.create_document(document_id, repository_id, request.owner, access_scope)
            if request.is_auto_update:
                document.enable_auto_update()
            document.publish(source, request.title, doc_type, tags, variables, request.content, category)
        except DomainError as e:
            raise _map_domain_error(e, str(document_id)) from e

        await self._save(document)
        logger.info(f"Document {document_id} created in repository {repository_id}")
        return to_document_response(document)

    async def update_document(self, document_id: str, request: UpdateDocumentRequest) -> DocumentResponse:
        """Обновление документа: публикация новой версии max+1"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        source = _collect_source(errors, request.file_path, request.commit_hash)
        _check_title(errors, request.title)
        doc_type = errors.collect("doc_type", DocumentType.parse, request.doc_type)
        tags = _collect_tags(errors, request.tags)
        variables = _collect_variables(errors, request.variables)
        _check_content(errors, request.content)
        category = _collect_category(errors, request.category)
        errors.raise_if_any()

        document = await self._load(doc_id)
        try:
            version = document.publish(
                source, request.title, doc_type, tags, variables, request.content, category
            )
        except DomainError as e:
            raise _map_domain_error(e, document_id) from e

        await self._update(document)
        logger.info(f"Document {document_id}: published version {version.version_number}")
        return to_document_response(document)

    async def get_document(self, document_id: str) -> DocumentResponse:
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        errors.raise_if_any()

        document = await self._load(doc_id)
        return to_document_response(document)

    async def get_document_version(self, document_id: str, version_number: int) -> DocumentVersionResponse:
        """Получение конкретной версии документа"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        number = errors.collect("version_number", VersionNumber, version_number)
        errors.raise_if_any()

        try:
            version = await self.repository.find_version_by_number(doc_id, number)
        except RepositoryError as e:
            raise InternalError(f"failed to find document version: {e}", e) from e
        if version is None:
            raise NotFoundError("DocumentVersion", f"{document_id}@v{version_number}")
        return to_document_version_response(version)

    async def get_document_versions(self, document_id: str) -> VersionHistoryResponse:
        """История версий документа"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        errors.raise_if_any()

        await self._load(doc_id)
        try:
            versions = await self.repository.find_versions_by_document_id(doc_id)
        except RepositoryError as e:
            raise InternalError(f"failed to find document versions: {e}", e) from e
        return to_version_history(document_id, versions)

    async def list_documents(
        self,
        access_scope: Optional[str] = None,
        owner: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DocumentListItemResponse]:
        """Список опубликованных документов"""
        errors = _FieldErrors()
        scope = None
        if access_scope is not None:
            scope = errors.collect("access_scope", AccessScope.parse, access_scope)
        errors.raise_if_any()

        try:
            documents = await self.repository.find_published(
                DocumentFilter(access_scope=scope, owner=owner), limit=limit, offset=offset
            )
        except RepositoryError as e:
            raise InternalError(f"failed to find documents: {e}", e) from e
        return [to_document_list_item(d) for d in documents]

    async def list_documents_by_repository(
        self,
        repository_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DocumentListItemResponse]:
        """Список документов репозитория (включая неопубликованные)"""
        errors = _FieldErrors()
        repo_id = errors.collect("repository_id", RepositoryID, repository_id)
        errors.raise_if_any()

        try:
            documents = await self.repository.find_by_repository_id(repo_id, limit=limit, offset=offset)
        except RepositoryError as e:
            raise InternalError(f"failed to find documents: {e}", e) from e
        return [to_document_list_item(d) for d in documents]

    async def publish_document_version(self, document_id: str, version_number: int) -> DocumentResponse:
        """
        Публикация указанной версии.

        Если версия уже текущая и документ опубликован - ответ без изменений.
        Опубликованный документ переключается на версию (как при откате),
        неопубликованный публикуется заново с этой версией.
        """
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        number = errors.collect("version_number", VersionNumber, version_number)
        errors.raise_if_any()

        document = await self._load(doc_id)
        if document.get_version(number) is None:
            raise NotFoundError("DocumentVersion", f"{document_id}@v{version_number}")

        if document.is_published and document.current_version_number == number:
            return to_document_response(document)

        try:
            if document.is_published:
                document.rollback_to_version(number)
            else:
                document.publish_existing_version(number)
        except DomainError as e:
            raise _map_domain_error(e, document_id) from e

        await self._update(document)
        logger.info(f"Document {document_id}: version {number} published")
        return to_document_response(document)

    async def rollback_document_version(self, document_id: str, version_number: int) -> DocumentResponse:
        """Откат на ранее опубликованную версию без создания новой"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        number = errors.collect("version_number", VersionNumber, version_number)
        errors.raise_if_any()

        document = await self._load(doc_id)
        try:
            document.rollback_to_version(number)
        except DomainError as e:
            raise _map_domain_error(e, document_id) from e

        await self._update(document)
        logger.info(f"Document {document_id}: rolled back to version {number}")
        return to_document_response(document)

    async def unpublish_document(self, document_id: str) -> DocumentResponse:
        """Снятие документа с публикации"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        errors.raise_if_any()

        document = await self._load(doc_id)
        try:
            document.unpublish()
        except DomainError as e:
            raise _map_domain_error(e, document_id) from e

        await self._update(document)
        logger.info(f"Document {document_id} unpublished")
        return to_document_response(document)

    async def update_document_metadata(
        self,
        document_id: str,
        request: UpdateDocumentMetadataRequest,
    ) -> DocumentResponse:
        """Частичное обновление: область видимости и автообновление"""
        errors = _FieldErrors()
        doc_id = errors.collect("document_id", DocumentID, document_id)
        scope = None
        if request.access_scope is not None:
            scope = errors.collect("access_scope", AccessScope.parse, request.access_scope)
        errors.raise_if_any()

        document = await self._load(doc_id)
        if scope is None and request.is_auto_update is None:
            return to_document_response(document)

        try:
            if scope is not None:
                document.update_access_scope(scope)
            if request.is_auto_update is not None:
                if request.is_auto_update:
                    document.enable_auto_update()
                else:
                    document.disable_auto_update()
        except DomainError as e:
            raise _map_domain_error(e, document_id) from e

        await self._update(document)
        return to_document_response(document)

    async def _load(self, document_id: DocumentID) -> Document:
        try:
            document = await self.repository.find_by_id(document_id)
        except RepositoryError as e:
            logger.exception(f"Failed to load document {document_id}")
            raise InternalError(f"failed to find document: {e}", e) from e
        if document is None:
            raise NotFoundError("Document", str(document_id))
        return document

    async def _save(self, document: Document) -> None:
        try:
            await self.repository.save(document)
        except RepositoryError as e:
            logger.exception(f"Failed to save document {document.id}")
            raise InternalError(f"failed to save document: {e}", e) from e

    async def _update(self, document: Document) -> None:
        try:
            await self.repository.update(document)
        except DocumentNotFoundError as e:
            logger.warning(f"Document {document.id} disappeared before update")
            raise NotFoundError("Document", str(document.id)) from e
        except ConcurrentUpdateError as e:
            logger.warning(f"Concurrent update of document {document.id} rejected")
            raise ConflictError(
                "Document", str(document.id), "document was modified concurrently"
            ) from e
        except RepositoryError as e:
            logger.exception(f"Failed to update document {document.id}")
            raise InternalError(f"failed to update document: {e}", e) from e


def _map_domain_error(error: DomainError, document_id: str) -> ApplicationError:
    """Преобразование ошибки бизнес-правила в ошибку прикладного слоя"""
    if isinstance(error, DomainValidationError):
        return ValidationFailedError([FieldError(field=error.field, message=error.message)])
    if isinstance(error, VersionNotFoundError):
        return NotFoundError("DocumentVersion", f"{document_id}@v{error.version_number}")
    return ConflictError("Document", document_id, error.message)


def _collect_source(errors: _FieldErrors, file_path: str, commit_hash: str) -> Optional[DocumentSource]:
    path = errors.collect("file_path", FilePath, file_path)
    commit = errors.collect("commit_hash", CommitHash, commit_hash)
    if path is None or commit is None:
        return None
    return errors.collect("source", DocumentSource, path, commit)


def _check_title(errors: _FieldErrors, title: str) -> None:
    if not title.strip():
        errors.add("title", "title cannot be empty")
    elif len(title) > TITLE_MAX_LENGTH:
        errors.add("title", f"title cannot exceed {TITLE_MAX_LENGTH} characters")


def _check_owner(errors: _FieldErrors, owner: str) -> None:
    if not owner.strip():
        errors.add("owner", "owner cannot be empty")
    elif len(owner.strip()) > OWNER_MAX_LENGTH:
        errors.add("owner", f"owner cannot exceed {OWNER_MAX_LENGTH} characters")


def _check_content(errors: _FieldErrors, content: str) -> None:
    if content == "":
        errors.add("content", "content cannot be empty")


def _collect_tags(errors: _FieldErrors, raw_tags: List[str]) -> List[Tag]:
    tags = []
    for i, raw in enumerate(raw_tags):
        tag = errors.collect(f"tags[{i}]", Tag, raw)
        if tag is not None:
            tags.append(tag)
    return tags


def _collect_variables(
    errors: _FieldErrors,
    raw_variables: List[VariableDefinitionSchema],
) -> List[VariableDefinition]:
    variables = []
    seen = set()
    for i, raw in enumerate(raw_variables):
        variable = errors.collect(
            f"variables[{i}]",
            VariableDefinition,
            name=raw.name,
            label=raw.label,
            type=raw.type,
            required=raw.required,
            description=raw.description,
            default_value=raw.default_value,
        )
        if variable is None:
            continue
        if variable.name in seen:
            errors.add(f"variables[{i}]", f"duplicate variable name: {variable.name}")
            continue
        seen.add(variable.name)
        variables.append(variable)
    return variables


def _collect_category(errors: _FieldErrors, raw: Optional[str]) -> Optional[Category]:
    if raw is None:
        return None
    return errors.collect("category", Category, raw)
