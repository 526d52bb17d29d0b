from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from opsdocs.domains.documents.errors import (
    DocumentAlreadyPublishedError,
    DocumentNotPublishedError,
    DomainValidationError,
    VersionAlreadyUnpublishedError,
    VersionMismatchError,
    VersionNotFoundError,
    VersionNotPublishedError,
)
from opsdocs.domains.documents.value_objects import (
    AccessScope,
    Category,
    DocumentID,
    DocumentSource,
    DocumentType,
    RepositoryID,
    Tag,
    VariableDefinition,
    VersionID,
    VersionNumber,
)


TITLE_MAX_LENGTH = 255
OWNER_MAX_LENGTH = 255


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(condition: bool, field: str, message: str) -> None:
    if not condition:
        raise DomainValidationError(field, message)


def _dedupe_tags(tags: Iterable[Tag]) -> Tuple[Tag, ...]:
    seen = []
    for tag in tags:
        if tag not in seen:
            seen.append(tag)
    return tuple(seen)


class DocumentVersion:
    """
    Версия документа: неизменяемый снимок содержимого.

    Содержимое, источник, заголовок, тип, теги и переменные фиксируются при
    создании. Меняется только состояние публикации и признак текущей версии.
    """

    def __init__(
        self,
        id: VersionID,
        document_id: DocumentID,
        version_number: VersionNumber,
        source: DocumentSource,
        title: str,
        doc_type: DocumentType,
        tags: Sequence[Tag],
        variables: Sequence[VariableDefinition],
        content: str,
        published_at: datetime,
        unpublished_at: Optional[datetime] = None,
        is_current_version: bool = False,
        category: Optional[Category] = None,
    ):
        self._id = id
        self._document_id = document_id
        self._version_number = version_number
        self._source = source
        self._title = title
        self._doc_type = doc_type
        self._tags = tuple(tags)
        self._variables = tuple(variables)
        self._content = content
        self._category = category
        self.published_at = published_at
        self.unpublished_at = unpublished_at
        self.is_current_version = is_current_version

    @classmethod
    def create_version(
        cls,
        id: VersionID,
        document_id: DocumentID,
        version_number: VersionNumber,
        source: DocumentSource,
        title: str,
        doc_type: DocumentType,
        tags: Optional[Iterable[Tag]],
        variables: Optional[Iterable[VariableDefinition]],
        content: str,
        category: Optional[Category] = None,
    ) -> "DocumentVersion":
        """Создание новой опубликованной текущей версии с проверкой всех полей"""
        _require(isinstance(id, VersionID), "id", "version ID cannot be empty")
        _require(isinstance(document_id, DocumentID), "document_id", "document ID cannot be empty")
        _require(
            isinstance(version_number, VersionNumber),
            "version_number",
            "version number cannot be zero",
        )
        _require(isinstance(source, DocumentSource), "source", "document source cannot be empty")
        _require(isinstance(title, str) and bool(title.strip()), "title", "title cannot be empty")
        _require(
            len(title) <= TITLE_MAX_LENGTH,
            "title",
            f"title cannot exceed {TITLE_MAX_LENGTH} characters",
        )
        _require(isinstance(doc_type, DocumentType), "doc_type", "invalid document type")

        tags = list(tags or [])
        _require(all(isinstance(t, Tag) for t in tags), "tags", "invalid tag")

        variables = list(variables or [])
        _require(
            all(isinstance(v, VariableDefinition) for v in variables),
            "variables",
            "invalid variable definition",
        )
        names = [v.name for v in variables]
        _require(len(names) == len(set(names)), "variables", "duplicate variable name")

        _require(isinstance(content, str) and content != "", "content", "content cannot be empty")
        _require(
            category is None or isinstance(category, Category),
            "category",
            "invalid category",
        )

        return cls(
            id=id,
            document_id=document_id,
            version_number=version_number,
            source=source,
            title=title,
            doc_type=doc_type,
            tags=_dedupe_tags(tags),
            variables=variables,
            content=content,
            published_at=utcnow(),
            unpublished_at=None,
            is_current_version=True,
            category=category,
        )

    @classmethod
    def reconstruct(
        cls,
        id: VersionID,
        document_id: DocumentID,
        version_number: VersionNumber,
        source: DocumentSource,
        title: str,
        doc_type: DocumentType,
        tags: Sequence[Tag],
        variables: Sequence[VariableDefinition],
        content: str,
        published_at: datetime,
        unpublished_at: Optional[datetime],
        is_current_version: bool,
        category: Optional[Category] = None,
    ) -> "DocumentVersion":
        """Восстановление версии из хранилища без повторной проверки"""
        return cls(
            id=id,
            document_id=document_id,
            version_number=version_number,
            source=source,
            title=title,
            doc_type=doc_type,
            tags=tags,
            variables=variables,
            content=content,
            published_at=published_at,
            unpublished_at=unpublished_at,
            is_current_version=is_current_version,
            category=category,
        )

    @property
    def id(self) -> VersionID:
        return self._id

    @property
    def document_id(self) -> DocumentID:
        return self._document_id

    @property
    def version_number(self) -> VersionNumber:
        return self._version_number

    @property
    def source(self) -> DocumentSource:
        return self._source

    @property
    def title(self) -> str:
        return self._title

    @property
    def doc_type(self) -> DocumentType:
        return self._doc_type

    @property
    def tags(self) -> Tuple[Tag, ...]:
        return self._tags

    @property
    def variables(self) -> Tuple[VariableDefinition, ...]:
        return self._variables

    @property
    def content(self) -> str:
        return self._content

    @property
    def category(self) -> Optional[Category]:
        return self._category

    @property
    def is_published(self) -> bool:
        return self.unpublished_at is None

    def mark_as_current(self) -> None:
        # Единственность текущей версии обеспечивает агрегат
        self.is_current_version = True

    def unpublish(self) -> None:
        """Снятие версии с публикации"""
        if self.unpublished_at is not None:
            raise VersionAlreadyUnpublishedError()
        self.unpublished_at = utcnow()
        self.is_current_version = False

    def republish(self) -> None:
        """Повторная публикация ранее снятой версии"""
        self.unpublished_at = None
        self.published_at = utcnow()

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocumentVersion):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"DocumentVersion(id={self._id}, document_id={self._document_id}, "
            f"version={self._version_number}, current={self.is_current_version})"
        )


class Document:
    """
    Документ (корень агрегата).

    Владеет упорядоченным списком версий, который только дополняется.
    Текущая версия хранится как номер, поэтому две текущие версии
    одновременно невозможны. Агрегат не потокобезопасен: загрузка,
    одно изменение и сохранение выполняются вызывающей стороной.
    """

    def __init__(
        self,
        id: DocumentID,
        repository_id: RepositoryID,
        owner: str,
        access_scope: AccessScope,
        is_published: bool = False,
        is_auto_update: bool = False,
        current_version_number: Optional[VersionNumber] = None,
        versions: Optional[Iterable[DocumentVersion]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        revision: int = 0,
    ):
        self._id = id
        self._repository_id = repository_id
        self._owner = owner
        self._access_scope = access_scope
        self._is_published = is_published
        self._is_auto_update = is_auto_update
        self._versions: List[DocumentVersion] = list(versions or [])
        self._current_version_number = current_version_number
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at
        self.revision = revision

    @classmethod
    def create_document(
        cls,
        id: DocumentID,
        repository_id: RepositoryID,
        owner: str,
        access_scope: Union[AccessScope, str],
    ) -> "Document":
        """Создание нового пустого неопубликованного документа"""
        _require(isinstance(id, DocumentID), "document_id", "document ID cannot be empty")
        _require(
            isinstance(repository_id, RepositoryID),
            "repository_id",
            "repository ID cannot be empty",
        )
        _require(isinstance(owner, str) and bool(owner.strip()), "owner", "owner cannot be empty")
        _require(
            len(owner.strip()) <= OWNER_MAX_LENGTH,
            "owner",
            f"owner cannot exceed {OWNER_MAX_LENGTH} characters",
        )
        scope = AccessScope.parse(access_scope)

        return cls(
            id=id,
            repository_id=repository_id,
            owner=owner.strip(),
            access_scope=scope,
        )

    @classmethod
    def reconstruct(
        cls,
        id: DocumentID,
        repository_id: RepositoryID,
        owner: str,
        access_scope: AccessScope,
        is_published: bool,
        is_auto_update: bool,
        created_at: datetime,
        updated_at: datetime,
        revision: int = 0,
    ) -> "Document":
        """
        Восстановление документа из хранилища без проверки бизнес-правил.

        Версии добавляются затем через add_version().
        """
        return cls(
            id=id,
            repository_id=repository_id,
            owner=owner,
            access_scope=access_scope,
            is_published=is_published,
            is_auto_update=is_auto_update,
            created_at=created_at,
            updated_at=updated_at,
            revision=revision,
        )

    @property
    def id(self) -> DocumentID:
        return self._id

    @property
    def repository_id(self) -> RepositoryID:
        return self._repository_id

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def access_scope(self) -> AccessScope:
        return self._access_scope

    @property
    def is_published(self) -> bool:
        return self._is_published

    @property
    def is_auto_update(self) -> bool:
        return self._is_auto_update

    @property
    def versions(self) -> Tuple[DocumentVersion, ...]:
        return tuple(self._versions)

    @property
    def current_version_number(self) -> Optional[VersionNumber]:
        return self._current_version_number

    @property
    def current_version(self) -> Optional[DocumentVersion]:
        if self._current_version_number is None:
            return None
        return self._find_version(self._current_version_number)

    @property
    def latest_version_number(self) -> Optional[VersionNumber]:
        if not self._versions:
            return None
        return max(v.version_number for v in self._versions)

    def get_version(self, version_number: Union[VersionNumber, int]) -> Optional[DocumentVersion]:
        """Поиск версии по номеру"""
        return self._find_version(_as_version_number(version_number))

    def publish(
        self,
        source: DocumentSource,
        title: str,
        doc_type: DocumentType,
        tags: Optional[Iterable[Tag]],
        variables: Optional[Iterable[VariableDefinition]],
        content: str,
        category: Optional[Category] = None,
    ) -> DocumentVersion:
        """Публикация новой версии: номер max+1, версия становится текущей"""
        latest = self.latest_version_number
        next_number = VersionNumber(1) if latest is None else latest.next()

        new_version = DocumentVersion.create_version(
            id=VersionID.generate(),
            document_id=self._id,
            version_number=next_number,
            source=source,
            title=title,
            doc_type=doc_type,
            tags=tags,
            variables=variables,
            content=content,
            category=category,
        )

        self._versions.append(new_version)
        self._point_current_to(new_version)
        self._is_published = True
        self._touch()
        return new_version

    def unpublish(self) -> None:
        """Снятие документа с публикации; история версий сохраняется"""
        if not self._is_published:
            raise DocumentNotPublishedError()

        current = self.current_version
        if current is not None:
            current.unpublish()

        self._current_version_number = None
        self._is_published = False
        self._touch()

    def rollback_to_version(self, version_number: Union[VersionNumber, int]) -> DocumentVersion:
        """Перевод указателя текущей версии на ранее опубликованную версию"""
        number = _as_version_number(version_number)
        if not self._is_published:
            raise DocumentNotPublishedError("cannot rollback unpublished document")

        target = self._find_version(number)
        if target is None:
            raise VersionNotFoundError(number.value)
        if not target.is_published:
            raise VersionNotPublishedError()

        self._point_current_to(target)
        self._touch()
        return target

    def publish_existing_version(self, version_number: Union[VersionNumber, int]) -> DocumentVersion:
        """Повторная публикация существующей версии неопубликованного документа"""
        number = _as_version_number(version_number)
        if self._is_published:
            raise DocumentAlreadyPublishedError()

        target = self._find_version(number)
        if target is None:
            raise VersionNotFoundError(number.value)

        target.republish()
        self._point_current_to(target)
        self._is_published = True
        self._touch()
        return target

    def update_access_scope(self, scope: Union[AccessScope, str]) -> None:
        new_scope = AccessScope.parse(scope)
        self._access_scope = new_scope
        self._touch()

    def enable_auto_update(self) -> None:
        self._is_auto_update = True
        self._touch()

    def disable_auto_update(self) -> None:
        self._is_auto_update = False
        self._touch()

    def add_version(self, version: Optional[DocumentVersion]) -> None:
        """Добавление версии при восстановлении из хранилища"""
        if version is None:
            raise DomainValidationError("version", "version cannot be None")
        if version.document_id != self._id:
            raise VersionMismatchError()

        self._versions.append(version)
        if version.is_current_version:
            self._point_current_to(version)

    def _find_version(self, number: VersionNumber) -> Optional[DocumentVersion]:
        for version in self._versions:
            if version.version_number == number:
                return version
        return None

    def _point_current_to(self, target: DocumentVersion) -> None:
        for version in self._versions:
            if version is not target:
                version.is_current_version = False
        target.mark_as_current()
        self._current_version_number = target.version_number

    def _touch(self) -> None:
        self.updated_at = utcnow()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"Document(id={self._id}, published={self._is_published}, "
            f"current={self._current_version_number}, versions={len(self._versions)})"
        )


def _as_version_number(value: Union[VersionNumber, int, Any]) -> VersionNumber:
    if isinstance(value, VersionNumber):
        return value
    return VersionNumber(value)
