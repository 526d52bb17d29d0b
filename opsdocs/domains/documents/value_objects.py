import posixpath
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from opsdocs.domains.documents.errors import DomainValidationError


TAG_MAX_LENGTH = 50
CATEGORY_MAX_LENGTH = 100
SHORT_HASH_LENGTH = 7
COMMIT_HASH_MAX_LENGTH = 64

_VARIABLE_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*")


def _validate_uuid(value: Any, field_name: str, label: str) -> str:
    if not isinstance(value, str) or not value:
        raise DomainValidationError(field_name, f"{label} cannot be empty")
    try:
        uuid.UUID(value)
    except ValueError:
        raise DomainValidationError(field_name, f"{label} must be a valid UUID")
    return value


@dataclass(frozen=True)
class DocumentID:
    """Идентификатор документа (UUID)"""
    value: str

    def __post_init__(self):
        _validate_uuid(self.value, "document_id", "document ID")

    @classmethod
    def generate(cls) -> "DocumentID":
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VersionID:
    """Идентификатор версии документа (UUID)"""
    value: str

    def __post_init__(self):
        _validate_uuid(self.value, "version_id", "version ID")

    @classmethod
    def generate(cls) -> "VersionID":
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RepositoryID:
    """Идентификатор Git-репозитория, из которого берутся документы"""
    value: str

    def __post_init__(self):
        _validate_uuid(self.value, "repository_id", "repository ID")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class VersionNumber:
    """Порядковый номер версии, начиная с 1"""
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise DomainValidationError("version_number", "version number must be an integer")
        if self.value < 1:
            raise DomainValidationError("version_number", "version number must be at least 1")

    def next(self) -> "VersionNumber":
        return VersionNumber(self.value + 1)

    def previous(self) -> "VersionNumber":
        if self.value < 2:
            raise DomainValidationError(
                "version_number", "cannot get previous version of version 1"
            )
        return VersionNumber(self.value - 1)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FilePath:
    """Путь к файлу внутри репозитория (нормализованный)"""
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise DomainValidationError("file_path", "file path cannot be empty")
        cleaned = posixpath.normpath(self.value.strip())
        if cleaned == ".." or cleaned.startswith("../"):
            raise DomainValidationError("file_path", "file path cannot escape repository root")
        object.__setattr__(self, "value", cleaned)

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.value)[1]

    @property
    def is_markdown(self) -> bool:
        return self.extension.lower() in (".md", ".markdown")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CommitHash:
    """Хеш Git-коммита (полный или сокращенный, не короче 7 символов)"""
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise DomainValidationError("commit_hash", "commit hash cannot be empty")
        cleaned = self.value.strip()
        if len(cleaned) < SHORT_HASH_LENGTH:
            raise DomainValidationError(
                "commit_hash", f"commit hash must be at least {SHORT_HASH_LENGTH} characters"
            )
        if len(cleaned) > COMMIT_HASH_MAX_LENGTH:
            raise DomainValidationError(
                "commit_hash", f"commit hash cannot exceed {COMMIT_HASH_MAX_LENGTH} characters"
            )
        object.__setattr__(self, "value", cleaned)

    def short(self) -> str:
        return self.value[:SHORT_HASH_LENGTH]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DocumentSource:
    """Источник версии: файл в репозитории на конкретном коммите"""
    file_path: FilePath
    commit_hash: CommitHash

    def __post_init__(self):
        if not isinstance(self.file_path, FilePath):
            raise DomainValidationError("file_path", "file path cannot be empty")
        if not isinstance(self.commit_hash, CommitHash):
            raise DomainValidationError("commit_hash", "commit hash cannot be empty")

    @classmethod
    def from_strings(cls, file_path: str, commit_hash: str) -> "DocumentSource":
        return cls(FilePath(file_path), CommitHash(commit_hash))

    def __str__(self) -> str:
        return f"{self.file_path}@{self.commit_hash.short()}"


class AccessScope(str, Enum):
    """Область видимости документа"""
    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def parse(cls, value: Any) -> "AccessScope":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise DomainValidationError(
                "access_scope", "invalid access scope: must be 'public' or 'private'"
            )


class DocumentType(str, Enum):
    """Тип документа"""
    PROCEDURE = "procedure"
    KNOWLEDGE = "knowledge"

    @classmethod
    def parse(cls, value: Any) -> "DocumentType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise DomainValidationError(
                "doc_type", "invalid document type: must be 'procedure' or 'knowledge'"
            )


class VariableType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"

    @classmethod
    def parse(cls, value: Any) -> "VariableType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise DomainValidationError(
                "type",
                "invalid variable type: must be 'string', 'number', 'boolean', or 'date'",
            )


@dataclass(frozen=True)
class Tag:
    """Тег документа; пробелы по краям отбрасываются"""
    name: str

    def __post_init__(self):
        trimmed = self.name.strip() if isinstance(self.name, str) else ""
        if not trimmed:
            raise DomainValidationError("tag", "tag name cannot be empty")
        if len(trimmed) > TAG_MAX_LENGTH:
            raise DomainValidationError(
                "tag", f"tag name cannot exceed {TAG_MAX_LENGTH} characters"
            )
        object.__setattr__(self, "name", trimmed)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Category:
    """Категория для группировки документов"""
    name: str

    def __post_init__(self):
        trimmed = self.name.strip() if isinstance(self.name, str) else ""
        if not trimmed:
            raise DomainValidationError("category", "category name cannot be empty")
        if len(trimmed) > CATEGORY_MAX_LENGTH:
            raise DomainValidationError(
                "category", f"category name cannot exceed {CATEGORY_MAX_LENGTH} characters"
            )
        object.__setattr__(self, "name", trimmed)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class VariableDefinition:
    """
    Описание переменной, которую можно подставить в документ при выполнении.

    default_value не типизировано и хранится как есть.
    """
    name: str
    label: str
    type: VariableType
    required: bool = False
    description: str = ""
    default_value: Optional[Any] = field(default=None, hash=False)

    def __post_init__(self):
        if not self.name:
            raise DomainValidationError("name", "variable name cannot be empty")
        if not isinstance(self.name, str) or not _VARIABLE_NAME_RE.fullmatch(self.name):
            raise DomainValidationError(
                "name",
                "variable name must be alphanumeric with underscores, starting with a letter",
            )
        if not isinstance(self.label, str) or not self.label.strip():
            raise DomainValidationError("label", "variable label cannot be empty")
        object.__setattr__(self, "type", VariableType.parse(self.type))
        object.__setattr__(self, "required", bool(self.required))
        object.__setattr__(self, "description", self.description or "")
