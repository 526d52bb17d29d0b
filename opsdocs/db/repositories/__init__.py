from opsdocs.db.repositories.document_repository import SqlAlchemyDocumentRepository
from opsdocs.db.repositories.memory_repository import InMemoryDocumentRepository

__all__ = [
    "SqlAlchemyDocumentRepository",
    "InMemoryDocumentRepository",
]
