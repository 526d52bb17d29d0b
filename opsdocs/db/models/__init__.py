from opsdocs.db.models.document import DocumentModel, DocumentVersionModel

__all__ = [
    "DocumentModel",
    "DocumentVersionModel",
]
