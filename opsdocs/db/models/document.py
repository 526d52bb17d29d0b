from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from opsdocs.core.db import Base


class DocumentModel(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    repository_id = Column(String(36), nullable=False, index=True)
    owner = Column(String(255), nullable=False)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    is_auto_update = Column(Boolean, nullable=False, default=False)
    access_scope = Column(String(50), nullable=False, index=True)
    # номер текущей версии; NULL - текущей версии нет
    current_version_number = Column(Integer, nullable=True)
    revision = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    versions = relationship(
        "DocumentVersionModel",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentVersionModel.version_number",
    )


class DocumentVersionModel(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
    )

    id = Column(String(36), primary_key=True)
    document_id = Column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number = Column(Integer, nullable=False)
    file_path = Column(Text, nullable=False)
    commit_hash = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    doc_type = Column(String(50), nullable=False, index=True)
    category = Column(String(100), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    variables = Column(JSON, nullable=False, default=list)
    content = Column(Text, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=False)
    unpublished_at = Column(DateTime(timezone=True), nullable=True)

    document = relationship("DocumentModel", back_populates="versions")
