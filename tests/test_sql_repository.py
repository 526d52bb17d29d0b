import uuid

import pytest
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from opsdocs.core.db import init_models
from opsdocs.db.models import DocumentModel
from opsdocs.db.repositories import SqlAlchemyDocumentRepository
from opsdocs.domains.documents.entities import Document
from opsdocs.domains.documents.errors import (
    ConcurrentUpdateError,
    DocumentNotFoundError,
    RepositoryError,
)
from opsdocs.domains.documents.repository import DocumentFilter
from opsdocs.domains.documents.value_objects import (
    AccessScope,
    Category,
    DocumentID,
    DocumentSource,
    DocumentType,
    RepositoryID,
    Tag,
    VariableDefinition,
    VersionNumber,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def _document(repository_id: RepositoryID, owner="admin", scope="public") -> Document:
    document = Document.create_document(DocumentID.generate(), repository_id, owner, scope)
    document.publish(
        DocumentSource.from_strings("docs/a.md", "abc1234"),
        "A",
        DocumentType.PROCEDURE,
        [Tag("db"), Tag("backup")],
        [VariableDefinition(name="host", label="Host", type="string", required=True, default_value="db1")],
        "x",
        Category("databases"),
    )
    return document


async def test_save_and_load_round_trip(sessionmaker):
    repository_id = RepositoryID(str(uuid.uuid4()))
    document = _document(repository_id)

    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)

    async with sessionmaker() as session:
        loaded = await SqlAlchemyDocumentRepository(session).find_by_id(document.id)

    assert loaded == document
    assert loaded.owner == "admin"
    assert loaded.is_published
    assert loaded.revision == 0
    assert loaded.current_version_number == VersionNumber(1)
    version = loaded.current_version
    assert version.title == "A"
    assert [t.name for t in version.tags] == ["db", "backup"]
    assert version.variables[0].default_value == "db1"
    assert version.category.name == "databases"
    assert version.published_at.tzinfo is not None


async def test_find_by_id_missing(sessionmaker):
    async with sessionmaker() as session:
        assert await SqlAlchemyDocumentRepository(session).find_by_id(DocumentID.generate()) is None


async def test_duplicate_save_fails(sessionmaker):
    document = _document(RepositoryID(str(uuid.uuid4())))
    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)
    async with sessionmaker() as session:
        with pytest.raises(RepositoryError):
            await SqlAlchemyDocumentRepository(session).save(document)


async def test_update_appends_versions_and_bumps_revision(sessionmaker):
    document = _document(RepositoryID(str(uuid.uuid4())))
    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)

    async with sessionmaker() as session:
        repository = SqlAlchemyDocumentRepository(session)
        loaded = await repository.find_by_id(document.id)
        loaded.publish(
            DocumentSource.from_strings("docs/a.md", "def5678"),
            "A2",
            DocumentType.PROCEDURE,
            [],
            [],
            "y",
        )
        loaded.rollback_to_version(1)
        await repository.update(loaded)
        assert loaded.revision == 1

    async with sessionmaker() as session:
        repository = SqlAlchemyDocumentRepository(session)
        reloaded = await repository.find_by_id(document.id)
        versions = await repository.find_versions_by_document_id(document.id)
        second = await repository.find_version_by_number(document.id, VersionNumber(2))
        missing = await repository.find_version_by_number(document.id, VersionNumber(3))

    assert reloaded.revision == 1
    assert reloaded.current_version_number == VersionNumber(1)
    assert [v.version_number.value for v in versions] == [1, 2]
    assert [v.is_current_version for v in versions] == [True, False]
    assert second.title == "A2"
    assert second.is_current_version is False
    assert missing is None


async def test_unpublish_is_persisted(sessionmaker):
    document = _document(RepositoryID(str(uuid.uuid4())))
    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)

    async with sessionmaker() as session:
        repository = SqlAlchemyDocumentRepository(session)
        loaded = await repository.find_by_id(document.id)
        loaded.unpublish()
        await repository.update(loaded)

    async with sessionmaker() as session:
        reloaded = await SqlAlchemyDocumentRepository(session).find_by_id(document.id)

    assert reloaded.is_published is False
    assert reloaded.current_version is None
    assert reloaded.versions[0].unpublished_at is not None


async def test_stale_update_is_rejected(sessionmaker):
    document = _document(RepositoryID(str(uuid.uuid4())))
    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)

    async with sessionmaker() as first_session, sessionmaker() as second_session:
        first = await SqlAlchemyDocumentRepository(first_session).find_by_id(document.id)
        second = await SqlAlchemyDocumentRepository(second_session).find_by_id(document.id)

        first.enable_auto_update()
        await SqlAlchemyDocumentRepository(first_session).update(first)

        second.update_access_scope("private")
        with pytest.raises(ConcurrentUpdateError):
            await SqlAlchemyDocumentRepository(second_session).update(second)

    async with sessionmaker() as session:
        reloaded = await SqlAlchemyDocumentRepository(session).find_by_id(document.id)
    assert reloaded.is_auto_update
    assert reloaded.access_scope is AccessScope.PUBLIC
    assert reloaded.revision == 1


async def test_find_published_and_by_repository(sessionmaker):
    repository_id = RepositoryID(str(uuid.uuid4()))
    public = _document(repository_id)
    private = _document(repository_id, owner="dba", scope="private")
    hidden = _document(repository_id)
    hidden.unpublish()
    other = _document(RepositoryID(str(uuid.uuid4())))

    async with sessionmaker() as session:
        repository = SqlAlchemyDocumentRepository(session)
        for document in (public, private, hidden, other):
            await repository.save(document)

    async with sessionmaker() as session:
        repository = SqlAlchemyDocumentRepository(session)
        in_repository = await repository.find_by_repository_id(repository_id)
        published = await repository.find_published()
        private_only = await repository.find_published(DocumentFilter(access_scope=AccessScope.PRIVATE))
        by_owner = await repository.find_published(DocumentFilter(owner="dba"))
        page = await repository.find_by_repository_id(repository_id, limit=2, offset=2)

    assert {d.id for d in in_repository} == {public.id, private.id, hidden.id}
    assert {d.id for d in published} == {public.id, private.id, other.id}
    assert [d.id for d in private_only] == [private.id]
    assert [d.id for d in by_owner] == [private.id]
    assert len(page) == 1


async def test_update_of_deleted_document(sessionmaker):
    document = _document(RepositoryID(str(uuid.uuid4())))
    async with sessionmaker() as session:
        await SqlAlchemyDocumentRepository(session).save(document)

    async with sessionmaker() as session:
        loaded = await SqlAlchemyDocumentRepository(session).find_by_id(document.id)

    async with sessionmaker() as session:
        await session.execute(delete(DocumentModel).where(DocumentModel.id == str(document.id)))
        await session.commit()

    loaded.unpublish()
    async with sessionmaker() as session:
        with pytest.raises(DocumentNotFoundError):
            await SqlAlchemyDocumentRepository(session).update(loaded)
