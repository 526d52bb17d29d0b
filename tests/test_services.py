import uuid

import anyio
import pytest

from opsdocs.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)
from opsdocs.db.repositories import InMemoryDocumentRepository
from opsdocs.domains.documents.errors import RepositoryError
from opsdocs.domains.documents.schemas import (
    CreateDocumentRequest,
    UpdateDocumentMetadataRequest,
    UpdateDocumentRequest,
)
from opsdocs.domains.documents.services import DocumentService
from opsdocs.domains.documents.value_objects import DocumentID

from tests.factories import create_payload, update_payload

pytestmark = pytest.mark.anyio


async def _create(service, repository_id, **overrides):
    return await service.create_document(CreateDocumentRequest(**create_payload(repository_id, **overrides)))


async def _update(service, document_id, **overrides):
    return await service.update_document(document_id, UpdateDocumentRequest(**update_payload(**overrides)))


async def test_create_document_publishes_first_version(service, repository_id):
    response = await _create(service, repository_id)

    assert response.is_published
    assert response.access_scope == "public"
    assert response.version_count == 1
    assert response.revision == 0
    assert response.current_version.version_number == 1
    assert response.current_version.is_current
    assert response.current_version.doc_type == "procedure"
    assert response.current_version.category == "runbooks"
    assert response.current_version.variables[0].type == "string"


async def test_create_document_collects_all_field_errors(service, repository_id, memory_repository):
    with pytest.raises(ValidationFailedError) as exc:
        await _create(
            service,
            repository_id,
            title=" ",
            doc_type="memo",
            commit_hash="abc",
            access_scope="group",
            tags=["ok", " "],
            variables=[
                {"name": "env", "label": "Env"},
                {"name": "env", "label": "Env again"},
                {"name": "9x", "label": "Bad"},
            ],
        )

    fields = exc.value.fields
    assert "title" in fields
    assert "doc_type" in fields
    assert "commit_hash" in fields
    assert "access_scope" in fields
    assert "tags[1]" in fields
    assert "variables[1]" in fields
    assert "variables[2]" in fields
    assert memory_repository._documents == {}


async def test_update_document_appends_version(service, repository_id):
    created = await _create(service, repository_id)

    updated = await _update(service, created.id)

    assert updated.version_count == 2
    assert updated.current_version.version_number == 2
    assert updated.current_version.title == "Restart API v2"
    assert updated.revision == 1


async def test_update_document_with_empty_title_changes_nothing(service, repository_id):
    created = await _create(service, repository_id)

    with pytest.raises(ValidationFailedError) as exc:
        await _update(service, created.id, title="")
    assert exc.value.fields == ["title"]

    document = await service.get_document(created.id)
    assert document.version_count == 1


async def test_update_missing_document(service):
    with pytest.raises(NotFoundError) as exc:
        await _update(service, str(uuid.uuid4()))
    assert exc.value.resource_type == "Document"


async def test_invalid_document_id(service):
    with pytest.raises(ValidationFailedError) as exc:
        await service.get_document("nope")
    assert exc.value.fields == ["document_id"]


async def test_rollback_document_version(service, repository_id):
    created = await _create(service, repository_id)
    await _update(service, created.id)

    response = await service.rollback_document_version(created.id, 1)

    assert response.current_version.version_number == 1
    assert response.current_version.title == "Restart API"
    assert response.version_count == 2


async def test_rollback_to_missing_version_is_not_found(service, repository_id):
    created = await _create(service, repository_id)
    with pytest.raises(NotFoundError) as exc:
        await service.rollback_document_version(created.id, 5)
    assert exc.value.resource_type == "DocumentVersion"


async def test_rollback_of_unpublished_document_conflicts(service, repository_id):
    created = await _create(service, repository_id)
    await service.unpublish_document(created.id)

    with pytest.raises(ConflictError) as exc:
        await service.rollback_document_version(created.id, 1)
    assert exc.value.reason == "cannot rollback unpublished document"


async def test_publish_current_version_is_idempotent(service, repository_id):
    created = await _create(service, repository_id)
    updated = await _update(service, created.id)

    response = await service.publish_document_version(created.id, 2)

    assert response == updated
    assert response.version_count == 2
    assert response.revision == 1


async def test_publish_older_version_of_published_document(service, repository_id):
    created = await _create(service, repository_id)
    await _update(service, created.id)

    response = await service.publish_document_version(created.id, 1)

    assert response.current_version.version_number == 1
    assert response.version_count == 2


async def test_publish_version_of_unpublished_document(service, repository_id):
    created = await _create(service, repository_id)
    await _update(service, created.id)
    unpublished = await service.unpublish_document(created.id)
    assert unpublished.is_published is False
    assert unpublished.current_version is None

    response = await service.publish_document_version(created.id, 1)

    assert response.is_published
    assert response.current_version.version_number == 1
    assert response.current_version.unpublished_at is None
    assert response.version_count == 2


async def test_publish_missing_version(service, repository_id):
    created = await _create(service, repository_id)
    with pytest.raises(NotFoundError):
        await service.publish_document_version(created.id, 3)
    with pytest.raises(ValidationFailedError):
        await service.publish_document_version(created.id, 0)


async def test_unpublish_twice_conflicts(service, repository_id):
    created = await _create(service, repository_id)
    await service.unpublish_document(created.id)
    with pytest.raises(ConflictError):
        await service.unpublish_document(created.id)


async def test_get_versions_and_single_version(service, repository_id):
    created = await _create(service, repository_id)
    await _update(service, created.id)

    history = await service.get_document_versions(created.id)
    assert [v.version_number for v in history.versions] == [1, 2]
    assert [v.is_current for v in history.versions] == [False, True]

    version = await service.get_document_version(created.id, 1)
    assert version.title == "Restart API"

    with pytest.raises(NotFoundError):
        await service.get_document_version(created.id, 9)


async def test_list_documents_filters(service, repository_id):
    public = await _create(service, repository_id)
    private = await _create(service, repository_id, access_scope="private", owner="dba")
    hidden = await _create(service, repository_id)
    await service.unpublish_document(hidden.id)

    published = await service.list_documents()
    assert {d.id for d in published} == {public.id, private.id}

    private_only = await service.list_documents(access_scope="private")
    assert [d.id for d in private_only] == [private.id]

    by_owner = await service.list_documents(owner="ops-team")
    assert [d.id for d in by_owner] == [public.id]

    by_repository = await service.list_documents_by_repository(repository_id)
    assert len(by_repository) == 3

    with pytest.raises(ValidationFailedError):
        await service.list_documents(access_scope="team")


async def test_list_documents_pagination(service, repository_id):
    for _ in range(3):
        await _create(service, repository_id)

    first = await service.list_documents_by_repository(repository_id, limit=2, offset=0)
    second = await service.list_documents_by_repository(repository_id, limit=2, offset=2)

    assert len(first) == 2
    assert len(second) == 1
    assert not {d.id for d in first} & {d.id for d in second}


async def test_update_metadata(service, repository_id):
    created = await _create(service, repository_id)

    response = await service.update_document_metadata(
        created.id,
        UpdateDocumentMetadataRequest(access_scope="private", is_auto_update=True),
    )
    assert response.access_scope == "private"
    assert response.is_auto_update
    assert response.revision == 1

    unchanged = await service.update_document_metadata(created.id, UpdateDocumentMetadataRequest())
    assert unchanged.revision == 1

    with pytest.raises(ValidationFailedError):
        await service.update_document_metadata(
            created.id, UpdateDocumentMetadataRequest(access_scope="everyone")
        )


async def test_stale_revision_is_a_conflict(repository_id):
    repository = InMemoryDocumentRepository()
    service = DocumentService(repository)
    created = await _create(service, repository_id)

    stale = await repository.find_by_id(DocumentID(created.id))
    await _update(service, created.id)

    stale.enable_auto_update()
    with pytest.raises(ConflictError):
        await DocumentService(repository)._update(stale)


class _BrokenRepository(InMemoryDocumentRepository):
    async def save(self, document):
        raise RepositoryError("disk full")

    async def find_by_id(self, document_id):
        raise RepositoryError("connection lost")


async def test_repository_failures_are_internal_errors(repository_id):
    service = DocumentService(_BrokenRepository())

    with pytest.raises(InternalError) as exc:
        await _create(service, repository_id)
    assert "failed to save document" in exc.value.message

    with pytest.raises(InternalError) as exc:
        await service.get_document(str(uuid.uuid4()))
    assert "failed to find document" in exc.value.message


async def test_create_document_rejects_long_owner(service, repository_id):
    with pytest.raises(ValidationFailedError) as exc:
        await _create(service, repository_id, owner="x" * 300)
    assert exc.value.fields == ["owner"]


async def test_create_document_rejects_long_commit_hash(service, repository_id):
    with pytest.raises(ValidationFailedError) as exc:
        await _create(service, repository_id, commit_hash="f" * 65)
    assert exc.value.fields == ["commit_hash"]


@pytest.mark.parametrize("number", [0, -3])
async def test_rollback_to_non_positive_version_is_invalid(service, repository_id, number):
    created = await _create(service, repository_id)

    with pytest.raises(ValidationFailedError) as exc:
        await service.rollback_document_version(created.id, number)
    assert exc.value.fields == ["version_number"]


class _VanishingRepository(InMemoryDocumentRepository):
    """Документ удаляется сразу после чтения"""

    async def find_by_id(self, document_id):
        document = await super().find_by_id(document_id)
        self._documents.pop(str(document_id), None)
        return document


async def test_update_of_deleted_document_is_not_found(repository_id):
    service = DocumentService(_VanishingRepository())
    created = await _create(service, repository_id)

    with pytest.raises(NotFoundError) as exc:
        await service.unpublish_document(created.id)
    assert exc.value.resource_type == "Document"
    assert exc.value.resource_id == created.id


async def test_memory_repository_serves_concurrent_writers(memory_repository, repository_id):
    service = DocumentService(memory_repository)

    async with anyio.create_task_group() as tg:
        for _ in range(10):
            tg.start_soon(_create, service, repository_id)

    documents = await service.list_documents_by_repository(repository_id)
    assert len(documents) == 10
