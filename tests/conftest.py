import os
import sys
import logging
import uuid

import pytest

from opsdocs.db.repositories import InMemoryDocumentRepository
from opsdocs.domains.documents.services import DocumentService


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
        for h in root.handlers
    ):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# anyio гоняет async-тесты на asyncio
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repository_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def memory_repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def service(memory_repository) -> DocumentService:
    return DocumentService(memory_repository)
