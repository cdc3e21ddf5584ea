"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

Providers and the video catalog are replaced by in-process fakes; the
in-memory store stands in for PostgreSQL. Tests marked ``integration`` run
against a real PostgreSQL + pgvector database and are skipped unless
``--run-integration`` is passed and ``TEST_DATABASE_URL`` is set.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- pytest-asyncio: https://pytest-asyncio.readthedocs.io/
"""

import os
from typing import Any, Optional, Sequence

import pytest
import pytest_asyncio

from vidrecall.models.embedding import ContentType
from vidrecall.schemas.answer import ConversationMessage
from vidrecall.schemas.identity import AnonymousSessionId, UserId
from vidrecall.schemas.search import ChunkRecord
from vidrecall.services.processors.embedder import EmbeddingGenerator
from vidrecall.services.rag.catalog import InMemoryVideoCatalog
from vidrecall.services.rag.store import InMemoryEmbeddingStore


# ================================
# Fakes
# ================================

class FakeEmbeddingProvider:
    """
    Deterministic embedding provider.

    Texts listed in ``vectors`` get that vector, anything else gets a
    vector derived from its length. Calls whose 1-based number is in
    ``fail_calls`` raise.
    """

    def __init__(
        self,
        vectors: Optional[dict[str, list[float]]] = None,
        fail_calls: Sequence[int] = (),
        configured: bool = True
    ):
        self.vectors = vectors or {}
        self.fail_calls = set(fail_calls)
        self.configured = configured
        self.calls: list[list[str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def vector_for(self, text: str) -> list[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        return [float(len(text)), 1.0, 0.5]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_calls:
            raise RuntimeError("embedding provider unavailable")
        return [self.vector_for(text) for text in texts]


class FakeAnswerProvider:
    """Answer provider that returns a canned answer and records its calls."""

    def __init__(self, answer: str = "An answer.", configured: bool = True):
        self.answer = answer
        self.configured = configured
        self.calls: list[dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate(
        self,
        system_context: str,
        history: Sequence[ConversationMessage],
        question: str
    ) -> str:
        self.calls.append({
            "system_context": system_context,
            "history": list(history),
            "question": question,
        })
        return self.answer


# ================================
# Identity Fixtures
# ================================

@pytest.fixture
def user_owner() -> UserId:
    return UserId(user_id=1)


@pytest.fixture
def other_user_owner() -> UserId:
    return UserId(user_id=2)


@pytest.fixture
def anonymous_owner() -> AnonymousSessionId:
    return AnonymousSessionId(session_id="sess-abc123")


# ================================
# Service Fixtures
# ================================

@pytest.fixture
def make_embedding_provider():
    """Factory for FakeEmbeddingProvider (same arguments as the class)."""
    return FakeEmbeddingProvider


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def generator(embedding_provider) -> EmbeddingGenerator:
    return EmbeddingGenerator(embedding_provider, max_batch_size=20)


@pytest.fixture
def store() -> InMemoryEmbeddingStore:
    return InMemoryEmbeddingStore()


@pytest.fixture
def catalog() -> InMemoryVideoCatalog:
    return InMemoryVideoCatalog()


@pytest.fixture
def make_answer_provider():
    """Factory for FakeAnswerProvider (same arguments as the class)."""
    return FakeAnswerProvider


@pytest.fixture
def answer_provider() -> FakeAnswerProvider:
    return FakeAnswerProvider()


@pytest.fixture
def make_chunk():
    """
    Factory for chunk records.

    Usage:
        record = make_chunk(owner, video_id=1, chunk_index=0, vector=[1.0, 0.0])
    """
    def _make(
        owner,
        video_id: int = 1,
        chunk_index: int = 0,
        vector: Optional[list[float]] = None,
        content: Optional[str] = None,
        content_type: ContentType = ContentType.TRANSCRIPT,
        metadata: Optional[dict[str, Any]] = None
    ) -> ChunkRecord:
        return ChunkRecord(
            owner_key=owner,
            video_id=video_id,
            content_type=content_type,
            chunk_index=chunk_index,
            content=content or f"Video {video_id} chunk {chunk_index}",
            vector=vector or [1.0, 0.0, 0.0],
            metadata=metadata or {},
        )

    return _make


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def sql_session_factory():
    """
    Session factory bound to a fresh schema in TEST_DATABASE_URL.

    Tables are created before and dropped after each test.
    """
    from sqlalchemy import text

    from vidrecall.core.config import Settings
    from vidrecall.db.base import Base
    from vidrecall.db.session import create_engine, create_session_factory
    import vidrecall.models  # noqa: F401

    database_url = os.environ.get("TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("TEST_DATABASE_URL is not set")

    engine = create_engine(database_url, settings=Settings(_env_file=None, APP_ENV="staging"))

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ================================
# Pytest Hooks
# ================================

def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require PostgreSQL with pgvector"
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires PostgreSQL with pgvector)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is given."""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
