"""
Tests for the in-memory embedding store and store construction.

The SQL store is covered in tests/integration/test_sql_store.py.
"""

import pytest
from unittest.mock import Mock, patch

from vidrecall.core.exceptions import ConfigurationError
from vidrecall.models.embedding import ContentType
from vidrecall.services.rag.store import (
    ChunkFilter,
    DuplicateChunkError,
    InMemoryEmbeddingStore,
    SQLEmbeddingStore,
    create_store,
)


@pytest.mark.asyncio
class TestInMemoryStore:

    async def test_insert_assigns_ids(self, store, user_owner, make_chunk):
        ids = await store.insert_many([
            make_chunk(user_owner, chunk_index=0),
            make_chunk(user_owner, chunk_index=1),
        ])
        single = await store.insert(make_chunk(user_owner, chunk_index=2))

        assert ids == [1, 2]
        assert single == 3
        assert len(store) == 3

    async def test_round_trip(self, store, user_owner, make_chunk):
        """Stored fields come back unchanged."""
        record = make_chunk(
            user_owner,
            video_id=7,
            chunk_index=3,
            vector=[0.25, -0.5, 1.0],
            content="Hooks let you use state.",
            content_type=ContentType.NOTE,
            metadata={"position": 3, "length": 24},
        )
        await store.insert(record)

        [found] = await store.find(ChunkFilter(owner_key=user_owner))

        assert found.id == 1
        assert found.model_dump(exclude={"id"}) == record.model_dump(exclude={"id"})

    async def test_duplicate_rejected_atomically(self, store, user_owner, make_chunk):
        await store.insert(make_chunk(user_owner, chunk_index=0))

        with pytest.raises(DuplicateChunkError):
            await store.insert_many([
                make_chunk(user_owner, chunk_index=1),
                make_chunk(user_owner, chunk_index=0),
            ])

        assert len(store) == 1

    async def test_same_index_for_other_owner(self, store, user_owner, other_user_owner, make_chunk):
        await store.insert(make_chunk(user_owner, chunk_index=0))
        await store.insert(make_chunk(other_user_owner, chunk_index=0))

        assert len(store) == 2

    async def test_delete_by_video(self, store, user_owner, make_chunk):
        await store.insert_many([
            make_chunk(user_owner, video_id=1, chunk_index=0),
            make_chunk(user_owner, video_id=1, chunk_index=0, content_type=ContentType.NOTE),
            make_chunk(user_owner, video_id=2, chunk_index=0),
        ])

        assert await store.delete_by_video(1) == 2
        assert await store.delete_by_video(1) == 0
        remaining = await store.find(ChunkFilter())
        assert [r.video_id for r in remaining] == [2]

    async def test_delete_by_video_and_type(self, store, user_owner, make_chunk):
        await store.insert_many([
            make_chunk(user_owner, video_id=1, chunk_index=0),
            make_chunk(user_owner, video_id=1, chunk_index=1),
            make_chunk(user_owner, video_id=1, chunk_index=0, content_type=ContentType.SUMMARY),
        ])

        assert await store.delete_by_video_and_type(1, ContentType.TRANSCRIPT) == 2
        remaining = await store.find(ChunkFilter())
        assert [r.content_type for r in remaining] == [ContentType.SUMMARY]

    async def test_find_filters(self, store, user_owner, other_user_owner, make_chunk):
        await store.insert_many([
            make_chunk(user_owner, video_id=1, chunk_index=0),
            make_chunk(user_owner, video_id=2, chunk_index=0, content_type=ContentType.NOTE),
            make_chunk(other_user_owner, video_id=3, chunk_index=0),
        ])

        by_owner = await store.find(ChunkFilter(owner_key=user_owner))
        by_video = await store.find(ChunkFilter(video_ids=frozenset({2, 3})))
        by_type = await store.find(ChunkFilter(content_types=(ContentType.NOTE,)))

        assert {r.video_id for r in by_owner} == {1, 2}
        assert {r.video_id for r in by_video} == {2, 3}
        assert [r.video_id for r in by_type] == [2]

    async def test_empty_allow_list_matches_nothing(self, store, user_owner, make_chunk):
        await store.insert(make_chunk(user_owner))

        assert await store.find(ChunkFilter(video_ids=frozenset())) == []

    async def test_filters_apply_before_ceiling(self, store, user_owner, other_user_owner, make_chunk):
        """Another owner's rows never crowd out the requested owner's."""
        await store.insert_many([
            make_chunk(user_owner, video_id=1, chunk_index=i) for i in range(150)
        ])
        await store.insert_many([
            make_chunk(other_user_owner, video_id=2, chunk_index=i) for i in range(5)
        ])

        assert len(await store.find(ChunkFilter(owner_key=user_owner), limit=100)) == 100
        assert len(await store.find(ChunkFilter(owner_key=other_user_owner), limit=100)) == 5

    async def test_find_ordering(self, store, user_owner, make_chunk):
        await store.insert_many([
            make_chunk(user_owner, video_id=2, chunk_index=1),
            make_chunk(user_owner, video_id=1, chunk_index=0, content_type=ContentType.NOTE),
            make_chunk(user_owner, video_id=2, chunk_index=0),
            make_chunk(user_owner, video_id=1, chunk_index=0),
        ])

        found = await store.find(ChunkFilter())

        assert [(r.video_id, r.content_type, r.chunk_index) for r in found] == [
            (1, ContentType.TRANSCRIPT, 0),
            (1, ContentType.NOTE, 0),
            (2, ContentType.TRANSCRIPT, 0),
            (2, ContentType.TRANSCRIPT, 1),
        ]

    async def test_no_native_ranking(self, store):
        assert not store.supports_native_ranking
        with pytest.raises(NotImplementedError):
            await store.rank([1.0], ChunkFilter(), limit=10, min_similarity=0.5)


class TestChunkFilter:

    def test_matches_nothing(self):
        assert ChunkFilter(video_ids=frozenset()).matches_nothing
        assert not ChunkFilter(video_ids=None).matches_nothing
        assert not ChunkFilter(video_ids=frozenset({1})).matches_nothing


class TestCreateStore:

    def test_in_memory_without_database(self):
        assert isinstance(create_store(backend="scan"), InMemoryEmbeddingStore)

    def test_pgvector_requires_database(self):
        with pytest.raises(ConfigurationError):
            create_store(backend="pgvector")

    def test_sql_store_backends(self):
        session_factory = Mock()

        scan = create_store(session_factory, backend="scan")
        native = create_store(session_factory, backend="pgvector")

        assert isinstance(scan, SQLEmbeddingStore)
        assert not scan.supports_native_ranking
        assert native.supports_native_ranking

    def test_backend_from_settings(self):
        with patch("vidrecall.services.rag.store.settings.VECTOR_STORE_BACKEND", "pgvector"):
            store = create_store(Mock())

        assert store.supports_native_ranking
