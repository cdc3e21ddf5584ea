"""
Tests for the indexing service.

This test module verifies:
1. Chunk records (indices, metadata, owner) for each content type
2. Batch isolation: a failed batch leaves a gap, the rest is stored
3. Idempotent re-indexing (delete-then-insert)
4. Fail-fast on an unconfigured provider without touching stored chunks
5. Best-effort index_video
6. Cascading delete
"""

import pytest
from unittest.mock import AsyncMock, patch

from vidrecall.core.exceptions import ConfigurationError
from vidrecall.models.embedding import ContentType
from vidrecall.services.indexing import IndexingService
from vidrecall.services.processors.chunker import ContentChunker
from vidrecall.services.processors.embedder import EmbeddingGenerator
from vidrecall.services.rag.store import ChunkFilter


TRANSCRIPT = (
    '<p class="mb-3 transcript-line" data-timestamp="0" data-duration="4" data-index="0">'
    '<span class="text-gray-400 timestamp-marker" data-seconds="0">[0:00]</span> '
    '<span class="transcript-text">Welcome to the show.</span></p>'
    '<p class="mb-3 transcript-line" data-timestamp="65" data-duration="3" data-index="1">'
    '<span class="text-gray-400 timestamp-marker" data-seconds="65">[1:05]</span> '
    '<span class="transcript-text">Today we talk about hooks.</span></p>'
)

SUMMARY = [f"Summary point number {i}" for i in range(6)]


@pytest.fixture
def service(generator, store):
    return IndexingService(generator, store)


async def stored(store, content_type=None):
    content_types = (content_type,) if content_type else None
    return await store.find(ChunkFilter(content_types=content_types), limit=1000)


@pytest.mark.asyncio
class TestIndexStreams:

    async def test_index_transcript(self, service, store, user_owner):
        report = await service.index_transcript(user_owner, 42, TRANSCRIPT)

        assert report.succeeded
        assert report.content_type == ContentType.TRANSCRIPT
        assert report.chunks_total == report.chunks_stored == 1

        [record] = await stored(store)
        assert record.owner_key == user_owner
        assert record.video_id == 42
        assert record.chunk_index == 0
        assert record.content == "Welcome to the show. Today we talk about hooks."
        assert record.metadata["position"] == 0
        assert record.metadata["length"] == len(record.content)
        assert "created_at" in record.metadata
        assert record.metadata["timestamp"] == 0.0
        assert record.metadata["formatted_timestamp"] == "0:00"

    async def test_index_summary(self, service, store, user_owner):
        report = await service.index_summary(user_owner, 42, SUMMARY + ["", "  "])

        assert report.chunks_total == 6
        assert report.ids == [1, 2, 3, 4, 5, 6]
        records = await stored(store, ContentType.SUMMARY)
        assert [r.chunk_index for r in records] == list(range(6))
        assert [r.content for r in records] == SUMMARY

    async def test_index_notes(self, generator, store, user_owner):
        service = IndexingService(generator, store, chunker=ContentChunker(max_length=20, overlap=0))

        report = await service.index_notes(
            user_owner, 42, "Remember the hooks rule. Call them at the top level."
        )

        assert report.chunks_stored == 2
        records = await stored(store, ContentType.NOTE)
        assert [r.chunk_index for r in records] == [0, 1]

    async def test_index_conversation(self, service, store, anonymous_owner):
        messages = [
            {"role": "user", "content": "What is a hook?"},
            {"role": "assistant", "content": "A function for state."},
        ]

        report = await service.index_conversation(anonymous_owner, 42, messages)

        assert report.chunks_stored == 1
        [record] = await stored(store, ContentType.CONVERSATION)
        assert record.owner_key == anonymous_owner
        assert record.metadata["exchange"] == 0

    async def test_empty_content(self, service, embedding_provider, user_owner):
        report = await service.index_notes(user_owner, 42, "   ")

        assert report.chunks_total == 0
        assert report.succeeded
        assert embedding_provider.calls == []

    async def test_embedding_newlines_normalized_not_content(self, service, store, embedding_provider, user_owner):
        await service.index_summary(user_owner, 42, ["line one\nline two"])

        [record] = await stored(store)
        assert embedding_provider.calls == [["line one line two"]]
        assert record.content == "line one\nline two"


@pytest.mark.asyncio
class TestBatchIsolation:

    async def test_failed_middle_batch(self, make_embedding_provider, store, user_owner):
        """3 batches, batch 2 fails: batches 1 and 3 are persisted."""
        provider = make_embedding_provider(fail_calls=[2])
        service = IndexingService(EmbeddingGenerator(provider, max_batch_size=2), store)

        report = await service.index_summary(user_owner, 42, SUMMARY)

        assert len(provider.calls) == 3
        assert report.chunks_total == 6
        assert report.chunks_stored == 4
        assert report.failed_batches == [2]
        assert not report.succeeded

        records = await stored(store)
        assert len(records) == 4
        assert [r.chunk_index for r in records] == [0, 1, 4, 5]
        assert [r.content for r in records] == [SUMMARY[0], SUMMARY[1], SUMMARY[4], SUMMARY[5]]

    async def test_failed_insert_counts_as_failed_batch(self, make_embedding_provider, store, user_owner):
        service = IndexingService(EmbeddingGenerator(make_embedding_provider(), max_batch_size=3), store)
        real_insert = store.insert_many
        calls = []

        async def first_fails(records):
            calls.append(records)
            if len(calls) == 1:
                raise RuntimeError("connection reset")
            return await real_insert(records)

        with patch.object(store, "insert_many", new=AsyncMock(side_effect=first_fails)):
            report = await service.index_summary(user_owner, 42, SUMMARY)

        assert report.failed_batches == [0]
        assert report.chunks_stored == 3
        assert [r.chunk_index for r in await stored(store)] == [3, 4, 5]


@pytest.mark.asyncio
class TestReindexing:

    async def test_reindex_is_idempotent(self, service, store, user_owner):
        first = await service.index_summary(user_owner, 42, SUMMARY)
        first_indices = [r.chunk_index for r in await stored(store)]

        second = await service.index_summary(user_owner, 42, SUMMARY)
        second_indices = [r.chunk_index for r in await stored(store)]

        assert second.chunks_deleted == first.chunks_stored == 6
        assert second.chunks_stored == first.chunks_stored
        assert second_indices == first_indices == list(range(6))
        assert len(store) == 6

    async def test_reindex_only_replaces_one_stream(self, service, store, user_owner):
        await service.index_summary(user_owner, 42, SUMMARY)
        await service.index_notes(user_owner, 42, "A short note.")

        await service.index_summary(user_owner, 42, SUMMARY[:2])

        assert len(await stored(store, ContentType.SUMMARY)) == 2
        assert len(await stored(store, ContentType.NOTE)) == 1

    async def test_unconfigured_keeps_existing_chunks(self, service, store, embedding_provider, user_owner):
        await service.index_summary(user_owner, 42, SUMMARY)
        embedding_provider.configured = False

        with pytest.raises(ConfigurationError):
            await service.index_summary(user_owner, 42, ["New point"])

        assert len(store) == 6


@pytest.mark.asyncio
class TestIndexVideo:

    async def test_indexes_every_supplied_stream(self, service, store, user_owner):
        reports = await service.index_video(
            user_owner, 42, transcript=TRANSCRIPT, summary_points=SUMMARY, notes="A short note."
        )

        assert [r.content_type for r in reports] == [
            ContentType.TRANSCRIPT, ContentType.SUMMARY, ContentType.NOTE
        ]
        assert all(r.succeeded for r in reports)
        assert len(store) == 8

    async def test_skips_missing_streams(self, service, user_owner):
        reports = await service.index_video(user_owner, 42, notes="A short note.")

        assert [r.content_type for r in reports] == [ContentType.NOTE]

    async def test_errors_are_reported_not_raised(self, make_embedding_provider, store, user_owner):
        service = IndexingService(EmbeddingGenerator(make_embedding_provider(configured=False)), store)

        reports = await service.index_video(user_owner, 42, transcript=TRANSCRIPT, notes="A note.")

        assert len(reports) == 2
        assert all(r.error for r in reports)
        assert all(not r.succeeded for r in reports)

    async def test_one_stream_failing_does_not_stop_others(self, service, store, user_owner):
        with patch.object(service, "index_summary", new=AsyncMock(side_effect=RuntimeError("boom"))):
            reports = await service.index_video(
                user_owner, 42, summary_points=SUMMARY, notes="A short note."
            )

        assert reports[0].error == "boom"
        assert reports[1].succeeded
        assert len(store) == 1


@pytest.mark.asyncio
async def test_delete_video(service, store, user_owner):
    await service.index_video(user_owner, 42, transcript=TRANSCRIPT, summary_points=SUMMARY)
    await service.index_notes(user_owner, 7, "Another video.")

    assert await service.delete_video(42) == 7
    assert [r.video_id for r in await stored(store)] == [7]
