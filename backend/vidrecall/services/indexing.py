"""
Indexing Service

Write side of the pipeline: chunk a video's content streams, embed the
chunks in batches and persist them.

Indexing Pipeline (per content stream):
---------------------------------------
1. Fail fast if the embedding provider is not configured
2. Delete the stream's existing chunks for the video
3. Chunk the content and drop empty chunks
4. Embed in sequential batches of at most MAX_BATCH_SIZE
5. Insert each successful batch; a failed batch is logged and skipped

``chunk_index`` is the position in the filtered chunk list, so a failed
batch leaves a gap in the sequence and re-indexing the same text always
reproduces the same indices.

Indexing is best-effort on top of an already-saved video: ``index_video``
never raises for a single stream's failure.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from vidrecall.models.embedding import ContentType
from vidrecall.schemas.answer import ConversationMessage
from vidrecall.schemas.identity import AnonymousSessionId, UserId
from vidrecall.schemas.indexing import IndexingReport
from vidrecall.schemas.search import ChunkRecord
from vidrecall.services.processors.chunker import ContentChunker
from vidrecall.services.processors.embedder import EmbeddingGenerator
from vidrecall.services.rag.store import EmbeddingStore


logger = logging.getLogger(__name__)

Owner = Union[UserId, AnonymousSessionId]


class IndexingService:
    """
    Indexes a video's transcript, summary, notes and Q&A conversation.

    Usage:
    ------
    service = IndexingService(generator, store)

    reports = await service.index_video(
        owner=UserId(user_id=1),
        video_id=42,
        transcript=video.transcript,
        summary_points=video.summary,
        notes=video.notes
    )
    for report in reports:
        if not report.succeeded:
            print(report.content_type, report.failed_batches, report.error)
    """

    def __init__(
        self,
        generator: EmbeddingGenerator,
        store: EmbeddingStore,
        chunker: Optional[ContentChunker] = None
    ):
        self.generator = generator
        self.store = store
        self.chunker = chunker or ContentChunker()

    # ========================================
    # Per-Stream Indexing
    # ========================================

    async def index_transcript(self, owner: Owner, video_id: int, transcript: str) -> IndexingReport:
        """Index a transcript (markup or plain text) with timestamp metadata."""
        return await self._index(
            owner, video_id, ContentType.TRANSCRIPT,
            lambda: self.chunker.chunk_transcript(transcript)
        )

    async def index_summary(self, owner: Owner, video_id: int, points: Iterable[str]) -> IndexingReport:
        """Index summary points, one chunk per point."""
        return await self._index(
            owner, video_id, ContentType.SUMMARY,
            lambda: self.chunker.chunk_summary(points)
        )

    async def index_notes(self, owner: Owner, video_id: int, notes: str) -> IndexingReport:
        """Index free-form notes."""
        return await self._index(
            owner, video_id, ContentType.NOTE,
            lambda: self.chunker.chunk_notes(notes)
        )

    async def index_conversation(
        self,
        owner: Owner,
        video_id: int,
        messages: Sequence[Union[ConversationMessage, Mapping[str, Any]]]
    ) -> IndexingReport:
        """
        Index the full Q&A conversation about a video.

        The conversation is re-indexed as a whole each time it grows, so
        chunk indices stay unique and ordered.
        """
        return await self._index(
            owner, video_id, ContentType.CONVERSATION,
            lambda: self.chunker.chunk_conversation(messages)
        )

    async def _index(self, owner: Owner, video_id: int, content_type: ContentType, make_chunks) -> IndexingReport:
        self.generator.ensure_configured()

        # Delete before insert: chunk indices restart at 0
        deleted = await self.store.delete_by_video_and_type(video_id, content_type)
        if deleted:
            logger.info(f"Deleted {deleted} existing {content_type} chunks for video {video_id}")

        chunks = [c for c in make_chunks() if c["text"] and c["text"].strip()]
        report = IndexingReport(
            video_id=video_id,
            content_type=content_type,
            chunks_total=len(chunks),
            chunks_deleted=deleted,
        )

        if not chunks:
            logger.info(f"No {content_type} content to index for video {video_id}")
            return report

        logger.info(f"Indexing {len(chunks)} {content_type} chunks for video {video_id}")

        run = await self.generator.embed_in_batches([c["text"] for c in chunks])
        created_at = datetime.now(timezone.utc).isoformat()

        for outcome in run.outcomes:
            if not outcome.ok:
                report.failed_batches.append(outcome.offset)
                continue

            records = []
            for i, vector in enumerate(outcome.vectors):
                position = outcome.offset + i
                chunk = chunks[position]
                records.append(ChunkRecord(
                    owner_key=owner,
                    video_id=video_id,
                    content_type=content_type,
                    chunk_index=position,
                    content=chunk["text"],
                    vector=vector,
                    metadata={
                        "position": position,
                        "length": len(chunk["text"]),
                        "created_at": created_at,
                        **chunk["metadata"],
                    },
                ))

            try:
                ids = await self.store.insert_many(records)
            except Exception as e:
                logger.error(
                    f"Error storing {content_type} batch at offset {outcome.offset} "
                    f"for video {video_id}: {e}"
                )
                report.failed_batches.append(outcome.offset)
                continue

            report.ids.extend(ids)
            report.chunks_stored += len(ids)

        logger.info(
            f"Indexed {report.chunks_stored}/{report.chunks_total} {content_type} chunks "
            f"for video {video_id}"
            + (f", failed batch offsets: {report.failed_batches}" if report.failed_batches else "")
        )
        return report

    # ========================================
    # Whole-Video Operations
    # ========================================

    async def index_video(
        self,
        owner: Owner,
        video_id: int,
        transcript: Optional[str] = None,
        summary_points: Optional[Iterable[str]] = None,
        notes: Optional[str] = None
    ) -> list[IndexingReport]:
        """
        Index every supplied content stream, best-effort.

        A stream that fails (including for configuration reasons) is logged
        and reported with ``error`` set; the other streams still run.
        """
        jobs = []
        if transcript is not None:
            jobs.append((ContentType.TRANSCRIPT, lambda: self.index_transcript(owner, video_id, transcript)))
        if summary_points is not None:
            jobs.append((ContentType.SUMMARY, lambda: self.index_summary(owner, video_id, summary_points)))
        if notes is not None:
            jobs.append((ContentType.NOTE, lambda: self.index_notes(owner, video_id, notes)))

        reports = []
        for content_type, job in jobs:
            try:
                reports.append(await job())
            except Exception as e:
                logger.error(f"Failed to index {content_type} for video {video_id}: {e}")
                reports.append(IndexingReport(
                    video_id=video_id,
                    content_type=content_type,
                    error=str(e),
                ))

        return reports

    async def delete_video(self, video_id: int) -> int:
        """Remove every chunk of a deleted video."""
        deleted = await self.store.delete_by_video(video_id)
        logger.info(f"Deleted {deleted} chunks for video {video_id}")
        return deleted
