"""
Embedding Models

Models Included:
----------------
1. ContentType (Enum) - Which stream of a video a chunk was cut from
2. ContentEmbedding - One indexed chunk: text, vector and metadata
3. SearchHistory - Queries run by registered users

Database Tables:
----------------
- content_embeddings: chunk text + pgvector embedding, scoped by owner and video
- search_history: one row per completed search

Chunk rows are never updated in place. Re-indexing a video's transcript
deletes every ``(video_id, content_type='transcript')`` row and inserts the
new set, so ``chunk_index`` always restarts at 0 for a fresh index.
"""

import enum

from sqlalchemy import Enum, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from vidrecall.core.config import settings
from vidrecall.db.base import BaseModel


class ContentType(str, enum.Enum):
    """
    Source stream of an indexed chunk.

    TRANSCRIPT and NOTE chunks are cut by the sentence chunker, SUMMARY
    chunks are one per summary point, CONVERSATION chunks come from Q&A
    exchanges about the video.
    """

    TRANSCRIPT = "transcript"
    SUMMARY = "summary"
    NOTE = "note"
    CONVERSATION = "conversation"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class ContentEmbedding(BaseModel):
    """
    A chunk of video content with its embedding vector.

    Table: content_embeddings
    -------------------------
    ``owner_key`` is the rendered OwnerKey (``user:<id>`` or
    ``session:<id>``). ``(owner_key, video_id, content_type, chunk_index)``
    is unique.

    Chunk Metadata (JSONB):
    -----------------------
    Every chunk:
    {
        "position": 3,
        "length": 487,
        "created_at": "2025-01-01T12:00:00+00:00"
    }

    Transcript chunks additionally:
    {
        "timestamp": 125.4,
        "duration": 4.2,
        "formatted_timestamp": "2:05"
    }
    """

    __tablename__ = "content_embeddings"

    owner_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Rendered owner key (user:<id> or session:<id>)"
    )

    video_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Source video ID"
    )

    content_type: Mapped[ContentType] = mapped_column(
        Enum(
            ContentType,
            name="content_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        comment="transcript, summary, note or conversation"
    )

    chunk_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position of this chunk within its content stream (0-indexed)"
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Plain text of the chunk"
    )

    embedding = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION),
        nullable=False,
        comment="Embedding vector of the chunk text"
    )

    chunk_metadata: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Position, length, timestamps"
    )

    __table_args__ = (
        UniqueConstraint(
            "owner_key", "video_id", "content_type", "chunk_index",
            name="uq_content_embeddings_chunk",
        ),
        Index("ix_content_embeddings_video_type", "video_id", "content_type"),
    )

    def __repr__(self) -> str:
        return (
            f"ContentEmbedding(id={self.id}, video_id={self.video_id}, "
            f"content_type={self.content_type}, chunk_index={self.chunk_index})"
        )


class SearchHistory(BaseModel):
    """A completed semantic search."""

    __tablename__ = "search_history"

    owner_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Rendered owner key of the searcher"
    )

    query: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Query text as entered"
    )

    filter_params: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Filters applied to the search"
    )

    results_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of results returned"
    )
