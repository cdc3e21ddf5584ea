"""
Embedding Store

Persistence for indexed chunks, behind one interface with two backends:

1. InMemoryEmbeddingStore: dictionary-backed, for development and tests.
   Ranking happens in-process (scan backend).
2. SQLEmbeddingStore: PostgreSQL + pgvector through SQLAlchemy. Optionally
   ranks in the database with ``cosine_distance`` (pgvector backend).

Both enforce the same rules:
- ``(owner_key, video_id, content_type, chunk_index)`` is unique
- ``find`` applies every filter before the row ceiling
- Re-indexing is delete-then-insert; rows are never updated in place
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidrecall.core.config import settings
from vidrecall.core.exceptions import ConfigurationError
from vidrecall.models.embedding import ContentEmbedding, ContentType
from vidrecall.schemas.identity import AnonymousSessionId, UserId, parse_owner_key
from vidrecall.schemas.search import ChunkRecord, SearchResult
from vidrecall.services.rag.similarity import to_search_result


logger = logging.getLogger(__name__)


class DuplicateChunkError(ValueError):
    """A chunk with the same owner, video, content type and index already exists."""


@dataclass(frozen=True)
class ChunkFilter:
    """
    Restrictions on which chunks a store query may return.

    ``None`` means "no restriction". An empty ``video_ids`` set means
    "nothing matches".
    """

    owner_key: Optional[Union[UserId, AnonymousSessionId]] = None
    video_ids: Optional[frozenset[int]] = None
    content_types: Optional[tuple[ContentType, ...]] = None

    @property
    def matches_nothing(self) -> bool:
        return self.video_ids is not None and not self.video_ids

    def matches(self, record: ChunkRecord) -> bool:
        if self.owner_key is not None and record.owner_key != self.owner_key:
            return False
        if self.video_ids is not None and record.video_id not in self.video_ids:
            return False
        if self.content_types is not None and record.content_type not in self.content_types:
            return False
        return True


# ========================================
# Interface
# ========================================

class EmbeddingStore(ABC):
    """Abstract chunk store."""

    #: Whether ``rank`` scores in the backend instead of in-process
    supports_native_ranking: bool = False

    @abstractmethod
    async def insert_many(self, records: Sequence[ChunkRecord]) -> list[int]:
        """
        Persist chunks atomically and return their IDs in input order.

        Raises:
            DuplicateChunkError: If any chunk collides with a stored one
        """

    async def insert(self, record: ChunkRecord) -> int:
        """Persist a single chunk and return its ID."""
        ids = await self.insert_many([record])
        return ids[0]

    @abstractmethod
    async def delete_by_video(self, video_id: int) -> int:
        """Remove every chunk of a video; returns the number removed."""

    @abstractmethod
    async def delete_by_video_and_type(self, video_id: int, content_type: ContentType) -> int:
        """Remove one content stream of a video; returns the number removed."""

    @abstractmethod
    async def find(self, chunk_filter: ChunkFilter, limit: int = 100) -> list[ChunkRecord]:
        """
        Fetch at most ``limit`` chunks matching the filter.

        Ordered by video, content type and chunk index.
        """

    async def rank(
        self,
        query_vector: Sequence[float],
        chunk_filter: ChunkFilter,
        limit: int,
        min_similarity: float
    ) -> list[SearchResult]:
        """
        Return the ``limit`` most similar matching chunks at or above
        ``min_similarity``, best first.

        Only available when ``supports_native_ranking`` is True.
        """
        raise NotImplementedError(f"{type(self).__name__} does not rank natively")


# ========================================
# In-Memory Backend
# ========================================

class InMemoryEmbeddingStore(EmbeddingStore):
    """
    Dictionary-backed store.

    Usage:
    ------
    store = InMemoryEmbeddingStore()
    ids = await store.insert_many(records)
    candidates = await store.find(ChunkFilter(owner_key=UserId(user_id=1)))
    """

    def __init__(self):
        self._rows: dict[int, ChunkRecord] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._rows)

    @staticmethod
    def _identity(record: ChunkRecord) -> tuple:
        return (record.owner_key, record.video_id, record.content_type, record.chunk_index)

    async def insert_many(self, records: Sequence[ChunkRecord]) -> list[int]:
        existing = {self._identity(r) for r in self._rows.values()}
        incoming = set()
        for record in records:
            identity = self._identity(record)
            if identity in existing or identity in incoming:
                raise DuplicateChunkError(
                    f"Chunk {record.chunk_index} of video {record.video_id} "
                    f"({record.content_type}) already exists for {record.owner_key}"
                )
            incoming.add(identity)

        ids = []
        for record in records:
            chunk_id = self._next_id
            self._next_id += 1
            self._rows[chunk_id] = record.model_copy(update={"id": chunk_id})
            ids.append(chunk_id)
        return ids

    def _delete_where(self, predicate) -> int:
        doomed = [chunk_id for chunk_id, record in self._rows.items() if predicate(record)]
        for chunk_id in doomed:
            del self._rows[chunk_id]
        return len(doomed)

    async def delete_by_video(self, video_id: int) -> int:
        return self._delete_where(lambda r: r.video_id == video_id)

    async def delete_by_video_and_type(self, video_id: int, content_type: ContentType) -> int:
        return self._delete_where(
            lambda r: r.video_id == video_id and r.content_type == content_type
        )

    async def find(self, chunk_filter: ChunkFilter, limit: int = 100) -> list[ChunkRecord]:
        if chunk_filter.matches_nothing:
            return []
        matching = [r for r in self._rows.values() if chunk_filter.matches(r)]
        # Same order as the SQL backend (enum declaration order for content_type)
        order = list(ContentType)
        matching.sort(key=lambda r: (r.video_id, order.index(r.content_type), r.chunk_index))
        return matching[:limit]


# ========================================
# SQL Backend
# ========================================

class SQLEmbeddingStore(EmbeddingStore):
    """
    PostgreSQL + pgvector store.

    Each operation opens its own session from the factory and commits before
    returning.

    Usage:
    ------
    engine = create_engine()
    store = SQLEmbeddingStore(create_session_factory(engine), native_ranking=True)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        native_ranking: bool = False
    ):
        self.session_factory = session_factory
        self.supports_native_ranking = native_ranking

    @staticmethod
    def _to_row(record: ChunkRecord) -> ContentEmbedding:
        return ContentEmbedding(
            owner_key=record.owner_key.storage_key,
            video_id=record.video_id,
            content_type=record.content_type,
            chunk_index=record.chunk_index,
            content=record.content,
            embedding=list(record.vector),
            chunk_metadata=record.metadata or None,
        )

    @staticmethod
    def _to_record(row: ContentEmbedding) -> ChunkRecord:
        # pgvector hands back a numpy array
        return ChunkRecord(
            id=row.id,
            owner_key=parse_owner_key(row.owner_key),
            video_id=row.video_id,
            content_type=row.content_type,
            chunk_index=row.chunk_index,
            content=row.content,
            vector=[float(x) for x in row.embedding],
            metadata=row.chunk_metadata or {},
        )

    @staticmethod
    def _apply_filter(query, chunk_filter: ChunkFilter):
        if chunk_filter.owner_key is not None:
            query = query.where(ContentEmbedding.owner_key == chunk_filter.owner_key.storage_key)
        if chunk_filter.video_ids is not None:
            query = query.where(ContentEmbedding.video_id.in_(sorted(chunk_filter.video_ids)))
        if chunk_filter.content_types is not None:
            query = query.where(ContentEmbedding.content_type.in_(list(chunk_filter.content_types)))
        return query

    async def insert_many(self, records: Sequence[ChunkRecord]) -> list[int]:
        if not records:
            return []

        rows = [self._to_row(record) for record in records]
        async with self.session_factory() as session:
            session.add_all(rows)
            try:
                await session.flush()
                ids = [row.id for row in rows]
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateChunkError(f"Chunk already exists: {e.orig}") from e

        logger.debug(f"Inserted {len(ids)} chunks")
        return ids

    async def _delete(self, *conditions) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(ContentEmbedding)
                .where(*conditions)
                .returning(ContentEmbedding.id)
            )
            deleted = len(result.all())
            await session.commit()
        return deleted

    async def delete_by_video(self, video_id: int) -> int:
        deleted = await self._delete(ContentEmbedding.video_id == video_id)
        logger.info(f"Deleted {deleted} chunks for video {video_id}")
        return deleted

    async def delete_by_video_and_type(self, video_id: int, content_type: ContentType) -> int:
        return await self._delete(
            ContentEmbedding.video_id == video_id,
            ContentEmbedding.content_type == content_type,
        )

    async def find(self, chunk_filter: ChunkFilter, limit: int = 100) -> list[ChunkRecord]:
        if chunk_filter.matches_nothing:
            return []

        query = self._apply_filter(select(ContentEmbedding), chunk_filter)
        query = query.order_by(
            ContentEmbedding.video_id,
            ContentEmbedding.content_type,
            ContentEmbedding.chunk_index,
        ).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [self._to_record(row) for row in result.scalars().all()]

    async def rank(
        self,
        query_vector: Sequence[float],
        chunk_filter: ChunkFilter,
        limit: int,
        min_similarity: float
    ) -> list[SearchResult]:
        if not self.supports_native_ranking:
            return await super().rank(query_vector, chunk_filter, limit, min_similarity)
        if chunk_filter.matches_nothing:
            return []

        # Cosine distance = 1 - cosine similarity
        distance = ContentEmbedding.embedding.cosine_distance(list(query_vector))
        query = self._apply_filter(select(ContentEmbedding, distance.label("distance")), chunk_filter)
        query = query.where(distance <= 1.0 - min_similarity).order_by(distance).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = result.all()

        results = []
        for row, row_distance in rows:
            similarity = 1.0 - float(row_distance)
            # Guard against float drift at the threshold boundary
            if similarity < min_similarity:
                continue
            results.append(to_search_result(self._to_record(row), similarity))
        return results


def create_store(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    backend: Optional[str] = None
) -> EmbeddingStore:
    """
    Build the configured store.

    Without a session factory the in-memory store is used. With one, the
    SQL store ranks natively when the backend is ``pgvector``.

    Example:
        store = create_store(create_session_factory(create_engine()))
    """
    backend = backend or settings.VECTOR_STORE_BACKEND

    if session_factory is None:
        if backend == "pgvector":
            raise ConfigurationError("The pgvector backend requires a database session factory")
        logger.info("Using in-memory embedding store")
        return InMemoryEmbeddingStore()

    logger.info(f"Using SQL embedding store (backend={backend})")
    return SQLEmbeddingStore(session_factory, native_ranking=backend == "pgvector")
