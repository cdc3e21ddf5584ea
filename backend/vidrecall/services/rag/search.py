"""
Semantic Search Service

Finds the indexed chunks most similar in meaning to a free-text query.

Search Pipeline:
----------------
1. Embed the query (a single-chunk batch); any failure fails the search
2. Resolve video filters into one allow-list of video IDs
   - Anonymous owners: only videos the session has saved
   - category / collection / favorite: resolved through the VideoCatalog
   - All restrictions are intersected; an empty allow-list means no results
3. Fetch candidates with every filter applied before the row ceiling
4. Score by cosine similarity, drop results below the threshold, sort best
   first and cap at the limit (in-process, or in the database when the store
   ranks natively)
5. Record the search for registered users (failures are logged, never raised)
"""

import logging
from typing import Optional, Union

from vidrecall.core.config import settings
from vidrecall.core.exceptions import FilterResolutionError
from vidrecall.schemas.identity import AnonymousSessionId, UserId
from vidrecall.schemas.search import SearchFilters, SearchResult
from vidrecall.services.processors.embedder import EmbeddingGenerator
from vidrecall.services.rag.catalog import VideoCatalog
from vidrecall.services.rag.history import SearchHistorySink
from vidrecall.services.rag.similarity import rank_by_similarity
from vidrecall.services.rag.store import ChunkFilter, EmbeddingStore


logger = logging.getLogger(__name__)

Owner = Union[UserId, AnonymousSessionId]


class SemanticSearchService:
    """
    Semantic search over a user's indexed video content.

    Usage:
    ------
    service = SemanticSearchService(generator, store, catalog, history=sink)

    results = await service.search(
        owner=UserId(user_id=1),
        query="how do react hooks work",
        filters=SearchFilters(category_id=3, content_types=[ContentType.TRANSCRIPT]),
        limit=10
    )
    """

    def __init__(
        self,
        generator: EmbeddingGenerator,
        store: EmbeddingStore,
        catalog: VideoCatalog,
        history: Optional[SearchHistorySink] = None,
        similarity_threshold: Optional[float] = None,
        candidate_limit: Optional[int] = None,
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None
    ):
        """
        Args:
            generator: Embeds the query
            store: Chunk store to search
            catalog: Resolves owner and category/collection/favorite filters
            history: Optional search history sink
            similarity_threshold: Minimum similarity kept (default from settings)
            candidate_limit: Rows fetched before scoring (default from settings)
            default_limit: Results when no limit is given (default from settings)
            max_limit: Largest accepted limit (default from settings)
        """
        self.generator = generator
        self.store = store
        self.catalog = catalog
        self.history = history

        self.similarity_threshold = (
            similarity_threshold if similarity_threshold is not None
            else settings.SEARCH_SIMILARITY_THRESHOLD
        )
        self.candidate_limit = (
            candidate_limit if candidate_limit is not None
            else settings.SEARCH_CANDIDATE_LIMIT
        )
        self.default_limit = (
            default_limit if default_limit is not None
            else settings.SEARCH_DEFAULT_LIMIT
        )
        self.max_limit = max_limit if max_limit is not None else settings.SEARCH_MAX_LIMIT

    async def search(
        self,
        owner: Owner,
        query: str,
        filters: Optional[SearchFilters] = None,
        limit: Optional[int] = None,
        record_history: bool = True
    ) -> list[SearchResult]:
        """
        Run a semantic search.

        Args:
            owner: Whose content to search
            query: Free-text query
            filters: Optional narrowing (content types, video, category, ...)
            limit: Maximum results (default from settings)
            record_history: Whether to record this search

        Returns:
            Results sorted by similarity, best first, all at or above the
            similarity threshold

        Raises:
            ValueError: If the limit is out of range
            ConfigurationError: If the embedding provider is not configured
            QueryEmbeddingError: If the query could not be embedded
            FilterResolutionError: If the catalog failed to resolve a filter
        """
        filters = filters or SearchFilters()
        limit = limit if limit is not None else self.default_limit
        if not 1 <= limit <= self.max_limit:
            raise ValueError(f"limit must be between 1 and {self.max_limit}, got {limit}")

        logger.info(f"Semantic search for {owner.storage_key}: '{query[:50]}' (limit={limit})")

        # Step 1: Embed the query
        query_vector = await self.generator.embed_query(query)

        # Step 2: Resolve video filters into an allow-list
        allowed_videos = await self._resolve_video_allow_list(owner, filters)

        if allowed_videos is not None and not allowed_videos:
            logger.info("Filters matched no videos, returning no results")
            results: list[SearchResult] = []
        else:
            chunk_filter = ChunkFilter(
                # Anonymous owners are scoped through their saved videos instead
                owner_key=None if owner.is_anonymous else owner,
                video_ids=frozenset(allowed_videos) if allowed_videos is not None else None,
                content_types=tuple(filters.content_types) if filters.content_types else None,
            )
            results = await self._rank(query_vector, chunk_filter, limit)

        logger.info(f"Search returned {len(results)} results")

        if record_history:
            await self._record_history(owner, query, filters, len(results))

        return results

    async def _rank(
        self,
        query_vector: list[float],
        chunk_filter: ChunkFilter,
        limit: int
    ) -> list[SearchResult]:
        """Steps 3 and 4: fetch candidates and score them."""
        if self.store.supports_native_ranking:
            return await self.store.rank(
                query_vector,
                chunk_filter,
                limit=limit,
                min_similarity=self.similarity_threshold,
            )

        candidates = await self.store.find(chunk_filter, limit=self.candidate_limit)
        logger.debug(f"Fetched {len(candidates)} candidates (ceiling {self.candidate_limit})")

        return rank_by_similarity(
            query_vector,
            candidates,
            threshold=self.similarity_threshold,
            limit=limit,
        )

    async def _resolve_video_allow_list(
        self,
        owner: Owner,
        filters: SearchFilters
    ) -> Optional[set[int]]:
        """
        Intersect every video-level restriction.

        Returns:
            None when nothing restricts videos, otherwise the allowed IDs
            (possibly empty)
        """
        allowed: Optional[set[int]] = None

        def narrow(video_ids) -> set[int]:
            nonlocal allowed
            allowed = set(video_ids) if allowed is None else allowed & set(video_ids)
            return allowed

        if filters.video_id is not None and not narrow({filters.video_id}):
            return allowed

        if not (owner.is_anonymous or filters.needs_catalog):
            return allowed

        try:
            if owner.is_anonymous:
                if not narrow(await self.catalog.videos_for_owner(owner)):
                    return allowed

            if filters.category_id is not None:
                if not narrow(await self.catalog.videos_in_category(owner, filters.category_id)):
                    return allowed

            if filters.collection_id is not None:
                if not narrow(await self.catalog.videos_in_collection(owner, filters.collection_id)):
                    return allowed

            if filters.is_favorite is not None:
                narrow(await self.catalog.videos_by_favorite(owner, filters.is_favorite))

        except Exception as e:
            logger.error(f"Failed to resolve search filters for {owner.storage_key}: {e}")
            raise FilterResolutionError(f"Failed to resolve search filters: {e}") from e

        return allowed

    async def _record_history(
        self,
        owner: Owner,
        query: str,
        filters: SearchFilters,
        result_count: int
    ) -> None:
        """Step 5: best-effort history for registered users."""
        if self.history is None or owner.is_anonymous:
            return

        try:
            await self.history.record(owner, query, filters.to_params(), result_count)
        except Exception as e:
            logger.warning(f"Failed to record search history for {owner.storage_key}: {e}")
