"""
Retrieval and Q&A Services

This package contains the read side of the pipeline:
- Chunk storage (in-memory scan backend, SQL/pgvector backend)
- Similarity scoring and ranking
- Semantic search with catalog-resolved filters
- Answer generation (Claude integration) and citation resolution
"""

from vidrecall.services.rag.answer_service import AnswerOrchestrator
from vidrecall.services.rag.catalog import CatalogVideo, InMemoryVideoCatalog, VideoCatalog
from vidrecall.services.rag.citations import extract_citation_ordinals, resolve_citations
from vidrecall.services.rag.generator import AnswerProvider, AnthropicAnswerProvider
from vidrecall.services.rag.history import SearchHistorySink, SQLSearchHistorySink
from vidrecall.services.rag.search import SemanticSearchService
from vidrecall.services.rag.similarity import cosine_similarity, rank_by_similarity
from vidrecall.services.rag.store import (
    ChunkFilter,
    DuplicateChunkError,
    EmbeddingStore,
    InMemoryEmbeddingStore,
    SQLEmbeddingStore,
    create_store,
)

__all__ = [
    "AnswerOrchestrator",
    "CatalogVideo",
    "InMemoryVideoCatalog",
    "VideoCatalog",
    "extract_citation_ordinals",
    "resolve_citations",
    "AnswerProvider",
    "AnthropicAnswerProvider",
    "SearchHistorySink",
    "SQLSearchHistorySink",
    "SemanticSearchService",
    "cosine_similarity",
    "rank_by_similarity",
    "ChunkFilter",
    "DuplicateChunkError",
    "EmbeddingStore",
    "InMemoryEmbeddingStore",
    "SQLEmbeddingStore",
    "create_store",
]
