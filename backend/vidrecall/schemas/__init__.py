"""
Pydantic schemas for the indexing and retrieval pipeline.

Import all schemas here for easy access.
"""

from vidrecall.schemas.answer import AnswerResult, Citation, ConversationMessage
from vidrecall.schemas.identity import (
    AnonymousSessionId,
    OwnerKey,
    ResolvedOwner,
    UserId,
    parse_owner_key,
    resolve_owner,
)
from vidrecall.schemas.indexing import IndexingReport
from vidrecall.schemas.search import ChunkRecord, SearchFilters, SearchRequest, SearchResult

__all__ = [
    # Identity
    "OwnerKey",
    "UserId",
    "AnonymousSessionId",
    "ResolvedOwner",
    "parse_owner_key",
    "resolve_owner",
    # Chunks and search
    "ChunkRecord",
    "SearchFilters",
    "SearchRequest",
    "SearchResult",
    # Answers
    "ConversationMessage",
    "Citation",
    "AnswerResult",
    # Indexing
    "IndexingReport",
]
