"""
Pydantic schemas for indexed chunks and semantic search.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vidrecall.models.embedding import ContentType
from vidrecall.schemas.identity import OwnerKey


# ========================================
# Chunk Schemas
# ========================================

class ChunkRecord(BaseModel):
    """A chunk of video content with its embedding, as persisted by the store."""

    id: Optional[int] = Field(default=None, description="Store-assigned ID")
    owner_key: OwnerKey = Field(description="Owner the chunk is attributed to")
    video_id: int = Field(description="Source video ID")
    content_type: ContentType = Field(description="Source stream")
    chunk_index: int = Field(description="Position within the content stream", ge=0)
    content: str = Field(description="Plain text of the chunk", min_length=1)
    vector: List[float] = Field(description="Embedding vector", min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Position, length, timestamps")


# ========================================
# Search Schemas
# ========================================

class SearchFilters(BaseModel):
    """Optional narrowing of a semantic search."""

    content_types: Optional[List[ContentType]] = Field(
        default=None,
        description="Only chunks of these content types"
    )
    video_id: Optional[int] = Field(default=None, description="Only chunks of this video")
    category_id: Optional[int] = Field(default=None, description="Only videos in this category")
    collection_id: Optional[int] = Field(default=None, description="Only videos in this collection")
    is_favorite: Optional[bool] = Field(default=None, description="Only (non-)favorite videos")

    @property
    def needs_catalog(self) -> bool:
        """True when a filter must be resolved against video attributes."""
        return (
            self.category_id is not None
            or self.collection_id is not None
            or self.is_favorite is not None
        )

    def to_params(self) -> Dict[str, Any]:
        """Filters that were actually set, JSON-ready (for search history)."""
        return self.model_dump(mode="json", exclude_none=True)


class SearchRequest(BaseModel):
    """Request schema for a semantic search."""

    query: str = Field(description="Search query", min_length=3)
    filter: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=10, description="Maximum results", ge=1, le=100)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, v):
        """Trim surrounding whitespace before the length check."""
        return v.strip() if isinstance(v, str) else v


class SearchResult(BaseModel):
    """A chunk that matched a query, with its similarity score."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(default=None, description="Chunk ID")
    video_id: int = Field(description="Source video ID")
    content: str = Field(description="Chunk text")
    content_type: ContentType = Field(description="Source stream")
    chunk_index: int = Field(description="Position within the content stream")
    similarity: float = Field(description="Cosine similarity to the query")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Chunk metadata, including the similarity score"
    )

    @property
    def timestamp(self) -> Optional[float]:
        value = self.metadata.get("timestamp")
        return float(value) if value is not None else None

    @property
    def formatted_timestamp(self) -> Optional[str]:
        return self.metadata.get("formatted_timestamp")
