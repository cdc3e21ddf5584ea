"""
Pydantic schemas for indexing outcomes.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from vidrecall.models.embedding import ContentType


class IndexingReport(BaseModel):
    """Outcome of indexing one content stream of one video."""

    video_id: int = Field(description="Video that was indexed")
    content_type: ContentType = Field(description="Content stream that was indexed")
    chunks_total: int = Field(default=0, description="Non-empty chunks produced")
    chunks_stored: int = Field(default=0, description="Chunks embedded and persisted")
    chunks_deleted: int = Field(default=0, description="Previous chunks removed first")
    failed_batches: List[int] = Field(
        default_factory=list,
        description="Offsets of embedding batches that failed"
    )
    ids: List[int] = Field(default_factory=list, description="IDs of stored chunks")
    error: Optional[str] = Field(default=None, description="Error that stopped this stream")

    @property
    def succeeded(self) -> bool:
        """True when every chunk was stored."""
        return self.error is None and self.chunks_stored == self.chunks_total
