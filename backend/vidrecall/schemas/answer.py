"""
Pydantic schemas for grounded Q&A answers.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from vidrecall.models.embedding import ContentType


class ConversationMessage(BaseModel):
    """One prior turn of a Q&A conversation."""

    role: Literal["user", "assistant"] = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")


class Citation(BaseModel):
    """A bracketed marker in an answer resolved back to its search result."""

    ordinal: int = Field(description="Marker number [1, 2, ...]", ge=1)
    video_id: int = Field(description="Source video ID")
    content: str = Field(description="Cited chunk text")
    content_type: ContentType = Field(description="Source stream")
    timestamp: Optional[float] = Field(default=None, description="Seconds into the video")
    formatted_timestamp: Optional[str] = Field(default=None, description="M:SS timestamp")


class AnswerResult(BaseModel):
    """Generated answer text and the citations it actually uses."""

    answer: str = Field(description="Raw generated answer")
    citations: List[Citation] = Field(default_factory=list, description="Resolved citations, first-use order")
