"""
Error taxonomy for the indexing and retrieval pipeline.

- ConfigurationError: a provider is not configured; fails the whole operation.
- EmbeddingBatchError: one embedding batch failed; recovered by the batch loop.
- QueryEmbeddingError: no query vector; fails the whole search.
- FilterResolutionError: the video catalog could not resolve a filter.
- AnswerGenerationError: the answer provider failed.
"""

from typing import Optional


class VidRecallError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(VidRecallError):
    """A required provider is not configured."""


class EmbeddingBatchError(VidRecallError):
    """Embedding generation failed for one batch of chunks."""

    def __init__(self, message: str, offset: int = 0, size: int = 0, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.offset = offset
        self.size = size
        self.cause = cause


class QueryEmbeddingError(VidRecallError):
    """The search query could not be embedded."""


class FilterResolutionError(VidRecallError):
    """A secondary search filter could not be resolved against the video catalog."""


class AnswerGenerationError(VidRecallError):
    """The answer-generation provider failed."""
