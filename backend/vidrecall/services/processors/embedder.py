"""
Embedding Service

This module turns chunk texts into fixed-dimension vectors.

Two layers:
-----------
1. EmbeddingProvider: the model behind the vectors. The default
   SentenceTransformerProvider runs a sentence-transformers model in a
   worker thread (CPU/CUDA/MPS).
2. EmbeddingGenerator: enforces the batch-size ceiling, normalizes input,
   validates the provider's response and isolates batch failures so one bad
   batch never aborts the others.

Providers are constructed explicitly and passed in; there is no global
instance.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence, runtime_checkable
import logging

import numpy as np
from sentence_transformers import SentenceTransformer
import torch

from vidrecall.core.config import settings
from vidrecall.core.exceptions import (
    ConfigurationError,
    EmbeddingBatchError,
    QueryEmbeddingError,
)


logger = logging.getLogger(__name__)


# ========================================
# Provider
# ========================================

@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can embed a list of texts."""

    @property
    def is_configured(self) -> bool:
        """Whether the provider can be called at all (checked before any call)."""
        ...

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        ...


class SentenceTransformerProvider:
    """
    Embedding provider backed by a sentence-transformers model.

    The model is loaded lazily on first use, in a worker thread, and kept
    for the lifetime of the provider.

    Usage:
    ------
    provider = SentenceTransformerProvider()
    vectors = await provider.embed(["What are React hooks?"])
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        normalize: bool = True
    ):
        """
        Initialize the provider.

        Args:
            model_name: Model name/path (default from settings, "" = unconfigured)
            device: Device to use: cpu, cuda, mps (default from settings)
            normalize: Whether to L2-normalize embeddings (default True)
        """
        self.model_name = model_name if model_name is not None else settings.EMBEDDING_MODEL
        self.device = device or settings.EMBEDDING_DEVICE
        self.normalize = normalize

        self.model: Optional[SentenceTransformer] = None
        self._lock = asyncio.Lock()

        self._validate_device()

    @property
    def is_configured(self) -> bool:
        return bool(self.model_name)

    def _validate_device(self) -> None:
        """Validate and adjust device setting based on availability."""
        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA not available, falling back to CPU")
            self.device = "cpu"
        elif self.device == "mps" and not torch.backends.mps.is_available():
            logger.warning("MPS not available, falling back to CPU")
            self.device = "cpu"

    async def initialize(self) -> None:
        """
        Load the model if it is not loaded yet.

        Raises:
            ConfigurationError: If no model name is configured
        """
        if not self.is_configured:
            raise ConfigurationError("Embedding model not configured. Set EMBEDDING_MODEL.")

        async with self._lock:
            if self.model is not None:
                return

            logger.info(f"Loading embedding model: {self.model_name} on {self.device}")
            self.model = await asyncio.to_thread(
                SentenceTransformer,
                self.model_name,
                device=self.device
            )
            logger.info(
                f"Embedding model loaded. "
                f"Dimension: {self.model.get_sentence_embedding_dimension()}, "
                f"Device: {self.device}"
            )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts with the loaded model (runs in a worker thread)."""
        await self.initialize()

        embeddings: np.ndarray = await asyncio.to_thread(
            self.model.encode,
            texts,
            batch_size=len(texts) or 1,
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
            convert_to_numpy=True
        )
        return embeddings.tolist()

    async def shutdown(self) -> None:
        """Free the model (and the CUDA cache when on GPU)."""
        if self.model is not None:
            if self.device == "cuda":
                torch.cuda.empty_cache()
            del self.model
            self.model = None
        logger.info("Embedding provider shut down")


# ========================================
# Generator
# ========================================

@dataclass
class BatchOutcome:
    """Result of embedding one batch: vectors on success, error on failure."""

    offset: int
    texts: list[str]
    vectors: Optional[list[list[float]]] = None
    error: Optional[EmbeddingBatchError] = None

    @property
    def ok(self) -> bool:
        return self.vectors is not None


@dataclass
class BatchRun:
    """All batch outcomes of one embedding run, in input order."""

    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def failed_offsets(self) -> list[int]:
        return [o.offset for o in self.outcomes if not o.ok]

    @property
    def embedded_count(self) -> int:
        return sum(len(o.texts) for o in self.outcomes if o.ok)


class EmbeddingGenerator:
    """
    Batch-aware front end to an EmbeddingProvider.

    Features:
    ---------
    - Batch-size ceiling (MAX_BATCH_SIZE, default 20)
    - Fail fast when the provider is unconfigured
    - Newlines normalized to spaces before submission
    - Response validation (count and consistent dimension)
    - Batch isolation: a failed batch is logged and skipped

    Usage:
    ------
    generator = EmbeddingGenerator(SentenceTransformerProvider())

    vectors = await generator.embed_batch(["chunk one", "chunk two"])

    run = await generator.embed_in_batches(all_chunk_texts)
    for outcome in run.outcomes:
        if outcome.ok:
            store(outcome.texts, outcome.vectors)
    """

    def __init__(self, provider: EmbeddingProvider, max_batch_size: Optional[int] = None):
        """
        Args:
            provider: Embedding provider to call
            max_batch_size: Ceiling on texts per provider call (default from settings)
        """
        self.provider = provider
        self.max_batch_size = (
            max_batch_size if max_batch_size is not None
            else settings.EMBEDDING_MAX_BATCH_SIZE
        )

        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If the provider cannot be called
        """
        if not self.provider.is_configured:
            raise ConfigurationError("Embedding provider is not configured")

    @staticmethod
    def prepare_text(text: str) -> str:
        """Replace newlines with spaces (better embedding quality)."""
        return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")

    async def embed_batch(self, chunks: Sequence[str], offset: int = 0) -> list[list[float]]:
        """
        Embed one batch of chunks.

        Args:
            chunks: Chunk texts, at most max_batch_size of them
            offset: Position of this batch in the caller's chunk list (for errors)

        Returns:
            One vector per chunk, in input order

        Raises:
            ConfigurationError: If the provider is not configured
            ValueError: If the batch exceeds the ceiling
            EmbeddingBatchError: If the provider fails or answers malformed data
        """
        self.ensure_configured()

        if not chunks:
            return []

        if len(chunks) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(chunks)} exceeds the maximum batch size of {self.max_batch_size}"
            )

        texts = [self.prepare_text(chunk) for chunk in chunks]

        try:
            vectors = await self.provider.embed(texts)
        except ConfigurationError:
            raise
        except Exception as e:
            raise EmbeddingBatchError(
                f"Provider failed for batch at offset {offset}: {e}",
                offset=offset,
                size=len(chunks),
                cause=e,
            ) from e

        return self._validate_vectors(vectors, expected=len(chunks), offset=offset)

    def _validate_vectors(self, vectors, expected: int, offset: int) -> list[list[float]]:
        """Check the provider returned one same-length numeric vector per input."""
        if vectors is None or len(vectors) != expected:
            got = "nothing" if vectors is None else len(vectors)
            raise EmbeddingBatchError(
                f"Provider returned {got} vectors for {expected} chunks at offset {offset}",
                offset=offset,
                size=expected,
            )

        result: list[list[float]] = []
        dimension: Optional[int] = None
        for vector in vectors:
            try:
                values = [float(x) for x in vector]
            except (TypeError, ValueError) as e:
                raise EmbeddingBatchError(
                    f"Provider returned a non-numeric vector at offset {offset}",
                    offset=offset,
                    size=expected,
                    cause=e,
                ) from e
            if not values or (dimension is not None and len(values) != dimension):
                raise EmbeddingBatchError(
                    f"Provider returned vectors of inconsistent dimension at offset {offset}",
                    offset=offset,
                    size=expected,
                )
            dimension = len(values)
            result.append(values)

        return result

    async def embed_in_batches(self, chunks: Sequence[str]) -> BatchRun:
        """
        Embed any number of chunks in sequential batches.

        A batch that fails is logged and reported in the run with no vectors;
        later batches still run.

        Raises:
            ConfigurationError: If the provider is not configured (before any call)
        """
        self.ensure_configured()

        run = BatchRun()
        for offset in range(0, len(chunks), self.max_batch_size):
            batch = list(chunks[offset:offset + self.max_batch_size])
            try:
                vectors = await self.embed_batch(batch, offset=offset)
                run.outcomes.append(BatchOutcome(offset=offset, texts=batch, vectors=vectors))
            except EmbeddingBatchError as e:
                logger.error(f"Error processing embeddings batch at offset {offset} ({len(batch)} chunks): {e}")
                run.outcomes.append(BatchOutcome(offset=offset, texts=batch, error=e))

        logger.info(
            f"Embedded {run.embedded_count}/{len(chunks)} chunks in {len(run.outcomes)} batches"
            + (f", failed batch offsets: {run.failed_offsets}" if run.failed_offsets else "")
        )
        return run

    async def embed_query(self, query: str) -> list[float]:
        """
        Embed a search query as a single-chunk batch.

        Raises:
            ConfigurationError: If the provider is not configured
            QueryEmbeddingError: If no vector could be produced
        """
        if not query or not query.strip():
            raise QueryEmbeddingError("Cannot embed an empty query")

        try:
            vectors = await self.embed_batch([query])
        except EmbeddingBatchError as e:
            logger.error(f"Failed to generate embedding for query: {e}")
            raise QueryEmbeddingError(f"Failed to generate embedding for query: {e}") from e

        return vectors[0]
