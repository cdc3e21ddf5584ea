"""
Answer Orchestrator

Grounded Q&A about a single video:

1. Retrieve the chunks of the video most relevant to the question
   (transcript, summary and notes only)
2. Present them to the answer provider as a numbered source list, next to
   the video's (truncated) transcript and title
3. Thread the prior conversation in, in the order given
4. Resolve the bracketed ordinals in the answer back to the presented
   results
"""

import logging
from typing import Optional, Sequence, Union

from vidrecall.core.config import settings
from vidrecall.core.exceptions import ConfigurationError
from vidrecall.models.embedding import ContentType
from vidrecall.schemas.answer import AnswerResult, ConversationMessage
from vidrecall.schemas.identity import AnonymousSessionId, UserId
from vidrecall.schemas.search import SearchFilters, SearchResult
from vidrecall.services.processors.chunker import extract_transcript_lines
from vidrecall.services.rag.citations import format_search_result, resolve_citations
from vidrecall.services.rag.generator import AnswerProvider
from vidrecall.services.rag.search import SemanticSearchService


logger = logging.getLogger(__name__)

CITABLE_CONTENT_TYPES = [ContentType.TRANSCRIPT, ContentType.SUMMARY, ContentType.NOTE]

TRUNCATION_MARKER = "... (transcript truncated)"

SYSTEM_INSTRUCTIONS = """You are an AI assistant that helps users understand the content of their saved videos.
You'll be given a transcript of a video and a numbered list of relevant passages, and need to answer questions about it accurately.

Your task is to:
1. Focus on information explicitly stated in the transcript and the passages
2. If the answer is not in the material, say you don't have enough information rather than guessing
3. Give concise but comprehensive answers with specific timestamps when possible
4. When a statement is supported by a numbered passage, cite it using [N] notation
5. If multiple passages support a point, cite all of them like [1, 2]"""


class AnswerOrchestrator:
    """
    Builds grounded, cited answers.

    Usage:
    ------
    orchestrator = AnswerOrchestrator(
        provider=AnthropicAnswerProvider(),
        search_service=search_service
    )

    result = await orchestrator.ask(
        owner=UserId(user_id=1),
        video_id=42,
        source_text=video.transcript,
        title=video.title,
        question="What does the speaker recommend?",
        history=[...]
    )
    print(result.answer)
    for citation in result.citations:
        print(citation.ordinal, citation.formatted_timestamp)
    """

    def __init__(
        self,
        provider: AnswerProvider,
        search_service: Optional[SemanticSearchService] = None,
        source_max_characters: Optional[int] = None,
        max_context_tokens: Optional[int] = None,
        citation_results: Optional[int] = None
    ):
        """
        Args:
            provider: Answer-generation provider
            search_service: Used by ``ask`` to retrieve citable results
            source_max_characters: Transcript truncation point (default from settings)
            max_context_tokens: Budget for presented results (default from settings)
            citation_results: Results retrieved by ``ask`` (default from settings)
        """
        self.provider = provider
        self.search_service = search_service
        self.source_max_characters = (
            source_max_characters if source_max_characters is not None
            else settings.QA_SOURCE_MAX_CHARACTERS
        )
        self.max_context_tokens = (
            max_context_tokens if max_context_tokens is not None
            else settings.QA_MAX_CONTEXT_TOKENS
        )
        self.citation_results = (
            citation_results if citation_results is not None
            else settings.QA_CITATION_RESULTS
        )

    # ========================================
    # Context Assembly
    # ========================================

    def truncate_source(self, source_text: str) -> str:
        """Plain text of the source, cut at the character limit."""
        lines, _ = extract_transcript_lines(source_text or "")
        text = " ".join(lines)
        if len(text) > self.source_max_characters:
            return text[:self.source_max_characters] + TRUNCATION_MARKER
        return text

    def select_presented(self, search_results: Sequence[SearchResult]) -> list[SearchResult]:
        """
        Results that fit the context budget, in their original order.

        Tokens are estimated at 4 characters each. Results past the budget
        are not presented and so can never be cited.
        """
        presented = []
        current_tokens = 0

        for i, result in enumerate(search_results):
            result_tokens = len(format_search_result(i + 1, result)) // 4
            if current_tokens + result_tokens > self.max_context_tokens:
                logger.info(f"Context truncated at {i} results ({current_tokens} tokens)")
                break
            presented.append(result)
            current_tokens += result_tokens

        return presented

    def build_system_context(
        self,
        source_text: str,
        title: str,
        presented: Sequence[SearchResult]
    ) -> str:
        """System prompt: instructions, source transcript, numbered passages."""
        sections = [
            SYSTEM_INSTRUCTIONS,
            f'Video title: "{title}"\n\nTranscript:\n{self.truncate_source(source_text)}',
        ]

        if presented:
            passages = "\n\n".join(
                format_search_result(i + 1, result) for i, result in enumerate(presented)
            )
            sections.append(f"Relevant passages:\n\n{passages}")
        else:
            sections.append("Relevant passages: none were found for this question.")

        return "\n\n---\n\n".join(sections)

    # ========================================
    # Answering
    # ========================================

    async def answer(
        self,
        source_text: str,
        title: str,
        question: str,
        history: Sequence[ConversationMessage],
        search_results: Sequence[SearchResult]
    ) -> AnswerResult:
        """
        Generate an answer from already-retrieved results.

        Raises:
            ConfigurationError: If the provider is not configured
            AnswerGenerationError: If the provider fails
        """
        if not self.provider.is_configured:
            raise ConfigurationError("Answer provider is not configured")

        presented = self.select_presented(search_results)
        system_context = self.build_system_context(source_text, title, presented)

        logger.info(
            f"Answering question about '{title}': '{question[:50]}' "
            f"with {len(presented)} passages and {len(history)} prior messages"
        )

        answer_text = await self.provider.generate(system_context, list(history), question)
        citations = resolve_citations(answer_text, presented)

        logger.info(f"Answer cites {len(citations)} of {len(presented)} passages")
        return AnswerResult(answer=answer_text, citations=citations)

    async def ask(
        self,
        owner: Union[UserId, AnonymousSessionId],
        video_id: int,
        source_text: str,
        title: str,
        question: str,
        history: Sequence[ConversationMessage] = ()
    ) -> AnswerResult:
        """
        Retrieve citable results for one video, then answer.

        Raises:
            ConfigurationError: If a provider is not configured or no search
                service was given
            QueryEmbeddingError: If the question could not be embedded
            AnswerGenerationError: If the provider fails
        """
        if self.search_service is None:
            raise ConfigurationError("AnswerOrchestrator.ask requires a search service")
        if not self.provider.is_configured:
            raise ConfigurationError("Answer provider is not configured")

        results = await self.search_service.search(
            owner,
            question,
            filters=SearchFilters(video_id=video_id, content_types=CITABLE_CONTENT_TYPES),
            limit=self.citation_results,
            record_history=False,
        )

        return await self.answer(source_text, title, question, history, results)
