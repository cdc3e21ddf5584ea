"""
Answer Provider for Q&A

This module calls the Claude API to answer a question about a video:
- System context (video title, transcript, numbered sources) is built by the
  caller and sent as the system prompt
- Prior conversation turns are sent in order, followed by the new question
- The raw answer text is returned; citation markers are resolved by the caller
"""

import logging
from typing import Optional, Protocol, Sequence, runtime_checkable

from anthropic import AsyncAnthropic

from vidrecall.core.config import settings
from vidrecall.core.exceptions import AnswerGenerationError, ConfigurationError
from vidrecall.schemas.answer import ConversationMessage


logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "Sorry, I could not generate an answer."


@runtime_checkable
class AnswerProvider(Protocol):
    """Anything that turns a system context, history and question into text."""

    @property
    def is_configured(self) -> bool:
        ...

    async def generate(
        self,
        system_context: str,
        history: Sequence[ConversationMessage],
        question: str
    ) -> str:
        ...


class AnthropicAnswerProvider:
    """
    Answer provider using Claude API.

    Unlike the embedding provider the client is only built when an API key
    is available; without one ``is_configured`` is False and ``generate``
    raises ConfigurationError.

    Usage:
    ------
    provider = AnthropicAnswerProvider(api_key=settings.ANTHROPIC_API_KEY)

    answer = await provider.generate(
        system_context="You are answering questions about ...",
        history=[ConversationMessage(role="user", content="...")],
        question="What does the speaker say about hooks?"
    )
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ):
        """
        Initialize the answer provider.

        Args:
            api_key: Anthropic API key (defaults to settings.ANTHROPIC_API_KEY)
            model: Claude model to use (defaults to settings.ANTHROPIC_MODEL)
            max_tokens: Maximum tokens in the answer (defaults to settings)
            temperature: Sampling temperature 0-1 (defaults to settings)
        """
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens if max_tokens is not None else settings.ANTHROPIC_MAX_TOKENS
        self.temperature = temperature if temperature is not None else settings.ANTHROPIC_TEMPERATURE

        self.client: Optional[AsyncAnthropic] = None
        if self.api_key:
            self.client = AsyncAnthropic(api_key=self.api_key)
            logger.info(f"AnthropicAnswerProvider initialized with model={self.model}, max_tokens={self.max_tokens}")
        else:
            logger.warning("ANTHROPIC_API_KEY not set, answer generation is disabled")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        system_context: str,
        history: Sequence[ConversationMessage],
        question: str
    ) -> str:
        """
        Generate an answer.

        Raises:
            ConfigurationError: If no API key is configured
            AnswerGenerationError: If the API call fails
        """
        if not self.is_configured:
            raise ConfigurationError("Answer provider not configured. Set ANTHROPIC_API_KEY.")

        messages = [{"role": m.role, "content": m.content} for m in history]
        messages.append({"role": "user", "content": question})

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_context,
                messages=messages
            )
        except Exception as e:
            logger.error(f"Error generating answer: {e}")
            raise AnswerGenerationError(f"Answer generation failed: {e}") from e

        answer = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        ).strip()

        logger.info(
            f"Generated answer: {len(answer)} chars, "
            f"{response.usage.input_tokens + response.usage.output_tokens} tokens"
        )
        return answer or FALLBACK_ANSWER
