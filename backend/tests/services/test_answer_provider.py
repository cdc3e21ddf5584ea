"""
Tests for the Claude answer provider (API client mocked).
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from vidrecall.core.exceptions import AnswerGenerationError, ConfigurationError
from vidrecall.schemas.answer import ConversationMessage
from vidrecall.services.rag.generator import FALLBACK_ANSWER, AnthropicAnswerProvider


def mock_response(*texts):
    return Mock(
        content=[Mock(type="text", text=text) for text in texts],
        usage=Mock(input_tokens=120, output_tokens=40),
    )


@pytest.fixture
def provider():
    provider = AnthropicAnswerProvider(api_key="test-api-key", model="claude-test", max_tokens=256)
    provider.client = Mock()
    provider.client.messages.create = AsyncMock(return_value=mock_response("Hooks hold state [1]."))
    return provider


def test_provider_initialization():
    """Unset options fall back to settings."""
    provider = AnthropicAnswerProvider(api_key="test-api-key")

    assert provider.is_configured
    assert provider.model == "claude-3-5-haiku-20241022"
    assert provider.max_tokens == 800
    assert provider.temperature == 0.7


def test_provider_without_key():
    with patch("vidrecall.services.rag.generator.settings.ANTHROPIC_API_KEY", None):
        provider = AnthropicAnswerProvider()

    assert not provider.is_configured
    assert provider.client is None


@pytest.mark.asyncio
async def test_generate_without_key():
    with patch("vidrecall.services.rag.generator.settings.ANTHROPIC_API_KEY", None):
        provider = AnthropicAnswerProvider()

    with pytest.raises(ConfigurationError):
        await provider.generate("context", [], "question")


@pytest.mark.asyncio
async def test_generate_builds_messages(provider):
    history = [
        ConversationMessage(role="user", content="What is this about?"),
        ConversationMessage(role="assistant", content="React hooks."),
    ]

    answer = await provider.generate("SYSTEM CONTEXT", history, "What is useState?")

    assert answer == "Hooks hold state [1]."
    provider.client.messages.create.assert_awaited_once_with(
        model="claude-test",
        max_tokens=256,
        temperature=0.7,
        system="SYSTEM CONTEXT",
        messages=[
            {"role": "user", "content": "What is this about?"},
            {"role": "assistant", "content": "React hooks."},
            {"role": "user", "content": "What is useState?"},
        ],
    )


@pytest.mark.asyncio
async def test_generate_joins_text_blocks(provider):
    provider.client.messages.create.return_value = mock_response("Part one. ", "Part two [2].")

    assert await provider.generate("ctx", [], "q") == "Part one. Part two [2]."


@pytest.mark.asyncio
async def test_generate_empty_answer(provider):
    provider.client.messages.create.return_value = mock_response("   ")

    assert await provider.generate("ctx", [], "q") == FALLBACK_ANSWER


@pytest.mark.asyncio
async def test_generate_api_error(provider):
    provider.client.messages.create.side_effect = RuntimeError("overloaded")

    with pytest.raises(AnswerGenerationError, match="overloaded"):
        await provider.generate("ctx", [], "q")
