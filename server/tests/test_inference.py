"""Tests for the OpenAI-backed inference service with a stubbed client."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from catalog.core.exceptions import InferenceError, InferenceNotConfiguredError
from catalog.services.inference import InferenceService


def stub_client(*contents: str) -> MagicMock:
    """Build an AsyncOpenAI look-alike answering each call with the next content."""
    responses = [
        SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        for content in contents
    ]
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=responses)
    return client


@pytest.mark.asyncio
class TestInferenceService:
    async def test_summarize_strips_whitespace(self):
        client = stub_client("  A sturdy oak desk.  ")
        service = InferenceService(model="test-model", client=client)

        assert await service.summarize("Oak desk with drawers") == "A sturdy oak desk."
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][1]["content"] == "Oak desk with drawers"

    async def test_infer_category_returns_raw_label(self):
        service = InferenceService(client=stub_client("I think Books."))

        assert await service.infer_category("Novel", "A story", ["Books", "Toys"]) == "I think Books."

    async def test_translate_parses_fenced_json(self):
        service = InferenceService(
            client=stub_client('```json\n{"title": "Escritorio", "description": "De roble"}\n```')
        )

        translation = await service.translate("Desk", "Oak", "es")

        assert translation.title == "Escritorio"
        assert translation.description == "De roble"

    async def test_translate_rejects_incomplete_payload(self):
        service = InferenceService(client=stub_client('{"title": "Escritorio"}'))

        with pytest.raises(InferenceError):
            await service.translate("Desk", "Oak", "es")

    async def test_empty_summary_is_an_error(self):
        service = InferenceService(client=stub_client("   "))

        with pytest.raises(InferenceError):
            await service.summarize("Oak desk")

    async def test_provider_errors_are_wrapped(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=openai.OpenAIError("rate limited"))
        service = InferenceService(client=client)

        with pytest.raises(InferenceError, match="rate limited"):
            await service.summarize("Oak desk")

    async def test_missing_api_key_means_not_configured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        service = InferenceService(api_key="")

        assert service.is_configured() is False
        with pytest.raises(InferenceNotConfiguredError):
            await service.summarize("Oak desk")
