"""OpenAI-backed inference capability: summaries, category labels, translations."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Sequence

import openai
from openai import AsyncOpenAI

from catalog.core.config import get_settings
from catalog.core.exceptions import InferenceError, InferenceNotConfiguredError

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "You summarize product descriptions in at most two clear and concise sentences."
)
CATEGORY_PROMPT = (
    "You pick the most suitable category for a product from the list provided. "
    "Reply with the exact name of the chosen category only."
)
TRANSLATION_PROMPT = (
    "You are a professional translator. Reply only with a JSON object whose keys "
    '"title" and "description" hold the product text translated to the requested language.'
)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class TranslatedContent:
    """Translated title and description for one product."""

    title: str
    description: str


class InferenceService:
    """Thin async wrapper around the OpenAI chat completions API.

    The service is usable without an API key: ``is_configured`` reports
    ``False`` and every call raises ``InferenceNotConfiguredError``, letting
    callers tell "unavailable" apart from a runtime failure.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.openai_model
        api_key = api_key if api_key is not None else settings.openai_api_key

        if client is not None:
            self._client: AsyncOpenAI | None = client
        elif api_key:
            self._client = AsyncOpenAI(api_key=api_key)
        else:
            self._client = None

    def is_configured(self) -> bool:
        return self._client is not None

    async def summarize(self, text: str) -> str:
        """Return a short summary of ``text``."""
        summary = await self._complete(SUMMARY_PROMPT, text, max_tokens=120)
        if not summary:
            raise InferenceError("OpenAI did not return a summary")
        return summary

    async def infer_category(self, title: str, description: str, categories: Sequence[str]) -> str:
        """Return the raw label suggested for a product; matching is up to the caller."""
        prompt = f"Available categories: {', '.join(categories)}\nTitle: {title}\nDescription: {description}"
        label = await self._complete(CATEGORY_PROMPT, prompt, max_tokens=40)
        if not label:
            raise InferenceError("OpenAI did not return a category")
        return label

    async def translate(self, title: str, description: str, target_language: str) -> TranslatedContent:
        """Translate a product's title and description to ``target_language``."""
        payload = json.dumps({"targetLanguage": target_language, "title": title, "description": description})
        raw = await self._complete(TRANSLATION_PROMPT, payload, max_tokens=400)
        if not raw:
            raise InferenceError("OpenAI did not return a translation")

        try:
            parsed = json.loads(_JSON_FENCE.sub("", raw).strip())
        except json.JSONDecodeError as exc:
            raise InferenceError("Failed to parse translation response", original_error=exc) from exc

        if not isinstance(parsed, dict) or not parsed.get("title") or not parsed.get("description"):
            raise InferenceError("Translation response was incomplete")

        return TranslatedContent(title=str(parsed["title"]), description=str(parsed["description"]))

    async def _complete(self, system: str, user: str, *, max_tokens: int) -> str:
        if self._client is None:
            raise InferenceNotConfiguredError()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                temperature=0.2,
            )
        except openai.OpenAIError as exc:
            logger.warning(f"OpenAI request failed: {exc}")
            raise InferenceError(f"OpenAI request failed: {exc}", original_error=exc) from exc

        if not response.choices:
            return ""
        content = response.choices[0].message.content or ""
        return content.strip()
