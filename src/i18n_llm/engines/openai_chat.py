from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .base import (
    BatchItem,
    BatchMetadata,
    GeneratedText,
    ProviderError,
    ReviewResult,
    TokenUsage,
    TranslationRequest,
)
from .http import JsonApiClient
from .parsing import clean_batch_result, parse_json_response, review_result, single_result
from .prompts import (
    build_batch_system_prompt,
    build_batch_user_prompt,
    build_review_system_prompt,
    build_review_user_prompt,
    build_system_prompt,
    build_user_prompt,
)


DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass
class OpenAIChatEngine:
    api_key: str
    client: JsonApiClient
    model: str = "gpt-4.1-mini"
    base_url: str | None = None
    temperature: float = 0.3

    name: str = "openai"
    usage: TokenUsage = field(default_factory=TokenUsage)

    def _complete(self, system_prompt: str, user_prompt: str, json_mode: bool) -> str:
        if not self.api_key:
            raise ProviderError("OpenAI API key is required")
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        url = f"{(self.base_url or DEFAULT_BASE_URL).rstrip('/')}/chat/completions"
        data = self.client.post(url, payload, headers={"Authorization": f"Bearer {self.api_key}"})

        usage = data.get("usage") or {}
        self.usage.add(int(usage.get("prompt_tokens") or 0), int(usage.get("completion_tokens") or 0))

        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if not content:
            raise ProviderError("empty response from OpenAI")
        return content

    def translate(self, request: TranslationRequest) -> GeneratedText:
        content = self._complete(
            build_system_prompt(request),
            build_user_prompt(request),
            json_mode=request.is_plural,
        )
        return single_result(content, request.is_plural, request.max_length, request.key or "")

    def translate_batch(
        self,
        items: list[BatchItem],
        target_lang: str,
        source_lang: str,
        persona: dict[str, Any] | None,
        glossary: dict[str, str] | None,
        metadata: BatchMetadata,
    ) -> dict[str, GeneratedText]:
        if not items:
            return {}
        content = self._complete(
            build_batch_system_prompt(items, target_lang, source_lang, persona, glossary, metadata),
            build_batch_user_prompt(items, target_lang, source_lang),
            json_mode=True,
        )
        return clean_batch_result(parse_json_response(content), items, content)

    def review(
        self,
        source_text: str,
        translated_text: str,
        language: str,
        max_length: int | None = None,
        persona: dict[str, Any] | None = None,
        context: str | None = None,
    ) -> ReviewResult:
        content = self._complete(
            build_review_system_prompt(language, max_length, persona, context),
            build_review_user_prompt(source_text, translated_text),
            json_mode=True,
        )
        return review_result(parse_json_response(content), translated_text, max_length)
