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


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass
class GeminiEngine:
    api_key: str
    client: JsonApiClient
    model: str = "gemini-2.5-flash"
    base_url: str | None = None
    temperature: float = 0.3
    max_output_tokens: int = 8192

    name: str = "gemini"
    usage: TokenUsage = field(default_factory=TokenUsage)

    def _generate(self, system_prompt: str, user_prompt: str, json_mode: bool) -> str:
        if not self.api_key:
            raise ProviderError("Gemini API key is required")
        generation_config: dict[str, Any] = {
            "temperature": self.temperature,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": self.max_output_tokens,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": generation_config,
        }
        url = f"{(self.base_url or DEFAULT_BASE_URL).rstrip('/')}/models/{self.model}:generateContent"
        data = self.client.post(url, payload, headers={"x-goog-api-key": self.api_key})

        meta = data.get("usageMetadata") or {}
        self.usage.add(
            int(meta.get("promptTokenCount") or 0),
            int(meta.get("candidatesTokenCount") or 0),
        )

        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError("empty response from Gemini")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        content = "".join(str(part.get("text", "")) for part in parts)
        if not content:
            raise ProviderError(
                f"invalid response format from Gemini (finishReason={candidates[0].get('finishReason')})"
            )
        return content

    def translate(self, request: TranslationRequest) -> GeneratedText:
        content = self._generate(
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
        content = self._generate(
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
        content = self._generate(
            build_review_system_prompt(language, max_length, persona, context),
            build_review_user_prompt(source_text, translated_text),
            json_mode=True,
        )
        return review_result(parse_json_response(content), translated_text, max_length)
