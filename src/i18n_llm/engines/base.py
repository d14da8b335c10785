from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Union


PLURAL_KEYS = ("=0", "=1", ">1")

PluralForms = dict[str, str]
GeneratedText = Union[str, PluralForms]


class ProviderError(RuntimeError):
    pass


class ResponseParsingError(ProviderError):
    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


@dataclass(frozen=True)
class TranslationRequest:
    source_text: str
    target_lang: str
    source_lang: str
    persona: dict[str, Any] | None = None
    glossary: dict[str, str] | None = None
    context: str | None = None
    category: str | None = None
    is_plural: bool = False
    params: dict[str, Any] | None = None
    max_length: int | None = None
    key: str | None = None

    @property
    def is_generation(self) -> bool:
        return self.source_lang == self.target_lang


@dataclass(frozen=True)
class BatchItem:
    key: str
    source_text: str
    is_plural: bool = False
    max_length: int | None = None
    context: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class BatchMetadata:
    context: str | None = None
    category: str | None = None


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    requests: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.requests += 1

    def snapshot(self) -> TokenUsage:
        return TokenUsage(self.input_tokens, self.output_tokens, self.requests)

    def since(self, earlier: TokenUsage) -> TokenUsage:
        return TokenUsage(
            self.input_tokens - earlier.input_tokens,
            self.output_tokens - earlier.output_tokens,
            self.requests - earlier.requests,
        )


@dataclass(frozen=True)
class ReviewResult:
    tone_ok: bool
    grammar_ok: bool
    length_ok: bool
    comment: str = ""
    schema_suggestion: str = ""
    score: int | None = None

    @property
    def passed(self) -> bool:
        return self.tone_ok and self.grammar_ok and self.length_ok


@dataclass(frozen=True)
class BatchOutcome:
    results: dict[str, GeneratedText]


@dataclass(frozen=True)
class BatchError:
    error: Exception
    keys: tuple[str, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


BatchResult = Union[BatchOutcome, BatchError]


class TranslationEngine(Protocol):
    name: str
    model: str
    usage: TokenUsage

    def translate(self, request: TranslationRequest) -> GeneratedText:
        ...

    def translate_batch(
        self,
        items: list[BatchItem],
        target_lang: str,
        source_lang: str,
        persona: dict[str, Any] | None,
        glossary: dict[str, str] | None,
        metadata: BatchMetadata,
    ) -> dict[str, GeneratedText]:
        ...

    def review(
        self,
        source_text: str,
        translated_text: str,
        language: str,
        max_length: int | None = None,
        persona: dict[str, Any] | None = None,
        context: str | None = None,
    ) -> ReviewResult:
        ...
