from __future__ import annotations

import json
import logging
import re
from typing import Any

from .base import (
    PLURAL_KEYS,
    BatchItem,
    GeneratedText,
    PluralForms,
    ResponseParsingError,
    ReviewResult,
)


log = logging.getLogger("i18n_llm.engines.parsing")

CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f\u200b-\u200f\ufeff]")
KEY_PREFIX_RE = re.compile(r"^(?:translation_|translated_|text_)")
COUNT_PLACEHOLDER = "{count}"

PLURAL_ALIASES = {
    "zero": "=0",
    "0": "=0",
    "one": "=1",
    "1": "=1",
    "other": ">1",
    "many": ">1",
}


def extract_json(response: str) -> str:
    match = CODE_BLOCK_RE.search(response)
    if match:
        return match.group(1)
    match = JSON_OBJECT_RE.search(response)
    if match:
        return match.group(0)
    return response.strip()


def parse_json_response(response: str) -> dict[str, Any]:
    try:
        data = json.loads(extract_json(response))
    except json.JSONDecodeError as exc:
        raise ResponseParsingError(f"failed to parse JSON response: {exc}", response) from exc
    if not isinstance(data, dict):
        raise ResponseParsingError("expected a JSON object in response", response)
    return data


def clean_key(key: str) -> str:
    return CONTROL_CHARS_RE.sub("", str(key)).strip()


def _match_key(raw_key: str, expected: dict[str, BatchItem]) -> str:
    key = clean_key(raw_key)
    if key in expected:
        return key
    return KEY_PREFIX_RE.sub("", key).strip()


def normalize_plural_forms(value: Any, raw_response: str = "", key: str = "") -> PluralForms:
    if not isinstance(value, dict):
        raise ResponseParsingError("pluralized result must be an object", raw_response)
    cleaned: dict[str, Any] = {}
    for raw_key, form in value.items():
        cleaned[clean_key(raw_key)] = form

    forms: PluralForms = {}
    for plural_key in PLURAL_KEYS:
        form = cleaned.get(plural_key)
        if form is None:
            for alias, target in PLURAL_ALIASES.items():
                if target == plural_key and cleaned.get(alias) is not None:
                    form = cleaned[alias]
                    break
        if not isinstance(form, str):
            raise ResponseParsingError(
                f"pluralized result is missing form {plural_key!r}", raw_response
            )
        forms[plural_key] = form.strip()

    extra = sorted(set(cleaned) - set(PLURAL_KEYS))
    if extra:
        log.debug("dropped extra plural keys: %s", ", ".join(extra))
    if COUNT_PLACEHOLDER not in forms[">1"]:
        log.warning("plural form '>1' of %s has no %s placeholder", key or "text", COUNT_PLACEHOLDER)
    return forms


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    if not text[max_length].isspace():
        boundary = max(cut.rfind(" "), cut.rfind("\n"))
        if boundary > 0:
            cut = cut[:boundary]
    return cut.rstrip(" \t\n,;:-")


def enforce_max_length(value: GeneratedText, max_length: int | None, key: str = "") -> GeneratedText:
    if not max_length or max_length <= 0:
        return value
    if isinstance(value, str):
        if len(value) <= max_length:
            return value
        truncated = truncate_text(value, max_length)
        log.warning(
            "truncated %s from %s to %s characters (maxLength=%s)",
            key or "text",
            len(value),
            len(truncated),
            max_length,
        )
        if COUNT_PLACEHOLDER in value and COUNT_PLACEHOLDER not in truncated:
            log.warning("truncating %s removed its %s placeholder", key or "text", COUNT_PLACEHOLDER)
        return truncated
    return {
        plural_key: enforce_max_length(form, max_length, f"{key}[{plural_key}]")
        for plural_key, form in value.items()
    }


def clean_batch_result(
    result: dict[str, Any], items: list[BatchItem], raw_response: str = ""
) -> dict[str, GeneratedText]:
    if not isinstance(result, dict):
        raise ResponseParsingError("batch result must be a JSON object", raw_response)
    expected = {item.key: item for item in items}
    cleaned: dict[str, GeneratedText] = {}
    for raw_key, value in result.items():
        key = _match_key(raw_key, expected)
        item = expected.get(key)
        if item is None:
            log.warning("ignoring unexpected key in batch result: %r", raw_key)
            continue
        if item.is_plural:
            try:
                text: GeneratedText = normalize_plural_forms(value, raw_response, key)
            except ResponseParsingError as exc:
                log.warning("invalid plural result for %s: %s", key, exc)
                continue
        elif isinstance(value, str):
            text = value.strip()
        elif isinstance(value, dict) and isinstance(value.get("text"), str):
            text = value["text"].strip()
        else:
            log.warning("invalid value type for %s: expected string", key)
            continue
        cleaned[key] = enforce_max_length(text, item.max_length, key)
    return cleaned


def single_result(content: str, is_plural: bool, max_length: int | None, key: str = "") -> GeneratedText:
    if is_plural:
        forms = normalize_plural_forms(parse_json_response(content), content, key)
        return enforce_max_length(forms, max_length, key)
    text = content.strip()
    if not text:
        raise ResponseParsingError("empty text in response", content)
    return enforce_max_length(text, max_length, key)


def _as_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "ok")
    if value is None:
        return default
    return bool(value)


def review_result(data: dict[str, Any], translated_text: str, max_length: int | None) -> ReviewResult:
    length_ok = _as_bool(data.get("obeysLengthConstraint", data.get("lengthOk")))
    if max_length and len(translated_text) > max_length:
        length_ok = False
    score = data.get("score")
    return ReviewResult(
        tone_ok=_as_bool(data.get("isToneConsistent", data.get("toneOk"))),
        grammar_ok=_as_bool(data.get("isGrammaticallyCorrect", data.get("grammarOk"))),
        length_ok=length_ok,
        comment=str(data.get("comment") or ""),
        schema_suggestion=str(data.get("schemaSuggestion") or ""),
        score=int(score) if isinstance(score, (int, float)) else None,
    )
