from __future__ import annotations

import json
from typing import Any

from ..languages import language_name
from .base import BatchItem, BatchMetadata, TranslationRequest


DEFAULT_PERSONA = "Standard professional and clear."

PLURAL_RULES = (
    "**Pluralization Rules:**\n"
    '- "=0": exactly zero items (e.g. "No messages")\n'
    '- "=1": exactly one item (e.g. "1 message")\n'
    '- ">1": more than one item, keep the {count} placeholder (e.g. "{count} messages")\n'
    "Return exactly these three keys and nothing else.\n"
)


def persona_section(persona: dict[str, Any] | None, include_examples: bool = True) -> str:
    if not persona:
        return DEFAULT_PERSONA
    lines: list[str] = []
    if persona.get("role"):
        lines.append(f"**Role:** Act as a {persona['role']}.")
    if persona.get("tone"):
        lines.append(f"**Tone:** {persona['tone']}.")
    if persona.get("audience"):
        lines.append(f"**Audience:** {persona['audience']}.")
    examples = persona.get("examples") or []
    if include_examples and examples:
        lines.append("**Examples:**")
        for ex in examples:
            if isinstance(ex, dict):
                lines.append(f'- Input: "{ex.get("input", "")}" -> Output: "{ex.get("output", "")}"')
    return "\n".join(lines) or DEFAULT_PERSONA


def glossary_section(glossary: dict[str, str] | None) -> str:
    if not glossary:
        return ""
    lines = ["**Glossary (use these terms exactly):**"]
    for term, preferred in glossary.items():
        lines.append(f'- "{term}" -> "{preferred}"')
    return "\n".join(lines)


def _opening(source_lang: str, target_lang: str) -> str:
    if source_lang == target_lang:
        return (
            "You are a professional content writer. Write original text in "
            f"{language_name(target_lang)} based on the descriptions you are given. "
            "The descriptions are instructions, not text to translate."
        )
    return (
        "You are a professional translator. Translate from "
        f"{language_name(source_lang)} to {language_name(target_lang)}."
    )


def build_system_prompt(request: TranslationRequest) -> str:
    parts = [_opening(request.source_lang, request.target_lang), persona_section(request.persona)]
    glossary = glossary_section(request.glossary)
    if glossary:
        parts.append(glossary)
    if request.context:
        parts.append(f"**Context:** {request.context}")
    if request.category:
        parts.append(f"**Category:** {request.category}")
    if request.params:
        parts.append(
            "**Placeholders (keep unchanged):** " + ", ".join("{" + str(p) + "}" for p in request.params)
        )
    if request.is_plural:
        parts.append(PLURAL_RULES)
    if request.max_length:
        parts.append(f"**Constraints:** maximum {request.max_length} characters.")
    verb = "generated" if request.is_generation else "translated"
    output = f"**Output:** Return ONLY the {verb} text, nothing else."
    if request.is_plural:
        output += ' Return valid JSON with keys "=0", "=1" and ">1".'
    parts.append(output)
    return "\n\n".join(parts)


def build_user_prompt(request: TranslationRequest) -> str:
    if request.is_generation:
        return f"Generate text based on this description:\n\n{request.source_text}"
    return f"Translate this text:\n\n{request.source_text}"


def build_batch_system_prompt(
    items: list[BatchItem],
    target_lang: str,
    source_lang: str,
    persona: dict[str, Any] | None,
    glossary: dict[str, str] | None,
    metadata: BatchMetadata,
) -> str:
    parts = [_opening(source_lang, target_lang), persona_section(persona, include_examples=False)]
    glossary_text = glossary_section(glossary)
    if glossary_text:
        parts.append(glossary_text)
    if metadata.context:
        parts.append(f"**Context:** {metadata.context}")
    if metadata.category:
        parts.append(f"**Category:** {metadata.category}")
    if any(item.is_plural for item in items):
        parts.append(PLURAL_RULES)
    limited = [item for item in items if item.max_length]
    if limited:
        lines = ["**Length Constraints:**"]
        for item in limited:
            lines.append(f'- "{item.key}": maximum {item.max_length} characters')
        parts.append("\n".join(lines))
    verb = "generated" if source_lang == target_lang else "translated"
    parts.append(
        "**Output Format:** Return a JSON object whose keys are exactly the item keys "
        f"and whose values are the {verb} texts. For pluralized items return an object "
        'with keys "=0", "=1" and ">1". Return ONLY valid JSON, no markdown or explanations.'
    )
    return "\n\n".join(parts)


def build_batch_user_prompt(items: list[BatchItem], target_lang: str, source_lang: str) -> str:
    payload: dict[str, Any] = {}
    for item in items:
        entry: dict[str, Any] = {"text": item.source_text}
        if item.is_plural:
            entry["plural"] = True
        if item.context:
            entry["context"] = item.context
        if item.category:
            entry["category"] = item.category
        payload[item.key] = entry if len(entry) > 1 else item.source_text
    body = json.dumps(payload, indent=2, ensure_ascii=False)
    if source_lang == target_lang:
        return f"Generate texts based on these descriptions:\n\n{body}"
    return f"Translate these texts:\n\n{body}"


def build_review_system_prompt(
    language: str,
    max_length: int | None,
    persona: dict[str, Any] | None,
    context: str | None,
) -> str:
    parts = [f"You are a professional translation reviewer for {language_name(language)}."]
    if persona:
        parts.append(persona_section(persona, include_examples=False))
    if context:
        parts.append(f"**Context:** {context}")
    if max_length:
        parts.append(f"**Max Length:** {max_length} characters")
    parts.append(
        "**Output Format:** Return a JSON object with:\n"
        '- "isToneConsistent": boolean\n'
        '- "isGrammaticallyCorrect": boolean\n'
        '- "obeysLengthConstraint": boolean\n'
        '- "score": number from 0 to 100\n'
        '- "comment": short explanation of any problem\n'
        '- "schemaSuggestion": how the source description could be improved, or ""'
    )
    return "\n\n".join(parts)


def build_review_user_prompt(source_text: str, translated_text: str) -> str:
    return f"Review this text:\n\nSource: {source_text}\n\nResult: {translated_text}"
