from __future__ import annotations

import hashlib
import json
from typing import Any

from .engines.base import GeneratedText
from .schema import LeafEntry


def _checksum(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def content_hash(
    entry: LeafEntry,
    context: str | None = None,
    persona: dict[str, Any] | None = None,
    glossary: dict[str, str] | None = None,
) -> str:
    return _checksum(
        _canonical(
            {
                "description": entry.description,
                "pluralization": entry.is_plural,
                "constraints": entry.constraints,
                "context": context,
                "category": entry.category,
                "params": entry.params,
                "persona": persona,
                "glossary": glossary,
            }
        )
    )


def text_hash(text: GeneratedText) -> str:
    if isinstance(text, str):
        return _checksum(text)
    return _checksum(_canonical(text))
