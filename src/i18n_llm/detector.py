from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Protocol

from .engines.base import BatchItem, TranslationRequest
from .hashing import content_hash
from .output import get_path, has_text
from .schema import Schema
from .state import StateEntry, TranslationState, cleanup_state


log = logging.getLogger("i18n_llm.detector")

REASON_NEW = "new"
REASON_CHANGED = "changed"
REASON_MISSING = "missing"
REASON_NEVER_GENERATED = "never-generated"
REASON_FORCED = "forced"


class DocumentSource(Protocol):
    def existing(self, index: int, lang: str) -> dict[str, Any] | None:
        ...


@dataclass(frozen=True)
class PendingItem:
    state_key: str
    schema_index: int
    prefix: str
    path: str
    target_lang: str
    source_lang: str
    description: str
    reason: str
    is_plural: bool = False
    context: str | None = None
    entity_context: str | None = None
    category: str | None = None
    params: dict[str, Any] | None = None
    max_length: int | None = None
    persona: dict[str, Any] | None = None
    glossary: dict[str, str] | None = None

    def to_request(self) -> TranslationRequest:
        return TranslationRequest(
            source_text=self.description,
            target_lang=self.target_lang,
            source_lang=self.source_lang,
            persona=self.persona,
            glossary=self.glossary,
            context=self.context,
            category=self.category,
            is_plural=self.is_plural,
            params=self.params,
            max_length=self.max_length,
            key=self.path,
        )

    def to_batch_item(self) -> BatchItem:
        return BatchItem(
            key=self.path,
            source_text=self.description,
            is_plural=self.is_plural,
            max_length=self.max_length,
            # the batch already carries the entity context
            context=self.context if self.context != self.entity_context else None,
            category=self.category,
        )


@dataclass
class ChangePlan:
    pending: list[PendingItem] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    reasons: Counter = field(default_factory=Counter)

    def add(self, item: PendingItem) -> None:
        self.pending.append(item)
        self.reasons[item.reason] += 1


def effective_persona(schema: Schema, default: dict[str, Any] | None) -> dict[str, Any] | None:
    return schema.persona if schema.persona is not None else default


def effective_glossary(schema: Schema, default: dict[str, str] | None) -> dict[str, str] | None:
    if not default and not schema.glossary:
        return None
    return {**(default or {}), **(schema.glossary or {})}


def detect_changes(
    schemas: list[Schema],
    state: TranslationState,
    documents: DocumentSource,
    source_lang: str | None = None,
    force: bool = False,
    default_persona: dict[str, Any] | None = None,
    default_glossary: dict[str, str] | None = None,
) -> ChangePlan:
    """Work out which ``(key, language)`` pairs need a provider call.

    Mutates ``state``: new entries are created, entries whose content hash
    changed get the new hash and lose their per-language result hashes, and
    orphaned entries are removed.
    """
    plan = ChangePlan()
    live_keys: set[str] = set()
    seen_at: dict[str, str] = {}

    for index, schema in enumerate(schemas):
        persona = effective_persona(schema, default_persona)
        glossary = effective_glossary(schema, default_glossary)
        src = schema.source_lang or source_lang or ""

        for leaf in schema.iter_leaves():
            key = schema.state_key(leaf.path)
            if key in seen_at:
                log.warning("duplicate key identity %s (%s and %s); last one wins", key, seen_at[key], schema.path)
            seen_at[key] = schema.path
            live_keys.add(key)

            current = content_hash(leaf.entry, leaf.context, persona, glossary)
            entry = state.get(key)
            if entry is None:
                state[key] = StateEntry(hash=current)
                base_reason: str | None = REASON_NEW
            elif entry.hash != current:
                entry.hash = current
                entry.text_hashes.clear()
                base_reason = REASON_CHANGED
            else:
                base_reason = None
            if force:
                base_reason = REASON_FORCED

            for lang in schema.target_langs:
                reason = base_reason
                if reason is None:
                    doc = documents.existing(index, lang)
                    value = get_path(doc, leaf.path) if doc is not None else None
                    if not has_text(value, leaf.entry.is_plural):
                        reason = REASON_MISSING
                    elif lang not in state[key].text_hashes:
                        reason = REASON_NEVER_GENERATED
                if reason is None:
                    continue
                plan.add(
                    PendingItem(
                        state_key=key,
                        schema_index=index,
                        prefix=schema.prefix,
                        path=leaf.path,
                        target_lang=lang,
                        source_lang=src,
                        description=leaf.entry.description,
                        reason=reason,
                        is_plural=leaf.entry.is_plural,
                        context=leaf.context,
                        entity_context=leaf.entity_context,
                        category=leaf.entry.category,
                        params=leaf.entry.params,
                        max_length=leaf.entry.max_length,
                        persona=persona,
                        glossary=glossary,
                    )
                )

    plan.orphans = cleanup_state(state, live_keys)
    for key in plan.orphans:
        log.info("removed orphaned state entry %s", key)
    return plan
