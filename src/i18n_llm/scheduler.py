from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .detector import PendingItem
from .engines.base import (
    BatchError,
    BatchMetadata,
    BatchOutcome,
    BatchResult,
    GeneratedText,
    ResponseParsingError,
    TranslationEngine,
)
from .engines.parsing import enforce_max_length, normalize_plural_forms

log = logging.getLogger("i18n_llm.scheduler")


@dataclass(frozen=True)
class Batch:
    target_lang: str
    schema_index: int
    context: str | None
    items: tuple[PendingItem, ...]

    @property
    def source_lang(self) -> str:
        return self.items[0].source_lang

    @property
    def persona(self) -> dict[str, Any] | None:
        return self.items[0].persona

    @property
    def glossary(self) -> dict[str, str] | None:
        return self.items[0].glossary

    def metadata(self) -> BatchMetadata:
        categories = {item.category for item in self.items}
        category = categories.pop() if len(categories) == 1 else None
        return BatchMetadata(context=self.context, category=category)


@dataclass
class ScheduleReport:
    generated: list[tuple[PendingItem, GeneratedText]] = field(default_factory=list)
    failed: list[PendingItem] = field(default_factory=list)
    missed: list[PendingItem] = field(default_factory=list)
    batches: int = 0
    fallbacks: int = 0
    calls: int = 0


def group_batches(items: list[PendingItem], batch_size: int) -> list[Batch]:
    groups: dict[tuple[str, int, str | None], list[PendingItem]] = {}
    for item in items:
        groups.setdefault((item.target_lang, item.schema_index, item.entity_context), []).append(item)

    size = max(batch_size, 1)
    batches: list[Batch] = []
    for (lang, index, context), members in groups.items():
        for start in range(0, len(members), size):
            batches.append(Batch(lang, index, context, tuple(members[start : start + size])))
    return batches


def attempt_batch(engine: TranslationEngine, batch: Batch) -> BatchResult:
    try:
        results = engine.translate_batch(
            [item.to_batch_item() for item in batch.items],
            batch.target_lang,
            batch.source_lang,
            batch.persona,
            batch.glossary,
            batch.metadata(),
        )
    except Exception as exc:
        return BatchError(error=exc, keys=tuple(item.path for item in batch.items))
    if not isinstance(results, dict):
        return BatchError(
            error=ResponseParsingError(f"batch result must be a mapping, got {type(results).__name__}"),
            keys=tuple(item.path for item in batch.items),
        )
    return BatchOutcome(results=results)


def accept_result(item: PendingItem, value: Any) -> GeneratedText:
    if item.is_plural:
        text: GeneratedText = normalize_plural_forms(value, key=item.path)
    elif isinstance(value, str):
        text = value
    else:
        raise ResponseParsingError(f"expected text for {item.path}, got {type(value).__name__}")
    return enforce_max_length(text, item.max_length, item.path)


def _translate_each(
    engine: TranslationEngine,
    batch: Batch,
    report: ScheduleReport,
    on_result: Callable[[PendingItem, GeneratedText], None],
) -> None:
    for item in batch.items:
        report.calls += 1
        try:
            text = accept_result(item, engine.translate(item.to_request()))
        except Exception as exc:
            log.error("failed %s (%s): %s", item.path, item.target_lang, exc)
            report.failed.append(item)
            continue
        on_result(item, text)
        report.generated.append((item, text))


def run_batches(
    engine: TranslationEngine,
    items: list[PendingItem],
    batch_size: int,
    on_result: Callable[[PendingItem, GeneratedText], None],
    checkpoint: Callable[[Batch], None] | None = None,
) -> ScheduleReport:
    report = ScheduleReport()
    batches = group_batches(items, batch_size)
    total = len(batches)
    for number, batch in enumerate(batches, start=1):
        report.batches += 1
        report.calls += 1
        log.info(
            "batch %s/%s lang=%s schema=%s context=%s items=%s",
            number,
            total,
            batch.target_lang,
            batch.items[0].prefix,
            batch.context or "-",
            len(batch.items),
        )
        result = attempt_batch(engine, batch)
        if isinstance(result, BatchError):
            report.fallbacks += 1
            log.warning(
                "batch %s/%s failed (%s); falling back to %s single calls",
                number,
                total,
                result.message,
                len(batch.items),
            )
            _translate_each(engine, batch, report, on_result)
        else:
            for item in batch.items:
                if item.path not in result.results:
                    log.warning("batch miss: %s (%s) not returned; will retry next run", item.path, item.target_lang)
                    report.missed.append(item)
                    continue
                try:
                    text = accept_result(item, result.results[item.path])
                except ResponseParsingError as exc:
                    log.warning("batch miss: %s (%s) unusable: %s", item.path, item.target_lang, exc)
                    report.missed.append(item)
                    continue
                on_result(item, text)
                report.generated.append((item, text))
        if checkpoint is not None:
            checkpoint(batch)
    return report
