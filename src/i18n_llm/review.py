from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .detector import effective_persona
from .engines.base import PLURAL_KEYS, ReviewResult, TranslationEngine
from .output import get_path, load_document, output_path
from .schema import Schema


log = logging.getLogger("i18n_llm.review")


@dataclass(frozen=True)
class ReviewIssue:
    key: str
    source_text: str
    translated_text: str
    result: ReviewResult


def _targets(schema: Schema, doc: dict[str, Any]):
    for leaf in schema.iter_leaves():
        value = get_path(doc, leaf.path)
        if value is None:
            continue
        if leaf.entry.is_plural:
            if not isinstance(value, dict):
                continue
            for plural_key in PLURAL_KEYS:
                if isinstance(value.get(plural_key), str):
                    yield leaf, f"{leaf.path}.{plural_key}", value[plural_key]
        elif isinstance(value, str):
            yield leaf, leaf.path, value


def review_language(
    engine: TranslationEngine,
    schemas: list[Schema],
    output_dir: str,
    lang: str,
    default_persona: dict[str, Any] | None = None,
) -> list[ReviewIssue]:
    issues: list[ReviewIssue] = []
    for schema in schemas:
        if lang not in schema.target_langs:
            continue
        path = output_path(output_dir, schema.prefix, lang)
        if not path.exists():
            log.warning("output file not found: %s", path)
            continue
        doc, readable, _ = load_document(path)
        if not readable:
            continue
        persona = effective_persona(schema, default_persona)
        for leaf, key, text in _targets(schema, doc):
            log.info("reviewing %s (%s)", key, lang)
            try:
                result = engine.review(
                    leaf.entry.description,
                    text,
                    lang,
                    max_length=leaf.entry.max_length,
                    persona=persona,
                    context=leaf.context,
                )
            except Exception as exc:
                log.error("review failed for %s (%s): %s", key, lang, exc)
                continue
            issues.append(ReviewIssue(key=key, source_text=leaf.entry.description, translated_text=text, result=result))
    return issues


def _mark(ok: bool) -> str:
    return "yes" if ok else "**no**"


def render_report(all_issues: dict[str, list[ReviewIssue]], now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S UTC")
    lines = ["# Translation Review Report", "", f"**Generated:** {stamp}", "", "---", ""]
    for lang, issues in all_issues.items():
        failed = [issue for issue in issues if not issue.result.passed]
        lines.extend(
            [
                f"## {lang}",
                "",
                "### Summary",
                "",
                f"- **Total reviewed:** {len(issues)}",
                f"- **Passed:** {len(issues) - len(failed)}",
                f"- **Failed:** {len(failed)}",
                "",
            ]
        )
        if not failed:
            lines.extend(["All reviewed texts passed.", ""])
            continue
        lines.extend(["### Issues", ""])
        for issue in failed:
            res = issue.result
            lines.extend(
                [
                    f"#### `{issue.key}`",
                    "",
                    f"**Source:** {issue.source_text}",
                    "",
                    f"**Text:** {issue.translated_text}",
                    "",
                    "| Criterion | OK |",
                    "|-----------|----|",
                    f"| Tone consistent | {_mark(res.tone_ok)} |",
                    f"| Grammatically correct | {_mark(res.grammar_ok)} |",
                    f"| Length constraint | {_mark(res.length_ok)} |",
                    "",
                ]
            )
            if res.comment:
                lines.extend([f"**Comment:** {res.comment}", ""])
            if res.schema_suggestion:
                lines.extend([f"**Schema suggestion:** {res.schema_suggestion}", ""])
            lines.extend(["---", ""])
    return "\n".join(lines).rstrip() + "\n"


def write_report(all_issues: dict[str, list[ReviewIssue]], path: str) -> Path:
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(render_report(all_issues), encoding="utf-8")
    return report_path
