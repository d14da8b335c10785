from __future__ import annotations

import argparse
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import DEFAULT_CONFIG_PATH, Config, load_config
from .detector import REASON_CHANGED, detect_changes
from .engines.base import GeneratedText, TokenUsage, TranslationEngine
from .engines.factory import create_engine
from .hashing import text_hash
from .history import add_generation_record, build_record, cost_breakdown, load_history
from .logging import attach_file_logging, configure_logging
from .output import OutputWriter
from .pricing import PRICING
from .review import ReviewIssue, review_language, write_report
from .scheduler import Batch, ScheduleReport, run_batches
from .schema import Schema, parse_schemas
from .state import load_state, save_state, state_stats
from .usage import REPORT_FORMATS, estimate_costs, render_cost_report, render_usage, schema_usage


log = logging.getLogger("i18n_llm.runner")

DEFAULT_REPORT_PATH = "i18n-review-report.md"


@dataclass
class RunSummary:
    pending: int = 0
    reasons: dict[str, int] = field(default_factory=dict)
    generated: int = 0
    failed: int = 0
    missed: int = 0
    calls: int = 0
    batches: int = 0
    fallbacks: int = 0
    orphans: int = 0
    written: list[str] = field(default_factory=list)
    dry_run: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "reasons": dict(self.reasons),
            "generated": self.generated,
            "failed": self.failed,
            "missed": self.missed,
            "calls": self.calls,
            "batches": self.batches,
            "fallbacks": self.fallbacks,
            "orphans": self.orphans,
            "written": list(self.written),
            "dryRun": self.dry_run,
        }


def _record_history(
    cfg: Config,
    engine: TranslationEngine,
    report: ScheduleReport,
    usage_by_lang: dict[str, TokenUsage],
) -> None:
    if not cfg.history_path:
        return
    counts: dict[str, Counter] = {}
    for item, _ in report.generated:
        counts.setdefault(item.target_lang, Counter())[item.reason] += 1
    for lang, counter in counts.items():
        updated = counter.get(REASON_CHANGED, 0)
        record = build_record(
            engine.name,
            engine.model,
            keys_generated=sum(counter.values()) - updated,
            keys_updated=updated,
            usage=usage_by_lang.get(lang, TokenUsage()),
        )
        add_generation_record(cfg.history_path, lang, record)


def run_generate(
    cfg: Config,
    schemas: list[Schema],
    engine: TranslationEngine | None = None,
    force: bool = False,
    dry_run: bool = False,
) -> RunSummary:
    """Bring every output document up to date with its schema.

    ``engine`` is created from ``cfg.provider`` only when there is work to do,
    so a run with nothing pending needs no credentials.
    """
    state = load_state(cfg.state_path)
    writer = OutputWriter(cfg.output_dir, schemas)
    plan = detect_changes(
        schemas,
        state,
        writer,
        source_lang=cfg.source_lang,
        force=force,
        default_persona=cfg.persona,
        default_glossary=cfg.glossary,
    )
    writer.orphans = plan.orphans
    for item in plan.pending:
        if item.reason == REASON_CHANGED:
            writer.mark_stale(item.schema_index, item.target_lang, item.path)
    summary = RunSummary(
        pending=len(plan.pending),
        reasons=dict(plan.reasons),
        orphans=len(plan.orphans),
        dry_run=dry_run,
    )
    log.info(
        "pending=%s reasons=%s orphans=%s",
        summary.pending,
        ",".join(f"{k}:{v}" for k, v in sorted(plan.reasons.items())) or "-",
        summary.orphans,
    )
    if dry_run:
        for item in plan.pending:
            print(f"{item.state_key} ({item.target_lang}, reason={item.reason})")
        return summary

    report = ScheduleReport()
    usage_by_lang: dict[str, TokenUsage] = {}
    if plan.pending:
        if engine is None:
            engine = create_engine(cfg.provider)
        last = engine.usage.snapshot()

        def on_result(item, text: GeneratedText) -> None:
            writer.apply(item.schema_index, item.target_lang, item.path, text)
            state[item.state_key].text_hashes[item.target_lang] = text_hash(text)

        def checkpoint(batch: Batch) -> None:
            nonlocal last
            writer.write(batch.schema_index, batch.target_lang)
            save_state(state, cfg.state_path)
            now = engine.usage.snapshot()
            delta = now.since(last)
            usage_by_lang.setdefault(batch.target_lang, TokenUsage()).add(delta.input_tokens, delta.output_tokens)
            last = now

        report = run_batches(engine, plan.pending, cfg.batch_size, on_result, checkpoint)

    summary.written = [str(path) for path in writer.write_all()]
    save_state(state, cfg.state_path)
    if engine is not None and report.generated:
        _record_history(cfg, engine, report, usage_by_lang)

    summary.generated = len(report.generated)
    summary.failed = len(report.failed)
    summary.missed = len(report.missed)
    summary.calls = report.calls
    summary.batches = report.batches
    summary.fallbacks = report.fallbacks
    log.info(
        "done generated=%s failed=%s missed=%s calls=%s batches=%s fallbacks=%s",
        summary.generated,
        summary.failed,
        summary.missed,
        summary.calls,
        summary.batches,
        summary.fallbacks,
    )
    return summary


def _review_languages(schemas: list[Schema], language: str | None) -> list[str]:
    if language:
        return [language]
    langs: list[str] = []
    for schema in schemas:
        for lang in schema.target_langs:
            if lang not in langs:
                langs.append(lang)
    return langs


def run_review(cfg: Config, schemas: list[Schema], engine: TranslationEngine, language: str | None, report_path: str) -> Path:
    all_issues: dict[str, list[ReviewIssue]] = {}
    for lang in _review_languages(schemas, language):
        issues = review_language(engine, schemas, cfg.output_dir, lang, default_persona=cfg.persona)
        failed = sum(1 for issue in issues if not issue.result.passed)
        log.info("review %s: %s reviewed, %s failed", lang, len(issues), failed)
        all_issues[lang] = issues
    return write_report(all_issues, report_path)


def main(argv: list[str] | None = None) -> None:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="path to the JSON config file")
    common.add_argument("--log-file", default=None, help="also write logs to this file")
    common.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    parser = argparse.ArgumentParser(prog="i18n-llm")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", parents=[common], help="generate missing or stale texts")
    gen.add_argument("--force", action="store_true", help="regenerate every key for every language")
    gen.add_argument("--dry-run", action="store_true", help="print the pending plan; no provider calls, no writes")

    rev = sub.add_parser("review", parents=[common], help="review generated texts and write a Markdown report")
    which = rev.add_mutually_exclusive_group(required=True)
    which.add_argument("--language", help="review a single target language")
    which.add_argument("--all", action="store_true", help="review every target language")
    rev.add_argument("--report", default=DEFAULT_REPORT_PATH, help="report output path")

    costs = sub.add_parser("costs", parents=[common], help="print the generation cost breakdown as JSON")
    costs.add_argument("--language", default=None)

    sub.add_parser("status", parents=[common], help="print state statistics as JSON")

    use = sub.add_parser("usage", parents=[common], help="count keys, words and estimated tokens in the schemas")
    use.add_argument("--format", choices=("text", "json"), default="text")

    rep = sub.add_parser("report", parents=[common], help="estimate generation cost for every known model")
    rep.add_argument("--format", choices=REPORT_FORMATS, default="text")
    rep.add_argument("--provider", choices=sorted(PRICING), default=None, help="only price this provider's models")
    rep.add_argument("--output", default=None, help="write the report to this file instead of stdout")

    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    if args.log_file:
        attach_file_logging(args.log_file)
    cfg = load_config(args.config)

    if args.command == "status":
        stats = state_stats(load_state(cfg.state_path))
        print(
            json.dumps(
                {
                    "totalKeys": stats.total_keys,
                    "totalTexts": stats.total_texts,
                    "languages": stats.language_counts,
                },
                indent=2,
            )
        )
        return

    if args.command == "costs":
        if not cfg.history_path:
            raise SystemExit("historyPath is not configured")
        print(json.dumps(cost_breakdown(load_history(cfg.history_path), args.language), indent=2))
        return

    schemas = parse_schemas(cfg.schema_files)

    if args.command == "usage":
        counts = schema_usage(schemas)
        if args.format == "json":
            print(json.dumps(counts.to_json(), indent=2))
        else:
            print(render_usage(counts), end="")
        return

    if args.command == "report":
        counts = schema_usage(schemas)
        content = render_cost_report(counts, estimate_costs(counts, args.provider), args.format)
        if args.output:
            out = Path(args.output)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(content, encoding="utf-8")
            print(f"cost report written to {out}")
        else:
            print(content, end="")
        return

    if args.command == "review":
        engine = create_engine(cfg.provider)
        path = run_review(cfg, schemas, engine, None if args.all else args.language, args.report)
        print(f"review report written to {path}")
        return

    summary = run_generate(cfg, schemas, force=args.force, dry_run=args.dry_run)
    print(json.dumps(summary.to_json(), indent=2))
    if summary.failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
