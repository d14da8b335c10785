from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .engines.base import PLURAL_KEYS
from .pricing import PRICING, Cost, calculate_cost
from .schema import Schema


log = logging.getLogger("i18n_llm.usage")

TOKENS_PER_WORD = 0.75
REPORT_FORMATS = ("text", "json", "markdown")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text.split()) * TOKENS_PER_WORD)


@dataclass
class UsageStats:
    total_keys: int = 0
    plural_keys: int = 0
    source_words: int = 0
    source_chars: int = 0
    estimated_tokens: int = 0
    target_languages: list[str] = field(default_factory=list)
    total_texts: int = 0
    estimated_input_tokens: int = 0
    estimated_output_tokens: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "totalKeys": self.total_keys,
            "pluralKeys": self.plural_keys,
            "totalSourceWords": self.source_words,
            "totalSourceChars": self.source_chars,
            "estimatedTokens": self.estimated_tokens,
            "targetLanguages": list(self.target_languages),
            "totalTranslations": self.total_texts,
            "estimatedInputTokens": self.estimated_input_tokens,
            "estimatedOutputTokens": self.estimated_output_tokens,
        }


def schema_usage(schemas: list[Schema]) -> UsageStats:
    """Count the descriptions every schema asks the provider to work from.

    Input tokens are the description tokens times the schema's target
    languages. Output is assumed to be as long as the input, once per plural
    form for plural keys.
    """
    stats = UsageStats()
    for schema in schemas:
        langs = len(schema.target_langs)
        for lang in schema.target_langs:
            if lang not in stats.target_languages:
                stats.target_languages.append(lang)
        for leaf in schema.iter_leaves():
            description = leaf.entry.description
            tokens = estimate_tokens(description)
            forms = len(PLURAL_KEYS) if leaf.entry.is_plural else 1
            stats.total_keys += 1
            stats.plural_keys += int(leaf.entry.is_plural)
            stats.source_words += len(description.split())
            stats.source_chars += len(description)
            stats.estimated_tokens += tokens
            stats.total_texts += langs
            stats.estimated_input_tokens += tokens * langs
            stats.estimated_output_tokens += tokens * forms * langs
    log.debug("usage: %s keys, %s texts", stats.total_keys, stats.total_texts)
    return stats


def render_usage(stats: UsageStats) -> str:
    lines = [
        "Usage Statistics",
        "=" * 50,
        f"Total keys:              {stats.total_keys}",
        f"Plural keys:             {stats.plural_keys}",
        f"Source words:            {stats.source_words}",
        f"Source characters:       {stats.source_chars}",
        f"Estimated source tokens: {stats.estimated_tokens}",
        "",
        f"Target languages:        {', '.join(stats.target_languages) or '-'}",
        f"Total translations:      {stats.total_texts}",
        f"Estimated input tokens:  {stats.estimated_input_tokens}",
        f"Estimated output tokens: {stats.estimated_output_tokens}",
        "=" * 50,
        f"Token estimates are approximate (~{TOKENS_PER_WORD} tokens/word).",
    ]
    return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class CostEstimate:
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    input_price: float
    output_price: float
    cost: Cost

    def to_json(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "inputCostPer1M": self.input_price,
            "outputCostPer1M": self.output_price,
            "totalCost": round(self.cost.total, 6),
        }


def estimate_costs(stats: UsageStats, provider: str | None = None) -> list[CostEstimate]:
    """Price ``stats`` with every known model, cheapest first."""
    estimates: list[CostEstimate] = []
    for name, models in PRICING.items():
        if provider and name != provider:
            continue
        for model, (input_price, output_price) in models.items():
            cost = calculate_cost(name, model, stats.estimated_input_tokens, stats.estimated_output_tokens)
            if cost is None:
                continue
            estimates.append(
                CostEstimate(
                    provider=name,
                    model=model,
                    input_tokens=stats.estimated_input_tokens,
                    output_tokens=stats.estimated_output_tokens,
                    input_price=input_price,
                    output_price=output_price,
                    cost=cost,
                )
            )
    estimates.sort(key=lambda e: e.cost.total)
    return estimates


def _stamp(now: datetime | None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S UTC")


def _render_text(stats: UsageStats, estimates: list[CostEstimate], stamp: str) -> str:
    lines = [
        "i18n-llm Consumption Report",
        "=" * 70,
        f"Generated: {stamp}",
        "",
        "Project statistics",
        "-" * 70,
        f"Total keys:              {stats.total_keys}",
        f"Source words:            {stats.source_words}",
        f"Target languages:        {', '.join(stats.target_languages) or '-'}",
        f"Total translations:      {stats.total_texts}",
        "",
        "Token estimates",
        "-" * 70,
        f"Estimated input tokens:  {stats.estimated_input_tokens:,}",
        f"Estimated output tokens: {stats.estimated_output_tokens:,}",
        "",
        "Cost estimates by provider",
        "-" * 70,
    ]
    for e in estimates:
        lines.extend(
            [
                "",
                f"{e.provider.upper()} - {e.model}",
                f"  Input:  {e.input_tokens:,} tokens x ${e.input_price}/1M = ${e.cost.input:.4f}",
                f"  Output: {e.output_tokens:,} tokens x ${e.output_price}/1M = ${e.cost.output:.4f}",
                f"  Total:  ${e.cost.total:.4f}",
            ]
        )
    lines.extend(["", "=" * 70, "Token estimates are approximate; actual costs depend on prompt size."])
    return "\n".join(lines) + "\n"


def _render_markdown(stats: UsageStats, estimates: list[CostEstimate], stamp: str) -> str:
    lines = [
        "# i18n-llm Consumption Report",
        "",
        f"**Generated:** {stamp}",
        "",
        "## Project Statistics",
        "",
        f"- **Total Keys:** {stats.total_keys}",
        f"- **Source Words:** {stats.source_words}",
        f"- **Target Languages:** {', '.join(stats.target_languages) or '-'}",
        f"- **Total Translations:** {stats.total_texts}",
        "",
        "## Token Estimates",
        "",
        f"- **Estimated Input Tokens:** {stats.estimated_input_tokens:,}",
        f"- **Estimated Output Tokens:** {stats.estimated_output_tokens:,}",
        "",
        "## Cost Estimates by Provider",
        "",
        "| Provider | Model | Input Tokens | Output Tokens | Input Cost | Output Cost | **Total Cost** |",
        "|----------|-------|-------------:|--------------:|-----------:|------------:|---------------:|",
    ]
    for e in estimates:
        lines.append(
            f"| {e.provider.upper()} | {e.model} | {e.input_tokens:,} | {e.output_tokens:,} "
            f"| ${e.cost.input:.4f} | ${e.cost.output:.4f} | **${e.cost.total:.4f}** |"
        )
    lines.extend(["", "---", "", "Token estimates are approximate; actual costs depend on prompt size."])
    return "\n".join(lines) + "\n"


def render_cost_report(
    stats: UsageStats,
    estimates: list[CostEstimate],
    fmt: str = "text",
    now: datetime | None = None,
) -> str:
    stamp = _stamp(now)
    if fmt == "json":
        data = stats.to_json()
        data["generatedAt"] = stamp
        data["costEstimates"] = [e.to_json() for e in estimates]
        return json.dumps(data, indent=2) + "\n"
    if fmt == "markdown":
        return _render_markdown(stats, estimates, stamp)
    if fmt == "text":
        return _render_text(stats, estimates, stamp)
    raise ValueError(f"unknown report format: {fmt}")
