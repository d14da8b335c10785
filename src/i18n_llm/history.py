from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .engines.base import TokenUsage
from .pricing import calculate_cost


log = logging.getLogger("i18n_llm.history")


@dataclass(frozen=True)
class GenerationRecord:
    timestamp: str
    provider: str
    model: str
    keys_generated: int
    keys_updated: int
    tokens: dict[str, int] = field(default_factory=dict)
    cost: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "timestamp": data["timestamp"],
            "provider": data["provider"],
            "model": data["model"],
            "keysGenerated": data["keys_generated"],
            "keysUpdated": data["keys_updated"],
            "tokens": data["tokens"],
            "cost": data["cost"],
        }


def build_record(
    provider: str,
    model: str,
    keys_generated: int,
    keys_updated: int,
    usage: TokenUsage,
    now: datetime | None = None,
) -> GenerationRecord:
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    cost = calculate_cost(provider, model, usage.input_tokens, usage.output_tokens)
    return GenerationRecord(
        timestamp=stamp.isoformat().replace("+00:00", "Z"),
        provider=provider,
        model=model,
        keys_generated=keys_generated,
        keys_updated=keys_updated,
        tokens={
            "input": usage.input_tokens,
            "output": usage.output_tokens,
            "total": usage.total_tokens,
        },
        cost={
            "input": round(cost.input, 6) if cost else 0.0,
            "output": round(cost.output, 6) if cost else 0.0,
            "total": round(cost.total, 6) if cost else 0.0,
            "currency": "USD",
        },
    )


def load_history(path: str) -> dict[str, list[dict[str, Any]]]:
    history_path = Path(path)
    if not history_path.exists():
        return {}
    try:
        data = json.loads(history_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("failed to load history from %s (%s); starting fresh", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("history file %s is not a JSON object; starting fresh", path)
        return {}
    return {str(lang): list(records) for lang, records in data.items() if isinstance(records, list)}


def save_history(history: dict[str, list[dict[str, Any]]], path: str) -> None:
    history_path = Path(path)
    history_path.parent.mkdir(parents=True, exist_ok=True)
    history_path.write_text(json.dumps(history, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def add_generation_record(path: str, lang: str, record: GenerationRecord) -> None:
    history = load_history(path)
    history.setdefault(lang, []).append(record.to_json())
    try:
        save_history(history, path)
    except OSError as exc:
        # history write failures never fail the run
        log.error("failed to save history to %s: %s", path, exc)


def _record_cost(record: dict[str, Any]) -> float:
    cost = record.get("cost") or {}
    try:
        return float(cost.get("total") or 0.0)
    except (TypeError, ValueError):
        return 0.0


def cost_breakdown(history: dict[str, list[dict[str, Any]]], lang: str | None = None) -> dict[str, Any]:
    by_language: dict[str, float] = {}
    by_date: dict[str, float] = {}
    by_provider: dict[str, float] = {}
    tokens = {"input": 0, "output": 0, "total": 0}
    runs = 0
    for language, records in history.items():
        if lang and language != lang:
            continue
        for record in records:
            runs += 1
            cost = _record_cost(record)
            by_language[language] = by_language.get(language, 0.0) + cost
            date = str(record.get("timestamp", "")).split("T", 1)[0] or "unknown"
            by_date[date] = by_date.get(date, 0.0) + cost
            provider = f"{record.get('provider', '?')}/{record.get('model', '?')}"
            by_provider[provider] = by_provider.get(provider, 0.0) + cost
            for name in tokens:
                tokens[name] += int((record.get("tokens") or {}).get(name) or 0)
    return {
        "runs": runs,
        "total": round(sum(by_language.values()), 6),
        "tokens": tokens,
        "byLanguage": {k: round(v, 6) for k, v in sorted(by_language.items())},
        "byDate": {k: round(v, 6) for k, v in sorted(by_date.items())},
        "byProvider": {k: round(v, 6) for k, v in sorted(by_provider.items())},
    }
