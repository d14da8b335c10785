import json
from datetime import datetime, timezone

import pytest

from i18n_llm.schema import schema_from_dict
from i18n_llm.usage import estimate_costs, estimate_tokens, render_cost_report, render_usage, schema_usage


def _schema():
    return schema_from_dict(
        {
            "sourceLanguage": "en",
            "targetLanguages": ["fr", "de"],
            "entities": {
                "user": {
                    "greeting": "Greet the user",
                    "count": {"description": "Unread messages count", "pluralization": True},
                }
            },
        },
        "i18n.schema.json",
    )


NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_estimate_tokens_counts_words():
    assert estimate_tokens("Greet the user") == 3
    assert estimate_tokens("one two three four") == 3
    assert estimate_tokens("   ") == 0


def test_schema_usage_multiplies_by_target_languages():
    stats = schema_usage([_schema()])

    assert stats.total_keys == 2
    assert stats.plural_keys == 1
    assert stats.source_words == 6
    assert stats.source_chars == 35
    assert stats.estimated_tokens == 6
    assert stats.target_languages == ["fr", "de"]
    assert stats.total_texts == 4
    assert stats.estimated_input_tokens == 12
    # plural keys produce three forms
    assert stats.estimated_output_tokens == 24


def test_render_usage_lists_counts():
    text = render_usage(schema_usage([_schema()]))

    assert "Total keys:              2" in text
    assert "Target languages:        fr, de" in text
    assert "Estimated output tokens: 24" in text


def test_estimate_costs_are_sorted_and_filtered():
    stats = schema_usage([_schema()])

    estimates = estimate_costs(stats)
    totals = [e.cost.total for e in estimates]
    assert totals == sorted(totals)
    gpt4o = next(e for e in estimates if e.model == "gpt-4o")
    assert gpt4o.cost.total == pytest.approx((12 * 2.50 + 24 * 10.00) / 1_000_000)

    gemini = estimate_costs(stats, "gemini")
    assert {e.provider for e in gemini} == {"gemini"}
    assert "gemini-2.5-flash" in {e.model for e in gemini}


def test_render_cost_report_formats():
    stats = schema_usage([_schema()])
    estimates = estimate_costs(stats, "openai")

    markdown = render_cost_report(stats, estimates, "markdown", now=NOW)
    assert markdown.startswith("# i18n-llm Consumption Report\n")
    assert "**Generated:** 2025-03-01 00:00:00 UTC" in markdown
    assert "| OPENAI | gpt-4o | 12 | 24 | $0.0000 | $0.0002 | **$0.0003** |" in markdown

    data = json.loads(render_cost_report(stats, estimates, "json", now=NOW))
    assert data["totalKeys"] == 2
    assert data["generatedAt"] == "2025-03-01 00:00:00 UTC"
    assert [e["provider"] for e in data["costEstimates"]] == ["openai"] * len(estimates)

    text = render_cost_report(stats, estimates, "text", now=NOW)
    assert "OPENAI - gpt-4o" in text
    assert "Estimated input tokens:  12" in text

    with pytest.raises(ValueError):
        render_cost_report(stats, estimates, "html")
