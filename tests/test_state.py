import json

from i18n_llm.hashing import text_hash
from i18n_llm.state import StateEntry, cleanup_state, load_state, save_state, state_stats


def test_load_state_missing_file_is_empty(tmp_path):
    assert load_state(str(tmp_path / "state.json")) == {}


def test_load_state_corrupt_file_is_empty(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{broken", encoding="utf-8")
    assert load_state(str(path)) == {}
    assert "starting with empty state" in caplog.text

    path.write_text(json.dumps({"i18n::a": {"textHashes": {}}}), encoding="utf-8")
    assert load_state(str(path)) == {}


def test_save_state_is_sorted_and_stable(tmp_path):
    path = tmp_path / "nested" / "state.json"
    state = {
        "i18n::b": StateEntry(hash="h2", text_hashes={"fr": "x", "de": "y"}),
        "i18n::a": StateEntry(hash="h1"),
    }

    save_state(state, str(path))
    first = path.read_text(encoding="utf-8")
    save_state(load_state(str(path)), str(path))

    assert path.read_text(encoding="utf-8") == first
    assert first.endswith("\n")
    data = json.loads(first)
    assert list(data) == ["i18n::a", "i18n::b"]
    assert list(data["i18n::b"]["textHashes"]) == ["de", "fr"]
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]


def test_load_state_converts_legacy_texts(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps({"i18n::a": {"hash": "h", "texts": {"fr": "Bonjour", "de": {"=0": "a", "=1": "b", ">1": "c"}}}}),
        encoding="utf-8",
    )

    state = load_state(str(path))

    assert state["i18n::a"].hash == "h"
    assert state["i18n::a"].text_hashes["fr"] == text_hash("Bonjour")
    assert state["i18n::a"].text_hashes["de"] == text_hash({"=0": "a", "=1": "b", ">1": "c"})


def test_cleanup_state_removes_orphans():
    state = {
        "i18n::keep": StateEntry(hash="a"),
        "i18n::gone": StateEntry(hash="b"),
    }
    removed = cleanup_state(state, {"i18n::keep"})
    assert removed == ["i18n::gone"]
    assert list(state) == ["i18n::keep"]


def test_state_stats_counts_languages():
    state = {
        "i18n::a": StateEntry(hash="a", text_hashes={"fr": "1", "de": "2"}),
        "i18n::b": StateEntry(hash="b", text_hashes={"fr": "3"}),
    }
    stats = state_stats(state)
    assert stats.total_keys == 2
    assert stats.total_texts == 3
    assert stats.language_counts == {"de": 1, "fr": 2}
