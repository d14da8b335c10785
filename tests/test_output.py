import json

from i18n_llm.output import OutputWriter, delete_path, get_path, load_document, output_path, set_path
from i18n_llm.schema import schema_from_dict


def _schema():
    return schema_from_dict(
        {
            "sourceLanguage": "en",
            "targetLanguages": ["fr"],
            "entities": {
                "user": {
                    "greeting": "Greet the user",
                    "count": {"description": "Unread", "pluralization": True},
                }
            },
        },
        "i18n.schema.json",
    )


def test_path_helpers():
    doc = {}
    set_path(doc, "a.b.c", "x")
    assert get_path(doc, "a.b.c") == "x"
    assert get_path(doc, "a.z", "default") == "default"
    assert delete_path(doc, "a.b.c") is True
    assert doc == {}
    assert delete_path(doc, "a.b.c") is False


def test_load_document_reports_unreadable(tmp_path):
    path = tmp_path / "i18n.fr.json"
    assert load_document(path) == ({}, True, None)
    path.write_text("[1, 2]", encoding="utf-8")
    doc, readable, raw = load_document(path)
    assert (doc, readable, raw) == ({}, False, "[1, 2]")


def test_write_merges_into_existing_document(tmp_path):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text(
        json.dumps({"user": {"greeting": "Salut", "custom": "manual"}, "footer": "kept"}),
        encoding="utf-8",
    )
    writer = OutputWriter(str(tmp_path), [_schema()])

    writer.apply(0, "fr", "user.count", {"=0": "Aucun", "=1": "Un", ">1": "{count}"})
    assert writer.write(0, "fr") is True

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc == {
        "user": {
            "greeting": "Salut",
            "custom": "manual",
            "count": {"=0": "Aucun", "=1": "Un", ">1": "{count}"},
        },
        "footer": "kept",
    }


def test_write_drops_text_marked_stale(tmp_path):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text(json.dumps({"user": {"greeting": "Salut"}}), encoding="utf-8")
    writer = OutputWriter(str(tmp_path), [_schema()])
    writer.mark_stale(0, "fr", "user.greeting")

    writer.apply(0, "fr", "user.count", {"=0": "a", "=1": "b", ">1": "c"})
    writer.write(0, "fr")

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert "greeting" not in doc["user"]


def test_write_keeps_text_that_was_not_regenerated(tmp_path):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text(json.dumps({"user": {"greeting": "Salut", "count": "broken"}}), encoding="utf-8")
    writer = OutputWriter(str(tmp_path), [_schema()])

    assert writer.write_all() == []
    assert json.loads(path.read_text(encoding="utf-8")) == {"user": {"greeting": "Salut", "count": "broken"}}


def test_stale_text_is_replaced_when_regenerated(tmp_path):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text(json.dumps({"user": {"greeting": "Salut"}}), encoding="utf-8")
    writer = OutputWriter(str(tmp_path), [_schema()])
    writer.mark_stale(0, "fr", "user.greeting")

    writer.apply(0, "fr", "user.greeting", "Bonjour")
    writer.write(0, "fr")

    assert json.loads(path.read_text(encoding="utf-8")) == {"user": {"greeting": "Bonjour"}}


def test_write_is_idempotent(tmp_path):
    writer = OutputWriter(str(tmp_path), [_schema()])
    writer.apply(0, "fr", "user.greeting", "Bonjour")
    writer.apply(0, "fr", "user.count", {"=0": "a", "=1": "b", ">1": "c"})
    assert writer.write(0, "fr") is True
    first = output_path(str(tmp_path), "i18n", "fr").read_text(encoding="utf-8")

    again = OutputWriter(str(tmp_path), [_schema()])
    assert again.write_all() == []
    assert output_path(str(tmp_path), "i18n", "fr").read_text(encoding="utf-8") == first
    assert first.endswith("}\n")


def test_orphan_paths_are_pruned(tmp_path):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text(
        json.dumps({"user": {"greeting": "Bonjour", "old": {"title": "Ancien"}}, "other": "x"}),
        encoding="utf-8",
    )
    writer = OutputWriter(str(tmp_path), [_schema()])
    writer.orphans = ["i18n::user.old.title", "admin::other"]

    writer.write(0, "fr")

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc == {"user": {"greeting": "Bonjour"}, "other": "x"}


def test_corrupt_output_is_moved_aside(tmp_path, caplog):
    path = output_path(str(tmp_path), "i18n", "fr")
    path.write_text("{not json", encoding="utf-8")
    writer = OutputWriter(str(tmp_path), [_schema()])

    assert writer.existing(0, "fr") is None
    writer.apply(0, "fr", "user.greeting", "Bonjour")
    writer.write(0, "fr")

    assert json.loads(path.read_text(encoding="utf-8")) == {"user": {"greeting": "Bonjour"}}
    assert (tmp_path / "i18n.fr.json.corrupt").read_text(encoding="utf-8") == "{not json"
    assert "moved unreadable output file" in caplog.text
