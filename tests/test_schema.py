import json

import pytest

from i18n_llm.schema import (
    SchemaValidationError,
    parse_schema,
    parse_schemas,
    schema_from_dict,
    schema_prefix,
    split_state_key,
)


def _schema_data():
    return {
        "sourceLanguage": "en",
        "targetLanguages": ["fr", "de", "fr"],
        "persona": {"tone": "warm"},
        "entities": {
            "user": {
                "_context": "User profile screen",
                "greeting": {"description": "Greet the user by name", "params": {"name": "string"}},
                "title": "Profile page title",
                "messages": {
                    "description": "Number of unread messages",
                    "pluralization": True,
                    "constraints": {"maxLength": 40},
                },
                "settings": {
                    "_context": "Settings panel",
                    "save": {"description": "Save button", "context": "Primary action"},
                    "cancel": "Cancel button",
                },
            },
            "_comment": "ignored",
        },
    }


def test_schema_prefix_uses_name_up_to_first_dot():
    assert schema_prefix("config/i18n.schema.json") == "i18n"
    assert schema_prefix("/abs/admin.json") == "admin"


def test_split_state_key():
    assert split_state_key("i18n::user.greeting") == ("i18n", "user.greeting")
    assert split_state_key("user.greeting") == ("", "user.greeting")


def test_schema_from_dict_flattens_leaves():
    schema = schema_from_dict(_schema_data(), "i18n.schema.json")

    assert schema.prefix == "i18n"
    assert schema.target_langs == ("fr", "de")
    leaves = {leaf.path: leaf for leaf in schema.iter_leaves()}
    assert list(leaves) == [
        "user.greeting",
        "user.title",
        "user.messages",
        "user.settings.save",
        "user.settings.cancel",
    ]
    assert leaves["user.title"].entry.description == "Profile page title"
    assert leaves["user.greeting"].entry.params == {"name": "string"}
    assert leaves["user.messages"].entry.is_plural is True
    assert leaves["user.messages"].entry.max_length == 40
    assert leaves["user.greeting"].context == "User profile screen"
    assert leaves["user.settings.cancel"].context == "Settings panel"
    assert leaves["user.settings.save"].context == "Primary action"
    assert leaves["user.settings.save"].entity_context == "Settings panel"
    assert schema.state_key("user.title") == "i18n::user.title"


def test_schema_accepts_is_plural_alias():
    data = _schema_data()
    data["entities"]["user"]["messages"] = {"description": "Messages", "isPlural": True}
    schema = schema_from_dict(data, "i18n.schema.json")
    leaf = next(leaf for leaf in schema.iter_leaves() if leaf.path == "user.messages")
    assert leaf.entry.is_plural is True


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d.pop("sourceLanguage"),
        lambda d: d.update(targetLanguages=[]),
        lambda d: d.update(entities={}),
        lambda d: d["entities"]["user"].update({"bad.key": "x"}),
        lambda d: d["entities"]["user"].update(broken=3),
        lambda d: d["entities"]["user"].update(empty={"description": ""}),
    ],
)
def test_schema_validation_errors(mutate):
    data = _schema_data()
    mutate(data)
    with pytest.raises(SchemaValidationError):
        schema_from_dict(data, "i18n.schema.json")


def test_parse_schema_reports_missing_and_invalid_files(tmp_path):
    with pytest.raises(SchemaValidationError):
        parse_schema(str(tmp_path / "nope.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(SchemaValidationError) as exc:
        parse_schema(str(bad))
    assert exc.value.schema_path == str(bad)


def test_parse_schemas_warns_on_shared_prefix(tmp_path, caplog):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    for folder in (a, b):
        (folder / "app.schema.json").write_text(json.dumps(_schema_data()), encoding="utf-8")

    schemas = parse_schemas([str(a / "app.schema.json"), str(b / "app.schema.json")])

    assert [s.prefix for s in schemas] == ["app", "app"]
    assert "share prefix" in caplog.text
