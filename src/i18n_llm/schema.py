from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Union


log = logging.getLogger("i18n_llm.schema")

STATE_KEY_SEPARATOR = "::"


class SchemaValidationError(RuntimeError):
    def __init__(self, message: str, schema_path: str | None = None) -> None:
        super().__init__(f"{schema_path}: {message}" if schema_path else message)
        self.schema_path = schema_path


@dataclass(frozen=True)
class LeafEntry:
    description: str
    is_plural: bool = False
    context: str | None = None
    category: str | None = None
    params: dict[str, Any] | None = None
    constraints: dict[str, Any] | None = None

    @property
    def max_length(self) -> int | None:
        if not self.constraints:
            return None
        value = self.constraints.get("maxLength")
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return None
        return value


@dataclass(frozen=True)
class GroupNode:
    children: dict[str, EntryNode]
    context: str | None = None


EntryNode = Union[LeafEntry, GroupNode]


@dataclass(frozen=True)
class SchemaLeaf:
    path: str
    entity: str
    entry: LeafEntry
    entity_context: str | None

    @property
    def context(self) -> str | None:
        return self.entry.context or self.entity_context


@dataclass
class Schema:
    path: str
    prefix: str
    source_lang: str
    target_langs: tuple[str, ...]
    entities: dict[str, GroupNode]
    persona: dict[str, Any] | None = None
    glossary: dict[str, str] | None = None

    def iter_leaves(self) -> Iterator[SchemaLeaf]:
        for entity_name, group in self.entities.items():
            yield from _walk(group, entity_name, entity_name, group.context)

    def state_key(self, path: str) -> str:
        return state_key(self.prefix, path)


def state_key(prefix: str, path: str) -> str:
    return f"{prefix}{STATE_KEY_SEPARATOR}{path}"


def split_state_key(key: str) -> tuple[str, str]:
    prefix, sep, path = key.partition(STATE_KEY_SEPARATOR)
    if not sep:
        return "", key
    return prefix, path


def schema_prefix(path: str) -> str:
    name = Path(path).name
    return name.split(".", 1)[0] or name


def _walk(group: GroupNode, entity: str, base: str, context: str | None) -> Iterator[SchemaLeaf]:
    for name, node in group.children.items():
        path = f"{base}.{name}"
        if isinstance(node, LeafEntry):
            yield SchemaLeaf(path=path, entity=entity, entry=node, entity_context=context)
        else:
            yield from _walk(node, entity, path, node.context or context)


def _parse_leaf(raw: dict[str, Any], where: str, schema_path: str) -> LeafEntry:
    description = raw.get("description")
    if not isinstance(description, str) or not description.strip():
        raise SchemaValidationError(f'"{where}.description" must be a non-empty string', schema_path)
    constraints = raw.get("constraints")
    if constraints is not None and not isinstance(constraints, dict):
        raise SchemaValidationError(f'"{where}.constraints" must be an object', schema_path)
    params = raw.get("params")
    if params is not None and not isinstance(params, dict):
        raise SchemaValidationError(f'"{where}.params" must be an object', schema_path)
    is_plural = raw.get("pluralization", raw.get("isPlural", False))
    return LeafEntry(
        description=description,
        is_plural=bool(is_plural),
        context=raw.get("context") if isinstance(raw.get("context"), str) else None,
        category=raw.get("category") if isinstance(raw.get("category"), str) else None,
        params=params,
        constraints=constraints,
    )


def _parse_group(raw: dict[str, Any], where: str, schema_path: str) -> GroupNode:
    children: dict[str, EntryNode] = {}
    for name, value in raw.items():
        if name.startswith("_"):
            continue
        if "." in name:
            raise SchemaValidationError(f'key "{where}.{name}" must not contain "."', schema_path)
        child_where = f"{where}.{name}"
        if isinstance(value, str):
            children[name] = _parse_leaf({"description": value}, child_where, schema_path)
        elif isinstance(value, dict) and "description" in value:
            children[name] = _parse_leaf(value, child_where, schema_path)
        elif isinstance(value, dict):
            children[name] = _parse_group(value, child_where, schema_path)
        else:
            raise SchemaValidationError(f'"{child_where}" must be an object or a string', schema_path)
    context = raw.get("_context")
    return GroupNode(children=children, context=context if isinstance(context, str) else None)


def schema_from_dict(data: Any, path: str) -> Schema:
    if not isinstance(data, dict):
        raise SchemaValidationError("schema must be a JSON object", path)
    source_lang = data.get("sourceLanguage")
    if not source_lang or not isinstance(source_lang, str):
        raise SchemaValidationError('schema must have "sourceLanguage" as a string', path)
    targets = data.get("targetLanguages")
    if not isinstance(targets, list) or not targets:
        raise SchemaValidationError('schema must have "targetLanguages" as a non-empty array', path)
    if not all(isinstance(lang, str) and lang for lang in targets):
        raise SchemaValidationError("all target languages must be strings", path)
    entities = data.get("entities")
    if not isinstance(entities, dict) or not entities:
        raise SchemaValidationError('schema must have "entities" as a non-empty object', path)
    persona = data.get("persona")
    if persona is not None and not isinstance(persona, dict):
        raise SchemaValidationError('"persona" must be an object if provided', path)
    glossary = data.get("glossary")
    if glossary is not None and not isinstance(glossary, dict):
        raise SchemaValidationError('"glossary" must be an object if provided', path)

    parsed: dict[str, GroupNode] = {}
    for name, value in entities.items():
        if name.startswith("_"):
            continue
        if not isinstance(value, dict):
            raise SchemaValidationError(f'entity "{name}" must be an object', path)
        if "description" in value:
            raise SchemaValidationError(f'entity "{name}" must group keys, not be a key itself', path)
        parsed[name] = _parse_group(value, name, path)

    # preserve order, drop duplicates
    target_langs = tuple(dict.fromkeys(targets))
    return Schema(
        path=path,
        prefix=schema_prefix(path),
        source_lang=source_lang,
        target_langs=target_langs,
        entities=parsed,
        persona=persona,
        glossary={str(k): str(v) for k, v in glossary.items()} if glossary else None,
    )


def parse_schema(path: str) -> Schema:
    schema_path = Path(path)
    try:
        text = schema_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise SchemaValidationError("schema file not found", path) from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaValidationError(f"invalid JSON in schema file: {exc}", path) from exc
    return schema_from_dict(data, path)


def parse_schemas(paths: list[str] | tuple[str, ...]) -> list[Schema]:
    schemas = [parse_schema(p) for p in paths]
    seen: dict[str, str] = {}
    for schema in schemas:
        other = seen.get(schema.prefix)
        if other is not None:
            log.warning(
                "schemas %s and %s share prefix %r; their state keys and output files collide",
                other,
                schema.path,
                schema.prefix,
            )
        seen[schema.prefix] = schema.path
    return schemas
