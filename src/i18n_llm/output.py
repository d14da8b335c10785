from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable

from .engines.base import PLURAL_KEYS, GeneratedText
from .schema import Schema, split_state_key


log = logging.getLogger("i18n_llm.output")


def output_path(output_dir: str, prefix: str, lang: str) -> Path:
    return Path(output_dir) / f"{prefix}.{lang}.json"


def load_document(path: Path) -> tuple[dict[str, Any], bool, str | None]:
    """Return ``(document, readable, raw_text)``.

    A missing file is an empty, readable document. A file that cannot be read
    or parsed, or whose top level is not an object, is reported as unreadable
    and replaced by an empty document so one bad file never stops the run.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}, True, None
    except OSError as exc:
        log.warning("cannot read output file %s (%s); treating as empty", path, exc)
        return {}, False, None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        log.warning("invalid JSON in output file %s (%s); treating as empty", path, exc)
        return {}, False, raw
    if not isinstance(data, dict):
        log.warning("output file %s is not a JSON object; treating as empty", path)
        return {}, False, raw
    return data, True, raw


def get_path(doc: dict[str, Any], dotted: str, default: Any = None) -> Any:
    node: Any = doc
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def set_path(doc: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            if child is not None:
                log.warning("replacing non-object value at %r while writing %s", part, dotted)
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def delete_path(doc: dict[str, Any], dotted: str) -> bool:
    parts = dotted.split(".")
    trail: list[tuple[dict[str, Any], str]] = []
    node: Any = doc
    for part in parts[:-1]:
        if not isinstance(node, dict) or not isinstance(node.get(part), dict):
            return False
        trail.append((node, part))
        node = node[part]
    if not isinstance(node, dict) or parts[-1] not in node:
        return False
    del node[parts[-1]]
    for parent, part in reversed(trail):
        if parent[part]:
            break
        del parent[part]
    return True


def has_text(value: Any, is_plural: bool) -> bool:
    if is_plural:
        return isinstance(value, dict) and all(isinstance(value.get(k), str) for k in PLURAL_KEYS)
    return isinstance(value, str)


def serialize_document(doc: dict[str, Any]) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


class OutputWriter:
    """Merges generated texts into the per-language output documents.

    Text already on disk is only removed when its key is listed in
    ``stale`` (its description changed) or in ``orphans`` (its key left the
    schema). Everything else survives, including text for keys that failed
    to generate this run.
    """

    def __init__(self, output_dir: str, schemas: list[Schema]) -> None:
        self.output_dir = output_dir
        self.schemas = schemas
        self.orphans: list[str] = []
        self.stale: set[tuple[int, str, str]] = set()
        self._docs: dict[tuple[int, str], dict[str, Any]] = {}
        self._original: dict[tuple[int, str], dict[str, Any]] = {}
        self._raw: dict[tuple[int, str], str | None] = {}
        self._unreadable: set[tuple[int, str]] = set()
        self._generated: dict[tuple[int, str], dict[str, GeneratedText]] = {}

    def path_for(self, index: int, lang: str) -> Path:
        return output_path(self.output_dir, self.schemas[index].prefix, lang)

    def _load(self, index: int, lang: str) -> None:
        slot = (index, lang)
        if slot in self._docs:
            return
        doc, readable, raw = load_document(self.path_for(index, lang))
        if not readable:
            self._unreadable.add(slot)
        self._original[slot] = doc
        self._docs[slot] = copy.deepcopy(doc)
        self._raw[slot] = raw

    def existing(self, index: int, lang: str) -> dict[str, Any] | None:
        """The document as found on disk, or None when missing or unreadable."""
        self._load(index, lang)
        slot = (index, lang)
        if slot in self._unreadable or self._raw[slot] is None:
            return None
        return self._original[slot]

    def document(self, index: int, lang: str) -> dict[str, Any]:
        self._load(index, lang)
        return self._docs[(index, lang)]

    def apply(self, index: int, lang: str, path: str, text: GeneratedText) -> None:
        set_path(self.document(index, lang), path, text)
        self._generated.setdefault((index, lang), {})[path] = text

    def mark_stale(self, index: int, lang: str, path: str) -> None:
        self.stale.add((index, lang, path))

    def _reconcile(self, index: int, lang: str) -> None:
        schema = self.schemas[index]
        doc = self.document(index, lang)
        generated = self._generated.get((index, lang), {})
        leaf_paths: list[str] = []
        for leaf in schema.iter_leaves():
            leaf_paths.append(leaf.path)
            if leaf.path in generated or (index, lang, leaf.path) not in self.stale:
                continue
            if delete_path(doc, leaf.path):
                log.debug("dropped outdated %s text for %s", lang, schema.state_key(leaf.path))

        for key in self.orphans:
            prefix, path = split_state_key(key)
            if prefix != schema.prefix:
                continue
            # an orphaned leaf may have turned into a group of live keys
            if any(p.startswith(path + ".") or p == path for p in leaf_paths):
                continue
            delete_path(doc, path)

    def write(self, index: int, lang: str) -> bool:
        self._reconcile(index, lang)
        slot = (index, lang)
        doc = self._docs[slot]
        readable_on_disk = slot not in self._unreadable and self._raw.get(slot) is not None
        if readable_on_disk and doc == self._original[slot]:
            return False
        content = serialize_document(doc)
        if content == self._raw.get(slot):
            return False
        path = self.path_for(index, lang)
        path.parent.mkdir(parents=True, exist_ok=True)
        if slot in self._unreadable and path.exists():
            backup = path.with_name(path.name + ".corrupt")
            os.replace(path, backup)
            log.warning("moved unreadable output file %s to %s", path, backup)
            self._unreadable.discard(slot)
        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
        self._raw[slot] = content
        self._original[slot] = copy.deepcopy(doc)
        log.info("wrote %s", path)
        return True

    def slots(self) -> Iterable[tuple[int, str]]:
        for index, schema in enumerate(self.schemas):
            for lang in schema.target_langs:
                yield index, lang

    def write_all(self) -> list[Path]:
        written: list[Path] = []
        for index, lang in self.slots():
            if self.write(index, lang):
                written.append(self.path_for(index, lang))
        return written
