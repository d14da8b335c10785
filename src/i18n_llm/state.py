from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .hashing import text_hash


log = logging.getLogger("i18n_llm.state")


@dataclass
class StateEntry:
    hash: str
    text_hashes: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {"hash": self.hash, "textHashes": dict(sorted(self.text_hashes.items()))}


TranslationState = dict[str, StateEntry]


@dataclass(frozen=True)
class StateStats:
    total_keys: int
    total_texts: int
    language_counts: dict[str, int]


class StateFormatError(ValueError):
    pass


def _entry_from_json(key: str, raw: Any) -> StateEntry:
    if not isinstance(raw, dict):
        raise StateFormatError(f"state entry {key!r} must be an object")
    hash_value = raw.get("hash")
    if not isinstance(hash_value, str):
        raise StateFormatError(f"state entry {key!r} has no string hash")
    hashes = raw.get("textHashes")
    if hashes is None and isinstance(raw.get("texts"), dict):
        # older state files stored the generated text itself
        hashes = {lang: text_hash(text) for lang, text in raw["texts"].items()}
    if not isinstance(hashes, dict):
        raise StateFormatError(f"state entry {key!r} has no textHashes object")
    return StateEntry(hash=hash_value, text_hashes={str(k): str(v) for k, v in hashes.items()})


def state_from_json(data: Any) -> TranslationState:
    if not isinstance(data, dict):
        raise StateFormatError("state must be a JSON object")
    return {str(key): _entry_from_json(key, raw) for key, raw in data.items()}


def state_to_json(state: TranslationState) -> dict[str, Any]:
    return {key: state[key].to_json() for key in sorted(state)}


def load_state(path: str) -> TranslationState:
    state_path = Path(path)
    try:
        text = state_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        log.warning("cannot read state file %s (%s); starting with empty state", path, exc)
        return {}
    try:
        return state_from_json(json.loads(text))
    except (json.JSONDecodeError, StateFormatError) as exc:
        log.warning("invalid state file %s (%s); starting with empty state", path, exc)
        return {}


def save_state(state: TranslationState, path: str) -> None:
    state_path = Path(path)
    state_path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(state_to_json(state), indent=2, ensure_ascii=False) + "\n"
    fd, tmp = tempfile.mkstemp(prefix=f".{state_path.name}.", dir=str(state_path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, state_path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def cleanup_state(state: TranslationState, valid_keys: Iterable[str]) -> list[str]:
    valid = set(valid_keys)
    removed = [key for key in state if key not in valid]
    for key in removed:
        del state[key]
    return removed


def state_stats(state: TranslationState) -> StateStats:
    counts: dict[str, int] = {}
    total_texts = 0
    for entry in state.values():
        for lang in entry.text_hashes:
            total_texts += 1
            counts[lang] = counts.get(lang, 0) + 1
    return StateStats(
        total_keys=len(state),
        total_texts=total_texts,
        language_counts=dict(sorted(counts.items())),
    )
