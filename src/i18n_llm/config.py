from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


DEFAULT_CONFIG_PATH = "i18n-llm.config.json"
DEFAULT_STATE_PATH = ".i18n-llm-state.json"
DEFAULT_PROVIDER = "openai"
DEFAULT_MODELS = {
    "openai": "gpt-4.1-mini",
    "gemini": "gemini-2.5-flash",
}
API_KEY_ENV = {
    "openai": ("OPENAI_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class ProviderConfig:
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODELS[DEFAULT_PROVIDER]
    api_key: str | None = None
    base_url: str | None = None
    max_retries: int = 3
    timeout_seconds: int = 60


@dataclass(frozen=True)
class Config:
    schema_files: tuple[str, ...]
    output_dir: str
    source_lang: str

    state_path: str = DEFAULT_STATE_PATH
    history_path: str | None = None
    persona: dict[str, Any] | None = None
    glossary: dict[str, str] | None = None
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    batch_size: int = 40


def _load_provider(raw: Any) -> ProviderConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError('"providerConfig" must be an object')

    provider = str(os.getenv("I18N_LLM_PROVIDER") or raw.get("provider") or DEFAULT_PROVIDER)
    provider = provider.strip().lower()
    model = os.getenv("I18N_LLM_MODEL") or raw.get("model") or DEFAULT_MODELS.get(provider)
    if not model or not isinstance(model, str):
        raise ConfigError('"providerConfig.model" must be a non-empty string')

    api_key = raw.get("apiKey")
    if not api_key:
        for name in API_KEY_ENV.get(provider, ()):
            api_key = os.getenv(name)
            if api_key:
                break

    try:
        max_retries = int(raw.get("maxRetries", 3))
        timeout_seconds = int(raw.get("timeoutSeconds", 60))
    except (TypeError, ValueError) as exc:
        raise ConfigError("providerConfig.maxRetries/timeoutSeconds must be integers") from exc

    return ProviderConfig(
        provider=provider,
        model=model,
        api_key=api_key or None,
        base_url=raw.get("baseURL") or raw.get("baseUrl"),
        max_retries=max_retries,
        timeout_seconds=timeout_seconds,
    )


def config_from_dict(data: Any, base_dir: str | None = None) -> Config:
    if not isinstance(data, dict):
        raise ConfigError("config must be a JSON object")

    schema_files = data.get("schemaFiles") or data.get("schemaPaths")
    if not isinstance(schema_files, list) or not schema_files:
        raise ConfigError('config must have "schemaFiles" (or "schemaPaths") as a non-empty array')
    if not all(isinstance(p, str) for p in schema_files):
        raise ConfigError("all schema files must be strings")

    def req(name: str) -> str:
        value = data.get(name)
        if not value or not isinstance(value, str):
            raise ConfigError(f'config must have "{name}" as a string')
        return value

    def opt_dict(name: str) -> dict[str, Any] | None:
        value = data.get(name)
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ConfigError(f'config "{name}" must be an object if provided')
        return value

    def resolve(path: str) -> str:
        if base_dir is None or os.path.isabs(path):
            return path
        return os.path.join(base_dir, path)

    glossary = opt_dict("glossary")
    batch_size = os.getenv("I18N_LLM_BATCH_SIZE") or data.get("batchSize", 40)
    try:
        batch_size = int(batch_size)
    except (TypeError, ValueError) as exc:
        raise ConfigError('"batchSize" must be an integer') from exc
    if batch_size < 1:
        raise ConfigError('"batchSize" must be at least 1')

    history_path = data.get("historyPath")
    return Config(
        schema_files=tuple(resolve(p) for p in schema_files),
        output_dir=resolve(req("outputDir")),
        source_lang=req("sourceLanguage"),
        state_path=resolve(data.get("statePath") or DEFAULT_STATE_PATH),
        history_path=resolve(history_path) if history_path else None,
        persona=opt_dict("persona"),
        glossary={str(k): str(v) for k, v in glossary.items()} if glossary else None,
        provider=_load_provider(data.get("providerConfig")),
        batch_size=batch_size,
    )


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"config file not found: {config_path.resolve()}")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{config_path} must be valid JSON") from exc
    return config_from_dict(data, base_dir=str(config_path.resolve().parent))
