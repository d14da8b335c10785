from __future__ import annotations

import requests

from ..config import ProviderConfig
from .base import TranslationEngine
from .gemini import GeminiEngine
from .http import JsonApiClient
from .openai_chat import OpenAIChatEngine


SUPPORTED_PROVIDERS = ("openai", "gemini")


class ProviderCreationError(RuntimeError):
    pass


def create_engine(cfg: ProviderConfig, session: requests.Session | None = None) -> TranslationEngine:
    if cfg.provider not in SUPPORTED_PROVIDERS:
        raise ProviderCreationError(
            f"unsupported provider: {cfg.provider}. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    if not cfg.api_key:
        env = "OPENAI_API_KEY" if cfg.provider == "openai" else "GEMINI_API_KEY or GOOGLE_API_KEY"
        raise ProviderCreationError(
            f"{cfg.provider} API key is required; set {env} or providerConfig.apiKey"
        )
    client = JsonApiClient(
        session=session or requests.Session(),
        max_retries=cfg.max_retries,
        timeout_seconds=cfg.timeout_seconds,
    )
    if cfg.provider == "gemini":
        return GeminiEngine(api_key=cfg.api_key, client=client, model=cfg.model, base_url=cfg.base_url)
    return OpenAIChatEngine(api_key=cfg.api_key, client=client, model=cfg.model, base_url=cfg.base_url)
