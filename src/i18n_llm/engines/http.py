from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

from .base import ProviderError


log = logging.getLogger("i18n_llm.engines.http")

RETRY_STATUS = {408, 409, 429, 500, 502, 503, 504}


@dataclass
class JsonApiClient:
    session: requests.Session
    user_agent: str = "i18n-llm/0.1"
    max_retries: int = 3
    timeout_seconds: float = 60
    backoff_seconds: float = 1

    def post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        headers = {"User-Agent": self.user_agent, "Content-Type": "application/json", **(headers or {})}
        backoff = self.backoff_seconds
        attempts = max(self.max_retries, 0) + 1
        last_error = ""
        for attempt in range(attempts):
            try:
                resp = self.session.post(
                    url,
                    json=payload,
                    headers=headers,
                    params=params,
                    timeout=self.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code < 400:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise ProviderError(f"provider returned invalid JSON: {exc}") from exc
                last_error = f"HTTP {resp.status_code}: {resp.text[:500]}"
                if resp.status_code not in RETRY_STATUS:
                    raise ProviderError(f"provider request failed: {last_error}")
            if attempt < attempts - 1:
                log.warning("provider request failed (%s); backing off %ss", last_error, backoff)
                time.sleep(backoff)
                backoff *= 2
        raise ProviderError(f"provider request failed after {attempts} attempts: {last_error}")
