from __future__ import annotations

from homehub_ai.core.config.schema import ProviderSettings
from homehub_ai.core.inference.registry import GEMINI
from homehub_ai.core.providers.base import ProviderConfig

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def goog_api_key_auth(api_key: str) -> dict[str, str]:
    return {"X-goog-api-key": api_key}


def validate_gemini_key(api_key: str | None) -> tuple[bool, str | None]:
    if not api_key or not api_key.strip():
        return False, "No API key found"
    return True, None


def gemini_provider_config(settings: ProviderSettings, api_key: str) -> ProviderConfig:
    return ProviderConfig(
        name=GEMINI,
        base_url=settings.base_url or DEFAULT_BASE_URL,
        api_key=api_key,
        auth_header_builder=goog_api_key_auth,
        min_interval_ms=settings.min_interval_ms,
        supports_wait_for_model=False,
        timeout_seconds=settings.timeout_seconds,
        endpoint_template="{base_url}/{model}:generateContent",
    )
