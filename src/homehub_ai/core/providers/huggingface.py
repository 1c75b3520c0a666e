from __future__ import annotations

from homehub_ai.core.config.schema import ProviderSettings
from homehub_ai.core.inference.registry import HUGGINGFACE
from homehub_ai.core.providers.base import ProviderConfig

DEFAULT_BASE_URL = "https://api-inference.huggingface.co/models"
MIN_KEY_LENGTH = 20


def bearer_auth(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


def validate_huggingface_key(api_key: str | None) -> tuple[bool, str | None]:
    if not api_key:
        return False, "No API key found"
    if not api_key.startswith("hf_"):
        return False, "API key should start with hf_"
    if len(api_key) < MIN_KEY_LENGTH:
        return False, "API key too short"
    return True, None


def huggingface_provider_config(settings: ProviderSettings, api_key: str) -> ProviderConfig:
    # x-use-cache lets the remote service answer deterministic models from its own cache;
    # x-wait-for-model turns a 503 cold start into a blocking load on the retry.
    return ProviderConfig(
        name=HUGGINGFACE,
        base_url=settings.base_url or DEFAULT_BASE_URL,
        api_key=api_key,
        auth_header_builder=bearer_auth,
        min_interval_ms=settings.min_interval_ms,
        supports_wait_for_model=settings.supports_wait_for_model,
        timeout_seconds=settings.timeout_seconds,
        endpoint_template="{base_url}/{model}",
        static_headers={"x-use-cache": "true" if settings.use_remote_cache else "false"},
        wait_for_model_headers={"x-wait-for-model": "true"},
    )
