from __future__ import annotations

import os
from collections.abc import Mapping
from time import perf_counter

import httpx
from pydantic import BaseModel

from homehub_ai.core.config.schema import AppConfig, ProviderSettings
from homehub_ai.core.inference.registry import GEMINI, HUGGINGFACE
from homehub_ai.core.providers.gemini import gemini_provider_config, validate_gemini_key
from homehub_ai.core.providers.huggingface import huggingface_provider_config, validate_huggingface_key

_VALIDATORS = {
    HUGGINGFACE: validate_huggingface_key,
    GEMINI: validate_gemini_key,
}

_HF_PROBE_MODEL = "facebook/bart-large-mnli"


class ProviderCheckResult(BaseModel):
    provider: str
    enabled: bool
    ok: bool
    latency_ms: float | None = None
    error: str | None = None


def resolve_api_key(settings: ProviderSettings, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    if not settings.api_key_env:
        return ""
    return (env.get(settings.api_key_env) or "").strip()


def validate_api_key(provider: str, api_key: str | None) -> tuple[bool, str | None]:
    validator = _VALIDATORS.get(provider)
    if validator is None:
        return bool(api_key), None if api_key else "No API key found"
    return validator(api_key)


def _probe_request(provider: str, settings: ProviderSettings, api_key: str) -> tuple[str, dict[str, str]]:
    if provider == HUGGINGFACE:
        config = huggingface_provider_config(settings, api_key)
        return config.endpoint_for(_HF_PROBE_MODEL), config.headers()
    config = gemini_provider_config(settings, api_key)
    return config.base_url.rstrip("/"), config.headers()


def check_configured_providers(
    cfg: AppConfig,
    skip_tests: bool = False,
    timeout_seconds: float = 4.0,
    environ: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, ProviderCheckResult]:
    results: dict[str, ProviderCheckResult] = {}

    for provider in cfg.providers.priority_order:
        settings = cfg.providers.settings_for(provider)
        if settings is None:
            results[provider] = ProviderCheckResult(provider=provider, enabled=False, ok=False, error="unknown provider")
            continue
        if not settings.enabled:
            results[provider] = ProviderCheckResult(provider=provider, enabled=False, ok=False, error="disabled")
            continue

        api_key = resolve_api_key(settings, environ)
        valid, reason = validate_api_key(provider, api_key)
        if not valid:
            results[provider] = ProviderCheckResult(provider=provider, enabled=True, ok=False, error=f"invalid api key: {reason}")
            continue
        if skip_tests:
            results[provider] = ProviderCheckResult(provider=provider, enabled=True, ok=False, error="skipped")
            continue

        url, headers = _probe_request(provider, settings, api_key)
        started = perf_counter()
        try:
            with httpx.Client(timeout=timeout_seconds, transport=transport) as client:
                resp = client.get(url, headers=headers)
                resp.raise_for_status()
            results[provider] = ProviderCheckResult(
                provider=provider,
                enabled=True,
                ok=True,
                latency_ms=round((perf_counter() - started) * 1000, 2),
            )
        except Exception as exc:  # noqa: BLE001
            results[provider] = ProviderCheckResult(
                provider=provider,
                enabled=True,
                ok=False,
                latency_ms=round((perf_counter() - started) * 1000, 2),
                error=str(exc),
            )

    return results
