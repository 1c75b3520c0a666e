from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from homehub_ai.core.cache.response_cache import ResponseCache
from homehub_ai.core.config.loader import load_app_config
from homehub_ai.core.config.schema import AppConfig
from homehub_ai.core.inference.registry import GEMINI, HUGGINGFACE, ModelRegistry, build_default_registry
from homehub_ai.core.orchestrator.hybrid import HybridOrchestrator
from homehub_ai.core.providers.base import ProviderClient, ProviderConfig
from homehub_ai.core.providers.gemini import gemini_provider_config
from homehub_ai.core.providers.health import resolve_api_key
from homehub_ai.core.providers.huggingface import huggingface_provider_config
from homehub_ai.core.runtime.errors import ConfigurationError
from homehub_ai.core.runtime.rate_limiter import RateLimiter
from homehub_ai.core.telemetry.logging import configure_logging, get_logger, mask_secret

_CONFIG_BUILDERS = {
    HUGGINGFACE: huggingface_provider_config,
    GEMINI: gemini_provider_config,
}


@dataclass(slots=True)
class AIRuntime:
    cfg: AppConfig
    registry: ModelRegistry
    cache: ResponseCache
    rate_limiter: RateLimiter
    orchestrator: HybridOrchestrator


def build_provider_configs(cfg: AppConfig, environ: Mapping[str, str] | None = None) -> list[ProviderConfig]:
    logger = get_logger("homehub_ai.runtime")
    configs: list[ProviderConfig] = []
    for name in cfg.providers.priority_order:
        settings = cfg.providers.settings_for(name)
        builder = _CONFIG_BUILDERS.get(name)
        if settings is None or builder is None:
            logger.warning("provider_unknown", provider=name)
            continue
        if not settings.enabled:
            logger.info("provider_not_enabled", provider=name)
            continue
        api_key = resolve_api_key(settings, environ)
        if not api_key:
            logger.warning("provider_missing_key", provider=name, api_key_env=settings.api_key_env)
            continue
        logger.info("provider_configured", provider=name, api_key=mask_secret(api_key))
        configs.append(builder(settings, api_key))
    return configs


def build_ai_runtime(
    config_path: str | None = None,
    *,
    cfg: AppConfig | None = None,
    environ: Mapping[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AIRuntime:
    cfg = cfg or load_app_config(instance_path=config_path)
    configure_logging(cfg.telemetry.log_level, cfg.telemetry.json_logs)

    provider_configs = build_provider_configs(cfg, environ)
    if not provider_configs:
        raise ConfigurationError("No AI services configured. Please set up HuggingFace or Gemini API keys.")
    if len(provider_configs) < len(cfg.providers.priority_order):
        get_logger("homehub_ai.runtime").warning(
            "provider_degraded",
            configured=[c.name for c in provider_configs],
            expected=cfg.providers.priority_order,
        )

    registry = build_default_registry(gemini_model=cfg.providers.gemini.model)
    cache = ResponseCache(default_ttl_seconds=cfg.cache.ttl_seconds, max_entries=cfg.cache.max_entries)
    rate_limiter = RateLimiter()
    clients = [ProviderClient(pc, rate_limiter, http_client=http_client) for pc in provider_configs]
    orchestrator = HybridOrchestrator(
        clients,
        registry,
        cache,
        request_timeout_seconds=cfg.runtime.request_timeout_seconds,
        cache_ttl_seconds=cfg.cache.ttl_seconds,
    )
    return AIRuntime(cfg=cfg, registry=registry, cache=cache, rate_limiter=rate_limiter, orchestrator=orchestrator)
