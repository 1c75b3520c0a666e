from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from homehub_ai.core.config.schema import AppConfig


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    content = yaml.safe_load(path.read_text(encoding="utf-8"))
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return content


def _check_provider_order(cfg: AppConfig) -> None:
    order = cfg.providers.priority_order
    if not order:
        raise ValueError("Invalid HomeHub AI configuration: providers.priority_order is empty")
    unknown = [name for name in order if cfg.providers.settings_for(name) is None]
    if unknown:
        raise ValueError(f"Invalid HomeHub AI configuration: unknown providers in priority_order: {', '.join(unknown)}")
    if len(set(order)) != len(order):
        raise ValueError("Invalid HomeHub AI configuration: duplicate providers in priority_order")


def load_app_config(
    defaults_path: str | Path = "config/defaults.yaml",
    instance_path: str | Path | None = None,
) -> AppConfig:
    defaults = _load_yaml(Path(defaults_path))

    explicit_instance = instance_path or os.getenv("HOMEHUB_AI_CONFIG_FILE")
    instance = _load_yaml(Path(explicit_instance)) if explicit_instance else {}

    merged = _deep_merge(defaults, instance)

    env_environment = os.getenv("HOMEHUB_AI_ENVIRONMENT")
    if env_environment:
        merged["environment"] = env_environment

    env_provider_order = os.getenv("HOMEHUB_AI_PROVIDER_ORDER")
    if env_provider_order:
        merged.setdefault("providers", {})
        merged["providers"]["priority_order"] = [p.strip() for p in env_provider_order.split(",") if p.strip()]

    env_log_level = os.getenv("HOMEHUB_AI_LOG_LEVEL")
    if env_log_level:
        merged.setdefault("telemetry", {})
        merged["telemetry"]["log_level"] = env_log_level

    try:
        cfg = AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid HomeHub AI configuration: {exc}") from exc
    _check_provider_order(cfg)
    return cfg
