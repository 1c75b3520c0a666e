from __future__ import annotations

from pydantic import BaseModel, Field


class InstanceConfig(BaseModel):
    name: str = "homehub-ai"


class RuntimeConfig(BaseModel):
    request_timeout_seconds: float = 60.0


class CacheConfig(BaseModel):
    ttl_seconds: int = 24 * 60 * 60
    max_entries: int = 500
    sweep_interval_seconds: int = 0


class TelemetryConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = True


class ProviderSettings(BaseModel):
    enabled: bool = True
    base_url: str | None = None
    api_key_env: str | None = None
    min_interval_ms: int = 1000
    supports_wait_for_model: bool = False
    use_remote_cache: bool = True
    timeout_seconds: float = 20.0
    model: str | None = None


def _huggingface_defaults() -> ProviderSettings:
    return ProviderSettings(
        base_url="https://api-inference.huggingface.co/models",
        api_key_env="HOMEHUB_HUGGINGFACE_API_KEY",
        min_interval_ms=1000,
        supports_wait_for_model=True,
    )


def _gemini_defaults() -> ProviderSettings:
    return ProviderSettings(
        base_url="https://generativelanguage.googleapis.com/v1beta/models",
        api_key_env="HOMEHUB_GEMINI_API_KEY",
        min_interval_ms=1000,
        supports_wait_for_model=False,
        model="gemini-1.5-flash",
    )


class ProvidersConfig(BaseModel):
    priority_order: list[str] = Field(default_factory=lambda: ["huggingface", "gemini"])
    huggingface: ProviderSettings = Field(default_factory=_huggingface_defaults)
    gemini: ProviderSettings = Field(default_factory=_gemini_defaults)

    def settings_for(self, name: str) -> ProviderSettings | None:
        value = getattr(self, name, None)
        return value if isinstance(value, ProviderSettings) else None


class AppConfig(BaseModel):
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    environment: str = "dev"
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
