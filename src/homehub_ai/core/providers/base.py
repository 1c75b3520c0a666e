from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_none

from homehub_ai.core.inference.base import NormalizedResult
from homehub_ai.core.inference.registry import ModelSpec
from homehub_ai.core.runtime.errors import (
    ProviderError,
    ProviderErrorKind,
    classify_http_status,
    classify_transport_error,
    compact_error_summary,
)
from homehub_ai.core.runtime.rate_limiter import RateLimiter
from homehub_ai.core.telemetry.logging import get_logger
from homehub_ai.core.telemetry.tracing import TraceContext, trace_event


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    auth_header_builder: Callable[[str], dict[str, str]]
    min_interval_ms: int = 1000
    supports_wait_for_model: bool = False
    timeout_seconds: float = 20.0
    endpoint_template: str = "{base_url}/{model}"
    static_headers: dict[str, str] = field(default_factory=dict)
    wait_for_model_headers: dict[str, str] = field(default_factory=dict)

    def endpoint_for(self, model_id: str) -> str:
        return self.endpoint_template.format(base_url=self.base_url.rstrip("/"), model=model_id)

    def headers(self, *, wait_for_model: bool = False) -> dict[str, str]:
        out = {"Content-Type": "application/json", **self.static_headers, **self.auth_header_builder(self.api_key)}
        if wait_for_model:
            out.update(self.wait_for_model_headers)
        return out


def _is_model_loading(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.kind is ProviderErrorKind.MODEL_LOADING


class ProviderClient:
    """Issues single model calls against one provider.

    An ``auth_invalid`` answer disables the client for the rest of the
    process; later invocations fail immediately without touching the network
    or the rate limiter.
    """

    def __init__(
        self,
        config: ProviderConfig,
        rate_limiter: RateLimiter,
        *,
        http_client: httpx.AsyncClient | None = None,
        logger=None,
    ) -> None:
        self.config = config
        self.rate_limiter = rate_limiter
        self.rate_limiter.configure(config.name, config.min_interval_ms)
        self._http_client = http_client
        self._disabled_reason: str | None = None
        self.logger = logger or get_logger(f"homehub_ai.providers.{config.name}")

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def disabled(self) -> bool:
        return self._disabled_reason is not None

    @property
    def disabled_reason(self) -> str | None:
        return self._disabled_reason

    def disable(self, reason: str) -> None:
        if self._disabled_reason is None:
            self._disabled_reason = reason
            self.logger.warning("provider_disabled", provider=self.name, reason=reason)

    async def invoke(
        self,
        spec: ModelSpec,
        prompt: str,
        params: dict[str, Any] | None = None,
        trace: TraceContext | None = None,
    ) -> NormalizedResult:
        params = params or {}
        trace = trace or TraceContext.new(spec.capability.value)
        if self.disabled:
            raise ProviderError(
                ProviderErrorKind.AUTH_INVALID,
                f"provider disabled: {self._disabled_reason}",
                provider=self.name,
                model=spec.id,
            )

        try:
            body = spec.build_request(prompt, params)
        except Exception as exc:  # noqa: BLE001
            trace_event(self.logger, trace, "provider_attempt", ProviderErrorKind.BAD_RESPONSE.value, {"provider": self.name, "model": spec.id, "stage": "build"})
            raise ProviderError(
                ProviderErrorKind.BAD_RESPONSE,
                f"request build failed: {compact_error_summary(exc)}",
                provider=self.name,
                model=spec.id,
            ) from exc

        attempts = 2 if self.config.supports_wait_for_model else 1
        payload: Any = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                retry=retry_if_exception(_is_model_loading),
                wait=wait_none(),
                reraise=True,
            ):
                with attempt:
                    wait_for_model = attempt.retry_state.attempt_number > 1
                    if wait_for_model:
                        trace_event(self.logger, trace, "provider_retry", "wait_for_model", {"provider": self.name, "model": spec.id})
                    payload = await self._dispatch(spec, body, wait_for_model=wait_for_model)
        except ProviderError as exc:
            if exc.kind.fatal_for_provider:
                self.disable(f"{spec.id}: {exc}")
            trace_event(
                self.logger,
                trace,
                "provider_attempt",
                exc.kind.value,
                {"provider": self.name, "model": spec.id, "http_status": exc.http_status},
            )
            raise

        try:
            result = spec.parse_response(payload, params)
        except Exception as exc:  # noqa: BLE001
            trace_event(self.logger, trace, "provider_attempt", ProviderErrorKind.BAD_RESPONSE.value, {"provider": self.name, "model": spec.id})
            raise ProviderError(
                ProviderErrorKind.BAD_RESPONSE,
                compact_error_summary(exc),
                provider=self.name,
                model=spec.id,
            ) from exc

        trace_event(self.logger, trace, "provider_attempt", "ok", {"provider": self.name, "model": spec.id})
        return result.with_source(provider=self.name, model=spec.id, capability=spec.capability)

    async def _dispatch(self, spec: ModelSpec, body: dict[str, Any], *, wait_for_model: bool) -> Any:
        await self.rate_limiter.await_slot(self.name)
        url = self.config.endpoint_for(spec.id)
        headers = self.config.headers(wait_for_model=wait_for_model)
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=body, headers=headers, timeout=self.config.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.post(url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ProviderError(
                classify_transport_error(exc),
                compact_error_summary(exc),
                provider=self.name,
                model=spec.id,
            ) from exc

        kind = classify_http_status(response.status_code)
        if kind is not None:
            raise ProviderError(
                kind,
                f"HTTP {response.status_code}: {response.text[:160]}",
                provider=self.name,
                model=spec.id,
                http_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                ProviderErrorKind.BAD_RESPONSE,
                compact_error_summary(exc),
                provider=self.name,
                model=spec.id,
                http_status=response.status_code,
            ) from exc

    async def probe(self, spec: ModelSpec, prompt: str = "Hello, test message") -> NormalizedResult:
        """Lightweight live request used by connectivity checks."""
        return await self.invoke(spec, prompt, {}, TraceContext.new(spec.capability.value, phase="probe"))
