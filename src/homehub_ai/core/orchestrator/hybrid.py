from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from homehub_ai.core.cache.response_cache import ResponseStore, fingerprint
from homehub_ai.core.inference.base import AskRequest, Capability, ChatTurn, NormalizedResult
from homehub_ai.core.inference.registry import ModelRegistry
from homehub_ai.core.providers.base import ProviderClient
from homehub_ai.core.providers.fallback import FallbackChain
from homehub_ai.core.runtime.errors import ConfigurationError, ExhaustedError, ProviderError, ProviderErrorKind
from homehub_ai.core.runtime.timeouts import run_with_timeout
from homehub_ai.core.telemetry.logging import get_logger
from homehub_ai.core.telemetry.tracing import TraceContext, trace_event

DEGRADED_TEXT = "All AI services are currently unavailable. Please try again later."
HIGH_ERROR_RATE = 0.3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ProviderStats:
    calls: int = 0
    errors: int = 0
    last_used_at: datetime | None = None
    last_error_at: datetime | None = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }


class _StatsCell:
    def __init__(self) -> None:
        self.stats = ProviderStats()
        self.lock = threading.Lock()

    def record(self, success: bool) -> None:
        now = _utcnow()
        with self.lock:
            self.stats.calls += 1
            self.stats.last_used_at = now
            if not success:
                self.stats.errors += 1
                self.stats.last_error_at = now

    def copy(self) -> ProviderStats:
        with self.lock:
            s = self.stats
            return ProviderStats(calls=s.calls, errors=s.errors, last_used_at=s.last_used_at, last_error_at=s.last_error_at)


class HybridOrchestrator:
    """Top-level ``ask`` entry point over an ordered list of providers.

    Requests are answered from the shared cache when possible, otherwise each
    provider's fallback chain is tried in priority order. Exhaustion of every
    provider produces a flagged degraded result instead of an exception.
    """

    def __init__(
        self,
        clients: list[ProviderClient],
        registry: ModelRegistry,
        cache: ResponseStore,
        *,
        fallback_chain: FallbackChain | None = None,
        request_timeout_seconds: float | None = None,
        cache_ttl_seconds: float | None = None,
        logger=None,
    ) -> None:
        if not clients:
            raise ConfigurationError("No AI services configured. Please set up HuggingFace or Gemini API keys.")
        self.clients = list(clients)
        self.registry = registry
        self.cache = cache
        self.logger = logger or get_logger("homehub_ai.orchestrator")
        self.fallback_chain = fallback_chain or FallbackChain(registry, logger=self.logger)
        self.request_timeout_seconds = request_timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self.last_used_service: str | None = None
        self._stats: dict[str, _StatsCell] = {c.name: _StatsCell() for c in self.clients}

    def provider_names(self) -> list[str]:
        return [c.name for c in self.clients]

    def client(self, name: str) -> ProviderClient | None:
        for c in self.clients:
            if c.name == name:
                return c
        return None

    async def ask(
        self,
        prompt: str,
        capability: Capability | str,
        context: str = "",
        history: list[ChatTurn | dict[str, Any]] | None = None,
        *,
        params: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
        cache_ttl_seconds: float | None = None,
    ) -> NormalizedResult:
        if not self.clients:
            raise ConfigurationError("No AI services configured.")
        try:
            cap = Capability.parse(capability)
        except ValueError:
            self.logger.warning("unknown_capability", capability=str(capability))
            return self._degraded(str(capability), reason="unsupported_capability", failures={})

        request = AskRequest(
            prompt=prompt,
            capability=cap,
            context=context or "",
            history=[ChatTurn.coerce(t) for t in history or []],
            params=dict(params or {}),
        )
        key = fingerprint(cap, prompt, context=request.context, history=request.history, params=request.params)
        cached, found = self.cache.get(key)
        if found and cached is not None:
            self.logger.info("cache_hit", capability=cap.value, fingerprint=key[:12])
            return cached

        trace = TraceContext.new(cap.value)
        timeout = self.request_timeout_seconds if timeout_seconds is None else timeout_seconds
        failures: dict[str, list[dict[str, str]]] = {}
        in_flight: list[str] = []
        try:
            return await run_with_timeout(
                self._ask_providers(request, key, trace, cache_ttl_seconds, failures, in_flight), timeout
            )
        except asyncio.TimeoutError:
            # The provider cut off mid-chain still counts as a failed attempt.
            for name in in_flight:
                self._stats[name].record(success=False)
                failures[name] = [{"model": "*", "kind": ProviderErrorKind.NETWORK_ERROR.value}]
            trace_event(self.logger, trace, "ask_timeout", "degraded", {"timeout_seconds": timeout, "in_flight": ",".join(in_flight)})
            return self._degraded(cap.value, reason="timeout", failures=failures)

    async def _ask_providers(
        self,
        request: AskRequest,
        key: str,
        trace: TraceContext,
        cache_ttl_seconds: float | None,
        failures: dict[str, list[dict[str, str]]],
        in_flight: list[str],
    ) -> NormalizedResult:
        params = request.model_params()
        for client in self.clients:
            if client.disabled:
                trace_event(self.logger, trace, "provider_skipped", "disabled", {"provider": client.name})
                failures[client.name] = [{"model": "*", "kind": "auth_invalid"}]
                continue
            started = perf_counter()
            in_flight.append(client.name)
            try:
                result = await self.fallback_chain.run(client, request.capability, request.prompt, params, trace)
            except ExhaustedError as exc:
                in_flight.remove(client.name)
                self._stats[client.name].record(success=False)
                failures[client.name] = [{"model": f.model, "kind": f.kind.value} for f in exc.failures]
                trace_event(
                    self.logger,
                    trace,
                    "provider_exhausted",
                    "error",
                    {"provider": client.name, "attempts": len(exc.failures), "auth_invalid": exc.auth_invalid},
                )
                continue

            in_flight.remove(client.name)
            self.cache.put(key, result, self.cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds)
            self._stats[client.name].record(success=True)
            self.last_used_service = client.name
            trace_event(
                self.logger,
                trace,
                "ask_completed",
                "ok",
                {"provider": client.name, "model": result.model, "latency_ms": round((perf_counter() - started) * 1000, 3)},
            )
            return result

        trace_event(self.logger, trace, "ask_completed", "degraded", {"providers": ",".join(failures)})
        return self._degraded(request.capability.value, reason="all_providers_exhausted", failures=failures)

    @staticmethod
    def _degraded(capability: str, *, reason: str, failures: dict[str, list[dict[str, str]]]) -> NormalizedResult:
        return NormalizedResult(
            text=DEGRADED_TEXT,
            confidence=None,
            raw={"reason": reason, "failures": failures},
            degraded=True,
            capability=capability,
        )

    def provider_stats(self, name: str) -> ProviderStats:
        cell = self._stats.get(name)
        return cell.copy() if cell is not None else ProviderStats()

    def available_services(self) -> list[str]:
        return [c.name for c in self.clients if not c.disabled]

    def disabled_services(self) -> dict[str, str]:
        return {c.name: c.disabled_reason or "" for c in self.clients if c.disabled}

    def get_service_stats(self) -> dict[str, Any]:
        providers = {name: cell.copy().snapshot() for name, cell in self._stats.items()}
        return {
            "providers": providers,
            "last_used_service": self.last_used_service,
            "available_services": self.available_services(),
            "disabled_services": self.disabled_services(),
            "total_calls": sum(p["calls"] for p in providers.values()),
            "total_errors": sum(p["errors"] for p in providers.values()),
            "cache": self.cache.stats(),
        }

    def service_recommendations(self) -> list[dict[str, str]]:
        recommendations: list[dict[str, str]] = []
        if not self.available_services():
            recommendations.append(
                {
                    "priority": "high",
                    "service": "gemini",
                    "reason": "No usable AI services. Gemini is free and high quality.",
                    "action": "Get an API key from https://makersuite.google.com/app/apikey",
                }
            )
        for name, reason in self.disabled_services().items():
            recommendations.append(
                {
                    "priority": "high",
                    "service": name,
                    "reason": f"Provider disabled after an authentication failure ({reason}).",
                    "action": f"Replace the {name} API key and restart the service",
                }
            )
        for name in self.provider_names():
            stats = self.provider_stats(name)
            if stats.calls and stats.errors > stats.calls * HIGH_ERROR_RATE:
                recommendations.append(
                    {
                        "priority": "medium",
                        "service": name,
                        "reason": "High error rate detected. Consider checking API key or rate limits.",
                        "action": f"Verify the {name} API key and check rate limits",
                    }
                )
        return recommendations

    def clear_caches(self) -> None:
        self.cache.clear()
        self.logger.info("cache_cleared")

    async def test_all_services(self) -> dict[str, dict[str, Any]]:
        results: dict[str, dict[str, Any]] = {}
        for client in self.clients:
            specs = self.registry.specs_for(Capability.ANSWER, provider=client.name)
            if not specs:
                specs = [s for cap in self.registry.capabilities(client.name) for s in self.registry.specs_for(cap, client.name)]
            if not specs:
                results[client.name] = {"success": False, "error": "no models registered"}
                continue
            started = perf_counter()
            try:
                probe = await client.probe(specs[0])
                results[client.name] = {
                    "success": True,
                    "model": specs[0].id,
                    "latency_ms": round((perf_counter() - started) * 1000, 2),
                    "response": probe.text[:120],
                }
            except ProviderError as exc:
                results[client.name] = {
                    "success": False,
                    "model": specs[0].id,
                    "latency_ms": round((perf_counter() - started) * 1000, 2),
                    "error": f"{exc.kind.value}: {exc}",
                }
        return results
