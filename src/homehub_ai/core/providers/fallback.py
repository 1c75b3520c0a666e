from __future__ import annotations

from typing import Any

from homehub_ai.core.inference.base import Capability, NormalizedResult
from homehub_ai.core.inference.registry import ModelRegistry
from homehub_ai.core.providers.base import ProviderClient
from homehub_ai.core.runtime.errors import ExhaustedError, ModelFailure, ProviderError
from homehub_ai.core.telemetry.logging import get_logger
from homehub_ai.core.telemetry.tracing import TraceContext, trace_event


class FallbackChain:
    """Walks one provider's models for a capability in registry order."""

    def __init__(self, registry: ModelRegistry, logger=None) -> None:
        self.registry = registry
        self.logger = logger or get_logger("homehub_ai.fallback")

    async def run(
        self,
        client: ProviderClient,
        capability: Capability,
        prompt: str,
        params: dict[str, Any] | None = None,
        trace: TraceContext | None = None,
    ) -> NormalizedResult:
        params = params or {}
        trace = trace or TraceContext.new(capability.value)
        specs = [s for s in self.registry.specs_for(capability, provider=client.name) if s.applies_to(params)]
        failures: list[ModelFailure] = []

        for index, spec in enumerate(specs, start=1):
            try:
                return await client.invoke(spec, prompt, params, trace)
            except ProviderError as exc:
                failures.append(ModelFailure(model=spec.id, kind=exc.kind, message=str(exc)))
                if exc.kind.fatal_for_provider:
                    trace_event(self.logger, trace, "fallback_aborted", exc.kind.value, {"provider": client.name, "model": spec.id})
                    break
                if index < len(specs):
                    trace_event(
                        self.logger,
                        trace,
                        "fallback_next",
                        exc.kind.value,
                        {"provider": client.name, "model": spec.id, "next_model": specs[index].id},
                    )

        raise ExhaustedError(client.name, capability.value, failures)
