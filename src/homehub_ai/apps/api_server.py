from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Query

from homehub_ai import __version__
from homehub_ai.apps.runtime_support import AIRuntime, build_ai_runtime
from homehub_ai.cli import base_parser
from homehub_ai.core.cache.response_cache import run_periodic_sweep
from homehub_ai.core.inference.base import Capability
from homehub_ai.core.orchestrator.routing import route_capability
from homehub_ai.core.orchestrator.schemas import AskPayload, AskResponseModel
from homehub_ai.core.telemetry.logging import get_logger
from homehub_ai.core.telemetry.tracing import recent_traces


def create_app(config_path: str | None = None, runtime: AIRuntime | None = None) -> FastAPI:
    runtime = runtime or build_ai_runtime(config_path=config_path)
    orchestrator = runtime.orchestrator
    logger = get_logger("homehub_ai.api")

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        sweeper = None
        interval = runtime.cfg.cache.sweep_interval_seconds
        if interval > 0:
            sweeper = asyncio.create_task(run_periodic_sweep(runtime.cache, interval, logger))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

    app = FastAPI(title="HomeHub AI API", version=__version__, lifespan=lifespan)

    expected = [
        name
        for name in runtime.cfg.providers.priority_order
        if runtime.cfg.providers.settings_for(name) is not None and runtime.cfg.providers.settings_for(name).enabled
    ]

    @app.get("/health")
    def health() -> dict:
        available = orchestrator.available_services()
        return {
            "status": "ok" if len(available) >= len(expected) else "degraded",
            "available_services": available,
            "version": __version__,
        }

    @app.get("/stats")
    def stats() -> dict:
        return {**orchestrator.get_service_stats(), "rate_limits": runtime.rate_limiter.snapshot()}

    @app.get("/recommendations")
    def recommendations() -> dict:
        return {"items": orchestrator.service_recommendations()}

    @app.get("/providers")
    def providers() -> dict:
        return {
            "items": [
                {
                    "name": client.name,
                    "disabled": client.disabled,
                    "min_interval_ms": client.config.min_interval_ms,
                    "supports_wait_for_model": client.config.supports_wait_for_model,
                    "capabilities": [c.value for c in runtime.registry.capabilities(client.name)],
                }
                for client in orchestrator.clients
            ]
        }

    @app.get("/models")
    def models(capability: str | None = Query(default=None)) -> dict:
        if capability is None:
            caps = list(Capability)
        else:
            try:
                caps = [Capability.parse(capability)]
            except ValueError as exc:
                raise HTTPException(status_code=400, detail="unknown_capability") from exc
        return {"items": [s.describe() for cap in caps for s in runtime.registry.specs_for(cap)]}

    @app.post("/ask", response_model=AskResponseModel)
    async def ask(payload: AskPayload) -> AskResponseModel:
        prompt = payload.prompt
        capability = payload.capability
        params = dict(payload.params)
        if capability == "auto":
            decision = route_capability(prompt)
            capability = decision.capability.value
            prompt = prompt + decision.prompt_suffix
            params = {**decision.params, **params}
        result = await orchestrator.ask(
            prompt,
            capability,
            payload.context,
            [h.model_dump() for h in payload.history],
            params=params,
            timeout_seconds=payload.timeout_seconds,
        )
        return AskResponseModel(**result.as_dict())

    @app.delete("/cache")
    def clear_cache() -> dict:
        orchestrator.clear_caches()
        return {"status": "cleared", "cache": runtime.cache.stats()}

    @app.get("/traces")
    def traces(
        request_id: str | None = Query(default=None),
        limit: int = Query(default=50, ge=1, le=500),
    ) -> dict:
        return {"items": recent_traces(request_id=request_id, limit=limit)}

    return app


def main() -> int:
    parser = base_parser("homehub-ai-api", "HomeHub AI inference API")
    parser.add_argument("--config", default=None, help="Config file path")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args()

    api = create_app(config_path=args.config)
    uvicorn.run(api, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
