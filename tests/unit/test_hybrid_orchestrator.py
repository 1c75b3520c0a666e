from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from homehub_ai.core.cache.response_cache import ResponseCache
from homehub_ai.core.config.schema import ProviderSettings
from homehub_ai.core.inference.base import Capability
from homehub_ai.core.inference.registry import build_default_registry
from homehub_ai.core.orchestrator.hybrid import DEGRADED_TEXT, HybridOrchestrator
from homehub_ai.core.providers.base import ProviderClient
from homehub_ai.core.providers.gemini import gemini_provider_config
from homehub_ai.core.providers.huggingface import huggingface_provider_config
from homehub_ai.core.runtime.errors import ConfigurationError
from homehub_ai.core.runtime.rate_limiter import RateLimiter

STARS = [[{"label": "5 stars", "score": 0.82}, {"label": "4 stars", "score": 0.12}, {"label": "1 star", "score": 0.06}]]


def gemini_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


class FakeProviders:
    """Routes mock HTTP traffic to per-provider handlers and records calls."""

    def __init__(self, hf=None, gemini=None) -> None:
        self.hf = hf or (lambda request: httpx.Response(500))
        self.gemini = gemini or (lambda request: httpx.Response(500))
        self.hf_calls: list[str] = []
        self.gemini_calls: list[str] = []

    def __call__(self, request: httpx.Request):
        if request.url.host == "hf.test":
            self.hf_calls.append(request.url.path)
            return self.hf(request)
        self.gemini_calls.append(request.url.path)
        return self.gemini(request)


def build(fake: FakeProviders, *, providers=("huggingface", "gemini"), cache: ResponseCache | None = None) -> HybridOrchestrator:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake))
    limiter = RateLimiter()
    clients = []
    if "huggingface" in providers:
        settings = ProviderSettings(base_url="https://hf.test/models", min_interval_ms=0, supports_wait_for_model=True)
        clients.append(ProviderClient(huggingface_provider_config(settings, "hf_orchestrator_test_0000"), limiter, http_client=http))
    if "gemini" in providers:
        settings = ProviderSettings(base_url="https://gemini.test/v1beta/models", min_interval_ms=0)
        clients.append(ProviderClient(gemini_provider_config(settings, "gemini-key"), limiter, http_client=http))
    return HybridOrchestrator(clients, build_default_registry(), cache or ResponseCache())


@pytest.mark.asyncio
async def test_sentiment_answered_by_primary_provider():
    fake = FakeProviders(hf=lambda request: httpx.Response(200, json=STARS))
    orchestrator = build(fake)

    result = await orchestrator.ask("I love this app", Capability.SENTIMENT)

    assert result.text == "positive"
    assert result.confidence >= 0.5
    assert result.degraded is False
    assert orchestrator.provider_stats("huggingface").calls == 1
    assert orchestrator.provider_stats("gemini").calls == 0
    assert orchestrator.last_used_service == "huggingface"
    assert fake.gemini_calls == []


@pytest.mark.asyncio
async def test_second_identical_ask_is_a_pure_cache_hit():
    fake = FakeProviders(hf=lambda request: httpx.Response(200, json=STARS))
    orchestrator = build(fake)

    first = await orchestrator.ask("I love this app", "sentiment", context="feedback")
    second = await orchestrator.ask("I love   this app", "sentiment", context="feedback")

    assert second == first
    assert json.dumps(second.as_dict(), sort_keys=True) == json.dumps(first.as_dict(), sort_keys=True)
    assert len(fake.hf_calls) == 1
    assert orchestrator.provider_stats("huggingface").calls == 1
    assert orchestrator.get_service_stats()["cache"]["hits"] == 1


@pytest.mark.asyncio
async def test_translate_auth_failure_disables_primary_and_falls_back():
    def gemini(request: httpx.Request) -> httpx.Response:
        prompt = json.loads(request.content)["contents"][0]["parts"][0]["text"]
        if "sentiment" in prompt:
            return gemini_reply("POSITIVE")
        return gemini_reply("Me encanta esta aplicación")

    fake = FakeProviders(hf=lambda request: httpx.Response(401, json={"error": "Invalid token"}), gemini=gemini)
    orchestrator = build(fake)

    result = await orchestrator.ask("I love this app", Capability.TRANSLATE, params={"target_language": "es"})

    assert result.provider == "gemini"
    assert result.text == "Me encanta esta aplicación"
    assert fake.hf_calls == ["/models/Helsinki-NLP/opus-mt-en-es"]
    assert "huggingface" in orchestrator.disabled_services()
    hf_stats = orchestrator.provider_stats("huggingface")
    assert (hf_stats.calls, hf_stats.errors) == (1, 1)

    later = await orchestrator.ask("Is this good?", Capability.SENTIMENT)
    assert later.text == "positive"
    assert len(fake.hf_calls) == 1
    assert orchestrator.available_services() == ["gemini"]


@pytest.mark.asyncio
async def test_all_providers_exhausted_returns_flagged_degraded_result():
    fake = FakeProviders()
    orchestrator = build(fake)

    result = await orchestrator.ask("What is for dinner?", Capability.ANSWER, timeout_seconds=5)

    assert result.degraded is True
    assert result.text == DEGRADED_TEXT
    assert result.raw["reason"] == "all_providers_exhausted"
    assert set(result.raw["failures"]) == {"huggingface", "gemini"}
    stats = orchestrator.get_service_stats()
    assert stats["total_calls"] == 2
    assert stats["total_errors"] == 2

    # degraded answers are never cached
    await orchestrator.ask("What is for dinner?", Capability.ANSWER)
    assert orchestrator.get_service_stats()["total_calls"] == 4


@pytest.mark.asyncio
async def test_summarize_falls_back_and_unserved_capability_counts_as_error():
    fake = FakeProviders(gemini=lambda request: gemini_reply("Short summary"))
    orchestrator = build(fake, providers=("huggingface", "gemini"))

    result = await orchestrator.ask("A very long story about groceries", Capability.SUMMARIZE)
    assert result.provider == "gemini"
    assert fake.hf_calls == ["/models/sshleifer/distilbart-cnn-12-6"]

    fill = await orchestrator.ask("best pasta", Capability.FILL_MASK)
    assert fill.degraded is True
    assert orchestrator.provider_stats("gemini").errors == 1
    assert fake.gemini_calls == ["/v1beta/models/gemini-1.5-flash:generateContent"]


@pytest.mark.asyncio
async def test_unknown_capability_is_degraded_not_raised():
    fake = FakeProviders()
    orchestrator = build(fake)
    result = await orchestrator.ask("hello", "poetry")
    assert result.degraded is True
    assert result.raw["reason"] == "unsupported_capability"
    assert fake.hf_calls == [] and fake.gemini_calls == []


def test_no_configured_provider_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        HybridOrchestrator([], build_default_registry(), ResponseCache())


@pytest.mark.asyncio
async def test_request_timeout_returns_degraded_and_skips_cache():
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200, json=STARS)

    fake = FakeProviders(hf=slow)
    cache = ResponseCache()
    orchestrator = build(fake, providers=("huggingface",), cache=cache)

    result = await orchestrator.ask("I love this app", Capability.SENTIMENT, timeout_seconds=0.05)

    assert result.degraded is True
    assert result.raw["reason"] == "timeout"
    assert result.raw["failures"] == {"huggingface": [{"model": "*", "kind": "network_error"}]}
    assert cache.stats()["writes"] == 0
    stats = orchestrator.provider_stats("huggingface")
    assert (stats.calls, stats.errors) == (1, 1)
    assert stats.last_error_at is not None


@pytest.mark.asyncio
async def test_caller_cancellation_propagates_without_cache_write():
    started = asyncio.Event()

    async def slow(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(1.0)
        return httpx.Response(200, json=STARS)

    fake = FakeProviders(hf=slow)
    cache = ResponseCache()
    orchestrator = build(fake, providers=("huggingface",), cache=cache)

    task = asyncio.create_task(orchestrator.ask("I love this app", Capability.SENTIMENT))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert cache.stats()["writes"] == 0
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_history_and_context_reach_the_chat_model():
    bodies: list[dict] = []

    def gemini(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return gemini_reply("Try a vegetable stir fry.")

    fake = FakeProviders(gemini=gemini)
    orchestrator = build(fake, providers=("gemini",))

    result = await orchestrator.ask(
        "what should I cook?",
        Capability.ANSWER,
        context="pantry: rice, peppers",
        history=[{"sender": "user", "message": "I am hungry"}],
    )
    assert result.text == "Try a vegetable stir fry."
    text = bodies[0]["contents"][0]["parts"][0]["text"]
    assert "pantry: rice, peppers" in text
    assert "User: I am hungry" in text


@pytest.mark.asyncio
async def test_recommendations_flag_disabled_and_error_prone_providers():
    fake = FakeProviders(hf=lambda request: httpx.Response(403))
    orchestrator = build(fake)

    await orchestrator.ask("hello", Capability.ANSWER)
    recs = orchestrator.service_recommendations()
    services = {(r["service"], r["priority"]) for r in recs}
    assert ("huggingface", "high") in services
    assert ("huggingface", "medium") in services
    assert ("gemini", "medium") in services

    orchestrator.clear_caches()
    assert orchestrator.get_service_stats()["cache"]["size"] == 0


@pytest.mark.asyncio
async def test_test_all_services_probes_each_provider():
    fake = FakeProviders(
        hf=lambda request: httpx.Response(200, json={"sequence": "Hello", "labels": ["helpful"], "scores": [0.9]}),
        gemini=lambda request: httpx.Response(401),
    )
    orchestrator = build(fake)

    results = await orchestrator.test_all_services()
    assert results["huggingface"]["success"] is True
    assert results["gemini"]["success"] is False
    assert results["gemini"]["error"].startswith("auth_invalid")
    assert orchestrator.provider_stats("huggingface").calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "capability, params",
    [
        (Capability.SUMMARIZE, {"max_length": "short"}),
        (Capability.SIMILARITY, {"sentences": 5}),
        (Capability.ANSWER, {"max_output_tokens": "lots"}),
    ],
)
async def test_unusable_params_degrade_instead_of_raising(capability, params):
    fake = FakeProviders(gemini=lambda request: gemini_reply("ok"))
    orchestrator = build(fake)

    result = await orchestrator.ask("hello there", capability, params=params)

    assert result.degraded is True
    assert result.raw["reason"] == "all_providers_exhausted"
    kinds = {f["kind"] for attempts in result.raw["failures"].values() for f in attempts}
    assert "bad_response" in kinds
