from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Capability(str, Enum):
    CLASSIFY = "classify"
    SUMMARIZE = "summarize"
    ANSWER = "answer"
    SENTIMENT = "sentiment"
    TRANSLATE = "translate"
    NAMED_ENTITIES = "namedEntities"
    SIMILARITY = "similarity"
    EMBEDDING = "embedding"
    FILL_MASK = "fillMask"

    @classmethod
    def parse(cls, value: str | Capability) -> Capability:
        if isinstance(value, Capability):
            return value
        raw = str(value).strip()
        for item in cls:
            if raw == item.value or raw.lower() == item.value.lower() or raw.upper() == item.name:
                return item
        raise ValueError(f"unknown capability: {value}")


@dataclass(frozen=True, slots=True)
class NormalizedResult:
    """Single result shape produced by every model parser.

    Model-family specific structure (label scores, entity spans, similarity
    vectors) travels in ``raw``; ``text`` is always renderable.
    """

    text: str
    confidence: float | None = None
    raw: Any = None
    degraded: bool = False
    provider: str | None = None
    model: str | None = None
    capability: str | None = None

    def with_source(self, *, provider: str, model: str, capability: Capability) -> NormalizedResult:
        return NormalizedResult(
            text=self.text,
            confidence=self.confidence,
            raw=self.raw,
            degraded=self.degraded,
            provider=provider,
            model=model,
            capability=capability.value,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "raw": self.raw,
            "degraded": self.degraded,
            "provider": self.provider,
            "model": self.model,
            "capability": self.capability,
        }


@dataclass(slots=True)
class ChatTurn:
    sender: str
    message: str

    @classmethod
    def coerce(cls, item: ChatTurn | dict[str, Any]) -> ChatTurn:
        if isinstance(item, ChatTurn):
            return item
        return cls(sender=str(item.get("sender", "user")), message=str(item.get("message", "")))


@dataclass(slots=True)
class AskRequest:
    prompt: str
    capability: Capability
    context: str = ""
    history: list[ChatTurn] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)

    def model_params(self) -> dict[str, Any]:
        # Builders see context and history as ordinary params.
        merged = dict(self.params)
        if self.context:
            merged.setdefault("context", self.context)
        if self.history:
            merged.setdefault("history", [{"sender": t.sender, "message": t.message} for t in self.history])
        return merged
