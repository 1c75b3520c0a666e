from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HistoryItem(BaseModel):
    sender: str = "user"
    message: str


class AskPayload(BaseModel):
    prompt: str = Field(min_length=1)
    capability: str = "answer"
    context: str = ""
    history: list[HistoryItem] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float | None = Field(default=None, gt=0)


class AskResponseModel(BaseModel):
    text: str
    confidence: float | None = None
    degraded: bool = False
    provider: str | None = None
    model: str | None = None
    capability: str | None = None
    raw: Any = None
