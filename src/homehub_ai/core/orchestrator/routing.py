from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from homehub_ai.core.inference.base import Capability


@dataclass(slots=True)
class RouteDecision:
    capability: Capability
    params: dict[str, Any] = field(default_factory=dict)
    prompt_suffix: str = ""
    reason: str = "default"


_INVENTORY_WORDS = ("inventory", "stock", "items")
_SPENDING_WORDS = ("expense", "spending", "budget")
_RECIPE_WORDS = ("recipe", "cook", "meal")

INVENTORY_LABELS = ["inventory status", "stock levels", "expiring items", "low stock", "well stocked"]
SPENDING_LABELS = ["expense categorization", "budget analysis", "spending tracking", "financial planning"]


def route_capability(message: str) -> RouteDecision:
    """Pick a capability for free-form chat messages from home-management keywords."""
    lowered = message.lower()
    if any(w in lowered for w in _INVENTORY_WORDS):
        return RouteDecision(Capability.EMBEDDING, {"sentences": list(INVENTORY_LABELS)}, reason="inventory")
    if any(w in lowered for w in _SPENDING_WORDS):
        return RouteDecision(Capability.EMBEDDING, {"sentences": list(SPENDING_LABELS)}, reason="spending")
    if any(w in lowered for w in _RECIPE_WORDS):
        return RouteDecision(Capability.FILL_MASK, prompt_suffix=" [MASK] recipe suggestions", reason="recipe")
    return RouteDecision(Capability.ANSWER)
