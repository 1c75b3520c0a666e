from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

import httpx


class ProviderErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    MODEL_LOADING = "model_loading"
    AUTH_INVALID = "auth_invalid"
    BAD_RESPONSE = "bad_response"
    NETWORK_ERROR = "network_error"

    @property
    def fatal_for_provider(self) -> bool:
        return self is ProviderErrorKind.AUTH_INVALID


class ProviderError(Exception):
    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str = "",
        *,
        provider: str | None = None,
        model: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.provider = provider
        self.model = model
        self.http_status = http_status


class ParseError(ValueError):
    """Raised by model parsers when a payload does not have the expected shape."""


@dataclass(slots=True)
class ModelFailure:
    model: str
    kind: ProviderErrorKind
    message: str = ""


class ExhaustedError(Exception):
    def __init__(self, provider: str, capability: str, failures: list[ModelFailure]) -> None:
        self.provider = provider
        self.capability = capability
        self.failures = list(failures)
        if failures:
            detail = ", ".join(f"{f.model}:{f.kind.value}" for f in failures)
        else:
            detail = "no models registered"
        super().__init__(f"{provider} exhausted for {capability}: {detail}")

    @property
    def kinds(self) -> list[ProviderErrorKind]:
        return [f.kind for f in self.failures]

    @property
    def auth_invalid(self) -> bool:
        return ProviderErrorKind.AUTH_INVALID in self.kinds


class ConfigurationError(RuntimeError):
    """No inference provider is usable; the system cannot serve any request."""


def _compact_message(message: str, max_len: int = 220) -> str:
    msg = message.lower()
    msg = re.sub(r"\s+", " ", msg)
    return msg.strip()[:max_len]


def classify_http_status(status: int) -> ProviderErrorKind | None:
    if status < 400:
        return None
    if status in {401, 403}:
        return ProviderErrorKind.AUTH_INVALID
    if status == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status == 503:
        return ProviderErrorKind.MODEL_LOADING
    if status >= 500 or status == 408:
        return ProviderErrorKind.NETWORK_ERROR
    return ProviderErrorKind.BAD_RESPONSE


def classify_transport_error(exc: Exception) -> ProviderErrorKind:
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError, httpx.InvalidURL)):
        return ProviderErrorKind.NETWORK_ERROR
    if isinstance(exc, (ValueError, KeyError, IndexError, TypeError)):
        return ProviderErrorKind.BAD_RESPONSE
    return ProviderErrorKind.NETWORK_ERROR


def compact_error_summary(exc: Exception, max_len: int = 220) -> str:
    return f"{exc.__class__.__name__}: {_compact_message(str(exc), max_len=max_len)}"
