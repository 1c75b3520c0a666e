from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from homehub_ai.core.inference import parsers as p
from homehub_ai.core.inference.base import Capability, NormalizedResult

HUGGINGFACE = "huggingface"
GEMINI = "gemini"


def _always(params: dict[str, Any]) -> bool:
    _ = params
    return True


@dataclass(frozen=True, slots=True)
class ModelSpec:
    id: str
    provider: str
    capability: Capability
    builder: p.RequestBuilder
    parser: Callable[..., NormalizedResult]
    parser_takes_params: bool = False
    applies_to: Callable[[dict[str, Any]], bool] = _always
    description: str = ""

    def build_request(self, prompt: str, params: dict[str, Any]) -> p.RequestBody:
        return self.builder(prompt, params)

    def parse_response(self, raw: Any, params: dict[str, Any] | None = None) -> NormalizedResult:
        if self.parser_takes_params:
            return self.parser(raw, params or {})
        return self.parser(raw)

    def describe(self) -> dict[str, str]:
        return {
            "id": self.id,
            "provider": self.provider,
            "capability": self.capability.value,
            "description": self.description,
        }


class ModelRegistry:
    """Ordered (capability, provider) -> ModelSpec table.

    Row order is fallback priority. Lookups never fail: an unknown capability
    simply has no rows.
    """

    def __init__(self, specs: Iterable[ModelSpec] = ()) -> None:
        self._specs: list[ModelSpec] = []
        for spec in specs:
            self.add(spec)

    def add(self, spec: ModelSpec) -> None:
        if not isinstance(spec.capability, Capability):
            raise TypeError(f"model {spec.id} declares an invalid capability: {spec.capability!r}")
        key = (spec.provider, spec.capability, spec.id)
        if any((s.provider, s.capability, s.id) == key for s in self._specs):
            raise ValueError(f"duplicate model spec: {spec.provider}/{spec.capability.value}/{spec.id}")
        self._specs.append(spec)

    def specs_for(self, capability: Capability | str, provider: str | None = None) -> list[ModelSpec]:
        try:
            cap = Capability.parse(capability)
        except ValueError:
            return []
        return [s for s in self._specs if s.capability is cap and (provider is None or s.provider == provider)]

    def providers(self) -> list[str]:
        seen: list[str] = []
        for spec in self._specs:
            if spec.provider not in seen:
                seen.append(spec.provider)
        return seen

    def capabilities(self, provider: str | None = None) -> list[Capability]:
        return [c for c in Capability if self.specs_for(c, provider)]

    def __len__(self) -> int:
        return len(self._specs)


def _target_language(language: str) -> Callable[[dict[str, Any]], bool]:
    def applies(params: dict[str, Any]) -> bool:
        return str(params.get("target_language", "es")).lower() == language

    return applies


def huggingface_specs() -> list[ModelSpec]:
    hf = HUGGINGFACE
    mnli = "facebook/bart-large-mnli"
    distilbart = "sshleifer/distilbart-cnn-12-6"
    squad = "deepset/roberta-base-squad2"
    minilm = "sentence-transformers/all-MiniLM-L6-v2"
    finance = "FinLang/finance-embeddings-investopedia"
    rows = [
        ModelSpec(mnli, hf, Capability.CLASSIFY, p.zero_shot_builder(p.DEFAULT_CANDIDATE_LABELS), p.parse_zero_shot,
                  description="zero-shot classification"),
        ModelSpec(distilbart, hf, Capability.SUMMARIZE, p.build_summarization, p.parse_summarization,
                  description="abstractive summarization"),
        ModelSpec(mnli, hf, Capability.ANSWER, p.zero_shot_builder(p.DEFAULT_CANDIDATE_LABELS), p.parse_zero_shot_answer,
                  description="zero-shot analysis of the message"),
        ModelSpec(squad, hf, Capability.ANSWER, p.build_question_answering, p.parse_question_answering,
                  description="extractive question answering over the supplied context"),
        ModelSpec(distilbart, hf, Capability.ANSWER, p.build_summarization, p.parse_summarization,
                  description="summary of the message"),
        ModelSpec("nlptown/bert-base-multilingual-uncased-sentiment", hf, Capability.SENTIMENT, p.build_inputs,
                  p.parse_star_sentiment, description="1-5 star sentiment"),
        ModelSpec(mnli, hf, Capability.SENTIMENT, p.zero_shot_builder(p.SENTIMENT_LABELS), p.parse_zero_shot_sentiment,
                  description="zero-shot sentiment"),
        ModelSpec(finance, hf, Capability.EMBEDDING, p.similarity_builder(p.FINANCE_COMPARISON_SENTENCES),
                  p.labelled_similarity_parser(p.FINANCE_COMPARISON_SENTENCES), parser_takes_params=True,
                  description="finance embedding similarity against comparison texts"),
        ModelSpec(minilm, hf, Capability.SIMILARITY, p.similarity_builder(p.DEFAULT_COMPARISON_SENTENCES), p.parse_similarity,
                  description="sentence similarity"),
        ModelSpec(finance, hf, Capability.SIMILARITY, p.similarity_builder(p.DEFAULT_COMPARISON_SENTENCES), p.parse_similarity,
                  description="finance sentence similarity"),
        ModelSpec("dslim/bert-base-NER", hf, Capability.NAMED_ENTITIES, p.build_named_entities, p.parse_named_entities,
                  description="named entity recognition"),
        ModelSpec("prithivida/Splade_PP_en_v2", hf, Capability.FILL_MASK, p.build_fill_mask, p.parse_fill_mask,
                  description="fill-mask completion"),
    ]
    for language in ("es", "fr", "ru"):
        rows.append(
            ModelSpec(f"Helsinki-NLP/opus-mt-en-{language}", hf, Capability.TRANSLATE, p.build_inputs, p.parse_translation,
                      applies_to=_target_language(language), description=f"English to {language} translation")
        )
    return rows


def gemini_specs(model: str = "gemini-1.5-flash") -> list[ModelSpec]:
    return [
        ModelSpec(model, GEMINI, Capability.ANSWER, p.build_gemini_chat, p.parse_gemini_text,
                  description="chat completion with context and history"),
        ModelSpec(model, GEMINI, Capability.SENTIMENT, p.build_gemini_sentiment, p.parse_gemini_sentiment,
                  description="prompted sentiment"),
        ModelSpec(model, GEMINI, Capability.CLASSIFY, p.build_gemini_classify, p.gemini_label_parser(p.DEFAULT_CANDIDATE_LABELS),
                  parser_takes_params=True, description="prompted classification"),
        ModelSpec(model, GEMINI, Capability.SUMMARIZE, p.build_gemini_summary, p.parse_gemini_text,
                  description="prompted summary"),
        ModelSpec(model, GEMINI, Capability.TRANSLATE, p.build_gemini_translate, p.parse_gemini_text,
                  description="prompted translation"),
    ]


def build_default_registry(gemini_model: str | None = None) -> ModelRegistry:
    return ModelRegistry([*huggingface_specs(), *gemini_specs(gemini_model or "gemini-1.5-flash")])
