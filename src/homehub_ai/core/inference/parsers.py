"""Request builders and response parsers for the remote model families.

Builders take ``(prompt, params)`` and return the JSON body to POST. Parsers
take the decoded JSON payload and return a :class:`NormalizedResult`, raising
:class:`ParseError` when the payload does not have the family's shape.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from homehub_ai.core.inference.base import NormalizedResult
from homehub_ai.core.runtime.errors import ParseError

RequestBody = dict[str, Any]
RequestBuilder = Callable[[str, dict[str, Any]], RequestBody]
ResponseParser = Callable[[Any], NormalizedResult]

DEFAULT_CANDIDATE_LABELS = ["positive", "negative", "neutral", "informative", "helpful"]
SENTIMENT_LABELS = ["positive", "negative", "neutral"]
DEFAULT_QA_CONTEXT = "This is a general context for the question."
DEFAULT_COMPARISON_SENTENCES = ["This is a test sentence", "This is another sentence"]
FINANCE_COMPARISON_SENTENCES = [
    "This is a financial investment",
    "This is a personal expense",
    "This is a business transaction",
]
MASK_TOKEN = "[MASK]"
ASSISTANT_PREAMBLE = "You are a helpful Home Hub AI assistant."


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ParseError(message)


def _score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"score is not numeric: {value!r}") from exc


def _first_row(data: Any) -> Any:
    # Pipelines return either [row] or [[row, ...]] depending on the model card.
    _require(isinstance(data, list) and len(data) > 0, "expected a non-empty list")
    return data[0]


# ---------------------------------------------------------------------------
# Hugging Face builders


def build_inputs(prompt: str, params: dict[str, Any]) -> RequestBody:
    _ = params
    return {"inputs": prompt}


def zero_shot_builder(default_labels: list[str]) -> RequestBuilder:
    def build(prompt: str, params: dict[str, Any]) -> RequestBody:
        labels = list(params.get("candidate_labels") or default_labels)
        return {"inputs": prompt, "parameters": {"candidate_labels": labels}}

    return build


def build_summarization(prompt: str, params: dict[str, Any]) -> RequestBody:
    body: RequestBody = {"inputs": prompt}
    max_length = params.get("max_length")
    if max_length:
        body["parameters"] = {"max_length": int(max_length), "min_length": min(30, int(max_length))}
    return body


def build_question_answering(prompt: str, params: dict[str, Any]) -> RequestBody:
    context = str(params.get("context") or DEFAULT_QA_CONTEXT)
    return {"inputs": {"question": prompt, "context": context}}


def build_named_entities(prompt: str, params: dict[str, Any]) -> RequestBody:
    strategy = params.get("aggregation_strategy", "simple")
    return {"inputs": prompt, "parameters": {"aggregation_strategy": strategy}}


def similarity_builder(default_sentences: list[str]) -> RequestBuilder:
    def build(prompt: str, params: dict[str, Any]) -> RequestBody:
        sentences = list(params.get("sentences") or default_sentences)
        return {"inputs": {"source_sentence": prompt, "sentences": sentences}}

    return build


def build_fill_mask(prompt: str, params: dict[str, Any]) -> RequestBody:
    _ = params
    text = prompt if MASK_TOKEN in prompt else f"{prompt} {MASK_TOKEN}"
    return {"inputs": text}


# ---------------------------------------------------------------------------
# Hugging Face parsers


def _zero_shot_pairs(data: Any) -> list[tuple[str, float]]:
    if isinstance(data, dict):
        labels = data.get("labels")
        scores = data.get("scores")
        _require(isinstance(labels, list) and isinstance(scores, list), "zero-shot payload missing labels/scores")
        _require(len(labels) > 0 and len(labels) == len(scores), "zero-shot labels/scores mismatch")
        pairs = [(str(label), _score(score)) for label, score in zip(labels, scores)]
    else:
        row = _first_row(data)
        rows = row if isinstance(row, list) else data
        _require(all(isinstance(r, dict) and "label" in r for r in rows), "zero-shot rows missing label")
        pairs = [(str(r["label"]), _score(r.get("score"))) for r in rows]
    pairs.sort(key=lambda p: p[1], reverse=True)
    return pairs


def parse_zero_shot(data: Any) -> NormalizedResult:
    pairs = _zero_shot_pairs(data)
    label, score = pairs[0]
    return NormalizedResult(text=label, confidence=score, raw={"labels": [p[0] for p in pairs], "scores": [p[1] for p in pairs]})


def parse_zero_shot_answer(data: Any) -> NormalizedResult:
    pairs = _zero_shot_pairs(data)
    label, score = pairs[0]
    sequence = data.get("sequence", "") if isinstance(data, dict) else ""
    text = f'Analysis: "{sequence}" is classified as "{label}" ({score * 100:.1f}% confidence).' if sequence else (
        f'Analysis: classified as "{label}" ({score * 100:.1f}% confidence).'
    )
    return NormalizedResult(text=text, confidence=score, raw={"labels": [p[0] for p in pairs], "scores": [p[1] for p in pairs]})


def parse_summarization(data: Any) -> NormalizedResult:
    row = _first_row(data)
    _require(isinstance(row, dict) and isinstance(row.get("summary_text"), str), "summary_text missing")
    return NormalizedResult(text=row["summary_text"].strip(), raw=data)


def parse_question_answering(data: Any) -> NormalizedResult:
    if isinstance(data, list):
        data = _first_row(data)
    _require(isinstance(data, dict) and isinstance(data.get("answer"), str), "answer missing")
    answer = data["answer"].strip()
    _require(bool(answer), "empty answer")
    score = data.get("score")
    return NormalizedResult(
        text=answer,
        confidence=_score(score) if score is not None else None,
        raw={"start": data.get("start"), "end": data.get("end"), "score": score},
    )


def _stars_to_sentiment(label: str) -> str | None:
    head = label.strip().split(" ")[0]
    if not head.isdigit():
        return None
    stars = int(head)
    if stars <= 2:
        return "negative"
    if stars == 3:
        return "neutral"
    return "positive"


def parse_star_sentiment(data: Any) -> NormalizedResult:
    row = _first_row(data)
    rows = row if isinstance(row, list) else data
    _require(len(rows) > 0 and all(isinstance(r, dict) and "label" in r for r in rows), "sentiment rows missing label")
    label = str(max(rows, key=lambda r: _score(r.get("score")))["label"])
    # Star buckets are summed into the three-way sentiment before picking the winner.
    totals: dict[str, float] = {}
    for r in rows:
        bucket = _stars_to_sentiment(str(r["label"])) or str(r["label"]).lower()
        _require(bucket in SENTIMENT_LABELS, f"unexpected sentiment label: {r['label']}")
        totals[bucket] = totals.get(bucket, 0.0) + _score(r.get("score"))
    sentiment = max(totals, key=lambda k: totals[k])
    return NormalizedResult(
        text=sentiment,
        confidence=round(totals[sentiment], 6),
        raw={"label": label, "scores": {str(r["label"]): _score(r.get("score")) for r in rows}, "buckets": totals},
    )


def parse_zero_shot_sentiment(data: Any) -> NormalizedResult:
    pairs = _zero_shot_pairs(data)
    label, score = pairs[0]
    _require(label in SENTIMENT_LABELS, f"unexpected sentiment label: {label}")
    return NormalizedResult(text=label, confidence=score, raw={"labels": [p[0] for p in pairs], "scores": [p[1] for p in pairs]})


def parse_translation(data: Any) -> NormalizedResult:
    row = _first_row(data)
    _require(isinstance(row, dict) and isinstance(row.get("translation_text"), str), "translation_text missing")
    return NormalizedResult(text=row["translation_text"].strip(), raw=data)


def parse_named_entities(data: Any) -> NormalizedResult:
    _require(isinstance(data, list), "expected an entity list")
    entities = []
    for item in data:
        _require(isinstance(item, dict) and "word" in item, "entity missing word")
        entities.append(
            {
                "word": str(item["word"]),
                "entity_group": str(item.get("entity_group") or item.get("entity") or ""),
                "score": _score(item.get("score", 0.0)),
                "start": item.get("start"),
                "end": item.get("end"),
            }
        )
    text = ", ".join(f"{e['word']} ({e['entity_group']})" for e in entities)
    confidence = min((e["score"] for e in entities), default=None)
    return NormalizedResult(text=text, confidence=confidence, raw={"entities": entities})


def parse_similarity(data: Any) -> NormalizedResult:
    _require(isinstance(data, list) and len(data) > 0, "expected a list of similarity scores")
    scores = [_score(s) for s in data]
    average = sum(scores) / len(scores)
    return NormalizedResult(text=f"Average similarity score: {average * 100:.1f}%", confidence=average, raw={"scores": scores})


def labelled_similarity_parser(default_sentences: list[str]) -> Callable[[Any, dict[str, Any]], NormalizedResult]:
    def parse(data: Any, params: dict[str, Any]) -> NormalizedResult:
        _require(isinstance(data, list) and len(data) > 0, "expected a list of similarity scores")
        sentences = list(params.get("sentences") or default_sentences)
        _require(len(sentences) == len(data), "similarity score count does not match comparison texts")
        scores = [_score(s) for s in data]
        best = max(range(len(scores)), key=lambda i: scores[i])
        return NormalizedResult(
            text=sentences[best],
            confidence=scores[best],
            raw={"matches": [{"text": s, "score": v} for s, v in zip(sentences, scores)]},
        )

    return parse


def parse_fill_mask(data: Any) -> NormalizedResult:
    row = _first_row(data)
    rows = row if isinstance(row, list) else data
    _require(all(isinstance(r, dict) and "sequence" in r for r in rows), "fill-mask rows missing sequence")
    best = max(rows, key=lambda r: _score(r.get("score")))
    return NormalizedResult(
        text=str(best["sequence"]).strip(),
        confidence=_score(best.get("score")),
        raw={"candidates": [{"token": r.get("token_str"), "score": _score(r.get("score"))} for r in rows]},
    )


# ---------------------------------------------------------------------------
# Gemini


def _history_lines(params: dict[str, Any]) -> list[str]:
    lines: list[str] = []
    for turn in params.get("history") or []:
        sender = str(turn.get("sender", "user"))
        speaker = "User" if sender == "user" else "AI"
        lines.append(f"{speaker}: {turn.get('message', '')}")
    return lines


def gemini_body(text: str, max_output_tokens: int) -> RequestBody:
    return {
        "contents": [{"parts": [{"text": text}]}],
        "generationConfig": {
            "maxOutputTokens": max_output_tokens,
            "temperature": 0.7,
            "topP": 0.8,
            "topK": 40,
        },
    }


def build_gemini_chat(prompt: str, params: dict[str, Any]) -> RequestBody:
    parts = [ASSISTANT_PREAMBLE]
    context = params.get("context")
    if context:
        parts.append(f"Context: {context}\n")
    history = _history_lines(params)
    if history:
        parts.append("Previous conversation:\n" + "\n".join(history) + "\n")
    parts.append(f"User: {prompt}\n\nAI:")
    return gemini_body(" ".join(parts), int(params.get("max_output_tokens", 800)))


def build_gemini_sentiment(prompt: str, params: dict[str, Any]) -> RequestBody:
    _ = params
    text = f'Analyze the sentiment of this text: "{prompt}". Respond with only: POSITIVE, NEGATIVE, or NEUTRAL.'
    return gemini_body(text, 50)


def build_gemini_classify(prompt: str, params: dict[str, Any]) -> RequestBody:
    labels = list(params.get("candidate_labels") or DEFAULT_CANDIDATE_LABELS)
    text = (
        f'Classify this text: "{prompt}" into one of these categories: {", ".join(labels)}. '
        "Respond with only the category name."
    )
    return gemini_body(text, 100)


def build_gemini_summary(prompt: str, params: dict[str, Any]) -> RequestBody:
    max_length = int(params.get("max_length", 200))
    return gemini_body(f'Summarize this text in under {max_length} characters: "{prompt}"', max_length)


def build_gemini_translate(prompt: str, params: dict[str, Any]) -> RequestBody:
    language = str(params.get("target_language", "es"))
    text = f'Translate this English text to the language with ISO code "{language}". Respond with only the translation: "{prompt}"'
    return gemini_body(text, 400)


def _gemini_text(data: Any) -> str:
    _require(isinstance(data, dict), "expected a JSON object")
    candidates = data.get("candidates")
    _require(isinstance(candidates, list) and len(candidates) > 0, "no candidates in response")
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    _require(len(parts) > 0 and isinstance(parts[0].get("text"), str), "candidate has no text part")
    text = parts[0]["text"].strip()
    _require(bool(text), "empty candidate text")
    return text


def parse_gemini_text(data: Any) -> NormalizedResult:
    text = _gemini_text(data)
    return NormalizedResult(text=text, raw={"finish_reason": data["candidates"][0].get("finishReason")})


def parse_gemini_sentiment(data: Any) -> NormalizedResult:
    text = _gemini_text(data).strip(" .\"'").lower()
    for label in SENTIMENT_LABELS:
        if text.startswith(label):
            return NormalizedResult(text=label, confidence=None, raw={"answer": text})
    raise ParseError(f"unexpected sentiment answer: {text[:40]}")


def gemini_label_parser(default_labels: list[str]) -> Callable[[Any, dict[str, Any]], NormalizedResult]:
    def parse(data: Any, params: dict[str, Any]) -> NormalizedResult:
        labels = list(params.get("candidate_labels") or default_labels)
        answer = _gemini_text(data).strip(" .\"'")
        for label in labels:
            if answer.lower() == label.lower():
                return NormalizedResult(text=label, raw={"answer": answer})
        for label in labels:
            if label.lower() in answer.lower():
                return NormalizedResult(text=label, raw={"answer": answer})
        raise ParseError(f"answer is not one of the candidate labels: {answer[:40]}")

    return parse
