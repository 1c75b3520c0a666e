from __future__ import annotations

import asyncio
import json

from homehub_ai.apps.runtime_support import build_ai_runtime
from homehub_ai.cli import base_parser
from homehub_ai.core.inference.base import Capability
from homehub_ai.core.orchestrator.routing import route_capability
from homehub_ai.core.runtime.errors import ConfigurationError


async def _ask(args) -> int:
    runtime = build_ai_runtime(config_path=args.config)
    prompt = args.prompt
    capability = args.capability
    params: dict = {}
    if args.target_language:
        params["target_language"] = args.target_language
    if capability == "auto":
        decision = route_capability(prompt)
        capability = decision.capability.value
        prompt = prompt + decision.prompt_suffix
        params = {**decision.params, **params}

    result = await runtime.orchestrator.ask(prompt, capability, args.context or "", params=params, timeout_seconds=args.timeout)
    if args.json:
        print(json.dumps(result.as_dict(), default=str, indent=2))
    else:
        flag = " (degraded)" if result.degraded else ""
        confidence = f" confidence={result.confidence:.3f}" if result.confidence is not None else ""
        print(f"[{result.provider or '-'}:{result.model or '-'}]{confidence}{flag}")
        print(result.text)

    if args.stats:
        print(json.dumps(runtime.orchestrator.get_service_stats(), default=str, indent=2))
    return 0


def main() -> int:
    parser = base_parser("homehub-ai-ask", "Ask the HomeHub AI from the shell")
    parser.add_argument("prompt")
    parser.add_argument(
        "--capability",
        default="answer",
        choices=["auto", *[c.value for c in Capability]],
    )
    parser.add_argument("--context", default=None)
    parser.add_argument("--target-language", default=None, help="Translation target (es, fr, ru)")
    parser.add_argument("--timeout", type=float, default=None, help="Overall request timeout in seconds")
    parser.add_argument("--config", default=None, help="Config file path")
    parser.add_argument("--json", action="store_true")
    parser.add_argument("--stats", action="store_true")
    args = parser.parse_args()

    try:
        return asyncio.run(_ask(args))
    except ConfigurationError as exc:
        print(f"configuration-error: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
