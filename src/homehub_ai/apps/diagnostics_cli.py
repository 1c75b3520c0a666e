from __future__ import annotations

from homehub_ai.cli import base_parser
from homehub_ai.core.config.loader import load_app_config
from homehub_ai.core.inference.base import Capability
from homehub_ai.core.inference.registry import build_default_registry
from homehub_ai.core.providers.health import check_configured_providers


def main() -> int:
    parser = base_parser("homehub-ai-diag", "HomeHub AI diagnostics CLI")
    parser.add_argument("--config", default=None, help="Config file path")
    parser.add_argument("--validate-config", action="store_true")
    parser.add_argument("--check-providers", action="store_true")
    parser.add_argument("--skip-provider-tests", action="store_true")
    parser.add_argument("--list-models", action="store_true")
    args = parser.parse_args()

    did_work = False
    cfg = None

    if args.validate_config or args.check_providers or args.list_models:
        try:
            cfg = load_app_config(instance_path=args.config)
            if args.validate_config:
                did_work = True
                print(
                    f"config-valid instance={cfg.instance.name} env={cfg.environment} "
                    f"providers={','.join(cfg.providers.priority_order)}"
                )
        except Exception as exc:  # noqa: BLE001
            print(f"config-invalid error={exc}")
            return 1

    if args.check_providers:
        did_work = True
        results = check_configured_providers(cfg, skip_tests=args.skip_provider_tests)
        print("provider-checks:")
        for item in results.values():
            print(
                f"- {item.provider}: enabled={item.enabled} ok={item.ok} "
                f"latency_ms={item.latency_ms} error={item.error}"
            )

    if args.list_models:
        did_work = True
        registry = build_default_registry(gemini_model=cfg.providers.gemini.model)
        print("models:")
        for cap in Capability:
            specs = registry.specs_for(cap)
            if not specs:
                continue
            print(f"- {cap.value}: " + " > ".join(f"{s.provider}:{s.id}" for s in specs))

    if not did_work:
        parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
