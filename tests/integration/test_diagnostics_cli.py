from __future__ import annotations

from homehub_ai.apps import diagnostics_cli
from homehub_ai.core.config.schema import AppConfig, ProviderSettings, ProvidersConfig
from homehub_ai.core.providers.health import ProviderCheckResult


def _cfg() -> AppConfig:
    return AppConfig(providers=ProvidersConfig(gemini=ProviderSettings(enabled=False, model="gemini-1.5-pro")))


def test_diag_validate_config_output(monkeypatch, capsys):
    monkeypatch.setattr("homehub_ai.apps.diagnostics_cli.load_app_config", lambda instance_path=None: _cfg())
    monkeypatch.setattr("sys.argv", ["homehub-ai-diag", "--validate-config"])
    rc = diagnostics_cli.main()
    out = capsys.readouterr().out
    assert rc == 0
    assert "config-valid" in out
    assert "providers=huggingface,gemini" in out


def test_diag_invalid_config_returns_error(monkeypatch, capsys):
    def boom(instance_path=None):
        raise ValueError("Invalid HomeHub AI configuration")

    monkeypatch.setattr("homehub_ai.apps.diagnostics_cli.load_app_config", boom)
    monkeypatch.setattr("sys.argv", ["homehub-ai-diag", "--validate-config"])
    rc = diagnostics_cli.main()
    assert rc == 1
    assert "config-invalid" in capsys.readouterr().out


def test_diag_check_providers_output(monkeypatch, capsys):
    seen = {}

    def fake_check(cfg, skip_tests=False):
        seen["skip"] = skip_tests
        return {
            "huggingface": ProviderCheckResult(provider="huggingface", enabled=True, ok=True, latency_ms=12.5),
            "gemini": ProviderCheckResult(provider="gemini", enabled=False, ok=False, error="disabled"),
        }

    monkeypatch.setattr("homehub_ai.apps.diagnostics_cli.load_app_config", lambda instance_path=None: _cfg())
    monkeypatch.setattr("homehub_ai.apps.diagnostics_cli.check_configured_providers", fake_check)
    monkeypatch.setattr("sys.argv", ["homehub-ai-diag", "--check-providers", "--skip-provider-tests"])
    rc = diagnostics_cli.main()
    out = capsys.readouterr().out
    assert rc == 0
    assert seen["skip"] is True
    assert "provider-checks" in out
    assert "- huggingface: enabled=True ok=True latency_ms=12.5" in out
    assert "error=disabled" in out


def test_diag_list_models_uses_configured_gemini_model(monkeypatch, capsys):
    monkeypatch.setattr("homehub_ai.apps.diagnostics_cli.load_app_config", lambda instance_path=None: _cfg())
    monkeypatch.setattr("sys.argv", ["homehub-ai-diag", "--list-models"])
    rc = diagnostics_cli.main()
    out = capsys.readouterr().out
    assert rc == 0
    assert "- sentiment: huggingface:nlptown/bert-base-multilingual-uncased-sentiment" in out
    assert "gemini:gemini-1.5-pro" in out
