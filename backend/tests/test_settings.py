from __future__ import annotations

from types import SimpleNamespace

from dctopo import settings as settings_mod
from dctopo import startup

AZURE_ENVS = ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "AZURE_SUBSCRIPTION_ID")


def _clear(monkeypatch):
    for name in AZURE_ENVS + ("AZURE_API_BASE", "TOPOLOGY_COLUMNS", "TOPOLOGY_CACHE_TTL", "AZURE_MAX_PAGES", "CORS_ALLOW_ORIGINS"):
        monkeypatch.delenv(name, raising=False)


def test_missing_azure_envs(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("AZURE_TENANT_ID", "tenant")

    built = settings_mod._build_settings()

    assert built.azure_configured is False
    assert built.azure_missing_envs == ["AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "AZURE_SUBSCRIPTION_ID"]


def test_fully_configured_with_defaults(monkeypatch):
    _clear(monkeypatch)
    for name in AZURE_ENVS:
        monkeypatch.setenv(name, "x")

    built = settings_mod._build_settings()

    assert built.azure_configured is True
    assert built.azure_api_base == "https://management.azure.com"
    assert built.azure_max_pages == 10
    assert built.topology_cache_ttl == 300
    assert built.topology_columns == 2


def test_invalid_and_low_values_fall_back(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("TOPOLOGY_COLUMNS", "0")
    monkeypatch.setenv("AZURE_MAX_PAGES", "lots")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a; http://b,,")

    built = settings_mod._build_settings()

    assert built.topology_columns == 1
    assert built.azure_max_pages == 10
    assert built.cors_allow_origins == ["http://a", "http://b"]


def test_collect_env_issues():
    cfg = SimpleNamespace(azure_missing_envs=["AZURE_CLIENT_SECRET"], azure_api_base="http://arm.local")

    issues = startup.collect_env_issues(cfg)

    assert issues == [
        "Environment variable 'AZURE_CLIENT_SECRET' is not set",
        "AZURE_API_BASE should use https (got 'http://arm.local')",
    ]


def test_startup_records_diagnostics(client):
    diagnostics = client.app.state.startup_diagnostics

    assert isinstance(diagnostics, startup.StartupDiagnostics)
