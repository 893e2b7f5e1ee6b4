"""Tests for poa.config — environment settings."""

from poa.config import Settings


def test_defaults(monkeypatch):
    for name in ("POA_PORT", "POA_STORE", "POA_API_KEY", "ALLOWED_ORIGINS", "RATELIMIT_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    s = Settings.from_env()
    assert s.port == 3001
    assert s.store == "memory"
    assert s.api_key is None
    assert s.allowed_origins == []
    assert s.ratelimit_enabled is True
    assert s.pass_threshold == 60


def test_from_env(monkeypatch):
    monkeypatch.setenv("POA_PORT", "8080")
    monkeypatch.setenv("POA_STORE", "/var/lib/poa.db")
    monkeypatch.setenv("POA_API_KEY", "k")
    monkeypatch.setenv("POA_PASS_THRESHOLD", "70")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.test, https://b.test,")
    monkeypatch.setenv("RATELIMIT_ENABLED", "False")
    monkeypatch.setenv("POA_PROOF_CACHE_SIZE", "50")
    s = Settings.from_env()
    assert s.port == 8080
    assert s.store == "/var/lib/poa.db"
    assert s.api_key == "k"
    assert s.pass_threshold == 70
    assert s.allowed_origins == ["https://a.test", "https://b.test"]
    assert s.ratelimit_enabled is False
    assert s.proof_cache_size == 50
