import pytest

from dropcheck_agent.config import AgentSettings


def test_from_env_reads_and_validates(monkeypatch) -> None:
    monkeypatch.setenv("DROPCHECK_MAX_CONCURRENT", "5")
    monkeypatch.setenv("DROPCHECK_BATCH_DEADLINE_S", "30")
    monkeypatch.setenv("DROPCHECK_CORS_ORIGINS", "https://a.test, https://b.test")

    settings = AgentSettings.from_env()

    assert settings.max_concurrent == 5
    assert settings.batch_deadline_s == 30.0
    assert settings.cors_origins == ["https://a.test", "https://b.test"]

    monkeypatch.setenv("DROPCHECK_MAX_CONCURRENT", "0")
    with pytest.raises(ValueError):
        AgentSettings.from_env()


def test_request_timeout_never_outlives_deadline() -> None:
    settings = AgentSettings(timeout_ms=20000)

    assert settings.for_deadline(None) is settings
    assert settings.for_deadline(5).timeout_ms == 5000
    assert settings.for_deadline(0.2).timeout_ms == 1000
    assert settings.for_deadline(60).timeout_ms == 20000
    assert settings.timeout_ms == 20000
