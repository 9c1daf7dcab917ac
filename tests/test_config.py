import pytest

from lighter_oi_dashboard.core.config import Settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("LLP_PORT", raising=False)

    settings = Settings(_env_file=None)

    assert settings.port == 3000
    assert settings.account_index == 281474976710654
    assert settings.rest_timeout_seconds == 15.0
    assert settings.ping_interval_seconds == 15.0
    assert settings.reconnect_seconds == 2.0
    assert settings.sample_capacity == 6
    assert settings.upstream_host == "mainnet.zklighter.elliot.ai"


def test_settings_port_reads_plain_port_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LLP_PORT", raising=False)
    monkeypatch.setenv("PORT", "8080")

    assert Settings(_env_file=None).port == 8080


def test_settings_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLP_PORT", "9000")
    monkeypatch.setenv("LLP_RECONNECT_SECONDS", "5")

    settings = Settings(_env_file=None)

    assert settings.port == 9000
    assert settings.reconnect_seconds == 5.0
