import pytest
from pydantic import ValidationError

from relay_ranker.config import (
    DEFAULT_CATALOG_URL,
    DEFAULT_FAILURE_SENTINEL_MS,
    MAX_PLAUSIBLE_RTT_MS,
    Settings,
    get_settings,
    penalty_dominates,
)


def test_settings_defaults_without_env(monkeypatch):
    for name in (
        "RELAY_CATALOG_URL",
        "PROBE_COUNT",
        "PROBE_MAX_CONCURRENCY",
        "RANKING_TOP_N",
        "RELAY_TYPE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()
    assert settings.catalog_url == DEFAULT_CATALOG_URL
    assert settings.relay_type == "wireguard"
    assert settings.probe_count == 4
    assert settings.failure_sentinel_ms == 99999
    assert settings.max_concurrency is None
    assert settings.top_n == 10
    assert settings.abort_on_invalid_address is False


def test_settings_from_env_parses_probe_options(monkeypatch):
    monkeypatch.setenv("PROBE_COUNT", "8")
    monkeypatch.setenv("PROBE_MAX_CONCURRENCY", "32")
    monkeypatch.setenv("PROBE_ABORT_ON_INVALID_ADDRESS", "yes")
    monkeypatch.setenv("RELAY_INCLUDE_INACTIVE", "true")
    monkeypatch.setenv("RANKING_TOP_N", "3")

    settings = Settings.from_env()
    assert settings.probe_count == 8
    assert settings.max_concurrency == 32
    assert settings.abort_on_invalid_address is True
    assert settings.include_inactive is True
    assert settings.top_n == 3


def test_malformed_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("PROBE_COUNT", "four")
    monkeypatch.setenv("PROBE_MAX_CONCURRENCY", "0")
    monkeypatch.setenv("PROBE_TIMEOUT_SECONDS", "-2")
    monkeypatch.setenv("RANKING_TOP_N", "-1")

    settings = Settings.from_env()
    assert settings.probe_count == 4
    assert settings.max_concurrency is None
    assert settings.probe_timeout_seconds == 1.0
    assert settings.top_n == 10


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("RELAY_TYPE", "openvpn")
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
    assert s1.relay_type == "openvpn"


def test_out_of_range_failure_sentinel_falls_back_to_default(monkeypatch):
    """
    A sentinel that a plausible reply could exceed is ignored, like any other
    malformed value, instead of failing the run later.
    """
    monkeypatch.setenv("PROBE_FAILURE_SENTINEL_MS", "5000")

    settings = Settings.from_env()
    assert settings.failure_sentinel_ms == DEFAULT_FAILURE_SENTINEL_MS


def test_large_failure_sentinel_from_env_is_kept(monkeypatch):
    monkeypatch.setenv("PROBE_FAILURE_SENTINEL_MS", "250000")

    assert Settings.from_env().failure_sentinel_ms == 250000


def test_ping_values_that_break_penalty_dominance_fall_back(monkeypatch):
    """
    100 probes with a 2 s timeout would let a relay with one failed probe
    rank ahead of a slow relay without failures, so the probe count is reset.
    """
    monkeypatch.setenv("PROBE_COUNT", "100")
    monkeypatch.setenv("PROBE_TIMEOUT_SECONDS", "2")

    settings = Settings.from_env()
    assert settings.probe_count == 4
    assert settings.probe_timeout_seconds == 2.0
    assert penalty_dominates(
        settings.failure_sentinel_ms, settings.probe_count, settings.max_rtt_ms
    )


def test_settings_reject_sentinel_below_plausible_rtt():
    with pytest.raises(ValidationError):
        Settings(failure_sentinel_ms=MAX_PLAUSIBLE_RTT_MS)


def test_settings_reject_combination_without_penalty_dominance():
    with pytest.raises(ValidationError):
        Settings(probe_count=100, probe_timeout_seconds=1.0)


def test_max_rtt_ms_follows_probe_timeout():
    assert Settings(probe_timeout_seconds=0.25).max_rtt_ms == 250
    assert Settings().max_rtt_ms == 1000
