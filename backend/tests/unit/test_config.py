"""
Unit tests for environment-driven Settings.
"""

from __future__ import annotations

import pytest

from core.config import Settings, get_settings


def test_defaults() -> None:
    s = Settings()
    assert s.decisioning_module == "personalization.edge_client"
    assert s.delayed_seconds == 3.0
    assert s.desktop_min_width == 900
    assert s.report_proposition_display is False


def test_from_env_reads_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASTREAM_ID", "ds-1")
    monkeypatch.setenv("ORG_ID", "ORG@AdobeOrg")
    monkeypatch.setenv("CODE_BASE_PATH", "/code/")
    monkeypatch.setenv("DELAYED_SECONDS", "0.5")
    monkeypatch.setenv("DESKTOP_MIN_WIDTH", "1024")
    monkeypatch.setenv("REPORT_PROPOSITION_DISPLAY", "yes")
    s = Settings.from_env()
    assert s.datastream_id == "ds-1"
    assert s.code_base_path == "/code"
    assert s.delayed_seconds == 0.5
    assert s.desktop_min_width == 1024
    assert s.report_proposition_display is True


@pytest.mark.parametrize("raw", ["soon", "", "   "])
def test_malformed_numbers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("DELAYED_SECONDS", raw)
    monkeypatch.setenv("DESKTOP_MIN_WIDTH", raw)
    s = Settings.from_env()
    assert s.delayed_seconds == 3.0
    assert s.desktop_min_width == 900


def test_negative_numbers_clamp_to_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDGE_TIMEOUT_SECONDS", "-2")
    assert Settings.from_env().edge_timeout_seconds == 0.0


def test_decisioning_config_bundle() -> None:
    s = Settings(datastream_id="ds-1", org_id="ORG", edge_domain="edge.example.com")
    assert s.decisioning_config() == {
        "datastreamId": "ds-1",
        "orgId": "ORG",
        "edgeDomain": "edge.example.com",
        "edgeBasePath": "ee",
        "timeoutSeconds": 10.0,
    }


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATASTREAM_ID", "first")
    first = get_settings()
    monkeypatch.setenv("DATASTREAM_ID", "second")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().datastream_id == "second"
