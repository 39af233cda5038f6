"""Tests for environment-driven configuration."""

from __future__ import annotations

import os

from config import ApiSettings, CacheSettings, CollectionPollSettings, ResearchPollSettings, Settings, SummaryPollSettings


def test_default_poll_budgets():
    collection = CollectionPollSettings().to_options()
    summary = SummaryPollSettings().to_options()
    research = ResearchPollSettings()

    assert (collection.interval_s, collection.max_attempts, collection.initial_delay_s) == (2.0, 60, 3.0)
    assert (summary.interval_s, summary.max_attempts) == (5.0, 36)
    assert summary.max_wait_s == 175.0
    assert (research.interval_s, research.max_attempts, research.compute_units) == (60.0, 10, 5)
    assert CacheSettings().ttl_s == 24 * 3600


def test_env_prefixes_override_defaults(monkeypatch):
    monkeypatch.setenv("UCIE_SUMMARY_INTERVAL_S", "2.5")
    monkeypatch.setenv("UCIE_SUMMARY_MAX_ATTEMPTS", "12")
    monkeypatch.setenv("UCIE_API_BASE_URL", "https://ucie.example")
    monkeypatch.setenv("UCIE_CACHE_MAX_SIZE", "5")

    options = SummaryPollSettings().to_options()

    assert options.interval_s == 2.5
    assert options.max_attempts == 12
    assert ApiSettings().base_url == "https://ucie.example"
    assert CacheSettings().max_size == 5


def test_load_from_env_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("UCIE_RESEARCH_COMPUTE_UNITS=3\n", encoding="utf-8")
    monkeypatch.delenv("UCIE_RESEARCH_COMPUTE_UNITS", raising=False)

    try:
        settings = Settings.load_from_env_file(env_file)
    finally:
        os.environ.pop("UCIE_RESEARCH_COMPUTE_UNITS", None)

    assert settings.research.compute_units == 3
    assert settings.collection.max_attempts == 60
