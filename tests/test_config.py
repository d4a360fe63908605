"""Tests for runtime settings."""

from __future__ import annotations

import pytest

from metricchart.classifier import DEFAULT_DENY_LIST
from metricchart.config import Settings


class TestSettings:

    def test_defaults(self):
        s = Settings()
        assert s.provider_model == "gpt-4o-mini"
        assert s.max_iterations == 10
        assert s.temperature == 0.0
        assert s.palette_size == 5
        assert s.flat_object_deny_list == DEFAULT_DENY_LIST
        assert s.agent_enabled is False

    def test_agent_enabled_needs_key_or_url(self):
        assert Settings(api_key="sk-test").agent_enabled
        assert Settings(base_url="http://localhost:8000/v1").agent_enabled
        assert not Settings(api_key="sk-test", use_agent=False).agent_enabled

    @pytest.mark.parametrize("kwargs", [{"max_iterations": 0}, {"palette_size": 0}, {"palette_size": 6}])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            Settings(**kwargs)

    def test_deny_list_becomes_tuple(self):
        assert Settings(flat_object_deny_list=["a", "b"]).flat_object_deny_list == ("a", "b")

    def test_with_overrides_skips_none(self):
        s = Settings(provider_model="m1").with_overrides(provider_model=None, max_iterations=3)
        assert s.provider_model == "m1"
        assert s.max_iterations == 3


class TestFromEnv:

    def test_reads_variables(self):
        s = Settings.from_env({
            "METRICCHART_MODEL": "gpt-4o",
            "METRICCHART_BASE_URL": "http://proxy/v1",
            "METRICCHART_MAX_ITERATIONS": "4",
            "METRICCHART_API_KEY": "sk-mc",
            "OPENAI_API_KEY": "sk-openai",
        })
        assert s.provider_model == "gpt-4o"
        assert s.base_url == "http://proxy/v1"
        assert s.max_iterations == 4
        assert s.api_key == "sk-mc"

    def test_openai_key_fallback(self):
        assert Settings.from_env({"OPENAI_API_KEY": "sk-openai"}).api_key == "sk-openai"

    def test_empty_env(self):
        assert Settings.from_env({}) == Settings()

    def test_process_environment(self, monkeypatch):
        monkeypatch.setenv("METRICCHART_MODEL", "from-env")
        assert Settings.from_env().provider_model == "from-env"
