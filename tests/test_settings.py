from __future__ import annotations

import pytest

from task_cache.settings import get_settings

ENV_VARS = (
    "TASK_CACHE_BATCH_WINDOW_MS",
    "TASK_CACHE_TEMP_ID_PREFIX",
    "TASK_CACHE_REQUEST_TIMEOUT",
    "TASK_CACHE_API_URL",
    "CORS_ALLOW_ORIGINS",
    "LOG_LEVEL",
    "LOG_DIR",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    def test_defaults(self, clean_env):
        s = get_settings()
        assert s.batch_window_ms == 500
        assert s.batch_window == 0.5
        assert s.temp_id_prefix == "temp-"
        assert s.request_timeout == 10.0
        assert s.api_url == "http://localhost:8000"
        assert s.cors_allow_origins == ["*"]
        assert s.log_level == "INFO"
        assert s.log_dir is None


class TestOverrides:
    def test_values_from_env(self, clean_env):
        clean_env.setenv("TASK_CACHE_BATCH_WINDOW_MS", "250")
        clean_env.setenv("TASK_CACHE_TEMP_ID_PREFIX", "local-")
        clean_env.setenv("TASK_CACHE_REQUEST_TIMEOUT", "2.5")
        clean_env.setenv("TASK_CACHE_API_URL", "https://tasks.example.com/")
        clean_env.setenv("CORS_ALLOW_ORIGINS", "https://a.example.com, https://b.example.com")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LOG_DIR", "/var/log/tasks")

        s = get_settings()
        assert s.batch_window == 0.25
        assert s.temp_id_prefix == "local-"
        assert s.request_timeout == 2.5
        assert s.api_url == "https://tasks.example.com"
        assert s.cors_allow_origins == ["https://a.example.com", "https://b.example.com"]
        assert s.log_level == "DEBUG"
        assert s.log_dir == "/var/log/tasks"

    def test_zero_timeout_disables(self, clean_env):
        clean_env.setenv("TASK_CACHE_REQUEST_TIMEOUT", "0")
        assert get_settings().request_timeout is None

    def test_bad_values_fall_back(self, clean_env):
        clean_env.setenv("TASK_CACHE_BATCH_WINDOW_MS", "soon")
        clean_env.setenv("TASK_CACHE_REQUEST_TIMEOUT", "forever")
        clean_env.setenv("LOG_LEVEL", "chatty")

        s = get_settings()
        assert s.batch_window_ms == 500
        assert s.request_timeout == 10.0
        assert s.log_level == "INFO"

    def test_negative_window_falls_back(self, clean_env):
        clean_env.setenv("TASK_CACHE_BATCH_WINDOW_MS", "-5")
        assert get_settings().batch_window_ms == 500
