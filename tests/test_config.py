"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

from opencode_session_search import config


class TestServerConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OPENCODE_SERVER_URL", raising=False)
        monkeypatch.delenv("OPENCODE_DIRECTORY", raising=False)
        assert config.get_server_url() == "http://localhost:4096"
        assert config.get_default_directory() is None

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENCODE_SERVER_URL", "http://box:8080/")
        monkeypatch.setenv("OPENCODE_DIRECTORY", "/work")
        assert config.get_server_url() == "http://box:8080"
        assert config.get_default_directory() == "/work"


class TestCacheConfig:
    def test_default_path(self, monkeypatch):
        monkeypatch.delenv("OPENCODE_SEARCH_CACHE_PATH", raising=False)
        assert config.get_cache_path() == config.DEFAULT_CACHE_PATH

    def test_path_expands_user(self, monkeypatch):
        monkeypatch.setenv("OPENCODE_SEARCH_CACHE_PATH", "~/x/cache.db")
        assert config.get_cache_path() == Path.home() / "x" / "cache.db"

    def test_max_bytes(self, monkeypatch):
        monkeypatch.delenv("OPENCODE_SEARCH_CACHE_MAX_BYTES", raising=False)
        assert config.get_cache_max_bytes() == 5 * 1024 * 1024
        monkeypatch.setenv("OPENCODE_SEARCH_CACHE_MAX_BYTES", "1024")
        assert config.get_cache_max_bytes() == 1024


class TestIndexingConfig:
    def test_defaults(self, monkeypatch):
        for name in (
            "OPENCODE_SEARCH_MESSAGE_WINDOW",
            "OPENCODE_SEARCH_CHUNK_PAUSE_MS",
            "OPENCODE_SEARCH_POLL_SECONDS",
        ):
            monkeypatch.delenv(name, raising=False)
        assert config.get_message_window() == 10
        assert config.get_chunk_pause_seconds() == 0.05
        assert config.get_poll_interval_seconds() == 30.0

    def test_window_has_floor_of_one(self, monkeypatch):
        monkeypatch.setenv("OPENCODE_SEARCH_MESSAGE_WINDOW", "0")
        assert config.get_message_window() == 1

    def test_chunk_pause_in_ms(self, monkeypatch):
        monkeypatch.setenv("OPENCODE_SEARCH_CHUNK_PAUSE_MS", "250")
        assert config.get_chunk_pause_seconds() == 0.25
