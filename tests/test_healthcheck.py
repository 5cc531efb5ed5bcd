"""Tests for the container health check."""

import pytest

from media_tracker import config, healthcheck


def _exit_code():
    with pytest.raises(SystemExit) as exc_info:
        healthcheck.main()
    return exc_info.value.code


def test_healthy_without_watchlist(config_file):
    assert _exit_code() == 0


def test_corrupt_watchlist_is_unhealthy(config_file):
    (config_file.parent / "watchlist.json").write_text("{oops", encoding="utf-8")
    assert _exit_code() == 1


def test_missing_key_is_unhealthy(config_file, monkeypatch):
    config_file.write_text(config_file.read_text(encoding="utf-8").replace("abc123", "YOUR_TMDB_API_KEY_HERE"))
    monkeypatch.setattr(config, "_SETTINGS_SINGLETON", None)
    assert _exit_code() == 1


def test_undecodable_watchlist_is_unhealthy(config_file):
    (config_file.parent / "watchlist.json").write_bytes(b"\xff\xfe\x00")
    assert _exit_code() == 1
