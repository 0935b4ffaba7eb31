"""
Tests for configuration loading and validation.
"""

import pytest
import yaml
from pydantic import ValidationError

from companion.config import AppConfig, load_config


def _write(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def base_data():
    return {
        "telegram": {"api_id": 111, "api_hash": "hash", "bot_token": "123:abc"},
        "llm": {"providers": ["groq"], "groq_api_key": "gsk_test"},
    }


class TestAppConfig:

    def test_defaults(self, tmp_path, base_data):
        cfg = AppConfig.from_yaml(_write(tmp_path, base_data))

        assert cfg.gate.max_cache_entries == 100
        assert cfg.gate.rate_window_ms == 20_000
        assert cfg.gate.max_requests_per_window == 3
        assert cfg.gate.cache_ttl_seconds is None
        assert cfg.gate.cache_cleanup_minutes == 30
        assert cfg.chat.history_limit == 6
        assert cfg.chat.history_path == "data/history.json"
        assert cfg.telegram.bot_token.get_secret_value() == "123:abc"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.from_yaml(tmp_path / "nope.yaml")

    def test_load_config_explicit_path(self, tmp_path, base_data):
        base_data["gate"] = {"max_cache_entries": 5}
        cfg = load_config(_write(tmp_path, base_data))
        assert cfg.gate.max_cache_entries == 5

    @pytest.mark.parametrize("gate", [
        {"max_cache_entries": 0},
        {"rate_window_ms": 0},
        {"max_requests_per_window": 0},
        {"cache_ttl_seconds": -1},
    ])
    def test_rejects_non_positive_gate_values(self, tmp_path, base_data, gate):
        base_data["gate"] = gate
        with pytest.raises(ValidationError):
            AppConfig.from_yaml(_write(tmp_path, base_data))

    def test_rejects_placeholder_credentials(self, tmp_path, base_data):
        base_data["telegram"]["bot_token"] = "your_bot_token_here"
        with pytest.raises(ValidationError, match="bot_token"):
            AppConfig.from_yaml(_write(tmp_path, base_data))

    def test_rejects_placeholder_provider_key(self, tmp_path, base_data):
        base_data["llm"] = {"providers": ["openrouter"], "openrouter_api_key": "your_openrouter_key"}
        with pytest.raises(ValidationError, match="openrouter"):
            AppConfig.from_yaml(_write(tmp_path, base_data))

    def test_rejects_empty_provider_list(self, tmp_path, base_data):
        base_data["llm"] = {"providers": []}
        with pytest.raises(ValidationError):
            AppConfig.from_yaml(_write(tmp_path, base_data))

    def test_rejects_unknown_provider(self, tmp_path, base_data):
        base_data["llm"] = {"providers": ["openai"]}
        with pytest.raises(ValidationError):
            AppConfig.from_yaml(_write(tmp_path, base_data))

    def test_load_config_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("COMPANION_TELEGRAM__API_ID", "222")
        monkeypatch.setenv("COMPANION_TELEGRAM__API_HASH", "envhash")
        monkeypatch.setenv("COMPANION_TELEGRAM__BOT_TOKEN", "9:xyz")

        cfg = load_config()

        assert cfg.telegram.api_id == 222
        assert cfg.telegram.api_hash == "envhash"


class TestReplyTemplates:

    def test_default_templates_are_valid(self, tmp_path, base_data):
        cfg = AppConfig.from_yaml(_write(tmp_path, base_data))
        assert "{retry_after}" in cfg.chat.throttle_reply

    def test_custom_templates_with_known_placeholders(self, tmp_path, base_data):
        base_data["chat"] = {
            "throttle_reply": "{bot_name} capek, {retry_after}s lagi ya {user_name}",
            "error_reply": "Aduh, {bot_name} error.",
        }
        cfg = AppConfig.from_yaml(_write(tmp_path, base_data))
        assert cfg.chat.error_reply == "Aduh, {bot_name} error."

    @pytest.mark.parametrize("chat", [
        {"error_reply": "Coba lagi {retry_after} detik"},
        {"error_reply": "Halo {nama}"},
        {"throttle_reply": "Tunggu {foo}"},
        {"throttle_reply": "Tunggu {retry_after"},
    ])
    def test_rejects_unknown_or_malformed_placeholders(self, tmp_path, base_data, chat):
        base_data["chat"] = chat
        with pytest.raises(ValidationError):
            AppConfig.from_yaml(_write(tmp_path, base_data))
