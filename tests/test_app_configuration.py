from pathlib import Path

import pytest
import yaml

from modl.configuration.ai_settings import AISettings
from modl.configuration.app_configuration import AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "database": {"path": "/var/lib/modl/modl.db"},
        "ai_settings": {
            "enabled": True,
            "base_url": "http://localhost:8000/v1",
            "model_name": "test-model",
            "request_timeout_seconds": 12,
            "max_retries": 3,
        },
        "moderation": {
            "issuer_name": "Robo Mod",
            "worker_count": 4,
            "queue_size": 0,
            "chat_ticket_categories": ["Chat", "Report"],
            "immediate_ordinals": [2],
        },
    }
    config_path.write_text(yaml.safe_dump(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.database_path == Path("/var/lib/modl/modl.db")
    assert config.issuer_name == "Robo Mod"
    assert config.analysis_worker_count == 4
    assert config.analysis_queue_size == 0
    assert config.chat_ticket_categories == ["chat", "report"]
    assert config.immediate_ordinals == [2]

    ai_settings = config.ai_settings
    assert ai_settings.enabled is True
    assert ai_settings.base_url == "http://localhost:8000/v1"
    assert ai_settings.model_name == "test-model"
    assert ai_settings.request_timeout_seconds == pytest.approx(12.0)
    assert ai_settings.max_retries == 3


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.database_path == Path("data/modl.db")
    assert config.issuer_name == "AI Moderation System"
    assert config.analysis_worker_count == 2
    assert config.analysis_queue_size == 100
    assert config.chat_ticket_categories == ["chat", "player"]
    assert config.immediate_ordinals == [1, 2]

    ai_settings = config.ai_settings
    assert ai_settings.enabled is True
    assert ai_settings.base_url is None
    assert ai_settings.max_retries == 1


def test_app_config_non_mapping_yaml_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    assert AppConfig(config_path).data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"moderation": {"worker_count": 1}}), encoding="utf-8")
    config = AppConfig(config_path)
    assert config.analysis_worker_count == 1

    config_path.write_text(yaml.safe_dump({"moderation": {"worker_count": 5}}), encoding="utf-8")
    config.reload()
    assert config.analysis_worker_count == 5


def test_ai_settings_api_key_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("CUSTOM_KEY_VAR", "sk-from-env")
    settings = AISettings({"api_key_env": "CUSTOM_KEY_VAR", "api_key": "sk-inline"})
    assert settings.api_key == "sk-from-env"

    monkeypatch.delenv("CUSTOM_KEY_VAR")
    assert settings.api_key == "sk-inline"


def test_ai_settings_negative_retries_clamped() -> None:
    assert AISettings({"max_retries": -4}).max_retries == 0


def test_ai_settings_sampling_defaults() -> None:
    settings = AISettings()
    assert settings.model_name == "gpt-4o-mini"
    assert settings.temperature == pytest.approx(0.1)
    assert settings.top_p == pytest.approx(0.8)
    assert settings.max_tokens == 1024
    assert settings.retry_backoff_seconds == pytest.approx(2.0)
