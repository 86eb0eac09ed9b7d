import pytest

from pizzeria_voice.errors import ConfigError
from pizzeria_voice.settings import DEFAULT_CATALOG_PATH, Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "AGENT_LANGUAGE", "PORT", "RECONNECT_DELAY_MS",
                 "AUDIO_COMMIT_EVERY_APPEND", "AUTO_RESPONSE_AFTER_FUNCTION", "CATALOG_PATH", "DEBUG", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_api_key_refuses_to_start(clean_env):
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_blank_api_key_refuses_to_start(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "   ")
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_defaults(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-live")
    s = Settings.from_env()
    assert s.openai_api_key == "sk-live"
    assert s.port == 3000
    assert s.agent_language == "en"
    assert s.reconnect_delay_ms == 2000
    assert s.audio_commit_every_append is False
    assert s.auto_response_after_function is False
    assert s.catalog_path == DEFAULT_CATALOG_PATH
    assert s.log_level == "INFO"


def test_overrides(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-live")
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("AGENT_LANGUAGE", "UR")
    clean_env.setenv("RECONNECT_DELAY_MS", "250")
    clean_env.setenv("AUDIO_COMMIT_EVERY_APPEND", "true")
    clean_env.setenv("DEBUG", "1")
    s = Settings.from_env()
    assert s.port == 8080
    assert s.agent_language == "ur"
    assert s.reconnect_delay_ms == 250
    assert s.audio_commit_every_append is True
    assert s.log_level == "DEBUG"


def test_unknown_language_rejected(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-live")
    clean_env.setenv("AGENT_LANGUAGE", "fr")
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_voice_and_locale_by_language():
    s = Settings(openai_api_key="k")
    assert s.voice_for("en") == "nova"
    assert s.voice_for("ur") == "alloy"
    assert s.transcription_locale("ur") == "ur"
    assert s.transcription_locale("en") == "en"
