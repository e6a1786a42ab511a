import pytest
from pydantic import ValidationError

from focusgroup.config.exceptions import ConfigError
from focusgroup.config.settings import FocusGroupConfig, ModelSettings, load_config
from focusgroup.utils.env import get_google_api_key, google_api_key_available


def test_defaults():
    config = FocusGroupConfig()
    assert config.throttle.min_interval == 1.5
    assert config.throttle.concurrency == 3
    assert config.retry.max_retries == 5
    assert config.question_interest_threshold == 30


def test_env_overrides_nested_sections(monkeypatch):
    monkeypatch.setenv("FOCUSGROUP_THROTTLE__CONCURRENCY", "2")
    monkeypatch.setenv("FOCUSGROUP_MODELS__FLASH", "models/gemini-flash-lite")

    config = load_config()

    assert config.throttle.concurrency == 2
    assert config.models.flash == "gemini-flash-lite"


def test_explicit_overrides_win():
    config = load_config(question_interest_threshold=10)
    assert config.question_interest_threshold == 10


def test_rejects_unknown_keys_and_blank_models():
    with pytest.raises(ValidationError):
        FocusGroupConfig(bogus=True)
    with pytest.raises(ValidationError):
        ModelSettings(pro="   ")


def test_load_config_reports_invalid_values_as_config_error(monkeypatch):
    monkeypatch.setenv("FOCUSGROUP_THROTTLE__CONCURRENCY", "0")

    with pytest.raises(ConfigError) as exc_info:
        load_config()

    assert "throttle.concurrency" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ValidationError)


def test_api_key_lookup_falls_back_to_gemini_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")

    assert google_api_key_available()
    assert get_google_api_key() == "gemini-key"
