"""
Tests for configuration resolution: overrides -> environment -> defaults.
"""
import pytest

from storyline.config import (
    GeneratorConfig,
    ImageConfig,
    LLMConfig,
    get_image_config,
    get_llm_config,
    load_config,
    resolve_provider,
)

ENV_VARS = [
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_API_KEY",
    "DEEPSEEK_API_KEY",
    "OPENAI_API_KEY",
    "LLM_BASE_URL",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "LLM_TIMEOUT",
    "UNSPLASH_ACCESS_KEY",
    "UNSPLASH_API_URL",
    "IMAGE_SIZE",
    "LLM_PARSE_RETRIES",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_resolve_provider():
    assert resolve_provider("deepseek") == ("https://api.deepseek.com/chat/completions", "deepseek-chat")
    assert resolve_provider("OpenAI")[1] == "gpt-4o-mini"
    assert resolve_provider("unknown") == (None, None)
    assert resolve_provider(None) == (None, None)


def test_defaults():
    config = load_config()

    assert config.llm.provider == "deepseek"
    assert config.llm.model == "deepseek-chat"
    assert config.llm.base_url == "https://api.deepseek.com/chat/completions"
    assert config.llm.api_key is None
    assert config.llm.temperature == 0.7
    assert config.llm.max_tokens == 2000
    assert config.image.access_key is None
    assert config.image.size == "regular"
    assert config.max_parse_retries == 0


def test_environment(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek")
    monkeypatch.setenv("LLM_TEMPERATURE", "0.2")
    monkeypatch.setenv("LLM_MAX_TOKENS", "4000")
    monkeypatch.setenv("UNSPLASH_ACCESS_KEY", "unsplash-key")
    monkeypatch.setenv("IMAGE_SIZE", "thumb")
    monkeypatch.setenv("LLM_PARSE_RETRIES", "2")

    config = load_config()

    assert config.llm.api_key == "sk-deepseek"
    assert config.llm.temperature == 0.2
    assert config.llm.max_tokens == 4000
    assert config.image.access_key == "unsplash-key"
    assert config.image.size == "thumb"
    assert config.max_parse_retries == 2


def test_generic_key_wins_over_provider_key(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "sk-generic")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek")

    assert get_llm_config().api_key == "sk-generic"


def test_provider_switch(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deepseek")

    config = get_llm_config()

    assert config.base_url == "https://api.openai.com/v1/chat/completions"
    assert config.model == "gpt-4o-mini"
    assert config.api_key == "sk-openai"


def test_unknown_provider_needs_base_url(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "local")
    monkeypatch.setenv("LLM_BASE_URL", "http://localhost:8000/v1/chat/completions")
    monkeypatch.setenv("LLM_MODEL", "llama-3")

    config = get_llm_config()

    assert config.provider == "local"
    assert config.base_url == "http://localhost:8000/v1/chat/completions"
    assert config.model == "llama-3"
    assert config.api_key is None


def test_overrides_win(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "deepseek-reasoner")
    monkeypatch.setenv("LLM_TEMPERATURE", "1.5")
    monkeypatch.setenv("UNSPLASH_ACCESS_KEY", "env-key")

    config = load_config(GeneratorConfig(
        llm=LLMConfig(model="deepseek-chat", temperature=0),
        image=ImageConfig(access_key="explicit-key"),
        max_parse_retries=1,
    ))

    assert config.llm.model == "deepseek-chat"
    assert config.llm.temperature == 0
    assert config.image.access_key == "explicit-key"
    assert config.max_parse_retries == 1


def test_unset_override_fields_fall_through(monkeypatch):
    monkeypatch.setenv("LLM_MAX_TOKENS", "1234")

    config = get_llm_config(LLMConfig(model="custom-model"))

    assert config.model == "custom-model"
    assert config.max_tokens == 1234


def test_unknown_image_size_falls_back(monkeypatch):
    monkeypatch.setenv("IMAGE_SIZE", "gigantic")
    assert get_image_config().size == "regular"


def test_blank_env_ignored(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "   ")
    assert get_llm_config().model == "deepseek-chat"
