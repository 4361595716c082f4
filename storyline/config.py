"""
Configuration for the story generation pipeline.

Resolution order (first non-None wins):
1. Explicit overrides passed to load_config()
2. Environment variables (.env)
3. Defaults (DeepSeek deepseek-chat, regular-size Unsplash images)

Configuration is passed to StoryGenerator explicitly. Nothing in the
package reads it from module globals at call time.
"""
import os
from typing import Dict, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


# =============================================================================
# PROVIDER REGISTRY
# =============================================================================
# OpenAI-compatible chat completion endpoints
# Format: provider -> (endpoint URL, default model id)

LLM_PROVIDER_REGISTRY: Dict[str, Tuple[str, str]] = {
    "deepseek": ("https://api.deepseek.com/chat/completions", "deepseek-chat"),
    "openai": ("https://api.openai.com/v1/chat/completions", "gpt-4o-mini"),
}

DEFAULT_PROVIDER = "deepseek"

# Env vars checked for the API key, per provider, after LLM_API_KEY
_PROVIDER_KEY_VARS: Dict[str, str] = {
    "deepseek": "DEEPSEEK_API_KEY",
    "openai": "OPENAI_API_KEY",
}

UNSPLASH_API_URL = "https://api.unsplash.com"
IMAGE_SIZES = ("raw", "full", "regular", "small", "thumb")


def resolve_provider(name: Optional[str]) -> tuple:
    """
    Resolve a provider name to (endpoint URL, default model id).

    Returns:
        Tuple of (base_url, model) or (None, None) if not found
    """
    if not name:
        return (None, None)
    return LLM_PROVIDER_REGISTRY.get(name.lower(), (None, None))


# =============================================================================
# CONFIG MODELS
# =============================================================================

class LLMConfig(BaseModel):
    """Remote text completion endpoint settings."""
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = Field(
        default=None,
        description="Model id sent with every request (provider default if None)"
    )
    api_key: Optional[str] = None
    base_url: Optional[str] = Field(
        default=None,
        description="Full chat completions URL (provider default if None)"
    )
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=2000, gt=0)
    timeout: float = Field(default=120, gt=0, description="HTTP timeout in seconds")


class ImageConfig(BaseModel):
    """Remote image search settings."""
    access_key: Optional[str] = Field(
        default=None,
        description="Unsplash access key. Without one every image is a fallback URL."
    )
    base_url: str = UNSPLASH_API_URL
    size: str = Field(default="regular", description="One of raw, full, regular, small, thumb")
    timeout: float = Field(default=30, gt=0)


class GeneratorConfig(BaseModel):
    """Everything StoryGenerator.from_config() needs."""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    max_parse_retries: int = Field(
        default=0,
        ge=0,
        description="Extra attempts when model output cannot be parsed"
    )


# =============================================================================
# LOADING
# =============================================================================

def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def get_llm_config(overrides: Optional[LLMConfig] = None) -> LLMConfig:
    """
    Build the text endpoint config with cascading priority.

    Args:
        overrides: Optional explicit values (only fields that were set win)

    Returns:
        LLMConfig with provider, endpoint, model and key filled in
    """
    explicit = overrides.model_dump(exclude_unset=True) if overrides else {}

    provider = (explicit.get("provider") or _env("LLM_PROVIDER") or DEFAULT_PROVIDER).lower()
    default_url, default_model = resolve_provider(provider)
    if default_url is None:
        logger.warning("unknown_llm_provider", provider=provider)

    values = {
        "provider": provider,
        "model": explicit.get("model") or _env("LLM_MODEL") or default_model,
        "api_key": (
            explicit.get("api_key")
            or _env("LLM_API_KEY")
            or (_env(_PROVIDER_KEY_VARS[provider]) if provider in _PROVIDER_KEY_VARS else None)
        ),
        "base_url": explicit.get("base_url") or _env("LLM_BASE_URL") or default_url,
    }

    # Numeric settings can be 0, so check for None explicitly
    for field, var, cast in (
        ("temperature", "LLM_TEMPERATURE", float),
        ("max_tokens", "LLM_MAX_TOKENS", int),
        ("timeout", "LLM_TIMEOUT", float),
    ):
        if explicit.get(field) is not None:
            values[field] = explicit[field]
        elif _env(var) is not None:
            values[field] = cast(_env(var))

    return LLMConfig(**values)


def get_image_config(overrides: Optional[ImageConfig] = None) -> ImageConfig:
    """Build the image search config with cascading priority."""
    explicit = overrides.model_dump(exclude_unset=True) if overrides else {}

    values = {
        "access_key": explicit.get("access_key") or _env("UNSPLASH_ACCESS_KEY"),
        "base_url": explicit.get("base_url") or _env("UNSPLASH_API_URL") or UNSPLASH_API_URL,
        "size": explicit.get("size") or _env("IMAGE_SIZE") or "regular",
    }
    if values["size"] not in IMAGE_SIZES:
        logger.warning("unknown_image_size", size=values["size"], using="regular")
        values["size"] = "regular"
    if explicit.get("timeout") is not None:
        values["timeout"] = explicit["timeout"]

    return ImageConfig(**values)


def load_config(overrides: Optional[GeneratorConfig] = None) -> GeneratorConfig:
    """
    Load the full generator configuration.

    Args:
        overrides: Optional GeneratorConfig whose explicitly set fields win

    Returns:
        Resolved GeneratorConfig
    """
    llm_overrides = overrides.llm if overrides and "llm" in overrides.model_fields_set else None
    image_overrides = overrides.image if overrides and "image" in overrides.model_fields_set else None

    if overrides and "max_parse_retries" in overrides.model_fields_set:
        max_parse_retries = overrides.max_parse_retries
    else:
        max_parse_retries = int(_env("LLM_PARSE_RETRIES") or 0)

    config = GeneratorConfig(
        llm=get_llm_config(llm_overrides),
        image=get_image_config(image_overrides),
        max_parse_retries=max_parse_retries,
    )

    logger.debug(
        "config_loaded",
        provider=config.llm.provider,
        model=config.llm.model,
        has_llm_key=bool(config.llm.api_key),
        has_image_key=bool(config.image.access_key),
        image_size=config.image.size,
    )
    return config
