"""Environment configuration.

Values are read on every call so a changed environment (or a missing key)
is noticed per request rather than frozen at import time.
"""

import os

from .errors import ConfigurationError

PROVIDERS = ("gemini", "openai", "mock")

_API_KEY_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def provider_name() -> str:
    """Selected AI provider, from AEGIS_PROVIDER (default: gemini)."""
    name = os.environ.get("AEGIS_PROVIDER", "gemini").strip().lower()
    if name not in PROVIDERS:
        raise ConfigurationError(f"Unknown AEGIS_PROVIDER '{name}'; expected one of {PROVIDERS}")
    return name


def provider_api_key(name: str) -> str | None:
    """API key for the given provider. The mock provider needs none."""
    env_var = _API_KEY_VARS.get(name)
    if env_var is None:
        return None
    api_key = os.environ.get(env_var)
    if not api_key:
        raise ConfigurationError(f"{env_var} is not set in environment variables.")
    return api_key


def gemini_model_id() -> str:
    return os.environ.get("GEMINI_MODEL_ID", "gemini-2.5-pro")


def openai_model_id() -> str:
    return os.environ.get("OPENAI_MODEL_ID", "o4-mini")


def openai_base_url() -> str:
    return os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")


def upstream_timeout() -> float:
    """Seconds to wait for the AI provider before giving up."""
    raw = os.environ.get("AEGIS_UPSTREAM_TIMEOUT", "120")
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"AEGIS_UPSTREAM_TIMEOUT must be a number, got '{raw}'") from e


def allowed_origin() -> str:
    """Value for Access-Control-Allow-Origin. Set this to your domain in production."""
    return os.environ.get("AEGIS_ALLOWED_ORIGIN", "*")
