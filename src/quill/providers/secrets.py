"""API key lookup for cloud LLM and search providers.

Keys are resolved in order: environment variable, then the system keyring
(GNOME Keyring, KDE Wallet, macOS Keychain, ...).
"""

from __future__ import annotations

import logging
import os

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

# Service name for Quill credentials in the keyring
SERVICE_NAME = "com.quill.providers"

ENV_VARS: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "kilo": "KILO_API_KEY",
    "google": "GOOGLE_GENERATIVE_AI_API_KEY",
    "tavily": "TAVILY_API_KEY",
}


def store_api_key(provider: str, api_key: str) -> None:
    """Store an API key in the system keyring.

    Raises:
        RuntimeError: If the keyring backend rejects the write.
    """
    try:
        keyring.set_password(SERVICE_NAME, provider, api_key)
    except KeyringError as e:
        raise RuntimeError(f"Failed to store API key: {e}") from e
    logger.info("Stored API key for provider: %s", provider)


def get_api_key(provider: str) -> str | None:
    """Return the API key for a provider, or None when not configured."""
    env_var = ENV_VARS.get(provider)
    if env_var:
        value = os.environ.get(env_var)
        if value:
            return value

    try:
        return keyring.get_password(SERVICE_NAME, provider)
    except KeyringError as e:
        logger.warning("Failed to retrieve API key for %s: %s", provider, e)
        return None


def delete_api_key(provider: str) -> bool:
    """Remove an API key from the system keyring. True if deleted."""
    try:
        keyring.delete_password(SERVICE_NAME, provider)
    except PasswordDeleteError:
        logger.debug("No stored API key for %s", provider)
        return False
    except KeyringError as e:
        logger.warning("Failed to delete API key for %s: %s", provider, e)
        return False
    logger.info("Deleted API key for provider: %s", provider)
    return True


def has_api_key(provider: str) -> bool:
    return get_api_key(provider) is not None


def list_configured_providers() -> list[str]:
    """Providers with a key available (env or keyring)."""
    return [p for p in ENV_VARS if has_api_key(p)]
