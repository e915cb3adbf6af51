"""API key storage backed by the OS keychain."""

from __future__ import annotations

import logging
import os
from typing import Dict, Mapping, Optional, Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from dotbrain.classification.providers import AIProvider

LOGGER = logging.getLogger(__name__)

KEYCHAIN_SERVICE = "dotbrain"


class CredentialStore(Protocol):
    """Opaque key/value store for provider credentials."""

    def get(self, account: str) -> Optional[str]: ...

    def set(self, account: str, value: str) -> None: ...

    def delete(self, account: str) -> bool: ...


class KeyringCredentialStore:
    """Store credentials with :mod:`keyring`, falling back to environment variables.

    Environment variables are consulted only for reads and only when the
    keychain holds no value, so a stored key always wins.
    """

    def __init__(
        self,
        service: str = KEYCHAIN_SERVICE,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.service = service
        self._env = env if env is not None else os.environ
        self._env_vars = {provider.account: provider.env_var for provider in AIProvider}

    def get(self, account: str) -> Optional[str]:
        try:
            value = keyring.get_password(self.service, account)
        except KeyringError as exc:
            LOGGER.debug("Keychain lookup for %s failed: %s", account, exc)
            value = None
        if value:
            return value
        env_var = self._env_vars.get(account)
        if env_var:
            return self._env.get(env_var) or None
        return None

    def set(self, account: str, value: str) -> None:
        keyring.set_password(self.service, account, value)

    def delete(self, account: str) -> bool:
        try:
            keyring.delete_password(self.service, account)
        except PasswordDeleteError:
            return False
        return True


class MemoryCredentialStore:
    """In-process credential store, used by tests and dry runs."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: Dict[str, str] = dict(values or {})

    def get(self, account: str) -> Optional[str]:
        return self._values.get(account)

    def set(self, account: str, value: str) -> None:
        self._values[account] = value

    def delete(self, account: str) -> bool:
        return self._values.pop(account, None) is not None


def has_api_key(store: CredentialStore, provider: AIProvider) -> bool:
    """Return True when ``store`` holds a non-empty key for ``provider``."""
    return bool(store.get(provider.account))


def save_api_key(store: CredentialStore, provider: AIProvider, key: str) -> None:
    """Validate and persist an API key.

    Raises:
        ValueError: If the key is empty or lacks the provider's key prefix.
    """
    key = key.strip()
    if not key:
        raise ValueError("API key must not be empty")
    if not provider.is_valid_key(key):
        raise ValueError(
            f"{provider.display_name} API keys start with '{provider.key_prefix}'"
        )
    store.set(provider.account, key)


__all__ = [
    "CredentialStore",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    "KEYCHAIN_SERVICE",
    "has_api_key",
    "save_api_key",
]
