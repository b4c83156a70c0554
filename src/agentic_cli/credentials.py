"""API keys kept in the operating system keychain through ``keyring``."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from agentic_cli.config import ProviderConfig
from agentic_cli.errors import ConfigurationError
from agentic_cli.provider import get_env_api_key

__all__ = ["CredentialStore", "SecretSource", "resolve_api_key", "SERVICE_PREFIX"]

SERVICE_PREFIX = "agentic-cli"


class SecretSource(Protocol):
    def get_secret(self, provider: str, account: str = "default") -> Optional[str]: ...


class CredentialStore:
    """Per-provider secrets under the service name ``agentic-cli-<provider>``."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def service_name(provider: str) -> str:
        return f"{SERVICE_PREFIX}-{provider}"

    def get_secret(self, provider: str, account: str = "default") -> Optional[str]:
        """Return the stored secret, or None when absent or the keychain fails."""
        try:
            return keyring.get_password(self.service_name(provider), account)
        except KeyringError as exc:
            self.logger.error(f"Could not read credential for {provider}/{account}: {exc}")
            return None

    def set_secret(self, provider: str, secret: str, account: str = "default") -> None:
        if not secret:
            raise ConfigurationError("Refusing to store an empty secret")
        try:
            keyring.set_password(self.service_name(provider), account, secret)
        except KeyringError as exc:
            raise ConfigurationError(
                f"Could not store credential for {provider}/{account}: {exc}"
            ) from exc
        self.logger.info(f"Stored credential for {provider}/{account}")

    def delete_secret(self, provider: str, account: str = "default") -> bool:
        """Delete the secret; returns False when there was nothing to delete."""
        try:
            keyring.delete_password(self.service_name(provider), account)
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            self.logger.error(f"Could not delete credential for {provider}/{account}: {exc}")
            return False
        return True


def resolve_api_key(
    config: ProviderConfig, store: SecretSource | None = None
) -> Optional[str]:
    """
    Resolve the API key for *config*.

    Order: the key set on the config, the provider's environment variable,
    then the keychain entry for the config's instance name.
    """
    if config.api_key:
        return config.api_key
    env_key = get_env_api_key(config.provider_type)
    if env_key:
        return env_key
    if store is not None:
        return store.get_secret(str(config.provider_type), config.instance_name)
    return None
