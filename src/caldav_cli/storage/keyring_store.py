"""OS keyring backed credential vault and OAuth config registry.

Entries live under one keyring service (``caldav-cli`` by default):

- ``{account}`` → password or refresh token
- ``oauth-config:{account}`` → JSON ``{"clientId", "clientSecret", "tokenUrl"}``

keyring calls block (they may talk to D-Bus or the macOS keychain), so they
run in a worker thread.  Secret values are never logged.
"""

from __future__ import annotations

import asyncio
import json
import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from pydantic import ValidationError

from caldav_cli.config import DEFAULT_KEYRING_SERVICE
from caldav_cli.errors import PersistenceError
from caldav_cli.oauth.models import OAuthAccountConfig

logger = logging.getLogger(__name__)

OAUTH_CONFIG_PREFIX = "oauth-config"


class _KeyringEntries:
    """Thread-offloaded get/set/delete for one keyring service."""

    def __init__(self, service: str) -> None:
        self.service = service

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(keyring.get_password, self.service, key)
        except KeyringError as exc:
            raise PersistenceError(f"Keyring unavailable reading {key!r}: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(keyring.set_password, self.service, key, value)
        except KeyringError as exc:
            raise PersistenceError(f"Keyring unavailable writing {key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(keyring.delete_password, self.service, key)
        except PasswordDeleteError:
            logger.debug("No keyring entry %r to delete", key)
        except KeyringError as exc:
            raise PersistenceError(f"Keyring unavailable deleting {key!r}: {exc}") from exc


class KeyringCredentialVault:
    """Account secrets keyed by account name."""

    def __init__(self, service: str = DEFAULT_KEYRING_SERVICE) -> None:
        self._entries = _KeyringEntries(service)

    async def get(self, name: str) -> str | None:
        return await self._entries.get(name)

    async def set(self, name: str, secret: str) -> None:
        await self._entries.set(name, secret)
        logger.debug("Stored credential for account %r", name)

    async def delete(self, name: str) -> None:
        await self._entries.delete(name)


class KeyringOAuthConfigRegistry:
    """OAuth client settings keyed ``oauth-config:{account}``."""

    def __init__(self, service: str = DEFAULT_KEYRING_SERVICE) -> None:
        self._entries = _KeyringEntries(service)

    @staticmethod
    def entry_key(name: str) -> str:
        return f"{OAUTH_CONFIG_PREFIX}:{name}"

    async def get(self, name: str) -> OAuthAccountConfig | None:
        raw = await self._entries.get(self.entry_key(name))
        if not raw:
            return None
        try:
            return OAuthAccountConfig.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Ignoring unreadable OAuth config for account %r", name)
            return None

    async def save(self, name: str, config: OAuthAccountConfig) -> None:
        await self._entries.set(self.entry_key(name), config.model_dump_json(by_alias=True))
        logger.debug("Stored OAuth config for account %r (client_id=%s)", name, config.client_id)

    async def remove(self, name: str) -> None:
        await self._entries.delete(self.entry_key(name))
