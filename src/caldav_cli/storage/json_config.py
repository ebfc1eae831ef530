"""JSON-file backed account and server-URL registries.

Both registries share one physical file (``config.json``)::

    {
      "accounts": [{"name": "work", "providerId": "icloud", "username": "..."}],
      "serverUrls": {"work": "https://caldav.icloud.com"},
      "defaultAccount": "work"
    }

Every operation reads the file fresh and writes it back whole; there is no
cross-process locking.  A missing or unreadable file reads as empty state,
but an unreadable file is never overwritten.  Account entries that fail
validation are skipped on read and written back unchanged.
Writes go through a temp file + ``os.replace`` and end up mode ``0600``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from caldav_cli.errors import PersistenceError
from caldav_cli.models import Account

logger = logging.getLogger(__name__)

_FILE_MODE = 0o600
_LEGACY_OAUTH_KEY = "oauthConfigs"


class ConfigDocument(BaseModel):
    """In-memory shape of ``config.json``; unknown keys are preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    accounts: list[Account] = Field(default_factory=list)
    server_urls: dict[str, str] = Field(default_factory=dict, alias="serverUrls")
    default_account: str | None = Field(default=None, alias="defaultAccount")

    _rejected_accounts: list[Any] = PrivateAttr(default_factory=list)
    _unreadable: bool = PrivateAttr(default=False)

    @classmethod
    def unreadable(cls) -> ConfigDocument:
        document = cls()
        document._unreadable = True
        return document


class ConfigFile:
    """Read-modify-write access to the shared JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> ConfigDocument:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ConfigDocument()
        except OSError as exc:
            logger.warning("Cannot read %s, treating as empty: %s", self.path, exc)
            return ConfigDocument.unreadable()

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
            raw_accounts = data.pop("accounts", [])
            if not isinstance(raw_accounts, list):
                raise ValueError("accounts is not a list")
            document = ConfigDocument.model_validate(data)
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring malformed config file %s: %s", self.path, exc)
            return ConfigDocument.unreadable()

        for entry in raw_accounts:
            try:
                document.accounts.append(Account.model_validate(entry))
            except ValidationError as exc:
                name = entry.get("name") if isinstance(entry, dict) else None
                logger.warning(
                    "Skipping invalid account %r in %s: %d error(s)",
                    name,
                    self.path,
                    exc.error_count(),
                )
                document._rejected_accounts.append(entry)
        return document

    def write(self, document: ConfigDocument) -> None:
        if document._unreadable:
            raise PersistenceError(
                f"Refusing to overwrite {self.path}: the file could not be read. "
                "Fix or remove it and try again."
            )
        data = document.model_dump(by_alias=True, exclude_none=True)
        valid_names = {account.name for account in document.accounts}
        data["accounts"].extend(
            entry
            for entry in document._rejected_accounts
            if not (isinstance(entry, dict) and entry.get("name") in valid_names)
        )
        payload = json.dumps(data, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.chmod(tmp_name, _FILE_MODE)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    def drain_oauth_configs(self) -> dict[str, dict[str, Any]]:
        """Remove and return the legacy ``oauthConfigs`` map, if any.

        Older releases kept OAuth client settings in this file; they now live
        in the keyring.  Returns an empty dict when there is nothing to move.
        """
        document = self.read()
        extra = document.model_extra or {}
        legacy = extra.pop(_LEGACY_OAUTH_KEY, None)
        if not isinstance(legacy, dict) or not legacy:
            return {}
        self.write(document)
        logger.info("Drained %d legacy OAuth config(s) from %s", len(legacy), self.path)
        return legacy


class JsonAccountRegistry:
    """Account list + default pointer stored in :class:`ConfigFile`."""

    def __init__(self, config_file: ConfigFile) -> None:
        self._file = config_file

    async def load_all(self) -> list[Account]:
        return list(self._file.read().accounts)

    async def save(self, account: Account) -> None:
        document = self._file.read()
        for index, existing in enumerate(document.accounts):
            if existing.name == account.name:
                document.accounts[index] = account
                break
        else:
            document.accounts.append(account)
        self._file.write(document)

    async def remove(self, name: str) -> None:
        """Drop the account and its server URL; re-point the default if needed."""
        document = self._file.read()
        document.accounts = [a for a in document.accounts if a.name != name]
        document.server_urls.pop(name, None)
        if document.default_account == name:
            document.default_account = document.accounts[0].name if document.accounts else None
        self._file.write(document)

    async def get_default(self) -> str | None:
        return self._file.read().default_account

    async def set_default(self, name: str) -> None:
        document = self._file.read()
        document.default_account = name
        self._file.write(document)


class JsonServerUrlRegistry:
    """Per-account server URLs stored in :class:`ConfigFile`."""

    def __init__(self, config_file: ConfigFile) -> None:
        self._file = config_file

    async def get(self, name: str) -> str | None:
        return self._file.read().server_urls.get(name)

    async def save(self, name: str, url: str) -> None:
        document = self._file.read()
        document.server_urls[name] = url
        self._file.write(document)

    async def remove(self, name: str) -> None:
        document = self._file.read()
        if document.server_urls.pop(name, None) is not None:
            self._file.write(document)
