"""Persistent stores: JSON config file and OS keyring."""

from caldav_cli.storage.json_config import (
    ConfigDocument,
    ConfigFile,
    JsonAccountRegistry,
    JsonServerUrlRegistry,
)
from caldav_cli.storage.keyring_store import KeyringCredentialVault, KeyringOAuthConfigRegistry

__all__ = [
    "ConfigDocument",
    "ConfigFile",
    "JsonAccountRegistry",
    "JsonServerUrlRegistry",
    "KeyringCredentialVault",
    "KeyringOAuthConfigRegistry",
]
