"""Contracts the provisioning flow depends on.

Each store is a separate capability passed explicitly into
:class:`~caldav_cli.provisioning.AccountProvisioner`; the concrete adapters
live in :mod:`caldav_cli.storage`, :mod:`caldav_cli.caldav_probe`,
:mod:`caldav_cli.prompts` and :mod:`caldav_cli.presenters`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from caldav_cli.models import Account, ConnectionTestParams, ConnectionTestResult
from caldav_cli.oauth.models import OAuthAccountConfig, OAuthClientConfig, OAuthTokens
from caldav_cli.providers import BasicPreset, OAuth2Preset


class CredentialVault(Protocol):
    """One secret per account: a password (basic) or a refresh token (OAuth2)."""

    async def get(self, name: str) -> str | None:
        """Return the stored secret, or ``None`` when absent."""
        ...

    async def set(self, name: str, secret: str) -> None:
        """Store *secret*, overwriting any previous value."""
        ...

    async def delete(self, name: str) -> None:
        """Delete the secret; deleting a missing secret is not an error."""
        ...


class AccountRegistry(Protocol):
    """Persisted list of accounts plus the default-account pointer."""

    async def load_all(self) -> list[Account]:
        ...

    async def save(self, account: Account) -> None:
        """Insert or replace the account with the same name."""
        ...

    async def remove(self, name: str) -> None:
        ...

    async def get_default(self) -> str | None:
        ...

    async def set_default(self, name: str) -> None:
        ...


class ServerUrlRegistry(Protocol):
    """Resolved CalDAV server URL per account."""

    async def get(self, name: str) -> str | None:
        ...

    async def save(self, name: str, url: str) -> None:
        ...

    async def remove(self, name: str) -> None:
        ...


class OAuthConfigRegistry(Protocol):
    """OAuth client settings per OAuth2 account."""

    async def get(self, name: str) -> OAuthAccountConfig | None:
        ...

    async def save(self, name: str, config: OAuthAccountConfig) -> None:
        ...

    async def remove(self, name: str) -> None:
        """Remove the entry; removing a missing entry is not an error."""
        ...


class ConnectivityTester(Protocol):
    """Checks that credentials reach the remote calendar service.

    Failures are reported in the result, never raised.
    """

    async def test(self, params: ConnectionTestParams) -> ConnectionTestResult:
        ...


class Authorizer(Protocol):
    """Interactive OAuth2 authorization producing a refresh token."""

    async def authorize(self, config: OAuthClientConfig) -> OAuthTokens:
        ...


class Prompter(Protocol):
    """Interactive input; each call returns once with the user's answer."""

    def select_provider(
        self, providers: Sequence[BasicPreset | OAuth2Preset]
    ) -> BasicPreset | OAuth2Preset | None:
        """Return the chosen preset, or ``None`` for a custom server."""
        ...

    def input_server_url(self, hint: str) -> str:
        ...

    def input_account_name(self) -> str:
        ...

    def input_username(self, hint: str | None = None) -> str:
        ...

    def input_password(self, hint: str) -> str:
        ...

    def input_client_id(self) -> str:
        ...

    def input_client_secret(self) -> str:
        ...

    def confirm(self, message: str) -> bool:
        ...


class Presenter(Protocol):
    """Renders command results for the user."""

    def render_accounts(self, accounts: Sequence[Account], default: str | None) -> None:
        ...

    def render_providers(self, providers: Sequence[BasicPreset | OAuth2Preset]) -> None:
        ...

    def render_success(self, message: str) -> None:
        ...

    def render_error(self, message: str) -> None:
        ...
