"""Account provisioning: add and remove accounts across independent stores.

There is no transaction spanning the credential vault, the account registry,
the server-URL registry and the OAuth config registry, so ``add()`` is a
saga.  Writes are ordered so that everything before the connectivity test is
either absent (basic auth) or undone by an explicit :class:`CompensationLog`
(OAuth2), and the account record is written only after the test passes.

Basic auth::

    prompt password → test → credential → account → server URL → default?

OAuth2::

    prompt client id/secret → authorize (browser) → OAuth config → credential
      → test ─ fail → compensate (reverse order) → RolledBack
             └ ok   → account → server URL → default?

Failures before any write leave every store untouched; each failure is
reported once, prefixed with the failing phase.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from caldav_cli.core.logging import set_account_context
from caldav_cli.errors import (
    AccountNotFoundError,
    AuthorizationError,
    TokenExchangeError,
    UserInputError,
)
from caldav_cli.models import Account, ConnectionTestParams
from caldav_cli.oauth.models import OAuthAccountConfig, OAuthClientConfig
from caldav_cli.ports import (
    AccountRegistry,
    Authorizer,
    ConnectivityTester,
    CredentialVault,
    OAuthConfigRegistry,
    Presenter,
    Prompter,
    ServerUrlRegistry,
)
from caldav_cli.providers import (
    CUSTOM_PROVIDER_ID,
    OAuth2Preset,
    OAuthPresetConfig,
    ProviderRegistry,
)

logger = logging.getLogger(__name__)

CUSTOM_PASSWORD_HINT = "Enter your password"
CUSTOM_SERVER_URL_HINT = "Enter the CalDAV server URL"


class ProvisioningStatus(StrEnum):
    """Terminal state of one ``add()`` invocation."""

    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"  # failed before any durable write


@dataclass(frozen=True)
class ProvisioningOutcome:
    status: ProvisioningStatus
    account_name: str
    message: str

    @property
    def committed(self) -> bool:
        return self.status is ProvisioningStatus.COMMITTED


# ---------------------------------------------------------------------------
# Compensation log
# ---------------------------------------------------------------------------

Compensation = Callable[[], Awaitable[None]]


@dataclass
class CompensationLog:
    """Undo actions for forward writes, replayed newest-first on rollback."""

    _entries: list[tuple[str, Compensation]] = field(default_factory=list)

    def record(self, description: str, action: Compensation) -> None:
        self._entries.append((description, action))

    @property
    def descriptions(self) -> list[str]:
        return [description for description, _ in self._entries]

    async def rollback(self) -> list[str]:
        """Run every compensation in reverse order.

        A failing compensation does not stop the others.  Returns the
        descriptions of the compensations that failed.
        """
        failed: list[str] = []
        while self._entries:
            description, action = self._entries.pop()
            try:
                await action()
            except Exception:
                logger.exception("Compensation failed: %s", description)
                failed.append(description)
            else:
                logger.info("Compensated: %s", description)
        return failed


@dataclass(frozen=True)
class _AccountDraft:
    name: str
    provider_id: str
    username: str
    server_url: str

    def to_account(self) -> Account:
        return Account(name=self.name, provider_id=self.provider_id, username=self.username)

    def test_params(self, password: str) -> ConnectionTestParams:
        return ConnectionTestParams(
            server_url=self.server_url,
            username=self.username,
            password=password,
            provider_id=self.provider_id,
            account_name=self.name,
        )


def _required(value: str | None, label: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise UserInputError(f"{label} is required")
    return normalized


# ---------------------------------------------------------------------------
# AccountProvisioner
# ---------------------------------------------------------------------------


class AccountProvisioner:
    """Drives the add/remove account flows over explicitly injected stores."""

    def __init__(
        self,
        *,
        providers: ProviderRegistry,
        prompter: Prompter,
        tester: ConnectivityTester,
        credentials: CredentialVault,
        accounts: AccountRegistry,
        server_urls: ServerUrlRegistry,
        oauth_configs: OAuthConfigRegistry,
        authorizer: Authorizer,
        presenter: Presenter,
    ) -> None:
        self._providers = providers
        self._prompter = prompter
        self._tester = tester
        self._credentials = credentials
        self._accounts = accounts
        self._server_urls = server_urls
        self._oauth_configs = oauth_configs
        self._authorizer = authorizer
        self._presenter = presenter

    # ------------------------------------------------------------------
    # add
    # ------------------------------------------------------------------

    async def add(self) -> ProvisioningOutcome:
        """Interactively provision one account.

        Raises
        ------
        UserInputError
            A required answer was blank.
        PersistenceError
            A store failed after the connectivity test passed.
        """
        preset = self._prompter.select_provider(self._providers.list_providers())

        if preset is None:
            provider_id = CUSTOM_PROVIDER_ID
            password_hint = CUSTOM_PASSWORD_HINT
            server_url = self._prompter.input_server_url(CUSTOM_SERVER_URL_HINT)
            username_hint = None
        else:
            provider_id = preset.id
            password_hint = preset.hint
            server_url = preset.server_url or self._prompter.input_server_url(preset.hint)
            username_hint = preset.username_hint

        draft = _AccountDraft(
            server_url=_required(server_url, "Server URL"),
            name=_required(self._prompter.input_account_name(), "Account name"),
            username=_required(self._prompter.input_username(username_hint), "Username"),
            provider_id=provider_id,
        )
        set_account_context(draft.name)
        logger.info("Adding account (provider=%s)", provider_id)

        try:
            if isinstance(preset, OAuth2Preset):
                return await self._add_oauth(draft, preset.oauth_config)
            return await self._add_basic(draft, password_hint)
        finally:
            set_account_context(None)

    async def _add_basic(self, draft: _AccountDraft, hint: str) -> ProvisioningOutcome:
        raw_password = _required(self._prompter.input_password(hint), "Password")
        password = self._providers.normalize_password(draft.provider_id, raw_password)

        result = await self._tester.test(draft.test_params(password))
        if not result.success:
            return self._report_failure(
                draft, ProvisioningStatus.ABORTED, f"Connection failed: {result.error}"
            )

        await self._credentials.set(draft.name, password)
        # A basic-auth account never keeps an OAuth config, even when the name
        # previously belonged to an OAuth2 account.
        if await self._oauth_configs.get(draft.name) is not None:
            await self._oauth_configs.remove(draft.name)
        return await self._commit(draft)

    async def _add_oauth(
        self, draft: _AccountDraft, preset_config: OAuthPresetConfig
    ) -> ProvisioningOutcome:
        client_id = _required(self._prompter.input_client_id(), "Client ID")
        client_secret = _required(self._prompter.input_client_secret(), "Client Secret")

        try:
            tokens = await self._authorizer.authorize(
                OAuthClientConfig(
                    client_id=client_id,
                    client_secret=client_secret,
                    authorization_url=preset_config.authorization_url,
                    token_url=preset_config.token_url,
                    scopes=preset_config.scopes,
                )
            )
        except (AuthorizationError, TokenExchangeError) as exc:
            return self._report_failure(
                draft, ProvisioningStatus.ABORTED, f"OAuth authorization failed: {exc}"
            )

        # The connectivity test authenticates through the stored OAuth config
        # and refresh token, so both are written before it and undone on failure.
        compensations = CompensationLog()
        try:
            await self._write_oauth_config(
                draft.name,
                OAuthAccountConfig(
                    client_id=client_id,
                    client_secret=client_secret,
                    token_url=preset_config.token_url,
                ),
                compensations,
            )
            await self._write_credential(draft.name, tokens.refresh_token, compensations)
            result = await self._tester.test(draft.test_params(tokens.refresh_token))
        except Exception:
            await compensations.rollback()
            raise

        if not result.success:
            failed = await compensations.rollback()
            if failed:
                logger.error("Rollback incomplete for %r: %s", draft.name, ", ".join(failed))
            return self._report_failure(
                draft, ProvisioningStatus.ROLLED_BACK, f"Connection failed: {result.error}"
            )

        return await self._commit(draft)

    async def _write_oauth_config(
        self, name: str, config: OAuthAccountConfig, compensations: CompensationLog
    ) -> None:
        previous = await self._oauth_configs.get(name)
        await self._oauth_configs.save(name, config)
        if previous is None:
            compensations.record(
                f"remove OAuth config for {name!r}", lambda: self._oauth_configs.remove(name)
            )
        else:
            compensations.record(
                f"restore OAuth config for {name!r}",
                lambda: self._oauth_configs.save(name, previous),
            )

    async def _write_credential(
        self, name: str, secret: str, compensations: CompensationLog
    ) -> None:
        previous = await self._credentials.get(name)
        await self._credentials.set(name, secret)
        if previous is None:
            compensations.record(
                f"delete credential for {name!r}", lambda: self._credentials.delete(name)
            )
        else:
            compensations.record(
                f"restore credential for {name!r}", lambda: self._credentials.set(name, previous)
            )

    async def _commit(self, draft: _AccountDraft) -> ProvisioningOutcome:
        await self._accounts.save(draft.to_account())
        await self._server_urls.save(draft.name, draft.server_url)
        await self._set_default_if_first(draft.name)

        message = f'Account "{draft.name}" added successfully.'
        logger.info("Account committed")
        self._presenter.render_success(message)
        return ProvisioningOutcome(ProvisioningStatus.COMMITTED, draft.name, message)

    async def _set_default_if_first(self, name: str) -> None:
        accounts = await self._accounts.load_all()
        if len(accounts) == 1:
            await self._accounts.set_default(name)
            logger.info("Account set as default (first account)")

    def _report_failure(
        self, draft: _AccountDraft, status: ProvisioningStatus, message: str
    ) -> ProvisioningOutcome:
        logger.warning("Add account %s: %s", status.value, message)
        self._presenter.render_error(message)
        return ProvisioningOutcome(status, draft.name, message)

    # ------------------------------------------------------------------
    # remove / list / default
    # ------------------------------------------------------------------

    async def remove(self, name: str) -> None:
        """Delete every trace of *name*.

        Raises
        ------
        AccountNotFoundError
            No account with that name is configured.
        """
        await self._require_account(name)

        await self._credentials.delete(name)
        await self._oauth_configs.remove(name)
        await self._accounts.remove(name)
        await self._server_urls.remove(name)

        logger.info("Removed account %r", name)
        self._presenter.render_success(f'Account "{name}" removed.')

    async def list_accounts(self) -> list[Account]:
        """Render all accounts (default marked); an empty registry is reported as an error."""
        accounts = await self._accounts.load_all()
        if not accounts:
            self._presenter.render_error(
                "No accounts configured. Run 'caldav-cli account add' to add one."
            )
            return []
        self._presenter.render_accounts(accounts, await self._accounts.get_default())
        return accounts

    async def set_default(self, name: str) -> None:
        """Point the default account at *name*, which must exist."""
        await self._require_account(name)
        await self._accounts.set_default(name)
        self._presenter.render_success(f'Default account set to "{name}".')

    async def _require_account(self, name: str) -> Account:
        for account in await self._accounts.load_all():
            if account.name == name:
                return account
        raise AccountNotFoundError(name)
