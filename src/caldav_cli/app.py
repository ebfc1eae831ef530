"""Object graph for one CLI invocation.

:func:`build_app` is the only place concrete adapters are chosen; everything
downstream receives its collaborators explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from caldav_cli.caldav_probe import CalDAVConnectivityTester
from caldav_cli.config import Settings
from caldav_cli.oauth import OAuthAuthorizer, TokenExchangeClient
from caldav_cli.oauth.models import OAuthAccountConfig
from caldav_cli.ports import OAuthConfigRegistry, Presenter, Prompter
from caldav_cli.presenters import JsonPresenter, TablePresenter
from caldav_cli.prompts import ClickPrompter
from caldav_cli.providers import ProviderRegistry
from caldav_cli.provisioning import AccountProvisioner
from caldav_cli.storage import (
    ConfigFile,
    JsonAccountRegistry,
    JsonServerUrlRegistry,
    KeyringCredentialVault,
    KeyringOAuthConfigRegistry,
)

logger = logging.getLogger(__name__)


@dataclass
class App:
    providers: ProviderRegistry
    prompter: Prompter
    presenter: Presenter
    provisioner: AccountProvisioner
    oauth_configs: OAuthConfigRegistry
    config_file: ConfigFile | None = None

    async def migrate_legacy_oauth_configs(self) -> int:
        """Move OAuth client settings left in ``config.json`` into the registry.

        Returns the number of entries migrated.  Entries that do not validate
        are dropped with a warning.
        """
        if self.config_file is None:
            return 0

        migrated = 0
        for name, raw in self.config_file.drain_oauth_configs().items():
            try:
                config = OAuthAccountConfig.model_validate(raw)
            except ValidationError:
                logger.warning("Discarding invalid legacy OAuth config for account %r", name)
                continue
            await self.oauth_configs.save(name, config)
            migrated += 1

        if migrated:
            logger.info("Migrated %d OAuth config(s) to the keyring", migrated)
        return migrated


def build_app(settings: Settings, *, json_output: bool = False) -> App:
    """Wire the production adapters for *settings*."""
    providers = ProviderRegistry()
    prompter = ClickPrompter()
    presenter: Presenter = JsonPresenter() if json_output else TablePresenter()

    config_file = ConfigFile(settings.config_file)
    oauth_configs = KeyringOAuthConfigRegistry(settings.keyring_service)

    provisioner = AccountProvisioner(
        providers=providers,
        prompter=prompter,
        tester=CalDAVConnectivityTester(
            providers, oauth_configs, timeout=settings.http_timeout_seconds
        ),
        credentials=KeyringCredentialVault(settings.keyring_service),
        accounts=JsonAccountRegistry(config_file),
        server_urls=JsonServerUrlRegistry(config_file),
        oauth_configs=oauth_configs,
        authorizer=OAuthAuthorizer(
            token_client=TokenExchangeClient(timeout=settings.http_timeout_seconds),
            timeout=settings.oauth_timeout_seconds,
        ),
        presenter=presenter,
    )
    return App(
        providers=providers,
        prompter=prompter,
        presenter=presenter,
        provisioner=provisioner,
        oauth_configs=oauth_configs,
        config_file=config_file,
    )
