"""Shared fixtures for the caldav-cli test suite.

The in-memory stores record every mutating call in a shared ``journal`` so
tests can assert write ordering across independent stores.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from caldav_cli.errors import PersistenceError
from caldav_cli.models import Account, ConnectionTestParams, ConnectionTestResult
from caldav_cli.oauth.models import OAuthAccountConfig, OAuthClientConfig, OAuthTokens
from caldav_cli.providers import BasicPreset, OAuth2Preset, ProviderRegistry
from caldav_cli.provisioning import AccountProvisioner

# ---------------------------------------------------------------------------
# Keyring
# ---------------------------------------------------------------------------


class MemoryKeyring(KeyringBackend):
    """Process-local keyring backend."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username) from None


@pytest.fixture
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


@dataclass
class Journal:
    entries: list[str] = field(default_factory=list)

    def add(self, entry: str) -> None:
        self.entries.append(entry)


class InMemoryVault:
    def __init__(self, journal: Journal) -> None:
        self.secrets: dict[str, str] = {}
        self.journal = journal
        self.fail_on_set = False

    async def get(self, name):
        return self.secrets.get(name)

    async def set(self, name, secret):
        if self.fail_on_set:
            raise PersistenceError("vault unavailable")
        self.journal.add(f"credential.set:{name}")
        self.secrets[name] = secret

    async def delete(self, name):
        self.journal.add(f"credential.delete:{name}")
        self.secrets.pop(name, None)


class InMemoryAccounts:
    def __init__(self, journal: Journal) -> None:
        self.accounts: list[Account] = []
        self.default: str | None = None
        self.journal = journal

    async def load_all(self):
        return list(self.accounts)

    async def save(self, account):
        self.journal.add(f"account.save:{account.name}")
        self.accounts = [a for a in self.accounts if a.name != account.name] + [account]

    async def remove(self, name):
        self.journal.add(f"account.remove:{name}")
        self.accounts = [a for a in self.accounts if a.name != name]
        if self.default == name:
            self.default = self.accounts[0].name if self.accounts else None

    async def get_default(self):
        return self.default

    async def set_default(self, name):
        self.journal.add(f"account.default:{name}")
        self.default = name


class InMemoryServerUrls:
    def __init__(self, journal: Journal) -> None:
        self.urls: dict[str, str] = {}
        self.journal = journal

    async def get(self, name):
        return self.urls.get(name)

    async def save(self, name, url):
        self.journal.add(f"server_url.save:{name}")
        self.urls[name] = url

    async def remove(self, name):
        self.journal.add(f"server_url.remove:{name}")
        self.urls.pop(name, None)


class InMemoryOAuthConfigs:
    def __init__(self, journal: Journal) -> None:
        self.configs: dict[str, OAuthAccountConfig] = {}
        self.journal = journal
        self.fail_on_remove = False

    async def get(self, name):
        return self.configs.get(name)

    async def save(self, name, config):
        self.journal.add(f"oauth_config.save:{name}")
        self.configs[name] = config

    async def remove(self, name):
        if self.fail_on_remove:
            raise PersistenceError("oauth config store unavailable")
        self.journal.add(f"oauth_config.remove:{name}")
        self.configs.pop(name, None)


# ---------------------------------------------------------------------------
# Interaction fakes
# ---------------------------------------------------------------------------


@dataclass
class ScriptedPrompter:
    """Answers prompts from preset values and records the hints it was shown."""

    provider_id: str | None = "icloud"
    server_url: str = "https://dav.example.com"
    account_name: str = "work"
    username: str = "user@example.com"
    password: str = "secret-password"
    client_id: str = "client-id"
    client_secret: str = "client-secret"
    confirm_answer: bool = True
    calls: list[tuple[str, str | None]] = field(default_factory=list)

    def select_provider(self, providers: Sequence[BasicPreset | OAuth2Preset]):
        self.calls.append(("select_provider", None))
        if self.provider_id is None:
            return None
        return next(p for p in providers if p.id == self.provider_id)

    def input_server_url(self, hint):
        self.calls.append(("input_server_url", hint))
        return self.server_url

    def input_account_name(self):
        self.calls.append(("input_account_name", None))
        return self.account_name

    def input_username(self, hint=None):
        self.calls.append(("input_username", hint))
        return self.username

    def input_password(self, hint):
        self.calls.append(("input_password", hint))
        return self.password

    def input_client_id(self):
        self.calls.append(("input_client_id", None))
        return self.client_id

    def input_client_secret(self):
        self.calls.append(("input_client_secret", None))
        return self.client_secret

    def confirm(self, message):
        self.calls.append(("confirm", message))
        return self.confirm_answer

    def prompted(self, name: str) -> bool:
        return any(call == name for call, _ in self.calls)

    def hint_for(self, name: str) -> str | None:
        return next(hint for call, hint in self.calls if call == name)


@dataclass
class RecordingPresenter:
    successes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    rendered_accounts: list[tuple[list[Account], str | None]] = field(default_factory=list)
    rendered_providers: list[list] = field(default_factory=list)

    def render_accounts(self, accounts, default):
        self.rendered_accounts.append((list(accounts), default))

    def render_providers(self, providers):
        self.rendered_providers.append(list(providers))

    def render_success(self, message):
        self.successes.append(message)

    def render_error(self, message):
        self.errors.append(message)


class FakeTester:
    """Connectivity tester returning a canned result; snapshots stores when called."""

    def __init__(self, journal: Journal, result: ConnectionTestResult | None = None) -> None:
        self.result = result or ConnectionTestResult.ok()
        self.journal = journal
        self.calls: list[ConnectionTestParams] = []
        self.on_test: Callable[[ConnectionTestParams], None] | None = None

    async def test(self, params):
        self.journal.add(f"test:{params.account_name}")
        self.calls.append(params)
        if self.on_test is not None:
            self.on_test(params)
        return self.result


class FakeAuthorizer:
    def __init__(self, journal: Journal) -> None:
        self.journal = journal
        self.error: Exception | None = None
        self.configs: list[OAuthClientConfig] = []
        self.tokens = OAuthTokens(
            access_token="access-token", refresh_token="refresh-token", expiration=0
        )

    async def authorize(self, config):
        self.journal.add("authorize")
        self.configs.append(config)
        if self.error is not None:
            raise self.error
        return self.tokens


@dataclass
class ProvisioningHarness:
    journal: Journal
    credentials: InMemoryVault
    accounts: InMemoryAccounts
    server_urls: InMemoryServerUrls
    oauth_configs: InMemoryOAuthConfigs
    prompter: ScriptedPrompter
    presenter: RecordingPresenter
    tester: FakeTester
    authorizer: FakeAuthorizer
    providers: ProviderRegistry

    def build(self) -> AccountProvisioner:
        return AccountProvisioner(
            providers=self.providers,
            prompter=self.prompter,
            tester=self.tester,
            credentials=self.credentials,
            accounts=self.accounts,
            server_urls=self.server_urls,
            oauth_configs=self.oauth_configs,
            authorizer=self.authorizer,
            presenter=self.presenter,
        )

    def writes(self) -> list[str]:
        """Journal entries that mutated a store."""
        return [e for e in self.journal.entries if not e.startswith(("test:", "authorize"))]


@pytest.fixture
def harness() -> ProvisioningHarness:
    journal = Journal()
    return ProvisioningHarness(
        journal=journal,
        credentials=InMemoryVault(journal),
        accounts=InMemoryAccounts(journal),
        server_urls=InMemoryServerUrls(journal),
        oauth_configs=InMemoryOAuthConfigs(journal),
        prompter=ScriptedPrompter(),
        presenter=RecordingPresenter(),
        tester=FakeTester(journal),
        authorizer=FakeAuthorizer(journal),
        providers=ProviderRegistry(),
    )
