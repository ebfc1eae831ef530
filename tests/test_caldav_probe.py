"""Tests for the CalDAV connectivity probe."""

from __future__ import annotations

import httpx
import pytest

from caldav_cli.caldav_probe import CalDAVConnectivityTester
from caldav_cli.models import ConnectionTestParams
from caldav_cli.oauth.models import OAuthAccountConfig
from caldav_cli.providers import ProviderRegistry

pytestmark = pytest.mark.unit

TOKEN_URL = "https://oauth2.example.com/token"


class FakeOAuthConfigs:
    def __init__(self, configs=None):
        self.configs = configs or {}

    async def get(self, name):
        return self.configs.get(name)

    async def save(self, name, config):
        self.configs[name] = config

    async def remove(self, name):
        self.configs.pop(name, None)


class FakeDAVClient:
    """Stand-in for ``caldav.DAVClient`` recording its constructor kwargs."""

    instances: list[FakeDAVClient] = []
    calendar_names: list[str] = ["personal", "work"]
    error: Exception | None = None

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        FakeDAVClient.instances.append(self)

    def principal(self):
        if FakeDAVClient.error is not None:
            raise FakeDAVClient.error
        return self

    def calendars(self):
        return list(self.calendar_names)


@pytest.fixture(autouse=True)
def _reset_fake_client():
    FakeDAVClient.instances = []
    FakeDAVClient.error = None
    yield


def _params(provider_id="icloud", password="app-password"):
    return ConnectionTestParams(
        server_url="https://caldav.example.com",
        username="user@example.com",
        password=password,
        provider_id=provider_id,
        account_name="work",
    )


def _tester(oauth_configs=None, handler=None):
    http_client = None
    if handler is not None:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CalDAVConnectivityTester(
        ProviderRegistry(),
        oauth_configs or FakeOAuthConfigs(),
        http_client=http_client,
        timeout=5.0,
        client_factory=FakeDAVClient,
    )


# ---------------------------------------------------------------------------
# Basic auth
# ---------------------------------------------------------------------------


class TestBasicAuth:
    async def test_success(self):
        result = await _tester().test(_params())

        assert result.success is True
        assert result.error is None
        (client,) = FakeDAVClient.instances
        assert client.kwargs == {
            "url": "https://caldav.example.com",
            "timeout": 5.0,
            "username": "user@example.com",
            "password": "app-password",
        }

    async def test_custom_provider_uses_basic_auth(self):
        await _tester().test(_params(provider_id="custom"))
        assert FakeDAVClient.instances[0].kwargs["username"] == "user@example.com"

    async def test_server_error_is_reported_not_raised(self):
        FakeDAVClient.error = RuntimeError("401 Unauthorized")

        result = await _tester().test(_params())

        assert result.success is False
        assert result.error == "401 Unauthorized"

    async def test_error_cause_is_included(self):
        try:
            raise ConnectionError("connection refused")
        except ConnectionError as cause:
            error = RuntimeError("discovery failed")
            error.__cause__ = cause
        FakeDAVClient.error = error

        result = await _tester().test(_params())

        assert result.error == "discovery failed (cause: connection refused)"

    async def test_secret_values_are_redacted_from_errors(self):
        FakeDAVClient.error = RuntimeError("bad request password=app-password")

        result = await _tester().test(_params())

        assert "app-password" not in result.error


# ---------------------------------------------------------------------------
# OAuth2
# ---------------------------------------------------------------------------


class TestOAuth:
    @pytest.fixture
    def oauth_configs(self):
        return FakeOAuthConfigs(
            {
                "work": OAuthAccountConfig(
                    client_id="cid", client_secret="csecret", token_url=TOKEN_URL
                )
            }
        )

    async def test_refresh_then_bearer(self, oauth_configs):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(200, json={"access_token": "fresh-access", "expires_in": 3600})

        result = await _tester(oauth_configs, handler).test(
            _params(provider_id="google", password="refresh-token")
        )

        assert result.success is True
        assert seen["url"] == TOKEN_URL
        assert seen["body"] == {
            "client_id": "cid",
            "client_secret": "csecret",
            "refresh_token": "refresh-token",
            "grant_type": "refresh_token",
        }
        (client,) = FakeDAVClient.instances
        assert client.kwargs["headers"] == {"Authorization": "Bearer fresh-access"}
        assert "password" not in client.kwargs

    async def test_missing_oauth_config(self):
        result = await _tester().test(_params(provider_id="google"))

        assert result.success is False
        assert result.error == 'No OAuth configuration found for account "work"'
        assert FakeDAVClient.instances == []

    async def test_refresh_rejected(self, oauth_configs):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        result = await _tester(oauth_configs, handler).test(_params(provider_id="google"))

        assert result.success is False
        assert result.error == "OAuth token refresh failed (400): invalid_grant"
        assert FakeDAVClient.instances == []

    async def test_refresh_without_access_token(self, oauth_configs):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "Bearer"})

        result = await _tester(oauth_configs, handler).test(_params(provider_id="google"))

        assert result.success is False
        assert "access_token" in result.error

    async def test_refresh_network_error(self, oauth_configs):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        result = await _tester(oauth_configs, handler).test(_params(provider_id="google"))

        assert result.success is False
        assert result.error.startswith("OAuth token refresh request failed")
