"""CalDAV connectivity probe.

A probe succeeds when the server accepts the credentials and returns the
principal's calendar collection.  OAuth2 accounts first trade the stored
refresh token for a short-lived access token at the provider's token
endpoint, then authenticate with ``Authorization: Bearer``.

The ``caldav`` library is synchronous, so discovery runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import caldav
import httpx

from caldav_cli.core.logging import redact_secrets
from caldav_cli.errors import ConnectivityError
from caldav_cli.models import ConnectionTestParams, ConnectionTestResult
from caldav_cli.oauth.models import OAuthAccountConfig
from caldav_cli.ports import OAuthConfigRegistry
from caldav_cli.providers import AuthMethod, ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return " ".join(value.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "Request failed without an error payload"


def _describe(exc: BaseException) -> str:
    message = str(exc) or type(exc).__name__
    if exc.__cause__ is not None:
        message = f"{message} (cause: {exc.__cause__})"
    return redact_secrets(message)


class CalDAVConnectivityTester:
    """:class:`~caldav_cli.ports.ConnectivityTester` backed by ``caldav``."""

    def __init__(
        self,
        providers: ProviderRegistry,
        oauth_configs: OAuthConfigRegistry,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client_factory: Callable[..., Any] = caldav.DAVClient,
    ) -> None:
        self._providers = providers
        self._oauth_configs = oauth_configs
        self._http_client = http_client
        self._timeout = timeout
        self._client_factory = client_factory

    async def test(self, params: ConnectionTestParams) -> ConnectionTestResult:
        try:
            client_kwargs = await self._auth_kwargs(params)
            count = await asyncio.to_thread(
                self._discover_calendars, params.server_url, client_kwargs
            )
        except Exception as exc:
            error = _describe(exc)
            logger.info("Connectivity test failed for %r: %s", params.account_name, error)
            return ConnectionTestResult.failed(error)

        logger.info("Connectivity test passed for %r (%d calendars)", params.account_name, count)
        return ConnectionTestResult.ok()

    async def _auth_kwargs(self, params: ConnectionTestParams) -> dict[str, Any]:
        if self._providers.auth_method(params.provider_id) is not AuthMethod.OAUTH2:
            return {"username": params.username, "password": params.password}

        config = await self._oauth_configs.get(params.account_name)
        if config is None:
            raise ConnectivityError(
                f'No OAuth configuration found for account "{params.account_name}"'
            )
        access_token = await self._refresh_access_token(config, params.password)
        return {"headers": {"Authorization": f"Bearer {access_token}"}}

    def _discover_calendars(self, url: str, client_kwargs: dict[str, Any]) -> int:
        client = self._client_factory(url=url, timeout=self._timeout, **client_kwargs)
        principal = client.principal()
        return len(principal.calendars())

    async def _refresh_access_token(self, config: OAuthAccountConfig, refresh_token: str) -> str:
        data = {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        headers = {"Accept": "application/json"}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    config.token_url, data=data, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(config.token_url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"OAuth token refresh request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise ConnectivityError(
                f"OAuth token refresh failed ({response.status_code}): "
                f"{_safe_error_message(response)}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConnectivityError("OAuth token endpoint returned invalid JSON") from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token.strip():
            raise ConnectivityError("OAuth token response is missing a non-empty access_token")
        return access_token.strip()
