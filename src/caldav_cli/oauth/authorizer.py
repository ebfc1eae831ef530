"""End-to-end OAuth2 Authorization Code + PKCE flow for a desktop CLI.

Steps for one :meth:`OAuthAuthorizer.authorize` call:

1. Generate a PKCE verifier/challenge.
2. Reserve a loopback port; ``redirect_uri = http://127.0.0.1:{port}``.
3. Build the provider authorization URL (``access_type=offline`` and
   ``prompt=consent`` so a refresh token is issued on every run).
4. Start the callback listener, then try to open the browser while the
   listener is already serving.  A browser failure is only reported: the URL
   is printed so the user can open it manually.
5. Exchange the received code with the same verifier and redirect URI.

Nothing is retried; any failure propagates to the caller unchanged.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from urllib.parse import urlencode

import click

from caldav_cli.errors import BrowserLaunchError
from caldav_cli.oauth.browser import open_browser
from caldav_cli.oauth.callback import (
    CALLBACK_HOST,
    DEFAULT_TIMEOUT_SECONDS,
    CallbackListener,
    reserve_local_port,
)
from caldav_cli.oauth.models import OAuthClientConfig, OAuthTokens, PkceChallenge
from caldav_cli.oauth.pkce import generate_pkce_challenge
from caldav_cli.oauth.token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)


def _notify_stderr(message: str) -> None:
    click.echo(message, err=True)


def build_authorization_url(
    config: OAuthClientConfig,
    pkce: PkceChallenge,
    redirect_uri: str,
) -> str:
    """Return the provider consent URL for one authorization attempt."""
    params = {
        "client_id": config.client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "code_challenge": pkce.challenge,
        "code_challenge_method": pkce.method,
        "access_type": "offline",
        "prompt": "consent",  # Force refresh token to be returned
    }
    separator = "&" if "?" in config.authorization_url else "?"
    return f"{config.authorization_url}{separator}{urlencode(params)}"


class OAuthAuthorizer:
    """Composes PKCE, the loopback listener, the browser and the token exchange.

    Every collaborator is injectable so the flow can be driven without a real
    browser or network.
    """

    def __init__(
        self,
        *,
        token_client: TokenExchangeClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        host: str = CALLBACK_HOST,
        browser_opener: Callable[[str], Awaitable[None]] = open_browser,
        port_reserver: Callable[[str], int] = reserve_local_port,
        notify: Callable[[str], None] = _notify_stderr,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._token_client = token_client or TokenExchangeClient()
        self._timeout = timeout
        self._host = host
        self._open_browser = browser_opener
        self._reserve_port = port_reserver
        self._notify = notify
        self._clock = clock

    async def authorize(self, config: OAuthClientConfig) -> OAuthTokens:
        """Run the full browser authorization and return fresh tokens.

        Raises
        ------
        PortAllocationError, CallbackServerError
            The loopback listener could not be set up.
        AuthorizationDeniedError, AuthorizationTimeoutError
            The user denied consent or never completed it.
        TokenExchangeError, MissingRefreshTokenError
            The provider rejected the code or granted no refresh token.
        """
        pkce = generate_pkce_challenge()
        port = self._reserve_port(self._host)

        async with CallbackListener(port, host=self._host, timeout=self._timeout) as listener:
            redirect_uri = listener.redirect_uri
            authorization_url = build_authorization_url(config, pkce, redirect_uri)

            self._notify("Opening browser for OAuth authorization...")
            self._notify(f"If the browser doesn't open, visit: {authorization_url}")
            logger.info(
                "OAuth authorization started (client_id=%s, port=%d)", config.client_id, port
            )

            try:
                await self._open_browser(authorization_url)
            except BrowserLaunchError as exc:
                logger.warning("Browser launch failed: %s", exc)
                self._notify(f"{exc}. Open the URL above manually.")

            code = await listener.wait_for_code()

        raw = await self._token_client.exchange(config, code, pkce.verifier, redirect_uri)
        expiration = int(self._clock() * 1000) + raw.expires_in * 1000

        logger.info("OAuth authorization complete (client_id=%s)", config.client_id)
        return OAuthTokens(
            access_token=raw.access_token,
            refresh_token=raw.refresh_token,
            expiration=expiration,
        )
