"""Authorization-code → token exchange against a provider's token endpoint."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from caldav_cli.errors import MissingRefreshTokenError, TokenExchangeError
from caldav_cli.oauth.models import OAuthClientConfig, RawTokenResponse

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

_MAX_ERROR_BODY_CHARS = 500


class TokenExchangeClient:
    """Performs the ``grant_type=authorization_code`` POST.

    Pass *http_client* to reuse a shared ``httpx.AsyncClient`` (tests inject
    one backed by ``httpx.MockTransport``); otherwise a client is created per
    exchange and closed afterwards.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._http_client = http_client
        self._timeout = timeout

    async def exchange(
        self,
        config: OAuthClientConfig,
        code: str,
        verifier: str,
        redirect_uri: str,
    ) -> RawTokenResponse:
        """Exchange *code* for tokens, proving possession of *verifier*.

        Raises
        ------
        TokenExchangeError
            Transport failure, non-2xx status, or an unparseable body.
        MissingRefreshTokenError
            The provider granted no refresh token (offline access refused).
        """
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "code_verifier": verifier,
        }

        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, config.token_url, payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await self._post(client, config.token_url, payload)
        except httpx.TransportError as exc:
            raise TokenExchangeError(None, f"Network error during token exchange: {exc}") from exc

        if not response.is_success:
            body = response.text[:_MAX_ERROR_BODY_CHARS]
            logger.warning("Token endpoint returned HTTP %d", response.status_code)
            raise TokenExchangeError(response.status_code, body)

        try:
            tokens = RawTokenResponse.model_validate(response.json())
        except ValueError as exc:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            detail = "invalid token payload" if isinstance(exc, ValidationError) else str(exc)
            raise TokenExchangeError(
                response.status_code, f"Invalid token response: {detail}"
            ) from exc

        if tokens.refresh_token is None:
            logger.warning("Token response did not include a refresh token")
            raise MissingRefreshTokenError()

        logger.info("Authorization code exchanged (scope=%s)", tokens.scope)
        return tokens

    @staticmethod
    async def _post(
        client: httpx.AsyncClient, url: str, payload: dict[str, str]
    ) -> httpx.Response:
        return await client.post(url, data=payload, headers={"Accept": "application/json"})
