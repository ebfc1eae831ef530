"""OAuth2 Authorization Code + PKCE support for desktop (loopback) clients."""

from caldav_cli.oauth.authorizer import OAuthAuthorizer, build_authorization_url
from caldav_cli.oauth.callback import (
    CallbackListener,
    await_authorization_code,
    reserve_local_port,
)
from caldav_cli.oauth.models import (
    OAuthAccountConfig,
    OAuthClientConfig,
    OAuthTokens,
    PkceChallenge,
    RawTokenResponse,
)
from caldav_cli.oauth.pkce import derive_challenge, generate_pkce_challenge, generate_verifier
from caldav_cli.oauth.token_exchange import TokenExchangeClient

__all__ = [
    "CallbackListener",
    "OAuthAccountConfig",
    "OAuthAuthorizer",
    "OAuthClientConfig",
    "OAuthTokens",
    "PkceChallenge",
    "RawTokenResponse",
    "TokenExchangeClient",
    "await_authorization_code",
    "build_authorization_url",
    "derive_challenge",
    "generate_pkce_challenge",
    "generate_verifier",
    "reserve_local_port",
]
