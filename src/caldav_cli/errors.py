"""Exception hierarchy for caldav-cli.

Every failure the provisioning flow can report derives from
:class:`CaldavCliError`.  Messages are safe to print and log: they name the
failing step but never include passwords, refresh tokens, or client secrets.
"""

from __future__ import annotations


class CaldavCliError(Exception):
    """Base class for all caldav-cli failures."""


class ConfigError(CaldavCliError):
    """Raised when CLI settings are missing, malformed, or invalid."""


class UserInputError(CaldavCliError):
    """Raised when a required interactive field is empty or invalid."""


class ConnectivityError(CaldavCliError):
    """Raised when the remote CalDAV service rejects or cannot be reached."""


class PersistenceError(CaldavCliError):
    """Raised when an underlying store (file, keyring) is unavailable."""


class AccountNotFoundError(CaldavCliError):
    """Raised when an operation names an account that is not configured."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Account "{name}" not found.')


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationError(CaldavCliError):
    """Raised when the interactive OAuth2 authorization cannot complete."""


class PortAllocationError(AuthorizationError):
    """Raised when no local port can be reserved for the OAuth redirect."""


class CallbackServerError(AuthorizationError):
    """Raised when the local callback server cannot start or dies early."""


class BrowserLaunchError(AuthorizationError):
    """Raised when the system browser cannot be launched.

    Informational only: the authorization URL is always printed as well, so
    the flow keeps waiting for the redirect.
    """


class AuthorizationDeniedError(AuthorizationError):
    """Raised when the provider redirects back with an ``error`` parameter."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"OAuth authorization denied: {reason}")


class AuthorizationTimeoutError(AuthorizationError):
    """Raised when no redirect reaches the local listener in time."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"OAuth authorization timed out ({timeout:g}s)")


# ---------------------------------------------------------------------------
# Token exchange
# ---------------------------------------------------------------------------


class TokenExchangeError(CaldavCliError):
    """Raised when the authorization-code → token exchange fails.

    ``status_code`` is ``None`` for transport-level failures.
    """

    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"Token exchange failed: {body}")
        else:
            super().__init__(f"Token exchange failed ({status_code}): {body}")


class MissingRefreshTokenError(TokenExchangeError):
    """Raised when the token endpoint grants no refresh token."""

    def __init__(self) -> None:
        super().__init__(
            200,
            "No refresh token received. "
            "Ensure the OAuth consent screen requests offline access.",
        )

    def __str__(self) -> str:
        return self.body
