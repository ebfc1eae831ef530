"""Pydantic models for the OAuth2 authorization flow.

Secret-bearing models redact their secrets in ``repr``/``str`` so they can
be logged safely.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class _SecretRedactingModel(BaseModel):
    """Base that masks the fields named in ``_secret_fields`` in repr/str."""

    _secret_fields: ClassVar[tuple[str, ...]] = ()

    def __repr__(self) -> str:
        parts = []
        for name in type(self).model_fields:
            value = "<REDACTED>" if name in self._secret_fields else repr(getattr(self, name))
            parts.append(f"{name}={value}")
        return f"{type(self).__name__}({', '.join(parts)})"

    # Pydantic's default __str__ would expose field values verbatim.
    __str__ = __repr__


class OAuthClientConfig(_SecretRedactingModel):
    """Everything needed to run one PKCE authorization against a provider."""

    model_config = ConfigDict(extra="forbid", frozen=True)
    _secret_fields: ClassVar[tuple[str, ...]] = ("client_secret",)

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    authorization_url: str = Field(min_length=1)
    token_url: str = Field(min_length=1)
    scopes: tuple[str, ...] = ()

    @field_validator("client_id", "client_secret")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized


class OAuthAccountConfig(_SecretRedactingModel):
    """OAuth client settings persisted per account for later token refreshes."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)
    _secret_fields: ClassVar[tuple[str, ...]] = ("client_secret",)

    client_id: str = Field(min_length=1, alias="clientId")
    client_secret: str = Field(min_length=1, alias="clientSecret")
    token_url: str = Field(min_length=1, alias="tokenUrl")


class PkceChallenge(BaseModel):
    """A code verifier and its S256 challenge; never persisted."""

    model_config = ConfigDict(frozen=True)

    verifier: str = Field(min_length=43, max_length=128)
    challenge: str
    method: str = "S256"

    def __repr__(self) -> str:
        return f"PkceChallenge(verifier=<REDACTED>, challenge={self.challenge!r})"

    __str__ = __repr__


class RawTokenResponse(_SecretRedactingModel):
    """Token endpoint payload as returned by the provider."""

    model_config = ConfigDict(extra="ignore")
    _secret_fields: ClassVar[tuple[str, ...]] = ("access_token", "refresh_token")

    access_token: str
    refresh_token: str | None = None
    expires_in: int = 3600
    token_type: str | None = None
    scope: str | None = None

    @field_validator("refresh_token")
    @classmethod
    def _blank_refresh_token_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("expires_in", mode="before")
    @classmethod
    def _coerce_expires_in(cls, value: object) -> int:
        if isinstance(value, bool):
            return 3600
        if isinstance(value, int | float):
            return int(value) if value > 0 else 3600
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip()) or 3600
        return 3600


class OAuthTokens(_SecretRedactingModel):
    """Result of a completed authorization.

    ``expiration`` is an epoch timestamp in milliseconds.
    """

    model_config = ConfigDict(frozen=True)
    _secret_fields: ClassVar[tuple[str, ...]] = ("access_token", "refresh_token")

    access_token: str
    refresh_token: str = Field(min_length=1)
    expiration: int
