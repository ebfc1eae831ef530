"""Account and connectivity-test models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """A configured calendar account; ``name`` is the unique, user-chosen key."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    provider_id: str = Field(min_length=1, alias="providerId")
    username: str = Field(min_length=1)


class ConnectionTestParams(BaseModel):
    """Input to a connectivity test.

    ``password`` holds the refresh token for OAuth2 providers.
    """

    model_config = ConfigDict(frozen=True)

    server_url: str
    username: str
    password: str = Field(repr=False)
    provider_id: str
    account_name: str


class ConnectionTestResult(BaseModel):
    """Outcome of a connectivity test; ``error`` is set only on failure."""

    model_config = ConfigDict(frozen=True)

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> ConnectionTestResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> ConnectionTestResult:
        return cls(success=False, error=error)
