"""Built-in catalogue of known CalDAV providers.

Presets are plain data: a closed union over the two auth methods, so the
catalogue stays serializable (``caldav-cli providers --json``).  Provider
specific password clean-up lives in :data:`PASSWORD_NORMALIZERS`, looked up
by provider id.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

CUSTOM_PROVIDER_ID = "custom"


class AuthMethod(StrEnum):
    """How a provider authenticates CalDAV requests."""

    BASIC = "basic"
    OAUTH2 = "oauth2"


class OAuthPresetConfig(BaseModel):
    """Provider endpoints and scopes for the authorization-code flow."""

    model_config = ConfigDict(frozen=True)

    authorization_url: str
    token_url: str
    scopes: tuple[str, ...]


class _PresetBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    server_url: str = ""  # empty → ask the user
    hint: str
    username_hint: str | None = None


class BasicPreset(_PresetBase):
    """Provider that accepts a username and (app) password."""

    auth_method: Literal["basic"] = "basic"


class OAuth2Preset(_PresetBase):
    """Provider that requires an OAuth2 refresh token."""

    auth_method: Literal["oauth2"] = "oauth2"
    oauth_config: OAuthPresetConfig


ProviderPreset = Annotated[BasicPreset | OAuth2Preset, Field(discriminator="auth_method")]

_PRESET_LIST_ADAPTER: TypeAdapter[list[ProviderPreset]] = TypeAdapter(list[ProviderPreset])


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

_PRESET_DATA: list[dict] = [
    {
        "id": "icloud",
        "display_name": "Apple iCloud",
        "server_url": "https://caldav.icloud.com",
        "auth_method": "basic",
        "hint": "Use an app-specific password from appleid.apple.com",
    },
    {
        "id": "google",
        "display_name": "Google Calendar",
        "server_url": "https://apidata.googleusercontent.com/caldav/v2",
        "auth_method": "oauth2",
        "hint": "Create an OAuth client at console.cloud.google.com",
        "username_hint": "full email address, e.g. you@gmail.com",
        "oauth_config": {
            "authorization_url": "https://accounts.google.com/o/oauth2/v2/auth",
            "token_url": "https://oauth2.googleapis.com/token",
            "scopes": ["https://www.googleapis.com/auth/calendar"],
        },
    },
    {
        "id": "yandex",
        "display_name": "Yandex Calendar",
        "server_url": "https://caldav.yandex.ru",
        "auth_method": "basic",
        "hint": "Use an app password from id.yandex.ru/security/app-passwords",
        "username_hint": "full email address, e.g. you@yandex.ru",
    },
    {
        "id": "fastmail",
        "display_name": "Fastmail",
        "server_url": "https://caldav.fastmail.com/dav/calendars",
        "auth_method": "basic",
        "hint": "Use an app password from Settings > Privacy & Security",
    },
    {
        "id": "nextcloud",
        "display_name": "Nextcloud",
        "server_url": "",
        "auth_method": "basic",
        "hint": "Enter your Nextcloud server URL (e.g. https://cloud.example.com/remote.php/dav)",
    },
    {
        "id": "baikal",
        "display_name": "Baikal",
        "server_url": "",
        "auth_method": "basic",
        "hint": "Enter your Baikal server URL (e.g. https://baikal.example.com/dav.php)",
    },
]

PRESETS: tuple[BasicPreset | OAuth2Preset, ...] = tuple(
    _PRESET_LIST_ADAPTER.validate_python(_PRESET_DATA)
)


# ---------------------------------------------------------------------------
# Password normalizers
# ---------------------------------------------------------------------------

_WHITESPACE = re.compile(r"\s+")


def _strip_whitespace(password: str) -> str:
    """App passwords are displayed in space-separated groups; the server wants none."""
    return _WHITESPACE.sub("", password)


PASSWORD_NORMALIZERS: dict[str, Callable[[str], str]] = {
    "icloud": _strip_whitespace,
    "yandex": _strip_whitespace,
}


class ProviderRegistry:
    """Read-only lookup over a preset catalogue."""

    def __init__(
        self,
        presets: tuple[BasicPreset | OAuth2Preset, ...] = PRESETS,
        normalizers: dict[str, Callable[[str], str]] | None = None,
    ) -> None:
        self._presets = presets
        self._by_id = {preset.id: preset for preset in presets}
        self._normalizers = PASSWORD_NORMALIZERS if normalizers is None else normalizers

    def list_providers(self) -> list[BasicPreset | OAuth2Preset]:
        return list(self._presets)

    def get_provider(self, provider_id: str) -> BasicPreset | OAuth2Preset | None:
        return self._by_id.get(provider_id)

    def normalize_password(self, provider_id: str, raw: str) -> str:
        """Apply the provider's password transform; identity when none is registered."""
        normalizer = self._normalizers.get(provider_id)
        return normalizer(raw) if normalizer is not None else raw

    def auth_method(self, provider_id: str) -> AuthMethod:
        """Auth method for *provider_id*; unknown and custom providers use basic auth."""
        preset = self.get_provider(provider_id)
        return AuthMethod(preset.auth_method) if preset is not None else AuthMethod.BASIC
