"""Tests for the provider preset catalogue."""

from __future__ import annotations

import pytest

from caldav_cli.providers import (
    PRESETS,
    AuthMethod,
    BasicPreset,
    OAuth2Preset,
    ProviderPreset,
    ProviderRegistry,
)

pytestmark = pytest.mark.unit


class TestCatalogue:
    def test_stable_order(self):
        ids = [preset.id for preset in ProviderRegistry().list_providers()]
        assert ids == ["icloud", "google", "yandex", "fastmail", "nextcloud", "baikal"]

    def test_only_google_is_oauth(self):
        oauth = [p.id for p in PRESETS if isinstance(p, OAuth2Preset)]
        assert oauth == ["google"]

    def test_google_oauth_config(self):
        google = ProviderRegistry().get_provider("google")
        assert isinstance(google, OAuth2Preset)
        assert google.oauth_config.token_url == "https://oauth2.googleapis.com/token"
        assert google.oauth_config.scopes == ("https://www.googleapis.com/auth/calendar",)

    def test_self_hosted_presets_ask_for_url(self):
        registry = ProviderRegistry()
        assert registry.get_provider("nextcloud").server_url == ""
        assert registry.get_provider("baikal").server_url == ""

    def test_presets_serialize_and_reload(self):
        from pydantic import TypeAdapter

        adapter = TypeAdapter(list[ProviderPreset])
        dumped = adapter.dump_python(list(PRESETS), mode="json")
        assert tuple(adapter.validate_python(dumped)) == PRESETS


class TestRegistry:
    def test_unknown_provider(self):
        assert ProviderRegistry().get_provider("outlook") is None

    @pytest.mark.parametrize(
        ("provider_id", "expected"),
        [
            ("google", AuthMethod.OAUTH2),
            ("icloud", AuthMethod.BASIC),
            ("custom", AuthMethod.BASIC),
            ("unknown", AuthMethod.BASIC),
        ],
    )
    def test_auth_method(self, provider_id, expected):
        assert ProviderRegistry().auth_method(provider_id) is expected

    @pytest.mark.parametrize("provider_id", ["icloud", "yandex"])
    def test_whitespace_is_stripped_for_app_passwords(self, provider_id):
        normalized = ProviderRegistry().normalize_password(provider_id, "abcd efgh\tijkl mnop")
        assert normalized == "abcdefghijklmnop"

    @pytest.mark.parametrize("provider_id", ["fastmail", "google", "custom", "unknown"])
    def test_identity_without_normalizer(self, provider_id):
        assert ProviderRegistry().normalize_password(provider_id, "a b c") == "a b c"

    def test_custom_catalogue(self):
        preset = BasicPreset(id="local", display_name="Local", hint="h")
        registry = ProviderRegistry(presets=(preset,), normalizers={"local": str.upper})

        assert registry.list_providers() == [preset]
        assert registry.normalize_password("local", "pw") == "PW"
