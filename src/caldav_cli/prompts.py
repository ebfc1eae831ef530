"""Interactive prompts for ``caldav-cli account add``.

Prompts are written to stderr so stdout stays clean for command output.
Required answers are re-asked until non-blank; secrets are read hidden.
"""

from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import urlparse

import click

from caldav_cli.providers import BasicPreset, OAuth2Preset

CUSTOM_CHOICE_LABEL = "Custom CalDAV server"


def _not_blank(label: str):
    def _check(value: str) -> str:
        value = value.strip()
        if not value:
            raise click.BadParameter(f"{label} is required")
        return value

    return _check


def _http_url(value: str) -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise click.BadParameter("Please enter a valid URL (http:// or https://)")
    return value


class ClickPrompter:
    """:class:`~caldav_cli.ports.Prompter` on top of ``click.prompt``."""

    def select_provider(
        self, providers: Sequence[BasicPreset | OAuth2Preset]
    ) -> BasicPreset | OAuth2Preset | None:
        click.echo("Select your calendar provider:", err=True)
        for index, preset in enumerate(providers, start=1):
            click.echo(f"  {index}) {preset.display_name}", err=True)
        custom_index = len(providers) + 1
        click.echo(f"  {custom_index}) {CUSTOM_CHOICE_LABEL}", err=True)

        choice = click.prompt(
            "Provider",
            type=click.IntRange(1, custom_index),
            default=1,
            err=True,
        )
        if choice == custom_index:
            return None
        return providers[choice - 1]

    def input_server_url(self, hint: str) -> str:
        click.echo(hint, err=True)
        return click.prompt("Server URL", value_proc=_http_url, err=True)

    def input_account_name(self) -> str:
        return click.prompt(
            "Account name (e.g. work, personal)",
            value_proc=_not_blank("Account name"),
            err=True,
        )

    def input_username(self, hint: str | None = None) -> str:
        label = f"Username ({hint})" if hint else "Username"
        return click.prompt(label, value_proc=_not_blank("Username"), err=True)

    def input_password(self, hint: str) -> str:
        click.echo(hint, err=True)
        return click.prompt(
            "Password", hide_input=True, value_proc=_not_blank("Password"), err=True
        )

    def input_client_id(self) -> str:
        return click.prompt("OAuth Client ID", value_proc=_not_blank("Client ID"), err=True)

    def input_client_secret(self) -> str:
        return click.prompt(
            "OAuth Client Secret",
            hide_input=True,
            value_proc=_not_blank("Client Secret"),
            err=True,
        )

    def confirm(self, message: str) -> bool:
        return click.confirm(message, default=False, err=True)
