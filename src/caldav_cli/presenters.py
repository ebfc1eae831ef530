"""Output renderers: human-readable tables and ``--json`` documents.

Results go to stdout, errors to stderr.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

import click

from caldav_cli.models import Account
from caldav_cli.providers import BasicPreset, OAuth2Preset


class TablePresenter:
    """Fixed-width tables with colored status lines."""

    def render_accounts(self, accounts: Sequence[Account], default: str | None) -> None:
        click.echo(f"{'':<2}{'Name':<20} {'Provider':<12} {'Username'}")
        click.echo("-" * 60)
        for account in accounts:
            marker = "*" if account.name == default else ""
            click.echo(
                f"{marker:<2}{account.name:<20} {account.provider_id:<12} {account.username}"
            )

    def render_providers(self, providers: Sequence[BasicPreset | OAuth2Preset]) -> None:
        click.echo(f"{'ID':<12} {'Name':<18} {'Auth':<8} {'Server URL'}")
        click.echo("-" * 80)
        for preset in providers:
            url = preset.server_url or "(ask)"
            click.echo(f"{preset.id:<12} {preset.display_name:<18} {preset.auth_method:<8} {url}")

    def render_success(self, message: str) -> None:
        click.secho(f"✓ {message}", fg="green")

    def render_error(self, message: str) -> None:
        click.secho(f"✗ {message}", fg="red", err=True)


class JsonPresenter:
    """Machine-readable output; one JSON document per call."""

    def render_accounts(self, accounts: Sequence[Account], default: str | None) -> None:
        payload = [
            {**account.model_dump(by_alias=True), "default": account.name == default}
            for account in accounts
        ]
        click.echo(json.dumps(payload, indent=2))

    def render_providers(self, providers: Sequence[BasicPreset | OAuth2Preset]) -> None:
        payload = [preset.model_dump(mode="json") for preset in providers]
        click.echo(json.dumps(payload, indent=2))

    def render_success(self, message: str) -> None:
        click.echo(json.dumps({"status": "success", "message": message}))

    def render_error(self, message: str) -> None:
        click.echo(json.dumps({"status": "error", "message": message}), err=True)
