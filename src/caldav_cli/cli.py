"""CLI for caldav-cli: provision and manage CalDAV accounts."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import click

from caldav_cli import __version__
from caldav_cli.app import App, build_app
from caldav_cli.config import Settings, load_settings
from caldav_cli.core.logging import configure_logging
from caldav_cli.errors import CaldavCliError, ConfigError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

AppFactory = Callable[..., App]


@click.group()
@click.version_option(version=__version__, prog_name="caldav-cli")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level for stderr diagnostics (default from settings: WARNING)",
)
@click.option(
    "--log-format",
    type=click.Choice(("text", "json")),
    default=None,
    help="Diagnostic log format",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """caldav-cli: manage CalDAV calendar accounts."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("app_factory", build_app)

    settings = ctx.obj.get("settings")
    if settings is None:
        try:
            settings = load_settings()
        except ConfigError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
            sys.exit(1)
        ctx.obj["settings"] = settings

    configure_logging(
        level=(log_level or settings.logging.level).upper(),
        fmt=log_format or settings.logging.format,
        log_file=settings.logging.file,
    )


def _app(ctx: click.Context, *, json_output: bool = False) -> App:
    settings: Settings = ctx.obj["settings"]
    factory: AppFactory = ctx.obj["app_factory"]
    return factory(settings, json_output=json_output)


def _run(app: App, operation: Callable[[], Awaitable[Any]]) -> Any:
    """Run one async operation; report domain errors and exit 1."""

    async def _main() -> Any:
        await app.migrate_legacy_oauth_configs()
        return await operation()

    try:
        return asyncio.run(_main())
    except CaldavCliError as exc:
        logger.debug("Command failed", exc_info=True)
        app.presenter.render_error(str(exc))
        sys.exit(1)


# ---------------------------------------------------------------------------
# account
# ---------------------------------------------------------------------------


@cli.group()
def account() -> None:
    """Add, list, remove accounts and choose the default."""


@account.command("add")
@click.pass_context
def account_add(ctx: click.Context) -> None:
    """Interactively add a CalDAV account."""
    app = _app(ctx)
    outcome = _run(app, app.provisioner.add)
    if not outcome.committed:
        sys.exit(1)


@account.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def account_list(ctx: click.Context, json_output: bool) -> None:
    """List configured accounts; the default is marked with *."""
    app = _app(ctx, json_output=json_output)
    _run(app, app.provisioner.list_accounts)


@account.command("remove")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def account_remove(ctx: click.Context, name: str, yes: bool) -> None:
    """Remove account NAME and its stored credentials."""
    app = _app(ctx)
    if not yes and not app.prompter.confirm(
        f'Remove account "{name}" and its stored credentials?'
    ):
        click.echo("Aborted.", err=True)
        return
    _run(app, lambda: app.provisioner.remove(name))


@account.command("default")
@click.argument("name")
@click.pass_context
def account_default(ctx: click.Context, name: str) -> None:
    """Make NAME the default account."""
    app = _app(ctx)
    _run(app, lambda: app.provisioner.set_default(name))


# ---------------------------------------------------------------------------
# providers
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def providers(ctx: click.Context, json_output: bool) -> None:
    """List built-in provider presets."""
    app = _app(ctx, json_output=json_output)
    app.presenter.render_providers(app.providers.list_providers())


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
