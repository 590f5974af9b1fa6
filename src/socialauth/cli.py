"""socialauth CLI - inspect provider configuration."""

from __future__ import annotations

import logging
import sys

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from socialauth.core.config import SocialAuthConfig, get_config
from socialauth.errors import NotConfiguredError
from socialauth.providers.registry import PROVIDERS, create_client

console = Console()

LOG_LEVELS = ["debug", "info", "warning", "error"]


def _configure_logging(log_level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
    )


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="warning",
    help="Log level (default: warning)",
)
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str):
    """socialauth - Drupal and Instagram login over OAuth2.

    Settings come from SOCIALAUTH_* environment variables, a .env file,
    or a YAML/TOML file passed with --config.

    Examples:

        socialauth providers

        socialauth --config site.yaml authorize-url drupal
    """
    _configure_logging(log_level)

    if config_file:
        try:
            config = SocialAuthConfig.from_file(config_file)
        except (OSError, ValueError) as e:
            console.print(f"[red]Failed to load config: {escape(str(e))}[/red]")
            sys.exit(1)
    else:
        config = get_config()

    ctx.obj = config


@main.command()
@click.pass_obj
def providers(config: SocialAuthConfig):
    """List registered providers and the values to register at each one."""
    site = config.site
    table = Table()
    table.add_column("Provider", style="cyan")
    table.add_column("Plugin", style="dim")
    table.add_column("Configured")
    table.add_column("Authorized redirect URI")
    table.add_column("JavaScript origin")

    for provider_id, definition in PROVIDERS.items():
        try:
            create_client(provider_id, config)
            configured = "[green]yes[/green]"
        except NotConfiguredError:
            configured = "[red]no[/red]"

        table.add_row(
            definition.label,
            definition.plugin_id,
            configured,
            site.redirect_uri(provider_id) if site.base_url else "(set SOCIALAUTH_BASE_URL)",
            site.javascript_origin() or "-",
        )

    console.print(table)


@main.command("authorize-url")
@click.argument("provider", type=click.Choice(sorted(PROVIDERS)))
@click.pass_obj
def authorize_url(config: SocialAuthConfig, provider: str):
    """Print an authorization URL and its state, without calling the provider."""
    definition = PROVIDERS[provider]
    try:
        client = create_client(provider, config)
    except NotConfiguredError:
        console.print(
            f"[red]Social Auth {definition.label} not configured properly. "
            "Contact site administrator.[/red]"
        )
        sys.exit(1)

    url, state = client.build_authorization_url()
    console.print(f"[bold]URL:[/bold] {url}", soft_wrap=True)
    console.print(f"[bold]State:[/bold] {state}")


@main.command()
def version():
    """Show version information."""
    from socialauth import __version__

    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


if __name__ == "__main__":
    main()
