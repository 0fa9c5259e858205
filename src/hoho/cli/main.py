"""Hoho CLI -- run and check the interaction relay.

Thin wrapper around the app factory using click.
"""

from __future__ import annotations

import click

from hoho.protocol.errors import ConfigurationError
from hoho.relay.config import Settings


def _error(msg: str) -> None:
    """Print an error message to stderr and exit 1."""
    click.echo(msg, err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="hoho-relay")
def cli() -> None:
    """Hoho -- chat interaction relay with deferred AI answers."""


@cli.command("check-config")
def check_config() -> None:
    """Validate environment configuration and exit."""
    try:
        settings = Settings()
        settings.validate()
    except ConfigurationError as exc:
        _error(f"Configuration error: {exc}")
    click.echo("Configuration OK")
    click.echo(f"  AI bridge:  {settings.ai_bridge_url}")
    click.echo(f"  Commands:   {', '.join(settings.commands)}")
    click.echo(f"  Follow-up:  {settings.followup_mode}")
    click.echo(f"  Webhook:    {'configured' if settings.webhook_url else 'not configured'}")


@cli.command()
@click.option("--host", default=None, help="Listen address (default: HOHO_HOST).")
@click.option("--port", default=None, type=int, help="Listen port (default: HOHO_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Run the relay server."""
    import uvicorn

    from hoho.relay.app import create_app

    try:
        settings = Settings()
        app = create_app(settings)
    except ConfigurationError as exc:
        _error(f"Configuration error: {exc}")
        return

    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
