"""Command-line interface for Matrix login negotiation."""

import asyncio
import logging
import sys

import click

from .events import ErrorOccurred, LoginEvent
from .state import LoginMethod

logger = logging.getLogger("matrix_login")


def _report_errors(event: LoginEvent) -> None:
    if isinstance(event, ErrorOccurred):
        click.secho(f"✗ {event.message}", fg="red", err=True)


def _controller():
    from .controller import LoginController
    from .transport import MatrixTransport

    controller = LoginController(MatrixTransport(), open_url=click.launch)
    controller.events.subscribe(_report_errors)
    return controller


@click.group()
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """Matrix homeserver discovery and login."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)


@cli.command
@click.option("--user-id", "-u", prompt=True, help="Matrix ID (@user:domain)")
def discover(user_id: str):
    """Find the homeserver for a Matrix ID and list its login flows."""

    async def _discover():
        controller = _controller()
        controller.set_user_id(user_id)
        flows = await controller.user_id_entered()
        if flows is None:
            if controller.state.homeserver_needed:
                click.echo("Pass --homeserver <url> to `login` to skip autodiscovery.")
            sys.exit(1)

        click.echo(f"Homeserver: {controller.state.homeserver.base_url}")
        click.echo(f"  Password login: {'yes' if flows.password_supported else 'no'}")
        click.echo(f"  SSO login: {'yes' if flows.sso_supported else 'no'}")

    asyncio.run(_discover())


@cli.command
@click.option("--user-id", "-u", prompt=True, help="Matrix ID (@user:domain)")
@click.option(
    "--homeserver", "-H", default=None, help="Homeserver URL, skips autodiscovery"
)
@click.option("--sso", is_flag=True, help="Log in through the browser with SSO")
@click.option("--device-name", default="", help="Display name for the new device")
def login(user_id: str, homeserver: str | None, sso: bool, device_name: str):
    """Log in and print the session credentials."""
    password = "" if sso else click.prompt("Password", hide_input=True)

    async def _login():
        controller = _controller()
        controller.set_user_id(user_id)
        if homeserver:
            flows = await controller.set_homeserver(homeserver)
        else:
            flows = await controller.user_id_entered()
        if flows is None:
            if controller.state.homeserver_needed:
                click.echo("Try again with --homeserver <url> to skip autodiscovery.")
            sys.exit(1)

        if sso:
            if not flows.sso_supported:
                click.secho("⚠ Server does not advertise SSO login", fg="yellow")
            click.echo("Complete the login in your browser…")

        session = await controller.login(
            LoginMethod.SSO if sso else LoginMethod.PASSWORD,
            password=password,
            device_name=device_name,
        )
        if session is None:
            sys.exit(1)

        click.echo("\n✓ Login successful!\n")
        click.echo("Add these to your .env file:\n")
        click.secho(f"HOMESERVER_URL={session.homeserver_base_url}", fg="green")
        click.secho(f"USER_ID={session.user_id}", fg="green")
        click.secho(
            f"ACCESS_TOKEN={session.access_token.get_secret_value()}", fg="green"
        )
        click.secho(f"DEVICE_ID={session.device_id}", fg="green")

    asyncio.run(_login())


@cli.command
def info():
    """Show login configuration."""
    from .config import settings

    click.echo("Matrix login configuration:")
    click.echo(f"  Device name: {settings.initial_device_name}")
    click.echo(
        f"  Certificate validation: "
        f"{'disabled' if settings.disable_certificate_validation else 'enabled'}"
    )
    click.echo(f"  SSO callback host: {settings.sso_callback_host}")
    click.echo(f"  SSO timeout: {settings.sso_timeout:g}s")


if __name__ == "__main__":
    cli()
