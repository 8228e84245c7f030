# Simple CLI for the Kite gateway
import asyncio
import click

from app.containers import AppContainer
from core.logging import configure_logging


def _container() -> AppContainer:
    container = AppContainer()
    configure_logging(container.settings())
    return container


@click.group()
def cli():
    """Kite Gateway CLI"""
    pass


@cli.command()
def api():
    """Run the API server"""
    click.echo("🚀 Starting Kite Gateway API server...")
    from api.main import run as run_api
    run_api()


@cli.command("init-db")
def init_db():
    """Create the database tables"""
    container = _container()

    async def _init():
        db_manager = container.db_manager()
        try:
            await db_manager.init()
            return await db_manager.verify_connection()
        finally:
            await db_manager.shutdown()

    if not asyncio.run(_init()):
        raise click.ClickException("Database connection could not be verified")
    click.echo("✅ Database initialized")


@cli.command()
@click.argument("secret")
def totp(secret):
    """Print the current one-time code for a base32 SECRET"""
    from services.auth.exceptions import InvalidSecretFormat
    from services.auth.totp import generate_totp
    try:
        click.echo(generate_totp(secret))
    except InvalidSecretFormat as e:
        raise click.ClickException(e.message)


@cli.command("refresh-instruments")
def refresh_instruments():
    """Reload the instrument mirror from the broker feed"""
    container = _container()
    click.echo("📥 Refreshing instruments...")

    async def _refresh():
        db_manager = container.db_manager()
        try:
            await db_manager.init()
            return await container.instrument_registry_service().refresh()
        finally:
            await db_manager.shutdown()

    result = asyncio.run(_refresh())
    if not result.success:
        raise click.ClickException(f"Refresh failed: {result.error}")
    click.echo(f"✅ Refreshed {result.count} instruments")


if __name__ == "__main__":
    cli()
