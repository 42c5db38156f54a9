# cli.py
import json
import sys

import click

from upload2dir.config.settings import load_settings
from upload2dir.errors import ConfigError


def _settings_or_exit(**overrides):
    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(2)


@click.group()
def cli():
    """CLI commands for the upload2dir gateway"""
    pass


@cli.command()
@click.option("--root", "file_server_root", default=None, help="Override file_server_root")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Bind port")
@click.option("--max-filesize", default=None, help="Request body ceiling, e.g. 500MB")
def serve(file_server_root, host, port, max_filesize):
    """Run the gateway with uvicorn"""
    import uvicorn

    from upload2dir.main import create_app

    settings = _settings_or_exit(
        file_server_root=file_server_root,
        host=host,
        port=port,
        max_filesize=max_filesize,
    )
    try:
        app = create_app(settings)
    except ConfigError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(2)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


@cli.command()
def show_config():
    """Show current configuration (user tokens are never printed)"""
    settings = _settings_or_exit()
    click.echo("Current Configuration:")
    click.echo(json.dumps(settings.describe(), indent=2))
    try:
        click.echo(f"  User table lines: {len(settings.user_lines())}")
    except ConfigError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(2)


if __name__ == "__main__":
    cli()
