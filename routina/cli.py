"""routina CLI.

Commands:
    run     - Serve the application with uvicorn
    routes  - List the pipeline stages and routes
"""

import sys
from typing import Optional

import click
from dotenv import load_dotenv

from . import __version__
from .config import ConfigError, ConfigLoader, configure_logging


@click.group()
@click.version_option(__version__, prog_name="routina")
def cli():
    """routina - async user API and server-rendered pages."""


@cli.command("run")
@click.option("--host", type=str, default=None, help="Bind host (default: ROUTINA_HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Bind port (default: ROUTINA_PORT or 3000)")
@click.option("--reload/--no-reload", default=False, help="Enable hot-reload")
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", help=".env file to load")
def run(host: Optional[str], port: Optional[int], reload: bool, env_file: str):
    """
    Start the server.

    Examples:
      routina run
      routina run --port=8080 --reload
    """
    import uvicorn

    # Exported so the factory (and reload workers) see the same settings.
    load_dotenv(env_file, override=False)

    try:
        config = ConfigLoader.load(env_file=None, overrides={"host": host, "port": port})
        configure_logging(config.log_level)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    uvicorn.run(
        "routina.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=reload,
        log_level=config.log_level.lower(),
        access_log=False,
    )


@cli.command("routes")
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", help=".env file to load")
def routes(env_file: str):
    """Print pipeline stages and their routes in dispatch order."""
    from .app import create_app
    from .routing import Router

    try:
        config = ConfigLoader.load(env_file=env_file)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    app = create_app(config)
    for descriptor in app.middleware_stack.middlewares:
        click.echo(descriptor.name)
        if isinstance(descriptor.middleware, Router):
            for line in descriptor.middleware.describe():
                click.echo(f"  {line}")
    for descriptor in app.middleware_stack.error_handlers:
        click.echo(f"{descriptor.name} (error)")


def main():
    cli()


if __name__ == "__main__":
    main()
