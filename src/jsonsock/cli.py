import click

from .client import SockClient, interactive
from .config import Config
from .log_config import LOG_LEVELS, configure_logging
from .server import Server


@click.group()
def main() -> None:
    """JSON request/response server over a persistent socket."""


@main.command()
@click.option("--host", type=str, default="0.0.0.0", show_default=True, help="Bind socket to this host.")
@click.option("--port", type=int, default=8888, show_default=True, help="Bind socket to this port.")
@click.option("--backlog", type=int, default=100, show_default=True, help="Maximum number of pending connections.")
@click.option("--rate-limit", type=int, default=4, show_default=True,
              help="Refuse an address once it has connected more than this many times.")
@click.option("--rate-limit-window", type=float, default=None,
              help="Seconds after which an address's connection count starts over. Never, if unset.")
@click.option("--timeout-idle", type=float, default=None,
              help="Close connections that send nothing for this many seconds.")
@click.option("--limit-concurrency", type=int, default=None,
              help="Maximum number of concurrent connections before new ones are closed.")
@click.option("--timeout-graceful-shutdown", type=float, default=None,
              help="Maximum number of seconds to wait for connections to close on shutdown.")
@click.option("--log-level", type=click.Choice(list(LOG_LEVELS.keys())), default="info", show_default=True)
def serve(
    host: str,
    port: int,
    backlog: int,
    rate_limit: int,
    rate_limit_window: float | None,
    timeout_idle: float | None,
    limit_concurrency: int | None,
    timeout_graceful_shutdown: float | None,
    log_level: str,
) -> None:
    """Start the server."""
    config = Config(
        host=host,
        port=port,
        backlog=backlog,
        timeout_graceful_shutdown=timeout_graceful_shutdown,
        limit_concurrency=limit_concurrency,
        rate_limit=rate_limit,
        rate_limit_window=rate_limit_window,
        timeout_idle=timeout_idle,
        log_level=log_level,
    )
    configure_logging(config.log_level)
    Server(config).run()


@main.command()
@click.argument("host", type=str)
@click.argument("port", type=int)
@click.option("--log-level", type=click.Choice(list(LOG_LEVELS.keys())), default="warning", show_default=True)
def client(host: str, port: int, log_level: str) -> None:
    """Open an interactive session against a running server."""
    configure_logging(log_level)
    sock_client = SockClient(host, port)
    try:
        sock_client.connect()
    except OSError as exc:
        raise click.ClickException(f"Could not connect to {host}:{port}: {exc}") from exc

    click.echo("Client connected to server.")
    try:
        interactive(sock_client)
    except ConnectionError as exc:
        raise click.ClickException(f"Lost connection to {host}:{port}: {exc}") from exc
    finally:
        sock_client.close()
