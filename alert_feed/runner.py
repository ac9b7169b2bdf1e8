"""
CLI entrypoint for the mock alert feed.
"""
import asyncio
import json
import sys

import httpx
import typer
from loguru import logger

from alert_feed.shared.config import settings

app = typer.Typer(help="Mock Alert Feed CLI")

ENVELOPE_TYPES = ("alert", "metrics", "alert_resolved")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def default_http_url() -> str:
    return f"http://127.0.0.1:{settings.PORT}"


@app.command()
def server(
    host: str = typer.Option(settings.HOST, help="Interface to bind"),
    port: int = typer.Option(settings.PORT, help="Port to listen on"),
):
    """Start the feed server using Uvicorn."""
    import uvicorn
    configure_logging(settings.LOG_LEVEL)
    typer.echo(f"Starting mock feed on ws://{host}:{port} ...")
    uvicorn.run("alert_feed.server.main:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())


@app.command()
def listen(
    url: str = typer.Option(f"ws://127.0.0.1:{settings.PORT}/", help="Feed WebSocket URL"),
    duration: float = typer.Option(60.0, help="Duration to listen in seconds"),
    client_id: str = typer.Option("cli_listener", help="Name shown in server logs"),
):
    """Watch the feed with the Rich dashboard."""
    from alert_feed.client.feed_client import FeedClient
    from alert_feed.client.visualizer import Visualizer

    # Log lines would tear the live dashboard
    configure_logging("ERROR")
    visualizer = Visualizer(FeedClient(url, client_id))
    try:
        asyncio.run(visualizer.run(duration))
    except KeyboardInterrupt:
        pass


@app.command()
def stats(url: str = typer.Option(default_http_url(), help="Feed HTTP base URL")):
    """Query the server for live connection stats."""
    try:
        resp = httpx.get(f"{url.rstrip('/')}/stats")
        resp.raise_for_status()
    except httpx.HTTPError as e:
        typer.echo(f"Could not reach feed: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(resp.json())


@app.command()
def broadcast(
    event_type: str = typer.Argument(..., help="alert, metrics or alert_resolved"),
    data: str = typer.Option("{}", help="JSON object placed in the envelope's data field"),
    url: str = typer.Option(default_http_url(), help="Feed HTTP base URL"),
):
    """Push one envelope to every connected client right now."""
    if event_type not in ENVELOPE_TYPES:
        typer.echo(f"Invalid event type. Choose one of: {', '.join(ENVELOPE_TYPES)}", err=True)
        raise typer.Exit(1)
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        typer.echo(f"--data is not valid JSON: {e}", err=True)
        raise typer.Exit(1)
    if not isinstance(payload, dict):
        typer.echo("--data must be a JSON object", err=True)
        raise typer.Exit(1)

    try:
        resp = httpx.post(f"{url.rstrip('/')}/broadcast", json={"type": event_type, "data": payload})
        resp.raise_for_status()
    except httpx.HTTPError as e:
        typer.echo(f"Broadcast failed: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Delivered to {resp.json()['delivered']} client(s).")


if __name__ == "__main__":
    app()
