"""Typer CLI entrypoint for probing a URL from the command line."""

import asyncio
import json

import typer

from cachestatus.browser import probe
from cachestatus.classification import engine
from cachestatus.presentation import popup

app = typer.Typer()


@app.command()
def inspect(
    url: str = typer.Argument(..., help="Page URL to load and classify"),
    timeout: int = typer.Option(30000, help="Navigation timeout in milliseconds"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw session snapshot as JSON"),
) -> None:
    """Load URL in headless Chromium and report its CDN and cache status."""
    session = asyncio.run(probe.probe_url(url, timeout=timeout))
    if session is None:
        typer.echo("No response observed for the main document.", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(session.to_wire(), indent=2))
        return

    view = popup.build_popup_view(session)
    cdn = engine.get_cdn_name(session.classification.cdn_id) if session.classification.cdn_id else "none"
    typer.echo(f"URL:    {session.url}")
    typer.echo(f"CDN:    {cdn}")
    typer.echo(f"Status: {view.badge_text}  ({view.status_label})")
    for row in view.cache_rows + view.response_rows + view.performance_rows:
        typer.echo(f"  {row.label}: {row.value}")
