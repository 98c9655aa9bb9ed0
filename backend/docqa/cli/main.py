"""CLI entrypoint for docqa."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="docqa", help="Documentation question answering command-line interface")

DEFAULT_HOST = "http://127.0.0.1:3000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("DOCQA_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(
    method: str,
    path: str,
    host: Optional[str] = None,
    timeout: Optional[float] = 60,
    **kwargs,
) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=timeout, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a question against the stored knowledge."""
    resp = _request("POST", "/chat", host=host, timeout=300, json={"message": question})
    typer.echo(resp.json()["response"])


@app.command()
def add(
    items: List[str] = typer.Argument(..., help="Text snippets or local file paths"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Add knowledge items; existing local files are sent as absolute paths."""
    payload = []
    for item in items:
        path = Path(item).expanduser()
        payload.append(str(path.resolve()) if path.is_file() else item)
    resp = _request("POST", "/knowledge", host=host, timeout=300, json={"items": payload})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def crawl(
    patterns: Optional[List[str]] = typer.Argument(None, help="URL patterns; a trailing * crawls below the URL"),
    depth: Optional[int] = typer.Option(None, "--depth", min=0, help="Maximum link depth"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Crawl documentation pages and ingest them."""
    body: dict[str, object] = {}
    if patterns:
        body["patterns"] = patterns
    if depth is not None:
        body["max_depth"] = depth
    resp = _request("POST", "/crawl", host=host, timeout=None, json=body)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def status(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show the runtime state."""
    resp = _request("GET", "/status", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
