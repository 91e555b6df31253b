"""CLI entrypoint for Bank Grounding."""

from __future__ import annotations

import json
import os
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="bgr", help="Bank Grounding command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"

GLOBAL_SCOPE = "global"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("BGR_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=60, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    limit: int = typer.Option(5, "--limit", "-k", help="Number of chunks to return"),
    idrssd: Optional[str] = typer.Option(
        None,
        "--idrssd",
        help=f"Restrict to one bank, or '{GLOBAL_SCOPE}' for content with no bank",
    ),
    bank_type: Optional[List[str]] = typer.Option(None, "--bank-type", help="Bank type filter (repeatable)"),
    topic: Optional[List[str]] = typer.Option(None, "--topic", help="Topic filter (repeatable)"),
    record: bool = typer.Option(True, "--record/--no-record", help="Count a retrieval for each result"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Search grounding chunks."""
    payload: dict[str, object] = {"query": q, "limit": limit, "record": record}
    if idrssd is not None:
        payload["idrssd"] = None if idrssd == GLOBAL_SCOPE else idrssd
    if bank_type:
        payload["bank_types"] = bank_type
    if topic:
        payload["topics"] = topic
    resp = _request("POST", "/search", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def stats(
    idrssd: Optional[str] = typer.Option(None, "--idrssd", help="Limit statistics to one bank"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show document and chunk statistics."""
    params = {"idrssd": idrssd} if idrssd else None
    resp = _request("GET", "/stats", host=host, params=params)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def reprocess(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Re-chunk and re-embed a document."""
    resp = _request("POST", f"/documents/{document_id}/reprocess", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def feedback(
    chunk_id: str = typer.Argument(..., help="Chunk identifier"),
    rating: int = typer.Argument(..., min=1, max=5, help="Rating from 1 to 5"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Rate how useful a chunk was."""
    resp = _request("POST", f"/chunks/{chunk_id}/feedback", host=host, json={"rating": rating})
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
