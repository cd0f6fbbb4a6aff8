"""Typer-based CLI for ArticleAccess."""

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from InkReader.ArticleAccess.api.types import PipelineState
from InkReader.ArticleAccess.config import (
    ArticleAccessConfig,
    export_config_schema,
    load_config,
    validate_config_file,
)
from InkReader.ArticleAccess.credentials.resolver import CredentialResolver, Resolution
from InkReader.ArticleAccess.errors import get_actionable_error_message
from InkReader.ArticleAccess.httpx_transport import build_http_client
from InkReader.ArticleAccess.ledger import JsonRpcLedgerReader
from InkReader.ArticleAccess.logging_utils import setup_logging
from InkReader.ArticleAccess.pipeline import build_pipeline

console = Console(stderr=True)
app = typer.Typer(help="InkReader article access")

_STATUS_STYLE = {
    "satisfied": "[green]✓ satisfied[/green]",
    "unsatisfied": "[yellow]– not held[/yellow]",
    "errored": "[red]✗ lookup failed[/red]",
    "skipped": "[dim]skipped[/dim]",
}


def _setup_logging(verbose: bool, json_log: Optional[Path], cfg: Optional[ArticleAccessConfig] = None) -> None:
    level = "DEBUG" if verbose else (cfg.log_level if cfg and cfg.log_level else "WARNING")
    setup_logging(level, json_path=json_log)


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file",
    envvar="INKREADER_CONFIG",
)


async def _read(cfg: ArticleAccessConfig, slug: str) -> PipelineState:
    async with build_http_client(cfg.http) as client:
        pipeline = build_pipeline(cfg, client=client)
        return await pipeline.load(slug)


async def _explain(
    cfg: ArticleAccessConfig, address: str, publication_id: str, article_id: str
) -> Resolution:
    async with build_http_client(cfg.http) as client:
        resolver = CredentialResolver(JsonRpcLedgerReader(client, cfg.ledger), config=cfg)
        return await resolver.resolve_with_trace(address, publication_id, article_id)


@app.command()
def read(
    slug: str = typer.Argument(..., help="Article slug"),
    config: Optional[str] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Print the terminal state as JSON"),
    json_log: Optional[Path] = typer.Option(None, "--json-log", help="Write JSON logs here"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Load an article and print its markdown.

    No wallet session is available from the command line, so encrypted
    articles end in ``wallet-required``.
    """
    try:
        cfg = load_config(path=config)
    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)
    _setup_logging(verbose, json_log, cfg)

    state = asyncio.run(_read(cfg, slug))

    if as_json:
        typer.echo(json.dumps(state.as_dict(), indent=2, default=_json_default))
    elif state.stage == "ready" and state.content is not None:
        typer.echo(state.content)

    if state.error is not None:
        message, suggestion = get_actionable_error_message(state.error)
        body = f"[bold red]{state.error}[/bold red]\n{state.error_message or message}"
        if suggestion:
            body += f"\n[dim]{suggestion}[/dim]"
        console.print(Panel(body, title=slug))
        raise typer.Exit(code=1)


@app.command("explain-access")
def explain_access(
    publication_id: str = typer.Argument(..., help="Publication object id"),
    address: str = typer.Option(..., "--address", "-a", help="Caller address"),
    article_id: str = typer.Option("", "--article-id", help="Article object id"),
    config: Optional[str] = ConfigOption,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose"),
) -> None:
    """Show which entitlement a caller would decrypt with."""
    try:
        cfg = load_config(path=config)
    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)
    _setup_logging(verbose, None, cfg)

    resolution = asyncio.run(_explain(cfg, address, publication_id, article_id))

    table = Table(title="Credential Lookups")
    table.add_column("Order", style="cyan")
    table.add_column("Lookup", style="green")
    table.add_column("Result")
    table.add_column("Detail", style="dim")
    for idx, outcome in enumerate(resolution.outcomes, 1):
        table.add_row(str(idx), outcome.name, _STATUS_STYLE[outcome.status], outcome.detail or "")
    Console().print(table)

    credentials = resolution.credentials
    if credentials.is_empty:
        console.print(
            Panel(credentials.warning or "No entitlement found", title="[yellow]No credential[/yellow]")
        )
        raise typer.Exit(code=2)
    console.print(Panel(repr(credentials.active), title=f"[green]{credentials.branch}[/green]"))


@app.command("print-config")
def print_config(
    config: Optional[str] = ConfigOption,
    raw: bool = typer.Option(False, "--raw", help="Raw JSON"),
) -> None:
    """Print merged effective config."""
    try:
        cfg = load_config(path=config)
    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise typer.Exit(code=1)

    data = json.dumps(cfg.model_dump(mode="json"), indent=2)
    if raw:
        typer.echo(data)
    else:
        Console().print(
            Panel(data, title=f"ArticleAccess Config ({cfg.config_hash()[:8]})", expand=False)
        )


@app.command("validate-config")
def validate_config(
    config: str = typer.Argument(..., help="Path to config file"),
) -> None:
    """Validate a config file."""
    try:
        validate_config_file(config)
        console.print("[green]✓ Config valid[/green]")
    except Exception as e:
        console.print(f"[red]✗ Invalid: {e}[/red]")
        raise typer.Exit(code=1)


@app.command("config-schema")
def config_schema() -> None:
    """Print the JSON Schema of the configuration."""
    typer.echo(json.dumps(export_config_schema(), indent=2))


def _json_default(value: object) -> object:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return str(value)


def main() -> None:
    logging.captureWarnings(True)
    app()


if __name__ == "__main__":
    main()
