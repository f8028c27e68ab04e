"""
Command-line interface for the article preview service.

Uses Typer to serve the application and to debug resolution and crawler
classification against the configured store. Supports loading .env files
for the store connection string.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .core.errors import UpstreamUnavailableError
from .core.normalize import build_candidates
from .core.resolver import ArticleResolver
from .crawlers import CrawlerClassifier
from .store.mongo import StoreHandle
from .utils.logging import setup_logging

try:
    from dotenv import load_dotenv
except Exception:  # noqa: BLE001
    load_dotenv = None

app = typer.Typer(add_completion=False)
console = Console()


def _load(config: Path | None, log_level: str | None = None) -> AppConfig:
    if load_dotenv is not None:
        load_dotenv()
    cfg = load_config(str(config) if config and config.exists() else None)
    if log_level:
        cfg.logging.level = log_level
    return cfg


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port."),
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c"),
    static_dir: Path | None = typer.Option(
        None, "--static-dir", help="Directory containing the interactive article.html."
    ),
    no_rewrite: bool = typer.Option(
        False, "--no-rewrite", help="Redirect crawlers with 307 instead of rewriting internally."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Write JSONL logs to this directory."),
):
    """Serve the preview application with uvicorn."""
    import uvicorn

    from .app import create_app

    cfg = _load(config, log_level)
    if static_dir is not None:
        cfg.routing.static_dir = str(static_dir)
    if no_rewrite:
        cfg.routing.rewrite = False
    if log_dir is not None:
        cfg.logging.file = True
    setup_logging(cfg.logging, log_dir)

    uvicorn.run(create_app(cfg), host=host, port=port, log_level=cfg.logging.level.lower())


@app.command()
def resolve(
    title: str | None = typer.Option(None, "--title", "-t", help="Exact article title."),
    slug: str | None = typer.Option(None, "--slug", "-s", help="Article slug."),
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c"),
):
    """Resolve a title or slug and report which strategy matched."""
    cfg = _load(config)
    setup_logging(cfg.logging)

    candidates = build_candidates(title=title, slug=slug)
    if not candidates:
        console.print("[red]Provide --title or --slug.[/red]")
        raise typer.Exit(code=2)

    async def _run():
        resolver = ArticleResolver(StoreHandle(cfg.store).get(), cfg.resolver)
        return await resolver.resolve(candidates)

    try:
        result = asyncio.run(_run())
    except UpstreamUnavailableError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(show_header=False)
    table.add_row("Attempted", ", ".join(str(s) for s in result.attempted))
    table.add_row("Matched", str(result.matched_strategy) if result.matched_strategy else "-")
    if result.record is not None:
        table.add_row("Title", result.record.title)
        table.add_row("Slug", result.record.slug or "-")
        table.add_row("Id", result.record.id)
    console.print(table)
    if not result.found:
        raise typer.Exit(code=1)


@app.command()
def classify(
    user_agent: str = typer.Argument(..., help="User-Agent header value."),
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c"),
):
    """Report whether a user agent is treated as a crawler."""
    cfg = _load(config)
    classifier = CrawlerClassifier.from_config(cfg.crawlers)
    signature = classifier.match(user_agent)
    if signature:
        console.print(f"crawler (matched [bold]{signature}[/bold])")
    else:
        console.print("not a crawler")


if __name__ == "__main__":
    app()
