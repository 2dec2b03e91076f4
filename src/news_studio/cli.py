"""Command-line entry points for the news studio relay."""

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import print as rprint
from rich.markup import escape

from .config import get_settings
from .errors import RelayError
from .models import NewsItem
from .scraper import NaverNewsScraper

app = typer.Typer(help="Serve the news studio relay or scrape Naver News from the shell.")


def _build_scraper() -> NaverNewsScraper:
    return NaverNewsScraper(get_settings())


def _to_plain(items: List[NewsItem]) -> List[dict[str, Any]]:
    return [item.model_dump() for item in items]


def _write_output(out_path: Path, payload: Any) -> None:
    out_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def _print_items(items: List[NewsItem]) -> None:
    if not items:
        rprint("[yellow]No news items found.[/yellow]")
        return
    for item in items:
        meta = " · ".join(part for part in (item.press, item.time) if part)
        rprint(f"[cyan]{item.rank:>3}.[/cyan] {escape(item.title)}")
        if meta:
            rprint(f"     [dim]{escape(meta)}[/dim]")
        rprint(f"     [blue]{item.link}[/blue]")


def _emit(items: List[NewsItem], out: Optional[Path]) -> None:
    if out:
        _write_output(out, _to_plain(items))
        rprint(f"[cyan]Wrote {len(items)} items to {out}[/cyan]")
    else:
        _print_items(items)


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to HOST)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (defaults to PORT)."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
):
    """Run the HTTP relay with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "news_studio.server:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@app.command("news")
def news_command(
    category: str = typer.Option("정치", "--category", "-c", help="Category label or section code."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of items."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the listing as JSON."),
):
    """Scrape one news section listing."""
    if limit is not None and limit < 1:
        raise typer.BadParameter("limit must be >= 1.")
    scraper = _build_scraper()
    try:
        items = scraper.fetch_list(category, limit)
    except RelayError as exc:
        rprint(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1)
    finally:
        scraper.close()
    _emit(items, out)


@app.command("ranking")
def ranking_command(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of items."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the listing as JSON."),
):
    """Scrape the daily most-viewed ranking."""
    if limit is not None and limit < 1:
        raise typer.BadParameter("limit must be >= 1.")
    scraper = _build_scraper()
    try:
        items = scraper.fetch_ranking(limit)
    except RelayError as exc:
        rprint(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1)
    finally:
        scraper.close()
    _emit(items, out)


@app.command("article")
def article_command(url: str = typer.Argument(..., help="Absolute article URL.")):
    """Fetch one article and print its title and body text."""
    scraper = _build_scraper()
    try:
        article = scraper.fetch_article_body(url)
    except RelayError as exc:
        rprint(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1)
    finally:
        scraper.close()
    rprint(f"[bold]{escape(article.title)}[/bold]\n")
    rprint(escape(article.body_text))


def main():
    app()


if __name__ == "__main__":
    main()
