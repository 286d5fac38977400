# pricewatch/cli/runner.py

"""Headless CLI actions: run a cycle, track a URL, list, serve."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from pricewatch.config.settings import ProxyConfig, Settings
from pricewatch.errors import PriceWatchError, StoreUnavailableError
from pricewatch.models.product import Product
from pricewatch.notifications.mailer import SmtpMailer
from pricewatch.scrapers.fetcher import Fetcher
from pricewatch.services.batch_orchestrator import (
    BatchOrchestrator,
    CycleSummary,
)
from pricewatch.services.tracking import TrackingService
from pricewatch.storage.file_manager import FileManager
from pricewatch.storage.product_store import SqliteProductStore

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def build_orchestrator() -> BatchOrchestrator:
    """Wire the production collaborators from the environment."""
    settings = Settings()
    return BatchOrchestrator(
        store=SqliteProductStore(),
        mailer=SmtpMailer(settings),
        fetcher=Fetcher(proxy=ProxyConfig.from_env(), settings=settings),
        settings=settings,
    )


def _print_summary(summary: CycleSummary) -> None:
    """Render a Rich table of per-product outcomes to stderr."""
    table = Table(
        title="Update Cycle",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Status", justify="center")
    table.add_column("Alert", style="magenta")
    table.add_column("Detail", overflow="fold", style="dim")

    for idx, r in enumerate(summary.results, 1):
        price = r.product.current_price
        table.add_row(
            str(idx),
            r.title[:50],
            f"{r.product.currency}{price:,.2f}" if price > 0 else "N/A",
            "[green]✓[/green]" if r.ok else "[red]✗[/red]",
            r.kind.value if r.kind.value != "NONE" else "-",
            r.error or r.mail_error or r.url,
        )

    _err.print(table)
    _err.print(
        f"[green]{summary.updated_count} updated[/green], "
        f"[red]{summary.failed_count} failed[/red]"
    )


def _aborted(exc: StoreUnavailableError) -> int:
    logger.error("Cycle aborted: %s", exc)
    _err.print(f"[red]Failed to update products: {exc}[/red]")
    return 1


async def run_cycle(export_csv: bool = False) -> int:
    """Run one update cycle and return an exit code (0=ok, 1=fatal)."""
    try:
        orchestrator = build_orchestrator()
    except StoreUnavailableError as exc:
        return _aborted(exc)
    try:
        summary = await orchestrator.run_cycle()
    except StoreUnavailableError as exc:
        return _aborted(exc)
    finally:
        orchestrator.store.close()

    if not summary.results:
        _err.print("[yellow]No products found to update.[/yellow]")
    else:
        _print_summary(summary)

    try:
        file_manager = FileManager()
        path = file_manager.save_summary(summary)
        _err.print(f"[dim]Saved summary → {path}[/dim]")
        if export_csv:
            csv_path = file_manager.export_csv(summary)
            _err.print(f"[dim]Exported CSV → {csv_path}[/dim]")
    except OSError as exc:
        logger.error("Save failed: %s", exc, exc_info=True)
        _err.print(f"[red]Save failed: {exc}[/red]")

    json.dump(summary.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


def track_url(url: str, email: str | None = None) -> int:
    """Start tracking *url*, optionally subscribing *email*."""
    settings = Settings()
    service = TrackingService(
        store=SqliteProductStore(),
        mailer=SmtpMailer(settings),
        fetcher=Fetcher(proxy=ProxyConfig.from_env(), settings=settings),
        settings=settings,
    )
    try:
        product = (
            service.subscribe(url, email) if email else service.track(url)
        )
    except (PriceWatchError, ValueError) as exc:
        logger.error("Tracking %s failed: %s", url, exc)
        _err.print(f"[red]{exc}[/red]")
        return 1

    _err.print(
        f"[green]✓ Tracking[/green] {product.title[:60]} "
        f"[dim]{product.currency}{product.current_price:,.2f}, "
        f"{len(product.price_history)} sample(s), "
        f"{len(product.subscribers)} subscriber(s)[/dim]"
    )
    return 0


def _print_products(products: list[Product]) -> None:
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=50)
    table.add_column("Platform", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Lowest", justify="right")
    table.add_column("Highest", justify="right")
    table.add_column("Stock", justify="center")
    table.add_column("Subs", justify="right")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.title[:50],
            p.platform,
            f"{p.currency}{p.current_price:,.2f}",
            f"{p.currency}{p.lowest_price:,.2f}",
            f"{p.currency}{p.highest_price:,.2f}",
            "[red]out[/red]" if p.is_out_of_stock else "[green]in[/green]",
            str(len(p.subscribers)),
        )
    Console().print(table)


def list_products() -> int:
    """Print every tracked product with its price statistics."""
    try:
        products = SqliteProductStore().list_all()
    except StoreUnavailableError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    if not products:
        _err.print("[yellow]No products tracked yet.[/yellow]")
        return 0
    _print_products(products)
    return 0


def serve(host: str, port: int) -> int:
    """Serve the cron trigger endpoint with uvicorn."""
    import uvicorn

    from pricewatch.api.cron import create_app

    _err.print(f"[bold]Serving /api/cron on {host}:{port}[/bold]")
    uvicorn.run(create_app(build_orchestrator), host=host, port=port)
    return 0
