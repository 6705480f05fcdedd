"""
Ingestion CLI Commands
======================

CLI commands for ingesting product URLs, refreshing prices and browsing
the stored catalog.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from gpu_catalog.core.enums import SortOrder
from gpu_catalog.core.errors import ValidationError
from gpu_catalog.core.schema import IngestReport, ProductFilter, RefreshReport
from gpu_catalog.core.settings import get_settings
from gpu_catalog.db.engine import get_session, init_db
from gpu_catalog.db.repositories import PriceRefreshRunRepository, ProductRepository
from gpu_catalog.ingestion.extraction import ExtractionClient
from gpu_catalog.ingestion.jobs import enqueue_ingestion, enqueue_price_refresh, get_job_status
from gpu_catalog.ingestion.orchestrator import IngestionOrchestrator
from gpu_catalog.ingestion.price_refresh import PriceRefresher
from gpu_catalog.services.catalog_service import get_catalog_service

console = Console()
ingest_app = typer.Typer(help="Ingestion pipeline commands")
jobs_app = typer.Typer(help="Job management commands")
products_app = typer.Typer(help="Product catalog commands")

ingest_app.add_typer(jobs_app, name="jobs")


def _require_firecrawl() -> None:
    if not get_settings().firecrawl_configured:
        rprint("[red]Error:[/red] FIRECRAWL_API_KEY is not configured")
        rprint("Set it in your environment or .env file")
        raise typer.Exit(1)


def _read_urls(urls: list[str] | None, file: Path | None) -> list[str]:
    collected = list(urls or [])
    if file is not None:
        if not file.exists():
            rprint(f"[red]Error:[/red] File not found: {file}")
            raise typer.Exit(1)
        for line in file.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                collected.append(line)
    return collected


async def _run_ingestion(urls: list[str], update_existing: bool) -> IngestReport:
    settings = get_settings()
    init_db()
    async with ExtractionClient.from_settings(settings) as client:
        with get_session() as session:
            orchestrator = IngestionOrchestrator(
                ProductRepository(session),
                client,
                poll_interval=settings.poll_interval,
                poll_timeout=settings.poll_timeout,
            )
            return await orchestrator.ingest(urls, update_existing=update_existing)


async def _run_price_refresh(resume: bool) -> RefreshReport:
    settings = get_settings()
    init_db()
    async with ExtractionClient.from_settings(settings) as client:
        with get_session() as session:
            refresher = PriceRefresher(
                ProductRepository(session),
                client,
                runs=PriceRefreshRunRepository(session),
            )
            return await refresher.refresh_all(resume=resume)


@ingest_app.command("urls")
def ingest_urls(
    urls: Optional[list[str]] = typer.Argument(None, help="Product page URLs"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File with one URL per line"),
    update_existing: bool = typer.Option(
        False, "--update-existing", "-u", help="Re-extract and update URLs that are already stored"
    ),
    sync: bool = typer.Option(True, "--sync/--async", help="Run now or enqueue for the worker"),
) -> None:
    """
    Ingest product page URLs.

    Examples:
        gpu-catalog ingest urls https://www.newegg.com/p/N82E16814137632
        gpu-catalog ingest urls --file urls.txt --async
    """
    collected = _read_urls(urls, file)
    if not collected:
        rprint("[red]Error:[/red] No URLs provided")
        raise typer.Exit(1)

    if not sync:
        rprint("\n[dim]Enqueueing job for async processing...[/dim]")
        try:
            job_id = asyncio.run(enqueue_ingestion(collected, update_existing))
        except Exception as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)
        rprint("\n[green]Job enqueued successfully![/green]")
        rprint(f"Job ID: [bold]{job_id}[/bold]")
        rprint("\nCheck status with:")
        rprint(f"  gpu-catalog ingest jobs status {job_id}")
        return

    _require_firecrawl()
    rprint(f"\n[bold]Ingesting {len(collected)} URL(s)[/bold]")

    try:
        with console.status("[bold blue]Extracting...[/bold blue]"):
            report = asyncio.run(_run_ingestion(collected, update_existing))
    except ValidationError as e:
        rprint(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    _display_ingest_report(report)
    if not report.success:
        raise typer.Exit(1)


@ingest_app.command("refresh-prices")
def refresh_prices(
    resume: bool = typer.Option(False, "--resume", help="Continue the latest unfinished run"),
    sync: bool = typer.Option(True, "--sync/--async", help="Run now or enqueue for the worker"),
) -> None:
    """
    Refresh the price and stock status of every stored product.

    Examples:
        gpu-catalog ingest refresh-prices
        gpu-catalog ingest refresh-prices --resume
    """
    if not sync:
        try:
            job_id = asyncio.run(enqueue_price_refresh(resume))
        except Exception as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)
        rprint(f"\n[green]Job enqueued successfully![/green] Job ID: [bold]{job_id}[/bold]")
        return

    _require_firecrawl()
    with console.status("[bold blue]Refreshing prices...[/bold blue]"):
        report = asyncio.run(_run_price_refresh(resume))

    _display_refresh_report(report)
    if not report.success:
        raise typer.Exit(1)


@ingest_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the background worker.

    The worker processes queued ingestion and price refresh jobs from Redis
    and runs the daily price refresh.

    Examples:
        gpu-catalog ingest worker
        gpu-catalog ingest worker --burst
    """
    from arq import run_worker

    from gpu_catalog.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")

    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)


# Jobs subcommands


@jobs_app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
) -> None:
    """
    Check the status of a background job.

    Examples:
        gpu-catalog ingest jobs status abc123
    """
    try:
        result = asyncio.run(get_job_status(job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Task: {result.get('function') or 'unknown'}")
    rprint(f"  Status: {result.get('status', 'unknown')}")

    if isinstance(result.get("result"), dict):
        _display_job_result(result["result"])


# Products subcommands


@products_app.command("list")
def list_products(
    search: str = typer.Option("", "--search", "-s", help="Substring of brand, title or family"),
    brand: Optional[str] = typer.Option(None, "--brand", "-b"),
    memory: Optional[int] = typer.Option(None, "--memory", "-m", help="Memory size in GB"),
    in_stock: Optional[bool] = typer.Option(None, "--in-stock/--out-of-stock"),
    sort_by: str = typer.Option("price", "--sort-by"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to show"),
) -> None:
    """
    List stored products.

    Examples:
        gpu-catalog products list --brand ASUS --memory 16
        gpu-catalog products list --sort-by price --desc
    """
    try:
        filters = ProductFilter(
            search=search,
            brand=brand,
            memory_size_gb=memory,
            in_stock=in_stock,
            sort_by=sort_by,
            sort_order=SortOrder.DESC if desc else SortOrder.ASC,
        )
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    init_db()
    with get_session() as session:
        products = get_catalog_service(session).search(filters)

    if not products:
        rprint("[yellow]No products found[/yellow]")
        return

    table = Table(title=f"Products ({len(products)})")
    table.add_column("Brand", style="bold")
    table.add_column("Title")
    table.add_column("Family")
    table.add_column("Memory")
    table.add_column("Cooler")
    table.add_column("Price", justify="right")
    table.add_column("Stock")
    table.add_column("Retailer")

    for product in products[:limit]:
        stock = "[green]in stock[/green]" if product.in_stock else "[red]out[/red]"
        memory_str = f"{product.memory_size_gb} GB" if product.memory_size_gb else "-"
        table.add_row(
            product.brand,
            product.product_title,
            product.family,
            memory_str,
            product.cooler_type or "-",
            f"${product.price}",
            stock,
            product.retailer,
        )

    console.print(table)
    if len(products) > limit:
        rprint(f"[dim]... and {len(products) - limit} more[/dim]")


def _display_ingest_report(report: IngestReport) -> None:
    """Display an ingestion report."""
    color = "green" if report.success else "red"
    rprint(f"\n[{color}]{report.message}[/{color}]")
    if report.job_id:
        rprint(f"  Extraction job: {report.job_id}")
    rprint(f"  Added: {report.added}")
    if report.updated:
        rprint(f"  Updated: {report.updated}")
    if report.duplicates:
        rprint(f"  Duplicates skipped: {len(report.duplicates)}")
    _display_errors(report.errors)


def _display_refresh_report(report: RefreshReport) -> None:
    """Display a price refresh report."""
    color = "green" if report.success else "red"
    rprint(f"\n[{color}]{report.message}[/{color}]")
    rprint(f"  Updated: {report.updated}")
    rprint(f"  Unchanged: {report.unchanged}")
    rprint(f"  Total: {report.total}")
    _display_errors([f"{e.url or e.product_id}: {e.error}" for e in report.errors])


def _display_job_result(result: dict) -> None:
    """Display a background job result."""
    status = result.get("status", "unknown")
    status_color = {
        "completed": "green",
        "running": "blue",
        "pending": "yellow",
        "failed": "red",
    }.get(status, "white")

    rprint("\n[bold]Results:[/bold]")
    rprint(f"  Status: [{status_color}]{status}[/{status_color}]")

    if result.get("duration_seconds"):
        rprint(f"  Duration: {result['duration_seconds']:.1f}s")

    report = result.get("report") or {}
    if report.get("message"):
        rprint(f"  {report['message']}")

    _display_errors(result.get("errors", []))


def _display_errors(errors: list[str]) -> None:
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:  # Show first 10
            rprint(f"  • {error}")
        if len(errors) > 10:
            rprint(f"  ... and {len(errors) - 10} more")
