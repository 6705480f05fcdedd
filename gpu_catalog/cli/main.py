"""GPU Catalog CLI using Typer."""

import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.logging import RichHandler

from gpu_catalog.cli.ingest import ingest_app, products_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="gpu-catalog",
    help="GPU Catalog - Ingest GPU listings from retailer pages and keep their prices current",
    add_completion=False,
)
app.add_typer(ingest_app, name="ingest")
app.add_typer(products_app, name="products")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def _check_firecrawl_config() -> None:
    """Check and display extraction service configuration status."""
    from gpu_catalog.core.settings import get_settings

    settings = get_settings()
    if settings.firecrawl_configured:
        typer.echo(f"  Firecrawl: configured ({settings.firecrawl_api_url})")
    else:
        typer.echo("  Firecrawl: Not configured (ingestion and price refresh will fail)")
        typer.echo("  Tip: Set FIRECRAWL_API_KEY in .env file")

    if settings.admin_secret_token:
        typer.echo("  Admin token: configured")
    else:
        typer.echo("  Admin token: Not configured (price refresh endpoint is disabled)")


@app.command()
def run(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(
        False, "--reload", "-r", help="Enable auto-reload for development"
    ),
) -> None:
    """Start the GPU Catalog web server."""
    import uvicorn

    typer.echo(f"Starting GPU Catalog on http://{host}:{port}")
    _check_firecrawl_config()
    typer.echo("Press Ctrl+C to stop the server")
    typer.echo("")

    uvicorn.run(
        "gpu_catalog.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def init_db() -> None:
    """Initialize the database (create tables)."""
    from gpu_catalog.db.engine import init_db as db_init

    typer.echo("Initializing database...")
    db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the GPU Catalog version."""
    typer.echo("GPU Catalog v0.1.0")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    typer.echo("GPU Catalog Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    _check_firecrawl_config()

    # Check extraction vocabulary
    from gpu_catalog.ingestion.config import get_extraction_config

    config = get_extraction_config()
    typer.echo(f"  Families: {len(config.families)} terms")
    typer.echo(f"  Special features: {len(config.special_features)} terms")

    # Check database
    from gpu_catalog.db.engine import get_database_url

    typer.echo(f"  Database: {get_database_url()}")


if __name__ == "__main__":
    app()
