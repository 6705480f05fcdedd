"""FastAPI application factory for the GPU catalog."""

from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gpu_catalog.db.engine import init_db

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    location = ".".join(str(part) for part in errors[0]["loc"]) if errors else "request"
    return JSONResponse(
        {"success": False, "message": f"Invalid value for {location}"},
        status_code=400,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="GPU Catalog",
        description="Ingests GPU product listings from retailer pages and keeps their prices current",
        version="0.1.0",
    )

    # Initialize database tables
    init_db()

    # Every error body carries success and message
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    # Include routers (import here to avoid circular imports)
    from gpu_catalog.web.routes import admin, products

    app.include_router(products.router)
    app.include_router(admin.router)

    return app


# Application instance
app = create_app()
