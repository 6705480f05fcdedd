"""Admin routes for product ingestion and price refreshes."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gpu_catalog.core.enums import IngestFailure
from gpu_catalog.core.errors import ValidationError
from gpu_catalog.web.dependencies import (
    OrchestratorDep,
    RefresherDep,
    SettingsDep,
    require_admin_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/products", tags=["admin"])

# HTTP status for each stage at which ingestion can give up
FAILURE_STATUS = {
    IngestFailure.ALL_DUPLICATES: 400,
    IngestFailure.NO_PRODUCTS: 400,
    IngestFailure.EXTRACTION: 500,
    IngestFailure.STORE: 500,
}


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@router.post("/ingest")
async def ingest_products(
    request: Request,
    settings: SettingsDep,
    orchestrator: OrchestratorDep,
) -> JSONResponse:
    """
    Ingest product URLs.

    Body: ``{"urls": [...], "updateExisting": false}``
    """
    if not settings.firecrawl_configured:
        logger.error("FIRECRAWL_API_KEY is not configured")
        return _error("Firecrawl API key is not configured", 500)

    try:
        body = await request.json()
    except ValueError:
        return _error("Invalid JSON body", 400)
    if not isinstance(body, dict):
        return _error("URLs must be provided as a list", 400)

    try:
        report = await asyncio.wait_for(
            orchestrator.ingest(
                body.get("urls"),
                update_existing=bool(body.get("updateExisting", False)),
            ),
            timeout=settings.ingest_timeout,
        )
    except ValidationError as e:
        return _error(e.message, 400)
    except asyncio.TimeoutError:
        logger.error(f"Ingestion timed out after {settings.ingest_timeout:g} seconds")
        return _error(
            "Request timed out. The extraction job may still be processing. "
            "Please check again in a few minutes.",
            504,
        )
    except Exception:
        logger.exception("Unexpected error during ingestion")
        return _error("Internal server error", 500)

    status_code = 200 if report.success else FAILURE_STATUS.get(report.failure, 500)
    return JSONResponse(report.to_response(), status_code=status_code)


@router.post("/update-prices", dependencies=[Depends(require_admin_token)])
async def update_prices(
    settings: SettingsDep,
    refresher: RefresherDep,
    resume: bool = False,
) -> JSONResponse:
    """Refresh the price and stock status of every stored product."""
    if not settings.firecrawl_configured:
        logger.error("FIRECRAWL_API_KEY is not configured")
        return _error("Firecrawl API key is not configured", 500)

    try:
        report = await refresher.refresh_all(resume=resume)
    except Exception:
        logger.exception("Unexpected error during price refresh")
        return _error("Internal server error", 500)

    return JSONResponse(report.to_response(), status_code=200 if report.success else 500)
