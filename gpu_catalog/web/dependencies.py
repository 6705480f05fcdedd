"""FastAPI dependencies for sessions, pipeline components and admin auth.

Routes receive their collaborators through these functions so tests can
swap them with ``app.dependency_overrides``.
"""

import hmac
from collections.abc import AsyncGenerator, Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from gpu_catalog.core.settings import Settings, get_settings
from gpu_catalog.db.engine import get_session
from gpu_catalog.db.repositories import PriceRefreshRunRepository, ProductRepository
from gpu_catalog.ingestion.extraction import ExtractionClient
from gpu_catalog.ingestion.orchestrator import IngestionOrchestrator
from gpu_catalog.ingestion.price_refresh import PriceRefresher
from gpu_catalog.services.catalog_service import CatalogService, get_catalog_service


def get_app_settings() -> Settings:
    """Dependency returning the process-wide settings."""
    return get_settings()


def get_db_session() -> Generator[Session, None, None]:
    """Dependency yielding a database session for one request."""
    with get_session() as session:
        yield session


async def get_extraction_client(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AsyncGenerator[ExtractionClient, None]:
    """Dependency yielding an extraction client, closed after the request."""
    async with ExtractionClient.from_settings(settings) as client:
        yield client


def get_orchestrator(
    session: Annotated[Session, Depends(get_db_session)],
    client: Annotated[ExtractionClient, Depends(get_extraction_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> IngestionOrchestrator:
    """Dependency building the ingestion orchestrator."""
    return IngestionOrchestrator(
        ProductRepository(session),
        client,
        poll_interval=settings.poll_interval,
        poll_timeout=settings.poll_timeout,
    )


def get_price_refresher(
    session: Annotated[Session, Depends(get_db_session)],
    client: Annotated[ExtractionClient, Depends(get_extraction_client)],
) -> PriceRefresher:
    """Dependency building the price refresher."""
    return PriceRefresher(
        ProductRepository(session),
        client,
        runs=PriceRefreshRunRepository(session),
    )


def get_catalog(session: Annotated[Session, Depends(get_db_session)]) -> CatalogService:
    """Dependency building the catalog service."""
    return get_catalog_service(session)


def require_admin_token(
    settings: Annotated[Settings, Depends(get_app_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require ``Authorization: Bearer <ADMIN_SECRET_TOKEN>``.

    Requests are always rejected when no admin token is configured.
    """
    token = settings.admin_secret_token
    expected = f"Bearer {token}"
    if not token or authorization is None or not hmac.compare_digest(
        authorization.encode(), expected.encode()
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
OrchestratorDep = Annotated[IngestionOrchestrator, Depends(get_orchestrator)]
RefresherDep = Annotated[PriceRefresher, Depends(get_price_refresher)]
CatalogDep = Annotated[CatalogService, Depends(get_catalog)]
