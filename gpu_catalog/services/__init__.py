"""Application services for the GPU catalog."""

from gpu_catalog.services.catalog_service import (
    CatalogService,
    get_catalog_service,
)

__all__ = [
    "CatalogService",
    "get_catalog_service",
]
